"""DynamoDB repository for the single brewlog table."""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import aioboto3  # type: ignore[import-untyped]
from botocore.exceptions import ClientError

from . import schema

# DynamoDB BatchGetItem accepts at most 100 keys per call
BATCH_GET_LIMIT = 100


@dataclass
class QueryResult:
    """Items of one query page plus the store's continuation key."""

    items: list[dict[str, Any]] = field(default_factory=list)
    last_evaluated_key: dict[str, Any] | None = None


class Repository:
    """
    Async DynamoDB repository over one ``(PK, SK)`` table.

    Speaks in plain Python items (``{"PK": ..., "SK": ..., "stars": 4.5}``)
    and translates to DynamoDB's typed attribute format at the boundary.
    Holds no cached reads; every call goes to the store.
    """

    def __init__(
        self,
        table_name: str = schema.DEFAULT_TABLE_NAME,
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        self.table_name = table_name
        self.region = region
        self.endpoint_url = endpoint_url
        self._session: aioboto3.Session | None = None
        self._client: Any = None

    async def _get_client(self) -> Any:
        """Get or create the DynamoDB client."""
        if self._client is None:
            self._session = aioboto3.Session()
            self._client = await self._session.client(
                "dynamodb",
                region_name=self.region,
                endpoint_url=self.endpoint_url,
            ).__aenter__()
        return self._client

    async def close(self) -> None:
        """Close the DynamoDB client."""
        if self._client is not None:
            await self._client.__aexit__(None, None, None)
            self._client = None
            self._session = None

    async def __aenter__(self) -> "Repository":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Table operations
    # -------------------------------------------------------------------------

    async def create_table(self) -> None:
        """Create the DynamoDB table if it doesn't exist."""
        client = await self._get_client()
        definition = schema.get_table_definition(self.table_name)

        try:
            await client.create_table(**definition)
            # Wait for table to be active
            waiter = client.get_waiter("table_exists")
            await waiter.wait(TableName=self.table_name)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceInUseException":
                raise

    async def delete_table(self) -> None:
        """Delete the DynamoDB table."""
        client = await self._get_client()
        try:
            await client.delete_table(TableName=self.table_name)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceNotFoundException":
                raise

    # -------------------------------------------------------------------------
    # Point operations
    # -------------------------------------------------------------------------

    async def get_item(
        self,
        key: Mapping[str, str],
        attributes: Sequence[str] | None = None,
    ) -> dict[str, Any] | None:
        """Get one item by primary key, or None if it does not exist."""
        client = await self._get_client()
        request: dict[str, Any] = {
            "TableName": self.table_name,
            "Key": self._serialize_map(dict(key)),
        }
        if attributes:
            request.update(self._projection(attributes))

        response = await client.get_item(**request)
        item = response.get("Item")
        if not item:
            return None
        return self._deserialize_map(item)

    async def put_item(
        self,
        item: Mapping[str, Any],
        condition_expression: str | None = None,
    ) -> None:
        """
        Put one item, replacing any existing item with the same key.

        None-valued attributes are dropped rather than stored as NULL.

        Raises:
            ClientError: ConditionalCheckFailedException when
                ``condition_expression`` does not hold
        """
        client = await self._get_client()
        request: dict[str, Any] = {
            "TableName": self.table_name,
            "Item": self._serialize_map(self._without_none(item)),
        }
        if condition_expression:
            request["ConditionExpression"] = condition_expression
        await client.put_item(**request)

    async def delete_item(self, key: Mapping[str, str]) -> None:
        client = await self._get_client()
        await client.delete_item(
            TableName=self.table_name,
            Key=self._serialize_map(dict(key)),
        )

    async def transact_put(self, items: Sequence[Mapping[str, Any]]) -> None:
        """Put several items atomically: all of them are written or none is."""
        if not items:
            return

        client = await self._get_client()
        await client.transact_write_items(
            TransactItems=[
                {
                    "Put": {
                        "TableName": self.table_name,
                        "Item": self._serialize_map(self._without_none(item)),
                    }
                }
                for item in items
            ]
        )

    async def update_item(
        self,
        key: Mapping[str, str],
        set_values: Mapping[str, Any] | None = None,
        remove: Iterable[str] = (),
        add: Mapping[str, int | float] | None = None,
    ) -> None:
        """
        Apply a partial update to one item, creating it if absent.

        Args:
            key: Primary key of the item
            set_values: Attributes to overwrite
            remove: Attributes to delete entirely
            add: Numeric deltas applied store-side (``ADD``), which compose
                commutatively under concurrent updates
        """
        set_values = dict(set_values or {})
        remove = list(remove)
        add = dict(add or {})
        if not (set_values or remove or add):
            return

        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        clauses = []

        if set_values:
            parts = []
            for i, (attr, value) in enumerate(set_values.items()):
                names[f"#s{i}"] = attr
                values[f":s{i}"] = self._serialize_value(value)
                parts.append(f"#s{i} = :s{i}")
            clauses.append("SET " + ", ".join(parts))

        if remove:
            parts = []
            for i, attr in enumerate(remove):
                names[f"#r{i}"] = attr
                parts.append(f"#r{i}")
            clauses.append("REMOVE " + ", ".join(parts))

        if add:
            parts = []
            for i, (attr, delta) in enumerate(add.items()):
                names[f"#a{i}"] = attr
                values[f":a{i}"] = self._serialize_value(delta)
                parts.append(f"#a{i} :a{i}")
            clauses.append("ADD " + ", ".join(parts))

        request: dict[str, Any] = {
            "TableName": self.table_name,
            "Key": self._serialize_map(dict(key)),
            "UpdateExpression": " ".join(clauses),
            "ExpressionAttributeNames": names,
        }
        if values:
            request["ExpressionAttributeValues"] = values

        client = await self._get_client()
        await client.update_item(**request)

    async def add_delta(self, key: Mapping[str, str], attribute: str, delta: int | float) -> None:
        """Add ``delta`` to a numeric attribute; a missing attribute starts at 0."""
        await self.update_item(key, add={attribute: delta})

    # -------------------------------------------------------------------------
    # Multi-item reads
    # -------------------------------------------------------------------------

    async def query(
        self,
        pk: str,
        sk_prefix: str | None = None,
        sk_between: tuple[str, str] | None = None,
        descending: bool = False,
        limit: int | None = None,
        start_key: Mapping[str, Any] | None = None,
        attributes: Sequence[str] | None = None,
    ) -> QueryResult:
        """
        Query one partition.

        Args:
            pk: Partition key value
            sk_prefix: Optional ``begins_with`` sort key predicate
            sk_between: Optional inclusive ``BETWEEN`` sort key range
            descending: Return items in descending sort key order
            limit: Maximum number of items evaluated
            start_key: Continuation key from a previous page
            attributes: Optional projection

        Returns:
            QueryResult with items and the continuation key (None on last page)
        """
        client = await self._get_client()

        key_condition = "PK = :pk"
        expression_values: dict[str, Any] = {":pk": {"S": pk}}
        if sk_prefix is not None:
            key_condition += " AND begins_with(SK, :sk_prefix)"
            expression_values[":sk_prefix"] = {"S": sk_prefix}
        elif sk_between is not None:
            key_condition += " AND SK BETWEEN :sk_start AND :sk_end"
            expression_values[":sk_start"] = {"S": sk_between[0]}
            expression_values[":sk_end"] = {"S": sk_between[1]}

        query_args: dict[str, Any] = {
            "TableName": self.table_name,
            "KeyConditionExpression": key_condition,
            "ExpressionAttributeValues": expression_values,
            "ScanIndexForward": not descending,
        }
        if limit is not None:
            query_args["Limit"] = limit
        if start_key:
            query_args["ExclusiveStartKey"] = self._serialize_map(dict(start_key))
        if attributes:
            query_args.update(self._projection(attributes))

        response = await client.query(**query_args)

        last_key = response.get("LastEvaluatedKey")
        return QueryResult(
            items=[self._deserialize_map(item) for item in response.get("Items", [])],
            last_evaluated_key=self._deserialize_map(last_key) if last_key else None,
        )

    async def query_all(
        self,
        pk: str,
        sk_prefix: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Query a whole partition (or prefix of it), following continuation keys."""
        items: list[dict[str, Any]] = []
        start_key: dict[str, Any] | None = None
        while True:
            page = await self.query(
                pk, sk_prefix=sk_prefix, descending=descending, start_key=start_key
            )
            items.extend(page.items)
            if not page.last_evaluated_key:
                return items
            start_key = page.last_evaluated_key

    async def batch_get(
        self,
        keys: Sequence[Mapping[str, str]],
        attributes: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Get many items by key; missing keys are simply absent from the result."""
        if not keys:
            return []

        client = await self._get_client()
        found: list[dict[str, Any]] = []

        for i in range(0, len(keys), BATCH_GET_LIMIT):
            chunk = keys[i : i + BATCH_GET_LIMIT]
            request: dict[str, Any] = {
                "Keys": [self._serialize_map(dict(k)) for k in chunk],
            }
            if attributes:
                request.update(self._projection(attributes))
            pending: dict[str, Any] = {self.table_name: request}

            while pending:
                response = await client.batch_get_item(RequestItems=pending)
                for item in response.get("Responses", {}).get(self.table_name, []):
                    found.append(self._deserialize_map(item))
                pending = response.get("UnprocessedKeys") or {}

        return found

    # -------------------------------------------------------------------------
    # Serialization helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _projection(attributes: Sequence[str]) -> dict[str, Any]:
        names = {f"#p{i}": attr for i, attr in enumerate(attributes)}
        return {
            "ProjectionExpression": ", ".join(names),
            "ExpressionAttributeNames": names,
        }

    @staticmethod
    def _without_none(item: Mapping[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in item.items() if v is not None}

    def _serialize_map(self, data: dict[str, Any]) -> dict[str, Any]:
        """Serialize a Python dict to DynamoDB map format."""
        return {key: self._serialize_value(value) for key, value in data.items()}

    def _serialize_value(self, value: Any) -> dict[str, Any]:
        """Serialize a single value to DynamoDB format."""
        if isinstance(value, str):
            return {"S": value}
        elif isinstance(value, bool):
            return {"BOOL": value}
        elif isinstance(value, (int, float)):
            return {"N": str(value)}
        elif isinstance(value, dict):
            return {"M": self._serialize_map(value)}
        elif isinstance(value, list):
            return {"L": [self._serialize_value(v) for v in value]}
        elif value is None:
            return {"NULL": True}
        return {"S": str(value)}

    def _deserialize_map(self, data: dict[str, Any]) -> dict[str, Any]:
        """Deserialize a DynamoDB map to Python dict."""
        result = {}
        for key, value in data.items():
            result[key] = self._deserialize_value(value)
        return result

    def _deserialize_value(self, value: dict[str, Any]) -> Any:
        """Deserialize a single DynamoDB value."""
        if "S" in value:
            return value["S"]
        elif "N" in value:
            num_str = value["N"]
            if "." in num_str or "e" in num_str.lower():
                return float(num_str)
            return int(num_str)
        elif "BOOL" in value:
            return value["BOOL"]
        elif "M" in value:
            return self._deserialize_map(value["M"])
        elif "L" in value:
            return [self._deserialize_value(v) for v in value["L"]]
        elif "NULL" in value:
            return None
        return None
