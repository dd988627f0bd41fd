"""Photo object storage (S3 or an S3-compatible endpoint such as MinIO)."""

from typing import Any

import aioboto3  # type: ignore[import-untyped]
from botocore.config import Config

from .models import UploadRequest, generate_id

DEFAULT_BUCKET = "coffee-app-photos"
UPLOAD_URL_EXPIRES_SECONDS = 300


def photo_key(user_id: str, request: UploadRequest) -> str:
    """Object key for a new upload: ``uploads/<userId>/<id>.<ext>``."""
    return f"uploads/{user_id}/{generate_id()}.{request.extension}"


class PhotoStorage:
    """
    Upload and retrieval URLs for rating photos.

    With ``endpoint_url`` set (local development) photos are served
    straight from the endpoint; otherwise the relative path is returned and
    the CDN in front of the API serves ``/uploads/*``.
    """

    def __init__(
        self,
        bucket: str = DEFAULT_BUCKET,
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self._session: aioboto3.Session | None = None
        self._client: Any = None

    async def _get_client(self) -> Any:
        """Get or create the S3 client."""
        if self._client is None:
            self._session = aioboto3.Session()
            self._client = await self._session.client(
                "s3",
                region_name=self.region,
                endpoint_url=self.endpoint_url,
                config=Config(s3={"addressing_style": "path"}) if self.endpoint_url else None,
            ).__aenter__()
        return self._client

    async def close(self) -> None:
        """Close the S3 client."""
        if self._client is not None:
            await self._client.__aexit__(None, None, None)
            self._client = None
            self._session = None

    def photo_url(self, key: str) -> str:
        """Stable retrieval URL for an object key."""
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"/{key}"

    async def upload_url(self, key: str, content_type: str) -> str:
        """Short-lived presigned PUT URL for an object key."""
        client = await self._get_client()
        return await client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=UPLOAD_URL_EXPIRES_SECONDS,
        )

    async def create_upload(self, user_id: str, request: UploadRequest) -> dict[str, str]:
        """Reserve a key under the user's prefix and sign an upload for it."""
        key = photo_key(user_id, request)
        return {"uploadUrl": await self.upload_url(key, request.content_type), "key": key}
