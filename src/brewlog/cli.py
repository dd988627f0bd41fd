"""Command-line interface for brewlog table management."""

import asyncio
import sys

import click

from .aggregates import AggregateRecomputer
from .config import Settings
from .repository import Repository


def _repository(table_name: str | None, region: str | None, endpoint_url: str | None) -> Repository:
    settings = Settings.from_environment()
    return Repository(
        table_name=table_name or settings.table_name,
        region=region or settings.region,
        endpoint_url=endpoint_url or settings.dynamodb_endpoint,
    )


def _table_options(fn):  # type: ignore[no-untyped-def]
    fn = click.option(
        "--endpoint-url",
        help="DynamoDB endpoint URL (e.g., http://localhost:8000 for DynamoDB Local)",
    )(fn)
    fn = click.option("--region", help="AWS region (default: AWS_REGION or us-east-1)")(fn)
    fn = click.option("--table-name", help="DynamoDB table name (default: TABLE_NAME)")(fn)
    return fn


@click.group()
@click.version_option()
def cli() -> None:
    """brewlog table management CLI."""
    pass


@cli.command("create-table")
@_table_options
def create_table(table_name: str | None, region: str | None, endpoint_url: str | None) -> None:
    """Create the single DynamoDB table (no-op if it already exists)."""

    async def _create() -> None:
        async with _repository(table_name, region, endpoint_url) as repo:
            await repo.create_table()
            click.echo(f"✓ Table ready: {repo.table_name}")

    try:
        asyncio.run(_create())
    except Exception as e:
        click.echo(f"✗ Failed to create table: {e}", err=True)
        sys.exit(1)


@cli.command("delete-table")
@_table_options
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
def delete_table(
    table_name: str | None,
    region: str | None,
    endpoint_url: str | None,
    yes: bool,
) -> None:
    """Delete the DynamoDB table and every item in it."""
    repo = _repository(table_name, region, endpoint_url)
    if not yes:
        click.confirm(f"Delete table {repo.table_name}?", abort=True)

    async def _delete() -> None:
        async with repo:
            await repo.delete_table()
            click.echo(f"✓ Table deleted: {repo.table_name}")

    try:
        asyncio.run(_delete())
    except Exception as e:
        click.echo(f"✗ Failed to delete table: {e}", err=True)
        sys.exit(1)


@cli.command("recompute-place")
@click.argument("place_id")
@_table_options
def recompute_place(
    place_id: str,
    table_name: str | None,
    region: str | None,
    endpoint_url: str | None,
) -> None:
    """Recompute a place's average rating and rating count from its ratings."""

    async def _recompute() -> None:
        async with _repository(table_name, region, endpoint_url) as repo:
            aggregate = await AggregateRecomputer(repo).recompute_place(place_id)
            click.echo(f"Place: {place_id}")
            click.echo(f"  Average rating: {aggregate.avg_rating}")
            click.echo(f"  Rating count: {aggregate.rating_count}")

    try:
        asyncio.run(_recompute())
    except Exception as e:
        click.echo(f"✗ Failed to recompute place: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
