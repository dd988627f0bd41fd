"""Wiring of the brewlog components around one store connection."""

from typing import Any

from .accounts import Accounts
from .caffeine import CaffeineEstimator
from .config import Settings
from .projector import ReadProjector
from .repository import Repository
from .storage import PhotoStorage
from .writer import ProjectionWriter


class Brewlog:
    """
    All brewlog operations for one request (or one CLI run).

    Owns the DynamoDB and S3 clients; use as an async context manager so
    both are closed afterwards.

    Example:
        async with Brewlog.from_settings(Settings.from_environment()) as app:
            await app.writer.toggle_like(user_id, rating_id)
    """

    def __init__(
        self,
        repository: Repository,
        storage: PhotoStorage,
        estimator: CaffeineEstimator,
    ) -> None:
        self.repository = repository
        self.storage = storage
        self.estimator = estimator
        self.accounts = Accounts(repository)
        self.writer = ProjectionWriter(repository)
        self.reader = ReadProjector(repository, photo_url=storage.photo_url)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Brewlog":
        return cls(
            repository=Repository(
                table_name=settings.table_name,
                region=settings.region,
                endpoint_url=settings.dynamodb_endpoint,
            ),
            storage=PhotoStorage(
                bucket=settings.s3_bucket,
                region=settings.s3_region,
                endpoint_url=settings.s3_endpoint,
            ),
            estimator=CaffeineEstimator(
                api_key=settings.openai_api_key,
                model=settings.openai_model,
                timeout=settings.openai_timeout_seconds,
            ),
        )

    async def close(self) -> None:
        await self.repository.close()
        await self.storage.close()

    async def __aenter__(self) -> "Brewlog":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
