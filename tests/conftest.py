"""Pytest fixtures for brewlog tests."""

import asyncio
from collections.abc import Awaitable
from unittest.mock import patch

import pytest
from moto import mock_aws

from brewlog.accounts import Accounts
from brewlog.app import Brewlog
from brewlog.caffeine import CaffeineEstimator
from brewlog.models import NewUser
from brewlog.projector import ReadProjector
from brewlog.repository import Repository
from brewlog.storage import PhotoStorage
from brewlog.writer import ProjectionWriter
from tests.fixtures.ratings import FakeClock, SequentialIds

TEST_TABLE = "test_coffee_app"
TEST_BUCKET = "test-coffee-photos"


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    # Unset endpoints so moto intercepts requests
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)
    monkeypatch.delenv("DYNAMODB_ENDPOINT", raising=False)
    monkeypatch.delenv("S3_ENDPOINT", raising=False)


@pytest.fixture
def mock_dynamodb(aws_credentials):
    """Mock DynamoDB (and S3) for tests."""
    with mock_aws(), _patch_aiobotocore_response():
        yield


def _patch_aiobotocore_response():
    """
    Patch aiobotocore to work with moto's sync responses.

    Moto returns botocore.awsrequest.AWSResponse which has sync content,
    but aiobotocore expects async content. This patch wraps the response
    handling to convert sync content to async.

    See: https://github.com/aio-libs/aiobotocore/discussions/1300
    """
    from aiobotocore import endpoint

    original_convert = endpoint.convert_to_response_dict

    async def patched_convert(http_response, operation_model):
        # If content is not awaitable (moto's sync response), wrap it
        if hasattr(http_response, "_content") and not isinstance(http_response._content, Awaitable):
            fut: asyncio.Future[bytes] = asyncio.Future()
            fut.set_result(http_response.content)
            http_response._content = fut
        return await original_convert(http_response, operation_model)

    return patch.object(endpoint, "convert_to_response_dict", patched_convert)


@pytest.fixture
async def repo(mock_dynamodb):
    """Repository over a freshly created table."""
    repo = Repository(table_name=TEST_TABLE, region="us-east-1")
    await repo.create_table()
    yield repo
    await repo.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def writer(repo, clock):
    return ProjectionWriter(repo, clock=clock, id_factory=SequentialIds("rating"))


@pytest.fixture
def reader(repo):
    return ReadProjector(repo, photo_url=lambda key: f"https://cdn.test/{key}")


@pytest.fixture
def accounts(repo):
    return Accounts(repo)


@pytest.fixture
async def users(accounts):
    """Three registered users keyed by username."""
    created = {}
    for username, display_name in [("alice", "Alice"), ("bob", "Bob"), ("carol", "Carol")]:
        created[username] = await accounts.create_user(
            NewUser(username=username, display_name=display_name, password="secret123")
        )
    return created


@pytest.fixture
async def storage(mock_dynamodb):
    storage = PhotoStorage(bucket=TEST_BUCKET, region="us-east-1")
    yield storage
    await storage.close()


@pytest.fixture
def app(repo, storage):
    """Brewlog wired to the mocked table, without a caffeine API key."""
    return Brewlog(repository=repo, storage=storage, estimator=CaffeineEstimator(api_key=None))
