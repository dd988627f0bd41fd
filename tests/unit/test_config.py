"""Tests for environment configuration."""

from brewlog.config import Settings

ENV_VARS = (
    "TABLE_NAME",
    "AWS_REGION",
    "DYNAMODB_ENDPOINT",
    "S3_BUCKET",
    "S3_REGION",
    "S3_ENDPOINT",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_TIMEOUT_SECONDS",
)


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ENV_VARS:
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_environment()

        assert settings == Settings()
        assert settings.table_name == "CoffeeApp"
        assert settings.s3_bucket == "coffee-app-photos"
        assert settings.dynamodb_endpoint is None
        assert settings.openai_api_key is None
        assert settings.openai_timeout_seconds == 15.0

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("TABLE_NAME", "Coffee-dev")
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        monkeypatch.setenv("DYNAMODB_ENDPOINT", "http://localhost:8000")
        monkeypatch.setenv("S3_ENDPOINT", "http://localhost:9000")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("OPENAI_TIMEOUT_SECONDS", "5")

        settings = Settings.from_environment()

        assert settings.table_name == "Coffee-dev"
        assert settings.region == "eu-west-1"
        assert settings.dynamodb_endpoint == "http://localhost:8000"
        assert settings.s3_endpoint == "http://localhost:9000"
        assert settings.openai_api_key == "sk-test"
        assert settings.openai_timeout_seconds == 5.0

    def test_blank_endpoint_means_aws(self, monkeypatch):
        monkeypatch.setenv("DYNAMODB_ENDPOINT", "")
        assert Settings.from_environment().dynamodb_endpoint is None
