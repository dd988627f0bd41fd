"""Tests for CLI commands."""

import boto3
import pytest
from click.testing import CliRunner

from brewlog.cli import cli

CLI_TABLE = "cli_test_table"


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CLI runner."""
    return CliRunner()


def table_names() -> list[str]:
    return boto3.client("dynamodb", region_name="us-east-1").list_tables()["TableNames"]


class TestCLI:
    def test_cli_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "brewlog table management CLI" in result.output
        for command in ("create-table", "delete-table", "recompute-place"):
            assert command in result.output

    def test_create_table(self, runner: CliRunner, mock_dynamodb) -> None:
        result = runner.invoke(cli, ["create-table", "--table-name", CLI_TABLE])
        assert result.exit_code == 0, result.output
        assert f"Table ready: {CLI_TABLE}" in result.output
        assert CLI_TABLE in table_names()

    def test_create_table_twice(self, runner: CliRunner, mock_dynamodb) -> None:
        """An existing table is not an error."""
        runner.invoke(cli, ["create-table", "--table-name", CLI_TABLE])
        result = runner.invoke(cli, ["create-table", "--table-name", CLI_TABLE])
        assert result.exit_code == 0, result.output

    def test_table_name_from_environment(
        self, runner: CliRunner, mock_dynamodb, monkeypatch
    ) -> None:
        monkeypatch.setenv("TABLE_NAME", "env_table")
        result = runner.invoke(cli, ["create-table"])
        assert result.exit_code == 0, result.output
        assert "env_table" in table_names()

    def test_delete_table(self, runner: CliRunner, mock_dynamodb) -> None:
        runner.invoke(cli, ["create-table", "--table-name", CLI_TABLE])
        result = runner.invoke(cli, ["delete-table", "--table-name", CLI_TABLE, "--yes"])
        assert result.exit_code == 0, result.output
        assert CLI_TABLE not in table_names()

    def test_delete_table_aborted(self, runner: CliRunner, mock_dynamodb) -> None:
        runner.invoke(cli, ["create-table", "--table-name", CLI_TABLE])
        result = runner.invoke(cli, ["delete-table", "--table-name", CLI_TABLE], input="n\n")
        assert result.exit_code == 1
        assert CLI_TABLE in table_names()

    def test_recompute_place(self, runner: CliRunner, mock_dynamodb) -> None:
        runner.invoke(cli, ["create-table", "--table-name", CLI_TABLE])
        client = boto3.client("dynamodb", region_name="us-east-1")
        for user_id, stars in [("u1", "5"), ("u2", "4")]:
            client.put_item(
                TableName=CLI_TABLE,
                Item={
                    "PK": {"S": "PLACE#p1"},
                    "SK": {"S": f"RATING#2026-03-01T08:00:00.00{stars}Z#r-{user_id}"},
                    "userId": {"S": user_id},
                    "stars": {"N": stars},
                },
            )

        result = runner.invoke(cli, ["recompute-place", "p1", "--table-name", CLI_TABLE])

        assert result.exit_code == 0, result.output
        assert "Average rating: 4.5" in result.output
        assert "Rating count: 2" in result.output
        key = {"PK": {"S": "PLACE#p1"}, "SK": {"S": "META"}}
        meta = client.get_item(TableName=CLI_TABLE, Key=key)
        assert meta["Item"]["ratingCount"] == {"N": "2"}

    def test_recompute_missing_table_fails(self, runner: CliRunner, mock_dynamodb) -> None:
        result = runner.invoke(cli, ["recompute-place", "p1", "--table-name", "missing"])
        assert result.exit_code == 1
        assert "Failed to recompute place" in result.output
