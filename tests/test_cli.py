"""
Tests for the sqlcache CLI.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from sqlcache import __version__
from sqlcache.cli.main import app

runner = CliRunner()


@pytest.fixture
def cli_args(db_path: Path) -> list[str]:
    """Global options pointing the CLI at a temporary database."""
    return ["--path", str(db_path), "--name", "cli_cache"]


class TestCLICommands:
    """Test CLI commands against a file database."""

    def test_set_then_get_json(self, cli_args: list[str]) -> None:
        """Test that a JSON value round-trips through set and get."""
        result = runner.invoke(app, [*cli_args, "set", "foo", '{"a": [1, 2]}'])
        assert result.exit_code == 0

        result = runner.invoke(app, [*cli_args, "get", "foo"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"a": [1, 2]}

    def test_set_raw_string(self, cli_args: list[str]) -> None:
        """Test that --raw stores the value as text."""
        runner.invoke(app, [*cli_args, "set", "foo", "123", "--raw"])

        result = runner.invoke(app, [*cli_args, "get", "foo"])
        assert result.stdout.strip() == "123"

    def test_get_miss_exits_nonzero(self, cli_args: list[str]) -> None:
        """Test that a miss exits with status 1."""
        result = runner.invoke(app, [*cli_args, "get", "missing"])
        assert result.exit_code == 1

    def test_negative_ttl_not_stored(self, cli_args: list[str]) -> None:
        """Test that a negative TTL drops the write."""
        runner.invoke(app, [*cli_args, "set", "foo", "1", "--ttl", "-1"])

        result = runner.invoke(app, [*cli_args, "get", "foo"])
        assert result.exit_code == 1

    def test_keys_and_delete(self, cli_args: list[str]) -> None:
        """Test listing and deleting keys."""
        runner.invoke(app, [*cli_args, "set", "alpha", "1"])
        runner.invoke(app, [*cli_args, "set", "beta", "2"])

        result = runner.invoke(app, [*cli_args, "keys"])
        assert result.exit_code == 0
        assert "alpha" in result.stdout
        assert "beta" in result.stdout

        result = runner.invoke(app, [*cli_args, "delete", "alpha"])
        assert result.exit_code == 0

        result = runner.invoke(app, [*cli_args, "get", "alpha"])
        assert result.exit_code == 1

    def test_ttl(self, cli_args: list[str]) -> None:
        """Test that ttl prints remaining milliseconds, or -1."""
        runner.invoke(app, [*cli_args, "set", "foo", "1", "--ttl", "60"])

        result = runner.invoke(app, [*cli_args, "ttl", "foo"])
        assert 0 < int(result.stdout.strip()) <= 60_000

        result = runner.invoke(app, [*cli_args, "ttl", "missing"])
        assert result.stdout.strip() == "-1"

    def test_reset_with_confirmation_flag(self, cli_args: list[str]) -> None:
        """Test that reset --yes empties the store."""
        runner.invoke(app, [*cli_args, "set", "foo", "1"])

        result = runner.invoke(app, [*cli_args, "reset", "--yes"])
        assert result.exit_code == 0

        result = runner.invoke(app, [*cli_args, "get", "foo"])
        assert result.exit_code == 1

    def test_reset_aborts_without_confirmation(self, cli_args: list[str]) -> None:
        """Test that declining the prompt keeps the data."""
        runner.invoke(app, [*cli_args, "set", "foo", "1"])

        result = runner.invoke(app, [*cli_args, "reset"], input="n\n")
        assert result.exit_code != 0

        result = runner.invoke(app, [*cli_args, "get", "foo"])
        assert result.exit_code == 0

    def test_purge(self, cli_args: list[str]) -> None:
        """Test that purge removes already-expired entries."""
        runner.invoke(app, [*cli_args, "set", "foo", "1", "--ttl", "0"])

        result = runner.invoke(app, [*cli_args, "purge"])
        assert result.exit_code == 0
        assert "Purged" in result.stdout

    def test_invalid_name_option(self, db_path: Path) -> None:
        """Test that an invalid --name is reported as an error."""
        result = runner.invoke(app, ["--path", str(db_path), "--name", "bad name", "keys"])
        assert result.exit_code == 1

    def test_config(self, mock_env_vars: dict[str, str]) -> None:
        """Test that config shows the loaded settings."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "test_cache" in result.stdout

    def test_version(self) -> None:
        """Test the version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout
