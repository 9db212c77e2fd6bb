"""
Test the command line interface of agent-tools.

Runs commands through click's ``CliRunner``; registry access over HTTP
is patched out.
"""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from agent_tools.cli.main import CONFIG_FILENAME, cli
from agent_tools.client import ClientError
from agent_tools.core.models import SearchResult


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def fake_client():
    """Patch RegistryClient in the CLI with a context-manager mock."""
    with patch("agent_tools.cli.main.RegistryClient") as client_cls:
        client = MagicMock()
        client_cls.return_value.__enter__.return_value = client
        client.client_cls = client_cls
        yield client


@pytest.mark.unit
class TestInit:
    """Test project initialisation."""

    def test_init_creates_layout(self, runner, tmp_path):
        result = runner.invoke(cli, ["init", "--path", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "data").is_dir()
        assert (tmp_path / "schemas").is_dir()
        config = (tmp_path / CONFIG_FILENAME).read_text()
        assert "[server]" in config
        assert "./data/agent-tools.db" in config

    def test_init_keeps_existing_config(self, runner, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("# mine\n")

        result = runner.invoke(cli, ["init", "--path", str(tmp_path)])

        assert result.exit_code == 0
        assert "already exists" in result.output
        assert (tmp_path / CONFIG_FILENAME).read_text() == "# mine\n"


@pytest.mark.integration
class TestDbInfo:
    """Test database inspection."""

    def test_db_info_json(self, runner, tmp_path):
        db_path = tmp_path / "data" / "registry.db"

        result = runner.invoke(cli, ["db", "info", "--db", str(db_path), "--json"])

        assert result.exit_code == 0, result.output
        info = json.loads(result.output)
        assert info["schema_version"] == 1
        assert info["tools"] == 0
        assert Path(info["path"]) == db_path

    def test_db_info_table(self, runner, tmp_path):
        result = runner.invoke(cli, ["db", "info", "--db", str(tmp_path / "r.db")])

        assert result.exit_code == 0
        assert "schema_version" in result.output

    def test_db_info_bad_path(self, runner, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        result = runner.invoke(cli, ["db", "info", "--db", str(blocker / "r.db")])

        assert result.exit_code == 1
        assert "create db dir" in result.output


@pytest.mark.unit
class TestToolCommands:
    """Test tool list and search."""

    def test_list_empty(self, runner, fake_client):
        fake_client.list_tools.return_value = SearchResult()

        result = runner.invoke(cli, ["tool", "list", "--registry", "http://registry.test"])

        assert result.exit_code == 0
        assert "No tools registered." in result.output
        fake_client.client_cls.assert_called_once_with("http://registry.test")
        fake_client.list_tools.assert_called_once_with(limit=50)

    def test_list_table(self, runner, fake_client, registered_tool):
        fake_client.list_tools.return_value = SearchResult(tools=[registered_tool], total=1)

        result = runner.invoke(cli, ["tool", "list"])

        assert result.exit_code == 0
        assert "Tools (1 of 1)" in result.output

    def test_list_json(self, runner, fake_client, registered_tool):
        fake_client.list_tools.return_value = SearchResult(tools=[registered_tool], total=1)

        result = runner.invoke(cli, ["tool", "list", "--json"])

        assert json.loads(result.output)[0]["id"] == registered_tool.id

    def test_search(self, runner, fake_client, registered_tool):
        fake_client.search_tools.return_value = SearchResult(tools=[registered_tool], total=1, query="solidity")

        result = runner.invoke(cli, ["tool", "search", "-q", "solidity", "--max-price", "2"])

        assert result.exit_code == 0
        assert "Found 1 tools" in result.output
        fake_client.search_tools.assert_called_once_with("solidity", tag=None, max_price=2.0)

    def test_search_requires_query(self, runner, fake_client):
        result = runner.invoke(cli, ["tool", "search"])
        assert result.exit_code == 2

    def test_search_no_results(self, runner, fake_client):
        fake_client.search_tools.return_value = SearchResult(query="nothing")

        result = runner.invoke(cli, ["tool", "search", "-q", "nothing"])

        assert "No tools found for query: 'nothing'" in result.output

    def test_registry_unreachable(self, runner, fake_client):
        fake_client.list_tools.side_effect = ClientError(0, "CONNECTION_ERROR", "connection refused")

        result = runner.invoke(cli, ["tool", "list"])

        assert result.exit_code == 1
        assert "CONNECTION_ERROR" in result.output
        assert "agent-tools serve" in result.output


@pytest.mark.unit
class TestServe:
    """Test server startup wiring."""

    def test_serve_opens_registry_and_runs(self, runner, tmp_path):
        db_path = tmp_path / "serve.db"

        with patch("agent_tools.cli.main.APIServer") as server_cls:
            result = runner.invoke(cli, ["serve", "--db", str(db_path), "--port", "9999"])

        assert result.exit_code == 0, result.output
        assert db_path.exists()
        run_kwargs = server_cls.return_value.run.call_args.kwargs
        assert run_kwargs["port"] == 9999
