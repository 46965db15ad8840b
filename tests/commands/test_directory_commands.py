"""Tests for the relationships and roles commands."""

from unittest.mock import patch

import pytest

from src.gdapexport.cli import app


@pytest.fixture
def patched(config, directory):
    with patch("src.gdapexport.commands.directory.get_config", return_value=config), patch(
        "src.gdapexport.commands.directory.create_directory_client", return_value=directory
    ):
        yield


class TestRelationshipsCommand:
    def test_lists_active_by_default(self, runner, patched):
        result = runner.invoke(app, ["relationships"])

        assert result.exit_code == 0, result.output
        assert "Contoso GDAP" in result.output
        assert "Fabrikam GDAP" not in result.output
        assert "Total relationships: 1" in result.output

    def test_status_both(self, runner, patched):
        result = runner.invoke(app, ["relationships", "--status", "both"])

        assert result.exit_code == 0, result.output
        assert "Total relationships: 2" in result.output

    def test_no_match(self, runner, patched, graph_manager):
        graph_manager.relationships = []

        result = runner.invoke(app, ["relationships", "-s", "expired"])

        assert result.exit_code == 0
        assert "No relationships match status filter 'expired'" in result.output

    def test_listing_failure(self, runner, patched, graph_manager):
        graph_manager.fail_relationship_listing = True

        result = runner.invoke(app, ["relationships"])

        assert result.exit_code == 1
        assert "Failed to retrieve delegated admin relationships" in result.output


class TestRolesCommand:
    def test_lists_roles(self, runner, patched):
        result = runner.invoke(app, ["roles"])

        assert result.exit_code == 0, result.output
        assert "Global Reader" in result.output
        assert "Total role definitions: 3" in result.output

    def test_filter(self, runner, patched):
        result = runner.invoke(app, ["roles", "--filter", "helpdesk"])

        assert result.exit_code == 0, result.output
        assert "Helpdesk Administrator" in result.output
        assert "Total role definitions: 1" in result.output

    def test_listing_failure(self, runner, patched, graph_manager):
        graph_manager.fail_role_listing = True

        result = runner.invoke(app, ["roles"])

        assert result.exit_code == 1
        assert "Failed to retrieve role definitions" in result.output
