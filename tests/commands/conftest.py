"""Shared fixtures for CLI command tests."""

import pytest
import yaml
from typer.testing import CliRunner

from src.gdapexport import cli
from src.gdapexport.commands import common
from src.gdapexport.graph_clients.directory import DirectoryClient
from src.gdapexport.utils.config import Config
from tests.fixtures.graph import (
    GLOBAL_READER_ID,
    HELPDESK_ADMIN_ID,
    FakeGraphClientManager,
    assignment_detail_payload,
    relationship_payload,
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep rich tables from folding cell text at the default 80 columns."""
    monkeypatch.setattr(common.console, "_width", 200)
    monkeypatch.setattr(cli.console, "_width", 200)


@pytest.fixture
def config(tmp_path):
    """Config backed by a temporary file, with file and console logging off."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        yaml.safe_dump(
            {
                "graph": {"tenant_id": "tenant-1", "client_id": "app-1", "client_secret": "s"},
                "export": {"output_dir": str(tmp_path / "reports"), "max_workers": 2},
                "logging": {"file_logging": False, "console_logging": False},
            }
        )
    )
    return Config(config_file=config_file, environ={})


@pytest.fixture
def graph_manager():
    return FakeGraphClientManager(
        relationships=[
            relationship_payload("R1", "active", display_name="Contoso GDAP"),
            relationship_payload("R2", "expired", display_name="Fabrikam GDAP"),
        ],
        assignments={
            "R1": [assignment_detail_payload("A1", [GLOBAL_READER_ID, "role-y"])],
            "R2": [assignment_detail_payload("A2", [HELPDESK_ADMIN_ID])],
        },
    )


@pytest.fixture
def directory(graph_manager):
    return DirectoryClient(graph_manager)
