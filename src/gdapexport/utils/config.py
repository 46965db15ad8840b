"""Configuration utilities for gdapexport."""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from rich.console import Console

console = Console(stderr=True)

CONFIG_DIR = Path.home() / ".gdapexport"
CONFIG_FILE_YAML = CONFIG_DIR / "config.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "graph": {
        "tenant_id": None,
        "client_id": None,
        "client_secret": None,
        "auth_mode": "app",  # Options: "app", "device_code"
        "base_url": "https://graph.microsoft.com/v1.0",
        "timeout": 30,  # seconds, per request
        "page_size": 100,
    },
    "export": {
        "status_filter": "active",  # Options: "active", "expired", "both"
        "formats": ["table"],
        "output_dir": "./gdap-reports",
        "prefix": "gdap",
        "max_workers": 4,
    },
    "logging": {
        "level": "INFO",
        "format": "detailed",
        "file_logging": True,
        "directory": str(CONFIG_DIR / "logs"),
    },
}

# Environment variables take precedence over the config file
ENV_OVERRIDES = {
    "GDAP_TENANT_ID": "graph.tenant_id",
    "GDAP_CLIENT_ID": "graph.client_id",
    "GDAP_CLIENT_SECRET": "graph.client_secret",
    "GDAP_AUTH_MODE": "graph.auth_mode",
}

SECRET_KEYS = {"graph.client_secret"}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_config_value(raw: str) -> Any:
    """Interpret a CLI-provided value using YAML scalar rules (ints, bools, lists)."""
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


class Config:
    """Manages gdapexport configuration stored as YAML."""

    def __init__(
        self, config_file: Optional[Path] = None, environ: Optional[Dict[str, str]] = None
    ):
        """
        Initialize the configuration manager.

        Args:
            config_file: Path of the YAML file; defaults to ~/.gdapexport/config.yaml
            environ: Environment mapping used for overrides; defaults to os.environ
        """
        self.config_file = Path(config_file) if config_file else CONFIG_FILE_YAML
        self.environ = os.environ if environ is None else environ
        self.file_data: Dict[str, Any] = {}
        self._config_loaded = False

    def _ensure_config_loaded(self) -> None:
        if not self._config_loaded:
            self._load_config()
            self._config_loaded = True

    def reload_config(self) -> None:
        """Force reload configuration from file."""
        self._config_loaded = False
        self._ensure_config_loaded()

    def _load_config(self) -> None:
        if not self.config_file.exists():
            self.file_data = {}
            return

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            console.print(
                f"[red]Error: Configuration file {self.config_file} is not valid YAML: {e}[/red]"
            )
            data = {}
        except OSError as e:
            console.print(f"[red]Error reading configuration file {self.config_file}: {e}[/red]")
            data = {}

        if not isinstance(data, dict):
            console.print(
                f"[yellow]Warning: Ignoring {self.config_file}, "
                "expected a mapping at top level[/yellow]"
            )
            data = {}
        self.file_data = data

    @property
    def config_data(self) -> Dict[str, Any]:
        """Effective configuration: defaults, then file, then environment."""
        self._ensure_config_loaded()
        effective = _deep_merge(DEFAULT_CONFIG, self.file_data)
        for env_name, dotted_key in ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if value:
                self._set_in(effective, dotted_key, value)
        return effective

    @staticmethod
    def _set_in(data: Dict[str, Any], dotted_key: str, value: Any) -> None:
        parts = dotted_key.split(".")
        node = data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def get(self, dotted_key: str, default: Any = None) -> Any:
        """Get a value such as ``graph.timeout``."""
        node: Any = self.config_data
        for part in dotted_key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return default if node is None else node

    def set(self, dotted_key: str, value: Any) -> None:
        """Set a value in the file-backed configuration (call save() to persist)."""
        self._ensure_config_loaded()
        self._set_in(self.file_data, dotted_key, value)

    def save(self) -> None:
        """Write the file-backed configuration to disk."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.file_data, f, default_flow_style=False, sort_keys=True)
        if self.get("graph.client_secret"):
            # The file may hold a client secret
            os.chmod(self.config_file, 0o600)

    def get_graph_settings(self) -> Dict[str, Any]:
        return dict(self.config_data["graph"])

    def get_export_settings(self) -> Dict[str, Any]:
        return dict(self.config_data["export"])

    def get_logging_settings(self) -> Dict[str, Any]:
        return dict(self.config_data["logging"])

    def redacted(self) -> Dict[str, Any]:
        """Effective configuration with secrets masked, for display."""
        data = self.config_data
        for dotted_key in SECRET_KEYS:
            if self.get(dotted_key):
                self._set_in(data, dotted_key, "********")
        return data
