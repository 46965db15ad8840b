"""Core utility modules for gdapexport."""

from .config import CONFIG_DIR, CONFIG_FILE_YAML, DEFAULT_CONFIG, Config
from .logging_config import ContextLogger, LoggingConfig, LoggingManager

__all__ = [
    "CONFIG_DIR",
    "CONFIG_FILE_YAML",
    "DEFAULT_CONFIG",
    "Config",
    "ContextLogger",
    "LoggingConfig",
    "LoggingManager",
]
