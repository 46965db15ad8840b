"""Logging configuration for gdapexport."""

import json
import logging
import logging.handlers
import os
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

ROOT_LOGGER_NAME = "gdapexport"


class LogLevel(str, Enum):
    """Log levels for configuration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"


@dataclass
class LoggingConfig:
    """Configuration for logging system."""

    level: LogLevel = LogLevel.INFO
    format_type: LogFormat = LogFormat.DETAILED
    enable_file_logging: bool = True
    enable_console_logging: bool = True
    log_directory: str = str(Path.home() / ".gdapexport" / "logs")
    log_filename: str = "gdapexport.log"
    max_file_size_mb: int = 10
    backup_count: int = 5
    console_colors: bool = True
    log_http_requests: bool = False
    sensitive_data_patterns: List[str] = field(
        default_factory=lambda: [
            r"(?<=Bearer )[A-Za-z0-9\-_\.]+",
            r"(?<=client_secret=)[^&\s]+",
            r"(?<=access_token=)[^&\s]+",
        ]
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        """Build a config from the ``logging`` section of the config file."""
        config = cls()
        if not data:
            return config
        if data.get("level"):
            config.level = LogLevel(str(data["level"]).upper())
        if data.get("format"):
            config.format_type = LogFormat(str(data["format"]).lower())
        if "file_logging" in data:
            config.enable_file_logging = bool(data["file_logging"])
        if "console_logging" in data:
            config.enable_console_logging = bool(data["console_logging"])
        if data.get("directory"):
            config.log_directory = os.path.expanduser(str(data["directory"]))
        if "log_http_requests" in data:
            config.log_http_requests = bool(data["log_http_requests"])
        return config


class SensitiveDataFilter(logging.Filter):
    """Filter to redact tokens and secrets from log messages."""

    def __init__(self, patterns: List[str]) -> None:
        """
        Initialize the filter with sensitive data patterns.

        Args:
            patterns: List of regex patterns matching the sensitive part of a message
        """
        super().__init__()
        self.patterns = patterns
        self.compiled_patterns = [re.compile(pattern, re.IGNORECASE) for pattern in patterns]

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Redact sensitive data in place.

        Returns:
            bool: Always True (records are modified, never dropped)
        """
        if isinstance(record.msg, str):
            record.msg = self._redact(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: self._redact(v) if isinstance(v, str) else v
                    for k, v in record.args.items()
                }
            else:
                record.args = tuple(
                    self._redact(arg) if isinstance(arg, str) else arg for arg in record.args
                )

        return True

    def _redact(self, text: str) -> str:
        for pattern in self.compiled_patterns:
            text = pattern.sub("[REDACTED]", text)
        return text


_STANDARD_RECORD_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record, extra fields included."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in _STANDARD_RECORD_ATTRS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Console formatter with color support and component context."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and self._supports_color()

    def _supports_color(self) -> bool:
        return (
            hasattr(sys.stderr, "isatty")
            and sys.stderr.isatty()
            and os.environ.get("TERM") != "dumb"
        )

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        source = getattr(record, "component", None) or record.name
        operation = getattr(record, "operation", None)
        if operation:
            source = f"{source}.{operation}"

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            reset = self.COLORS["RESET"]
            formatted = (
                f"{color}[{timestamp}] {record.levelname:<8}{reset} - "
                f"{source} - {record.getMessage()}"
            )
        else:
            formatted = f"[{timestamp}] {record.levelname:<8} - {source} - {record.getMessage()}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


class LoggingManager:
    """
    Creates and owns the handlers of the ``gdapexport`` logger hierarchy.

    One instance is created when the CLI starts and closed when it exits.
    """

    def __init__(self, config: Optional[LoggingConfig] = None):
        self.config = config or LoggingConfig()
        self._handlers: List[logging.Handler] = []
        self._handlers_configured = False

    def setup_logging(self) -> None:
        """Attach console and file handlers to the package logger."""
        if self._handlers_configured:
            return

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.setLevel(getattr(logging, self.config.level.value))
        root_logger.propagate = False

        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)

        if self.config.enable_console_logging:
            self._handlers.append(self._create_console_handler())

        if self.config.enable_file_logging:
            Path(self.config.log_directory).mkdir(parents=True, exist_ok=True)
            self._handlers.append(self._create_file_handler())

        for handler in self._handlers:
            root_logger.addHandler(handler)

        self._configure_third_party_logging()
        self._handlers_configured = True

    def _create_console_handler(self) -> logging.Handler:
        # stdout is reserved for rendered reports
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(getattr(logging, self.config.level.value))

        formatter: logging.Formatter
        if self.config.format_type == LogFormat.JSON:
            formatter = StructuredFormatter()
        elif self.config.format_type == LogFormat.SIMPLE:
            formatter = logging.Formatter("%(levelname)s: %(message)s")
        else:
            formatter = ColoredConsoleFormatter(use_colors=self.config.console_colors)

        handler.setFormatter(formatter)
        if self.config.sensitive_data_patterns:
            handler.addFilter(SensitiveDataFilter(self.config.sensitive_data_patterns))
        return handler

    def _create_file_handler(self) -> logging.Handler:
        log_file = Path(self.config.log_directory) / self.config.log_filename

        handler = logging.handlers.RotatingFileHandler(
            filename=str(log_file),
            maxBytes=self.config.max_file_size_mb * 1024 * 1024,
            backupCount=self.config.backup_count,
            encoding="utf-8",
        )
        # The file always records debug detail for post-run diagnosis
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(StructuredFormatter())

        if self.config.sensitive_data_patterns:
            handler.addFilter(SensitiveDataFilter(self.config.sensitive_data_patterns))
        return handler

    def _configure_third_party_logging(self) -> None:
        level = logging.DEBUG if self.config.log_http_requests else logging.WARNING
        for logger_name in ["urllib3", "requests", "msal"]:
            logging.getLogger(logger_name).setLevel(level)

    def get_logger(self, name: str) -> logging.Logger:
        """Get a logger under the package hierarchy."""
        full_name = name if name.startswith(ROOT_LOGGER_NAME) else f"{ROOT_LOGGER_NAME}.{name}"
        return logging.getLogger(full_name)

    def create_context_logger(self, name: str, **context: Any) -> "ContextLogger":
        """Create a logger that adds ``context`` to every record it emits."""
        return ContextLogger(self.get_logger(name), context)

    def close(self) -> None:
        """Flush and detach the handlers created by setup_logging()."""
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in self._handlers:
            handler.flush()
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()
        self._handlers_configured = False


class ContextLogger:
    """Logger wrapper that automatically includes structured context in all records.

    Components receive one of these bound to ``component``; ``bind`` adds fields such
    as ``operation`` or ``relationship_id`` for a narrower scope.
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        self.logger = logger
        self.context = dict(context or {})

    def bind(self, **context: Any) -> "ContextLogger":
        """Return a new logger with additional context fields."""
        merged = dict(self.context)
        merged.update(context)
        return ContextLogger(self.logger, merged)

    def _log_with_context(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        extra = dict(self.context)
        extra.update(kwargs.pop("extra", {}) or {})
        self.logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.CRITICAL, msg, *args, **kwargs)


def component_logger(component: str, module_name: str) -> ContextLogger:
    """Build the default ContextLogger for a component that was not given one."""
    return ContextLogger(logging.getLogger(module_name), {"component": component})
