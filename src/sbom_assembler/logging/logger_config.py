"""
Logger configuration and setup for the SBOM assembler.

Log output goes to stderr so that an assembled SBOM written to stdout
stays machine-readable.
"""

import logging
import logging.handlers
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .log_formatter import StructuredFormatter, ColoredFormatter

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
QUIET_LOGGERS = ("urllib3", "requests")


@dataclass
class LoggerConfig:
    """Handler settings applied to the root logger."""
    level: str = "WARNING"
    file_path: Optional[str] = None
    format_string: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_file_size: int = 10  # MB
    backup_count: int = 5
    enable_console: bool = True
    enable_structured: bool = False
    enable_colors: bool = True


def level_number(name: str) -> int:
    """Numeric level for ``name``; unknown names map to WARNING."""
    name = name.upper()
    return getattr(logging, name) if name in LEVELS else logging.WARNING


class LoggingManager:
    """
    Owns the handlers the assembler attaches to the root logger.

    At most two handlers are installed: ``console`` on stderr and a
    size-rotated ``file``. Reconfiguring replaces both.
    """

    def __init__(self):
        self._handlers: Dict[str, logging.Handler] = {}
        self._configured = False
        self.config: Optional[LoggerConfig] = None

    def setup_logging(self, config: Optional[LoggerConfig] = None, force: bool = False) -> None:
        """
        Install handlers for ``config``.

        A second call is ignored unless ``force`` is set, in which case the
        previous handlers are closed first.

        Args:
            config: Handler settings, defaults when omitted
            force: Replace an existing setup
        """
        if self._configured:
            if not force:
                return
            self.close_handlers()

        self.config = config or LoggerConfig()
        level = level_number(self.config.level)

        root = logging.getLogger()
        root.setLevel(level)

        if self.config.enable_console:
            self._install("console", logging.StreamHandler(sys.stderr), self._console_formatter())
        if self.config.file_path:
            self._install("file", self._rotating_file(self.config.file_path), self._file_formatter())

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        self._configured = True
        logging.getLogger(__name__).debug(
            f"Logging configured at {self.config.level} with handlers {sorted(self._handlers)}"
        )

    def _install(self, name: str, handler: logging.Handler, formatter: logging.Formatter) -> None:
        handler.setLevel(level_number(self.config.level))
        handler.setFormatter(formatter)
        logging.getLogger().addHandler(handler)
        self._handlers[name] = handler

    def _console_formatter(self) -> logging.Formatter:
        if self.config.enable_structured:
            return StructuredFormatter()
        if self.config.enable_colors and sys.stderr.isatty():
            return ColoredFormatter(self.config.format_string)
        return logging.Formatter(self.config.format_string)

    def _file_formatter(self) -> logging.Formatter:
        if self.config.enable_structured:
            return StructuredFormatter()
        return logging.Formatter(self.config.format_string)

    def _rotating_file(self, file_path: str) -> logging.Handler:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=self.config.max_file_size * 1024 * 1024,
            backupCount=self.config.backup_count,
            encoding="utf-8"
        )

    def set_level(self, level: str) -> None:
        """Apply ``level`` to the root logger and every installed handler."""
        number = level_number(level)
        logging.getLogger().setLevel(number)
        for handler in self._handlers.values():
            handler.setLevel(number)
        if self.config:
            self.config.level = level.upper()

    def get_log_stats(self) -> Dict[str, Any]:
        """
        Describe the current setup.

        Returns:
            Dictionary with ``configured``, ``handlers_active`` and ``current_level``
        """
        return {
            "configured": self._configured,
            "handlers_active": sorted(self._handlers),
            "current_level": self.config.level if self.config else "Unknown"
        }

    def close_handlers(self) -> None:
        """Detach and close every installed handler."""
        root = logging.getLogger()
        for handler in self._handlers.values():
            root.removeHandler(handler)
            handler.close()
        self._handlers.clear()
        self._configured = False


_logging_manager = LoggingManager()


def setup_logging(config: Optional[LoggerConfig] = None, force: bool = False) -> None:
    """
    Configure the process-wide logging manager.

    Args:
        config: Handler settings
        force: Replace an existing setup
    """
    _logging_manager.setup_logging(config, force=force)


def set_log_level(level: str) -> None:
    """Change the level of the process-wide logging setup."""
    _logging_manager.set_level(level)


def get_logging_stats() -> Dict[str, Any]:
    return _logging_manager.get_log_stats()


def close_logging() -> None:
    """Remove the handlers installed by :func:`setup_logging`."""
    _logging_manager.close_handlers()
