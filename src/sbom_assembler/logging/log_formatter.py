"""
Log formatters for terminal and machine-readable output.
"""

import json
import logging
from datetime import datetime
from typing import Dict, Any, Optional


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter emitting one object per log record.

    Useful when assembler runs are driven by CI and the log file is
    shipped to a collector.
    """

    STANDARD_FIELDS = {
        'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
        'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
        'thread', 'threadName', 'processName', 'process', 'exc_info', 'exc_text',
        'stack_info', 'message', 'taskName'
    }

    def __init__(self, include_extra: bool = True):
        """
        Initialize structured formatter.

        Args:
            include_extra: Whether to copy ``extra=`` fields into the record
        """
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra = self._extract_extra_fields(record)
            if extra:
                entry["extra"] = extra

        return json.dumps(entry, default=str, ensure_ascii=False)

    def _extract_extra_fields(self, record: logging.LogRecord) -> Dict[str, Any]:
        """Collect attributes that were attached through ``extra=``."""
        return {
            key: value for key, value in record.__dict__.items()
            if key not in self.STANDARD_FIELDS and not key.startswith('_')
        }


class ColoredFormatter(logging.Formatter):
    """
    Console formatter that colors each line by level.
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'
    BOLD = '\033[1m'

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None):
        super().__init__(fmt, datefmt)

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        color = self.COLORS.get(record.levelname)
        if not color:
            return formatted

        bold_level = f"{self.BOLD}{record.levelname}{self.RESET}{color}"
        formatted = formatted.replace(record.levelname, bold_level, 1)
        return f"{color}{formatted}{self.RESET}"
