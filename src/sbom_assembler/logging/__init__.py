"""
Logging system for the SBOM assembler.
"""

from .logger_config import (
    setup_logging, set_log_level, get_logging_stats, close_logging,
    LoggerConfig, LoggingManager
)
from .log_formatter import StructuredFormatter, ColoredFormatter

__all__ = [
    "setup_logging",
    "set_log_level",
    "get_logging_stats",
    "close_logging",
    "LoggerConfig",
    "LoggingManager",
    "StructuredFormatter",
    "ColoredFormatter"
]
