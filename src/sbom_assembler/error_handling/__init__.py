"""
Error types and recovery helpers for the SBOM assembler.
"""

from .exceptions import (
    SBOMAssemblerError, LoadError, SpecMismatchError, ConfigError,
    UnsupportedFormatError, MatcherConfigError, MergeError, WriteError,
    UploadError, DanglingReferenceWarning
)
from .retry_decorator import retry, retry_with_config, RetryConfig

__all__ = [
    "SBOMAssemblerError",
    "LoadError",
    "SpecMismatchError",
    "ConfigError",
    "UnsupportedFormatError",
    "MatcherConfigError",
    "MergeError",
    "WriteError",
    "UploadError",
    "DanglingReferenceWarning",
    "retry",
    "retry_with_config",
    "RetryConfig"
]
