"""
Configuration management for the SBOM assembler.
"""

from .config_manager import (
    ConfigManager, AppConfig, ApplicationConfig, AuthorConfig, LicenseConfig,
    SupplierConfig, ChecksumConfig, OutputConfig, AssembleConfig, MatcherSettings,
    LoggingConfig, SUPPORTED_CHECKSUM_ALGORITHMS, SPEC_VERSIONS, FILE_FORMATS,
    sample_config, validate_output_options, get_config_manager, get_config
)

__all__ = [
    "ConfigManager",
    "AppConfig",
    "ApplicationConfig",
    "AuthorConfig",
    "LicenseConfig",
    "SupplierConfig",
    "ChecksumConfig",
    "OutputConfig",
    "AssembleConfig",
    "MatcherSettings",
    "LoggingConfig",
    "SUPPORTED_CHECKSUM_ALGORITHMS",
    "SPEC_VERSIONS",
    "FILE_FORMATS",
    "sample_config",
    "validate_output_options",
    "get_config_manager",
    "get_config"
]
