"""
Configuration management system for the SBOM assembler.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Union, List, Tuple
from dataclasses import dataclass, field, asdict
import logging

from ..error_handling import ConfigError

logger = logging.getLogger(__name__)

REQUIRED_PLACEHOLDER = "[REQUIRED]"
OPTIONAL_PLACEHOLDER = "[OPTIONAL]"

SUPPORTED_CHECKSUM_ALGORITHMS = [
    "MD5", "SHA-1", "SHA-256", "SHA-384", "SHA-512",
    "SHA3-256", "SHA3-384", "SHA3-512",
    "BLAKE2B-256", "BLAKE2B-384", "BLAKE2B-512", "BLAKE3"
]

MERGE_MODES = ("if-missing-or-empty", "overwrite")
MATCH_STRATEGIES = ("composite", "purl", "cpe", "name-version")
MERGE_STRATEGIES = ("flat", "assembly", "hierarchical", "augment")

OUTPUT_SPECS = ("cyclonedx", "spdx")
SPEC_VERSIONS = {
    "cyclonedx": ("1.4", "1.5", "1.6"),
    "spdx": ("2.3",),
}
FILE_FORMATS = {
    "cyclonedx": ("json", "xml"),
    "spdx": ("json", "tag-value", "yaml", "rdf"),
}
DEFAULT_FILE_FORMAT = "json"
DEFAULT_OUTPUT_LICENSE = "CC0-1.0"

COMPONENT_TYPES = (
    "application", "framework", "library", "container", "operating-system",
    "device", "firmware", "file", "source", "archive", "install", "other"
)


@dataclass
class AuthorConfig:
    """An author of the assembled SBOM."""
    name: str = ""
    email: str = ""
    phone: str = ""


@dataclass
class LicenseConfig:
    """License of the synthetic primary component, by id or expression."""
    id: str = ""
    expression: str = ""


@dataclass
class SupplierConfig:
    """Supplier of the synthetic primary component."""
    name: str = ""
    email: str = ""


@dataclass
class ChecksumConfig:
    """A checksum of the synthetic primary component."""
    algorithm: str = ""
    value: str = ""


@dataclass
class ApplicationConfig:
    """Identity of the synthetic primary component."""
    name: str = ""
    version: str = ""
    description: str = ""
    primary_purpose: str = ""
    purl: str = ""
    cpe: str = ""
    license: LicenseConfig = field(default_factory=LicenseConfig)
    supplier: SupplierConfig = field(default_factory=SupplierConfig)
    checksums: List[ChecksumConfig] = field(default_factory=list)
    authors: List[AuthorConfig] = field(default_factory=list)
    copyright: str = ""


@dataclass
class OutputConfig:
    """Output configuration for the assembled SBOM."""
    spec: str = ""
    spec_version: str = ""
    file_format: str = DEFAULT_FILE_FORMAT
    file: str = ""
    upload: bool = False
    upload_project_id: str = ""
    url: str = ""
    api_key: Optional[str] = None


@dataclass
class AssembleConfig:
    """Merge strategy configuration."""
    flat_merge: bool = False
    hierarchical_merge: bool = False
    assembly_merge: bool = False
    augment_merge: bool = False
    primary_file: str = ""
    merge_mode: str = "if-missing-or-empty"

    @property
    def strategy(self) -> str:
        """Name of the selected strategy; hierarchical when none is chosen."""
        if self.flat_merge:
            return "flat"
        if self.assembly_merge:
            return "assembly"
        if self.augment_merge:
            return "augment"
        return "hierarchical"


@dataclass
class MatcherSettings:
    """Component matcher knobs used by augment merges."""
    strategy: str = "composite"
    strict_version: bool = False
    fuzzy_match: bool = False
    type_match: bool = True
    min_confidence: int = 50


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "WARNING"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_file_size: int = 10  # MB
    backup_count: int = 5
    structured: bool = False


@dataclass
class AppConfig:
    """Complete application configuration."""
    app: ApplicationConfig = field(default_factory=ApplicationConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    assemble: AssembleConfig = field(default_factory=AssembleConfig)
    matcher: MatcherSettings = field(default_factory=MatcherSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a plain dictionary."""
        return asdict(self)


def is_supported_checksum(algorithm: str, value: str) -> bool:
    """Check whether an algorithm/value pair can be emitted in an SBOM."""
    return algorithm.upper() in SUPPORTED_CHECKSUM_ALGORITHMS and value != ""


def sample_config() -> Dict[str, Any]:
    """
    Build the sample configuration printed by ``sbom-assembler generate``.

    Returns:
        Configuration dictionary with placeholder values
    """
    return {
        "app": {
            "name": REQUIRED_PLACEHOLDER,
            "version": REQUIRED_PLACEHOLDER,
            "description": OPTIONAL_PLACEHOLDER,
            "primary_purpose": OPTIONAL_PLACEHOLDER,
            "purl": OPTIONAL_PLACEHOLDER,
            "cpe": OPTIONAL_PLACEHOLDER,
            "license": {"id": OPTIONAL_PLACEHOLDER},
            "supplier": {"name": OPTIONAL_PLACEHOLDER, "email": OPTIONAL_PLACEHOLDER},
            "checksum": [{"algorithm": OPTIONAL_PLACEHOLDER, "value": OPTIONAL_PLACEHOLDER}],
            "author": [{"name": OPTIONAL_PLACEHOLDER, "email": OPTIONAL_PLACEHOLDER}],
            "copyright": OPTIONAL_PLACEHOLDER,
        },
        "output": {
            "spec": "cyclonedx",
            "file_format": DEFAULT_FILE_FORMAT,
        },
        "assemble": {
            "flat_merge": False,
            "hierarchical_merge": True,
            "assembly_merge": False,
            "augment_merge": False,
            "merge_mode": "if-missing-or-empty",
        },
        "matcher": {
            "strategy": "composite",
            "strict_version": False,
            "fuzzy_match": False,
            "type_match": True,
            "min_confidence": 50,
        },
    }


class ConfigManager:
    """
    Manages application configuration from multiple sources.

    Configuration is loaded in the following order (later sources override earlier):
    1. Default configuration
    2. Configuration file
    3. Environment variables
    4. Command-line arguments (when provided)
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to configuration file
        """
        self.config_file = Path(config_file) if config_file else None
        self._config: Optional[AppConfig] = None
        self._env_var_mapping = self._create_env_var_mapping()

    def _create_env_var_mapping(self) -> Dict[str, Tuple[str, type]]:
        """Create mapping of environment variables to config paths and types."""
        return {
            # Application identity
            "SBOM_ASSEMBLER_APP_NAME": ("app.name", str),
            "SBOM_ASSEMBLER_APP_VERSION": ("app.version", str),

            # Output configuration
            "SBOM_ASSEMBLER_OUTPUT_SPEC": ("output.spec", str),
            "SBOM_ASSEMBLER_OUTPUT_SPEC_VERSION": ("output.spec_version", str),
            "SBOM_ASSEMBLER_OUTPUT_FORMAT": ("output.file_format", str),
            "DTRACK_URL": ("output.url", str),
            "DTRACK_API_KEY": ("output.api_key", str),
            "DTRACK_PROJECT_ID": ("output.upload_project_id", str),

            # Merge configuration
            "SBOM_ASSEMBLER_MERGE_MODE": ("assemble.merge_mode", str),
            "SBOM_ASSEMBLER_MATCH_STRATEGY": ("matcher.strategy", str),
            "SBOM_ASSEMBLER_MIN_CONFIDENCE": ("matcher.min_confidence", int),

            # Logging configuration
            "LOG_LEVEL": ("logging.level", str),
            "LOG_FILE": ("logging.file", str),
        }

    def load_config(self, overrides: Optional[Dict[str, Any]] = None,
                    require_identity: bool = True) -> AppConfig:
        """
        Load configuration from all sources.

        Args:
            overrides: Nested dictionary of command-line overrides
            require_identity: Whether app name and version must be set

        Returns:
            Complete application configuration

        Raises:
            ConfigError: If the file cannot be read or a value is invalid
        """
        if self._config is not None and not overrides:
            return self._config

        config_dict = self._get_default_config()

        if self.config_file:
            file_config = self._load_config_file(self.config_file)
            config_dict = self._merge_configs(config_dict, file_config)

        env_config = self._load_env_config()
        config_dict = self._merge_configs(config_dict, env_config)

        if overrides:
            config_dict = self._merge_configs(config_dict, overrides)

        config_dict = self._sanitize_config(config_dict)
        self._validate_config(config_dict, require_identity)

        self._config = self._dict_to_config(config_dict)
        return self._config

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values."""
        return {
            "app": {
                "name": "",
                "version": "",
                "description": "",
                "primary_purpose": "",
                "purl": "",
                "cpe": "",
                "license": {"id": "", "expression": ""},
                "supplier": {"name": "", "email": ""},
                "checksum": [],
                "author": [],
                "copyright": ""
            },
            "output": {
                "spec": "",
                "spec_version": "",
                "file_format": DEFAULT_FILE_FORMAT,
                "file": "",
                "upload": False,
                "upload_project_id": "",
                "url": "",
                "api_key": None
            },
            "assemble": {
                "flat_merge": False,
                "hierarchical_merge": False,
                "assembly_merge": False,
                "augment_merge": False,
                "primary_file": "",
                "merge_mode": "if-missing-or-empty"
            },
            "matcher": {
                "strategy": "composite",
                "strict_version": False,
                "fuzzy_match": False,
                "type_match": True,
                "min_confidence": 50
            },
            "logging": {
                "level": "WARNING",
                "file": None,
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "max_file_size": 10,
                "backup_count": 5,
                "structured": False
            }
        }

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to configuration file

        Returns:
            Configuration dictionary
        """
        if not config_path.is_file():
            raise ConfigError(f"config file {config_path} does not exist or is not a file")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"failed to read config file {config_path}", cause=e)

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(f"config file {config_path} must contain a mapping")

        logger.info(f"Loaded configuration from {config_path}")
        return config

    def _load_env_config(self) -> Dict[str, Any]:
        """
        Load configuration from environment variables.

        Returns:
            Configuration dictionary from environment variables
        """
        env_config: Dict[str, Any] = {}

        for env_var, (config_path, value_type) in self._env_var_mapping.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                converted = value_type(value)
            except ValueError as e:
                raise ConfigError(
                    f"environment variable {env_var} has invalid value {value!r}",
                    config_key=config_path, cause=e
                )
            self._set_nested_value(env_config, config_path, converted)

        return env_config

    def _set_nested_value(self, config: Dict[str, Any], path: str, value: Any) -> None:
        """
        Set a nested configuration value using dot notation.

        Args:
            config: Configuration dictionary
            path: Dot-separated path (e.g., 'app.name')
            value: Value to set
        """
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge two configuration dictionaries.

        Args:
            base: Base configuration
            override: Override configuration

        Returns:
            Merged configuration
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _sanitize_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace placeholders and normalise free-text values.

        ``[OPTIONAL]`` placeholders become empty strings; ``[REQUIRED]`` is
        kept so that validation reports the missing value.
        """
        def sanitize(value: Any) -> str:
            if value is None:
                return ""
            text = str(value).strip()
            if text.lower() == OPTIONAL_PLACEHOLDER.lower():
                return ""
            return text

        app = dict(config.get("app") or {})
        for key in ("name", "version", "description", "primary_purpose", "purl", "cpe", "copyright"):
            app[key] = sanitize(app.get(key))
        app["primary_purpose"] = app["primary_purpose"].lower()

        license_section = app.get("license") or {}
        app["license"] = {
            "id": sanitize(license_section.get("id")),
            "expression": sanitize(license_section.get("expression")),
        }

        supplier = app.get("supplier") or {}
        app["supplier"] = {
            "name": sanitize(supplier.get("name")),
            "email": sanitize(supplier.get("email")),
        }

        app["author"] = [
            {
                "name": sanitize(author.get("name")),
                "email": sanitize(author.get("email")),
                "phone": sanitize(author.get("phone")),
            }
            for author in (app.get("author") or [])
            if isinstance(author, dict)
        ]

        checksums = []
        for checksum in app.get("checksum") or []:
            if not isinstance(checksum, dict):
                continue
            algorithm = sanitize(checksum.get("algorithm"))
            value = sanitize(checksum.get("value"))
            if not algorithm and not value:
                continue
            if not is_supported_checksum(algorithm, value):
                raise ConfigError(
                    f"unsupported hash algorithm {algorithm!r} or empty value :: "
                    f"use one of these {SUPPORTED_CHECKSUM_ALGORITHMS}",
                    config_section="app", config_key="checksum"
                )
            checksums.append({"algorithm": algorithm.upper(), "value": value})
        app["checksum"] = checksums

        output = dict(config.get("output") or {})
        output["spec"] = sanitize(output.get("spec")).lower()
        output["spec_version"] = sanitize(output.get("spec_version"))
        file_format = sanitize(output.get("file_format")).lower() or DEFAULT_FILE_FORMAT
        output["file_format"] = "tag-value" if file_format == "tv" else file_format
        output["file"] = sanitize(output.get("file"))
        output["upload_project_id"] = sanitize(output.get("upload_project_id"))
        output["url"] = sanitize(output.get("url")).rstrip("/")

        assemble = dict(config.get("assemble") or {})
        assemble["merge_mode"] = sanitize(assemble.get("merge_mode")).lower() or "if-missing-or-empty"
        assemble["primary_file"] = sanitize(assemble.get("primary_file"))

        matcher = dict(config.get("matcher") or {})
        matcher["strategy"] = sanitize(matcher.get("strategy")).lower() or "composite"

        result = dict(config)
        result.update({"app": app, "output": output, "assemble": assemble, "matcher": matcher})
        return result

    def _validate_config(self, config: Dict[str, Any], require_identity: bool = True) -> None:
        """
        Validate configuration values.

        Args:
            config: Sanitized configuration dictionary

        Raises:
            ConfigError: If configuration is invalid
        """
        app = config["app"]
        assemble = config["assemble"]
        output = config["output"]
        matcher = config["matcher"]

        strategies = [
            name for name in ("flat_merge", "hierarchical_merge", "assembly_merge", "augment_merge")
            if assemble.get(name)
        ]
        if len(strategies) > 1:
            raise ConfigError(
                f"only one merge strategy can be set, got {', '.join(strategies)}",
                config_section="assemble"
            )

        # Augment keeps the primary document's identity.
        if require_identity and not assemble.get("augment_merge"):
            for key in ("name", "version"):
                if not app[key] or app[key].lower() == REQUIRED_PLACEHOLDER.lower():
                    raise ConfigError(f"app {key} is not set", config_section="app", config_key=key)

        if assemble.get("augment_merge") and not assemble.get("primary_file"):
            raise ConfigError("augment merge requires a primary file", config_section="assemble",
                              config_key="primary_file")

        if assemble["merge_mode"] not in MERGE_MODES:
            raise ConfigError(
                f"invalid merge mode {assemble['merge_mode']!r}, expected one of {list(MERGE_MODES)}",
                config_section="assemble", config_key="merge_mode"
            )

        if matcher["strategy"] not in MATCH_STRATEGIES:
            raise ConfigError(
                f"invalid match strategy {matcher['strategy']!r}, expected one of {list(MATCH_STRATEGIES)}",
                config_section="matcher", config_key="strategy"
            )

        try:
            min_confidence = int(matcher.get("min_confidence", 50))
        except (TypeError, ValueError) as e:
            raise ConfigError("min_confidence must be an integer", config_section="matcher",
                              config_key="min_confidence", cause=e)
        if not 0 <= min_confidence <= 100:
            raise ConfigError("min_confidence must be between 0 and 100", config_section="matcher",
                              config_key="min_confidence")

        spec = output["spec"]
        if spec:
            if spec not in OUTPUT_SPECS:
                raise ConfigError(f"invalid output spec {spec!r}, expected one of {list(OUTPUT_SPECS)}",
                                  config_section="output", config_key="spec")
            validate_output_options(spec, output["spec_version"], output["file_format"])

        if output.get("upload"):
            missing = [key for key in ("url", "api_key", "upload_project_id") if not output.get(key)]
            if missing:
                raise ConfigError(f"upload requires {', '.join(missing)}", config_section="output")

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        log_level = str(config.get("logging", {}).get("level", "WARNING")).upper()
        if log_level not in valid_levels:
            raise ConfigError(f"invalid log level {log_level}, valid levels: {sorted(valid_levels)}",
                              config_section="logging", config_key="level")

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> AppConfig:
        """
        Convert configuration dictionary to AppConfig object.

        Args:
            config_dict: Configuration dictionary

        Returns:
            AppConfig object
        """
        app = config_dict["app"]
        matcher = dict(config_dict["matcher"])
        matcher["min_confidence"] = int(matcher.get("min_confidence", 50))
        logging_section = dict(config_dict.get("logging", {}))
        logging_section["level"] = str(logging_section.get("level", "WARNING")).upper()

        try:
            return AppConfig(
                app=ApplicationConfig(
                    name=app["name"],
                    version=app["version"],
                    description=app["description"],
                    primary_purpose=app["primary_purpose"],
                    purl=app["purl"],
                    cpe=app["cpe"],
                    license=LicenseConfig(**app["license"]),
                    supplier=SupplierConfig(**app["supplier"]),
                    checksums=[ChecksumConfig(**c) for c in app["checksum"]],
                    authors=[AuthorConfig(**a) for a in app["author"]],
                    copyright=app["copyright"]
                ),
                output=OutputConfig(**config_dict["output"]),
                assemble=AssembleConfig(**config_dict["assemble"]),
                matcher=MatcherSettings(**matcher),
                logging=LoggingConfig(**logging_section)
            )
        except TypeError as e:
            raise ConfigError("configuration contains unknown keys", cause=e)

    def get_config(self) -> AppConfig:
        """
        Get the current configuration.

        Returns:
            Application configuration
        """
        if self._config is None:
            return self.load_config()
        return self._config

    def reload_config(self, overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
        """
        Reload configuration from all sources.

        Returns:
            Reloaded application configuration
        """
        self._config = None
        return self.load_config(overrides)


def validate_output_options(spec: str, spec_version: str, file_format: str) -> None:
    """
    Check that an output spec version and file format suit the output spec.

    Raises:
        ConfigError: If either value is not recognised for the spec
    """
    if spec_version and spec_version not in SPEC_VERSIONS[spec]:
        raise ConfigError(
            f"invalid {spec} spec version {spec_version!r}, expected one of {list(SPEC_VERSIONS[spec])}",
            config_section="output", config_key="spec_version"
        )
    if file_format not in FILE_FORMATS[spec]:
        raise ConfigError(
            f"invalid {spec} file format {file_format!r}, expected one of {list(FILE_FORMATS[spec])}",
            config_section="output", config_key="file_format"
        )


# Global configuration manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_file: Optional[Union[str, Path]] = None) -> ConfigManager:
    """
    Get the global configuration manager instance.

    Args:
        config_file: Path to configuration file (only used on first call)

    Returns:
        ConfigManager instance
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(config_file)
    return _config_manager


def get_config() -> AppConfig:
    """
    Get the current application configuration.

    Returns:
        Application configuration
    """
    return get_config_manager().get_config()
