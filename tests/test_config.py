"""Tests for configuration loading and validation."""

import pytest
import yaml

from sbom_assembler.config import (
    ConfigManager, get_config, get_config_manager, sample_config, validate_output_options
)
from sbom_assembler.config import config_manager as config_module
from sbom_assembler.error_handling import ConfigError

ENV_VARS = (
    "SBOM_ASSEMBLER_APP_NAME", "SBOM_ASSEMBLER_APP_VERSION", "SBOM_ASSEMBLER_OUTPUT_SPEC",
    "SBOM_ASSEMBLER_OUTPUT_SPEC_VERSION", "SBOM_ASSEMBLER_OUTPUT_FORMAT", "DTRACK_URL",
    "DTRACK_API_KEY", "DTRACK_PROJECT_ID", "SBOM_ASSEMBLER_MERGE_MODE",
    "SBOM_ASSEMBLER_MATCH_STRATEGY", "SBOM_ASSEMBLER_MIN_CONFIDENCE", "LOG_LEVEL", "LOG_FILE"
)

IDENTITY = {"app": {"name": "app", "version": "1.0.0"}}


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path, data):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestLoading:
    """Defaults, file, environment and override layering."""

    def test_defaults(self):
        config = ConfigManager().load_config(IDENTITY)
        assert config.assemble.strategy == "hierarchical"
        assert config.assemble.merge_mode == "if-missing-or-empty"
        assert config.output.file_format == "json"
        assert config.matcher.strategy == "composite"
        assert config.matcher.type_match is True
        assert config.matcher.min_confidence == 50
        assert config.logging.level == "WARNING"

    def test_file_values(self, tmp_path):
        path = write_config(tmp_path, {
            "app": {
                "name": "fleet", "version": "2.1", "primary_purpose": "Firmware",
                "license": {"id": "Apache-2.0"},
                "checksum": [{"algorithm": "sha-256", "value": "abc"}],
                "author": [{"name": "Jane", "email": "jane@example.com"}],
            },
            "output": {"spec": "SPDX", "file_format": "tv", "url": "https://dtrack.example/"},
            "assemble": {"flat_merge": True},
        })
        config = ConfigManager(path).load_config()

        assert (config.app.name, config.app.version) == ("fleet", "2.1")
        assert config.app.primary_purpose == "firmware"
        assert config.app.license.id == "Apache-2.0"
        assert [(c.algorithm, c.value) for c in config.app.checksums] == [("SHA-256", "abc")]
        assert config.app.authors[0].email == "jane@example.com"
        assert config.output.spec == "spdx"
        assert config.output.file_format == "tag-value"
        assert config.output.url == "https://dtrack.example"
        assert config.assemble.strategy == "flat"

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, {"app": {"name": "from-file", "version": "1"}})
        monkeypatch.setenv("SBOM_ASSEMBLER_APP_NAME", "from-env")
        monkeypatch.setenv("SBOM_ASSEMBLER_MIN_CONFIDENCE", "75")
        monkeypatch.setenv("DTRACK_API_KEY", "secret")

        config = ConfigManager(path).load_config()
        assert config.app.name == "from-env"
        assert config.app.version == "1"
        assert config.matcher.min_confidence == 75
        assert config.output.api_key == "secret"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("SBOM_ASSEMBLER_APP_NAME", "from-env")
        config = ConfigManager().load_config({"app": {"name": "from-cli", "version": "3"}})
        assert config.app.name == "from-cli"

    def test_invalid_environment_value(self, monkeypatch):
        monkeypatch.setenv("SBOM_ASSEMBLER_MIN_CONFIDENCE", "high")
        with pytest.raises(ConfigError, match="SBOM_ASSEMBLER_MIN_CONFIDENCE"):
            ConfigManager().load_config(IDENTITY)

    def test_optional_placeholders_cleared(self, tmp_path):
        """A generated sample with the identity filled in loads cleanly."""
        data = sample_config()
        data["app"]["name"] = "app"
        data["app"]["version"] = "1.0"
        config = ConfigManager(write_config(tmp_path, data)).load_config()

        assert config.app.description == ""
        assert config.app.license.id == ""
        assert config.app.supplier.name == ""
        assert config.app.checksums == []
        assert [a.name for a in config.app.authors] == [""]
        assert config.assemble.strategy == "hierarchical"

    def test_cached_until_reload(self, tmp_path):
        path = write_config(tmp_path, {"app": {"name": "first", "version": "1"}})
        manager = ConfigManager(path)
        first = manager.load_config()
        assert manager.get_config() is first

        path.write_text(yaml.safe_dump({"app": {"name": "second", "version": "1"}}))
        assert manager.reload_config().app.name == "second"


class TestValidation:
    """Rejected configurations."""

    @pytest.mark.parametrize("overrides,message", [
        ({}, "app name is not set"),
        ({"app": {"name": "[REQUIRED]", "version": "1"}}, "app name is not set"),
        ({"app": {"name": "app"}}, "app version is not set"),
        ({**IDENTITY, "assemble": {"flat_merge": True, "assembly_merge": True}}, "only one merge strategy"),
        ({**IDENTITY, "assemble": {"merge_mode": "replace"}}, "invalid merge mode"),
        ({**IDENTITY, "matcher": {"strategy": "checksum"}}, "invalid match strategy"),
        ({**IDENTITY, "matcher": {"min_confidence": 150}}, "between 0 and 100"),
        ({**IDENTITY, "output": {"spec": "swid"}}, "invalid output spec"),
        ({**IDENTITY, "output": {"spec": "cyclonedx", "file_format": "yaml"}}, "invalid cyclonedx file format"),
        ({**IDENTITY, "output": {"spec": "spdx", "spec_version": "2.2"}}, "invalid spdx spec version"),
        ({**IDENTITY, "output": {"upload": True, "url": "https://x"}}, "upload requires api_key, upload_project_id"),
        ({**IDENTITY, "logging": {"level": "LOUD"}}, "invalid log level"),
        ({"app": {"name": "a", "version": "1", "checksum": [{"algorithm": "CRC32", "value": "1"}]}},
         "unsupported hash algorithm"),
    ])
    def test_invalid(self, overrides, message):
        with pytest.raises(ConfigError, match=message):
            ConfigManager().load_config(overrides)

    def test_augment_needs_primary_but_not_identity(self):
        with pytest.raises(ConfigError, match="requires a primary file"):
            ConfigManager().load_config({"assemble": {"augment_merge": True}})

        config = ConfigManager().load_config({"assemble": {"augment_merge": True, "primary_file": "p.json"}})
        assert config.assemble.strategy == "augment"

    def test_identity_optional_for_display(self):
        config = ConfigManager().load_config(require_identity=False)
        assert config.app.name == ""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="does not exist"):
            ConfigManager(tmp_path / "absent.yaml").load_config(IDENTITY)

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            ConfigManager(path).load_config(IDENTITY)

    def test_unknown_keys(self):
        with pytest.raises(ConfigError, match="unknown keys"):
            ConfigManager().load_config({**IDENTITY, "output": {"colour": "blue"}})


class TestOutputOptions:
    """Spec version and file format combinations."""

    @pytest.mark.parametrize("spec,version,file_format", [
        ("cyclonedx", "1.4", "xml"), ("cyclonedx", "1.6", "json"), ("cyclonedx", "", "json"),
        ("spdx", "2.3", "tag-value"), ("spdx", "", "rdf"), ("spdx", "2.3", "yaml"),
    ])
    def test_accepted(self, spec, version, file_format):
        validate_output_options(spec, version, file_format)

    @pytest.mark.parametrize("spec,version,file_format", [
        ("cyclonedx", "1.3", "json"), ("cyclonedx", "1.5", "rdf"), ("spdx", "2.3", "xml"),
    ])
    def test_rejected(self, spec, version, file_format):
        with pytest.raises(ConfigError):
            validate_output_options(spec, version, file_format)


class TestGlobalManager:
    """The process-wide configuration used when none is passed in."""

    def test_shared_instance(self, monkeypatch):
        monkeypatch.setattr(config_module, "_config_manager", None)
        monkeypatch.setenv("SBOM_ASSEMBLER_APP_NAME", "env-app")
        monkeypatch.setenv("SBOM_ASSEMBLER_APP_VERSION", "4.2")

        assert get_config_manager() is get_config_manager()
        config = get_config()
        assert (config.app.name, config.app.version) == ("env-app", "4.2")
        assert get_config() is config

    def test_orchestrator_falls_back_to_global(self, monkeypatch):
        from sbom_assembler.orchestrator import OrchestrationManager

        monkeypatch.setattr(config_module, "_config_manager", None)
        monkeypatch.setenv("SBOM_ASSEMBLER_APP_NAME", "env-app")
        monkeypatch.setenv("SBOM_ASSEMBLER_APP_VERSION", "4.2")
        assert OrchestrationManager().config.app.name == "env-app"
