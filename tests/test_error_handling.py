"""Tests for the exception hierarchy and retry decorator."""

from unittest.mock import MagicMock, patch

import pytest

from sbom_assembler.error_handling import (
    ConfigError, DanglingReferenceWarning, LoadError, MergeError, RetryConfig, SBOMAssemblerError,
    UploadError, retry, retry_with_config
)


class TestExceptions:
    """Context, codes and rendering."""

    def test_context_in_message(self):
        error = ConfigError("invalid merge mode", config_section="assemble", config_key="merge_mode")
        assert error.error_code == "CONFIG"
        assert str(error) == "invalid merge mode | Context: config_section=assemble, config_key=merge_mode"

    def test_cause_in_message(self):
        error = LoadError("unable to read a.json", file_path="a.json", cause=OSError("gone"))
        assert str(error).endswith("Caused by: gone")
        assert error.file_path == "a.json"

    def test_to_dict(self):
        error = MergeError("failed to process secondary SBOM 2", strategy="augment", document_index=2)
        assert error.to_dict() == {
            "error_type": "MergeError",
            "message": "failed to process secondary SBOM 2",
            "error_code": "MERGE",
            "context": {"strategy": "augment", "document_index": 2},
            "cause": None
        }

    def test_hierarchy(self):
        for error in (UploadError("rejected", status_code=400), DanglingReferenceWarning("x", reference="r")):
            assert isinstance(error, SBOMAssemblerError)

    def test_dangling_reference_edge(self):
        warning = DanglingReferenceWarning("unresolved", reference="libz", edge=["app", "libz"])
        assert warning.context == {"reference": "libz", "edge": ["app", "libz"]}


class TestRetry:
    """Backoff and retryable exception filtering."""

    def test_returns_after_transient_failure(self):
        func = MagicMock(side_effect=[ConnectionError("reset"), "ok"], __name__="upload")
        wrapped = retry(max_attempts=3, base_delay=0, jitter=False)(func)
        assert wrapped() == "ok"
        assert func.call_count == 2

    def test_raises_last_error(self):
        func = MagicMock(side_effect=ConnectionError("reset"), __name__="upload")
        with pytest.raises(ConnectionError):
            retry(max_attempts=2, base_delay=0, jitter=False)(func)()
        assert func.call_count == 2

    def test_other_exceptions_not_retried(self):
        func = MagicMock(side_effect=ValueError("bad payload"), __name__="upload")
        wrapped = retry(max_attempts=3, base_delay=0, exceptions=[ConnectionError])(func)
        with pytest.raises(ValueError):
            wrapped()
        assert func.call_count == 1

    def test_backoff_delays(self):
        func = MagicMock(side_effect=[ConnectionError(), ConnectionError(), "ok"], __name__="upload")
        config = RetryConfig(max_attempts=3, base_delay=1.0, max_delay=1.5, jitter=False)
        with patch("sbom_assembler.error_handling.retry_decorator.time.sleep") as sleep:
            assert retry_with_config(config)(func)() == "ok"
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 1.5]
