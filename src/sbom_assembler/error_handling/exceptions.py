"""
Custom exceptions for the SBOM assembler.
"""

from typing import Optional, Dict, Any, List


class SBOMAssemblerError(Exception):
    """
    Base exception for all SBOM assembler errors.

    Carries a short error code and a context mapping (file, config key,
    strategy, ...) that is rendered after the message.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """
        Initialize SBOM assembler error.

        Args:
            message: Error message
            error_code: Short category such as ``LOAD`` or ``MERGE``
            context: Details rendered after the message
            cause: Underlying exception, if any
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None
        }

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [self.message]

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"Context: {context_str}")

        if self.cause:
            parts.append(f"Caused by: {self.cause}")

        return " | ".join(parts)


class LoadError(SBOMAssemblerError):
    """
    Exception raised when an input SBOM cannot be opened or decoded.

    Loading failures are always fatal and abort the merge.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        file_format: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize load error.

        Args:
            message: Error message
            file_path: Path of the document that failed to load
            file_format: Detected file format, if known
            **kwargs: Additional arguments for base class
        """
        context = kwargs.get('context', {})
        if file_path:
            context['file_path'] = file_path
        if file_format:
            context['file_format'] = file_format

        kwargs['context'] = context
        kwargs.setdefault('error_code', 'LOAD')
        super().__init__(message, **kwargs)

        self.file_path = file_path
        self.file_format = file_format


class SpecMismatchError(SBOMAssemblerError):
    """Exception raised when inputs are not all of the same SBOM specification."""

    def __init__(self, message: str, specs: Optional[Dict[str, str]] = None, **kwargs):
        context = kwargs.get('context', {})
        if specs:
            context['specs'] = specs

        kwargs['context'] = context
        kwargs.setdefault('error_code', 'SPEC_MISMATCH')
        super().__init__(message, **kwargs)

        self.specs = specs or {}


class ConfigError(SBOMAssemblerError):
    """
    Exception for configuration errors.

    This exception is raised when configuration values are missing,
    malformed, or combined in an invalid way (e.g. two strategies set).
    """

    def __init__(
        self,
        message: str,
        config_section: Optional[str] = None,
        config_key: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize configuration error.

        Args:
            message: Error message
            config_section: Configuration section with error
            config_key: Specific configuration key with error
            **kwargs: Additional arguments for base class
        """
        context = kwargs.get('context', {})
        if config_section:
            context['config_section'] = config_section
        if config_key:
            context['config_key'] = config_key

        kwargs['context'] = context
        kwargs.setdefault('error_code', 'CONFIG')
        super().__init__(message, **kwargs)

        self.config_section = config_section
        self.config_key = config_key


class UnsupportedFormatError(SBOMAssemblerError):
    """Exception raised when a detected or requested format has no codec."""

    def __init__(
        self,
        message: str,
        spec: Optional[str] = None,
        file_format: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.get('context', {})
        if spec:
            context['spec'] = spec
        if file_format:
            context['file_format'] = file_format

        kwargs['context'] = context
        kwargs.setdefault('error_code', 'UNSUPPORTED_FORMAT')
        super().__init__(message, **kwargs)

        self.spec = spec
        self.file_format = file_format


class MatcherConfigError(SBOMAssemblerError):
    """Exception raised when a component matcher cannot be configured."""

    def __init__(self, message: str, strategy: Optional[str] = None, **kwargs):
        context = kwargs.get('context', {})
        if strategy is not None:
            context['strategy'] = strategy

        kwargs['context'] = context
        kwargs.setdefault('error_code', 'MATCHER_CONFIG')
        super().__init__(message, **kwargs)

        self.strategy = strategy


class MergeError(SBOMAssemblerError):
    """
    Exception for failures inside a merge driver.

    Wraps the underlying cause with the position of the document being
    processed, e.g. "failed to process secondary SBOM 2: ...".
    """

    def __init__(
        self,
        message: str,
        strategy: Optional[str] = None,
        document_index: Optional[int] = None,
        **kwargs
    ):
        """
        Initialize merge error.

        Args:
            message: Error message
            strategy: Merge strategy that was running
            document_index: 1-based index of the offending input document
            **kwargs: Additional arguments for base class
        """
        context = kwargs.get('context', {})
        if strategy:
            context['strategy'] = strategy
        if document_index is not None:
            context['document_index'] = document_index

        kwargs['context'] = context
        kwargs.setdefault('error_code', 'MERGE')
        super().__init__(message, **kwargs)

        self.strategy = strategy
        self.document_index = document_index


class WriteError(SBOMAssemblerError):
    """Exception raised when the assembled SBOM cannot be serialized or written."""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        file_format: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.get('context', {})
        if file_path:
            context['file_path'] = file_path
        if file_format:
            context['file_format'] = file_format

        kwargs['context'] = context
        kwargs.setdefault('error_code', 'WRITE')
        super().__init__(message, **kwargs)

        self.file_path = file_path
        self.file_format = file_format


class UploadError(SBOMAssemblerError):
    """
    Exception for failures while publishing the assembled SBOM.

    This exception is raised when the Dependency-Track server cannot be
    reached or rejects the upload.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        """
        Initialize upload error.

        Args:
            message: Error message
            url: URL that caused the error
            status_code: HTTP status code if applicable
            **kwargs: Additional arguments for base class
        """
        context = kwargs.get('context', {})
        if url:
            context['url'] = url
        if status_code:
            context['status_code'] = status_code

        kwargs['context'] = context
        kwargs.setdefault('error_code', 'UPLOAD')
        super().__init__(message, **kwargs)

        self.url = url
        self.status_code = status_code


class DanglingReferenceWarning(SBOMAssemblerError):
    """
    Record of a dependency or relationship edge that could not be resolved.

    Never raised: merge drivers collect instances and count them so the
    edge can be dropped without aborting the merge.
    """

    def __init__(
        self,
        message: str,
        reference: Optional[str] = None,
        edge: Optional[List[str]] = None,
        **kwargs
    ):
        context = kwargs.get('context', {})
        if reference:
            context['reference'] = reference
        if edge:
            context['edge'] = edge

        kwargs['context'] = context
        kwargs.setdefault('error_code', 'DANGLING_REFERENCE')
        super().__init__(message, **kwargs)

        self.reference = reference
        self.edge = edge or []
