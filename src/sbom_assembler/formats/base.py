"""
Base class for SBOM codecs.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

SPEC_CYCLONEDX = "cyclonedx"
SPEC_SPDX = "spdx"

FORMAT_JSON = "json"
FORMAT_XML = "xml"
FORMAT_YAML = "yaml"
FORMAT_TAG_VALUE = "tag-value"
FORMAT_RDF = "rdf"


class BaseCodec(ABC):
    """Abstract base class for a (spec, file format) reader and writer."""

    @abstractmethod
    def read(self, path: str) -> Any:
        """
        Parse the document at ``path`` into a typed document.

        Args:
            path: Input file path

        Returns:
            Bom or Document
        """
        pass

    @abstractmethod
    def write(self, document: Any, spec_version: Optional[str] = None) -> str:
        """
        Encode a typed document.

        Args:
            document: Bom or Document
            spec_version: Output spec version, None for the codec default

        Returns:
            Serialized document
        """
        pass

    @property
    @abstractmethod
    def spec(self) -> str:
        """SBOM specification handled, ``cyclonedx`` or ``spdx``."""
        pass

    @property
    @abstractmethod
    def format_name(self) -> str:
        """File format handled, e.g. ``json``."""
        pass
