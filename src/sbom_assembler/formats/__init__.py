"""
Readers, writers and format detection for CycloneDX and SPDX documents.
"""

from .base import (
    BaseCodec, SPEC_CYCLONEDX, SPEC_SPDX, FORMAT_JSON, FORMAT_XML, FORMAT_YAML,
    FORMAT_TAG_VALUE, FORMAT_RDF
)
from .detect import detect, detect_content
from .cyclonedx_codec import CycloneDXJsonCodec, CycloneDXXmlCodec
from .spdx_codec import SpdxCodec, SpdxJsonCodec, SpdxYamlCodec, SpdxTagValueCodec, SpdxRdfCodec
from .document_io import (
    LoadedDocument, get_codec, load_document, serialize_document, write_document
)

__all__ = [
    "BaseCodec",
    "SPEC_CYCLONEDX",
    "SPEC_SPDX",
    "FORMAT_JSON",
    "FORMAT_XML",
    "FORMAT_YAML",
    "FORMAT_TAG_VALUE",
    "FORMAT_RDF",
    "detect",
    "detect_content",
    "CycloneDXJsonCodec",
    "CycloneDXXmlCodec",
    "SpdxCodec",
    "SpdxJsonCodec",
    "SpdxYamlCodec",
    "SpdxTagValueCodec",
    "SpdxRdfCodec",
    "LoadedDocument",
    "get_codec",
    "load_document",
    "serialize_document",
    "write_document"
]
