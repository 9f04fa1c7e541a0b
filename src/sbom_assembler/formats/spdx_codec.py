"""
SPDX codecs on spdx-tools.

One codec class covers every SPDX file format; each instance pairs the
spdx-tools parser and writer modules for its format. The writers only
write to files, so serialization goes through a temporary file.
"""

import logging
import tempfile
from pathlib import Path
from types import ModuleType
from typing import Optional

from spdx_tools.spdx.model import Document
from spdx_tools.spdx.parser.json import json_parser
from spdx_tools.spdx.parser.rdf import rdf_parser
from spdx_tools.spdx.parser.tagvalue import tagvalue_parser
from spdx_tools.spdx.parser.yaml import yaml_parser
from spdx_tools.spdx.writer.json import json_writer
from spdx_tools.spdx.writer.rdf import rdf_writer
from spdx_tools.spdx.writer.tagvalue import tagvalue_writer
from spdx_tools.spdx.writer.yaml import yaml_writer

from .base import BaseCodec, SPEC_SPDX, FORMAT_JSON, FORMAT_YAML, FORMAT_TAG_VALUE, FORMAT_RDF

logger = logging.getLogger(__name__)


class SpdxCodec(BaseCodec):
    """
    Reads and writes SPDX 2.3 documents in one file format.

    Args:
        file_format: Format name reported by :attr:`format_name`
        parser: spdx-tools parser module with ``parse_from_file``
        writer: spdx-tools writer module with ``write_document_to_file``
        suffix: File name suffix the writer is given
    """

    def __init__(self, file_format: str, parser: ModuleType, writer: ModuleType, suffix: str):
        self._file_format = file_format
        self._parser = parser
        self._writer = writer
        self._suffix = suffix

    @property
    def spec(self) -> str:
        return SPEC_SPDX

    @property
    def format_name(self) -> str:
        return self._file_format

    def read(self, path: str) -> Document:
        return self._parser.parse_from_file(path, encoding="utf-8")

    def write(self, document: Document, spec_version: Optional[str] = None) -> str:
        if spec_version:
            document.creation_info.spdx_version = f"SPDX-{spec_version}"
        with tempfile.TemporaryDirectory(prefix="sbom-assembler-") as tmp:
            path = Path(tmp) / f"document{self._suffix}"
            self._writer.write_document_to_file(document, str(path), validate=False)
            return path.read_text(encoding="utf-8")


class SpdxJsonCodec(SpdxCodec):
    """SPDX JSON."""

    def __init__(self):
        super().__init__(FORMAT_JSON, json_parser, json_writer, ".spdx.json")


class SpdxYamlCodec(SpdxCodec):
    """SPDX YAML, using the JSON field names."""

    def __init__(self):
        super().__init__(FORMAT_YAML, yaml_parser, yaml_writer, ".spdx.yaml")


class SpdxTagValueCodec(SpdxCodec):
    """SPDX tag-value."""

    def __init__(self):
        super().__init__(FORMAT_TAG_VALUE, tagvalue_parser, tagvalue_writer, ".spdx")


class SpdxRdfCodec(SpdxCodec):
    """SPDX RDF/XML."""

    def __init__(self):
        super().__init__(FORMAT_RDF, rdf_parser, rdf_writer, ".rdf.xml")
