"""
CycloneDX JSON and XML codecs on cyclonedx-python-lib.
"""

import json
import logging
from typing import Optional

from cyclonedx.model.bom import Bom
from cyclonedx.output import make_outputter
from cyclonedx.schema import OutputFormat, SchemaVersion

from ..documents.cyclonedx import DEFAULT_SPEC_VERSION
from .base import BaseCodec, SPEC_CYCLONEDX, FORMAT_JSON, FORMAT_XML

logger = logging.getLogger(__name__)


def schema_version(spec_version: Optional[str]) -> SchemaVersion:
    return SchemaVersion.from_version(spec_version or DEFAULT_SPEC_VERSION)


class CycloneDXJsonCodec(BaseCodec):
    """Reads and writes CycloneDX JSON documents."""

    @property
    def spec(self) -> str:
        return SPEC_CYCLONEDX

    @property
    def format_name(self) -> str:
        return FORMAT_JSON

    def read(self, path: str) -> Bom:
        with open(path, encoding="utf-8") as input_file:
            data = json.load(input_file)
        if not isinstance(data, dict):
            raise ValueError("CycloneDX JSON document must be an object")
        return Bom.from_json(data=data)

    def write(self, document: Bom, spec_version: Optional[str] = None) -> str:
        outputter = make_outputter(document, OutputFormat.JSON, schema_version(spec_version))
        return outputter.output_as_string(indent=2)


class CycloneDXXmlCodec(BaseCodec):
    """Reads and writes CycloneDX XML documents."""

    @property
    def spec(self) -> str:
        return SPEC_CYCLONEDX

    @property
    def format_name(self) -> str:
        return FORMAT_XML

    def read(self, path: str) -> Bom:
        with open(path, encoding="utf-8") as input_file:
            return Bom.from_xml(input_file)

    def write(self, document: Bom, spec_version: Optional[str] = None) -> str:
        outputter = make_outputter(document, OutputFormat.XML, schema_version(spec_version))
        return outputter.output_as_string(indent=2)
