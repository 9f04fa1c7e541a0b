"""
Input SBOM detection.

The spec and file format of an input are inferred from its content, never
from its file name.
"""

import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Tuple, Union

import yaml

from ..error_handling import LoadError, UnsupportedFormatError
from .base import (
    SPEC_CYCLONEDX, SPEC_SPDX, FORMAT_JSON, FORMAT_XML, FORMAT_YAML, FORMAT_TAG_VALUE, FORMAT_RDF
)

logger = logging.getLogger(__name__)

CYCLONEDX_XML_NAMESPACE = "http://cyclonedx.org/schema/bom/"
RDF_ROOT_TAG = "{http://www.w3.org/1999/02/22-rdf-syntax-ns#}RDF"
SPDX_RDF_TERMS = "spdx.org/rdf/terms"


def _is_spdx_mapping(data) -> bool:
    return isinstance(data, dict) and str(data.get("SPDXID", "")).startswith("SPDX")


def _is_cyclonedx_mapping(data) -> bool:
    return isinstance(data, dict) and data.get("bomFormat") == "CycloneDX"


def _xml_namespace(tag: str) -> str:
    if tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return ""


def detect_content(content: str) -> Tuple[str, str]:
    """
    Detect spec and file format of document text.

    Checks, in order: SPDX JSON, CycloneDX JSON, CycloneDX XML, SPDX RDF/XML,
    SPDX tag-value, SPDX YAML.

    Args:
        content: Document text

    Returns:
        Tuple of (spec, file format)

    Raises:
        UnsupportedFormatError: If no check matches
    """
    text = content.lstrip("\ufeff")

    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if _is_spdx_mapping(data):
        return SPEC_SPDX, FORMAT_JSON
    if _is_cyclonedx_mapping(data):
        return SPEC_CYCLONEDX, FORMAT_JSON

    if data is None and text.lstrip().startswith("<"):
        try:
            root = ET.fromstring(text)
        except ET.ParseError:
            root = None
        if root is not None and _xml_namespace(root.tag).startswith(CYCLONEDX_XML_NAMESPACE):
            return SPEC_CYCLONEDX, FORMAT_XML
        if root is not None and root.tag == RDF_ROOT_TAG and SPDX_RDF_TERMS in text:
            return SPEC_SPDX, FORMAT_RDF

    first_line = next(
        (line.strip() for line in text.splitlines() if line.strip() and not line.lstrip().startswith("#")),
        ""
    )
    if first_line.startswith("SPDXVersion:"):
        return SPEC_SPDX, FORMAT_TAG_VALUE

    if data is None:
        try:
            yaml_data = yaml.safe_load(text)
        except yaml.YAMLError:
            yaml_data = None
        if _is_spdx_mapping(yaml_data):
            return SPEC_SPDX, FORMAT_YAML

    raise UnsupportedFormatError("unrecognized SBOM format")


def read_text(path: Union[str, Path]) -> str:
    """
    Read an input document as text.

    Raises:
        LoadError: If the file cannot be read or decoded
    """
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"unable to read {path}", file_path=str(path), cause=e)


def detect(path: Union[str, Path]) -> Tuple[str, str]:
    """
    Detect spec and file format of the document at ``path``.

    Args:
        path: Input file path

    Returns:
        Tuple of (spec, file format)

    Raises:
        LoadError: If the file cannot be read
        UnsupportedFormatError: If the content is not a recognized SBOM
    """
    content = read_text(path)
    try:
        spec, file_format = detect_content(content)
    except UnsupportedFormatError as e:
        raise UnsupportedFormatError(f"{path}: {e.message}")

    logger.debug(f"Detected {spec} {file_format} in {path}")
    return spec, file_format
