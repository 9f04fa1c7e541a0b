"""
Loading and writing SBOM documents through the codec registry.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from ..error_handling import LoadError, WriteError, UnsupportedFormatError, SBOMAssemblerError
from .base import (
    BaseCodec, SPEC_CYCLONEDX, SPEC_SPDX, FORMAT_JSON, FORMAT_XML, FORMAT_YAML,
    FORMAT_TAG_VALUE, FORMAT_RDF
)
from .cyclonedx_codec import CycloneDXJsonCodec, CycloneDXXmlCodec
from .spdx_codec import SpdxJsonCodec, SpdxYamlCodec, SpdxTagValueCodec, SpdxRdfCodec
from .detect import detect_content, read_text

logger = logging.getLogger(__name__)

_CODECS: Dict[Tuple[str, str], BaseCodec] = {
    (SPEC_CYCLONEDX, FORMAT_JSON): CycloneDXJsonCodec(),
    (SPEC_CYCLONEDX, FORMAT_XML): CycloneDXXmlCodec(),
    (SPEC_SPDX, FORMAT_JSON): SpdxJsonCodec(),
    (SPEC_SPDX, FORMAT_YAML): SpdxYamlCodec(),
    (SPEC_SPDX, FORMAT_TAG_VALUE): SpdxTagValueCodec(),
    (SPEC_SPDX, FORMAT_RDF): SpdxRdfCodec(),
}


@dataclass
class LoadedDocument:
    """An input document together with where and how it was read."""

    path: str
    spec: str
    file_format: str
    document: Any


def get_codec(spec: str, file_format: str) -> BaseCodec:
    """
    Look up the codec for a spec and file format.

    Raises:
        UnsupportedFormatError: If no codec is registered
    """
    codec = _CODECS.get((spec, file_format))
    if codec is None:
        raise UnsupportedFormatError(f"unsupported {spec} format {file_format!r}",
                                     spec=spec, file_format=file_format)
    return codec


def load_document(path: Union[str, Path]) -> LoadedDocument:
    """
    Detect and decode an input document.

    Args:
        path: Input file path

    Returns:
        The loaded document

    Raises:
        LoadError: If the file cannot be read or decoded
        UnsupportedFormatError: If the content is not a recognized SBOM
    """
    path = str(path)
    content = read_text(path)
    try:
        spec, file_format = detect_content(content)
    except UnsupportedFormatError as e:
        raise UnsupportedFormatError(f"{path}: {e.message}")

    codec = get_codec(spec, file_format)
    try:
        document = codec.read(path)
    except SBOMAssemblerError:
        raise
    except Exception as e:
        raise LoadError(f"unable to decode {path}", file_path=path, file_format=file_format, cause=e)

    logger.info(f"Loaded {spec} {codec.format_name} document from {path}")
    return LoadedDocument(path=path, spec=spec, file_format=file_format, document=document)


def serialize_document(document: Any, spec: str, file_format: str,
                       spec_version: Optional[str] = None) -> str:
    """
    Serialize a document with the codec for ``spec``/``file_format``.

    Raises:
        WriteError: If serialization fails
    """
    codec = get_codec(spec, file_format)
    try:
        return codec.write(document, spec_version)
    except Exception as e:
        raise WriteError(f"unable to serialize {spec} {file_format} document",
                         file_format=file_format, cause=e)


def write_document(document: Any, spec: str, file_format: str,
                   spec_version: Optional[str] = None, output_file: str = "") -> str:
    """
    Serialize a document and write it to ``output_file`` or standard output.

    Args:
        document: Bom or Document
        spec: Output spec
        file_format: Output file format
        spec_version: Output spec version
        output_file: Destination path, empty for stdout

    Returns:
        The serialized document

    Raises:
        WriteError: If serialization or writing fails
    """
    content = serialize_document(document, spec, file_format, spec_version)

    if not output_file:
        sys.stdout.write(content)
        if not content.endswith("\n"):
            sys.stdout.write("\n")
        sys.stdout.flush()
        return content

    try:
        path = Path(output_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise WriteError(f"unable to write {output_file}", file_path=output_file,
                         file_format=file_format, cause=e)

    logger.info(f"Wrote {spec} {file_format} document to {output_file}")
    return content
