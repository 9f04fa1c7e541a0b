"""
Traversal helpers over the typed CycloneDX and SPDX documents.

Documents are the library models of cyclonedx-python-lib and spdx-tools;
this package only adds the walks and lookups the assemblers share.
"""

from . import cyclonedx, spdx
from .cyclonedx import ref_of, iter_nested, iter_components, all_refs
from .spdx import DOCUMENT_ID, split_document_ref, element_ids, described_ids, find_package

__all__ = [
    "cyclonedx",
    "spdx",
    "ref_of",
    "iter_nested",
    "iter_components",
    "all_refs",
    "DOCUMENT_ID",
    "split_document_ref",
    "element_ids",
    "described_ids",
    "find_package"
]
