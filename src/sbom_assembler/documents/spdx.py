"""
Helpers over spdx-tools documents.

Element references keep any ``DocumentRef-x:`` prefix verbatim; use
:func:`split_document_ref` to take them apart. ``documentDescribes`` and
``hasFiles`` arrive from the parsers as ``DESCRIBES`` and ``CONTAINS``
relationships, so the relationship list is the whole graph.
"""

from typing import List, Optional, Tuple

from spdx_tools.spdx.model import (
    Document, ExternalPackageRefCategory, Package, Relationship, RelationshipType
)

SPDX_VERSION = "SPDX-2.3"
DATA_LICENSE = "CC0-1.0"
DOCUMENT_ID = "SPDXRef-DOCUMENT"
DOCUMENT_ALIAS = "DOCUMENT"

PURL_REFERENCE_TYPE = "purl"
CPE_REFERENCE_TYPES = ("cpe23Type", "cpe22Type")


def split_document_ref(ref: str) -> Tuple[str, str]:
    """
    Split an SPDX element reference into its document ref and element id.

    ``DocumentRef-other:SPDXRef-Package`` gives ``("DocumentRef-other", "SPDXRef-Package")``
    and a plain id gives ``("", id)``.
    """
    if ref.startswith("DocumentRef-") and ":" in ref:
        doc_ref, element_id = ref.split(":", 1)
        return doc_ref, element_id
    return "", ref


def related_id(relationship: Relationship) -> str:
    """Related element as a string; ``NONE`` and ``NOASSERTION`` render as such."""
    return str(relationship.related_spdx_element_id)


def relationship_key(relationship: Relationship) -> str:
    return (f"{relationship.spdx_element_id}:{relationship.relationship_type.name}:"
            f"{related_id(relationship)}")


def is_document_id(element_id: str, document: Document) -> bool:
    return element_id in (document.creation_info.spdx_id, DOCUMENT_ALIAS)


def element_ids(document: Document) -> List[str]:
    """Ids of the document, its packages, files and snippets."""
    ids = [document.creation_info.spdx_id]
    ids.extend(p.spdx_id for p in document.packages)
    ids.extend(f.spdx_id for f in document.files)
    ids.extend(s.spdx_id for s in document.snippets)
    return ids


def described_ids(document: Document) -> List[str]:
    """Targets of ``DOCUMENT DESCRIBES`` relationships, in order."""
    return [
        related_id(r) for r in document.relationships
        if r.relationship_type == RelationshipType.DESCRIBES
        and is_document_id(r.spdx_element_id, document)
    ]


def find_package(document: Document, spdx_id: str) -> Optional[Package]:
    for pkg in document.packages:
        if pkg.spdx_id == spdx_id:
            return pkg
    return None


def package_purl(package: Package) -> str:
    for ref in package.external_references:
        if ref.category == ExternalPackageRefCategory.PACKAGE_MANAGER and \
                ref.reference_type == PURL_REFERENCE_TYPE:
            return ref.locator
    return ""


def package_cpe(package: Package) -> str:
    for ref in package.external_references:
        if ref.reference_type in CPE_REFERENCE_TYPES:
            return ref.locator
    return ""
