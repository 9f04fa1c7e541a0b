"""
Merge drivers that assemble CycloneDX and SPDX documents.
"""

from .identifier_service import (
    IdentifierService, CycloneDXIdentifierService, SpdxIdentifierService,
    new_bom_ref, new_spdx_id
)
from .reference_resolver import DanglingReferences, resolve_reference
from .metadata_aggregator import MetadataAggregator, tool_component, tool_creator, utc_now
from .cyclonedx_merger import CycloneDXMerger, merge_boms
from .cyclonedx_augmenter import CycloneDXAugmenter, build_matcher
from .spdx_merger import SpdxMerger, merge_documents, primary_package_id
from .spdx_augmenter import SpdxAugmenter, ensure_primary_describes

__all__ = [
    "IdentifierService",
    "CycloneDXIdentifierService",
    "SpdxIdentifierService",
    "new_bom_ref",
    "new_spdx_id",
    "DanglingReferences",
    "resolve_reference",
    "MetadataAggregator",
    "tool_component",
    "tool_creator",
    "utc_now",
    "CycloneDXMerger",
    "merge_boms",
    "CycloneDXAugmenter",
    "build_matcher",
    "SpdxMerger",
    "merge_documents",
    "primary_package_id",
    "SpdxAugmenter",
    "ensure_primary_describes"
]
