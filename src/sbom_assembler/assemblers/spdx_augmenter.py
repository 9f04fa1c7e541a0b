"""
Augment merge for SPDX: enrich an authoritative document from secondary ones.
"""

import copy
import logging
import re
from typing import Any, Dict, List, Optional, Set

from spdx_tools.spdx.model import Document, File, Package, Relationship, RelationshipType, SpdxNoAssertion

from ..config import AppConfig
from ..documents.spdx import (
    described_ids, element_ids, is_document_id, related_id, relationship_key, split_document_ref
)
from ..error_handling import MergeError
from ..matcher import ComponentIndex, ComponentMatcher, SpdxPackage
from .cyclonedx_augmenter import MERGE_MODE_FILL, MERGE_MODE_OVERWRITE, build_matcher
from .identifier_service import new_spdx_id
from .metadata_aggregator import creator_key, spdx_created, tool_creator
from .reference_resolver import DanglingReferences, resolve_reference
from .spdx_merger import ElementRef, primary_package_id

logger = logging.getLogger(__name__)

LICENSE_REF_PATTERN = re.compile(r"LicenseRef-[A-Za-z0-9.\-]+")

_SCALAR_FIELDS = (
    "description", "download_location", "homepage", "source_info", "copyright_text",
    "license_concluded", "license_declared", "license_comment", "supplier",
    "originator", "primary_package_purpose"
)


def _is_missing(name: str, value: Any) -> bool:
    if value is None or (isinstance(value, str) and not value):
        return True
    # A download location read from a document without one defaults to NOASSERTION.
    return name == "download_location" and isinstance(value, SpdxNoAssertion)


def _ref_key(ref) -> tuple:
    return ref.category, ref.reference_type, ref.locator


def fill_missing_fields(primary: Package, secondary: Package) -> None:
    """Copy secondary values only into fields that are empty on the primary."""
    for name in _SCALAR_FIELDS:
        value = getattr(secondary, name)
        if _is_missing(name, getattr(primary, name)) and not _is_missing(name, value):
            setattr(primary, name, copy.deepcopy(value))

    if not primary.checksums and secondary.checksums:
        primary.checksums = copy.deepcopy(secondary.checksums)

    known = {_ref_key(ref) for ref in primary.external_references}
    for ref in secondary.external_references:
        if _ref_key(ref) not in known:
            primary.external_references.append(copy.deepcopy(ref))
            known.add(_ref_key(ref))


def overwrite_fields(primary: Package, secondary: Package) -> None:
    """Replace primary fields with every non-empty secondary value."""
    for name in _SCALAR_FIELDS:
        value = getattr(secondary, name)
        if not _is_missing(name, value):
            setattr(primary, name, copy.deepcopy(value))

    if secondary.checksums:
        primary.checksums = copy.deepcopy(secondary.checksums)
    if secondary.external_references:
        primary.external_references = copy.deepcopy(secondary.external_references)


def ensure_primary_describes(doc: Document, primary_id: str = "") -> str:
    """
    Leave exactly one ``DOCUMENT DESCRIBES`` edge, pointing at the primary package.

    The primary package is ``primary_id`` when given, else the first valid
    described package, else the sole or first package. A missing edge is
    only synthesized when the document has more than one package. Edges
    from the literal ``DOCUMENT`` count as document edges.

    Returns:
        Id of the primary package, empty when the document has no packages
    """
    package_ids = [p.spdx_id for p in doc.packages]
    if not package_ids:
        logger.warning("No primary package found in augmented SBOM")
        return ""

    if primary_id not in package_ids:
        described = [d for d in described_ids(doc) if d in package_ids]
        primary_id = described[0] if described else package_ids[0]

    def is_document_describes(rel: Relationship) -> bool:
        return rel.relationship_type == RelationshipType.DESCRIBES and is_document_id(rel.spdx_element_id, doc)

    has_edge = any(is_document_describes(r) and related_id(r) == primary_id for r in doc.relationships)
    if not has_edge and len(package_ids) > 1:
        doc.relationships.append(
            Relationship(doc.creation_info.spdx_id, RelationshipType.DESCRIBES, primary_id)
        )
        logger.debug(f"Added DESCRIBES relationship from document to primary package {primary_id}")

    before = len(doc.relationships)
    doc.relationships = [
        r for r in doc.relationships
        if not (is_document_describes(r) and related_id(r) != primary_id)
    ]
    removed = before - len(doc.relationships)
    if removed:
        logger.debug(f"Removed {removed} DESCRIBES relationships to non-primary packages")
    return primary_id


class SpdxAugmenter:
    """
    Enriches a primary SPDX document with secondary documents.

    The primary document is mutated in place. Only relationships and
    extracted licenses that concern processed packages are carried over,
    and the document keeps a single ``DESCRIBES`` edge to its primary
    package.
    """

    def __init__(self, config: AppConfig, matcher: Optional[ComponentMatcher] = None):
        self.config = config
        self.merge_mode = config.assemble.merge_mode or MERGE_MODE_FILL
        self.matcher = matcher or build_matcher(config)
        self._dangling = DanglingReferences()
        self._processed_refs: Dict[str, str] = {}
        self._added_refs: Set[str] = set()
        self._merge_statistics = {
            "matched": 0,
            "added": 0,
            "skipped": 0,
            "added_edges": 0,
            "dropped_edges": 0
        }

    def merge(self, primary: Document, secondaries: List[Document]) -> Document:
        """
        Augment ``primary`` with each secondary document in order.

        Args:
            primary: Authoritative document, mutated in place
            secondaries: Documents providing additional data

        Returns:
            The augmented primary document

        Raises:
            MergeError: If a secondary document cannot be processed
        """
        logger.info(f"Augmenting primary SBOM with {len(secondaries)} secondary SBOMs "
                    f"(merge mode: {self.merge_mode})")

        primary_package = primary_package_id(primary)

        for position, secondary in enumerate(secondaries, start=1):
            try:
                self._process_secondary(primary, secondary)
            except Exception as e:
                raise MergeError(
                    f"failed to process secondary SBOM {position}: {e}",
                    strategy="augment", document_index=position, cause=e
                ) from e

        self._update_creation_info(primary)
        ensure_primary_describes(primary, primary_package)

        logger.debug(f"SPDX augment statistics: {self._merge_statistics}")
        return primary

    def _process_secondary(self, primary: Document, secondary: Document) -> None:
        self._processed_refs = {}
        self._added_refs = set()
        index = ComponentIndex(SpdxPackage(p) for p in primary.packages)
        existing_ids = set(element_ids(primary))
        touched: List[Package] = []

        matched = 0
        added = 0
        for pkg in secondary.packages:
            result = index.find_best_match(SpdxPackage(pkg), self.matcher)
            if result is not None:
                target: Package = result.primary.get_original()
                logger.debug(f"Found match for package {pkg.name} with confidence {result.confidence}")
                if self.merge_mode == MERGE_MODE_OVERWRITE:
                    overwrite_fields(target, pkg)
                else:
                    fill_missing_fields(target, pkg)
                self._processed_refs[pkg.spdx_id] = target.spdx_id
                touched.append(target)
                matched += 1
                continue

            logger.debug(f"No match found for package {pkg.name}, adding as new")
            clone = self._clone_for_primary(pkg, primary, secondary, existing_ids)
            primary.packages.append(clone)
            index.add_component(SpdxPackage(clone))
            self._added_refs.add(clone.spdx_id)
            touched.append(clone)
            added += 1

        self._merge_statistics["matched"] += matched
        self._merge_statistics["added"] += added

        self._merge_selective_relationships(primary, secondary)
        self._merge_selective_licenses(primary, secondary, touched)

        logger.debug(f"Processed secondary SBOM: {matched} matched, {added} added")

    def _clone_for_primary(self, pkg: Package, primary: Document, secondary: Document,
                           existing_ids: Set[str]) -> Package:
        """
        Copy a secondary package into ``primary``, renaming ids that collide.

        The files the package ``CONTAINS`` in the secondary document are
        copied along with it.
        """
        clone = copy.deepcopy(pkg)
        if not clone.spdx_id or clone.spdx_id in existing_ids:
            clone.spdx_id = new_spdx_id("Package")
        existing_ids.add(clone.spdx_id)
        self._processed_refs[pkg.spdx_id] = clone.spdx_id

        files: Dict[str, File] = {f.spdx_id: f for f in secondary.files}
        for rel in secondary.relationships:
            if rel.relationship_type != RelationshipType.CONTAINS or rel.spdx_element_id != pkg.spdx_id:
                continue
            file = files.get(related_id(rel))
            if file is None or file.spdx_id in self._processed_refs:
                continue
            file_clone = copy.deepcopy(file)
            if file_clone.spdx_id in existing_ids:
                file_clone.spdx_id = new_spdx_id("File")
            existing_ids.add(file_clone.spdx_id)
            self._processed_refs[file.spdx_id] = file_clone.spdx_id
            primary.files.append(file_clone)
        return clone

    def _resolve(self, ref: ElementRef, primary: Document, secondary: Document) -> ElementRef:
        if not isinstance(ref, str):
            return ref
        if is_document_id(ref, secondary):
            return primary.creation_info.spdx_id
        return resolve_reference(ref, self._processed_refs)

    def _merge_selective_relationships(self, primary: Document, secondary: Document) -> None:
        """Carry over secondary relationships that involve a processed package."""
        if not secondary.relationships:
            return

        valid_ids = set(element_ids(primary))
        known = {relationship_key(rel) for rel in primary.relationships}

        def is_valid(ref: ElementRef, related: bool) -> bool:
            if not isinstance(ref, str):
                return related
            return not split_document_ref(ref)[0] and ref in valid_ids

        for rel in secondary.relationships:
            if rel.relationship_type == RelationshipType.DESCRIBES:
                self._merge_statistics["skipped"] += 1
                continue

            related_ref = related_id(rel)
            if rel.spdx_element_id not in self._processed_refs and related_ref not in self._processed_refs:
                self._merge_statistics["skipped"] += 1
                continue

            element = self._resolve(rel.spdx_element_id, primary, secondary)
            related = self._resolve(rel.related_spdx_element_id, primary, secondary)
            if not is_valid(element, False) or not is_valid(related, True):
                logger.debug(f"Skipping relationship {element}->{related}: "
                             f"one or both IDs not valid in primary SBOM")
                missing = rel.spdx_element_id if not is_valid(element, False) else related_ref
                self._dangling.record(missing, rel.spdx_element_id, related_ref)
                self._merge_statistics["dropped_edges"] += 1
                continue

            new_rel = Relationship(element, rel.relationship_type, related, rel.comment)
            key = relationship_key(new_rel)
            if key in known:
                continue
            known.add(key)
            primary.relationships.append(new_rel)
            self._merge_statistics["added_edges"] += 1

    def _merge_selective_licenses(self, primary: Document, secondary: Document,
                                  touched: List[Package]) -> None:
        """Copy extracted licenses referenced by merged or added packages."""
        referenced: Set[str] = set()
        for pkg in touched:
            for expression in (pkg.license_concluded, pkg.license_declared):
                if expression is not None:
                    referenced.update(LICENSE_REF_PATTERN.findall(str(expression)))
        if not referenced:
            return

        present = {lic.license_id for lic in primary.extracted_licensing_info}
        for lic in secondary.extracted_licensing_info:
            if lic.license_id in referenced and lic.license_id not in present:
                primary.extracted_licensing_info.append(copy.deepcopy(lic))
                present.add(lic.license_id)
                logger.debug(f"Copied extracted license {lic.license_id}")

    def _update_creation_info(self, primary: Document) -> None:
        primary.creation_info.created = spdx_created()
        creator = tool_creator()
        if creator_key(creator) not in {creator_key(c) for c in primary.creation_info.creators}:
            primary.creation_info.creators.append(creator)

    @property
    def processed_refs(self) -> Dict[str, str]:
        """Secondary-to-primary id mapping of the last processed secondary."""
        return dict(self._processed_refs)

    @property
    def added_refs(self) -> Set[str]:
        return set(self._added_refs)

    @property
    def dangling_references(self) -> DanglingReferences:
        return self._dangling

    def get_merge_statistics(self) -> Dict[str, int]:
        return self._merge_statistics.copy()
