"""
Augment merge for CycloneDX: enrich an authoritative document from secondary ones.
"""

import copy
import logging
from typing import Dict, List, Optional, Set

from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component
from cyclonedx.model.tool import Tool
from cyclonedx.model.vulnerability import BomTarget

from .. import __version__, TOOL_NAME, TOOL_VENDOR
from ..config import AppConfig
from ..documents.cyclonedx import (
    all_refs, build_dependencies, dependency_map, iter_nested, ref_of, resort_components, set_ref
)
from ..error_handling import MergeError
from ..matcher import ComponentIndex, ComponentMatcher, CycloneDXComponent, MatcherConfig, MatcherFactory
from .cyclonedx_merger import vulnerability_source
from .identifier_service import new_bom_ref
from .metadata_aggregator import tool_component, utc_now
from .reference_resolver import DanglingReferences, resolve_reference

logger = logging.getLogger(__name__)

MERGE_MODE_FILL = "if-missing-or-empty"
MERGE_MODE_OVERWRITE = "overwrite"

_SCALAR_FIELDS = (
    "description", "author", "publisher", "group", "scope", "copyright", "purl", "cpe"
)
_LIST_FIELDS = ("licenses", "hashes", "external_references", "properties")


def build_matcher(config: AppConfig) -> ComponentMatcher:
    """Matcher configured from the ``matcher`` section."""
    settings = config.matcher
    matcher_config = MatcherConfig(
        strategy=settings.strategy,
        strict_version=settings.strict_version,
        fuzzy_match=settings.fuzzy_match,
        type_match=settings.type_match,
        min_confidence=settings.min_confidence
    )
    return MatcherFactory(matcher_config).get_matcher(settings.strategy)


def fill_missing_fields(primary: Component, secondary: Component) -> None:
    """Copy secondary values only into fields that are empty on the primary."""
    for name in _SCALAR_FIELDS:
        if not getattr(primary, name) and getattr(secondary, name):
            setattr(primary, name, copy.deepcopy(getattr(secondary, name)))

    if primary.supplier is None and secondary.supplier is not None:
        primary.supplier = copy.deepcopy(secondary.supplier)

    for name in _LIST_FIELDS:
        if not getattr(primary, name) and getattr(secondary, name):
            setattr(primary, name, copy.deepcopy(list(getattr(secondary, name))))


def overwrite_fields(primary: Component, secondary: Component) -> None:
    """Replace primary fields with every non-empty secondary value."""
    for name in _SCALAR_FIELDS:
        if getattr(secondary, name):
            setattr(primary, name, copy.deepcopy(getattr(secondary, name)))

    if secondary.supplier is not None:
        primary.supplier = copy.deepcopy(secondary.supplier)

    for name in _LIST_FIELDS:
        if getattr(secondary, name):
            setattr(primary, name, copy.deepcopy(list(getattr(secondary, name))))


class CycloneDXAugmenter:
    """
    Enriches a primary CycloneDX document with secondary documents.

    The primary document is mutated in place. Matched components have
    their fields merged according to the merge mode, unmatched ones are
    appended, and only the secondary dependencies touching processed
    components are carried over.
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

    def merge(self, primary: Bom, secondaries: List[Bom]) -> Bom:
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

        for position, secondary in enumerate(secondaries, start=1):
            try:
                self._process_secondary(primary, secondary)
            except Exception as e:
                raise MergeError(
                    f"failed to process secondary SBOM {position}: {e}",
                    strategy="augment", document_index=position, cause=e
                ) from e

        self._update_metadata(primary)

        logger.debug(f"CycloneDX augment statistics: {self._merge_statistics}")
        return primary

    def _build_index(self, primary: Bom) -> ComponentIndex:
        index = ComponentIndex()
        if primary.metadata.component is not None:
            index.add_component(CycloneDXComponent(primary.metadata.component))
        for comp in primary.components:
            index.add_component(CycloneDXComponent(comp))
        logger.debug(f"Built index with {len(index)} components from primary SBOM")
        return index

    def _process_secondary(self, primary: Bom, secondary: Bom) -> None:
        self._processed_refs = {}
        self._added_refs = set()
        index = self._build_index(primary)
        existing_refs = set(all_refs(primary))

        matched = 0
        added: List[Component] = []
        for comp in secondary.components:
            result = index.find_best_match(CycloneDXComponent(comp), self.matcher)
            if result is not None:
                target = result.primary.get_original()
                logger.debug(f"Found match for component {comp.name} with confidence {result.confidence}")
                self._merge_component(target, comp)
                if ref_of(comp):
                    self._processed_refs[ref_of(comp)] = ref_of(target)
                matched += 1
                continue

            logger.debug(f"No match found for component {comp.name}, adding as new")
            clone = self._clone_for_primary(comp, existing_refs)
            added.append(clone)
            index.add_component(CycloneDXComponent(clone))
            self._added_refs.add(ref_of(clone))

        # merged fields change the sort keys of components already in the sets
        primary.components = resort_components(list(primary.components) + added)
        if primary.metadata.component is not None:
            resort_components([primary.metadata.component])

        self._merge_statistics["matched"] += matched
        self._merge_statistics["added"] += len(added)

        self._merge_selective_dependencies(primary, secondary)
        self._merge_vulnerabilities(primary, secondary)

        logger.debug(f"Processed secondary SBOM: {matched} matched, {len(added)} added")

    def _merge_component(self, primary: Component, secondary: Component) -> None:
        if self.merge_mode == MERGE_MODE_OVERWRITE:
            overwrite_fields(primary, secondary)
        else:
            fill_missing_fields(primary, secondary)

    def _clone_for_primary(self, comp: Component, existing_refs: Set[str]) -> Component:
        """
        Copy a secondary component, keeping its bom-refs unless the primary already uses them.

        Every ref of the copy, nested ones included, is recorded in the
        processed references.
        """
        clone = copy.deepcopy(comp)
        for item in [clone] + list(iter_nested(clone)):
            old_ref = ref_of(item)
            if not old_ref or old_ref in existing_refs:
                set_ref(item, new_bom_ref())
            existing_refs.add(ref_of(item))
            if old_ref:
                self._processed_refs[old_ref] = ref_of(item)
        return resort_components([clone])[0]

    def _is_relevant(self, ref: str, targets: List[str]) -> bool:
        if ref in self._processed_refs:
            return True
        return any(target in self._processed_refs for target in targets)

    def _merge_selective_dependencies(self, primary: Bom, secondary: Bom) -> None:
        """Carry over secondary dependencies that involve a processed component."""
        secondary_edges = dependency_map(secondary)
        if not secondary_edges:
            return

        valid_refs = set(all_refs(primary))
        edges = dependency_map(primary)

        for sec_ref, sec_targets in secondary_edges.items():
            if not self._is_relevant(sec_ref, sec_targets):
                self._merge_statistics["skipped"] += 1
                continue

            ref = resolve_reference(sec_ref, self._processed_refs)
            if ref not in valid_refs:
                logger.debug(f"Skipping dependency for {ref}: ref not valid in primary SBOM")
                self._dangling.record(sec_ref, sec_ref)
                self._merge_statistics["dropped_edges"] += 1
                continue

            targets: List[str] = []
            for target in sec_targets:
                resolved = resolve_reference(target, self._processed_refs)
                if resolved not in valid_refs:
                    logger.debug(f"Skipping dependency reference {target}: not valid in primary SBOM")
                    self._dangling.record(target, sec_ref, target)
                    self._merge_statistics["skipped"] += 1
                    continue
                if resolved not in targets:
                    targets.append(resolved)

            existing = edges.get(ref)
            if existing is not None:
                for target in targets:
                    if target not in existing:
                        existing.append(target)
                        self._merge_statistics["added_edges"] += 1
                continue

            edges[ref] = targets
            self._merge_statistics["added_edges"] += max(len(targets), 1)

        primary.dependencies = build_dependencies(edges)

    def _merge_vulnerabilities(self, primary: Bom, secondary: Bom) -> None:
        """Append secondary vulnerabilities not already present, with affects rewritten."""
        if not secondary.vulnerabilities:
            return

        valid_refs = set(all_refs(primary))
        known = {(v.id, vulnerability_source(v)) for v in primary.vulnerabilities}
        used_refs = {ref_of(v) for v in primary.vulnerabilities if ref_of(v)}
        added = []

        for vuln in secondary.vulnerabilities:
            key = (vuln.id, vulnerability_source(vuln))
            if key in known:
                continue
            known.add(key)

            clone = copy.deepcopy(vuln)
            affects = []
            for affect in clone.affects:
                ref = resolve_reference(affect.ref, self._processed_refs)
                if ref not in valid_refs:
                    self._dangling.record(affect.ref, vuln.id, affect.ref)
                    self._merge_statistics["skipped"] += 1
                    continue
                affects.append(BomTarget(ref=ref, versions=affect.versions))
            clone.affects = affects
            if ref_of(clone) in used_refs or ref_of(clone) in valid_refs:
                set_ref(clone, new_bom_ref())
            if ref_of(clone):
                used_refs.add(ref_of(clone))
            added.append(clone)

        primary.vulnerabilities = list(primary.vulnerabilities) + added

    def _update_metadata(self, primary: Bom) -> None:
        """Refresh the timestamp and list this tool once."""
        metadata = primary.metadata
        metadata.timestamp = utc_now()
        tools = metadata.tools

        names = [t.name or "" for t in tools.tools] + [c.name for c in tools.components]
        if any(name.lower() == TOOL_NAME.lower() for name in names):
            return

        if tools.tools and not tools.components and not tools.services:
            tools.tools.add(Tool(name=TOOL_NAME, version=__version__, vendor=TOOL_VENDOR))
        else:
            tools.components.add(tool_component())
        logger.debug("Updated metadata with timestamp and tool information")

    @property
    def processed_refs(self) -> Dict[str, str]:
        """Secondary-to-primary bom-ref mapping of the last processed secondary."""
        return dict(self._processed_refs)

    @property
    def added_refs(self) -> Set[str]:
        return set(self._added_refs)

    @property
    def dangling_references(self) -> DanglingReferences:
        return self._dangling

    def get_merge_statistics(self) -> Dict[str, int]:
        return self._merge_statistics.copy()
