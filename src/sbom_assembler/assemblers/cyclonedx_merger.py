"""
CycloneDX merge driver for the flat, assembly and hierarchical strategies.
"""

import copy
import logging
from typing import Dict, List, Optional, Set, Tuple

from cyclonedx.model import HashAlgorithm, HashType
from cyclonedx.model.bom import Bom, BomMetaData
from cyclonedx.model.component import Component, ComponentType
from cyclonedx.model.contact import OrganizationalContact, OrganizationalEntity
from cyclonedx.model.license import DisjunctiveLicense, LicenseExpression
from cyclonedx.model.service import Service
from cyclonedx.model.vulnerability import BomTarget, Vulnerability

from ..config import AppConfig
from ..config.config_manager import DEFAULT_OUTPUT_LICENSE
from ..documents.cyclonedx import (
    all_refs, build_dependencies, dependency_map, iter_nested, parse_purl, ref_of, set_ref
)
from ..error_handling import MergeError, SBOMAssemblerError
from .identifier_service import CycloneDXIdentifierService, new_bom_ref
from .metadata_aggregator import MetadataAggregator, utc_now
from .reference_resolver import DanglingReferences

logger = logging.getLogger(__name__)

COMPONENT_TYPES = (
    "application", "container", "device", "file", "framework", "library",
    "firmware", "operating-system"
)

HASH_ALGORITHMS = {
    "MD5": HashAlgorithm.MD5,
    "SHA-1": HashAlgorithm.SHA_1,
    "SHA-256": HashAlgorithm.SHA_256,
    "SHA-384": HashAlgorithm.SHA_384,
    "SHA-512": HashAlgorithm.SHA_512,
    "SHA3-256": HashAlgorithm.SHA3_256,
    "SHA3-384": HashAlgorithm.SHA3_384,
    "SHA3-512": HashAlgorithm.SHA3_512,
    "BLAKE2B-256": HashAlgorithm.BLAKE2B_256,
    "BLAKE2B-384": HashAlgorithm.BLAKE2B_384,
    "BLAKE2B-512": HashAlgorithm.BLAKE2B_512,
    "BLAKE3": HashAlgorithm.BLAKE3,
}

Edges = Dict[str, List[str]]


def component_type(primary_purpose: str) -> ComponentType:
    """CycloneDX component type for a configured primary purpose, ``application`` if unknown."""
    purpose = (primary_purpose or "").strip().lower()
    return ComponentType(purpose) if purpose in COMPONENT_TYPES else ComponentType.APPLICATION


def vulnerability_source(vuln: Vulnerability) -> str:
    return (vuln.source.name or "") if vuln.source is not None else ""


class CycloneDXMerger:
    """
    Builds a new CycloneDX document from several inputs.

    Every input component is cloned under a fresh bom-ref through the
    identifier service; components sharing type, name and version collapse
    onto the first clone. Dependencies are rewritten through the same
    service and edges that point nowhere are dropped and counted.
    """

    def __init__(self, config: AppConfig):
        """
        Initialize the merger.

        Args:
            config: Application configuration describing the output primary component
        """
        self.config = config
        self._ids = CycloneDXIdentifierService()
        self._dangling = DanglingReferences()
        self._aggregator = MetadataAggregator()
        self._clones: Dict[str, Component] = {}
        self._merge_statistics = self._empty_statistics()

    @staticmethod
    def _empty_statistics() -> Dict[str, int]:
        return {
            "matched": 0,
            "added": 0,
            "skipped": 0,
            "added_edges": 0,
            "dropped_edges": 0
        }

    def merge(self, boms: List[Bom], strategy: Optional[str] = None) -> Bom:
        """
        Merge input documents into a new document.

        Args:
            boms: Input documents in merge order
            strategy: ``flat``, ``assembly`` or ``hierarchical``; defaults to the configured one

        Returns:
            The assembled document

        Raises:
            MergeError: If the strategy is not a build-new strategy or an input cannot be processed
        """
        strategy = strategy or self.config.assemble.strategy
        handlers = {
            "flat": self._flat_merge,
            "assembly": self._assembly_merge,
            "hierarchical": self._hierarchical_merge,
        }
        if strategy not in handlers:
            raise MergeError(f"unsupported CycloneDX merge strategy: {strategy}", strategy=strategy)

        self._ids = CycloneDXIdentifierService()
        self._dangling = DanglingReferences()
        self._clones = {}
        self._merge_statistics = self._empty_statistics()

        logger.info(f"Merging {len(boms)} CycloneDX documents using {strategy} strategy")

        out = self._init_output(boms)
        primaries, primary_ids = self._build_primary_list(boms)
        components, origins = self._build_component_list(boms)
        services = self._build_service_list(boms)
        edges = self._build_dependency_list(boms)

        handlers[strategy](out, primaries, primary_ids, components, origins, edges)

        out.services = services
        out.vulnerabilities = self._build_vulnerability_list(boms)
        self._prune_dependencies(out, edges)

        logger.debug(f"CycloneDX merge statistics: {self._merge_statistics}")
        logger.debug(f"Metadata aggregation: {self._aggregator.get_aggregation_statistics()}")
        logger.info(f"Merged document has {len(out.components)} top-level components "
                    f"and {len(out.dependencies)} dependency entries")
        return out

    def _init_output(self, boms: List[Bom]) -> Bom:
        app = self.config.app
        metadata = BomMetaData(
            timestamp=utc_now(),
            tools=self._aggregator.aggregate_tools(boms),
            authors=[
                OrganizationalContact(name=a.name or None, email=a.email or None, phone=a.phone or None)
                for a in app.authors if a.name or a.email
            ],
            licenses=[DisjunctiveLicense(id=DEFAULT_OUTPUT_LICENSE)],
            component=self._build_primary_component()
        )
        if app.supplier.name or app.supplier.email:
            metadata.supplier = self._supplier()
        return Bom(metadata=metadata)

    def _supplier(self) -> OrganizationalEntity:
        supplier = self.config.app.supplier
        contacts = []
        if supplier.email:
            contacts = [OrganizationalContact(name=supplier.name or None, email=supplier.email)]
        return OrganizationalEntity(name=supplier.name or None, contacts=contacts)

    def _build_primary_component(self) -> Component:
        """Synthesize the output's primary component from the application configuration."""
        app = self.config.app
        comp = Component(
            name=app.name,
            type=component_type(app.primary_purpose),
            version=app.version or None,
            bom_ref=new_bom_ref(),
            description=app.description or None,
            copyright=app.copyright or None,
            purl=parse_purl(app.purl),
            cpe=app.cpe or None
        )
        if app.authors:
            comp.author = app.authors[0].name or None

        if app.license.id:
            comp.licenses = [DisjunctiveLicense(id=app.license.id)]
        elif app.license.expression:
            comp.licenses = [LicenseExpression(app.license.expression)]

        hashes = []
        for checksum in app.checksums:
            if not checksum.value:
                continue
            algorithm = HASH_ALGORITHMS.get(checksum.algorithm.upper())
            if algorithm is None:
                logger.warning(f"Skipping checksum with unsupported algorithm {checksum.algorithm}")
                continue
            hashes.append(HashType(alg=algorithm, content=checksum.value))
        comp.hashes = hashes

        if app.supplier.name or app.supplier.email:
            comp.supplier = self._supplier()

        logger.debug(f"Primary component {comp.name}@{comp.version} has id {ref_of(comp)}")
        return comp

    def _store(self, comp: Component, scope: str) -> Tuple[Component, bool]:
        clone, duplicate = self._ids.store_and_clone_with_new_id(comp, scope)
        if duplicate:
            self._merge_statistics["matched"] += 1
        else:
            self._merge_statistics["added"] += 1
            self._clones[ref_of(clone)] = clone
        return clone, duplicate

    def _build_primary_list(self, boms: List[Bom]) -> Tuple[List[Component], List[str]]:
        """
        Clone each input's primary component.

        Returns:
            Tuple of (unique primary clones, resolved primary id per input,
            empty for inputs without a primary component)
        """
        primaries: List[Component] = []
        primary_ids: List[str] = []
        for index, bom in enumerate(boms):
            primary = bom.metadata.component
            if primary is None:
                logger.warning(f"Input SBOM {index + 1} has no primary component")
                primary_ids.append("")
                continue
            clone, duplicate = self._store(primary, str(index))
            if not duplicate:
                primaries.append(clone)
            primary_ids.append(ref_of(clone))
        return primaries, primary_ids

    def _build_component_list(self, boms: List[Bom]) -> Tuple[List[Component], List[List[str]]]:
        """
        Clone every top-level component of every input.

        Returns:
            Tuple of (unique component clones, resolved component ids per input)
        """
        components: List[Component] = []
        origins: List[List[str]] = []
        for index, bom in enumerate(boms):
            ids: List[str] = []
            for comp in bom.components:
                clone, duplicate = self._store(comp, str(index))
                if not duplicate:
                    components.append(clone)
                ids.append(ref_of(clone))
            origins.append(ids)
        return components, origins

    def _build_service_list(self, boms: List[Bom]) -> List[Service]:
        services: List[Service] = []
        seen: Dict[Tuple[str, str], str] = {}
        for index, bom in enumerate(boms):
            for service in bom.services:
                key = (service.name.lower(), (service.version or "").lower())
                if key in seen:
                    self._ids.record(ref_of(service), seen[key], str(index))
                    continue
                clone = copy.deepcopy(service)
                set_ref(clone, new_bom_ref())
                self._ids.record(ref_of(service), ref_of(clone), str(index))
                seen[key] = ref_of(clone)
                services.append(clone)
        return services

    def _build_dependency_list(self, boms: List[Bom]) -> Edges:
        """
        Rewrite every input dependency edge through the identifier service.

        Edges from the same merged component are unioned. An unresolvable
        source drops the entry; unresolvable targets are omitted and an entry
        left with no targets is dropped as well.
        """
        merged: Edges = {}
        for index, bom in enumerate(boms):
            scope = str(index)
            for ref, depends_on in dependency_map(bom).items():
                source, found = self._ids.resolve(ref, scope)
                if not found:
                    self._dangling.record(ref, ref)
                    self._merge_statistics["skipped"] += 1
                    self._merge_statistics["dropped_edges"] += 1
                    continue

                targets: List[str] = []
                for target in depends_on:
                    new_target, target_found = self._ids.resolve(target, scope)
                    if not target_found:
                        self._dangling.record(target, ref, target)
                        self._merge_statistics["skipped"] += 1
                        continue
                    if new_target not in targets:
                        targets.append(new_target)

                if depends_on and not targets:
                    self._merge_statistics["dropped_edges"] += 1
                    continue

                existing = merged.setdefault(source, [])
                existing.extend(t for t in targets if t not in existing)

        return merged

    def _primary_edge(self, out: Bom, primary_ids: List[str], edges: Edges) -> None:
        targets: List[str] = []
        for ref in primary_ids:
            if ref and ref not in targets:
                targets.append(ref)
        self._merge_statistics["added_edges"] += 1
        edges[ref_of(out.metadata.component)] = targets

    def _flat_merge(self, out: Bom, primaries: List[Component], primary_ids: List[str],
                    components: List[Component], origins: List[List[str]], edges: Edges) -> None:
        out.components = primaries + components
        self._primary_edge(out, primary_ids, edges)

    def _assembly_merge(self, out: Bom, primaries: List[Component], primary_ids: List[str],
                        components: List[Component], origins: List[List[str]], edges: Edges) -> None:
        out.metadata.component.components = primaries
        out.components = components

    def _hierarchical_merge(self, out: Bom, primaries: List[Component], primary_ids: List[str],
                            components: List[Component], origins: List[List[str]], edges: Edges) -> None:
        """
        Nest each input's components under that input's primary component.

        A component shared by several inputs is nested only under the first
        primary that claims it. Components of an input without a primary
        component stay at the top level.
        """
        primary_refs: Set[str] = {ref_of(p) for p in primaries}
        placed: Set[str] = set(primary_refs)
        nested: Dict[str, List[Component]] = {}
        orphans: List[Component] = []

        for index, ids in enumerate(origins):
            parent = self._clones.get(primary_ids[index]) if primary_ids[index] else None
            if parent is not None:
                placed.update(ref_of(c) for c in iter_nested(parent))
            for ref in ids:
                if ref in placed:
                    continue
                placed.add(ref)
                clone = self._clones[ref]
                if parent is None:
                    orphans.append(clone)
                else:
                    nested.setdefault(ref_of(parent), []).append(clone)

        for parent_ref, children in nested.items():
            parent = self._clones[parent_ref]
            parent.components = list(parent.components) + children

        out.components = primaries + orphans
        self._primary_edge(out, primary_ids, edges)

    def _build_vulnerability_list(self, boms: List[Bom]) -> List[Vulnerability]:
        """
        Clone vulnerabilities, deduplicated by id and source name.

        ``affects`` references are rewritten to the merged components and
        the entries of a later duplicate are folded into the first record.
        """
        vulnerabilities: List[Vulnerability] = []
        by_key: Dict[Tuple[str, str], Vulnerability] = {}

        for index, bom in enumerate(boms):
            for vuln in bom.vulnerabilities:
                affects = self._resolve_affects(vuln, str(index))
                key = (vuln.id or "", vulnerability_source(vuln))
                existing = by_key.get(key)
                if existing is not None:
                    known = {a.ref for a in existing.affects}
                    existing.affects = list(existing.affects) + [a for a in affects if a.ref not in known]
                    continue

                clone = copy.deepcopy(vuln)
                set_ref(clone, new_bom_ref())
                clone.affects = affects
                by_key[key] = clone
                vulnerabilities.append(clone)

        if vulnerabilities:
            logger.debug(f"Merged {len(vulnerabilities)} vulnerabilities")
        return vulnerabilities

    def _resolve_affects(self, vuln: Vulnerability, scope: str) -> List[BomTarget]:
        affects = []
        for affect in vuln.affects:
            new_ref, found = self._ids.resolve(affect.ref, scope)
            if not found:
                self._dangling.record(affect.ref, vuln.id or ref_of(vuln), affect.ref)
                self._merge_statistics["skipped"] += 1
                continue
            affects.append(BomTarget(ref=new_ref, versions=affect.versions))
        return affects

    def _prune_dependencies(self, out: Bom, edges: Edges) -> None:
        """Drop dependency entries and targets that name no element of the output."""
        valid = set(all_refs(out))
        pruned: Edges = {}
        for ref, targets in edges.items():
            if ref not in valid:
                self._dangling.record(ref, ref)
                self._merge_statistics["dropped_edges"] += 1
                continue
            for target in targets:
                if target not in valid:
                    self._dangling.record(target, ref, target)
                    self._merge_statistics["dropped_edges"] += 1
            pruned[ref] = [t for t in targets if t in valid]
        out.dependencies = build_dependencies(pruned)

    @property
    def dangling_references(self) -> DanglingReferences:
        return self._dangling

    def get_merge_statistics(self) -> Dict[str, int]:
        """
        Get counters of the last merge.

        Returns:
            Dictionary with matched, added, skipped, added_edges and dropped_edges
        """
        return self._merge_statistics.copy()


def merge_boms(boms: List[Bom], config: AppConfig, strategy: Optional[str] = None) -> Bom:
    """
    Merge CycloneDX documents with a fresh merger.

    Raises:
        MergeError: If the merge fails
    """
    merger = CycloneDXMerger(config)
    try:
        return merger.merge(boms, strategy)
    except SBOMAssemblerError:
        raise
    except Exception as e:
        raise MergeError(f"failed to merge CycloneDX documents: {e}",
                         strategy=strategy or config.assemble.strategy, cause=e)
