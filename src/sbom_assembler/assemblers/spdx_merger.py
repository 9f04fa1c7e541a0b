"""
SPDX merge driver for the flat, assembly and hierarchical strategies.
"""

import copy
import logging
import uuid
from typing import Dict, List, Optional, Set, Tuple, Union
from urllib.parse import quote

from spdx_tools.common.spdx_licensing import spdx_licensing
from spdx_tools.spdx.model import (
    Actor, ActorType, Checksum, ChecksumAlgorithm, CreationInfo, Document, ExternalPackageRef,
    ExternalPackageRefCategory, Package, PackagePurpose, Relationship, RelationshipType,
    SpdxNoAssertion, SpdxNone
)

from ..config import AppConfig
from ..documents.spdx import (
    DATA_LICENSE, DOCUMENT_ID, SPDX_VERSION, described_ids, element_ids, is_document_id,
    relationship_key, split_document_ref
)
from ..error_handling import MergeError, SBOMAssemblerError
from .identifier_service import SpdxIdentifierService
from .metadata_aggregator import MetadataAggregator, spdx_created
from .reference_resolver import DanglingReferences

logger = logging.getLogger(__name__)

CHECKSUM_ALGORITHMS = {
    "MD5": ChecksumAlgorithm.MD5,
    "SHA-1": ChecksumAlgorithm.SHA1,
    "SHA-256": ChecksumAlgorithm.SHA256,
    "SHA-384": ChecksumAlgorithm.SHA384,
    "SHA-512": ChecksumAlgorithm.SHA512,
    "SHA3-256": ChecksumAlgorithm.SHA3_256,
    "SHA3-384": ChecksumAlgorithm.SHA3_384,
    "SHA3-512": ChecksumAlgorithm.SHA3_512,
    "BLAKE2B-256": ChecksumAlgorithm.BLAKE2B_256,
    "BLAKE2B-384": ChecksumAlgorithm.BLAKE2B_384,
    "BLAKE2B-512": ChecksumAlgorithm.BLAKE2B_512,
    "BLAKE3": ChecksumAlgorithm.BLAKE3,
}

ElementRef = Union[str, SpdxNone, SpdxNoAssertion]


def package_purpose(primary_purpose: str) -> Optional[PackagePurpose]:
    """SPDX primary package purpose for a configured value, None if unknown."""
    purpose = (primary_purpose or "").strip().upper().replace("-", "_")
    return PackagePurpose.__members__.get(purpose)


def compose_namespace(name: str) -> str:
    """Unique document namespace under ``https://spdx.org/spdxdocs/``."""
    return f"https://spdx.org/spdxdocs/{quote(name or 'sbom', safe='')}-{uuid.uuid4()}"


def primary_package_id(doc: Document) -> str:
    """
    Id of the package a document is about.

    The first valid ``DOCUMENT DESCRIBES`` target, else the sole package,
    else the first package; empty for a document without packages.
    """
    package_ids = [p.spdx_id for p in doc.packages]
    for described in described_ids(doc):
        if described in package_ids:
            return described
    return package_ids[0] if package_ids else ""


class SpdxMerger:
    """
    Builds a new SPDX document from several inputs.

    Packages are deduplicated and re-identified through the identifier
    service with each input's namespace as lookup scope. Files and snippets
    get fresh ids without deduplication. Input ``DESCRIBES`` relationships
    are replaced by a single ``DOCUMENT DESCRIBES`` edge to a synthesized
    root package, which ``CONTAINS`` the primary package of every input.
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self._ids = SpdxIdentifierService()
        self._dangling = DanglingReferences()
        self._aggregator = MetadataAggregator()
        self._sibling_scopes: List[Dict[str, str]] = []
        self._document_ref_renames: List[Dict[str, str]] = []
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

    @staticmethod
    def _scope(doc: Document, index: int) -> str:
        return doc.creation_info.document_namespace or f"document-{index}"

    def merge(self, docs: List[Document], strategy: Optional[str] = None) -> Document:
        """
        Merge input documents into a new document.

        SPDX has no nesting, so the three strategies lay out the output
        the same way.

        Args:
            docs: Input documents in merge order
            strategy: ``flat``, ``assembly`` or ``hierarchical``; defaults to the configured one

        Returns:
            The assembled document

        Raises:
            MergeError: If the strategy is not a build-new strategy
        """
        strategy = strategy or self.config.assemble.strategy
        if strategy not in ("flat", "assembly", "hierarchical"):
            raise MergeError(f"unsupported SPDX merge strategy: {strategy}", strategy=strategy)

        self._ids = SpdxIdentifierService()
        self._dangling = DanglingReferences()
        self._merge_statistics = self._empty_statistics()
        self._sibling_scopes = self._build_sibling_scopes(docs)

        logger.info(f"Merging {len(docs)} SPDX documents using {strategy} strategy")

        out = self._init_output(docs)
        root = self._build_root_package()
        out.packages.append(root)
        out.relationships.append(Relationship(DOCUMENT_ID, RelationshipType.DESCRIBES, root.spdx_id))

        input_primaries = [self._merge_elements(out, doc, index) for index, doc in enumerate(docs)]

        structural = self._structural_relationships(root, input_primaries)
        copied: List[Relationship] = []
        for index, doc in enumerate(docs):
            copied.extend(self._rewrite_relationships(doc, index, out))
            self._rewrite_annotations(doc, index, out)

        out.relationships = self._unique(out.relationships + structural + copied)
        out.extracted_licensing_info = self._aggregator.other_licenses(docs)
        self._prune_relationships(out)

        logger.debug(f"SPDX merge statistics: {self._merge_statistics}")
        logger.debug(f"Metadata aggregation: {self._aggregator.get_aggregation_statistics()}")
        logger.info(f"Merged document has {len(out.packages)} packages, {len(out.files)} files "
                    f"and {len(out.relationships)} relationships")
        return out

    def _build_sibling_scopes(self, docs: List[Document]) -> List[Dict[str, str]]:
        """Per input, map ``DocumentRef-`` ids that point inside the merge set to that document's scope."""
        scopes = {doc.creation_info.document_namespace: self._scope(doc, i) for i, doc in enumerate(docs)}
        sibling_scopes: List[Dict[str, str]] = []
        for doc in docs:
            sibling_scopes.append({
                ref.document_ref_id: scopes[ref.document_uri]
                for ref in doc.creation_info.external_document_refs
                if ref.document_uri in scopes
            })
        return sibling_scopes

    def _init_output(self, docs: List[Document]) -> Document:
        app = self.config.app
        external_refs, self._document_ref_renames = self._aggregator.external_document_refs(docs)
        creation_info = CreationInfo(
            spdx_version=SPDX_VERSION,
            spdx_id=DOCUMENT_ID,
            name=app.name,
            document_namespace=compose_namespace(app.name),
            creators=self._aggregator.aggregate_creators(docs, app.authors),
            created=spdx_created(),
            creator_comment=self._aggregator.creator_comments(docs),
            data_license=DATA_LICENSE,
            external_document_refs=external_refs,
            license_list_version=self._aggregator.license_list_version(docs)
        )
        return Document(creation_info)

    def _build_root_package(self) -> Package:
        """Synthesize the root package from the application configuration."""
        app = self.config.app
        root = Package(
            spdx_id=f"SPDXRef-RootPackage-{uuid.uuid4()}",
            name=app.name,
            download_location=SpdxNoAssertion(),
            version=app.version or None,
            files_analyzed=False,
            copyright_text=app.copyright or SpdxNoAssertion(),
            description=app.description or None,
            primary_package_purpose=package_purpose(app.primary_purpose)
        )

        if app.supplier.name or app.supplier.email:
            root.supplier = Actor(ActorType.ORGANIZATION, app.supplier.name, app.supplier.email or None)
        else:
            root.supplier = SpdxNoAssertion()

        checksums = []
        for checksum in app.checksums:
            if not checksum.value:
                continue
            algorithm = CHECKSUM_ALGORITHMS.get(checksum.algorithm.upper())
            if algorithm is None:
                logger.warning(f"Skipping checksum with unsupported algorithm {checksum.algorithm}")
                continue
            checksums.append(Checksum(algorithm, checksum.value))
        root.checksums = checksums

        if app.license.id:
            root.license_concluded = spdx_licensing.parse(app.license.id)
            root.license_declared = spdx_licensing.parse(app.license.id)
        elif app.license.expression:
            root.license_concluded = SpdxNoAssertion()
            root.license_declared = SpdxNoAssertion()

        external_refs = []
        if app.purl:
            external_refs.append(ExternalPackageRef(ExternalPackageRefCategory.PACKAGE_MANAGER, "purl", app.purl))
        if app.cpe:
            external_refs.append(ExternalPackageRef(ExternalPackageRefCategory.SECURITY, "cpe23Type", app.cpe))
        root.external_references = external_refs

        logger.debug(f"Root package {root.name}@{root.version} has id {root.spdx_id}")
        return root

    def _merge_elements(self, out: Document, doc: Document, index: int) -> str:
        """
        Clone one input's packages, files and snippets into ``out``.

        Returns:
            Resolved id of the input's primary package, empty if it has none
        """
        scope = self._scope(doc, index)
        logger.debug(f"Processing SBOM {doc.creation_info.name} with packages:{len(doc.packages)}, "
                     f"files:{len(doc.files)}, relationships:{len(doc.relationships)}, "
                     f"snippets:{len(doc.snippets)}")

        for pkg in doc.packages:
            clone, duplicate = self._ids.store_and_clone_with_new_id(pkg, scope)
            if duplicate:
                self._merge_statistics["matched"] += 1
                continue
            self._merge_statistics["added"] += 1
            if clone.files_analyzed is False:
                clone.verification_code = None
            out.packages.append(clone)

        for file in doc.files:
            out.files.append(self._ids.store_with_new_id(file, scope))

        for snippet in doc.snippets:
            snippet_clone = self._ids.store_with_new_id(snippet, scope)
            from_file, found = self._ids.resolve(snippet.file_spdx_id, scope)
            if not found:
                self._dangling.record(snippet.file_spdx_id, snippet.spdx_id, snippet.file_spdx_id)
                self._merge_statistics["skipped"] += 1
                continue
            snippet_clone.file_spdx_id = from_file
            out.snippets.append(snippet_clone)

        old_primary = primary_package_id(doc)
        if not old_primary:
            return ""
        primary, _ = self._ids.resolve(old_primary, scope)
        return primary

    def _structural_relationships(self, root: Package, input_primaries: List[str]) -> List[Relationship]:
        """One ``root CONTAINS input-primary`` edge per distinct input primary package."""
        edges: List[Relationship] = []
        seen: Set[str] = set()
        for primary in input_primaries:
            if not primary or primary in seen:
                continue
            seen.add(primary)
            edges.append(Relationship(root.spdx_id, RelationshipType.CONTAINS, primary))

        self._merge_statistics["added_edges"] += len(edges)
        return edges

    def _resolve_element(self, ref: ElementRef, doc: Document, index: int,
                         out: Document) -> Tuple[ElementRef, bool]:
        """
        Rewrite one end of an input relationship into the output's id space.

        References into another input of the merge resolve to that input's
        clones; references to outside documents keep their element id and
        take the output id of their ``DocumentRef-``.
        """
        if not isinstance(ref, str):
            return ref, True

        doc_ref, element_id = split_document_ref(ref)
        if doc_ref:
            sibling_scope = self._sibling_scopes[index].get(doc_ref)
            if sibling_scope is not None:
                return self._ids.resolve(element_id, sibling_scope)
            renamed = self._document_ref_renames[index].get(doc_ref)
            return (f"{renamed}:{element_id}" if renamed else ref), True

        if is_document_id(element_id, doc):
            return out.creation_info.spdx_id, True
        return self._ids.resolve(element_id, self._scope(doc, index))

    def _rewrite_relationships(self, doc: Document, index: int, out: Document) -> List[Relationship]:
        rewritten: List[Relationship] = []
        for rel in doc.relationships:
            if rel.relationship_type == RelationshipType.DESCRIBES:
                continue

            element, element_found = self._resolve_element(rel.spdx_element_id, doc, index, out)
            related, related_found = self._resolve_element(rel.related_spdx_element_id, doc, index, out)
            if not element_found or not related_found:
                missing = rel.spdx_element_id if not element_found else str(rel.related_spdx_element_id)
                self._dangling.record(missing, rel.spdx_element_id, str(rel.related_spdx_element_id))
                self._merge_statistics["skipped"] += 1
                self._merge_statistics["dropped_edges"] += 1
                continue

            rewritten.append(Relationship(element, rel.relationship_type, related, rel.comment))
        return rewritten

    def _rewrite_annotations(self, doc: Document, index: int, out: Document) -> None:
        """Carry annotations over onto the cloned elements; those on dropped elements are lost."""
        for annotation in doc.annotations:
            target, found = self._resolve_element(annotation.spdx_id, doc, index, out)
            if not found:
                logger.debug(f"Dropping annotation on unresolved element {annotation.spdx_id}")
                continue
            clone = copy.deepcopy(annotation)
            clone.spdx_id = target
            out.annotations.append(clone)

    @staticmethod
    def _unique(relationships: List[Relationship]) -> List[Relationship]:
        seen: Set[str] = set()
        unique: List[Relationship] = []
        for rel in relationships:
            key = relationship_key(rel)
            if key in seen:
                continue
            seen.add(key)
            unique.append(rel)
        return unique

    def _prune_relationships(self, out: Document) -> None:
        """Drop relationships with a local end that is not an element of the output."""
        valid = set(element_ids(out))

        def is_valid(ref: ElementRef) -> bool:
            if not isinstance(ref, str) or split_document_ref(ref)[0]:
                return True
            return ref in valid

        kept: List[Relationship] = []
        for rel in out.relationships:
            if is_valid(rel.spdx_element_id) and is_valid(rel.related_spdx_element_id):
                kept.append(rel)
                continue
            related = str(rel.related_spdx_element_id)
            self._dangling.record(related, rel.spdx_element_id, related)
            self._merge_statistics["dropped_edges"] += 1
        out.relationships = kept

    @property
    def dangling_references(self) -> DanglingReferences:
        return self._dangling

    def get_merge_statistics(self) -> Dict[str, int]:
        return self._merge_statistics.copy()


def merge_documents(docs: List[Document], config: AppConfig,
                    strategy: Optional[str] = None) -> Document:
    """
    Merge SPDX documents with a fresh merger.

    Raises:
        MergeError: If the merge fails
    """
    merger = SpdxMerger(config)
    try:
        return merger.merge(docs, strategy)
    except SBOMAssemblerError:
        raise
    except Exception as e:
        raise MergeError(f"failed to merge SPDX documents: {e}",
                         strategy=strategy or config.assemble.strategy, cause=e)
