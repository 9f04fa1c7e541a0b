"""
Aggregation of document-level metadata across input SBOMs.
"""

import copy
import hashlib
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set, Tuple

from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentType
from cyclonedx.model.contact import OrganizationalEntity
from cyclonedx.model.service import Service
from cyclonedx.model.tool import ToolRepository
from spdx_tools.spdx.model import (
    Actor, ActorType, Document, ExternalDocumentRef, ExtractedLicensingInfo
)
from spdx_tools.spdx.model.version import Version

from .. import __version__, TOOL_NAME, TOOL_VENDOR, TOOL_DESCRIPTION
from ..config import AuthorConfig

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current time in UTC, to the second."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def spdx_created() -> datetime:
    """Creation time for SPDX documents; spdx-tools expects naive UTC datetimes."""
    return utc_now().replace(tzinfo=None)


def tool_component() -> Component:
    """The tools entry identifying this assembler."""
    return Component(
        name=TOOL_NAME,
        type=ComponentType.APPLICATION,
        version=__version__,
        description=TOOL_DESCRIPTION,
        supplier=OrganizationalEntity(name=TOOL_VENDOR)
    )


def tool_creator() -> Actor:
    """The SPDX creator entry identifying this assembler."""
    return Actor(ActorType.TOOL, f"{TOOL_NAME}-{__version__}")


def creator_key(actor: Actor) -> Tuple[str, str, str]:
    return actor.actor_type.name, actor.name.strip().lower(), (actor.email or "").strip().lower()


class MetadataAggregator:
    """
    Combines tools, creators, licenses and references from several inputs.

    Deduplication always keeps the first occurrence, so entries appear in
    input order after this tool's own entry.
    """

    def __init__(self):
        self._statistics = {
            "tools": 0,
            "duplicate_tools": 0,
            "creators": 0,
            "other_licenses": 0,
            "duplicate_licenses": 0,
            "renamed_document_refs": 0
        }

    def aggregate_tools(self, boms: Iterable[Bom]) -> ToolRepository:
        """
        Union the tools of CycloneDX inputs, with this tool first.

        Legacy tool records are converted to application components; the
        library emits them in whichever shape the output spec version needs.

        Args:
            boms: Input documents in merge order

        Returns:
            Deduplicated tools
        """
        components: List[Component] = [tool_component()]
        services: List[Service] = []
        seen: Set[Tuple[str, str]] = {(TOOL_NAME.lower(), __version__.lower())}
        seen_services: Set[Tuple[str, str]] = set()

        def add_component(comp: Component) -> None:
            key = (comp.name.lower(), (comp.version or "").lower())
            if key in seen:
                self._statistics["duplicate_tools"] += 1
                return
            seen.add(key)
            components.append(comp)

        for bom in boms:
            tools = bom.metadata.tools
            for tool in tools.tools:
                if not tool.name:
                    continue
                add_component(Component(
                    name=tool.name,
                    type=ComponentType.APPLICATION,
                    version=tool.version,
                    supplier=OrganizationalEntity(name=tool.vendor) if tool.vendor else None
                ))
            for comp in tools.components:
                add_component(copy.deepcopy(comp))
            for service in tools.services:
                key = (service.name.lower(), (service.version or "").lower())
                if key in seen_services:
                    self._statistics["duplicate_tools"] += 1
                    continue
                seen_services.add(key)
                services.append(Service(
                    name=service.name,
                    version=service.version,
                    group=service.group,
                    provider=service.provider
                ))

        self._statistics["tools"] = len(components) + len(services)
        logger.debug(f"Aggregated {self._statistics['tools']} tools")
        return ToolRepository(components=components, services=services)

    def aggregate_creators(self, docs: Iterable[Document],
                           authors: Optional[List[AuthorConfig]] = None) -> List[Actor]:
        """
        Union SPDX creators: this tool, configured authors, then input creators.

        Args:
            docs: Input documents in merge order
            authors: Authors from the application configuration

        Returns:
            Deduplicated creators
        """
        creators = [tool_creator()]
        for author in authors or []:
            if author.name:
                creators.append(Actor(ActorType.PERSON, author.name, author.email or None))

        for doc in docs:
            creators.extend(doc.creation_info.creators)

        unique: List[Actor] = []
        seen: Set[Tuple[str, str, str]] = set()
        for creator in creators:
            key = creator_key(creator)
            if key in seen:
                continue
            seen.add(key)
            unique.append(creator)

        self._statistics["creators"] = len(unique)
        return unique

    def license_list_version(self, docs: Iterable[Document]) -> Optional[Version]:
        """Highest license list version among the inputs."""
        versions = [d.creation_info.license_list_version for d in docs
                    if d.creation_info.license_list_version is not None]
        if not versions:
            return None
        return max(versions, key=lambda v: (v.major, v.minor))

    def creator_comments(self, docs: Iterable[Document]) -> Optional[str]:
        comments = [d.creation_info.creator_comment for d in docs if d.creation_info.creator_comment]
        return "\n".join(comments) or None

    def external_document_refs(
        self, docs: List[Document]
    ) -> Tuple[List[ExternalDocumentRef], List[Dict[str, str]]]:
        """
        External document references of the inputs, excluding the inputs themselves.

        A reference to a document that is part of this merge set would
        point at content now inlined in the output. References are unique by
        (id, document URI); a later input that binds an id already taken by a
        different document gets the id with a ``-2``, ``-3``... suffix.

        Args:
            docs: Input documents in merge order

        Returns:
            Tuple of (references, renames) where ``renames[i]`` maps the
            original ids of input ``i`` to their output ids
        """
        namespaces = {d.creation_info.document_namespace for d in docs}
        refs: List[ExternalDocumentRef] = []
        bound: Dict[str, str] = {}
        renames: List[Dict[str, str]] = []

        for doc in docs:
            doc_renames: Dict[str, str] = {}
            for ref in doc.creation_info.external_document_refs:
                if ref.document_uri in namespaces:
                    continue
                ref_id = ref.document_ref_id
                out_id = ref_id
                suffix = 1
                while out_id in bound and bound[out_id] != ref.document_uri:
                    suffix += 1
                    out_id = f"{ref_id}-{suffix}"

                if out_id != ref_id:
                    doc_renames[ref_id] = out_id
                    self._statistics["renamed_document_refs"] += 1
                    logger.warning(
                        f"{ref_id} in {doc.creation_info.document_namespace} names another document "
                        f"than an earlier input, renamed to {out_id}"
                    )
                if out_id in bound:
                    continue
                bound[out_id] = ref.document_uri
                refs.append(ExternalDocumentRef(out_id, ref.document_uri, copy.deepcopy(ref.checksum)))
            renames.append(doc_renames)

        return refs, renames

    def other_licenses(self, docs: Iterable[Document]) -> List[ExtractedLicensingInfo]:
        """Union of extracted licenses keyed by a digest of id and text."""
        licenses: List[ExtractedLicensingInfo] = []
        seen: Set[str] = set()
        for doc in docs:
            for lic in doc.extracted_licensing_info:
                digest = hashlib.sha256(f"{lic.license_id}{lic.extracted_text}".encode("utf-8")).hexdigest()
                if digest in seen:
                    self._statistics["duplicate_licenses"] += 1
                    continue
                seen.add(digest)
                licenses.append(lic)
        self._statistics["other_licenses"] = len(licenses)
        return licenses

    def get_aggregation_statistics(self) -> Dict[str, int]:
        return self._statistics.copy()
