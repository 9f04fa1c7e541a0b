"""
Identifier service for assigning fresh, unique element ids during a merge.
"""

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Tuple

from cyclonedx.model.component import Component
from spdx_tools.spdx.model import Package

from ..documents.cyclonedx import ref_of, set_ref

logger = logging.getLogger(__name__)


def new_bom_ref() -> str:
    """Generate a CycloneDX bom-ref that is unique for the lifetime of a merge."""
    return f"ref-{uuid.uuid4().hex}"


def new_spdx_id(kind: str = "Package") -> str:
    """Generate an SPDX element id such as ``SPDXRef-Package-<hex>``."""
    return f"SPDXRef-{kind}-{uuid.uuid4().hex}"


class IdentifierService(ABC):
    """
    Clones elements under new ids and remembers how to rewrite references to them.

    Input ids are only unique within their own document, so every lookup is
    scoped: CycloneDX merges use the input position as the scope and SPDX
    merges use the document namespace. Elements sharing a canonical
    ``(type, name, version)`` key collapse onto the first stored clone.

    One service belongs to exactly one merge.
    """

    def __init__(self):
        self._clones: Dict[str, Any] = {}
        self._id_map: Dict[str, str] = {}
        self._statistics = {
            "stored": 0,
            "duplicates": 0,
            "resolved": 0,
            "unresolved": 0
        }

    @abstractmethod
    def _canonical_key(self, item: Any) -> str:
        """Deduplication key of an element."""

    @abstractmethod
    def _get_id(self, item: Any) -> str:
        """Current id of an element."""

    @abstractmethod
    def _assign_new_id(self, item: Any, scope: str) -> str:
        """Give a cloned element a fresh id and return it."""

    def _record_duplicate_children(self, item: Any, found: Any, scope: str) -> None:
        """Map ids below a folded duplicate onto the stored clone; elements without children do nothing."""

    @staticmethod
    def _lookup_key(ref: str, scope: str) -> str:
        return f"{scope}:{ref}" if scope else ref

    def record(self, old_id: str, new_id: str, scope: str = "") -> None:
        """Record that ``old_id`` in ``scope`` is now ``new_id``."""
        if old_id:
            self._id_map[self._lookup_key(old_id, scope)] = new_id

    def store_and_clone_with_new_id(self, item: Any, scope: str = "") -> Tuple[Any, bool]:
        """
        Clone an element under a fresh id, collapsing duplicates.

        Args:
            item: Component or package from an input document
            scope: Scope of the input ids (document position or namespace)

        Returns:
            Tuple of (clone, duplicate). For a duplicate the earlier clone is
            returned and the element's old id is mapped onto it.
        """
        key = self._canonical_key(item)
        old_id = self._get_id(item)

        found = self._clones.get(key)
        if found is not None:
            self._statistics["duplicates"] += 1
            self.record(old_id, self._get_id(found), scope)
            self._record_duplicate_children(item, found, scope)
            logger.debug(f"Duplicate element {key}, folded into {self._get_id(found)}")
            return found, True

        clone = copy.deepcopy(item)
        new_id = self._assign_new_id(clone, scope)
        self._clones[key] = clone
        self.record(old_id, new_id, scope)
        self._statistics["stored"] += 1
        return clone, False

    def store_with_new_id(self, item: Any, scope: str = "") -> Any:
        """Clone an element under a fresh id without deduplication."""
        old_id = self._get_id(item)
        clone = copy.deepcopy(item)
        new_id = self._assign_new_id(clone, scope)
        self.record(old_id, new_id, scope)
        self._statistics["stored"] += 1
        return clone

    def resolve(self, old_id: str, scope: str = "") -> Tuple[str, bool]:
        """
        Look up the output id of an input id.

        Returns:
            Tuple of (new id, found); the new id is empty when not found
        """
        new_id = self._id_map.get(self._lookup_key(old_id, scope))
        if new_id is None:
            self._statistics["unresolved"] += 1
            return "", False
        self._statistics["resolved"] += 1
        return new_id, True

    def resolve_all(self, old_ids: Iterable[str], scope: str = "") -> List[str]:
        """Resolve several ids, dropping the unresolvable ones and repeats."""
        resolved: List[str] = []
        for old_id in old_ids:
            new_id, found = self.resolve(old_id, scope)
            if found and new_id not in resolved:
                resolved.append(new_id)
        return resolved

    def get_statistics(self) -> Dict[str, int]:
        return self._statistics.copy()


class CycloneDXIdentifierService(IdentifierService):
    """Identifier service over CycloneDX components; nested components get fresh refs too."""

    def _canonical_key(self, item: Component) -> str:
        component_type = item.type.value if item.type is not None else ""
        return f"{component_type.lower()}-{item.name.lower()}-{(item.version or '').lower()}"

    def _get_id(self, item: Component) -> str:
        return ref_of(item)

    def _assign_new_id(self, item: Component, scope: str) -> str:
        for child in item.components:
            old_child_id = ref_of(child)
            self.record(old_child_id, self._assign_new_id(child, scope), scope)
        item.components = list(item.components)
        set_ref(item, new_bom_ref())
        return ref_of(item)

    def _record_duplicate_children(self, item: Component, found: Component, scope: str) -> None:
        stored = {self._canonical_key(c): c for c in found.components}
        for child in item.components:
            match = stored.get(self._canonical_key(child))
            if match is None:
                logger.debug(f"Nested component {child.name} of a duplicate has no counterpart in {ref_of(found)}")
                continue
            self.record(ref_of(child), ref_of(match), scope)
            self._record_duplicate_children(child, match, scope)


class SpdxIdentifierService(IdentifierService):
    """
    Identifier service over SPDX packages, files and snippets.

    The package type used for deduplication is its primary purpose.
    """

    def _canonical_key(self, item: Package) -> str:
        purpose = item.primary_package_purpose.name if item.primary_package_purpose else ""
        return f"{purpose.lower()}-{item.name.lower()}-{(item.version or '').lower()}"

    def _get_id(self, item: Any) -> str:
        return item.spdx_id

    def _assign_new_id(self, item: Any, scope: str) -> str:
        kind = type(item).__name__
        item.spdx_id = new_spdx_id(kind)
        return item.spdx_id
