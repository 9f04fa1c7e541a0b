"""
Helpers over cyclonedx-python-lib BOMs.

Collections in the library are sorted sets ordered by field values. A
component whose bom-ref or identity fields change while it sits in such a
set must be re-inserted; :func:`resort_components` does that for a whole
component tree.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

from cyclonedx.model.bom import Bom
from cyclonedx.model.bom_ref import BomRef
from cyclonedx.model.component import Component
from cyclonedx.model.dependency import Dependency
from packageurl import PackageURL

logger = logging.getLogger(__name__)

DEFAULT_SPEC_VERSION = "1.6"


def ref_of(item: Any) -> str:
    """bom-ref value of a component or service, empty when unset."""
    bom_ref = getattr(item, "bom_ref", None)
    if bom_ref is None:
        return ""
    return bom_ref.value or ""


def set_ref(item: Any, value: str) -> None:
    item.bom_ref.value = value


def iter_nested(component: Component) -> Iterator[Component]:
    """Yield the nested components of ``component``, depth first, excluding itself."""
    for child in component.components:
        yield child
        yield from iter_nested(child)


def iter_components(bom: Bom) -> Iterator[Component]:
    """Yield top-level components and their nested components, depth first."""
    for comp in bom.components:
        yield comp
        yield from iter_nested(comp)


def all_refs(bom: Bom) -> List[str]:
    """Every bom-ref defined by the primary component, components and top-level services."""
    refs = []
    primary = bom.metadata.component
    if primary is not None:
        refs.append(ref_of(primary))
        refs.extend(ref_of(c) for c in iter_nested(primary))
    refs.extend(ref_of(c) for c in iter_components(bom))
    refs.extend(ref_of(s) for s in bom.services)
    return [r for r in refs if r]


def resort_components(components: Iterable[Component]) -> List[Component]:
    """
    Rebuild the nested component sets below ``components``.

    Returns:
        The components as a list, ready to assign to a sorted-set attribute
    """
    result = []
    for comp in components:
        if comp.components:
            comp.components = resort_components(comp.components)
        result.append(comp)
    return result


def dependency_map(bom: Bom) -> Dict[str, List[str]]:
    """Dependency graph of ``bom`` as ``{ref: [target refs]}``."""
    edges: Dict[str, List[str]] = {}
    for dep in bom.dependencies:
        targets = edges.setdefault(dep.ref.value or "", [])
        targets.extend(t.ref.value for t in dep.dependencies if t.ref.value)
    edges.pop("", None)
    return edges


def make_dependency(ref: str, targets: Iterable[str]) -> Dependency:
    return Dependency(ref=BomRef(ref), dependencies=[Dependency(ref=BomRef(t)) for t in targets])


def build_dependencies(edges: Dict[str, List[str]]) -> List[Dependency]:
    return [make_dependency(ref, targets) for ref, targets in edges.items()]


def purl_string(component: Component) -> str:
    return str(component.purl) if component.purl is not None else ""


def parse_purl(value: str) -> Optional[PackageURL]:
    """Parse a package URL, None when ``value`` is empty or malformed."""
    if not value:
        return None
    try:
        return PackageURL.from_string(value)
    except ValueError as e:
        logger.debug(f"Ignoring malformed purl {value!r}: {e}")
        return None
