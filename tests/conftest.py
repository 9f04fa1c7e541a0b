"""
Shared test fixtures and document builders.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

import pytest
from cyclonedx.model.bom import Bom, BomMetaData
from cyclonedx.model.component import Component, ComponentType
from packageurl import PackageURL
from spdx_tools.spdx.model import (
    Actor, ActorType, CreationInfo, Document, ExternalPackageRef, ExternalPackageRefCategory,
    Package, Relationship, RelationshipType, SpdxNoAssertion
)

from sbom_assembler.config import AppConfig
from sbom_assembler.documents.cyclonedx import build_dependencies, dependency_map, iter_components
from sbom_assembler.documents.spdx import related_id


def make_component(name: str, version: str, ref: Optional[str] = None,
                   type: str = "library", purl: str = "", **fields) -> Component:
    """Factory for a CycloneDX component whose bom-ref defaults to ``name@version``."""
    return Component(name=name, version=version, type=ComponentType(type) if type else None,
                     bom_ref=ref if ref is not None else f"{name}@{version}",
                     purl=PackageURL.from_string(purl) if purl else None, **fields)


def make_bom(primary: Optional[Component] = None, components: Sequence[Component] = (),
             dependencies: Optional[Dict[str, List[str]]] = None) -> Bom:
    """Factory for a CycloneDX document; ``dependencies`` maps a ref to its targets."""
    return Bom(
        metadata=BomMetaData(component=primary),
        components=list(components),
        dependencies=build_dependencies(dict(dependencies or {}))
    )


def make_package(spdx_id: str, name: str, version: str = "", purl: str = "", **fields) -> Package:
    """Factory for an SPDX package, optionally carrying a purl external ref."""
    fields.setdefault("download_location", SpdxNoAssertion())
    pkg = Package(spdx_id=spdx_id, name=name, version=version or None, **fields)
    if purl:
        pkg.external_references.append(
            ExternalPackageRef(ExternalPackageRefCategory.PACKAGE_MANAGER, "purl", purl)
        )
    return pkg


def make_spdx(name: str, packages: Sequence[Package] = (), described: Sequence[str] = (),
              relationships: Sequence[Relationship] = (), namespace: Optional[str] = None) -> Document:
    """Factory for an SPDX document describing the ``described`` package ids."""
    creation_info = CreationInfo(
        spdx_version="SPDX-2.3",
        spdx_id="SPDXRef-DOCUMENT",
        name=name,
        document_namespace=namespace if namespace is not None else f"https://example.com/spdx/{name}",
        creators=[Actor(ActorType.TOOL, f"{name}-gen")],
        created=datetime(2024, 1, 1)
    )
    doc = Document(creation_info, packages=list(packages))
    for target in described:
        doc.relationships.append(Relationship("SPDXRef-DOCUMENT", RelationshipType.DESCRIBES, target))
    doc.relationships.extend(relationships)
    return doc


def make_config(strategy: str = "hierarchical", **sections) -> AppConfig:
    """
    Factory for an application configuration named ``app@1.0.0``.

    Keyword arguments name a section and a dict of attributes to set on it.
    """
    config = AppConfig()
    config.app.name = "app"
    config.app.version = "1.0.0"
    setattr(config.assemble, f"{strategy}_merge", True)
    for section, values in sections.items():
        target = getattr(config, section)
        for key, value in values.items():
            setattr(target, key, value)
    return config


def deps(bom: Bom) -> Dict[str, Set[str]]:
    """Dependency graph of ``bom`` as ``{ref: {targets}}``."""
    return {ref: set(targets) for ref, targets in dependency_map(bom).items()}


def edge_refs(bom: Bom) -> List[str]:
    """Every ref mentioned by a dependency entry of ``bom``."""
    refs = []
    for ref, targets in dependency_map(bom).items():
        refs.append(ref)
        refs.extend(targets)
    return refs


def names(components) -> List[str]:
    """Sorted ``name@version`` labels of ``components``."""
    return sorted(f"{c.name}@{c.version}" for c in components)


def find_component(bom: Bom, name: str) -> Component:
    """Component called ``name`` anywhere in ``bom``, the primary and its nested ones included."""
    primary = bom.metadata.component
    candidates = [primary] + list(primary.get_all_nested_components()) + list(iter_components(bom))
    return next(c for c in candidates if c.name == name)


def triples(doc: Document) -> Set[tuple]:
    """Relationships of ``doc`` as ``(element, type name, related)`` triples."""
    return {(r.spdx_element_id, r.relationship_type.name, related_id(r)) for r in doc.relationships}


def cdx_json(primary: Optional[dict] = None, components: Sequence[dict] = (),
             dependencies: Sequence[dict] = (), spec_version: str = "1.5") -> str:
    """Serialized CycloneDX JSON input for file based tests."""
    data = {
        "bomFormat": "CycloneDX",
        "specVersion": spec_version,
        "version": 1,
        "metadata": {"component": primary} if primary else {},
        "components": list(components),
        "dependencies": list(dependencies)
    }
    return json.dumps(data, indent=2)


def spdx_json(name: str, packages: Sequence[dict] = (), relationships: Sequence[dict] = ()) -> str:
    """Serialized SPDX JSON input for file based tests."""
    data = {
        "spdxVersion": "SPDX-2.3",
        "dataLicense": "CC0-1.0",
        "SPDXID": "SPDXRef-DOCUMENT",
        "name": name,
        "documentNamespace": f"https://example.com/spdx/{name}",
        "creationInfo": {"created": "2024-01-01T00:00:00Z", "creators": [f"Tool: {name}-gen"]},
        "packages": list(packages),
        "relationships": list(relationships)
    }
    return json.dumps(data, indent=2)


@pytest.fixture
def alpha_bom() -> Bom:
    """Input A: primary alpha@1.0 with component libx@2.0."""
    return make_bom(
        primary=make_component("alpha", "1.0", type="application"),
        components=[make_component("libx", "2.0")],
        dependencies={"alpha@1.0": ["libx@2.0"]}
    )


@pytest.fixture
def beta_bom() -> Bom:
    """Input B: primary beta@1.0 with component liby@3.0."""
    return make_bom(
        primary=make_component("beta", "1.0", type="application"),
        components=[make_component("liby", "3.0")],
        dependencies={"beta@1.0": ["liby@3.0"]}
    )


@pytest.fixture
def cdx_files(tmp_path: Path) -> List[Path]:
    """Two CycloneDX JSON files on disk, with alpha and beta primaries."""
    first = tmp_path / "alpha.cdx.json"
    first.write_text(cdx_json(
        primary={"type": "application", "name": "alpha", "version": "1.0", "bom-ref": "alpha"},
        components=[{"type": "library", "name": "libx", "version": "2.0", "bom-ref": "libx"}],
        dependencies=[{"ref": "alpha", "dependsOn": ["libx"]}]
    ))
    second = tmp_path / "beta.cdx.json"
    second.write_text(cdx_json(
        primary={"type": "application", "name": "beta", "version": "1.0", "bom-ref": "beta"},
        components=[{"type": "library", "name": "liby", "version": "3.0", "bom-ref": "liby"}],
        dependencies=[{"ref": "beta", "dependsOn": ["liby"]}]
    ))
    return [first, second]


@pytest.fixture
def spdx_files(tmp_path: Path) -> List[Path]:
    """Two SPDX JSON files on disk, each describing one package."""
    paths = []
    for name in ("a", "b"):
        path = tmp_path / f"{name}.spdx.json"
        path.write_text(spdx_json(
            name,
            packages=[{"SPDXID": f"SPDXRef-{name.upper()}", "name": name, "versionInfo": "1.0",
                       "downloadLocation": "NOASSERTION"}],
            relationships=[{"spdxElementId": "SPDXRef-DOCUMENT", "relationshipType": "DESCRIBES",
                            "relatedSpdxElement": f"SPDXRef-{name.upper()}"}]
        ))
        paths.append(path)
    return paths
