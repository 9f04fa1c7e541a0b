"""Tests for the CycloneDX augment merge."""

import pytest
from cyclonedx.model import Property
from cyclonedx.model.component import ComponentScope
from cyclonedx.model.license import DisjunctiveLicense
from cyclonedx.model.tool import Tool, ToolRepository
from cyclonedx.model.vulnerability import BomTarget, Vulnerability, VulnerabilitySource

from sbom_assembler.assemblers import CycloneDXAugmenter
from sbom_assembler.assemblers.cyclonedx_augmenter import fill_missing_fields, overwrite_fields
from sbom_assembler.documents.cyclonedx import ref_of
from sbom_assembler.error_handling import MergeError

from conftest import deps, find_component, make_bom, make_component, make_config

TEXT_FIELDS = ("description", "author", "publisher", "group", "copyright", "cpe")


def augment_config(mode="if-missing-or-empty", **matcher):
    return make_config("augment", assemble={"primary_file": "primary.json", "merge_mode": mode},
                       matcher=matcher)


def make_primary(libz=None, dependencies=None):
    """Primary P: application product@1.0 with libz@1.0 under ref ``z``."""
    return make_bom(
        primary=make_component("product", "1.0", type="application"),
        components=[libz or make_component("libz", "1.0", ref="z")],
        dependencies=dependencies or {"product@1.0": ["z"]}
    )


def make_secondary(libw_ref="s-w", dependencies=None):
    """Secondary S: libz@1.0 with a description and a new libw@1.0 it depends on."""
    return make_bom(
        primary=make_component("scan", "0", type="application"),
        components=[
            make_component("libz", "1.0", ref="s-z", description="Z lib"),
            make_component("libw", "1.0", ref=libw_ref),
        ],
        dependencies=dependencies or {"s-z": ["s-w"], "unrelated": ["also-unrelated"]}
    )


@pytest.fixture
def primary_bom():
    return make_primary()


@pytest.fixture
def secondary_bom():
    return make_secondary()


def nvd(vuln_id, *refs):
    return Vulnerability(id=vuln_id, source=VulnerabilitySource(name="NVD"),
                         affects=[BomTarget(ref=r) for r in refs])


class TestAugmentScenario:
    """Enriching a primary document in place."""

    def test_fills_and_appends(self, primary_bom, secondary_bom):
        augmenter = CycloneDXAugmenter(augment_config())
        out = augmenter.merge(primary_bom, [secondary_bom])

        assert out is primary_bom
        assert sorted(c.name for c in out.components) == ["libw", "libz"]
        libz = find_component(out, "libz")
        assert libz.description == "Z lib"
        assert ref_of(libz) == "z"
        assert ref_of(find_component(out, "libw")) == "s-w"
        assert out.metadata.component.name == "product"
        assert deps(out)["z"] == {"s-w"}
        assert deps(out)["product@1.0"] == {"z"}

        statistics = augmenter.get_merge_statistics()
        assert statistics["matched"] == 1
        assert statistics["added"] == 1
        assert statistics["skipped"] == 1
        assert augmenter.processed_refs == {"s-z": "z", "s-w": "s-w"}
        assert augmenter.added_refs == {"s-w"}

    def test_colliding_ref_renamed(self, primary_bom):
        """An added component whose ref exists in the primary gets a fresh one."""
        secondary = make_secondary(libw_ref="z", dependencies={"s-z": ["z"]})
        out = CycloneDXAugmenter(augment_config()).merge(primary_bom, [secondary])

        libw_ref = ref_of(find_component(out, "libw"))
        assert libw_ref not in ("z", "s-w")
        assert deps(out)["z"] == {libw_ref}

    def test_existing_edges_extended(self, secondary_bom):
        """A secondary edge from a matched component extends the primary entry."""
        primary = make_primary(dependencies={"product@1.0": ["z"], "z": []})
        out = CycloneDXAugmenter(augment_config()).merge(primary, [secondary_bom])
        assert [d.ref.value for d in out.dependencies].count("z") == 1
        assert deps(out)["z"] == {"s-w"}

    def test_invalid_target_skipped(self, primary_bom):
        secondary = make_secondary(dependencies={"s-z": ["s-w", "ghost"]})
        augmenter = CycloneDXAugmenter(augment_config())
        out = augmenter.merge(primary_bom, [secondary])
        assert deps(out)["z"] == {"s-w"}
        assert augmenter.dangling_references.references() == ["ghost"]

    def test_matches_primary_component(self, primary_bom):
        """The primary's own metadata component is matchable."""
        secondary = make_bom(components=[make_component("product", "1.0", type="application",
                                                        description="The product")])
        out = CycloneDXAugmenter(augment_config()).merge(primary_bom, [secondary])
        assert out.metadata.component.description == "The product"
        assert len(out.components) == 1

    def test_vulnerabilities_appended_once(self, primary_bom, secondary_bom):
        primary_bom.vulnerabilities = [nvd("CVE-1")]
        secondary_bom.vulnerabilities = [nvd("CVE-1"), nvd("CVE-2", "s-z", "nope")]
        out = CycloneDXAugmenter(augment_config()).merge(primary_bom, [secondary_bom])

        assert sorted(v.id for v in out.vulnerabilities) == ["CVE-1", "CVE-2"]
        added = next(v for v in out.vulnerabilities if v.id == "CVE-2")
        assert [a.ref for a in added.affects] == ["z"]

    def test_tool_added_once(self, primary_bom, secondary_bom):
        augmenter = CycloneDXAugmenter(augment_config())
        augmenter.merge(primary_bom, [secondary_bom])
        augmenter.merge(primary_bom, [make_secondary()])
        assert [c.name for c in primary_bom.metadata.tools.components] == ["sbom-assembler"]
        assert primary_bom.metadata.timestamp.tzinfo is not None

    def test_legacy_tools_kept_legacy(self, primary_bom, secondary_bom):
        primary_bom.metadata.tools = ToolRepository(tools=[Tool(name="syft")])
        CycloneDXAugmenter(augment_config()).merge(primary_bom, [secondary_bom])
        assert sorted(t.name for t in primary_bom.metadata.tools.tools) == ["sbom-assembler", "syft"]
        assert len(primary_bom.metadata.tools.components) == 0

    def test_failure_names_secondary(self, primary_bom, monkeypatch):
        def broken(self, comp, existing_refs):
            raise ValueError("cannot copy")

        monkeypatch.setattr(CycloneDXAugmenter, "_clone_for_primary", broken)
        secondary = make_bom(components=[make_component("libq", "1.0")])
        with pytest.raises(MergeError, match="failed to process secondary SBOM 1"):
            CycloneDXAugmenter(augment_config()).merge(primary_bom, [secondary])


class TestMergeModes:
    """Field precedence rules."""

    def test_fill_keeps_primary_values(self):
        """Non-empty primary fields survive; empty ones take the first secondary value."""
        kept, filled = TEXT_FIELDS[:3], TEXT_FIELDS[3:]
        primary = make_component("lib", "1.0", **{name: f"primary-{name}" for name in kept})
        first = make_component("lib", "1.0", purl="pkg:npm/lib@1.0", scope=ComponentScope.REQUIRED,
                               **{name: f"first-{name}" for name in TEXT_FIELDS})
        second = make_component("lib", "1.0", purl="pkg:npm/other@1.0", scope=ComponentScope.OPTIONAL,
                                **{name: f"second-{name}" for name in TEXT_FIELDS})

        fill_missing_fields(primary, first)
        fill_missing_fields(primary, second)

        for name in kept:
            assert getattr(primary, name) == f"primary-{name}"
        for name in filled:
            assert getattr(primary, name) == f"first-{name}"
        assert str(primary.purl) == "pkg:npm/lib@1.0"
        assert primary.scope == ComponentScope.REQUIRED

    def test_overwrite_takes_last_non_empty(self):
        primary = make_component("lib", "1.0", description="primary", purl="pkg:npm/lib@1.0")
        first = make_component("lib", "1.0", description="first", author="first-author")
        second = make_component("lib", "1.0", description="second")

        overwrite_fields(primary, first)
        overwrite_fields(primary, second)

        assert primary.description == "second"
        assert primary.author == "first-author"
        assert str(primary.purl) == "pkg:npm/lib@1.0"

    def test_list_fields(self):
        primary = make_component("lib", "1.0", licenses=[DisjunctiveLicense(id="MIT")])
        secondary = make_component("lib", "1.0", licenses=[DisjunctiveLicense(id="GPL-2.0-only")],
                                   properties=[Property(name="k", value="v")])
        fill_missing_fields(primary, secondary)
        assert [lic.id for lic in primary.licenses] == ["MIT"]
        assert [(p.name, p.value) for p in primary.properties] == [("k", "v")]

        overwrite_fields(primary, secondary)
        assert [lic.id for lic in primary.licenses] == ["GPL-2.0-only"]

    def test_overwrite_mode_end_to_end(self):
        primary = make_primary(libz=make_component("libz", "1.0", ref="z", description="original"))
        secondaries = [
            make_bom(components=[make_component("libz", "1.0", description="first")]),
            make_bom(components=[make_component("libz", "1.0", description="second")]),
        ]
        out = CycloneDXAugmenter(augment_config("overwrite")).merge(primary, secondaries)
        assert find_component(out, "libz").description == "second"

    def test_fill_mode_end_to_end(self, primary_bom):
        secondaries = [
            make_bom(components=[make_component("libz", "1.0", description="first")]),
            make_bom(components=[make_component("libz", "1.0", description="second")]),
        ]
        out = CycloneDXAugmenter(augment_config()).merge(primary_bom, secondaries)
        assert find_component(out, "libz").description == "first"

    def test_purl_strategy_matches_across_versions(self):
        primary = make_primary(libz=make_component("libz", "1.0", ref="z", purl="pkg:npm/libz@1.0"))
        secondary = make_bom(components=[make_component("libz", "1.1", purl="pkg:npm/libz@1.1",
                                                        description="newer")])
        out = CycloneDXAugmenter(augment_config(strategy="purl")).merge(primary, [secondary])
        assert len(out.components) == 1
        assert find_component(out, "libz").description == "newer"
