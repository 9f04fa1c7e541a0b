"""Tests for the CycloneDX build-new strategies."""

import pytest
from cyclonedx.model import HashAlgorithm
from cyclonedx.model.component import ComponentType
from cyclonedx.model.service import Service
from cyclonedx.model.tool import Tool, ToolRepository
from cyclonedx.model.vulnerability import BomTarget, Vulnerability, VulnerabilitySource

from sbom_assembler.assemblers import CycloneDXMerger, merge_boms
from sbom_assembler.config import AuthorConfig, ChecksumConfig
from sbom_assembler.documents.cyclonedx import all_refs, iter_components, ref_of
from sbom_assembler.error_handling import MergeError

from conftest import deps, edge_refs, find_component, make_bom, make_component, make_config, names


def ref(bom, name):
    return ref_of(find_component(bom, name))


def alpha_with(components=(), dependencies=None):
    """alpha@1.0 with libx@2.0 plus extra components and edges."""
    return make_bom(
        primary=make_component("alpha", "1.0", type="application"),
        components=[make_component("libx", "2.0")] + list(components),
        dependencies=dependencies or {"alpha@1.0": ["libx@2.0"]}
    )


class TestFlatMerge:
    """All components at the top level."""

    def test_flat_scenario(self, alpha_bom, beta_bom):
        """Primaries and components at the top level, under fresh refs."""
        merger = CycloneDXMerger(make_config("flat"))
        out = merger.merge([alpha_bom, beta_bom])

        assert out.metadata.component.name == "app"
        assert out.metadata.component.version == "1.0.0"
        assert names(out.components) == ["alpha@1.0", "beta@1.0", "libx@2.0", "liby@3.0"]
        assert all(len(c.components) == 0 for c in out.components)
        assert not {"alpha@1.0", "beta@1.0", "libx@2.0", "liby@3.0"} & set(all_refs(out))

        app_ref = ref_of(out.metadata.component)
        assert deps(out)[app_ref] == {ref(out, "alpha"), ref(out, "beta")}

    def test_input_edges_rewritten(self, alpha_bom, beta_bom):
        out = CycloneDXMerger(make_config("flat")).merge([alpha_bom, beta_bom])
        assert deps(out)[ref(out, "alpha")] == {ref(out, "libx")}

    def test_inputs_untouched(self, alpha_bom, beta_bom):
        CycloneDXMerger(make_config("flat")).merge([alpha_bom, beta_bom])
        assert [ref_of(c) for c in alpha_bom.components] == ["libx@2.0"]


class TestHierarchicalMerge:
    """Components nested under their input's primary."""

    def test_hierarchical_scenario(self, alpha_bom, beta_bom):
        out = CycloneDXMerger(make_config("hierarchical")).merge([alpha_bom, beta_bom])

        assert names(out.components) == ["alpha@1.0", "beta@1.0"]
        assert names(find_component(out, "alpha").components) == ["libx@2.0"]
        assert names(find_component(out, "beta").components) == ["liby@3.0"]
        assert deps(out)[ref_of(out.metadata.component)] == {ref(out, "alpha"), ref(out, "beta")}

    def test_unreferenced_components_still_nested(self, beta_bom):
        """A component no edge mentions is kept under its primary."""
        alpha = alpha_with(components=[make_component("loose", "0.1")])
        out = CycloneDXMerger(make_config("hierarchical")).merge([alpha, beta_bom])
        assert names(find_component(out, "alpha").components) == ["libx@2.0", "loose@0.1"]

    def test_shared_component_nested_once(self, alpha_bom):
        """A component in both inputs appears once, under the first primary."""
        beta = make_bom(
            primary=make_component("beta", "1.0", type="application"),
            components=[make_component("liby", "3.0"), make_component("libx", "2.0", ref="shared")],
            dependencies={"beta@1.0": ["liby@3.0", "shared"]}
        )
        out = CycloneDXMerger(make_config("hierarchical")).merge([alpha_bom, beta])
        assert names(find_component(out, "alpha").components) == ["libx@2.0"]
        assert names(find_component(out, "beta").components) == ["liby@3.0"]
        refs = all_refs(out)
        assert len(refs) == len(set(refs))
        assert deps(out)[ref(out, "beta")] == {ref(out, "liby"), ref(out, "libx")}

    def test_input_without_primary_stays_top_level(self, alpha_bom):
        orphan = make_bom(components=[make_component("libz", "1.0")])
        out = CycloneDXMerger(make_config("hierarchical")).merge([alpha_bom, orphan])
        assert names(out.components) == ["alpha@1.0", "libz@1.0"]


class TestAssemblyMerge:
    """Primaries nested under the output primary, components top level."""

    def test_assembly_layout(self, alpha_bom, beta_bom):
        out = CycloneDXMerger(make_config("assembly")).merge([alpha_bom, beta_bom])
        assert names(out.metadata.component.components) == ["alpha@1.0", "beta@1.0"]
        assert names(out.components) == ["libx@2.0", "liby@3.0"]
        assert ref_of(out.metadata.component) not in deps(out)

    def test_nested_primaries_count_as_elements(self, alpha_bom, beta_bom):
        out = CycloneDXMerger(make_config("assembly")).merge([alpha_bom, beta_bom])
        assert set(edge_refs(out)) <= set(all_refs(out))


class TestMergedDocumentShape:
    """Closure, uniqueness and deduplication across strategies."""

    @pytest.mark.parametrize("strategy", ["flat", "assembly", "hierarchical"])
    def test_reference_closure_and_uniqueness(self, strategy, alpha_bom):
        beta = make_bom(
            primary=make_component("beta", "1.0", type="application"),
            components=[make_component("liby", "3.0")],
            dependencies={"beta@1.0": ["liby@3.0", "ghost"]}
        )
        out = CycloneDXMerger(make_config(strategy)).merge([alpha_bom, beta])
        refs = all_refs(out)
        assert len(refs) == len(set(refs))
        assert set(edge_refs(out)) <= set(refs)

    @pytest.mark.parametrize("strategy", ["flat", "assembly", "hierarchical"])
    def test_duplicates_collapse_and_edges_redirect(self, strategy):
        """Two inputs sharing libx@2.0 yield one libx and both edges target it."""
        first = make_bom(primary=make_component("alpha", "1.0", type="application"),
                         components=[make_component("libx", "2.0", ref="x1")],
                         dependencies={"alpha@1.0": ["x1"]})
        second = make_bom(primary=make_component("beta", "1.0", type="application"),
                          components=[make_component("LibX", "2.0", ref="x2")],
                          dependencies={"beta@1.0": ["x2"]})
        merger = CycloneDXMerger(make_config(strategy))
        out = merger.merge([first, second])

        libs = [c for c in iter_components(out) if c.name.lower() == "libx"]
        assert len(libs) == 1
        graph = deps(out)
        for primary in ("alpha", "beta"):
            assert graph[ref(out, primary)] == {ref_of(libs[0])}
        assert merger.get_merge_statistics()["matched"] == 1

    def test_nested_children_of_duplicate_redirect(self):
        """Edges to a folded duplicate's nested component land on the stored clone's child."""
        def with_plugin(primary, component_ref, plugin_ref):
            lib = make_component("libx", "2.0", ref=component_ref,
                                 components=[make_component("plugin", "0.1", ref=plugin_ref)])
            return make_bom(primary=make_component(primary, "1.0", type="application"),
                            components=[lib],
                            dependencies={f"{primary}@1.0": [plugin_ref]})

        out = CycloneDXMerger(make_config("flat")).merge(
            [with_plugin("alpha", "x1", "p1"), with_plugin("beta", "x2", "p2")])

        plugins = [c for c in iter_components(out) if c.name == "plugin"]
        assert len(plugins) == 1
        graph = deps(out)
        assert graph[ref(out, "alpha")] == {ref_of(plugins[0])}
        assert graph[ref(out, "beta")] == {ref_of(plugins[0])}

    def test_dangling_target_dropped(self, beta_bom):
        """An edge to an undefined id is dropped and counted once as skipped."""
        alpha = alpha_with(dependencies={"alpha@1.0": ["libx@2.0", "nowhere"]})
        merger = CycloneDXMerger(make_config("flat"))
        out = merger.merge([alpha, beta_bom])

        statistics = merger.get_merge_statistics()
        assert statistics["skipped"] == 1
        assert merger.dangling_references.references() == ["nowhere"]
        assert deps(out)[ref(out, "alpha")] == {ref(out, "libx")}

    def test_edge_with_only_dangling_targets_dropped(self, beta_bom):
        alpha = alpha_with(dependencies={"alpha@1.0": ["nowhere"]})
        merger = CycloneDXMerger(make_config("flat"))
        out = merger.merge([alpha, beta_bom])
        assert ref(out, "alpha") not in deps(out)
        assert merger.get_merge_statistics()["dropped_edges"] == 1

    def test_unknown_source_dropped(self, beta_bom):
        alpha = alpha_with(dependencies={"alpha@1.0": ["libx@2.0"], "ghost": ["libx@2.0"]})
        merger = CycloneDXMerger(make_config("flat"))
        merger.merge([alpha, beta_bom])
        statistics = merger.get_merge_statistics()
        assert statistics["skipped"] == 1
        assert statistics["dropped_edges"] == 1

    def test_rejects_augment_strategy(self, alpha_bom, beta_bom):
        with pytest.raises(MergeError):
            CycloneDXMerger(make_config("flat")).merge([alpha_bom, beta_bom], "augment")


class TestMetadataAndExtras:
    """Output metadata, tools, services and vulnerabilities."""

    def test_primary_from_configuration(self, alpha_bom, beta_bom):
        config = make_config(
            "flat",
            app={"primary_purpose": "firmware", "purl": "pkg:generic/app@1.0.0",
                 "authors": [AuthorConfig(name="Jane", email="jane@example.com")],
                 "checksums": [ChecksumConfig(algorithm="BLAKE2B-256", value="abc")]}
        )
        config.app.license.id = "Apache-2.0"
        config.app.supplier.name = "Acme"

        out = CycloneDXMerger(config).merge([alpha_bom, beta_bom])
        primary = out.metadata.component
        assert primary.type == ComponentType.FIRMWARE
        assert str(primary.purl) == "pkg:generic/app@1.0.0"
        assert [lic.id for lic in primary.licenses] == ["Apache-2.0"]
        assert [(h.alg, h.content) for h in primary.hashes] == [(HashAlgorithm.BLAKE2B_256, "abc")]
        assert primary.supplier.name == "Acme"
        assert [a.email for a in out.metadata.authors] == ["jane@example.com"]
        assert [lic.id for lic in out.metadata.licenses] == ["CC0-1.0"]
        assert out.metadata.timestamp.tzinfo is not None

    def test_unsupported_checksum_skipped(self, alpha_bom, beta_bom):
        config = make_config("flat", app={"checksums": [ChecksumConfig(algorithm="CRC32", value="abc")]})
        out = CycloneDXMerger(config).merge([alpha_bom, beta_bom])
        assert len(out.metadata.component.hashes) == 0

    def test_unknown_purpose_defaults_to_application(self, alpha_bom, beta_bom):
        out = CycloneDXMerger(make_config("flat", app={"primary_purpose": "spaceship"})).merge(
            [alpha_bom, beta_bom])
        assert out.metadata.component.type == ComponentType.APPLICATION

    def test_tools_deduplicated_with_own_entry(self, alpha_bom, beta_bom):
        alpha_bom.metadata.tools = ToolRepository(tools=[Tool(name="syft", version="1.0")])
        beta_bom.metadata.tools = ToolRepository(
            components=[make_component("SYFT", "1.0", type="application")])
        out = CycloneDXMerger(make_config("flat")).merge([alpha_bom, beta_bom])
        assert sorted(c.name for c in out.metadata.tools.components) == ["sbom-assembler", "syft"]

    def test_services_deduplicated(self, alpha_bom):
        alpha_bom.services = [Service(name="api", version="1", bom_ref="svc")]
        beta = make_bom(
            primary=make_component("beta", "1.0", type="application"),
            components=[make_component("liby", "3.0")],
            dependencies={"beta@1.0": ["liby@3.0", "svc"]}
        )
        beta.services = [Service(name="API", version="1", bom_ref="svc")]
        out = CycloneDXMerger(make_config("flat")).merge([alpha_bom, beta])

        assert len(out.services) == 1
        service = next(iter(out.services))
        assert ref_of(service) in deps(out)[ref(out, "beta")]

    def test_vulnerabilities_deduplicated_with_affects_merged(self, alpha_bom, beta_bom):
        alpha_bom.vulnerabilities = [
            Vulnerability(id="CVE-1", source=VulnerabilitySource(name="NVD"),
                          affects=[BomTarget(ref="libx@2.0")])
        ]
        beta_bom.vulnerabilities = [
            Vulnerability(id="CVE-1", source=VulnerabilitySource(name="NVD"),
                          affects=[BomTarget(ref="liby@3.0"), BomTarget(ref="gone")])
        ]
        merger = CycloneDXMerger(make_config("flat"))
        out = merger.merge([alpha_bom, beta_bom])

        assert len(out.vulnerabilities) == 1
        vuln = next(iter(out.vulnerabilities))
        assert {a.ref for a in vuln.affects} == {ref(out, "libx"), ref(out, "liby")}
        assert ref_of(vuln).startswith("ref-")
        assert merger.get_merge_statistics()["skipped"] == 1

    def test_merge_boms_helper(self, alpha_bom, beta_bom):
        out = merge_boms([alpha_bom, beta_bom], make_config("hierarchical"))
        assert names(out.components) == ["alpha@1.0", "beta@1.0"]
