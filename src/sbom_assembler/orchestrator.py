"""
Orchestration manager coordinating loading, merging and publishing of SBOMs.
"""

import hashlib
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .assemblers import CycloneDXAugmenter, CycloneDXMerger, SpdxAugmenter, SpdxMerger
from .config import AppConfig, get_config, validate_output_options
from .error_handling import ConfigError, LoadError, SpecMismatchError
from .formats import (
    LoadedDocument, SPEC_CYCLONEDX, SPEC_SPDX, load_document, serialize_document, write_document
)
from .publishers import DependencyTrackPublisher

logger = logging.getLogger(__name__)

BUILD_NEW_STRATEGIES = ("flat", "assembly", "hierarchical")


class OrchestrationManager:
    """
    Runs one assembly from input paths to a written or uploaded SBOM.

    Inputs are read fully before any merging starts; each run gets its own
    merge driver, so a manager may be reused for several runs.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        """
        Initialize the orchestration manager.

        Args:
            config: Application configuration
        """
        self.config = config or get_config()
        self._orchestration_statistics: Dict[str, Any] = {
            "start_time": None,
            "end_time": None,
            "inputs_loaded": 0,
            "errors": []
        }

    def assemble(self, inputs: List[str]) -> Dict[str, Any]:
        """
        Merge the input SBOMs with the configured strategy and emit the result.

        Args:
            inputs: Input paths in merge order; in augment mode these are the secondaries

        Returns:
            Dictionary describing the run: strategy, spec, output and merge statistics

        Raises:
            SBOMAssemblerError: On any fatal load, configuration, merge, write or upload failure
        """
        self._orchestration_statistics["start_time"] = datetime.now(timezone.utc)
        strategy = self.config.assemble.strategy
        logger.info(f"Assembling {len(inputs)} SBOMs using {strategy} strategy")

        try:
            primary_path, secondary_paths = self._plan_inputs(inputs, strategy)
            self._check_duplicate_inputs(([primary_path] if primary_path else []) + secondary_paths)

            primary = load_document(primary_path) if primary_path else None
            loaded = [load_document(path) for path in secondary_paths]
            self._orchestration_statistics["inputs_loaded"] = len(loaded) + (1 if primary else 0)

            spec = self._resolve_spec(([primary] if primary else []) + loaded)
            output = self.config.output
            validate_output_options(spec, output.spec_version, output.file_format)
            if output.upload and spec != SPEC_CYCLONEDX:
                raise ConfigError("upload is only supported for CycloneDX output",
                                  config_section="output", config_key="upload")

            document, merger = self._run_merge(spec, strategy, primary, loaded)
            results = self._emit(document, spec)

            statistics = merger.get_merge_statistics()
            self._orchestration_statistics["end_time"] = datetime.now(timezone.utc)
            results.update({
                "strategy": strategy,
                "spec": spec,
                "inputs": [d.path for d in ([primary] if primary else []) + loaded],
                "statistics": statistics,
                "dangling_references": merger.dangling_references.references(),
                "processing_time": self._calculate_processing_time()
            })
            logger.debug(f"Merge statistics: {statistics}")
            logger.info(f"Assembly completed in {results['processing_time']:.2f} seconds")
            return results

        except Exception as e:
            self._orchestration_statistics["errors"].append(str(e))
            logger.error(f"SBOM assembly failed: {e}")
            raise

    def _plan_inputs(self, inputs: List[str], strategy: str) -> Tuple[str, List[str]]:
        """
        Split the paths into the augment primary and the documents merged into it.

        Raises:
            ConfigError: If there are too few inputs for the strategy
        """
        if strategy == "augment":
            primary_file = self.config.assemble.primary_file
            if not primary_file:
                raise ConfigError("augment merge requires a primary file",
                                  config_section="assemble", config_key="primary_file")
            primary_resolved = Path(primary_file).resolve()
            secondaries = [p for p in inputs if Path(p).resolve() != primary_resolved]
            if len(secondaries) != len(inputs):
                logger.info(f"Ignoring primary file {primary_file} in the secondary inputs")
            if not secondaries:
                raise ConfigError("augment merge requires at least one secondary input",
                                  config_section="assemble")
            return primary_file, secondaries

        if len(inputs) < 2:
            raise ConfigError(f"{strategy} merge requires at least two input files",
                              config_section="assemble")
        return "", list(inputs)

    def _check_duplicate_inputs(self, paths: List[str]) -> None:
        """
        Reject runs where two inputs have identical content.

        Raises:
            LoadError: If an input cannot be read
            ConfigError: If two inputs share a SHA-256 digest
        """
        seen: Dict[str, str] = {}
        for path in paths:
            try:
                digest = hashlib.sha256(Path(path).read_bytes()).hexdigest()
            except OSError as e:
                raise LoadError(f"unable to read {path}", file_path=path, cause=e)
            if digest in seen:
                raise ConfigError(f"duplicate input files: {seen[digest]} and {path} have identical content",
                                  config_section="input")
            seen[digest] = path

    def _resolve_spec(self, documents: List[LoadedDocument]) -> str:
        """
        Determine the single spec of all inputs and check it against the requested output.

        Raises:
            SpecMismatchError: If inputs differ in spec or differ from ``output.spec``
        """
        specs = {d.path: d.spec for d in documents}
        distinct = sorted(set(specs.values()))
        if len(distinct) > 1:
            raise SpecMismatchError(f"input SBOMs mix specs: {', '.join(distinct)}", specs=specs)

        spec = distinct[0]
        requested = self.config.output.spec
        if requested and requested != spec:
            raise SpecMismatchError(
                f"output spec {requested} does not match input spec {spec}", specs=specs
            )
        return spec

    def _run_merge(self, spec: str, strategy: str, primary: Optional[LoadedDocument],
                   loaded: List[LoadedDocument]):
        documents = [d.document for d in loaded]

        if strategy == "augment":
            augmenter = CycloneDXAugmenter(self.config) if spec == SPEC_CYCLONEDX else SpdxAugmenter(self.config)
            return augmenter.merge(primary.document, documents), augmenter

        merger = CycloneDXMerger(self.config) if spec == SPEC_CYCLONEDX else SpdxMerger(self.config)
        return merger.merge(documents, strategy), merger

    def _emit(self, document: Any, spec: str) -> Dict[str, Any]:
        """Write the document to its destination and upload it when requested."""
        output = self.config.output
        spec_version = output.spec_version or None
        results: Dict[str, Any] = {
            "output_file": output.file or None,
            "file_format": output.file_format,
            "uploaded": False
        }

        if output.upload:
            content = serialize_document(document, spec, output.file_format, spec_version)
            publisher = DependencyTrackPublisher.from_config(output)
            results["upload_response"] = publisher.upload_bom(output.upload_project_id, content)
            results["uploaded"] = True
            if output.file:
                write_document(document, spec, output.file_format, spec_version, output.file)
            return results

        write_document(document, spec, output.file_format, spec_version, output.file)
        if output.file:
            logger.info(f"Wrote assembled SBOM to {output.file}")
        return results

    def _calculate_processing_time(self) -> float:
        start = self._orchestration_statistics["start_time"]
        end = self._orchestration_statistics["end_time"]
        if start and end:
            return (end - start).total_seconds()
        return 0.0

    def get_orchestration_statistics(self) -> Dict[str, Any]:
        return self._orchestration_statistics.copy()
