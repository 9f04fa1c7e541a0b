"""
SBOM Assembler

A Python application that assembles multiple CycloneDX or SPDX Software
Bills of Materials into a single SBOM using flat, assembly, hierarchical
or augment composition.
"""

__version__ = "0.1.0"
__author__ = "SBOM Assembler Team"
__description__ = "Merge and augment CycloneDX and SPDX SBOMs"

TOOL_NAME = "sbom-assembler"
TOOL_VENDOR = "SBOM Assembler Team"
TOOL_DESCRIPTION = "Assembler for your SBOMs"
