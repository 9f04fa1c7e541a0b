"""
Adapters exposing CycloneDX components and SPDX packages to the matchers.
"""

from typing import Union

from cyclonedx.model.component import Component
from spdx_tools.spdx.model import ExternalPackageRefCategory, Package

from ..documents.cyclonedx import purl_string
from ..documents.spdx import CPE_REFERENCE_TYPES, PURL_REFERENCE_TYPE
from .base import MatchableComponent

# SPDX primaryPackagePurpose values with a CycloneDX component type of the same name.
_PURPOSE_TYPES = {
    "application", "framework", "library", "container", "operating-system",
    "device", "firmware", "file"
}


class CycloneDXComponent(MatchableComponent):
    """Matcher view of a CycloneDX component."""

    def __init__(self, component: Component):
        self.component = component

    def get_purl(self) -> str:
        return purl_string(self.component)

    def get_cpe(self) -> str:
        return self.component.cpe or ""

    def get_name(self) -> str:
        return self.component.name or ""

    def get_version(self) -> str:
        return self.component.version or ""

    def get_type(self) -> str:
        return self.component.type.value if self.component.type is not None else ""

    def is_cdx(self) -> bool:
        return True

    def is_spdx(self) -> bool:
        return False

    def get_original(self) -> Component:
        return self.component

    def __repr__(self) -> str:
        return f"CycloneDXComponent({self.get_name()}@{self.get_version()})"


class SpdxPackage(MatchableComponent):
    """
    Matcher view of an SPDX package.

    The purl is the first external ref of type ``purl`` or category
    ``PACKAGE-MANAGER``; the CPE is the first ``cpe22Type``/``cpe23Type``
    ref. The type is derived from the primary package purpose and falls
    back to ``library``.
    """

    def __init__(self, package: Package):
        self.package = package

    def get_purl(self) -> str:
        for ref in self.package.external_references:
            if ref.reference_type == PURL_REFERENCE_TYPE or ref.category == ExternalPackageRefCategory.PACKAGE_MANAGER:
                return ref.locator
        return ""

    def get_cpe(self) -> str:
        for ref in self.package.external_references:
            if ref.reference_type in CPE_REFERENCE_TYPES:
                return ref.locator
        return ""

    def get_name(self) -> str:
        return self.package.name or ""

    def get_version(self) -> str:
        return self.package.version or ""

    def get_type(self) -> str:
        purpose = self.package.primary_package_purpose
        purpose = purpose.name.lower().replace("_", "-") if purpose is not None else ""
        return purpose if purpose in _PURPOSE_TYPES else "library"

    def is_cdx(self) -> bool:
        return False

    def is_spdx(self) -> bool:
        return True

    def get_original(self) -> Package:
        return self.package

    def __repr__(self) -> str:
        return f"SpdxPackage({self.get_name()}@{self.get_version()})"


def adapt(item: Union[Component, Package, MatchableComponent]) -> MatchableComponent:
    """
    Wrap a model object in its matcher adapter.

    Raises:
        TypeError: If the object is neither a component nor a package
    """
    if isinstance(item, MatchableComponent):
        return item
    if isinstance(item, Component):
        return CycloneDXComponent(item)
    if isinstance(item, Package):
        return SpdxPackage(item)
    raise TypeError(f"cannot match objects of type {type(item).__name__}")
