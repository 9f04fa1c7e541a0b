"""
Component matching for augment merges.
"""

from .base import (
    ComponentMatcher, MatchableComponent, MatchResult, MatcherConfig,
    STRATEGY_COMPOSITE, STRATEGY_PURL, STRATEGY_CPE, STRATEGY_NAME_VERSION, STRATEGY_NONE
)
from .component import CycloneDXComponent, SpdxPackage, adapt
from .purl import PurlMatcher
from .cpe import CPEMatcher
from .name_version import NameVersionMatcher
from .composite import CompositeComponentMatcher
from .factory import MatcherFactory, get_matcher
from .component_index import ComponentIndex

__all__ = [
    "ComponentMatcher",
    "MatchableComponent",
    "MatchResult",
    "MatcherConfig",
    "STRATEGY_COMPOSITE",
    "STRATEGY_PURL",
    "STRATEGY_CPE",
    "STRATEGY_NAME_VERSION",
    "STRATEGY_NONE",
    "CycloneDXComponent",
    "SpdxPackage",
    "adapt",
    "PurlMatcher",
    "CPEMatcher",
    "NameVersionMatcher",
    "CompositeComponentMatcher",
    "MatcherFactory",
    "get_matcher",
    "ComponentIndex"
]
