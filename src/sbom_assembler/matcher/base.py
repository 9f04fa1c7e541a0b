"""
Base classes and interfaces for component matching.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

STRATEGY_COMPOSITE = "composite"
STRATEGY_PURL = "purl"
STRATEGY_CPE = "cpe"
STRATEGY_NAME_VERSION = "name-version"
STRATEGY_NONE = "none"

DEFAULT_MIN_CONFIDENCE = 50


class MatchableComponent(ABC):
    """
    Format-independent view of a component or package.

    Matchers only see this capability set, so one matcher serves both
    CycloneDX components and SPDX packages.
    """

    @abstractmethod
    def get_purl(self) -> str:
        pass

    @abstractmethod
    def get_cpe(self) -> str:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass

    @abstractmethod
    def get_version(self) -> str:
        pass

    @abstractmethod
    def get_type(self) -> str:
        pass

    @abstractmethod
    def is_cdx(self) -> bool:
        pass

    @abstractmethod
    def is_spdx(self) -> bool:
        pass

    @abstractmethod
    def get_original(self) -> Any:
        """Return the wrapped model object."""
        pass


class ComponentMatcher(ABC):
    """Abstract base class for a component matching strategy."""

    @abstractmethod
    def match(self, primary: MatchableComponent, secondary: MatchableComponent) -> bool:
        """
        Decide whether two components are the same.

        Args:
            primary: Component from the authoritative document
            secondary: Component being merged in

        Returns:
            True if the components match
        """
        pass

    @abstractmethod
    def confidence(self, primary: MatchableComponent, secondary: MatchableComponent) -> int:
        """
        Confidence of a match between 0 and 100, 0 when they do not match.
        """
        pass

    @abstractmethod
    def strategy(self) -> str:
        """Short strategy tag, e.g. ``purl``."""
        pass


@dataclass
class MatchResult:
    """A confirmed match between a primary and a secondary component."""

    primary: MatchableComponent
    secondary: MatchableComponent
    confidence: int
    strategy: str


@dataclass
class MatcherConfig:
    """Knobs for building a matcher."""

    strategy: str = STRATEGY_COMPOSITE
    strict_version: bool = False
    fuzzy_match: bool = False
    type_match: bool = True
    min_confidence: int = DEFAULT_MIN_CONFIDENCE
