"""
Matcher construction from configuration.
"""

from typing import Optional

from ..error_handling import MatcherConfigError
from .base import (
    ComponentMatcher, MatcherConfig, STRATEGY_COMPOSITE, STRATEGY_PURL, STRATEGY_CPE,
    STRATEGY_NAME_VERSION
)
from .composite import CompositeComponentMatcher
from .purl import PurlMatcher
from .cpe import CPEMatcher
from .name_version import NameVersionMatcher


class MatcherFactory:
    """Builds matchers for a strategy name using one configuration."""

    def __init__(self, config: Optional[MatcherConfig] = None):
        self.config = config or MatcherConfig()

    def get_matcher(self, strategy: str) -> ComponentMatcher:
        """
        Build the matcher for ``strategy``.

        Args:
            strategy: ``composite`` (or empty), ``purl``, ``cpe`` or ``name-version``

        Returns:
            Configured matcher

        Raises:
            MatcherConfigError: If the strategy is unknown
        """
        if strategy in (STRATEGY_COMPOSITE, ""):
            return CompositeComponentMatcher(self.config)
        if strategy == STRATEGY_PURL:
            return PurlMatcher(strict_version=self.config.strict_version)
        if strategy == STRATEGY_CPE:
            return CPEMatcher(ignore_version=not self.config.strict_version)
        if strategy == STRATEGY_NAME_VERSION:
            return NameVersionMatcher(fuzzy_match=self.config.fuzzy_match,
                                      type_match=self.config.type_match)
        raise MatcherConfigError(f"unknown matching strategy: {strategy}", strategy=strategy)


def get_matcher(config: Optional[MatcherConfig] = None) -> ComponentMatcher:
    """Build the matcher selected by ``config.strategy``."""
    config = config or MatcherConfig()
    return MatcherFactory(config).get_matcher(config.strategy or STRATEGY_COMPOSITE)
