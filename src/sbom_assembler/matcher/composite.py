"""
Composite matcher trying purl, then CPE, then name and version.
"""

import logging
from typing import List, Optional, Tuple

from .base import (
    ComponentMatcher, MatchableComponent, MatcherConfig, STRATEGY_COMPOSITE,
    STRATEGY_NONE, DEFAULT_MIN_CONFIDENCE
)
from .purl import PurlMatcher
from .cpe import CPEMatcher
from .name_version import NameVersionMatcher

logger = logging.getLogger(__name__)


class CompositeComponentMatcher(ComponentMatcher):
    """
    Prioritized stack of matching strategies.

    A strategy counts only when its confidence reaches ``min_confidence``;
    a ``min_confidence`` of 0 means the default of 50.
    """

    def __init__(self, config: Optional[MatcherConfig] = None):
        config = config or MatcherConfig()
        self.min_confidence = config.min_confidence if config.min_confidence > 0 else DEFAULT_MIN_CONFIDENCE
        self.matchers: List[ComponentMatcher] = [
            PurlMatcher(strict_version=config.strict_version),
            CPEMatcher(ignore_version=not config.strict_version),
            NameVersionMatcher(fuzzy_match=config.fuzzy_match, type_match=config.type_match),
        ]

    def _qualifying(self, primary: MatchableComponent, secondary: MatchableComponent):
        """Yield (strategy, confidence) for each strategy matching above the threshold."""
        for matcher in self.matchers:
            if not matcher.match(primary, secondary):
                continue
            confidence = matcher.confidence(primary, secondary)
            if confidence >= self.min_confidence:
                yield matcher.strategy(), confidence

    def first_match(self, primary: MatchableComponent,
                    secondary: MatchableComponent) -> Optional[Tuple[str, int]]:
        """Return the first qualifying (strategy, confidence) pair, if any."""
        return next(self._qualifying(primary, secondary), None)

    def match(self, primary: MatchableComponent, secondary: MatchableComponent) -> bool:
        return self.first_match(primary, secondary) is not None

    def confidence(self, primary: MatchableComponent, secondary: MatchableComponent) -> int:
        return max((c for _, c in self._qualifying(primary, secondary)), default=0)

    def strategy(self) -> str:
        return STRATEGY_COMPOSITE

    def get_matching_strategy(self, primary: MatchableComponent, secondary: MatchableComponent) -> str:
        """Name of the strategy that decided the match, ``none`` if nothing matched."""
        first = self.first_match(primary, secondary)
        return first[0] if first else STRATEGY_NONE
