"""
Inverted index over primary-document components.
"""

import logging
from typing import Dict, Iterable, List, Optional

from .base import (
    ComponentMatcher, MatchableComponent, MatchResult, STRATEGY_PURL, STRATEGY_CPE,
    STRATEGY_NAME_VERSION
)
from .composite import CompositeComponentMatcher
from .purl import remove_purl_version

logger = logging.getLogger(__name__)


def _key(value: str) -> str:
    return value.strip().lower()


class ComponentIndex:
    """
    Index of components by purl, CPE, name and version.

    Each map holds positions into the backing list in insertion order,
    which keeps candidate enumeration and tie-breaking deterministic.
    """

    def __init__(self, components: Optional[Iterable[MatchableComponent]] = None):
        self.components: List[MatchableComponent] = []
        self.purl_index: Dict[str, List[int]] = {}
        self.cpe_index: Dict[str, List[int]] = {}
        self.name_index: Dict[str, List[int]] = {}
        self.version_index: Dict[str, List[int]] = {}

        for component in components or []:
            self.add_component(component)

    def __len__(self) -> int:
        return len(self.components)

    def add_component(self, component: MatchableComponent) -> None:
        """Append a component and index its non-empty attributes."""
        position = len(self.components)
        self.components.append(component)

        for index, value in (
            (self.purl_index, component.get_purl()),
            (self.cpe_index, component.get_cpe()),
            (self.name_index, component.get_name()),
            (self.version_index, component.get_version()),
        ):
            if value:
                index.setdefault(_key(value), []).append(position)

    def _candidate_positions(self, component: MatchableComponent, strategy: str) -> List[int]:
        if strategy == STRATEGY_PURL and component.get_purl():
            purl = _key(component.get_purl())
            without_version = remove_purl_version(purl)
            positions = list(self.purl_index.get(purl, []))
            for key, key_positions in self.purl_index.items():
                if remove_purl_version(key) == without_version:
                    positions.extend(key_positions)
            return positions

        if strategy == STRATEGY_CPE and component.get_cpe():
            return list(self.cpe_index.get(_key(component.get_cpe()), []))

        if strategy == STRATEGY_NAME_VERSION and component.get_name():
            return list(self.name_index.get(_key(component.get_name()), []))

        return list(range(len(self.components)))

    def find_matches(self, component: MatchableComponent, matcher: ComponentMatcher) -> List[MatchResult]:
        """
        Find every indexed component the matcher confirms.

        Args:
            component: Secondary component to look up
            matcher: Matcher deciding each candidate

        Returns:
            Match results in index insertion order
        """
        results: List[MatchResult] = []
        seen = set()

        for position in self._candidate_positions(component, matcher.strategy()):
            if position in seen:
                continue
            seen.add(position)

            candidate = self.components[position]
            if not matcher.match(candidate, component):
                continue

            if isinstance(matcher, CompositeComponentMatcher):
                strategy = matcher.get_matching_strategy(candidate, component)
            else:
                strategy = matcher.strategy()

            results.append(MatchResult(
                primary=candidate,
                secondary=component,
                confidence=matcher.confidence(candidate, component),
                strategy=strategy
            ))

        return results

    def find_best_match(self, component: MatchableComponent,
                        matcher: ComponentMatcher) -> Optional[MatchResult]:
        """Highest-confidence match; the earliest indexed candidate wins ties."""
        best: Optional[MatchResult] = None
        for result in self.find_matches(component, matcher):
            if best is None or result.confidence > best.confidence:
                best = result
        return best
