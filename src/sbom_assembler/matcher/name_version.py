"""
Name and version matching.
"""

from .base import ComponentMatcher, MatchableComponent, STRATEGY_NAME_VERSION

NAME_VERSION_CONFIDENCE = 70
TYPE_MATCH_BONUS = 10
FUZZY_MATCH_PENALTY = 10

# Longest first so that "version1.0" loses the whole word, not just "v".
_VERSION_PREFIXES = ("version", "ver", "v")


def normalize_name(name: str) -> str:
    """Lowercase and collapse ``_`` and ``.`` to ``-``."""
    return name.strip().lower().replace("_", "-").replace(".", "-")


def normalize_version(version: str) -> str:
    """Lowercase and strip a leading ``version``/``ver``/``v`` word."""
    version = version.strip().lower()
    for prefix in _VERSION_PREFIXES:
        if version.startswith(prefix):
            version = version[len(prefix):]
            break
    return version.strip()


class NameVersionMatcher(ComponentMatcher):
    """
    Matches components by normalized name and version.

    With ``type_match`` the component types must agree when both are
    known; an empty type on either side does not block a match. With
    ``fuzzy_match`` one name may contain the other, at a lower confidence.
    """

    def __init__(self, fuzzy_match: bool = False, type_match: bool = True):
        self.fuzzy_match = fuzzy_match
        self.type_match = type_match

    def _names_match(self, name1: str, name2: str) -> bool:
        if name1 == name2:
            return True
        if not self.fuzzy_match or not name1 or not name2:
            return False
        if len(name1) > len(name2):
            return name2 in name1
        return name1 in name2

    def match(self, primary: MatchableComponent, secondary: MatchableComponent) -> bool:
        primary_name = normalize_name(primary.get_name())
        secondary_name = normalize_name(secondary.get_name())
        if not self._names_match(primary_name, secondary_name):
            return False

        if normalize_version(primary.get_version()) != normalize_version(secondary.get_version()):
            return False

        if self.type_match:
            primary_type = primary.get_type().lower()
            secondary_type = secondary.get_type().lower()
            if primary_type and secondary_type and primary_type != secondary_type:
                return False

        return True

    def confidence(self, primary: MatchableComponent, secondary: MatchableComponent) -> int:
        if not self.match(primary, secondary):
            return 0

        confidence = NAME_VERSION_CONFIDENCE
        if self.type_match and primary.get_type() == secondary.get_type():
            confidence += TYPE_MATCH_BONUS
        if self.fuzzy_match and normalize_name(primary.get_name()) != normalize_name(secondary.get_name()):
            confidence -= FUZZY_MATCH_PENALTY
        return confidence

    def strategy(self) -> str:
        return STRATEGY_NAME_VERSION
