"""
CPE matching.
"""

from .base import ComponentMatcher, MatchableComponent, STRATEGY_CPE

CPE_CONFIDENCE = 90
CPE23_PREFIX = "cpe:2.3:"
CPE22_PREFIX = "cpe:/"
# cpe:2.3:part:vendor:product:version:...
CPE_VERSION_INDEX = 5


def convert_cpe22_to_23(cpe: str) -> str:
    """Convert a ``cpe:/`` URI to 2.3 form, padding to 11 attributes with ``*``."""
    if not cpe.startswith(CPE22_PREFIX):
        return cpe
    parts = cpe[len(CPE22_PREFIX):].split(":")
    parts.extend(["*"] * (11 - len(parts)))
    return CPE23_PREFIX + ":".join(parts)


def normalize_cpe(cpe: str) -> str:
    """Lowercase, trim and convert to CPE 2.3."""
    return convert_cpe22_to_23(cpe.strip().lower())


def remove_cpe_version(cpe: str) -> str:
    parts = cpe.split(":")
    if len(parts) > CPE_VERSION_INDEX:
        parts[CPE_VERSION_INDEX] = "*"
    return ":".join(parts)


class CPEMatcher(ComponentMatcher):
    """Matches components whose CPEs are equal after normalization."""

    def __init__(self, ignore_version: bool = True):
        self.ignore_version = ignore_version

    def _key(self, cpe: str) -> str:
        cpe = normalize_cpe(cpe)
        if self.ignore_version:
            cpe = remove_cpe_version(cpe)
        return cpe

    def match(self, primary: MatchableComponent, secondary: MatchableComponent) -> bool:
        primary_cpe = primary.get_cpe()
        secondary_cpe = secondary.get_cpe()
        if not primary_cpe or not secondary_cpe:
            return False
        return self._key(primary_cpe) == self._key(secondary_cpe)

    def confidence(self, primary: MatchableComponent, secondary: MatchableComponent) -> int:
        return CPE_CONFIDENCE if self.match(primary, secondary) else 0

    def strategy(self) -> str:
        return STRATEGY_CPE
