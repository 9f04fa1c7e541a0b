"""
Package URL matching.
"""

from .base import ComponentMatcher, MatchableComponent, STRATEGY_PURL

PURL_CONFIDENCE = 100


def normalize_purl(purl: str) -> str:
    """Lowercase, trim and drop trailing slashes."""
    return purl.strip().lower().rstrip("/")


def remove_purl_version(purl: str) -> str:
    """
    Remove the ``@version`` segment, keeping qualifiers and subpath.

    ``pkg:npm/lodash@4.17.21?arch=x`` becomes ``pkg:npm/lodash?arch=x``.
    """
    at_index = purl.find("@")
    if at_index == -1:
        return purl

    after_version = purl[at_index:]
    end_index = len(after_version)
    for separator in ("?", "#"):
        position = after_version.find(separator)
        if position != -1:
            end_index = min(end_index, position)

    return purl[:at_index] + after_version[end_index:]


class PurlMatcher(ComponentMatcher):
    """
    Matches components whose package URLs are equal after normalization.

    Unless ``strict_version`` is set the version segment is ignored.
    """

    def __init__(self, strict_version: bool = False):
        self.strict_version = strict_version

    def _key(self, purl: str) -> str:
        purl = normalize_purl(purl)
        if not self.strict_version:
            purl = remove_purl_version(purl)
        return purl

    def match(self, primary: MatchableComponent, secondary: MatchableComponent) -> bool:
        primary_purl = primary.get_purl()
        secondary_purl = secondary.get_purl()
        if not primary_purl or not secondary_purl:
            return False
        return self._key(primary_purl) == self._key(secondary_purl)

    def confidence(self, primary: MatchableComponent, secondary: MatchableComponent) -> int:
        return PURL_CONFIDENCE if self.match(primary, secondary) else 0

    def strategy(self) -> str:
        return STRATEGY_PURL
