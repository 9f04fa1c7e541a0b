"""
Reference rewriting shared by the merge drivers.
"""

import logging
from typing import Dict, List, Mapping

from ..error_handling import DanglingReferenceWarning

logger = logging.getLogger(__name__)


def resolve_reference(ref: str, processed_refs: Mapping[str, str]) -> str:
    """
    Rewrite a reference through ``processed_refs``.

    References that were never processed, such as the document's own
    element, are returned unchanged.
    """
    return processed_refs.get(ref, ref)


class DanglingReferences:
    """Collects edges that pointed at ids missing from the output."""

    def __init__(self):
        self.warnings: List[DanglingReferenceWarning] = []

    def __len__(self) -> int:
        return len(self.warnings)

    def record(self, reference: str, source: str, target: str = "") -> DanglingReferenceWarning:
        """
        Record an unresolved reference of the edge ``source -> target``.

        Args:
            reference: The id that could not be resolved
            source: Edge source as written in the input
            target: Edge target as written in the input, if any

        Returns:
            The recorded warning
        """
        edge = [source, target] if target else [source]
        warning = DanglingReferenceWarning(
            f"dropping reference to unknown element {reference}",
            reference=reference,
            edge=edge
        )
        self.warnings.append(warning)
        logger.debug(str(warning))
        return warning

    def references(self) -> List[str]:
        return [w.reference for w in self.warnings]

    def summary(self) -> Dict[str, int]:
        return {"dangling_references": len(self.warnings)}
