"""
Destinations for assembled SBOMs other than the local filesystem.
"""

from .dependency_track import DependencyTrackPublisher, ServerError, BOM_ENDPOINT

__all__ = [
    "DependencyTrackPublisher",
    "ServerError",
    "BOM_ENDPOINT"
]
