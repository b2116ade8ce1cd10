"""
Object tracking across frames.
"""

from .listener import CallbackListener, TrackerListener
from .tracker import ObjectTracker, direction_from_displacement

__all__ = [
    "CallbackListener",
    "ObjectTracker",
    "TrackerListener",
    "direction_from_displacement",
]
