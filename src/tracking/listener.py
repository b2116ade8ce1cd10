"""
Tracker listener interface.
"""

from __future__ import annotations

from typing import Callable, Protocol


class TrackerListener(Protocol):
    """Receives notifications about the tracked set."""

    def on_tracking_cleared(self) -> None:
        """Called once each time the tracked set becomes empty through expiry."""
        ...


class CallbackListener:
    """Adapter turning a plain callable into a TrackerListener."""

    def __init__(self, callback: Callable[[], None]):
        self._callback = callback

    def on_tracking_cleared(self) -> None:
        self._callback()
