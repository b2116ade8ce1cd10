"""
Reporting interfaces.

The event core only knows these boundaries:
- an Event Reporter that accepts a key/value payload
- a Location Provider that may or may not have a GPS fix yet
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from models.config import LocationConfig


@dataclass(frozen=True)
class LocationFix:
    """A GPS position in decimal degrees."""
    latitude: float
    longitude: float

    def as_string(self) -> str:
        return f"{self.latitude},{self.longitude}"


class EventReporter(Protocol):
    def send_data(self, payload: Dict[str, Any]) -> bool:
        ...


class LocationProvider(Protocol):
    def get_fix(self) -> Optional[LocationFix]:
        ...


class StaticLocationProvider:
    """
    Location provider holding the latest known fix.

    Whatever GPS source the host has calls `update`; reporting tasks call
    `get_fix` from worker threads.
    """

    def __init__(self, fix: Optional[LocationFix] = None):
        self._fix = fix
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: Optional[LocationConfig]) -> "StaticLocationProvider":
        if cfg is None:
            return cls()
        return cls(LocationFix(latitude=cfg.latitude, longitude=cfg.longitude))

    def update(self, latitude: float, longitude: float) -> None:
        with self._lock:
            self._fix = LocationFix(latitude=latitude, longitude=longitude)

    def clear(self) -> None:
        with self._lock:
            self._fix = None

    def get_fix(self) -> Optional[LocationFix]:
        with self._lock:
            return self._fix
