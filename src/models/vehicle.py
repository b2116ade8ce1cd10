"""
Vehicle lifecycle models: the mutable per-vehicle record and the
immutable event snapshot handed to reporting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

EVENT_ENTRY = "entry"
EVENT_EXIT = "exit"
EVENT_IMAGE = "image"

Position = Tuple[float, float]


@dataclass
class VehicleRecord:
    """
    Lifecycle of one vehicle inside the field of view.

    Attributes:
        id: Vehicle key, "{class_name}-{sequence}".
        class_name: Vehicle class.
        sequence: Class-scoped sequence number from the tracker.
        entry_time: Unix timestamp of the first sighting.
        entry_position: Centroid at the first sighting.
        last_position: Centroid at the latest sighting.
        last_update_time: Unix timestamp of the latest sighting.
        confidence: Detector confidence at the latest sighting.
        exit_position: Centroid when the exit was detected (set once).
        exit_time: Unix timestamp of the exit (set once).
        exit_reported: Whether the exit event has been emitted.
        captured_image: Latest crop of this vehicle, if any.
    """
    id: str
    class_name: str
    sequence: int
    entry_time: float
    entry_position: Position
    last_position: Position
    last_update_time: float
    confidence: float
    exit_position: Optional[Position] = None
    exit_time: Optional[float] = None
    exit_reported: bool = False
    captured_image: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def time_in_frame_ms(self) -> int:
        end = self.exit_time if self.exit_time is not None else self.last_update_time
        return int(round((end - self.entry_time) * 1000))

    def mark_exit(self, position: Position, timestamp: float) -> bool:
        """
        Record the exit once.

        Returns:
            True if this call recorded the exit, False if it was already set.
        """
        if self.exit_reported:
            return False
        self.exit_position = position
        self.exit_time = timestamp
        self.exit_reported = True
        return True


@dataclass(frozen=True)
class VehicleEvent:
    """
    Immutable snapshot of a vehicle at the moment an event was decided.

    Safe to hand to another thread: the image is a private copy and no
    field refers back to the live record.
    """
    event_type: str
    vehicle_id: str
    vehicle_type: str
    sequence: int
    timestamp: float
    confidence: float
    position: Position
    entry_time: float
    entry_position: Position
    exit_time: Optional[float] = None
    exit_position: Optional[Position] = None
    direction: Optional[str] = None
    time_in_frame_ms: Optional[int] = None
    image: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    @property
    def has_image(self) -> bool:
        return self.image is not None

    @classmethod
    def snapshot(
        cls,
        record: VehicleRecord,
        event_type: str,
        timestamp: float,
        image: Optional[np.ndarray] = None,
        direction: Optional[str] = None,
    ) -> "VehicleEvent":
        """Copy the fields of `record` needed for one report."""
        is_exit = event_type == EVENT_EXIT
        return cls(
            event_type=event_type,
            vehicle_id=record.id,
            vehicle_type=record.class_name,
            sequence=record.sequence,
            timestamp=timestamp,
            confidence=record.confidence,
            position=record.last_position,
            entry_time=record.entry_time,
            entry_position=record.entry_position,
            exit_time=record.exit_time if is_exit else None,
            exit_position=record.exit_position if is_exit else None,
            direction=direction,
            time_in_frame_ms=record.time_in_frame_ms if is_exit else None,
            image=image.copy() if image is not None else None,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization (image excluded)."""
        return {
            "event_type": self.event_type,
            "vehicle_id": self.vehicle_id,
            "vehicle_type": self.vehicle_type,
            "sequence": self.sequence,
            "timestamp": self.timestamp,
            "confidence": self.confidence,
            "position": self.position,
            "entry_time": self.entry_time,
            "entry_position": self.entry_position,
            "exit_time": self.exit_time,
            "exit_position": self.exit_position,
            "direction": self.direction,
            "time_in_frame_ms": self.time_in_frame_ms,
            "has_image": self.has_image,
        }
