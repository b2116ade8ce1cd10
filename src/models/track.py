"""
Track models for object tracking state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .detection import Detection


class Direction(str, Enum):
    """Eight-way motion direction in image coordinates (y grows down)."""
    NONE = ""
    UP = "Up"
    DOWN = "Down"
    LEFT = "Left"
    RIGHT = "Right"
    UP_LEFT = "UpLeft"
    UP_RIGHT = "UpRight"
    DOWN_LEFT = "DownLeft"
    DOWN_RIGHT = "DownRight"

    def __str__(self) -> str:
        return self.value


@dataclass
class TrackedObject:
    """
    An object tracked across frames.

    Attributes:
        track_id: Identifier unique for the lifetime of the tracker.
        class_name: Class the object was registered with.
        sequence: 1-based number of this object within its class.
        centroid: Current center point (cx, cy).
        box: Last matched (or extrapolated) detection.
        direction: Last estimated motion direction.
        last_centroid: Centroid before the most recent match.
        velocity: Smoothed per-frame displacement (vx, vy).
        disappeared_frames: Consecutive frames without a match.
    """
    track_id: int
    class_name: str
    sequence: int
    centroid: Tuple[float, float]
    box: Detection
    direction: Direction = Direction.NONE
    last_centroid: Optional[Tuple[float, float]] = None
    velocity: Tuple[float, float] = (0.0, 0.0)
    disappeared_frames: int = 0

    @property
    def label(self) -> str:
        return format_label(self.class_name, self.sequence, self.direction)


@dataclass(frozen=True)
class AnnotatedBox:
    """
    Tracker output for one object: the box plus its identity.

    Identity is carried as structured fields; `label` is only for display.
    """
    box: Detection
    track_id: int
    class_name: str
    sequence: int
    direction: Direction = Direction.NONE
    disappeared_frames: int = 0

    @property
    def label(self) -> str:
        return format_label(self.class_name, self.sequence, self.direction)

    @property
    def vehicle_id(self) -> str:
        """Stable per-vehicle key, empty when identity is incomplete."""
        if not self.class_name or self.sequence <= 0:
            return ""
        return f"{self.class_name}-{self.sequence}"

    @classmethod
    def from_tracked_object(cls, obj: TrackedObject) -> "AnnotatedBox":
        return cls(
            box=obj.box,
            track_id=obj.track_id,
            class_name=obj.class_name,
            sequence=obj.sequence,
            direction=obj.direction,
            disappeared_frames=obj.disappeared_frames,
        )


def format_label(class_name: str, sequence: int, direction: Direction) -> str:
    """Display label: "{class} #{seq}" over the direction (blank when unknown)."""
    return f"{class_name} #{sequence}\n{direction.value}"
