"""
Detection models for suppressed detector output.

All coordinates are normalized to the frame (0..1), origin top-left,
x growing right and y growing down.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in normalized image coordinates.

    Attributes:
        x1: Left edge.
        y1: Top edge.
        x2: Right edge.
        y2: Bottom edge.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)

    def is_normalized(self) -> bool:
        """True when every corner lies inside the unit square."""
        return all(0.0 <= v <= 1.0 for v in self.as_tuple())

    def iou(self, other: "BoundingBox") -> float:
        """
        Intersection over union with another box.

        Non-overlapping boxes give 0. A zero union also gives 0.
        """
        inter_w = max(0.0, min(self.x2, other.x2) - max(self.x1, other.x1))
        inter_h = max(0.0, min(self.y2, other.y2) - max(self.y1, other.y1))
        intersection = inter_w * inter_h
        union = self.area + other.area - intersection
        if union <= 0:
            return 0.0
        return intersection / union

    def translated(self, dx: float, dy: float) -> "BoundingBox":
        return BoundingBox(self.x1 + dx, self.y1 + dy, self.x2 + dx, self.y2 + dy)

    @classmethod
    def from_tuple(cls, t: Tuple[float, float, float, float]) -> "BoundingBox":
        """Create from (x1, y1, x2, y2) tuple."""
        return cls(x1=t[0], y1=t[1], x2=t[2], y2=t[3])

    @classmethod
    def from_center(cls, cx: float, cy: float, w: float, h: float) -> "BoundingBox":
        """Create from center/size format used by the detector output."""
        return cls(x1=cx - w / 2, y1=cy - h / 2, x2=cx + w / 2, y2=cy + h / 2)


@dataclass(frozen=True)
class Detection:
    """
    A single detection that survived suppression.

    Attributes:
        bbox: Bounding box in normalized coordinates.
        confidence: Best class score for this anchor.
        class_index: Index of the best class in the label list.
        class_name: Human-readable class name.
    """
    bbox: BoundingBox
    confidence: float
    class_index: int
    class_name: str

    @property
    def x1(self) -> float:
        return self.bbox.x1

    @property
    def y1(self) -> float:
        return self.bbox.y1

    @property
    def x2(self) -> float:
        return self.bbox.x2

    @property
    def y2(self) -> float:
        return self.bbox.y2

    @property
    def cx(self) -> float:
        return self.bbox.center[0]

    @property
    def cy(self) -> float:
        return self.bbox.center[1]

    @property
    def w(self) -> float:
        return self.bbox.width

    @property
    def h(self) -> float:
        return self.bbox.height

    @property
    def centroid(self) -> Tuple[float, float]:
        return self.bbox.center

    @classmethod
    def from_center(
        cls,
        cx: float,
        cy: float,
        w: float,
        h: float,
        confidence: float,
        class_index: int,
        class_name: str,
    ) -> "Detection":
        """Create Detection from center x, center y, width and height."""
        return cls(
            bbox=BoundingBox.from_center(cx, cy, w, h),
            confidence=confidence,
            class_index=class_index,
            class_name=class_name,
        )

    @classmethod
    def from_xyxy(
        cls,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        confidence: float = 1.0,
        class_index: int = 0,
        class_name: str = "",
    ) -> "Detection":
        """Create Detection from x1, y1, x2, y2 coordinates."""
        return cls(
            bbox=BoundingBox(x1=x1, y1=y1, x2=x2, y2=y2),
            confidence=confidence,
            class_index=class_index,
            class_name=class_name,
        )

    def shifted(self, dx: float, dy: float) -> "Detection":
        """Return a copy moved by (dx, dy), used to extrapolate unmatched tracks."""
        return Detection(
            bbox=self.bbox.translated(dx, dy),
            confidence=self.confidence,
            class_index=self.class_index,
            class_name=self.class_name,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
            "cx": self.cx,
            "cy": self.cy,
            "w": self.w,
            "h": self.h,
            "confidence": self.confidence,
            "class_index": self.class_index,
            "class_name": self.class_name,
        }


def centroids_to_numpy(detections: List[Detection]) -> np.ndarray:
    """
    Stack detection centroids into an (N, 2) array.

    Returns an empty (0, 2) array for an empty list.
    """
    if not detections:
        return np.empty((0, 2), dtype=float)
    return np.array([d.centroid for d in detections], dtype=float)
