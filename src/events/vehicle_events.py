"""
Vehicle entry/exit event detection.

Consumes the tracker's annotated boxes each frame, keeps one lifecycle record
per vehicle and decides when an entry, exit or continuous image event should
be reported. Events are immutable snapshots; reporting happens elsewhere.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

import numpy as np

from models.config import EventConfig
from models.detection import BoundingBox
from models.track import AnnotatedBox
from models.vehicle import (
    EVENT_ENTRY,
    EVENT_EXIT,
    EVENT_IMAGE,
    Position,
    VehicleEvent,
    VehicleRecord,
)
from .capture import crop_frame
from .direction import compass_direction

# Image dedup markers are keyed by vehicle id and position rounded to this many places
IMAGE_POSITION_DECIMALS = 2


class EventSink(Protocol):
    def dispatch(self, event: VehicleEvent) -> None:
        ...


def is_near_edge(bbox: BoundingBox, margin: float) -> bool:
    """True when any side of the box is within `margin` of the frame border."""
    return (
        bbox.x1 < margin
        or bbox.x2 > 1.0 - margin
        or bbox.y1 < margin
        or bbox.y2 > 1.0 - margin
    )


class VehicleEventDetector:
    """
    Derives entry/exit events from tracked boxes.

    This detector:
    - Creates a VehicleRecord on the first sighting of a vehicle id (entry)
    - Reports exit once, when the box reaches the frame edge margin
    - Crops vehicle images for capture classes
    - Optionally emits throttled continuous images
    - Expires stale records and dedup markers

    Example:
        detector = VehicleEventDetector(EventConfig(), sink=dispatcher)
        events = detector.process(tracker.update(detections), frame)
    """

    def __init__(
        self,
        config: Optional[EventConfig] = None,
        sink: Optional[EventSink] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or EventConfig()
        self.vehicle_classes = {c.lower() for c in self.config.vehicle_classes}
        self.capture_classes = {c.lower() for c in self.config.capture_classes}
        self._sink = sink
        self._clock = clock

        self.vehicles: Dict[str, VehicleRecord] = {}
        self.reported: Dict[str, float] = {}
        self.image_markers: Dict[Tuple[str, Position], float] = {}
        self._lock = threading.Lock()

    def process(
        self,
        boxes: Iterable[AnnotatedBox],
        frame: Optional[np.ndarray] = None,
    ) -> List[VehicleEvent]:
        """
        Process one frame of tracked boxes.

        Args:
            boxes: Tracker output for this frame.
            frame: Current frame pixels, used for vehicle crops.

        Returns:
            Events decided this frame, in box order.
        """
        now = self._clock()
        events: List[VehicleEvent] = []
        with self._lock:
            for box in boxes:
                event = self._process_box(box, frame, now)
                if event is not None:
                    events.append(event)
            self._cleanup(now)

        for event in events:
            logging.info(
                f"Vehicle {event.event_type}: {event.vehicle_id}"
                + (f" direction={event.direction}" if event.direction else "")
            )
            if self._sink is not None:
                self._sink.dispatch(event)
        return events

    def clear(self) -> None:
        """Drop all records and markers (session restart)."""
        with self._lock:
            self.vehicles.clear()
            self.reported.clear()
            self.image_markers.clear()
        logging.info("Vehicle event detector cleared")

    def cleanup(self) -> None:
        """Run the stale-record and marker expiry pass now."""
        with self._lock:
            self._cleanup(self._clock())

    def _process_box(
        self,
        box: AnnotatedBox,
        frame: Optional[np.ndarray],
        now: float,
    ) -> Optional[VehicleEvent]:
        if not box.vehicle_id:
            logging.debug(f"Ignoring box without identity (track {box.track_id})")
            return None

        class_name = box.class_name.lower()
        if class_name not in self.vehicle_classes:
            return None

        key = f"{class_name}-{box.sequence}"
        position = box.box.centroid
        record = self.vehicles.get(key)

        if record is None:
            if key in self.reported:
                return None
            return self._on_entry(key, class_name, box, frame, position, now)

        record.last_position = position
        record.last_update_time = now
        record.confidence = box.box.confidence

        if not record.exit_reported and is_near_edge(box.box.bbox, self.config.edge_margin):
            return self._on_exit(record, box, frame, position, now)

        if (
            not self.config.capture_only_entry_exit
            and class_name in self.capture_classes
            and frame is not None
            and self._should_send_image(key, position, now)
        ):
            image = crop_frame(frame, box.box.bbox)
            self.image_markers[(key, self._marker_position(position))] = now
            return VehicleEvent.snapshot(record, EVENT_IMAGE, now, image=image)

        return None

    def _on_entry(
        self,
        key: str,
        class_name: str,
        box: AnnotatedBox,
        frame: Optional[np.ndarray],
        position: Position,
        now: float,
    ) -> VehicleEvent:
        record = VehicleRecord(
            id=key,
            class_name=class_name,
            sequence=box.sequence,
            entry_time=now,
            entry_position=position,
            last_position=position,
            last_update_time=now,
            confidence=box.box.confidence,
        )
        image = self._capture(class_name, frame, box)
        record.captured_image = image
        self.vehicles[key] = record
        self.reported[key] = now
        return VehicleEvent.snapshot(record, EVENT_ENTRY, now, image=image)

    def _on_exit(
        self,
        record: VehicleRecord,
        box: AnnotatedBox,
        frame: Optional[np.ndarray],
        position: Position,
        now: float,
    ) -> VehicleEvent:
        record.mark_exit(position, now)
        image = self._capture(record.class_name, frame, box)
        if image is not None:
            record.captured_image = image
        direction = compass_direction(
            record.entry_position,
            position,
            threshold=self.config.exit_direction_threshold,
            swap_axes=self.config.swap_direction_axes,
        )
        self.reported[record.id] = now
        # Without an exit crop the latest stored crop goes with the exit report
        if image is None:
            image = record.captured_image
        return VehicleEvent.snapshot(record, EVENT_EXIT, now, image=image, direction=direction)

    def _capture(
        self,
        class_name: str,
        frame: Optional[np.ndarray],
        box: AnnotatedBox,
    ) -> Optional[np.ndarray]:
        if frame is None or class_name not in self.capture_classes:
            return None
        return crop_frame(frame, box.box.bbox)

    def _marker_position(self, position: Position) -> Position:
        return (
            round(position[0], IMAGE_POSITION_DECIMALS),
            round(position[1], IMAGE_POSITION_DECIMALS),
        )

    def _should_send_image(self, key: str, position: Position, now: float) -> bool:
        sent = [(pos, ts) for (vid, pos), ts in self.image_markers.items() if vid == key]
        if not sent:
            return True
        last_sent = max(ts for _, ts in sent)
        if now - last_sent <= self.config.image_cooldown_s:
            return False
        for pos, _ in sent:
            if math.hypot(position[0] - pos[0], position[1] - pos[1]) < self.config.min_image_distance:
                return False
        return True

    def _cleanup(self, now: float) -> None:
        stale = [
            key for key, record in self.vehicles.items()
            if record.exit_reported and now - record.last_update_time > self.config.stale_after_s
        ]
        for key in stale:
            del self.vehicles[key]

        # Tracks lost before reaching the edge never report exit
        abandoned = [
            key for key, record in self.vehicles.items()
            if now - record.last_update_time > self.config.abandon_after_s
        ]
        for key in abandoned:
            del self.vehicles[key]
        if abandoned:
            logging.debug(f"Removed {len(abandoned)} vehicle records without exit")

        for key in [k for k, ts in self.reported.items() if now - ts > self.config.report_cooldown_s]:
            del self.reported[key]

        expired_images = [
            k for k, ts in self.image_markers.items()
            if now - ts > self.config.image_marker_ttl_s
        ]
        for key in expired_images:
            del self.image_markers[key]

        if stale:
            logging.debug(f"Removed {len(stale)} stale vehicle records")
