"""
Centroid tracker assigning stable identities to detections across frames.

Association is a greedy global nearest-neighbour pass over the full centroid
distance matrix: all (track, detection) pairs are visited in ascending
distance and a pair is accepted when neither side is taken yet and the
distance is below the gate. This approximates, but is not, an optimal
assignment.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Sequence

import numpy as np

from models.config import TrackingConfig
from models.detection import Detection, centroids_to_numpy
from models.track import AnnotatedBox, Direction, TrackedObject
from .listener import CallbackListener, TrackerListener


def direction_from_displacement(dx: float, dy: float, threshold: float) -> Direction:
    """
    Classify a centroid displacement into one of eight directions.

    Image coordinates: positive dx is right, positive dy is down. A component
    counts only when its magnitude exceeds the threshold; both exceeding
    gives a diagonal.
    """
    horizontal = abs(dx) > threshold
    vertical = abs(dy) > threshold
    if not horizontal and not vertical:
        return Direction.NONE
    if horizontal and vertical:
        if dy > 0:
            return Direction.DOWN_RIGHT if dx > 0 else Direction.DOWN_LEFT
        return Direction.UP_RIGHT if dx > 0 else Direction.UP_LEFT
    if horizontal:
        return Direction.RIGHT if dx > 0 else Direction.LEFT
    return Direction.DOWN if dy > 0 else Direction.UP


class ObjectTracker:
    """
    Tracks objects across frames using centroid distance matching.

    This tracker is responsible for:
    - Matching detections to existing objects by centroid distance
    - Issuing class-scoped sequence numbers that are never reused
    - Estimating direction and smoothed velocity per object
    - Retiring objects that stay unmatched for too long

    All state is guarded by one lock; `update` may be called from any thread
    but calls are serialized.
    """

    def __init__(self, config: Optional[TrackingConfig] = None):
        """
        Initialize the object tracker.

        Args:
            config: Matching gate, disappearance limit and direction settings.
        """
        self.config = config or TrackingConfig()

        self.objects: Dict[int, TrackedObject] = {}
        self.next_object_id = 0
        self._class_sequences: Dict[str, int] = {}
        self._listeners: List[TrackerListener] = []
        self._lock = threading.Lock()
        self.last_update_cleared = False

        logging.info(
            f"Object tracker initialized (max_disappeared={self.config.max_disappeared}, "
            f"max_distance={self.config.max_distance})"
        )

    def add_listener(self, listener) -> None:
        """
        Register a listener for the tracking-cleared notification.

        Args:
            listener: A TrackerListener, or a zero-argument callable.
        """
        if not hasattr(listener, "on_tracking_cleared"):
            listener = CallbackListener(listener)
        with self._lock:
            self._listeners.append(listener)

    def update(self, detections: Sequence[Detection]) -> List[AnnotatedBox]:
        """
        Update tracker with one frame of detections.

        Args:
            detections: Suppressed detections for this frame.

        Returns:
            Boxes of every currently tracked object, ordered by track id.
        """
        with self._lock:
            if not detections:
                removed = self._mark_missing(list(self.objects))
            elif not self.objects:
                removed = 0
                for det in detections:
                    self._register(det)
            else:
                removed = self._match(list(detections))

            cleared = removed > 0 and not self.objects
            self.last_update_cleared = cleared
            result = self._annotated()
            listeners = list(self._listeners) if cleared else []

        for listener in listeners:
            try:
                listener.on_tracking_cleared()
            except Exception as e:
                logging.warning(f"Tracker listener error: {e}")
        if cleared:
            logging.info("Tracking cleared: no objects left in view")

        return result

    def clear(self) -> None:
        """Forget every object and restart ids and sequence numbers."""
        with self._lock:
            self.objects.clear()
            self.next_object_id = 0
            self._class_sequences.clear()
            self.last_update_cleared = False
        logging.info("Object tracker reset")

    def get_tracked_objects(self) -> List[AnnotatedBox]:
        """Get the current tracked set without advancing the tracker."""
        with self._lock:
            return self._annotated()

    def last_sequence(self, class_name: str) -> int:
        """Last sequence number issued for a class (0 if none yet)."""
        with self._lock:
            return self._class_sequences.get(class_name, 0)

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self.objects

    def __len__(self) -> int:
        with self._lock:
            return len(self.objects)

    def _match(self, detections: List[Detection]) -> int:
        """Associate detections with tracked objects. Returns the number removed."""
        object_ids = list(self.objects)
        object_centroids = np.array([self.objects[i].centroid for i in object_ids], dtype=float)
        detection_centroids = centroids_to_numpy(detections)

        distances = np.linalg.norm(
            object_centroids[:, np.newaxis, :] - detection_centroids[np.newaxis, :, :],
            axis=2,
        )

        used_rows = set()
        used_cols = set()
        n_cols = distances.shape[1]
        for flat in np.argsort(distances, axis=None, kind="stable"):
            row, col = divmod(int(flat), n_cols)
            if distances[row, col] >= self.config.max_distance:
                break
            if row in used_rows or col in used_cols:
                continue
            used_rows.add(row)
            used_cols.add(col)

            obj = self.objects[object_ids[row]]
            det = detections[col]
            if obj.class_name == det.class_name:
                self._update_object(obj, det)
            else:
                # The pair is consumed: the old object is neither updated nor
                # counted as missing this frame.
                logging.debug(
                    f"Class change for object {obj.track_id}: {obj.class_name} -> "
                    f"{det.class_name}, registering as new object"
                )
                self._register(det)

        unmatched = [object_ids[row] for row in range(len(object_ids)) if row not in used_rows]
        removed = self._mark_missing(unmatched)

        for col, det in enumerate(detections):
            if col not in used_cols:
                self._register(det)

        return removed

    def _update_object(self, obj: TrackedObject, det: Detection) -> None:
        old_x, old_y = obj.centroid
        new_x, new_y = det.centroid
        dx = new_x - old_x
        dy = new_y - old_y
        alpha = self.config.velocity_alpha

        obj.last_centroid = obj.centroid
        obj.centroid = (new_x, new_y)
        obj.velocity = (
            alpha * dx + (1 - alpha) * obj.velocity[0],
            alpha * dy + (1 - alpha) * obj.velocity[1],
        )
        obj.direction = direction_from_displacement(dx, dy, self.config.direction_threshold)
        obj.box = det
        obj.disappeared_frames = 0

    def _mark_missing(self, object_ids: List[int]) -> int:
        """Age unmatched objects and deregister expired ones. Returns the number removed."""
        removed = 0
        for object_id in object_ids:
            obj = self.objects[object_id]
            obj.disappeared_frames += 1
            if obj.disappeared_frames > self.config.max_disappeared:
                self._deregister(object_id)
                removed += 1
            elif self.config.extrapolate_missing:
                vx, vy = obj.velocity
                obj.box = obj.box.shifted(vx, vy)
                obj.centroid = obj.box.centroid
        return removed

    def _register(self, det: Detection) -> TrackedObject:
        sequence = self._class_sequences.get(det.class_name, 0) + 1
        self._class_sequences[det.class_name] = sequence

        obj = TrackedObject(
            track_id=self.next_object_id,
            class_name=det.class_name,
            sequence=sequence,
            centroid=det.centroid,
            box=det,
        )
        self.objects[obj.track_id] = obj
        self.next_object_id += 1
        logging.debug(f"Registered object {obj.track_id} as {det.class_name} #{sequence}")
        return obj

    def _deregister(self, object_id: int) -> None:
        obj = self.objects.pop(object_id)
        logging.debug(
            f"Deregistered object {object_id} ({obj.class_name} #{obj.sequence}) "
            f"after {obj.disappeared_frames} missed frames"
        )

    def _annotated(self) -> List[AnnotatedBox]:
        return [AnnotatedBox.from_tracked_object(obj) for obj in self.objects.values()]
