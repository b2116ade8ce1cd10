"""
Pipeline engine for the vehicle tracker.

This module runs each frame through suppression, tracking and event
detection. Frames are processed strictly one at a time: either synchronously
via `process`, or by a single worker thread fed from a small bounded queue
that drops frames when processing falls behind.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from detection.labels import resolve_labels
from detection.suppression import BoxSuppressor
from events.vehicle_events import EventSink, VehicleEventDetector
from models.config import Config
from models.detection import Detection
from models.frame import FrameData
from models.track import AnnotatedBox
from models.vehicle import VehicleEvent
from tracking.tracker import ObjectTracker


@dataclass
class PipelineConfig:
    """
    Configuration for the frame pipeline.

    Attributes:
        max_queued_frames: Frames buffered for the worker before new ones are dropped.
        stats_log_interval: Seconds between status log messages.
        queue_poll_interval: Seconds the worker waits on an empty queue before rechecking.
    """
    max_queued_frames: int = 3
    stats_log_interval: float = 60.0
    queue_poll_interval: float = 0.5


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    frame_count: int = 0
    failed_frames: int = 0
    dropped_frames: int = 0
    event_count_by_type: Dict[str, int] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)


@dataclass
class FrameResult:
    """
    Everything the pipeline produced for one frame.

    Attributes:
        frame_index: 1-based index of the frame in this pipeline.
        detections: Suppressed detections.
        boxes: Tracked boxes (all currently tracked objects).
        events: Vehicle events decided on this frame.
        tracking_cleared: True if the tracked set became empty on this frame.
        failed: True if a stage raised; the other fields are then empty.
    """
    frame_index: int
    detections: List[Detection] = field(default_factory=list)
    boxes: List[AnnotatedBox] = field(default_factory=list)
    events: List[VehicleEvent] = field(default_factory=list)
    tracking_cleared: bool = False
    failed: bool = False


class FramePipeline:
    """
    Frame processing engine: detector output in, tracked boxes and events out.

    This engine:
    - Suppresses raw detector output into detections
    - Updates the object tracker
    - Feeds tracked boxes to the vehicle event detector
    - Notifies callbacks with a FrameResult per frame

    Example:
        pipeline = FramePipeline(suppressor, tracker, event_detector)
        pipeline.start()
        pipeline.submit(FrameData(output=raw, image=frame))
        pipeline.stop()
    """

    def __init__(
        self,
        suppressor: BoxSuppressor,
        tracker: ObjectTracker,
        event_detector: VehicleEventDetector,
        config: Optional[PipelineConfig] = None,
    ):
        self.suppressor = suppressor
        self.tracker = tracker
        self.event_detector = event_detector
        self.config = config or PipelineConfig()
        self.stats = PipelineStats()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[FrameResult], None]] = []
        self._queue: "queue.Queue[Optional[FrameData]]" = queue.Queue(
            maxsize=self.config.max_queued_frames
        )
        self._worker: Optional[threading.Thread] = None
        self._running = False
        self._stop_requested = False

    def add_callback(self, callback: Callable[[FrameResult], None]) -> None:
        """
        Add a callback to be called after each frame is processed.

        Args:
            callback: Function taking the FrameResult as its only argument.
        """
        self._callbacks.append(callback)

    def process(self, output: np.ndarray, frame: Optional[np.ndarray] = None) -> FrameResult:
        """
        Process a single frame synchronously.

        A failure in any stage is logged and yields an empty, failed result.
        """
        with self._lock:
            self.stats.frame_count += 1
            frame_index = self.stats.frame_count
            try:
                detections = self.suppressor.suppress(output)
                boxes = self.tracker.update(detections)
                events = self.event_detector.process(boxes, frame)
            except Exception as e:
                logging.error(f"Frame {frame_index} processing failed: {e}")
                self.stats.failed_frames += 1
                result = FrameResult(frame_index=frame_index, failed=True)
            else:
                result = FrameResult(
                    frame_index=frame_index,
                    detections=detections,
                    boxes=boxes,
                    events=events,
                    tracking_cleared=self.tracker.last_update_cleared,
                )
                for event in events:
                    self.stats.event_count_by_type[event.event_type] = (
                        self.stats.event_count_by_type.get(event.event_type, 0) + 1
                    )
            self._handle_periodic_tasks()

        for callback in self._callbacks:
            try:
                callback(result)
            except Exception as e:
                logging.warning(f"Callback error: {e}")
        return result

    def start(self) -> None:
        """Start the worker thread consuming submitted frames."""
        if self._worker is not None and self._worker.is_alive():
            return
        self._running = True
        self._stop_requested = False
        self._worker = threading.Thread(target=self._run_worker, name="frame-pipeline", daemon=True)
        self._worker.start()
        logging.info("Pipeline started")

    def submit(self, frame_data: FrameData) -> bool:
        """
        Queue a frame for the worker.

        Returns:
            False if the queue was full and the frame was dropped.
        """
        try:
            self._queue.put_nowait(frame_data)
            return True
        except queue.Full:
            with self._lock:
                self.stats.dropped_frames += 1
            logging.debug(f"Pipeline busy, dropped frame {frame_data.frame_index}")
            return False

    def stop(self, timeout: Optional[float] = None) -> None:
        """Process frames already queued, then stop the worker."""
        if self._worker is None:
            return
        # One end-of-queue marker per worker
        if not self._stop_requested:
            self._queue.put(None)
            self._stop_requested = True
        self._worker.join(timeout=timeout)
        if self._worker.is_alive():
            logging.warning("Pipeline worker did not stop within timeout")
            return
        self._worker = None
        self._running = False
        logging.info(
            f"Pipeline stopped: frames={self.stats.frame_count}, "
            f"failed={self.stats.failed_frames}, dropped={self.stats.dropped_frames}"
        )

    @property
    def is_running(self) -> bool:
        return self._running

    def clear(self) -> None:
        """Reset tracking and event state (new session)."""
        with self._lock:
            self.tracker.clear()
            self.event_detector.clear()

    def _run_worker(self) -> None:
        while True:
            try:
                frame_data = self._queue.get(timeout=self.config.queue_poll_interval)
            except queue.Empty:
                continue
            if frame_data is None:
                break
            self.process(frame_data.output, frame_data.image)

    def _handle_periodic_tasks(self) -> None:
        """Run periodic tasks (logging)."""
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            logging.info(
                f"Pipeline stats: frames={self.stats.frame_count}, "
                f"failed={self.stats.failed_frames}, dropped={self.stats.dropped_frames}, "
                f"tracked={len(self.tracker)}, events={self.stats.event_count_by_type}"
            )
            self.stats.last_stats_log_time = now


def create_pipeline_from_config(
    config: Config,
    labels: Optional[List[str]] = None,
    sink: Optional[EventSink] = None,
) -> FramePipeline:
    """
    Factory function to create a FramePipeline from the typed config.

    Args:
        config: Full application config.
        labels: Class labels; resolved from the suppression config when omitted.
        sink: Receiver of vehicle events (usually a ReportDispatcher).
    """
    if labels is None:
        labels = resolve_labels(
            metadata_path=config.suppression.metadata_path,
            labels_path=config.suppression.labels_path,
        )

    suppressor = BoxSuppressor(labels, config.suppression)
    tracker = ObjectTracker(config.tracking)
    event_detector = VehicleEventDetector(config.events, sink=sink)
    pipeline_config = PipelineConfig(
        max_queued_frames=config.pipeline.max_queued_frames,
        stats_log_interval=config.pipeline.stats_log_interval,
    )
    return FramePipeline(suppressor, tracker, event_detector, pipeline_config)
