"""
Typed models for the vehicle tracker.

Detections and boxes are in normalized image coordinates.
"""

from .frame import FrameData
from .detection import Detection, BoundingBox
from .track import AnnotatedBox, Direction, TrackedObject
from .vehicle import VehicleEvent, VehicleRecord, EVENT_ENTRY, EVENT_EXIT, EVENT_IMAGE
from .config import (
    Config,
    SuppressionConfig,
    TrackingConfig,
    EventConfig,
    ReportingConfig,
    LocationConfig,
    PipelineSettings,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "Detection",
    "BoundingBox",
    # Tracking
    "AnnotatedBox",
    "Direction",
    "TrackedObject",
    # Vehicle events
    "VehicleEvent",
    "VehicleRecord",
    "EVENT_ENTRY",
    "EVENT_EXIT",
    "EVENT_IMAGE",
    # Config
    "Config",
    "SuppressionConfig",
    "TrackingConfig",
    "EventConfig",
    "ReportingConfig",
    "LocationConfig",
    "PipelineSettings",
]
