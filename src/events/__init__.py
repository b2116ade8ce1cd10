"""
Vehicle lifecycle events derived from tracked objects.
"""

from .capture import crop_frame, encode_image_base64, save_capture
from .direction import compass_direction
from .vehicle_events import VehicleEventDetector, is_near_edge

__all__ = [
    "VehicleEventDetector",
    "compass_direction",
    "crop_frame",
    "encode_image_base64",
    "is_near_edge",
    "save_capture",
]
