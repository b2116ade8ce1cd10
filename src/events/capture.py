"""
Vehicle image capture helpers: cropping, JPEG/base64 encoding and local saves.
"""

from __future__ import annotations

import base64
import logging
import os
from datetime import datetime
from typing import Optional

import cv2
import numpy as np

from models.detection import BoundingBox

DEFAULT_JPEG_QUALITY = 85


def crop_frame(frame: np.ndarray, bbox: BoundingBox) -> np.ndarray:
    """
    Crop a frame to a normalized bounding box.

    Pixel coordinates are the normalized values scaled by the frame size.
    The top-left corner is clamped into the frame and the bottom-right corner
    is kept at least one pixel past it, so the crop is never empty. Any
    failure falls back to a full copy of the frame.

    Args:
        frame: Image array (H, W[, C]).
        bbox: Box in normalized coordinates.

    Returns:
        A new array owning its pixels.
    """
    try:
        height, width = frame.shape[:2]
        x1 = min(max(int(bbox.x1 * width), 0), width - 1)
        y1 = min(max(int(bbox.y1 * height), 0), height - 1)
        x2 = min(max(int(bbox.x2 * width), x1 + 1), width)
        y2 = min(max(int(bbox.y2 * height), y1 + 1), height)
        return frame[y1:y2, x1:x2].copy()
    except Exception as e:
        logging.warning(f"Crop failed, using full frame: {e}")
        return np.array(frame, copy=True)


def encode_image_base64(image: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> str:
    """
    Compress an image to JPEG and return it base64-encoded.

    Raises:
        ValueError: If OpenCV cannot encode the image.
    """
    ok, buf = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return base64.b64encode(buf.tobytes()).decode("ascii")


def capture_filename(vehicle_id: str, event_type: str, when: Optional[datetime] = None) -> str:
    """File name for a locally saved capture: {vehicle_id}_{event}_{YYYYmmdd_HHMMSS}.jpg"""
    stamp = (when or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{vehicle_id}_{event_type}_{stamp}.jpg"


def save_capture(
    image: np.ndarray,
    directory: str,
    vehicle_id: str,
    event_type: str,
    when: Optional[datetime] = None,
) -> Optional[str]:
    """
    Save a captured vehicle image to disk (test mode).

    Returns:
        The written path, or None if the write failed.
    """
    if not os.path.exists(directory):
        os.makedirs(directory)

    path = os.path.join(directory, capture_filename(vehicle_id, event_type, when))
    if not cv2.imwrite(path, image):
        logging.error(f"Failed to save capture: {path}")
        return None
    logging.info(f"Saved capture: {path}")
    return path
