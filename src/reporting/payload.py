"""
Report payload construction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from models.vehicle import EVENT_EXIT, EVENT_IMAGE, VehicleEvent
from .base import LocationFix
from .session import SessionInfo

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(ts: float) -> str:
    """Format a Unix timestamp as local 'YYYY-MM-DD HH:MM:SS'."""
    return datetime.fromtimestamp(ts).strftime(TIMESTAMP_FORMAT)


def build_payload(
    event: VehicleEvent,
    session: SessionInfo,
    fix: Optional[LocationFix] = None,
    image_data: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the key/value payload for one event.

    Args:
        event: Event snapshot.
        session: Session and user identity.
        fix: GPS fix; GPS fields are omitted without one.
        image_data: Base64 JPEG of the vehicle crop, if any.
    """
    payload: Dict[str, Any] = {
        "event": event.event_type,
        "session_id": session.session_id,
        "vehicle_type": event.vehicle_type,
        "vehicle_id": str(event.sequence),
        "timestamp": format_timestamp(event.timestamp),
        "confidence": event.confidence,
        "user_id": session.user_id,
        "is_public": session.is_public,
    }

    if fix is not None:
        payload["gps_location"] = fix.as_string()
        payload["gps_latitude"] = fix.latitude
        payload["gps_longitude"] = fix.longitude

    if event.event_type == EVENT_EXIT and event.exit_position is not None:
        payload.update({
            "entry_timestamp": format_timestamp(event.entry_time),
            "exit_timestamp": format_timestamp(event.exit_time),
            "entry_position_x": event.entry_position[0],
            "entry_position_y": event.entry_position[1],
            "exit_position_x": event.exit_position[0],
            "exit_position_y": event.exit_position[1],
            "location": f"{event.exit_position[0]},{event.exit_position[1]}",
            "direction": event.direction,
            "time_in_frame_ms": event.time_in_frame_ms,
        })
    elif event.event_type == EVENT_IMAGE:
        payload["device_id"] = str(event.sequence)
        payload["capture_type"] = "continuous"
        payload["location"] = f"{event.position[0]},{event.position[1]}"
    else:
        payload["location"] = f"{event.entry_position[0]},{event.entry_position[1]}"

    if event.has_image:
        payload["has_image"] = True
    if image_data is not None:
        payload["image_data"] = image_data

    return payload
