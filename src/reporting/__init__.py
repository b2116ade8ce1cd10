"""
Event reporting: payloads, session identity, location and transport.
"""

from .base import EventReporter, LocationFix, LocationProvider, StaticLocationProvider
from .dispatcher import DispatchStats, ReportDispatcher
from .http_reporter import HttpEventReporter
from .payload import build_payload, format_timestamp
from .session import SessionContext, SessionInfo

__all__ = [
    "DispatchStats",
    "EventReporter",
    "HttpEventReporter",
    "LocationFix",
    "LocationProvider",
    "ReportDispatcher",
    "SessionContext",
    "SessionInfo",
    "StaticLocationProvider",
    "build_payload",
    "format_timestamp",
]
