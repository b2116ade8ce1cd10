"""
Asynchronous event reporting.

Each event is reported by its own task on a thread pool so that GPS waits,
image encoding and network sends never block the tracking loop. Tasks only
ever see immutable event snapshots.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from events.capture import encode_image_base64, save_capture
from models.config import ReportingConfig
from models.vehicle import VehicleEvent
from .base import EventReporter, LocationFix, LocationProvider, StaticLocationProvider
from .payload import build_payload
from .session import SessionContext, SessionInfo


@dataclass
class DispatchStats:
    """Outcome counters for reporting tasks."""
    submitted: int = 0
    sent: int = 0
    dropped: int = 0
    failed: int = 0
    skipped: int = 0


class ReportDispatcher:
    """
    Hands events to the Event Reporter without blocking the caller.

    Per event the task:
    - waits a bounded time for a GPS fix and a user id
    - drops the event (logged, no retry) if they are still missing
    - encodes the vehicle crop, builds the payload and sends it

    In test mode crops are saved locally and nothing is sent.
    """

    def __init__(
        self,
        reporter: Optional[EventReporter],
        location: Optional[LocationProvider] = None,
        session: Optional[SessionContext] = None,
        config: Optional[ReportingConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or ReportingConfig()
        self.reporter = reporter
        self.location = location or StaticLocationProvider()
        self.session = session or SessionContext()
        self.stats = DispatchStats()
        self._sleep = sleep
        self._clock = clock
        self._stats_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="report",
        )

    def dispatch(self, event: VehicleEvent) -> Future:
        """Schedule an event report. The returned future resolves to True if sent."""
        self._count("submitted")
        return self._executor.submit(self._report, event)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        logging.info(
            f"Report dispatcher stopped: sent={self.stats.sent}, "
            f"dropped={self.stats.dropped}, failed={self.stats.failed}"
        )

    def _report(self, event: VehicleEvent) -> bool:
        try:
            if self.config.test_mode:
                return self._report_test_mode(event)

            fix, session = self._wait_until_ready()
            if self.config.require_gps and fix is None:
                logging.warning(
                    f"No GPS fix after {self.config.gps_wait_s}s, dropping "
                    f"{event.event_type} event for {event.vehicle_id}"
                )
                self._count("dropped")
                return False
            if self.config.require_user and not session.user_id:
                logging.warning(
                    f"No user logged in, dropping {event.event_type} event for {event.vehicle_id}"
                )
                self._count("dropped")
                return False

            image_data = None
            if event.image is not None:
                image_data = encode_image_base64(event.image, self.config.jpeg_quality)

            payload = build_payload(event, session, fix, image_data)
            if self.reporter is None:
                logging.debug(f"No reporter configured, {event.event_type} for {event.vehicle_id} not sent")
                self._count("dropped")
                return False

            if self.reporter.send_data(payload):
                self._count("sent")
                return True
            self._count("failed")
            return False
        except Exception as e:
            logging.error(f"Failed to report {event.event_type} for {event.vehicle_id}: {e}")
            self._count("failed")
            return False

    def _report_test_mode(self, event: VehicleEvent) -> bool:
        if event.image is not None:
            save_capture(event.image, self.config.capture_dir, event.vehicle_id, event.event_type)
        payload = build_payload(event, self.session.snapshot(), self.location.get_fix())
        logging.info(f"Test mode, not sending {event.event_type} payload: {payload}")
        self._count("skipped")
        return False

    def _wait_until_ready(self) -> Tuple[Optional[LocationFix], SessionInfo]:
        """Poll for GPS and user until both are present or the wait expires."""
        deadline = self._clock() + self.config.gps_wait_s
        while True:
            fix = self.location.get_fix()
            session = self.session.snapshot()
            gps_ok = fix is not None or not self.config.require_gps
            user_ok = bool(session.user_id) or not self.config.require_user
            if (gps_ok and user_ok) or self._clock() >= deadline:
                return fix, session
            self._sleep(self.config.gps_poll_interval_s)

    def _count(self, name: str) -> None:
        with self._stats_lock:
            setattr(self.stats, name, getattr(self.stats, name) + 1)
