"""
Tracking session and user identity attached to every report.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SessionInfo:
    """Immutable view of the session at the time a report is built."""
    session_id: str
    user_id: Optional[str] = None
    is_public: bool = False


class SessionContext:
    """Holds the session id and the logged-in user, shared across threads."""

    def __init__(self, user_id: Optional[str] = None, is_public: bool = False):
        self._lock = threading.Lock()
        self._session_id = str(uuid.uuid4())
        self._user_id = user_id
        self._is_public = is_public

    @property
    def session_id(self) -> str:
        with self._lock:
            return self._session_id

    @property
    def user_id(self) -> Optional[str]:
        with self._lock:
            return self._user_id

    def reset_session_id(self) -> str:
        """Start a new tracking session and return its id."""
        with self._lock:
            self._session_id = str(uuid.uuid4())
            session_id = self._session_id
        logging.info(f"New tracking session: {session_id}")
        return session_id

    def set_user(self, user_id: str, is_public: bool = False) -> None:
        with self._lock:
            self._user_id = user_id
            self._is_public = is_public

    def clear_user(self) -> None:
        with self._lock:
            self._user_id = None
            self._is_public = False

    def snapshot(self) -> SessionInfo:
        with self._lock:
            return SessionInfo(
                session_id=self._session_id,
                user_id=self._user_id,
                is_public=self._is_public,
            )
