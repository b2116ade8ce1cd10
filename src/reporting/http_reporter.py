"""
HTTP Event Reporter - sends event payloads to the tracking backend.

Routes:
- payloads without an image go to /tracking
- entry/exit payloads carrying image_data go to /upload-image
- continuous image payloads go to /bus-image
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from models.vehicle import EVENT_IMAGE

DEFAULT_TIMEOUT = 30.0


class HttpEventReporter:
    """Event Reporter posting JSON payloads with requests."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        logging.debug(f"HttpEventReporter initialized: {self.base_url}")

    def endpoint_for(self, payload: Dict[str, Any]) -> str:
        if payload.get("event") == EVENT_IMAGE:
            return f"{self.base_url}/bus-image"
        if "image_data" in payload:
            return f"{self.base_url}/upload-image"
        return f"{self.base_url}/tracking"

    def send_data(self, payload: Dict[str, Any]) -> bool:
        """
        Send one event payload.

        Returns:
            True if the backend accepted the payload.
        """
        url = self.endpoint_for(payload)
        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
            if not response.ok:
                logging.warning(
                    f"Report to {url} failed: {response.status_code} {response.text[:100]}"
                )
                return False
            logging.debug(f"Sent {payload.get('event')} for {payload.get('vehicle_type')} to {url}")
            return True
        except requests.RequestException as e:
            logging.error(f"Report to {url} error: {e}")
            return False

    def login(self, email: str) -> Optional[str]:
        """
        Log in (or register) a user by email.

        Returns:
            The backend user id, or None on failure.
        """
        url = f"{self.base_url}/login"
        try:
            response = requests.post(url, json={"email": email}, timeout=self.timeout)
            if not response.ok:
                logging.error(f"Login failed: {response.status_code} {response.text[:100]}")
                return None
            user_id = response.json().get("user_id") or None
        except (requests.RequestException, ValueError) as e:
            logging.error(f"Login error: {e}")
            return None

        if user_id:
            logging.info(f"Logged in as user {user_id}")
        return user_id
