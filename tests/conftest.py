"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.detection import Detection  # noqa: E402


class FakeClock:
    """Manually advanced clock for time-dependent logic."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingReporter:
    """Event Reporter that keeps every payload it is given."""

    def __init__(self, result: bool = True):
        self.payloads = []
        self.result = result

    def send_data(self, payload):
        self.payloads.append(payload)
        return self.result


class RecordingSink:
    """Event sink collecting dispatched events."""

    def __init__(self):
        self.events = []

    def dispatch(self, event):
        self.events.append(event)


def make_detection(cx, cy, w=0.1, h=0.1, confidence=0.9, class_name="car", class_index=2):
    return Detection.from_center(cx, cy, w, h, confidence, class_index, class_name)


def make_output(anchors, labels, num_elements=None):
    """
    Build a [1, 4 + len(labels), E] detector output.

    Args:
        anchors: List of (cx, cy, w, h, class_index, score) tuples.
        labels: Label list, sets the number of class channels.
        num_elements: Total anchors (extra anchors are all-zero).
    """
    num_elements = num_elements or max(len(anchors), 1)
    output = np.zeros((1, 4 + len(labels), num_elements), dtype=np.float32)
    for i, (cx, cy, w, h, cls, score) in enumerate(anchors):
        output[0, 0:4, i] = (cx, cy, w, h)
        output[0, 4 + cls, i] = score
    return output


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def labels():
    """A short COCO-ordered label list."""
    return ["person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck", "cup"]


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
suppression:
  conf_threshold: 0.35
  iou_threshold: 0.45
  target_classes: ["car", "bus", "truck"]

tracking:
  max_disappeared: 25
  max_distance: 0.15

events:
  edge_margin: 0.1
  capture_classes: ["bus"]

reporting:
  base_url: "http://localhost:5000"
  gps_wait_s: 2.0

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "suppression": {
            "conf_threshold": 0.35,
            "iou_threshold": 0.45,
            "target_classes": ["car", "bicycle", "bus", "truck", "motorcycle"],
        },
        "tracking": {
            "max_disappeared": 25,
            "max_distance": 0.15,
            "direction_threshold": 0.02,
            "velocity_alpha": 0.8,
        },
        "events": {
            "vehicle_classes": ["car", "truck", "bus", "motorcycle", "bicycle"],
            "capture_classes": ["bus"],
            "edge_margin": 0.1,
            "report_cooldown_s": 20,
        },
        "reporting": {
            "base_url": "http://localhost:5000",
            "gps_wait_s": 2.0,
            "jpeg_quality": 85,
            "max_workers": 2,
        },
        "pipeline": {
            "max_queued_frames": 3,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
