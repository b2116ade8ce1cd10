"""
Tests for VehicleEventDetector entry/exit and capture logic.
"""

import numpy as np
import pytest

from conftest import RecordingSink, make_detection
from events.vehicle_events import VehicleEventDetector, is_near_edge
from models.config import EventConfig, TrackingConfig
from models.detection import BoundingBox
from models.track import AnnotatedBox
from models.vehicle import EVENT_ENTRY, EVENT_EXIT, EVENT_IMAGE
from tracking.tracker import ObjectTracker


def make_box(cx, cy, class_name="car", sequence=1, track_id=0, w=0.1, h=0.1, confidence=0.9):
    return AnnotatedBox(
        box=make_detection(cx, cy, w=w, h=h, confidence=confidence, class_name=class_name),
        track_id=track_id,
        class_name=class_name,
        sequence=sequence,
    )


@pytest.fixture
def frame():
    return np.full((100, 200, 3), 127, dtype=np.uint8)


@pytest.fixture
def detector(fake_clock):
    return VehicleEventDetector(EventConfig(), clock=fake_clock)


class TestEdgeMargin:
    def test_center_box_not_near_edge(self):
        assert not is_near_edge(BoundingBox(0.4, 0.4, 0.6, 0.6), 0.1)

    @pytest.mark.parametrize("bbox", [
        BoundingBox(0.05, 0.4, 0.3, 0.6),
        BoundingBox(0.7, 0.4, 0.95, 0.6),
        BoundingBox(0.4, 0.02, 0.6, 0.3),
        BoundingBox(0.4, 0.7, 0.6, 0.91),
    ])
    def test_each_side_counts(self, bbox):
        assert is_near_edge(bbox, 0.1)

    def test_margin_is_exclusive(self):
        """A box exactly on the margin line is not near the edge."""
        assert not is_near_edge(BoundingBox(0.1, 0.1, 0.9, 0.9), 0.1)


class TestEntry:
    """Tests for first-sighting behaviour."""

    def test_first_sighting_emits_entry(self, detector, fake_clock):
        events = detector.process([make_box(0.5, 0.5)])

        assert len(events) == 1
        event = events[0]
        assert event.event_type == EVENT_ENTRY
        assert event.vehicle_id == "car-1"
        assert event.vehicle_type == "car"
        assert event.sequence == 1
        assert event.timestamp == fake_clock.now
        assert event.entry_position == pytest.approx((0.5, 0.5))
        assert event.exit_time is None
        assert "car-1" in detector.vehicles

    def test_second_sighting_is_silent(self, detector, fake_clock):
        detector.process([make_box(0.5, 0.5)])
        fake_clock.advance(0.1)

        assert detector.process([make_box(0.52, 0.5)]) == []
        record = detector.vehicles["car-1"]
        assert record.last_position == pytest.approx((0.52, 0.5))
        assert record.last_update_time == fake_clock.now

    def test_class_name_lowercased(self, detector):
        events = detector.process([make_box(0.5, 0.5, class_name="Car")])

        assert events[0].vehicle_id == "car-1"

    def test_non_vehicle_class_ignored(self, detector):
        assert detector.process([make_box(0.5, 0.5, class_name="person")]) == []
        assert detector.vehicles == {}

    def test_box_without_identity_ignored(self, detector):
        """Boxes missing a class or a sequence number are skipped."""
        boxes = [make_box(0.5, 0.5, sequence=0), make_box(0.3, 0.3, class_name="")]

        assert detector.process(boxes) == []
        assert detector.vehicles == {}

    def test_sink_receives_events(self, fake_clock):
        sink = RecordingSink()
        detector = VehicleEventDetector(EventConfig(), sink=sink, clock=fake_clock)

        events = detector.process([make_box(0.3, 0.5), make_box(0.7, 0.5, sequence=2)])

        assert sink.events == events
        assert [e.vehicle_id for e in sink.events] == ["car-1", "car-2"]


class TestCapture:
    """Tests for vehicle crops attached to events."""

    def test_capture_class_gets_crop(self, detector, frame):
        events = detector.process([make_box(0.5, 0.5, class_name="bus", w=0.25, h=0.25)], frame)

        assert events[0].has_image
        assert events[0].image.shape == (25, 50, 3)

    def test_other_classes_not_captured(self, detector, frame):
        events = detector.process([make_box(0.5, 0.5, class_name="car")], frame)

        assert not events[0].has_image

    def test_no_frame_no_image(self, detector):
        events = detector.process([make_box(0.5, 0.5, class_name="bus")])

        assert not events[0].has_image

    def test_event_image_is_independent_copy(self, detector, frame):
        """Changing the frame or record after the event leaves the event unchanged."""
        events = detector.process([make_box(0.5, 0.5, class_name="bus", w=0.2, h=0.2)], frame)
        frame[:] = 0
        detector.vehicles["bus-1"].captured_image[:] = 255

        assert (events[0].image == 127).all()


class TestExit:
    """Tests for exit detection."""

    def test_exit_on_edge(self, detector, fake_clock):
        detector.process([make_box(0.5, 0.5)])
        fake_clock.advance(2.5)

        events = detector.process([make_box(0.88, 0.5)])

        assert len(events) == 1
        event = events[0]
        assert event.event_type == EVENT_EXIT
        assert event.exit_position == pytest.approx((0.88, 0.5))
        assert event.exit_time == fake_clock.now
        assert event.time_in_frame_ms == 2500
        assert event.direction == "south"

    def test_exit_reported_once(self, detector, fake_clock):
        detector.process([make_box(0.5, 0.5)])
        detector.process([make_box(0.88, 0.5)])

        for _ in range(5):
            fake_clock.advance(0.1)
            assert detector.process([make_box(0.9, 0.5)]) == []

        record = detector.vehicles["car-1"]
        assert record.exit_reported
        assert record.exit_position == pytest.approx((0.88, 0.5))

    def test_entry_at_edge_is_not_exit(self, detector):
        """A vehicle first seen at the edge only enters on that frame."""
        events = detector.process([make_box(0.05, 0.5)])

        assert [e.event_type for e in events] == [EVENT_ENTRY]

    def test_unswapped_direction(self, fake_clock):
        detector = VehicleEventDetector(EventConfig(swap_direction_axes=False), clock=fake_clock)
        detector.process([make_box(0.5, 0.5)])

        events = detector.process([make_box(0.88, 0.5)])

        assert events[0].direction == "east"

    def test_exit_capture_for_bus(self, detector, frame):
        detector.process([make_box(0.5, 0.5, class_name="bus")], frame)

        events = detector.process([make_box(0.88, 0.5, class_name="bus")], frame)

        assert events[0].event_type == EVENT_EXIT
        assert events[0].has_image

    def test_exit_without_frame_uses_entry_crop(self, detector, frame):
        detector.process([make_box(0.5, 0.5, class_name="bus")], frame)
        entry_crop = detector.vehicles["bus-1"].captured_image

        events = detector.process([make_box(0.88, 0.5, class_name="bus")])

        assert events[0].event_type == EVENT_EXIT
        assert events[0].has_image
        assert np.array_equal(events[0].image, entry_crop)
        assert (events[0].image == 127).all()


class TestCleanup:
    """Tests for record and marker expiry."""

    def test_stale_exited_record_removed(self, detector, fake_clock):
        detector.process([make_box(0.5, 0.5)])
        detector.process([make_box(0.88, 0.5)])

        fake_clock.advance(5.0)
        detector.cleanup()
        assert "car-1" in detector.vehicles

        fake_clock.advance(0.5)
        detector.cleanup()
        assert "car-1" not in detector.vehicles

    def test_record_without_exit_kept_within_abandon_window(self, detector, fake_clock):
        detector.process([make_box(0.5, 0.5)])

        fake_clock.advance(60.0)
        detector.cleanup()

        assert "car-1" in detector.vehicles

    def test_record_without_exit_abandoned(self, detector, fake_clock, frame):
        """A vehicle lost before reaching the edge is dropped with its crop."""
        detector.process([make_box(0.5, 0.5, class_name="bus")], frame)
        assert detector.vehicles["bus-1"].captured_image is not None

        fake_clock.advance(60.5)
        detector.cleanup()

        assert detector.vehicles == {}

    def test_active_record_not_abandoned(self, detector, fake_clock):
        detector.process([make_box(0.5, 0.5)])

        for _ in range(10):
            fake_clock.advance(15.0)
            assert detector.process([make_box(0.5, 0.5)]) == []

        assert "car-1" in detector.vehicles

    def test_many_lost_vehicles_stay_bounded(self, detector, fake_clock, frame):
        """Vehicles seen once and never again do not accumulate."""
        for sequence in range(1, 51):
            detector.process([make_box(0.5, 0.5, class_name="bus", sequence=sequence)], frame)
            fake_clock.advance(30.0)

        assert len(detector.vehicles) <= 3
        assert "bus-50" in detector.vehicles
        assert "bus-1" not in detector.vehicles

    def test_reported_marker_blocks_reentry(self, detector, fake_clock):
        """A vehicle id reported recently is not entered again."""
        detector.process([make_box(0.5, 0.5)])
        detector.process([make_box(0.88, 0.5)])
        fake_clock.advance(10.0)
        detector.cleanup()
        assert "car-1" not in detector.vehicles

        assert detector.process([make_box(0.5, 0.5)]) == []
        assert "car-1" not in detector.vehicles

        fake_clock.advance(10.5)
        detector.cleanup()
        events = detector.process([make_box(0.5, 0.5)])

        assert [e.event_type for e in events] == [EVENT_ENTRY]

    def test_clear(self, detector):
        detector.process([make_box(0.5, 0.5)])

        detector.clear()

        assert detector.vehicles == {}
        assert detector.reported == {}
        assert [e.event_type for e in detector.process([make_box(0.5, 0.5)])] == [EVENT_ENTRY]


class TestContinuousImages:
    """Tests for throttled image events when not limited to entry/exit."""

    @pytest.fixture
    def image_detector(self, fake_clock):
        config = EventConfig(capture_only_entry_exit=False, image_cooldown_s=5.0, min_image_distance=0.1)
        return VehicleEventDetector(config, clock=fake_clock)

    def test_first_image_sent(self, image_detector, frame):
        image_detector.process([make_box(0.3, 0.5, class_name="bus")], frame)

        events = image_detector.process([make_box(0.31, 0.5, class_name="bus")], frame)

        assert [e.event_type for e in events] == [EVENT_IMAGE]
        assert events[0].has_image
        assert ("bus-1", (0.31, 0.5)) in image_detector.image_markers

    def test_cooldown_blocks_images(self, image_detector, frame, fake_clock):
        image_detector.process([make_box(0.3, 0.5, class_name="bus")], frame)
        image_detector.process([make_box(0.3, 0.5, class_name="bus")], frame)

        fake_clock.advance(3.0)
        assert image_detector.process([make_box(0.5, 0.5, class_name="bus")], frame) == []

    def test_image_needs_new_position(self, image_detector, frame, fake_clock):
        image_detector.process([make_box(0.3, 0.5, class_name="bus")], frame)
        image_detector.process([make_box(0.3, 0.5, class_name="bus")], frame)

        fake_clock.advance(6.0)
        assert image_detector.process([make_box(0.35, 0.5, class_name="bus")], frame) == []

        events = image_detector.process([make_box(0.45, 0.5, class_name="bus")], frame)
        assert [e.event_type for e in events] == [EVENT_IMAGE]

    def test_non_capture_class_gets_no_images(self, image_detector, frame):
        image_detector.process([make_box(0.3, 0.5)], frame)

        assert image_detector.process([make_box(0.31, 0.5)], frame) == []

    def test_image_markers_expire(self, image_detector, frame, fake_clock):
        image_detector.process([make_box(0.3, 0.5, class_name="bus")], frame)
        image_detector.process([make_box(0.3, 0.5, class_name="bus")], frame)

        fake_clock.advance(31.0)
        image_detector.cleanup()

        assert image_detector.image_markers == {}


class TestTrackedScenario:
    """A car crossing the frame, driven through the real tracker."""

    @pytest.mark.parametrize("swap_axes, expected", [(True, "south"), (False, "east")])
    def test_car_enters_and_exits(self, fake_clock, swap_axes, expected):
        tracker = ObjectTracker(TrackingConfig())
        sink = RecordingSink()
        detector = VehicleEventDetector(
            EventConfig(swap_direction_axes=swap_axes), sink=sink, clock=fake_clock
        )

        frames_with_events = {}
        for frame_no in range(1, 10):
            cx = 0.5 + 0.05 * (frame_no - 1)
            boxes = tracker.update([make_detection(cx, 0.5, w=0.16, h=0.16)])
            events = detector.process(boxes)
            if events:
                frames_with_events[frame_no] = [e.event_type for e in events]
            fake_clock.advance(0.1)

        assert frames_with_events == {1: [EVENT_ENTRY], 8: [EVENT_EXIT]}
        exit_event = sink.events[-1]
        assert exit_event.vehicle_id == "car-1"
        assert exit_event.direction == expected
        assert exit_event.time_in_frame_ms == 700
