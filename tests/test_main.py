"""
Tests for the CLI helpers: recordings, replay and logging setup.
"""

import logging
import os
from unittest.mock import MagicMock

import numpy as np
import pytest

from conftest import make_output
from main import load_recording, run_replay
from ops.logging import setup_logging


@pytest.fixture
def recording(tmp_path, labels):
    outputs = np.stack([make_output([(0.5, 0.5, 0.2, 0.2, 2, 0.9)], labels, num_elements=4)] * 3)
    frames = np.zeros((3, 48, 64, 3), dtype=np.uint8)
    path = tmp_path / "recording.npz"
    np.savez(str(path), outputs=outputs, frames=frames, labels=np.array(labels))
    return str(path)


class TestLoadRecording:
    def test_loads_all_arrays(self, recording, labels):
        outputs, frames, recorded_labels = load_recording(recording)

        assert outputs.shape == (3, 1, 4 + len(labels), 4)
        assert frames.shape == (3, 48, 64, 3)
        assert recorded_labels == labels

    def test_outputs_only(self, tmp_path, labels):
        path = tmp_path / "outputs_only.npz"
        np.savez(str(path), outputs=np.zeros((2, 1, 4 + len(labels), 4), dtype=np.float32))

        outputs, frames, recorded_labels = load_recording(str(path))

        assert len(outputs) == 2
        assert frames is None
        assert recorded_labels is None

    def test_frame_count_mismatch(self, tmp_path):
        path = tmp_path / "bad.npz"
        np.savez(str(path), outputs=np.zeros((2, 1, 6, 4)), frames=np.zeros((3, 8, 8, 3)))

        with pytest.raises(ValueError):
            load_recording(str(path))


class TestRunReplay:
    def test_synchronous_replay(self, recording):
        outputs, frames, _ = load_recording(recording)
        pipeline = MagicMock()

        run_replay(pipeline, outputs, frames)

        assert pipeline.process.call_count == 3
        pipeline.start.assert_not_called()
        output, frame = pipeline.process.call_args_list[1][0]
        assert np.array_equal(output, outputs[1])
        assert np.array_equal(frame, frames[1])

    def test_paced_replay_uses_worker(self, recording):
        outputs, _, _ = load_recording(recording)
        pipeline = MagicMock()

        run_replay(pipeline, outputs, fps=1000)

        pipeline.start.assert_called_once()
        pipeline.stop.assert_called_once()
        submitted = [c[0][0] for c in pipeline.submit.call_args_list]
        assert [f.frame_index for f in submitted] == [1, 2, 3]
        assert all(f.image is None for f in submitted)


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers = handlers
        root.setLevel(level)

    def test_creates_log_file(self, tmp_path):
        log_path = tmp_path / "logs" / "tracker.log"

        setup_logging(str(log_path), "DEBUG")
        logging.info("hello from the tracker")

        assert logging.getLogger().level == logging.DEBUG
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert os.path.exists(log_path)
        assert "hello from the tracker" in log_path.read_text()

    def test_console_only(self):
        setup_logging(None, "warning")

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert all(not isinstance(h, logging.FileHandler) for h in root.handlers)
