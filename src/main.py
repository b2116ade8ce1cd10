"""
Vehicle tracker: turns detector output into tracked vehicles and
entry/exit reports.

Frames are replayed from an .npz recording holding the detector outputs
(`outputs`, shaped [N, 1, channels, elements]), optionally the matching
frames (`frames`, [N, H, W, 3] BGR) and the model labels (`labels`).

Usage:
    python src/main.py --config config/config.yaml --replay recording.npz

Arguments:
    --config: Path to configuration file
    --replay: Recording of detector outputs to process
    --labels: Label file overriding the configured one
    --email: Log in to the backend with this email before reporting
    --dry-run: Save captures locally instead of sending reports
    --fps: Feed frames to the worker at this rate (frames may be dropped)
"""

import os
import sys
import argparse
import logging
import time
import yaml
import numpy as np
from typing import Dict, Any, List, Optional, Tuple

from detection.labels import resolve_labels
from models.config import Config
from models.frame import FrameData
from ops.logging import setup_logging
from pipeline.engine import FramePipeline, FrameResult, create_pipeline_from_config
from reporting.base import StaticLocationProvider
from reporting.dispatcher import ReportDispatcher
from reporting.http_reporter import HttpEventReporter
from reporting.session import SessionContext

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        config_dir = os.path.dirname(config_path)
        base_path = os.path.join(config_dir, "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(config_dir, "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if (
            os.path.exists(config_path)
            and os.path.abspath(config_path) != os.path.abspath(local_overrides_path)
            and os.path.abspath(config_path) != os.path.abspath(base_path)
        ):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_class_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(c, str) and c for c in value)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['suppression', 'tracking', 'events', 'reporting', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Suppression
    suppression = config.get('suppression') or {}
    for key in ('conf_threshold', 'iou_threshold'):
        if key in suppression:
            value = suppression[key]
            if not _is_number(value) or not (0 < value <= 1):
                return False, f"suppression.{key} must be between 0 and 1"
    if 'target_classes' in suppression:
        if not _is_class_list(suppression['target_classes']) or not suppression['target_classes']:
            return False, "suppression.target_classes must be a non-empty list of class names"

    # Tracking
    tracking = config.get('tracking') or {}
    if 'max_disappeared' in tracking:
        md = tracking['max_disappeared']
        if not isinstance(md, int) or isinstance(md, bool) or md <= 0:
            return False, "tracking.max_disappeared must be a positive integer"
    if 'max_distance' in tracking:
        if not _is_number(tracking['max_distance']) or tracking['max_distance'] <= 0:
            return False, "tracking.max_distance must be a positive number"
    if 'direction_threshold' in tracking:
        if not _is_number(tracking['direction_threshold']) or tracking['direction_threshold'] < 0:
            return False, "tracking.direction_threshold must be a non-negative number"
    if 'velocity_alpha' in tracking:
        alpha = tracking['velocity_alpha']
        if not _is_number(alpha) or not (0 <= alpha <= 1):
            return False, "tracking.velocity_alpha must be between 0 and 1"

    # Events
    events = config.get('events') or {}
    for key in ('vehicle_classes', 'capture_classes'):
        if key in events and not _is_class_list(events[key]):
            return False, f"events.{key} must be a list of class names"
    if 'edge_margin' in events:
        margin = events['edge_margin']
        if not _is_number(margin) or not (0 <= margin < 0.5):
            return False, "events.edge_margin must be between 0 and 0.5"
    for key in ('image_cooldown_s', 'stale_after_s', 'report_cooldown_s',
                'image_marker_ttl_s', 'abandon_after_s'):
        if key in events:
            if not _is_number(events[key]) or events[key] < 0:
                return False, f"events.{key} must be a non-negative number"

    # Reporting
    reporting = config.get('reporting') or {}
    if 'base_url' in reporting and not isinstance(reporting['base_url'], str):
        return False, "reporting.base_url must be a string"
    for key in ('gps_wait_s', 'gps_poll_interval_s', 'timeout'):
        if key in reporting:
            if not _is_number(reporting[key]) or reporting[key] < 0:
                return False, f"reporting.{key} must be a non-negative number"
    if 'jpeg_quality' in reporting:
        q = reporting['jpeg_quality']
        if not isinstance(q, int) or not (1 <= q <= 100):
            return False, "reporting.jpeg_quality must be an integer between 1 and 100"
    if 'max_workers' in reporting:
        mw = reporting['max_workers']
        if not isinstance(mw, int) or mw <= 0:
            return False, "reporting.max_workers must be a positive integer"
    location = reporting.get('location')
    if location is not None:
        if not isinstance(location, dict):
            return False, "reporting.location must be a mapping with latitude and longitude"
        if not all(_is_number(location.get(k)) for k in ('latitude', 'longitude')):
            return False, "reporting.location requires numeric latitude and longitude"

    # Pipeline
    pipeline = config.get('pipeline') or {}
    if 'max_queued_frames' in pipeline:
        mq = pipeline['max_queued_frames']
        if not isinstance(mq, int) or mq <= 0:
            return False, "pipeline.max_queued_frames must be a positive integer"

    # Log settings
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def load_recording(path: str) -> Tuple[np.ndarray, Optional[np.ndarray], Optional[List[str]]]:
    """
    Load a replay recording.

    Returns:
        Tuple of (outputs, frames or None, labels or None)
    """
    with np.load(path, allow_pickle=False) as data:
        outputs = data["outputs"]
        frames = data["frames"] if "frames" in data.files else None
        labels = [str(x) for x in data["labels"]] if "labels" in data.files else None

    if frames is not None and len(frames) != len(outputs):
        raise ValueError(f"Recording has {len(outputs)} outputs but {len(frames)} frames")
    return outputs, frames, labels


def run_replay(
    pipeline: FramePipeline,
    outputs: np.ndarray,
    frames: Optional[np.ndarray] = None,
    fps: Optional[float] = None,
) -> None:
    """
    Feed a recording through the pipeline.

    Without fps every frame is processed synchronously. With fps frames are
    submitted to the worker at that rate, as a live camera would.
    """
    if not fps:
        for i, output in enumerate(outputs):
            pipeline.process(output, frames[i] if frames is not None else None)
        return

    interval = 1.0 / fps
    pipeline.start()
    try:
        for i, output in enumerate(outputs):
            pipeline.submit(FrameData(
                output=output,
                image=frames[i] if frames is not None else None,
                timestamp=time.time(),
                frame_index=i + 1,
            ))
            time.sleep(interval)
    finally:
        pipeline.stop()


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Vehicle Tracker - entry/exit reporting')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--replay', type=str, required=True,
                        help='Recording (.npz) of detector outputs to process')
    parser.add_argument('--labels', type=str, default=None,
                        help='Label file overriding the configured one')
    parser.add_argument('--email', type=str, default=None,
                        help='Log in to the backend with this email')
    parser.add_argument('--dry-run', action='store_true',
                        help='Save captures locally instead of sending reports')
    parser.add_argument('--fps', type=float, default=None,
                        help='Feed frames to the worker at this rate')
    args = parser.parse_args()

    config_dict = load_config(args.config)

    is_valid, error_msg = validate_config(config_dict)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config_dict['log_path'], config_dict['log_level'])
    config = Config.from_dict(config_dict)
    if args.dry_run:
        config.reporting.test_mode = True

    logging.info("Starting Vehicle Tracker")

    try:
        outputs, frames, recorded_labels = load_recording(args.replay)
    except (OSError, KeyError, ValueError) as e:
        logging.error(f"Could not load recording {args.replay}: {e}")
        sys.exit(1)

    labels = recorded_labels or resolve_labels(
        metadata_path=config.suppression.metadata_path,
        labels_path=args.labels or config.suppression.labels_path,
    )

    reporter = None
    if config.reporting.enabled:
        reporter = HttpEventReporter(config.reporting.base_url, timeout=config.reporting.timeout)

    session = SessionContext(user_id=config.reporting.user_id, is_public=config.reporting.is_public)
    if args.email:
        if reporter is None:
            logging.warning("Reporting disabled, skipping login")
        else:
            user_id = reporter.login(args.email)
            if user_id:
                session.set_user(user_id, is_public=config.reporting.is_public)

    dispatcher = ReportDispatcher(
        reporter,
        location=StaticLocationProvider.from_config(config.reporting.location),
        session=session,
        config=config.reporting,
    )
    pipeline = create_pipeline_from_config(config, labels, sink=dispatcher)
    logging.info(f"Session {session.session_id}: replaying {len(outputs)} frames from {args.replay}")

    def on_frame(result: FrameResult) -> None:
        if result.tracking_cleared:
            logging.info(f"Frame {result.frame_index}: no vehicles in view")

    pipeline.add_callback(on_frame)

    try:
        run_replay(pipeline, outputs, frames, fps=args.fps)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        pipeline.stop()
        dispatcher.shutdown(wait=True)
        stats = pipeline.stats
        logging.info(
            f"Vehicle Tracker stopped: frames={stats.frame_count}, failed={stats.failed_frames}, "
            f"dropped={stats.dropped_frames}, events={stats.event_count_by_type}"
        )


if __name__ == "__main__":
    main()
