"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_TARGET_CLASSES = ["car", "bicycle", "bus", "truck", "motorcycle"]
DEFAULT_CAPTURE_CLASSES = ["bus"]


@dataclass
class SuppressionConfig:
    """Box suppression and label configuration."""
    conf_threshold: float = 0.35
    iou_threshold: float = 0.45
    target_classes: List[str] = field(default_factory=lambda: list(DEFAULT_TARGET_CLASSES))
    labels_path: Optional[str] = None
    metadata_path: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SuppressionConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            conf_threshold=d.get("conf_threshold", 0.35),
            iou_threshold=d.get("iou_threshold", 0.45),
            target_classes=d.get("target_classes", list(DEFAULT_TARGET_CLASSES)),
            labels_path=d.get("labels_path"),
            metadata_path=d.get("metadata_path"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "conf_threshold": self.conf_threshold,
            "iou_threshold": self.iou_threshold,
            "target_classes": self.target_classes,
        }
        if self.labels_path is not None:
            d["labels_path"] = self.labels_path
        if self.metadata_path is not None:
            d["metadata_path"] = self.metadata_path
        return d


@dataclass
class TrackingConfig:
    """Centroid tracker configuration. Distances are in normalized units."""
    max_disappeared: int = 25
    max_distance: float = 0.15
    direction_threshold: float = 0.02
    velocity_alpha: float = 0.8
    extrapolate_missing: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TrackingConfig":
        return cls(
            max_disappeared=d.get("max_disappeared", 25),
            max_distance=d.get("max_distance", 0.15),
            direction_threshold=d.get("direction_threshold", 0.02),
            velocity_alpha=d.get("velocity_alpha", 0.8),
            extrapolate_missing=d.get("extrapolate_missing", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_disappeared": self.max_disappeared,
            "max_distance": self.max_distance,
            "direction_threshold": self.direction_threshold,
            "velocity_alpha": self.velocity_alpha,
            "extrapolate_missing": self.extrapolate_missing,
        }


@dataclass
class EventConfig:
    """Vehicle entry/exit event configuration. Times are in seconds."""
    vehicle_classes: List[str] = field(default_factory=lambda: list(DEFAULT_TARGET_CLASSES))
    capture_classes: List[str] = field(default_factory=lambda: list(DEFAULT_CAPTURE_CLASSES))
    edge_margin: float = 0.1
    capture_only_entry_exit: bool = True
    image_cooldown_s: float = 5.0
    min_image_distance: float = 0.1
    stale_after_s: float = 5.0
    report_cooldown_s: float = 20.0
    image_marker_ttl_s: float = 30.0
    abandon_after_s: float = 60.0
    exit_direction_threshold: float = 0.1
    swap_direction_axes: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EventConfig":
        return cls(
            vehicle_classes=d.get("vehicle_classes", list(DEFAULT_TARGET_CLASSES)),
            capture_classes=d.get("capture_classes", list(DEFAULT_CAPTURE_CLASSES)),
            edge_margin=d.get("edge_margin", 0.1),
            capture_only_entry_exit=d.get("capture_only_entry_exit", True),
            image_cooldown_s=d.get("image_cooldown_s", 5.0),
            min_image_distance=d.get("min_image_distance", 0.1),
            stale_after_s=d.get("stale_after_s", 5.0),
            report_cooldown_s=d.get("report_cooldown_s", 20.0),
            image_marker_ttl_s=d.get("image_marker_ttl_s", 30.0),
            abandon_after_s=d.get("abandon_after_s", 60.0),
            exit_direction_threshold=d.get("exit_direction_threshold", 0.1),
            swap_direction_axes=d.get("swap_direction_axes", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vehicle_classes": self.vehicle_classes,
            "capture_classes": self.capture_classes,
            "edge_margin": self.edge_margin,
            "capture_only_entry_exit": self.capture_only_entry_exit,
            "image_cooldown_s": self.image_cooldown_s,
            "min_image_distance": self.min_image_distance,
            "stale_after_s": self.stale_after_s,
            "report_cooldown_s": self.report_cooldown_s,
            "image_marker_ttl_s": self.image_marker_ttl_s,
            "abandon_after_s": self.abandon_after_s,
            "exit_direction_threshold": self.exit_direction_threshold,
            "swap_direction_axes": self.swap_direction_axes,
        }


@dataclass
class LocationConfig:
    """Fixed GPS position, for installations without a live GPS feed."""
    latitude: float
    longitude: float

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LocationConfig":
        return cls(latitude=float(d["latitude"]), longitude=float(d["longitude"]))

    def to_dict(self) -> Dict[str, Any]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass
class ReportingConfig:
    """Event reporting configuration."""
    enabled: bool = True
    base_url: str = "http://localhost:5000"
    timeout: float = 30.0
    gps_wait_s: float = 2.0
    gps_poll_interval_s: float = 0.5
    require_gps: bool = True
    require_user: bool = True
    test_mode: bool = False
    capture_dir: str = "output/captures"
    jpeg_quality: int = 85
    max_workers: int = 4
    user_id: Optional[str] = None
    is_public: bool = False
    location: Optional[LocationConfig] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ReportingConfig":
        location_dict = d.get("location")
        location = LocationConfig.from_dict(location_dict) if location_dict else None
        return cls(
            enabled=d.get("enabled", True),
            base_url=d.get("base_url", "http://localhost:5000"),
            timeout=d.get("timeout", 30.0),
            gps_wait_s=d.get("gps_wait_s", 2.0),
            gps_poll_interval_s=d.get("gps_poll_interval_s", 0.5),
            require_gps=d.get("require_gps", True),
            require_user=d.get("require_user", True),
            test_mode=d.get("test_mode", False),
            capture_dir=d.get("capture_dir", "output/captures"),
            jpeg_quality=d.get("jpeg_quality", 85),
            max_workers=d.get("max_workers", 4),
            user_id=d.get("user_id"),
            is_public=d.get("is_public", False),
            location=location,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "enabled": self.enabled,
            "base_url": self.base_url,
            "timeout": self.timeout,
            "gps_wait_s": self.gps_wait_s,
            "gps_poll_interval_s": self.gps_poll_interval_s,
            "require_gps": self.require_gps,
            "require_user": self.require_user,
            "test_mode": self.test_mode,
            "capture_dir": self.capture_dir,
            "jpeg_quality": self.jpeg_quality,
            "max_workers": self.max_workers,
            "is_public": self.is_public,
        }
        if self.user_id is not None:
            d["user_id"] = self.user_id
        if self.location:
            d["location"] = self.location.to_dict()
        return d


@dataclass
class PipelineSettings:
    """Frame pipeline settings."""
    max_queued_frames: int = 3
    stats_log_interval: float = 60.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineSettings":
        return cls(
            max_queued_frames=d.get("max_queued_frames", 3),
            stats_log_interval=d.get("stats_log_interval", 60.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_queued_frames": self.max_queued_frames,
            "stats_log_interval": self.stats_log_interval,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    suppression: SuppressionConfig = field(default_factory=SuppressionConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    events: EventConfig = field(default_factory=EventConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    log_path: str = "logs/vehicle_tracker.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            suppression=SuppressionConfig.from_dict(d.get("suppression") or {}),
            tracking=TrackingConfig.from_dict(d.get("tracking") or {}),
            events=EventConfig.from_dict(d.get("events") or {}),
            reporting=ReportingConfig.from_dict(d.get("reporting") or {}),
            pipeline=PipelineSettings.from_dict(d.get("pipeline") or {}),
            log_path=d.get("log_path", "logs/vehicle_tracker.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or logging)."""
        return {
            "suppression": self.suppression.to_dict(),
            "tracking": self.tracking.to_dict(),
            "events": self.events.to_dict(),
            "reporting": self.reporting.to_dict(),
            "pipeline": self.pipeline.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
