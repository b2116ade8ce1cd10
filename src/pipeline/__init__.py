"""
Pipeline module for the vehicle tracker.

The pipeline orchestrates the per-frame flow:
- Box suppression of raw detector output
- Object tracking
- Vehicle entry/exit event detection
"""

from .engine import (
    FramePipeline,
    FrameResult,
    PipelineConfig,
    PipelineStats,
    create_pipeline_from_config,
)

__all__ = [
    "FramePipeline",
    "FrameResult",
    "PipelineConfig",
    "PipelineStats",
    "create_pipeline_from_config",
]
