"""
Vehicle Tracker - Detection Module

This module turns raw detector output into filtered detections.
"""

from .suppression import BoxSuppressor, apply_nms, calculate_iou
from .labels import resolve_labels

__all__ = ['BoxSuppressor', 'apply_nms', 'calculate_iou', 'resolve_labels']
