"""
Box suppression: decode raw detector output into filtered, de-duplicated
detections.

The detector emits a tensor shaped [1, channels, elements]. For every anchor
(element), channels 0-3 hold cx, cy, w, h in normalized coordinates and
channels 4.. hold one score per class.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np

from models.config import SuppressionConfig
from models.detection import BoundingBox, Detection

BOX_CHANNELS = 4


def calculate_iou(box1: BoundingBox, box2: BoundingBox) -> float:
    """
    Calculate Intersection over Union (IoU) between two bounding boxes.

    Args:
        box1: First bounding box
        box2: Second bounding box

    Returns:
        IoU value between 0 and 1
    """
    return box1.iou(box2)


def apply_nms(detections: Iterable[Detection], iou_threshold: float) -> List[Detection]:
    """
    Greedy non-maximum suppression.

    Repeatedly keeps the most confident remaining box and drops every other
    box overlapping it with IoU >= iou_threshold.

    Returns:
        Kept detections ordered by confidence, highest first.
    """
    remaining = sorted(detections, key=lambda d: d.confidence, reverse=True)
    kept: List[Detection] = []
    while remaining:
        best = remaining.pop(0)
        kept.append(best)
        remaining = [d for d in remaining if calculate_iou(best.bbox, d.bbox) < iou_threshold]
    return kept


class BoxSuppressor:
    """
    Turns one frame of raw detector output into final detections.

    This suppressor is stateless between frames:
    - Picks the best class per anchor and applies the confidence threshold
    - Keeps only classes in the allow-list
    - Rejects boxes with a corner outside the frame
    - Runs greedy NMS over the survivors
    """

    def __init__(self, labels: Sequence[str], config: Optional[SuppressionConfig] = None):
        """
        Args:
            labels: Class names indexed by class score channel (channel 4 is labels[0]).
            config: Thresholds and class allow-list.
        """
        self.labels = list(labels)
        self.config = config or SuppressionConfig()
        self.target_classes = {c.lower() for c in self.config.target_classes}

    def suppress(
        self,
        output: np.ndarray,
        num_channels: Optional[int] = None,
        num_elements: Optional[int] = None,
    ) -> List[Detection]:
        """
        Decode, filter and suppress one frame of detector output.

        Args:
            output: Array shaped [1, channels, elements] or [channels, elements],
                    or a flat buffer together with num_channels/num_elements.
            num_channels: Channel count for a flat buffer.
            num_elements: Anchor count for a flat buffer.

        Returns:
            Detections ordered by confidence, highest first. Empty if nothing survives.

        Raises:
            ValueError: If the buffer cannot be shaped into channels x elements.
        """
        grid = self._as_grid(output, num_channels, num_elements)
        candidates = self._decode(grid)
        if not candidates:
            return []
        return apply_nms(candidates, self.config.iou_threshold)

    def _as_grid(
        self,
        output: np.ndarray,
        num_channels: Optional[int],
        num_elements: Optional[int],
    ) -> np.ndarray:
        arr = np.asarray(output, dtype=np.float32)
        if arr.ndim == 1:
            if not num_channels or not num_elements:
                raise ValueError("Flat output buffer requires num_channels and num_elements")
            if arr.size != num_channels * num_elements:
                raise ValueError(
                    f"Output buffer has {arr.size} values, expected "
                    f"{num_channels}x{num_elements}"
                )
            arr = arr.reshape(num_channels, num_elements)
        elif arr.ndim == 3:
            if arr.shape[0] != 1:
                raise ValueError(f"Expected batch size 1, got shape {arr.shape}")
            arr = arr[0]
        elif arr.ndim != 2:
            raise ValueError(f"Unsupported output shape {arr.shape}")

        if arr.shape[0] <= BOX_CHANNELS:
            raise ValueError(f"Output has no class score channels (shape {arr.shape})")
        return arr

    def _decode(self, grid: np.ndarray) -> List[Detection]:
        scores = grid[BOX_CHANNELS:]
        best_idx = np.argmax(scores, axis=0)
        best_conf = scores[best_idx, np.arange(scores.shape[1])]

        # Strictly above the threshold, as the detector's own filter does
        passing = np.nonzero(best_conf > self.config.conf_threshold)[0]

        detections: List[Detection] = []
        for anchor in passing:
            cls_idx = int(best_idx[anchor])
            if cls_idx >= len(self.labels):
                continue
            class_name = self.labels[cls_idx]
            if class_name.lower() not in self.target_classes:
                continue

            cx, cy, w, h = (float(v) for v in grid[:BOX_CHANNELS, anchor])
            det = Detection.from_center(
                cx, cy, w, h,
                confidence=float(best_conf[anchor]),
                class_index=cls_idx,
                class_name=class_name,
            )
            if not det.bbox.is_normalized():
                continue
            detections.append(det)

        logging.debug(
            f"Suppressor: {grid.shape[1]} anchors, {len(passing)} above threshold, "
            f"{len(detections)} candidates"
        )
        return detections
