"""
FrameData model for frames paired with detector output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass
class FrameData:
    """
    One frame handed to the pipeline.

    Attributes:
        output: Raw detector output buffer for this frame.
        image: The frame pixels (BGR) used for vehicle crops, if available.
        timestamp: Unix timestamp when the frame was captured.
        frame_index: Sequential frame number since start.
    """
    output: np.ndarray
    image: Optional[np.ndarray] = None
    timestamp: float = 0.0
    frame_index: int = 0

    @property
    def size(self) -> Optional[Tuple[int, int]]:
        """Return (width, height) of the image, None without one."""
        if self.image is None:
            return None
        h, w = self.image.shape[:2]
        return (w, h)
