"""
Captured frame model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass
class FrameData:
    """
    One raw capture, untouched by the detector.

    Dimensions are read from the pixel buffer so they can never disagree
    with it. Timestamps come from time.monotonic() so they can be passed
    straight to DetectionSession.tick().
    """
    frame: np.ndarray
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: float,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "FrameData":
        if frame.ndim not in (2, 3):
            raise ValueError(f"Expected a 2-D or 3-D pixel buffer, got shape {frame.shape}")
        return cls(frame=frame, timestamp=timestamp, frame_index=frame_index, source=source)

    @property
    def width(self) -> int:
        return int(self.frame.shape[1])

    @property
    def height(self) -> int:
        return int(self.frame.shape[0])

    @property
    def channels(self) -> int:
        return 1 if self.frame.ndim == 2 else int(self.frame.shape[2])

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height), the order cv2.resize expects."""
        return (self.width, self.height)
