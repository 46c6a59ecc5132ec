"""
Frame preprocessing shared by both cascade stages.

Frames arrive at capture resolution and are downscaled once per cycle into
buffers sized to the fixed processing resolution. The buffers are allocated
once and overwritten in place every cycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from models.config import ProcessingConfig
from .errors import InvalidSessionStateError


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert a BGR, BGRA or gray image to single-channel gray."""
    if image.ndim == 2:
        return image
    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0]
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


@dataclass
class FrameBuffers:
    """
    Per-session frame buffers at processing resolution.

    Attributes:
        color: BGR frame (H x W x 3).
        gray: Grayscale derivative (H x W).
        edge: Canny edge derivative, only allocated in edge-template mode.
    """
    color: np.ndarray
    gray: np.ndarray
    edge: Optional[np.ndarray] = None

    @classmethod
    def allocate(cls, processing: ProcessingConfig, edge_mode: bool) -> "FrameBuffers":
        h, w = processing.height, processing.width
        return cls(
            color=np.zeros((h, w, 3), dtype=np.uint8),
            gray=np.zeros((h, w), dtype=np.uint8),
            edge=np.zeros((h, w), dtype=np.uint8) if edge_mode else None,
        )

    @property
    def template_source(self) -> np.ndarray:
        """The buffer the template gate matches against."""
        return self.edge if self.edge is not None else self.gray


class FramePreprocessor:
    """
    Downscales raw frames into the session's reusable buffers.

    Edge mode is fixed at construction; the edge map is computed only when
    it is enabled.
    """

    def __init__(
        self,
        processing: ProcessingConfig,
        edge_mode: bool = False,
        canny_low: int = 50,
        canny_high: int = 150,
    ):
        self._processing = processing
        self._edge_mode = edge_mode
        self._canny_low = canny_low
        self._canny_high = canny_high
        self._buffers: Optional[FrameBuffers] = FrameBuffers.allocate(processing, edge_mode)

    @property
    def edge_mode(self) -> bool:
        return self._edge_mode

    @property
    def buffers(self) -> FrameBuffers:
        if self._buffers is None:
            raise InvalidSessionStateError("Frame buffers have been released")
        return self._buffers

    @property
    def released(self) -> bool:
        return self._buffers is None

    def prepare(self, raw_frame: np.ndarray) -> FrameBuffers:
        """
        Downscale a raw frame and refresh the gray (and edge) buffers.

        Args:
            raw_frame: BGR, BGRA or gray frame at any resolution.

        Returns:
            The session's FrameBuffers, overwritten with this frame.
        """
        buffers = self.buffers
        size = self._processing.size

        if raw_frame.ndim == 2:
            cv2.resize(raw_frame, size, dst=buffers.gray, interpolation=cv2.INTER_AREA)
            cv2.cvtColor(buffers.gray, cv2.COLOR_GRAY2BGR, dst=buffers.color)
        else:
            frame = raw_frame
            if frame.shape[2] == 4:
                frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
            cv2.resize(frame, size, dst=buffers.color, interpolation=cv2.INTER_AREA)
            cv2.cvtColor(buffers.color, cv2.COLOR_BGR2GRAY, dst=buffers.gray)

        if buffers.edge is not None:
            cv2.Canny(buffers.gray, self._canny_low, self._canny_high, edges=buffers.edge, apertureSize=3)

        return buffers

    def release(self) -> None:
        """Drop the frame buffers. Safe to call more than once."""
        if self._buffers is not None:
            self._buffers = None
            logging.debug("Released frame buffers")
