"""
cv2.VideoCapture frame source.

device_id selects the backend the same way cv2.VideoCapture does: an int is a
local camera index, an rtsp:// URL a network stream, anything else a video
file path.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

import cv2
import numpy as np

from detection.errors import CaptureUnavailableError
from models.frame import FrameData
from .base import ObservationSource, ObservationConfig
from .rtsp_utils import sanitize_url

_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Attributes:
        device_id: Camera index, stream URL or video file path.
        rtsp_transport: "tcp" or "udp" for RTSP streams.
        buffer_size: Driver-side frame queue; 1 keeps the newest frame.
        max_retries: Open attempts before CaptureUnavailableError.
        max_read_failures: Consecutive failed reads tolerated on a live device.
        warmup_seconds: Settling time after opening a live device.
        swap_rb, rotate, flip_horizontal, flip_vertical: Mounting corrections.
    """
    device_id: Union[int, str] = 0
    rtsp_transport: str = "tcp"
    buffer_size: int = 1
    max_retries: int = 3
    max_read_failures: int = 3
    warmup_seconds: float = 0.5
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_camera_config(cls, camera_cfg: Dict[str, Any], source_id: str = "camera") -> "OpenCVSourceConfig":
        """Build from the `camera` section of the YAML config."""
        resolution = camera_cfg.get("resolution")
        defaults = cls()
        return cls(
            source_id=source_id,
            resolution=tuple(resolution) if resolution else None,
            fps=camera_cfg.get("fps"),
            device_id=camera_cfg.get("device_id", defaults.device_id),
            rtsp_transport=camera_cfg.get("rtsp_transport", defaults.rtsp_transport),
            buffer_size=camera_cfg.get("buffer_size", defaults.buffer_size),
            max_retries=camera_cfg.get("max_retries", defaults.max_retries),
            max_read_failures=camera_cfg.get("max_read_failures", defaults.max_read_failures),
            warmup_seconds=camera_cfg.get("warmup_seconds", defaults.warmup_seconds),
            swap_rb=camera_cfg.get("swap_rb", False),
            rotate=camera_cfg.get("rotate") or 0,
            flip_horizontal=camera_cfg.get("flip_horizontal", False),
            flip_vertical=camera_cfg.get("flip_vertical", False),
        )


def build_transforms(cfg: OpenCVSourceConfig) -> List[Callable[[np.ndarray], np.ndarray]]:
    """Mounting corrections as an ordered list: rotate, flip, then channel swap."""
    steps: List[Callable[[np.ndarray], np.ndarray]] = []
    if cfg.rotate:
        if cfg.rotate not in _ROTATIONS:
            raise ValueError(f"rotate must be one of 0, 90, 180, 270 (got {cfg.rotate})")
        code = _ROTATIONS[cfg.rotate]
        steps.append(lambda f: cv2.rotate(f, code))

    flip_code = {
        (True, True): -1,
        (True, False): 1,
        (False, True): 0,
    }.get((bool(cfg.flip_horizontal), bool(cfg.flip_vertical)))
    if flip_code is not None:
        steps.append(lambda f: cv2.flip(f, flip_code))

    if cfg.swap_rb:
        steps.append(lambda f: np.ascontiguousarray(f[..., ::-1]))
    return steps


class OpenCVSource(ObservationSource):
    """
    Frames from cv2.VideoCapture.

    open() retries with exponential backoff and raises CaptureUnavailableError
    when the device never comes up. On a live device a failed read triggers
    one reopen; a video file simply ends.
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._cv_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._read_failures = 0
        self._transforms = build_transforms(config)

    @property
    def device_id(self) -> Union[int, str]:
        return self._cv_config.device_id

    @property
    def is_rtsp(self) -> bool:
        return isinstance(self.device_id, str) and self.device_id.startswith(("rtsp://", "rtsps://"))

    @property
    def is_file(self) -> bool:
        return isinstance(self.device_id, str) and not self.is_rtsp and os.path.exists(self.device_id)

    def open(self) -> None:
        if self._is_open:
            return
        self._cap = self._connect()
        self._is_open = True
        self._frame_index = 0
        logging.info(
            f"Capture opened: source_id={self.source_id} device={sanitize_url(self.device_id)}"
        )

    def _connect(self) -> cv2.VideoCapture:
        attempts = max(1, self._cv_config.max_retries)
        for attempt in range(attempts):
            if attempt:
                delay = min(2 ** attempt, 10)
                logging.warning(
                    f"Capture {sanitize_url(self.device_id)} unavailable, "
                    f"retry {attempt + 1}/{attempts} in {delay}s"
                )
                time.sleep(delay)

            if self.is_rtsp:
                os.environ["OPENCV_FFMPEG_CAPTURE_OPTIONS"] = f"rtsp_transport;{self._cv_config.rtsp_transport}"
            cap = cv2.VideoCapture(self.device_id)
            if cap.isOpened():
                self._configure(cap)
                return cap
            cap.release()

        raise CaptureUnavailableError(
            f"Could not open {sanitize_url(self.device_id)} after {attempts} attempt(s)"
        )

    def _configure(self, cap: cv2.VideoCapture) -> None:
        cfg = self._cv_config
        if isinstance(self.device_id, int):
            if cfg.resolution:
                cap.set(cv2.CAP_PROP_FRAME_WIDTH, cfg.resolution[0])
                cap.set(cv2.CAP_PROP_FRAME_HEIGHT, cfg.resolution[1])
            if cfg.fps:
                cap.set(cv2.CAP_PROP_FPS, cfg.fps)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, cfg.buffer_size)
            logging.info(
                f"Camera reports {cap.get(cv2.CAP_PROP_FRAME_WIDTH):.0f}x"
                f"{cap.get(cv2.CAP_PROP_FRAME_HEIGHT):.0f} @ {cap.get(cv2.CAP_PROP_FPS):.1f} fps"
            )
        if not self.is_file and cfg.warmup_seconds > 0:
            time.sleep(cfg.warmup_seconds)
        self._read_failures = 0

    def _grab(self) -> Optional[np.ndarray]:
        ok, frame = self._cap.read()
        return frame if ok and frame is not None else None

    def read(self) -> Optional[FrameData]:
        if not self._is_open or self._cap is None:
            return None

        frame = self._grab()
        if frame is None:
            frame = self._recover()
            if frame is None:
                return None

        self._read_failures = 0
        for step in self._transforms:
            frame = step(frame)
        self._frame_index += 1
        return FrameData.from_numpy(
            frame,
            timestamp=time.monotonic(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def _recover(self) -> Optional[np.ndarray]:
        """Reopen a live device after a failed read; files just end."""
        if self.is_file:
            logging.info(f"End of video: {self.device_id}")
            return None

        self._read_failures += 1
        if self._read_failures > self._cv_config.max_read_failures:
            logging.error(f"Capture {self.source_id}: {self._read_failures} failed reads in a row")
            return None

        logging.warning(f"Capture {self.source_id}: read failed, reopening ({self._read_failures})")
        self._cap.release()
        try:
            self._cap = self._connect()
        except CaptureUnavailableError as e:
            logging.error(f"Reopen failed: {e}")
            self._cap = None
            self._is_open = False
            return None
        return self._grab()

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        if self._is_open:
            logging.info(f"Capture closed: source_id={self.source_id}")
        self._is_open = False


def create_source_from_config(camera_cfg: Dict[str, Any], source_id: str = "main-camera") -> OpenCVSource:
    """OpenCVSource for the `camera` config section."""
    return OpenCVSource(OpenCVSourceConfig.from_camera_config(camera_cfg, source_id=source_id))
