"""
Frame source contract.

The detection session only sees numpy frames; the capture device behind
them (USB camera, RTSP stream, recorded video, a list of arrays in a test)
is an ObservationSource.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from models.frame import FrameData


@dataclass
class ObservationConfig:
    """
    Settings shared by every source.

    Attributes:
        source_id: Name used in logs and stamped on each FrameData.
        resolution: Requested (width, height), or None for the device default.
        fps: Requested capture rate, or None for the device default.
    """
    source_id: str = "default"
    resolution: Optional[Tuple[int, int]] = None
    fps: Optional[int] = None


class ObservationSource(ABC):
    """
    Base class for frame sources.

    Subclasses implement open/read/close and maintain _is_open and
    _frame_index. A source works as a context manager, and iterating an
    open source yields frames until read() returns None:

        with source:
            for frame_data in source:
                session.tick(frame_data.frame, frame_data.timestamp)
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """Acquire the device. Raises CaptureUnavailableError if it cannot be opened."""

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """Return the next frame, or None when nothing is available."""

    @abstractmethod
    def close(self) -> None:
        """Release the device; calling it twice is harmless."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        if not self._is_open:
            raise RuntimeError(f"Source '{self.source_id}' must be open before iterating")
        return iter(self.read, None)
