"""
Pipeline engine for the wafer detector.

Drives a DetectionSession from an ObservationSource: reads frames, ticks the
session, publishes status, and optionally shows a preview window with the
verification quad and PASS banner.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import cv2
import numpy as np

from models.frame import FrameData
from models.status import CycleResult, DetectionState
from observation import ObservationSource, create_source_from_config
from runtime.session import DetectionSession


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        max_consecutive_failures: Max frame read failures before stopping.
        failure_backoff: Seconds to wait after a failed read.
        stats_log_interval: Seconds between status log messages.
        display: Enable cv2 preview window.
        window_name: Title of the preview window.
    """
    max_consecutive_failures: int = 10
    failure_backoff: float = 0.5
    stats_log_interval: float = 10.0
    display: bool = False
    window_name: str = "Wafer Detector"


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    frame_count: int = 0
    cycle_count: int = 0
    hit_count: int = 0
    start_time: float = field(default_factory=time.monotonic)
    last_stats_log_time: float = field(default_factory=time.monotonic)
    consecutive_failures: int = 0


class PipelineEngine:
    """
    Capture loop around a DetectionSession.

    The engine:
    - Opens the source (CaptureUnavailableError propagates before any cycle runs)
    - Starts the session (NoUsableReferencesError propagates)
    - Ticks the session once per captured frame; the session rate-limits itself
    - Publishes DetectionStatus snapshots to an optional status board
    - Stops when the session auto-stops, the source is exhausted, or stop() is called

    Example:
        source = OpenCVSource(OpenCVSourceConfig(device_id=0))
        engine = PipelineEngine(source, session, PipelineConfig(display=True))
        engine.run()
    """

    def __init__(
        self,
        source: ObservationSource,
        session: DetectionSession,
        config: PipelineConfig,
        status_board: Any = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.session = session
        self.config = config
        self.status_board = status_board
        self.stats = PipelineStats()
        self._clock = clock
        self._running = False
        self._last_overlay: Optional[list] = None
        self._last_state = DetectionState.IDLE
        self._callbacks: List[Callable[[FrameData, CycleResult], None]] = []

    def add_callback(self, callback: Callable[[FrameData, CycleResult], None]) -> None:
        """
        Add a callback invoked after every executed detection cycle.

        Args:
            callback: Function taking (frame_data, cycle_result).
        """
        self._callbacks.append(callback)

    def run(self) -> None:
        """
        Run the capture loop until stopped, exhausted, or auto-stopped.

        Raises:
            CaptureUnavailableError: The source could not be opened.
            NoUsableReferencesError: The session has no references.
        """
        self.stats = PipelineStats()
        self.source.open()
        try:
            self.session.start(self._clock())
        except Exception:
            self.source.close()
            raise

        self._running = True
        self._last_state = self.session.state
        self._publish()
        logging.info(f"Pipeline started: source={self.source.source_id}")

        try:
            while self._running:
                frame_data = self.source.read()

                if frame_data is None:
                    self.stats.consecutive_failures += 1
                    if self.stats.consecutive_failures >= self.config.max_consecutive_failures:
                        logging.error(
                            f"Too many consecutive failures ({self.stats.consecutive_failures}), stopping"
                        )
                        break
                    logging.warning(
                        f"Frame read failed ({self.stats.consecutive_failures}/"
                        f"{self.config.max_consecutive_failures})"
                    )
                    time.sleep(self.config.failure_backoff)
                    continue

                self.stats.consecutive_failures = 0
                self.stats.frame_count += 1

                result = self.session.tick(frame_data.frame, self._clock())
                if result is not None:
                    self._handle_cycle(frame_data, result)

                if self.config.display:
                    if not self._handle_display(frame_data):
                        break

                if not self.session.is_running:
                    logging.info("Session stopped, leaving capture loop")
                    break

                self._handle_periodic_tasks()

        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        except Exception:
            logging.exception("Capture loop aborted")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal the pipeline to stop after the current frame."""
        self._running = False

    def _handle_cycle(self, frame_data: FrameData, result: CycleResult) -> None:
        previous_state = self._last_state
        self.stats.cycle_count += 1
        if result.match.present:
            self.stats.hit_count += 1
        self._last_overlay = result.overlay_quad

        if result.state != previous_state:
            logging.info(f"Detection state: {previous_state.value} -> {result.state.value}")
        self._last_state = result.state

        for callback in self._callbacks:
            try:
                callback(frame_data, result)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

        self._publish()

    def _publish(self) -> None:
        if self.status_board is not None:
            self.status_board.publish(self.session.status())

    def _draw_overlays(self, frame: np.ndarray) -> np.ndarray:
        """Draw the verification quad and PASS banner on a display frame."""
        COLOR_QUAD = (0, 255, 0)
        COLOR_PASS = (0, 255, 0)

        h, w = frame.shape[:2]
        proc = self.session.config.processing

        if self._last_overlay and not self.session.passed:
            sx = w / proc.width
            sy = h / proc.height
            pts = np.array([[x * sx, y * sy] for x, y in self._last_overlay], dtype=np.int32)
            cv2.polylines(frame, [pts.reshape(-1, 1, 2)], True, COLOR_QUAD, 3)

        if self.session.passed:
            tint = np.zeros_like(frame)
            tint[:] = COLOR_PASS
            frame = cv2.addWeighted(frame, 0.65, tint, 0.35, 0)
            cv2.putText(frame, "PASS", (20, 60), cv2.FONT_HERSHEY_SIMPLEX, 1.6, COLOR_PASS, 3)
            cv2.putText(frame, "Wafer detected", (20, 90), cv2.FONT_HERSHEY_SIMPLEX, 0.6, COLOR_PASS, 2)
        else:
            status = self.session.status()
            cv2.putText(frame, status.text, (10, h - 15), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 2)

        return frame

    def _handle_display(self, frame_data: FrameData) -> bool:
        """
        Show the preview window.

        Returns False if user pressed 'q' to quit.
        """
        frame = frame_data.frame
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        elif frame.shape[2] == 4:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
        cv2.imshow(self.config.window_name, self._draw_overlays(frame.copy()))
        key = cv2.waitKey(1) & 0xFF
        return key != ord('q')

    def _handle_periodic_tasks(self) -> None:
        now = self._clock()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            elapsed = max(now - self.stats.start_time, 1e-6)
            status = self.session.status()
            logging.info(
                f"Pipeline stats: frames={self.stats.frame_count}, "
                f"cycles={self.stats.cycle_count} ({self.stats.cycle_count / elapsed:.1f}/s), "
                f"hits={self.stats.hit_count}, state={status.state.value}"
            )
            self.stats.last_stats_log_time = now

    def _cleanup(self) -> None:
        self._running = False

        self.session.stop()
        self._publish()

        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")

        if self.config.display:
            cv2.destroyAllWindows()

        logging.info("Pipeline stopped")


def create_engine_from_config(
    config: dict,
    session: DetectionSession,
    display: bool = False,
    status_board: Any = None,
) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the raw config dict.

    Args:
        config: Full application config dict.
        session: Session with references already loaded.
        display: Enable the preview window.
        status_board: Optional StatusBoard for the web API.
    """
    camera_cfg = config.get("camera", {})
    source = create_source_from_config(camera_cfg, source_id="main-camera")
    pipeline_config = PipelineConfig(display=display)
    return PipelineEngine(source, session, pipeline_config, status_board=status_board)
