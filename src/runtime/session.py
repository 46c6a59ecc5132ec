"""
Detection session: the explicit owner of all per-session state.

A session holds the reference store, frame buffers, cascade, smoother and
pass latch. It is driven by an external loop through tick(), which decides
internally whether enough time has elapsed to run a detection cycle. No
timers or sleeps live here, so the session can be ticked synchronously from
tests.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

import numpy as np

from detection.cascade import DetectionCascade
from detection.errors import InvalidSessionStateError, NoUsableReferencesError
from detection.geometric import GeometricVerifier, create_orb_detector
from detection.latch import PassLatch
from detection.preprocess import FramePreprocessor
from detection.smoothing import DecisionSmoother
from detection.template_gate import TemplateGate
from models.config import Config
from models.match import MatchResult
from models.status import CycleResult, DetectionState, DetectionStatus, format_status_text
from references.store import ReferenceStore


class DetectionSession:
    """
    One wafer detection session.

    Lifecycle:
        1. load_references() while idle
        2. start(now)
        3. tick(frame, now) from the driver loop, once per available frame
        4. stop() (or automatic stop after the pass hold when exit_on_pass is set)
        5. close() to release references as well

    Example:
        session = DetectionSession(Config())
        session.load_references(load_reference_images(paths))
        session.start(time.monotonic())
        while session.is_running:
            result = session.tick(frame, time.monotonic())
    """

    def __init__(self, config: Config):
        self._config = config
        self._detector = create_orb_detector(config.features)
        self._store = ReferenceStore(
            config.processing, config.template, config.features, detector=self._detector
        )
        self._preprocessor: Optional[FramePreprocessor] = None
        self._cascade = self._build_cascade(config)
        self._smoother = DecisionSmoother(config.cascade.smooth_window)
        self._latch = PassLatch(
            exit_on_pass=config.pass_latch.exit_on_pass,
            hold_seconds=config.pass_latch.hold_seconds,
        )
        self._last_cycle_at: Optional[float] = None
        self._cycles = 0
        self._skipped_ticks = 0
        self._last_match = MatchResult()
        self._last_decided = False
        self._closed = False

    def _build_cascade(self, config: Config) -> DetectionCascade:
        verifier = None
        if config.cascade.runs_fallback:
            verifier = GeometricVerifier(
                config.features,
                show_overlay=config.cascade.show_overlay,
                detector=self._detector,
            )
        return DetectionCascade(config.cascade, TemplateGate(config.template.threshold), verifier)

    def _new_preprocessor(self, config: Config) -> FramePreprocessor:
        return FramePreprocessor(
            config.processing,
            edge_mode=config.template.edge_mode,
            canny_low=config.template.canny_low,
            canny_high=config.template.canny_high,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> Config:
        return self._config

    @property
    def state(self) -> DetectionState:
        return self._latch.state

    @property
    def is_running(self) -> bool:
        return self._latch.state != DetectionState.IDLE

    @property
    def passed(self) -> bool:
        return self._latch.passed

    @property
    def reference_names(self) -> List[str]:
        if self._store.reference_set.released:
            return []
        return self._store.reference_set.names

    @property
    def store(self) -> ReferenceStore:
        return self._store

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _require_idle(self, action: str) -> None:
        if self._closed:
            raise InvalidSessionStateError(f"Cannot {action}: session is closed")
        if self.is_running:
            raise InvalidSessionStateError(
                f"Cannot {action} while state is '{self.state.value}'; stop the session first"
            )

    def load_references(self, images: Iterable[Tuple[str, np.ndarray]]) -> int:
        """
        Replace the reference set.

        Returns:
            Number of usable references loaded.
        """
        self._require_idle("load references")
        return len(self._store.load(images))

    def start(self, now: float) -> None:
        """
        Begin detecting.

        Raises:
            NoUsableReferencesError: No reference survived loading.
        """
        self._require_idle("start")
        if len(self._store.reference_set) == 0:
            raise NoUsableReferencesError("No usable reference images loaded")

        self._preprocessor = self._new_preprocessor(self._config)
        self._smoother.reset()
        self._last_cycle_at = None
        self._cycles = 0
        self._skipped_ticks = 0
        self._last_match = MatchResult()
        self._last_decided = False
        self._latch.start()
        logging.info(
            f"Detection started: references={len(self._store.reference_set)} "
            f"mode={self._config.cascade.mode} window={self._smoother.window}"
        )

    def stop(self) -> None:
        """Stop detecting and release the frame buffers. References are kept."""
        was_running = self.is_running
        self._latch.stop()
        if self._preprocessor is not None:
            self._preprocessor.release()
            self._preprocessor = None
        self._last_decided = False
        self._last_match = MatchResult()
        if was_running:
            logging.info(f"Detection stopped after {self._cycles} cycles")

    def close(self) -> None:
        """Stop and release every buffer, including references."""
        self.stop()
        self._store.unload()
        self._closed = True

    def reconfigure(self, config: Config) -> None:
        """
        Swap in a new configuration while idle.

        The reference store is rebuilt from the retained source images and
        all components are recreated before anything is replaced; if the
        rebuild fails the previous configuration stays active.
        """
        self._require_idle("reconfigure")
        detector = create_orb_detector(config.features)
        store = ReferenceStore(config.processing, config.template, config.features, detector=detector)
        store.load(self._store.sources)

        self._detector = detector
        self._cascade = self._build_cascade(config)
        self._smoother = DecisionSmoother(config.cascade.smooth_window)
        self._latch = PassLatch(
            exit_on_pass=config.pass_latch.exit_on_pass,
            hold_seconds=config.pass_latch.hold_seconds,
        )
        old_store = self._store
        self._store = store
        self._config = config
        old_store.unload()
        logging.info("Session reconfigured")

    # ------------------------------------------------------------------
    # Scheduler tick
    # ------------------------------------------------------------------

    def tick(self, frame: np.ndarray, now: float) -> Optional[CycleResult]:
        """
        Run one detection cycle if the cadence allows it.

        Args:
            frame: Raw frame at capture resolution.
            now: Monotonic time in seconds.

        Returns:
            CycleResult for an executed cycle, None when skipped or not running.
        """
        if not self.is_running:
            return None
        if (
            self._last_cycle_at is not None
            and now - self._last_cycle_at < self._config.processing.min_interval
        ):
            self._skipped_ticks += 1
            return None
        self._last_cycle_at = now
        return self._run_cycle(frame, now)

    def _run_cycle(self, frame: np.ndarray, now: float) -> CycleResult:
        if self._preprocessor is None:
            raise InvalidSessionStateError("Frame buffers are not allocated")

        buffers = self._preprocessor.prepare(frame)
        match = self._cascade.evaluate(buffers, self._store.references)
        decided = self._smoother.push(match.present)
        state = self._latch.update(decided, now)
        self._cycles += 1
        self._last_match = match
        self._last_decided = decided

        passed = state == DetectionState.PASSED
        overlay = match.best_quad if (self._config.cascade.show_overlay and not passed) else None
        result = CycleResult(
            match=match,
            decided=decided,
            state=state,
            overlay_quad=overlay,
            output="1" if decided or passed else "0",
            status_text=format_status_text(decided, match.best_inlier_count, passed),
            timestamp=now,
            cycle_index=self._cycles,
        )

        if self._latch.should_auto_stop(now):
            logging.info(f"Auto-stop after {self._latch.hold_seconds:.2f}s in PASS")
            self.stop()
            result.state = DetectionState.IDLE
        return result

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def status(self) -> DetectionStatus:
        passed = self._latch.passed
        return DetectionStatus(
            state=self._latch.state,
            decided=self._last_decided,
            present=self._last_match.present,
            best_inliers=self._last_match.best_inlier_count,
            best_score=round(float(self._last_match.best_score), 4),
            cycles=self._cycles,
            skipped_ticks=self._skipped_ticks,
            references=self.reference_names,
            passed_at=self._latch.passed_at,
            text=format_status_text(self._last_decided, self._last_match.best_inlier_count, passed),
            output="1" if self._last_decided or passed else "0",
        )
