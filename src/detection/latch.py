"""
Pass latch: one-way presence confirmation.

IDLE -> DETECTING on start, DETECTING -> PASSED on the first debounced hit,
any state -> IDLE on stop. Once passed, later misses never revert the latch.
"""

from __future__ import annotations

import logging
from typing import Optional

from models.status import DetectionState
from .errors import InvalidSessionStateError


class PassLatch:
    """
    Sticky presence state machine.

    Attributes:
        exit_on_pass: Request an automatic stop after hold_seconds in PASSED.
        hold_seconds: How long PASSED is held before an automatic stop.
    """

    def __init__(self, exit_on_pass: bool = False, hold_seconds: float = 1.0):
        self.exit_on_pass = exit_on_pass
        self.hold_seconds = hold_seconds
        self._state = DetectionState.IDLE
        self._passed_at: Optional[float] = None

    @property
    def state(self) -> DetectionState:
        return self._state

    @property
    def passed(self) -> bool:
        return self._state == DetectionState.PASSED

    @property
    def passed_at(self) -> Optional[float]:
        """Time PASSED was entered, None otherwise."""
        return self._passed_at

    def start(self) -> None:
        if self._state != DetectionState.IDLE:
            raise InvalidSessionStateError(f"Cannot start from state '{self._state.value}'")
        self._state = DetectionState.DETECTING
        self._passed_at = None

    def update(self, decided: bool, now: float) -> DetectionState:
        """
        Feed the debounced signal for one cycle.

        Raises:
            InvalidSessionStateError: The latch is idle.
        """
        if self._state == DetectionState.IDLE:
            raise InvalidSessionStateError("Latch is idle; start() must be called first")
        if decided and self._state == DetectionState.DETECTING:
            self._state = DetectionState.PASSED
            self._passed_at = now
            logging.info("PASS - wafer confirmed")
        return self._state

    def should_auto_stop(self, now: float) -> bool:
        if not self.exit_on_pass or not self.passed or self._passed_at is None:
            return False
        return now - self._passed_at >= self.hold_seconds

    def stop(self) -> None:
        self._state = DetectionState.IDLE
        self._passed_at = None
