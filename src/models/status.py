"""
Detection state and status models for reporting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .match import MatchResult, Quad


class DetectionState(str, Enum):
    """Session lifecycle states."""
    IDLE = "idle"
    DETECTING = "detecting"
    PASSED = "passed"


@dataclass
class CycleResult:
    """
    Everything one executed detection cycle produced.

    Attributes:
        match: Raw cascade result for this frame.
        decided: Debounced presence signal.
        state: Latch state after this cycle.
        overlay_quad: Quad to draw (None once passed or when overlay is off).
        output: "1" when decided or passed, otherwise "0".
        status_text: Human readable one-line summary.
        timestamp: Tick time the cycle ran at.
        cycle_index: Number of executed cycles since start.
    """
    match: MatchResult
    decided: bool
    state: DetectionState
    overlay_quad: Optional[Quad] = None
    output: str = "0"
    status_text: str = ""
    timestamp: float = 0.0
    cycle_index: int = 0


@dataclass
class DetectionStatus:
    """Snapshot of a session for the reporting layer."""
    state: DetectionState = DetectionState.IDLE
    decided: bool = False
    present: bool = False
    best_inliers: int = 0
    best_score: float = 0.0
    cycles: int = 0
    skipped_ticks: int = 0
    references: List[str] = field(default_factory=list)
    passed_at: Optional[float] = None
    text: str = ""
    output: str = "0"

    @property
    def passed(self) -> bool:
        return self.state == DetectionState.PASSED

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionStatus":
        """Adapter: Create from dictionary (e.g., from /api/status response)."""
        try:
            state = DetectionState(d.get("state", "idle"))
        except ValueError:
            state = DetectionState.IDLE
        return cls(
            state=state,
            decided=d.get("decided", False),
            present=d.get("present", False),
            best_inliers=d.get("best_inliers", 0),
            best_score=d.get("best_score", 0.0),
            cycles=d.get("cycles", 0),
            skipped_ticks=d.get("skipped_ticks", 0),
            references=list(d.get("references", [])),
            passed_at=d.get("passed_at"),
            text=d.get("text", ""),
            output=d.get("output", "0"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "state": self.state.value,
            "decided": self.decided,
            "present": self.present,
            "best_inliers": self.best_inliers,
            "best_score": self.best_score,
            "cycles": self.cycles,
            "skipped_ticks": self.skipped_ticks,
            "references": list(self.references),
            "passed_at": self.passed_at,
            "text": self.text,
            "output": self.output,
        }


def format_status_text(decided: bool, best_inliers: int, passed: bool) -> str:
    """One-line status summary shown to operators."""
    if passed:
        return "PASS - Wafer detected"
    return f"Wafer: {'YES' if decided else 'NO'} | Best inliers: {best_inliers}"
