"""
Per-cycle match result produced by the detection cascade.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

Point = Tuple[float, float]
Quad = List[Point]


@dataclass
class MatchResult:
    """
    Outcome of one cascade evaluation.

    Attributes:
        best_score: Highest template correlation across references (0.0 if the gate did not run).
        best_inlier_count: Highest homography inlier count across references.
        best_quad: Reference corners projected into processing coordinates, if computed.
        best_reference: Name of the reference that produced the deciding evidence.
        template_hit: Whether any reference cleared the template threshold.
        geometric_hit: Whether the best inlier count met the minimum.
        present: Final per-frame hit after combining stages.
        stage: Which stage decided a positive frame ("template" or "geometric").
    """
    best_score: float = 0.0
    best_inlier_count: int = 0
    best_quad: Optional[Quad] = None
    best_reference: Optional[str] = None
    template_hit: bool = False
    geometric_hit: bool = False
    present: bool = False
    stage: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "best_score": round(float(self.best_score), 4),
            "best_inlier_count": self.best_inlier_count,
            "best_quad": [list(p) for p in self.best_quad] if self.best_quad else None,
            "best_reference": self.best_reference,
            "template_hit": self.template_hit,
            "geometric_hit": self.geometric_hit,
            "present": self.present,
            "stage": self.stage,
        }
