"""
Instant template gate.

Normalized cross-correlation of each reference's small fixed template
against the processing-resolution frame. Correlation against a 96px template
is cheap compared to keypoint extraction, so the gate always runs first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

import cv2
import numpy as np


@dataclass
class GateResult:
    """Outcome of the template gate for one frame."""
    hit: bool = False
    best_score: float = 0.0
    best_reference: Optional[str] = None
    scores: Dict[str, float] = field(default_factory=dict)


class TemplateGate:
    """
    Declares a hit when any reference's best TM_CCOEFF_NORMED score reaches
    the threshold.

    Each reference carries a response buffer preallocated to the valid
    correlation window, so matching writes in place.
    """

    def __init__(self, threshold: float = 0.55):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"Template threshold must be within [0, 1], got {threshold}")
        self.threshold = threshold

    def is_hit(self, score: float) -> bool:
        return score >= self.threshold

    def score(self, frame: np.ndarray, reference) -> float:
        """Global maximum correlation of one reference template over the frame."""
        cv2.matchTemplate(frame, reference.template, cv2.TM_CCOEFF_NORMED, result=reference.response)
        _, max_val, _, _ = cv2.minMaxLoc(reference.response)
        return float(max_val)

    def evaluate(self, frame: np.ndarray, references: Sequence) -> GateResult:
        """
        Score every reference and OR the per-reference hits.

        Args:
            frame: Gray or edge buffer at processing resolution.
            references: References carrying template and response buffers.
        """
        result = GateResult()
        for ref in references:
            if ref.template is None or ref.response is None:
                continue
            max_val = self.score(frame, ref)
            result.scores[ref.name] = max_val
            logging.debug(f"[TEMPLATE] {ref.name} maxVal={max_val:.3f} thr={self.threshold}")
            if result.best_reference is None or max_val > result.best_score:
                result.best_score = max_val
                result.best_reference = ref.name
            if self.is_hit(max_val):
                result.hit = True
        return result
