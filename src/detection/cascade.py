"""
Detection cascade: combines the template gate and the geometric fallback
into one per-frame hit.

Modes:
- "instant": a gate hit decides immediately; otherwise the fallback decides alone.
- "confirm": presence needs a gate hit AND enough inliers. The fallback always
  runs so inliers and the quad are reported even on a gate miss.
- "geometric": gate skipped, fallback decides.
- "template": gate decides, no fallback.
"""

from __future__ import annotations

from typing import Optional, Sequence

from models.config import CASCADE_MODES, CascadeConfig
from models.match import MatchResult
from .geometric import GeometricVerifier
from .preprocess import FrameBuffers
from .template_gate import TemplateGate


class DetectionCascade:
    """Runs the stages for one frame in the configured order."""

    def __init__(
        self,
        config: CascadeConfig,
        gate: TemplateGate,
        verifier: Optional[GeometricVerifier] = None,
    ):
        if config.mode not in CASCADE_MODES:
            raise ValueError(f"Unknown cascade mode '{config.mode}'")
        if config.runs_fallback and verifier is None:
            raise ValueError(f"Cascade mode '{config.mode}' needs a geometric verifier")
        self._config = config
        self._gate = gate
        self._verifier = verifier

    @property
    def mode(self) -> str:
        return self._config.mode

    def evaluate(self, buffers: FrameBuffers, references: Sequence) -> MatchResult:
        """
        Evaluate one frame.

        Args:
            buffers: Prepared frame buffers for this cycle.
            references: Active references.
        """
        mode = self._config.mode
        result = MatchResult()

        if self._config.runs_gate:
            gate = self._gate.evaluate(buffers.template_source, references)
            result.best_score = gate.best_score
            result.template_hit = gate.hit
            if gate.hit:
                result.best_reference = gate.best_reference

        if mode == "template":
            result.present = result.template_hit
        elif mode == "instant" and result.template_hit:
            result.present = True
        else:
            geo = self._verifier.evaluate(buffers.gray, references)
            result.best_inlier_count = geo.best_inliers
            result.best_quad = geo.best_quad
            result.geometric_hit = geo.hit
            if geo.best_reference is not None:
                result.best_reference = geo.best_reference
            if mode == "confirm":
                result.present = result.template_hit and geo.hit
            else:
                result.present = geo.hit
            if result.present:
                result.stage = "geometric"

        if result.present and result.stage is None:
            result.stage = "template"
        return result
