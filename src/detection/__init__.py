"""
Wafer Detector - Detection Module

Per-frame presence detection: preprocessing, the instant template gate, the
ORB homography fallback, decision smoothing and the pass latch.
"""

from .errors import (
    WaferDetectionError,
    WeakReferenceError,
    NoUsableReferencesError,
    CaptureUnavailableError,
    InvalidSessionStateError,
)
from .preprocess import FrameBuffers, FramePreprocessor, to_gray
from .template_gate import GateResult, TemplateGate
from .geometric import GeometricResult, GeometricVerifier, create_orb_detector, ratio_test, project_corners
from .smoothing import DecisionSmoother
from .latch import PassLatch
from .cascade import DetectionCascade

__all__ = [
    'WaferDetectionError', 'WeakReferenceError', 'NoUsableReferencesError',
    'CaptureUnavailableError', 'InvalidSessionStateError',
    'FrameBuffers', 'FramePreprocessor', 'to_gray',
    'GateResult', 'TemplateGate',
    'GeometricResult', 'GeometricVerifier', 'create_orb_detector', 'ratio_test', 'project_corners',
    'DecisionSmoother', 'PassLatch', 'DetectionCascade',
]
