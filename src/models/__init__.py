"""
Typed models for the wafer detector.

These models provide strong typing for configuration, frames, per-cycle
match results and reporting snapshots.
"""

from .frame import FrameData
from .match import MatchResult
from .status import CycleResult, DetectionState, DetectionStatus, format_status_text
from .config import (
    Config,
    CameraConfig,
    ProcessingConfig,
    TemplateConfig,
    FeatureConfig,
    CascadeConfig,
    PassLatchConfig,
    ReferencesConfig,
    WebConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "MatchResult",
    "CycleResult",
    "DetectionState",
    "DetectionStatus",
    "format_status_text",
    # Config
    "Config",
    "CameraConfig",
    "ProcessingConfig",
    "TemplateConfig",
    "FeatureConfig",
    "CascadeConfig",
    "PassLatchConfig",
    "ReferencesConfig",
    "WebConfig",
]
