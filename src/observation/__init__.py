"""
Observation layer: where raw frames come from.

Each source implements ObservationSource and returns FrameData objects at
native capture resolution; downscaling happens in the detection core.
"""

from .base import ObservationSource, ObservationConfig
from .opencv_source import OpenCVSource, OpenCVSourceConfig, create_source_from_config

__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_source_from_config",
]
