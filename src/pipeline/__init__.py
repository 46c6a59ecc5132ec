"""
Pipeline module for the wafer detector.

The pipeline connects frame acquisition (observation sources) to the
detection session and the reporting layer.
"""

from .engine import PipelineEngine, PipelineConfig, PipelineStats, create_engine_from_config

__all__ = [
    "PipelineEngine",
    "PipelineConfig",
    "PipelineStats",
    "create_engine_from_config",
]
