"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import cv2
import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.config import Config, FeatureConfig, ProcessingConfig, TemplateConfig  # noqa: E402


REF_ORIGIN = (60, 45)
REF_SIZE = (200, 150)


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  device_id: 0
  resolution: [640, 480]
  fps: 30

processing:
  width: 320
  height: 240
  target_fps: 30

template:
  size: 96
  threshold: 0.55

cascade:
  mode: "instant"
  smooth_window: 5

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
        },
        "processing": {
            "width": 320,
            "height": 240,
            "target_fps": 30,
        },
        "template": {
            "size": 96,
            "threshold": 0.55,
            "edge_mode": False,
        },
        "features": {
            "ratio": 0.90,
            "min_good_matches": 3,
            "min_inliers": 6,
        },
        "cascade": {
            "mode": "instant",
            "smooth_window": 5,
        },
        "pass_latch": {
            "exit_on_pass": False,
            "hold_seconds": 1.0,
        },
        "references": {
            "paths": ["references/wafer_ref_1.jpg"],
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


def make_reference_image(seed: int = 7) -> np.ndarray:
    """Blocky random texture: many sharp corners, nothing repetitive."""
    rng = np.random.default_rng(seed)
    blocks = rng.integers(0, 256, (15, 20), dtype=np.uint8)
    gray = cv2.resize(blocks, REF_SIZE, interpolation=cv2.INTER_NEAREST)
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)


def make_scene(reference: np.ndarray, origin=REF_ORIGIN) -> np.ndarray:
    """320x240 black frame with the reference pasted at origin."""
    frame = np.zeros((240, 320, 3), dtype=np.uint8)
    x, y = origin
    h, w = reference.shape[:2]
    frame[y:y + h, x:x + w] = reference
    return frame


@pytest.fixture
def reference_image():
    return make_reference_image()


@pytest.fixture
def weak_reference_image():
    """Uniform gray: no corners, no descriptors."""
    return np.full((150, 200, 3), 128, dtype=np.uint8)


@pytest.fixture
def scene_frame(reference_image):
    return make_scene(reference_image)


@pytest.fixture
def empty_frame():
    return np.zeros((240, 320, 3), dtype=np.uint8)


@pytest.fixture
def processing_config():
    return ProcessingConfig()


@pytest.fixture
def template_config():
    return TemplateConfig()


@pytest.fixture
def feature_config():
    return FeatureConfig()


@pytest.fixture
def app_config():
    """Typed config for session tests."""
    return Config()
