"""
Wafer detector: live presence verification against reference images.

Loads reference images, opens the camera, and runs the template-gate +
ORB-homography cascade until the wafer is confirmed (or the user quits).

Usage:
    python src/main.py --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Show a preview window with the verification overlay
    --reference: Reference image path (repeatable, overrides references.paths)
    --exit-on-pass: Stop automatically after the pass hold duration
"""

import os
import sys
import argparse
import logging
import threading
import yaml
import uvicorn
from typing import Any, Dict, List, Optional, Tuple

from detection.errors import CaptureUnavailableError, NoUsableReferencesError
from models.config import CASCADE_MODES, Config
from ops.logging import setup_logging
from pipeline.engine import create_engine_from_config
from references.loader import load_reference_images
from runtime.session import DetectionSession
from web.app import create_app
from web.state import StatusBoard


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _config_layers(config_path: str) -> List[str]:
    """Existing config files in merge order, without duplicates."""
    config_dir = os.path.dirname(config_path)
    candidates = [
        os.path.join(config_dir, "default.yaml"),
        os.path.join(config_dir, "config.yaml"),
        config_path,
    ]
    layers: List[str] = []
    for path in candidates:
        if os.path.exists(path) and os.path.abspath(path) not in {os.path.abspath(p) for p in layers}:
            layers.append(path)
    return layers


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Merge the YAML layers next to config_path:
    checked-in defaults, then local overrides (config.yaml), then the file
    passed with --config. Later layers win key by key.
    """
    merged: Dict[str, Any] = {}
    for path in _config_layers(config_path):
        try:
            with open(path, "r") as f:
                layer = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logging.error(f"Failed to load configuration {path}: {e}")
            sys.exit(1)
        if not isinstance(layer, dict):
            logging.error(f"Configuration {path} must be a mapping, got {type(layer).__name__}")
            sys.exit(1)
        logging.debug(f"Config layer: {path}")
        _deep_merge(merged, layer)
    return merged


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'processing', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera', {}) or {}
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    if not isinstance(camera['device_id'], (int, str)) or isinstance(camera['device_id'], bool):
        return False, "camera.device_id must be an integer (index) or string (URL/path)"
    if isinstance(camera['device_id'], int) and camera['device_id'] < 0:
        return False, "camera.device_id integer must be non-negative"
    if 'resolution' in camera:
        res = camera['resolution']
        if not isinstance(res, list) or len(res) != 2 or not all(_is_positive_int(x) for x in res):
            return False, "camera.resolution must be a list of two positive integers [width, height]"
    if 'fps' in camera and not _is_positive_int(camera['fps']):
        return False, "camera.fps must be a positive integer"

    # Processing resolution
    processing = config.get('processing', {}) or {}
    width = processing.get('width', 320)
    height = processing.get('height', 240)
    if not _is_positive_int(width) or not _is_positive_int(height):
        return False, "processing.width and processing.height must be positive integers"
    target_fps = processing.get('target_fps', 30)
    if not _is_number(target_fps) or target_fps <= 0:
        return False, "processing.target_fps must be a positive number"

    # Template gate
    template = config.get('template', {}) or {}
    size = template.get('size', 96)
    if not _is_positive_int(size):
        return False, "template.size must be a positive integer"
    if size > width or size > height:
        return False, "template.size must fit inside the processing resolution"
    threshold = template.get('threshold', 0.55)
    if not _is_number(threshold) or not (0 <= threshold <= 1):
        return False, "template.threshold must be between 0 and 1"
    if 'edge_mode' in template and not isinstance(template['edge_mode'], bool):
        return False, "template.edge_mode must be a boolean"

    # Features / geometric verification
    features = config.get('features', {}) or {}
    ratio = features.get('ratio', 0.90)
    if not _is_number(ratio) or not (0 < ratio <= 1):
        return False, "features.ratio must be between 0 and 1"
    for key in ('n_features', 'n_levels', 'min_good_matches', 'min_inliers', 'min_descriptors'):
        if key in features and not _is_positive_int(features[key]):
            return False, f"features.{key} must be a positive integer"
    reproj = features.get('ransac_reproj_threshold', 5.0)
    if not _is_number(reproj) or reproj <= 0:
        return False, "features.ransac_reproj_threshold must be a positive number"

    # Cascade
    cascade = config.get('cascade', {}) or {}
    mode = cascade.get('mode', 'instant')
    if mode not in CASCADE_MODES:
        return False, f"cascade.mode must be one of: {', '.join(CASCADE_MODES)}"
    if not _is_positive_int(cascade.get('smooth_window', 5)):
        return False, "cascade.smooth_window must be a positive integer"

    # Pass latch
    pass_latch = config.get('pass_latch', {}) or {}
    hold = pass_latch.get('hold_seconds', 1.0)
    if not _is_number(hold) or hold < 0:
        return False, "pass_latch.hold_seconds must be a non-negative number"

    # References
    references = config.get('references', {}) or {}
    if not isinstance(references.get('paths', []), list):
        return False, "references.paths must be a list of file paths"

    # Log settings
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Wafer Detector - live presence verification')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Show preview window')
    parser.add_argument('--reference', action='append', default=None,
                        help='Reference image path (repeatable)')
    parser.add_argument('--exit-on-pass', action='store_true',
                        help='Stop automatically after the pass hold duration')
    args = parser.parse_args()

    config = load_config(args.config)
    if args.reference:
        config.setdefault('references', {})['paths'] = args.reference
    if args.exit_on_pass:
        config.setdefault('pass_latch', {})['exit_on_pass'] = True

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config['log_path'], config['log_level'])
    logging.info("Starting Wafer Detector")

    typed = Config.from_dict(config)
    session = DetectionSession(typed)
    status_board = StatusBoard()

    images = load_reference_images(typed.references.paths)
    session.load_references(images)

    if typed.web.enabled:
        def run_web_app():
            uvicorn.run(
                create_app(status_board),
                host=typed.web.host,
                port=typed.web.port,
                log_level="info",
            )

        web_thread = threading.Thread(target=run_web_app, daemon=True)
        web_thread.start()
        logging.info(f"Status API started on port {typed.web.port}")

    engine = create_engine_from_config(
        config=config,
        session=session,
        display=args.display,
        status_board=status_board,
    )

    exit_code = 0
    try:
        engine.run()
    except NoUsableReferencesError as e:
        logging.error(f"Cannot start detection: {e}")
        exit_code = 1
    except CaptureUnavailableError as e:
        logging.error(f"Camera unavailable: {e}")
        exit_code = 1
    finally:
        final = session.status()
        session.close()
        logging.info(f"Final status: {final.text} (output={final.output})")
        logging.info("Wafer Detector stopped")

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
