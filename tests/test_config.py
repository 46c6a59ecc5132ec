"""
Smoke tests for configuration loading and validation.
"""

import pytest

from main import load_config, validate_config
from models.config import Config, CascadeConfig, ProcessingConfig


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config_passes(self, valid_config):
        """A complete valid config passes validation."""
        is_valid, error = validate_config(valid_config)

        assert is_valid is True
        assert error is None

    def test_missing_camera_section(self, valid_config):
        del valid_config["camera"]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "camera" in error.lower()

    def test_missing_processing_section(self, valid_config):
        del valid_config["processing"]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "processing" in error.lower()

    def test_missing_log_level(self, valid_config):
        del valid_config["log_level"]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "log_level" in error.lower()

    def test_invalid_log_level(self, valid_config):
        valid_config["log_level"] = "VERBOSE"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "log_level" in error

    def test_missing_device_id(self, valid_config):
        del valid_config["camera"]["device_id"]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "device_id" in error

    def test_rtsp_device_id_allowed(self, valid_config):
        valid_config["camera"]["device_id"] = "rtsp://user:pw@10.0.0.5/stream"

        is_valid, _ = validate_config(valid_config)

        assert is_valid is True

    def test_negative_device_id_rejected(self, valid_config):
        valid_config["camera"]["device_id"] = -1

        is_valid, _ = validate_config(valid_config)

        assert is_valid is False

    def test_bad_resolution(self, valid_config):
        valid_config["camera"]["resolution"] = [1280]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "resolution" in error

    def test_template_larger_than_processing_frame(self, valid_config):
        valid_config["template"]["size"] = 300

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "template.size" in error

    @pytest.mark.parametrize("threshold", [-0.1, 1.5, "high"])
    def test_template_threshold_out_of_range(self, valid_config, threshold):
        valid_config["template"]["threshold"] = threshold

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "threshold" in error

    @pytest.mark.parametrize("ratio", [0, 1.2])
    def test_ratio_out_of_range(self, valid_config, ratio):
        valid_config["features"]["ratio"] = ratio

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "ratio" in error

    def test_min_inliers_must_be_positive(self, valid_config):
        valid_config["features"]["min_inliers"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "min_inliers" in error

    def test_unknown_cascade_mode(self, valid_config):
        valid_config["cascade"]["mode"] = "fastest"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "cascade.mode" in error

    @pytest.mark.parametrize("mode", ["instant", "confirm", "geometric", "template"])
    def test_known_cascade_modes(self, valid_config, mode):
        valid_config["cascade"]["mode"] = mode

        is_valid, _ = validate_config(valid_config)

        assert is_valid is True

    def test_smooth_window_zero_rejected(self, valid_config):
        valid_config["cascade"]["smooth_window"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "smooth_window" in error

    def test_negative_hold_rejected(self, valid_config):
        valid_config["pass_latch"]["hold_seconds"] = -1

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "hold_seconds" in error

    def test_reference_paths_must_be_list(self, valid_config):
        valid_config["references"]["paths"] = "wafer.jpg"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "references.paths" in error


class TestLoadConfig:
    """Tests for layered YAML loading."""

    def test_loads_default_yaml(self, temp_config_dir):
        config = load_config(str(temp_config_dir / "config.yaml"))

        assert config["camera"]["device_id"] == 0
        assert config["processing"]["width"] == 320
        assert config["cascade"]["mode"] == "instant"

    def test_local_override_merges(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("""
cascade:
  mode: "confirm"
template:
  edge_mode: true
""")

        config = load_config(str(temp_config_dir / "config.yaml"))

        assert config["cascade"]["mode"] == "confirm"
        assert config["cascade"]["smooth_window"] == 5
        assert config["template"]["edge_mode"] is True
        assert config["template"]["threshold"] == 0.55

    def test_explicit_config_applied_last(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("log_level: DEBUG\n")
        explicit = temp_config_dir / "line3.yaml"
        explicit.write_text("log_level: WARNING\ncamera:\n  device_id: 2\n")

        config = load_config(str(explicit))

        assert config["log_level"] == "WARNING"
        assert config["camera"]["device_id"] == 2
        assert config["camera"]["fps"] == 30

    def test_default_yaml_validates(self, temp_config_dir):
        config = load_config(str(temp_config_dir / "config.yaml"))

        is_valid, error = validate_config(config)

        assert is_valid is True, error


class TestTypedConfig:
    """Tests for the typed Config adapters."""

    def test_defaults(self):
        cfg = Config()

        assert cfg.processing.size == (320, 240)
        assert cfg.template.size == 96
        assert cfg.template.threshold == 0.55
        assert cfg.features.ratio == 0.90
        assert cfg.features.min_inliers == 6
        assert cfg.features.min_good_matches == 3
        assert cfg.features.ransac_reproj_threshold == 5.0
        assert cfg.cascade.smooth_window == 5

    def test_from_dict_partial(self, valid_config):
        cfg = Config.from_dict(valid_config)

        assert cfg.camera.resolution == [1280, 720]
        assert cfg.features.n_features == 1000
        assert cfg.references.paths == ["references/wafer_ref_1.jpg"]

    def test_round_trip(self, valid_config):
        cfg = Config.from_dict(valid_config)

        assert Config.from_dict(cfg.to_dict()) == cfg

    def test_min_interval(self):
        assert ProcessingConfig(target_fps=20).min_interval == pytest.approx(0.05)

    @pytest.mark.parametrize("mode,gate,fallback", [
        ("instant", True, True),
        ("confirm", True, True),
        ("geometric", False, True),
        ("template", True, False),
    ])
    def test_cascade_stage_flags(self, mode, gate, fallback):
        cfg = CascadeConfig(mode=mode)

        assert cfg.runs_gate is gate
        assert cfg.runs_fallback is fallback


class TestSetupLogging:
    """Tests for root logger configuration."""

    def test_creates_log_directory(self, tmp_path):
        import logging
        from ops.logging import setup_logging

        log_path = tmp_path / "logs" / "wafer.log"
        root = setup_logging(str(log_path), "DEBUG")
        try:
            logging.info("hello")
            assert log_path.parent.is_dir()
            assert root.level == logging.DEBUG
            assert logging.getLogger("uvicorn.access").level == logging.WARNING
        finally:
            for handler in list(root.handlers):
                handler.close()
                root.removeHandler(handler)

    def test_unknown_level_rejected(self, tmp_path):
        from ops.logging import setup_logging

        with pytest.raises(ValueError):
            setup_logging(str(tmp_path / "x.log"), "LOUD")
