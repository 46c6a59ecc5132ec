"""
Tests for typed models.
"""

from models import (
    Config,
    CycleResult,
    DetectionState,
    DetectionStatus,
    MatchResult,
    format_status_text,
)


class TestMatchResult:
    def test_defaults(self):
        result = MatchResult()

        assert result.present is False
        assert result.best_score == 0.0
        assert result.best_inlier_count == 0
        assert result.best_quad is None
        assert result.stage is None

    def test_to_dict(self):
        result = MatchResult(
            best_score=0.612345,
            best_inlier_count=14,
            best_quad=[(1.0, 2.0), (3.0, 2.0), (3.0, 4.0), (1.0, 4.0)],
            best_reference="wafer_ref_2.jpg",
            geometric_hit=True,
            present=True,
            stage="geometric",
        )

        d = result.to_dict()

        assert d["best_score"] == 0.6123
        assert d["best_quad"] == [[1.0, 2.0], [3.0, 2.0], [3.0, 4.0], [1.0, 4.0]]
        assert d["stage"] == "geometric"
        assert d["present"] is True


class TestCycleResult:
    def test_defaults(self):
        cycle = CycleResult(match=MatchResult(), decided=False, state=DetectionState.DETECTING)

        assert cycle.output == "0"
        assert cycle.overlay_quad is None


class TestStatusText:
    def test_passed(self):
        assert format_status_text(True, 12, passed=True) == "PASS - Wafer detected"

    def test_detecting_yes(self):
        assert format_status_text(True, 9, passed=False) == "Wafer: YES | Best inliers: 9"

    def test_detecting_no(self):
        assert format_status_text(False, 0, passed=False) == "Wafer: NO | Best inliers: 0"


class TestDetectionStatus:
    def test_from_dict(self):
        d = {
            "state": "passed",
            "decided": True,
            "present": False,
            "best_inliers": 11,
            "best_score": 0.4,
            "cycles": 30,
            "references": ["a.jpg", "b.jpg"],
            "passed_at": 12.0,
            "text": "PASS - Wafer detected",
            "output": "1",
        }

        status = DetectionStatus.from_dict(d)

        assert status.state == DetectionState.PASSED
        assert status.passed is True
        assert status.references == ["a.jpg", "b.jpg"]
        assert status.skipped_ticks == 0

    def test_unknown_state_falls_back_to_idle(self):
        status = DetectionStatus.from_dict({"state": "exploded"})

        assert status.state == DetectionState.IDLE

    def test_roundtrip(self):
        status = DetectionStatus(
            state=DetectionState.DETECTING, decided=False, best_inliers=3, cycles=7, references=["r"]
        )

        assert DetectionStatus.from_dict(status.to_dict()) == status

    def test_state_serializes_as_string(self):
        assert DetectionStatus().to_dict()["state"] == "idle"


class TestConfig:
    def test_from_dict_minimal(self):
        cfg = Config.from_dict({"camera": {"device_id": 2}, "log_level": "DEBUG"})

        assert cfg.camera.device_id == 2
        assert cfg.log_level == "DEBUG"
        assert cfg.cascade.mode == "instant"
        assert cfg.pass_latch.exit_on_pass is False
        assert cfg.web.enabled is False

    def test_roundtrip(self):
        cfg = Config.from_dict({"cascade": {"mode": "confirm"}, "references": {"paths": ["x.png"]}})

        assert Config.from_dict(cfg.to_dict()) == cfg
