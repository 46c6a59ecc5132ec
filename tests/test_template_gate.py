"""
Tests for the instant template gate.
"""

import numpy as np
import pytest
from unittest.mock import patch

from detection.template_gate import TemplateGate
from models.config import TemplateConfig
from references import ReferenceStore


@pytest.fixture
def reference(processing_config, template_config, feature_config, reference_image):
    store = ReferenceStore(processing_config, template_config, feature_config)
    return store.build_reference("wafer", reference_image)


def _frame_with_template(reference, x=100, y=60):
    frame = np.zeros((240, 320), dtype=np.uint8)
    frame[y:y + 96, x:x + 96] = reference.template
    return frame


class TestTemplateGate:
    """Tests for TemplateGate scoring and thresholding."""

    @pytest.mark.parametrize("threshold", [-0.01, 1.01])
    def test_threshold_range(self, threshold):
        with pytest.raises(ValueError):
            TemplateGate(threshold)

    def test_exact_template_scores_near_one(self, reference):
        gate = TemplateGate(0.55)

        result = gate.evaluate(_frame_with_template(reference), [reference])

        assert result.hit is True
        assert result.best_score == pytest.approx(1.0, abs=1e-3)
        assert result.best_reference == "wafer"
        assert "wafer" in result.scores

    def test_empty_frame_misses(self, reference):
        gate = TemplateGate(0.55)

        result = gate.evaluate(np.zeros((240, 320), dtype=np.uint8), [reference])

        assert result.hit is False
        assert result.best_score < 0.55

    def test_response_buffer_written_in_place(self, reference):
        gate = TemplateGate(0.55)
        buffer_id = id(reference.response)

        gate.score(_frame_with_template(reference), reference)

        assert id(reference.response) == buffer_id
        assert reference.response.max() == pytest.approx(1.0, abs=1e-3)

    def test_score_above_threshold_is_hit(self, reference):
        """A best correlation of 0.60 against a 0.55 threshold is a hit."""
        gate = TemplateGate(0.55)
        frame = np.zeros((240, 320), dtype=np.uint8)

        with patch("detection.template_gate.cv2.minMaxLoc", return_value=(0.0, 0.60, (0, 0), (10, 10))):
            result = gate.evaluate(frame, [reference])

        assert result.hit is True
        assert result.best_score == pytest.approx(0.60)

    def test_score_equal_to_threshold_is_hit(self):
        assert TemplateGate(0.55).is_hit(0.55) is True
        assert TemplateGate(0.55).is_hit(0.5499) is False

    def test_any_reference_hit_is_enough(
        self, processing_config, template_config, feature_config, reference_image, reference
    ):
        rng = np.random.default_rng(3)
        other_image = np.repeat(
            np.repeat(rng.integers(0, 256, (15, 20), dtype=np.uint8), 10, axis=0), 10, axis=1
        )
        store = ReferenceStore(processing_config, template_config, feature_config)
        other = store.build_reference("other", other_image)
        gate = TemplateGate(0.55)

        result = gate.evaluate(_frame_with_template(reference), [other, reference])

        assert result.hit is True
        assert result.best_reference == "wafer"
        assert set(result.scores) == {"other", "wafer"}

    def test_monotonic_in_threshold(self, reference):
        """Raising the threshold can only turn hits into misses."""
        frame = _frame_with_template(reference)
        frame[60:156, 100:196] = (frame[60:156, 100:196] // 2) + 40
        score = TemplateGate(0.0).evaluate(frame, [reference]).best_score
        thresholds = np.linspace(0.0, 1.0, 21)

        hits = [TemplateGate(float(t)).evaluate(frame, [reference]).hit for t in thresholds]

        for lower, higher in zip(hits, hits[1:]):
            assert not (higher and not lower)
        assert hits == [score >= t for t in thresholds]


def _checkerboard(size=960):
    """One-pixel checkerboard: rich in corners, flat once area-downscaled."""
    ys, xs = np.indices((size, size))
    return (((xs + ys) % 2) * 255).astype(np.uint8)


class TestFlatTemplate:
    """References whose template carries no contrast are kept out of the gate."""

    @pytest.mark.parametrize("edge_mode", [False, True])
    def test_flat_template_disables_gate(self, processing_config, feature_config, edge_mode):
        store = ReferenceStore(processing_config, TemplateConfig(edge_mode=edge_mode), feature_config)

        ref = store.build_reference("checker", _checkerboard())

        assert ref.template is None
        assert ref.response is None
        assert ref.gate_enabled is False
        assert ref.descriptor_count >= feature_config.min_descriptors

    def test_flat_template_never_hits_noise(self, processing_config, template_config, feature_config):
        store = ReferenceStore(processing_config, template_config, feature_config)
        ref = store.build_reference("checker", _checkerboard())
        noise = np.random.default_rng(11).integers(0, 256, (240, 320), dtype=np.uint8)

        result = TemplateGate(0.55).evaluate(noise, [ref])

        assert result.hit is False
        assert result.best_score == 0.0
        assert result.scores == {}

    def test_flat_reference_still_loaded(self, processing_config, template_config, feature_config):
        store = ReferenceStore(processing_config, template_config, feature_config)

        store.load([("checker", _checkerboard())])

        assert [r.name for r in store.references] == ["checker"]

    def test_textured_template_keeps_gate(self, reference):
        assert reference.gate_enabled is True
        assert reference.template.shape == (96, 96)
