"""
Tests for frame preprocessing into reusable buffers.
"""

import numpy as np
import pytest

from detection.errors import InvalidSessionStateError
from detection.preprocess import FrameBuffers, FramePreprocessor, to_gray
from models.config import ProcessingConfig


class TestToGray:
    """Tests for channel handling."""

    def test_gray_passthrough(self):
        img = np.full((10, 12), 7, dtype=np.uint8)

        assert to_gray(img) is img

    def test_single_channel_squeezed(self):
        img = np.full((10, 12, 1), 7, dtype=np.uint8)

        assert to_gray(img).shape == (10, 12)

    def test_bgr(self):
        img = np.zeros((10, 12, 3), dtype=np.uint8)
        img[:] = (255, 255, 255)

        gray = to_gray(img)

        assert gray.shape == (10, 12)
        assert gray[0, 0] == 255

    def test_bgra(self):
        img = np.zeros((10, 12, 4), dtype=np.uint8)

        assert to_gray(img).shape == (10, 12)


class TestFrameBuffers:
    """Tests for buffer allocation."""

    def test_allocate_without_edges(self):
        buffers = FrameBuffers.allocate(ProcessingConfig(), edge_mode=False)

        assert buffers.color.shape == (240, 320, 3)
        assert buffers.gray.shape == (240, 320)
        assert buffers.edge is None
        assert buffers.template_source is buffers.gray

    def test_allocate_with_edges(self):
        buffers = FrameBuffers.allocate(ProcessingConfig(), edge_mode=True)

        assert buffers.edge.shape == (240, 320)
        assert buffers.template_source is buffers.edge


class TestFramePreprocessor:
    """Tests for per-cycle downscaling."""

    def test_downscales_capture_resolution(self):
        pre = FramePreprocessor(ProcessingConfig())
        raw = np.full((480, 640, 3), 200, dtype=np.uint8)

        buffers = pre.prepare(raw)

        assert buffers.color.shape == (240, 320, 3)
        assert buffers.gray.shape == (240, 320)
        assert int(buffers.gray[120, 160]) == 200

    def test_buffers_reused_between_cycles(self):
        pre = FramePreprocessor(ProcessingConfig())

        first = pre.prepare(np.zeros((480, 640, 3), dtype=np.uint8))
        gray_id = id(first.gray)
        second = pre.prepare(np.full((480, 640, 3), 90, dtype=np.uint8))

        assert second is first
        assert id(second.gray) == gray_id
        assert int(second.gray[0, 0]) == 90

    def test_gray_and_bgra_input(self):
        pre = FramePreprocessor(ProcessingConfig())

        gray_out = pre.prepare(np.full((480, 640), 50, dtype=np.uint8))
        assert int(gray_out.color[0, 0, 0]) == 50

        bgra_out = pre.prepare(np.full((480, 640, 4), 80, dtype=np.uint8))
        assert int(bgra_out.gray[0, 0]) == 80

    def test_edge_mode_computes_edges(self):
        pre = FramePreprocessor(ProcessingConfig(), edge_mode=True)
        raw = np.zeros((240, 320, 3), dtype=np.uint8)
        raw[:, 160:] = 255

        buffers = pre.prepare(raw)

        assert buffers.edge is not None
        assert buffers.edge.max() == 255
        assert buffers.edge[:, :100].max() == 0

    def test_released_preprocessor_refuses_access(self):
        pre = FramePreprocessor(ProcessingConfig())

        pre.release()
        pre.release()

        assert pre.released is True
        with pytest.raises(InvalidSessionStateError):
            pre.prepare(np.zeros((240, 320, 3), dtype=np.uint8))
