"""
Geometric verification fallback.

ORB keypoints are extracted from the frame once, matched against each
reference with a k=2 nearest-neighbour ratio test, and a RANSAC homography
is fitted on the survivors. The inlier count is the confidence signal.
Evaluation stops at the first reference whose inlier count clears the bar.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import cv2
import numpy as np

from models.config import FeatureConfig
from models.match import Quad


def create_orb_detector(features: FeatureConfig) -> cv2.ORB:
    """ORB detector with a bounded feature count and pyramid depth."""
    return cv2.ORB_create(
        nfeatures=features.n_features,
        scaleFactor=features.scale_factor,
        nlevels=features.n_levels,
        edgeThreshold=features.edge_threshold,
        firstLevel=0,
        WTA_K=2,
        scoreType=cv2.ORB_HARRIS_SCORE,
        patchSize=features.patch_size,
        fastThreshold=features.fast_threshold,
    )


def ratio_test(knn_matches: Sequence[Sequence[cv2.DMatch]], ratio: float) -> List[cv2.DMatch]:
    """
    Lowe's ambiguity filter.

    Keeps the nearest match of each pair only when it is clearly closer than
    the second nearest. Pairs with fewer than two candidates are dropped.
    """
    good: List[cv2.DMatch] = []
    for pair in knn_matches:
        if len(pair) != 2:
            continue
        m, n = pair
        if m.distance < ratio * n.distance:
            good.append(m)
    return good


def project_corners(corners: np.ndarray, homography: np.ndarray) -> Quad:
    """Map a 4x1x2 corner polygon through a homography into [(x, y), ...]."""
    pts = np.asarray(corners, dtype=np.float32).reshape(-1, 1, 2)
    projected = cv2.perspectiveTransform(pts, np.asarray(homography, dtype=np.float64))
    return [(float(x), float(y)) for x, y in projected.reshape(-1, 2)]


@dataclass
class GeometricResult:
    """Outcome of the geometric fallback for one frame."""
    hit: bool = False
    best_inliers: int = 0
    best_quad: Optional[Quad] = None
    best_reference: Optional[str] = None
    frame_keypoints: int = 0


class GeometricVerifier:
    """
    ORB + ratio test + RANSAC homography verifier.

    Example:
        verifier = GeometricVerifier(FeatureConfig())
        result = verifier.evaluate(buffers.gray, store.references)
        if result.hit:
            draw(result.best_quad)
    """

    def __init__(
        self,
        features: FeatureConfig,
        show_overlay: bool = True,
        detector: Optional[cv2.Feature2D] = None,
    ):
        self._features = features
        self._show_overlay = show_overlay
        self._detector = detector if detector is not None else create_orb_detector(features)
        self._matcher = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=False)

    @property
    def detector(self) -> cv2.Feature2D:
        return self._detector

    def extract(self, gray: np.ndarray):
        """Keypoints and descriptors for the current frame."""
        return self._detector.detectAndCompute(gray, None)

    def count_inliers(self, reference, good: List[cv2.DMatch], frame_keypoints):
        """
        Fit a homography for one reference.

        Returns:
            (inlier count, homography or None). A degenerate fit counts as zero.
        """
        src = np.float32([reference.keypoints[m.queryIdx].pt for m in good]).reshape(-1, 1, 2)
        dst = np.float32([frame_keypoints[m.trainIdx].pt for m in good]).reshape(-1, 1, 2)
        try:
            homography, mask = cv2.findHomography(
                src, dst, cv2.RANSAC, self._features.ransac_reproj_threshold
            )
        except cv2.error as e:
            logging.debug(f"[ORB] ref={reference.name} homography failed: {e}")
            return 0, None
        if homography is None or mask is None:
            logging.debug(f"[ORB] ref={reference.name} degenerate homography")
            return 0, None
        return int(np.count_nonzero(mask)), homography

    def evaluate(self, gray: np.ndarray, references: Sequence) -> GeometricResult:
        """
        Run the fallback on a gray processing-resolution frame.

        Args:
            gray: Grayscale frame buffer.
            references: References with keypoints, descriptors and corners.
        """
        cfg = self._features
        result = GeometricResult()

        frame_kp, frame_des = self.extract(gray)
        result.frame_keypoints = len(frame_kp) if frame_kp is not None else 0
        if frame_des is None or len(frame_des) < cfg.min_descriptors:
            return result

        for ref in references:
            if ref.descriptors is None:
                continue
            knn = self._matcher.knnMatch(ref.descriptors, frame_des, k=2)
            good = ratio_test(knn, cfg.ratio)
            if len(good) < cfg.min_good_matches:
                continue

            inliers, homography = self.count_inliers(ref, good, frame_kp)
            logging.debug(f"[ORB] ref={ref.name} good={len(good)} inliers={inliers}")

            if inliers > result.best_inliers:
                result.best_inliers = inliers
                result.best_reference = ref.name
                result.best_quad = (
                    project_corners(ref.corners, homography) if self._show_overlay else None
                )

            if result.best_inliers >= cfg.min_inliers:
                break

        result.hit = result.best_inliers >= cfg.min_inliers
        return result
