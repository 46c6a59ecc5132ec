"""
Reference store: per-reference features, corner polygon and template.

Each reference image is turned, once at load time, into everything both
cascade stages need:
- ORB keypoints and binary descriptors for geometric verification
- the image corner polygon, projected through the fitted homography for overlays
- a fixed-size square template (gray or Canny edges) for the instant gate
- a correlation response buffer shaped to the valid template-matching window

References live in a ReferenceSet which owns their buffers. Replacing or
unloading a set releases it exactly once; a released set refuses access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from detection.errors import InvalidSessionStateError, WeakReferenceError
from detection.geometric import create_orb_detector
from detection.preprocess import to_gray
from models.config import FeatureConfig, ProcessingConfig, TemplateConfig

# Minimum gray-level spread for a template to be usable by the gate
FLAT_TEMPLATE_STD = 1.0


@dataclass(frozen=True)
class Reference:
    """
    Matching data derived from one reference image.

    Attributes:
        name: Display name (usually the file name).
        keypoints: ORB keypoints in reference pixel coordinates.
        descriptors: ORB descriptors, one 32-byte row per keypoint.
        corners: Reference image bounds as a 4x1x2 float32 polygon.
        template: Square gray (or edge) patch for the instant gate, or None
            when the patch is flat and the gate must skip this reference.
        response: Preallocated float32 buffer for template matching output.
    """
    name: str
    keypoints: Tuple[cv2.KeyPoint, ...]
    descriptors: np.ndarray
    corners: np.ndarray
    template: Optional[np.ndarray]
    response: Optional[np.ndarray]

    @property
    def gate_enabled(self) -> bool:
        return self.template is not None

    @property
    def descriptor_count(self) -> int:
        return 0 if self.descriptors is None else int(self.descriptors.shape[0])


def reference_corners(width: int, height: int) -> np.ndarray:
    """Corner polygon (0,0) (w,0) (w,h) (0,h) in the shape perspectiveTransform expects."""
    return np.float32([[0, 0], [width, 0], [width, height], [0, height]]).reshape(-1, 1, 2)


def response_shape(processing: ProcessingConfig, template_size: int) -> Tuple[int, int]:
    """
    Shape (rows, cols) of the TM_CCOEFF_NORMED output for one template.

    Template matching only scores offsets where the template fits entirely
    inside the frame, so the output is (H - h + 1) x (W - w + 1).
    """
    rows = processing.height - template_size + 1
    cols = processing.width - template_size + 1
    if rows < 1 or cols < 1:
        raise ValueError(
            f"Template size {template_size} does not fit processing resolution "
            f"{processing.width}x{processing.height}"
        )
    return rows, cols


class ReferenceSet:
    """Ordered, owning collection of references."""

    def __init__(self, references: Iterable[Reference]):
        self._references: List[Reference] = list(references)
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def references(self) -> List[Reference]:
        if self._released:
            raise InvalidSessionStateError("Reference set has been released")
        return list(self._references)

    @property
    def names(self) -> List[str]:
        return [r.name for r in self.references]

    def __len__(self) -> int:
        return 0 if self._released else len(self._references)

    def __iter__(self) -> Iterator[Reference]:
        return iter(self.references)

    def release(self) -> None:
        """Drop every reference buffer. Safe to call more than once."""
        if self._released:
            return
        count = len(self._references)
        self._references.clear()
        self._released = True
        logging.debug(f"Released reference set ({count} references)")


class ReferenceStore:
    """
    Builds and owns the active reference set for a detection session.

    Example:
        store = ReferenceStore(processing, template, features)
        store.load([("wafer_ref_1.jpg", image)])
        for ref in store.references:
            ...
        store.unload()
    """

    def __init__(
        self,
        processing: ProcessingConfig,
        template: TemplateConfig,
        features: FeatureConfig,
        detector: Optional[cv2.Feature2D] = None,
    ):
        self._processing = processing
        self._template = template
        self._features = features
        self._detector = detector if detector is not None else create_orb_detector(features)
        self._sources: List[Tuple[str, np.ndarray]] = []
        self._active = ReferenceSet([])

    @property
    def reference_set(self) -> ReferenceSet:
        return self._active

    @property
    def references(self) -> List[Reference]:
        """Active references. Raises InvalidSessionStateError after unload()."""
        return self._active.references

    @property
    def sources(self) -> List[Tuple[str, np.ndarray]]:
        """Source images retained for rebuilds."""
        return list(self._sources)

    def build_reference(self, name: str, image: np.ndarray) -> Reference:
        """
        Extract features and template for a single reference image.

        Raises:
            WeakReferenceError: Fewer than min_descriptors descriptors were found.
        """
        gray = to_gray(image)
        keypoints, descriptors = self._detector.detectAndCompute(gray, None)
        count = 0 if descriptors is None else len(descriptors)
        if count < self._features.min_descriptors:
            raise WeakReferenceError(name, count, self._features.min_descriptors)

        h, w = gray.shape[:2]
        corners = reference_corners(w, h)

        size = self._template.size
        template = cv2.resize(gray, (size, size), interpolation=cv2.INTER_AREA)
        if self._template.edge_mode:
            template = cv2.Canny(
                template, self._template.canny_low, self._template.canny_high, apertureSize=3
            )
        response = np.zeros(response_shape(self._processing, size), dtype=np.float32)

        # TM_CCOEFF_NORMED against a zero-variance template scores 1.0 everywhere.
        _, std = cv2.meanStdDev(template)
        if float(std[0][0]) < FLAT_TEMPLATE_STD:
            logging.warning(
                f"[REF] {name}: {size}px template is flat (std={float(std[0][0]):.2f}), "
                f"template gate disabled for this reference"
            )
            template = None
            response = None

        logging.debug(
            f"[REF] {name}: size={w}x{h} keypoints={len(keypoints)} "
            f"template={size}px edge={self._template.edge_mode}"
        )
        return Reference(
            name=name,
            keypoints=tuple(keypoints),
            descriptors=descriptors,
            corners=corners,
            template=template,
            response=response,
        )

    def load(self, images: Iterable[Tuple[str, np.ndarray]]) -> ReferenceSet:
        """
        Build a new reference set and make it active.

        Weak references are dropped with a warning; the batch continues.
        The previous set is released only after the new one is complete.
        """
        sources = [(name, image) for name, image in images]
        built: List[Reference] = []
        for name, image in sources:
            try:
                built.append(self.build_reference(name, image))
            except WeakReferenceError as e:
                logging.warning(f"[REF weak] {e}")

        new_set = ReferenceSet(built)
        old_set = self._active
        self._active = new_set
        self._sources = sources
        old_set.release()

        logging.info(f"Loaded {len(built)} of {len(sources)} reference images")
        return new_set

    def rebuild(self) -> ReferenceSet:
        """Rebuild the active set from the retained source images."""
        return self.load(self._sources)

    def unload(self) -> None:
        """Release the active set and forget the source images."""
        self._active.release()
        self._sources = []


def build_store(
    processing: ProcessingConfig,
    template: TemplateConfig,
    features: FeatureConfig,
    images: Sequence[Tuple[str, np.ndarray]] = (),
) -> ReferenceStore:
    """Factory: create a store and load an initial batch."""
    store = ReferenceStore(processing, template, features)
    if images:
        store.load(images)
    return store
