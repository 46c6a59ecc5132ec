"""
Reference image ingestion from disk.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, List, Tuple

import cv2
import numpy as np


def load_reference_images(paths: Iterable[str]) -> List[Tuple[str, np.ndarray]]:
    """
    Read reference images from disk.

    Missing or unreadable files are logged and skipped so one bad path does
    not prevent the remaining references from loading.

    Returns:
        List of (file name, BGR image) pairs in input order.
    """
    images: List[Tuple[str, np.ndarray]] = []
    for path in paths:
        if not os.path.exists(path):
            logging.warning(f"Reference image not found: {path}")
            continue
        image = cv2.imread(path, cv2.IMREAD_COLOR)
        if image is None:
            logging.warning(f"Could not decode reference image: {path}")
            continue
        images.append((os.path.basename(path), image))
    return images
