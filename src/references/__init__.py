"""
Reference store for the wafer detector.

References are built once per image at load time and handed to both cascade
stages; see store.py for the ownership rules.
"""

from .store import Reference, ReferenceSet, ReferenceStore, build_store, reference_corners, response_shape
from .loader import load_reference_images

__all__ = [
    "Reference",
    "ReferenceSet",
    "ReferenceStore",
    "build_store",
    "reference_corners",
    "response_shape",
    "load_reference_images",
]
