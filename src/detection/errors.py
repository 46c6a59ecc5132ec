"""
Exceptions raised by the wafer detection core.

Reference-quality problems are recoverable per reference, capture problems are
fatal to a session start, and lifecycle misuse is a programming error.
"""

from __future__ import annotations


class WaferDetectionError(Exception):
    """Base class for all detection errors."""


class WeakReferenceError(WaferDetectionError, ValueError):
    """A reference image produced too few descriptors to be matched reliably."""

    def __init__(self, name: str, descriptor_count: int, minimum: int):
        super().__init__(
            f"Reference '{name}' has {descriptor_count} descriptors (minimum {minimum})"
        )
        self.name = name
        self.descriptor_count = descriptor_count
        self.minimum = minimum


class NoUsableReferencesError(WaferDetectionError):
    """A session was started without any usable reference."""


class CaptureUnavailableError(WaferDetectionError, RuntimeError):
    """The video source could not be opened."""


class InvalidSessionStateError(WaferDetectionError, RuntimeError):
    """An operation was attempted in a lifecycle state that does not allow it."""
