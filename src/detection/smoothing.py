"""
Decision smoother: debounces per-frame hits over a short window.
"""

from __future__ import annotations

from collections import deque
from typing import List


class DecisionSmoother:
    """
    Fixed-capacity FIFO of recent hits; the debounced signal is true while
    any entry in the window is true.

    A window of 1 is a pass-through.
    """

    def __init__(self, window: int = 5):
        if window < 1:
            raise ValueError(f"Smoothing window must be >= 1, got {window}")
        self._hits: deque = deque(maxlen=window)

    @property
    def window(self) -> int:
        return self._hits.maxlen

    @property
    def history(self) -> List[bool]:
        return list(self._hits)

    def push(self, hit: bool) -> bool:
        self._hits.append(bool(hit))
        return any(self._hits)

    def reset(self) -> None:
        self._hits.clear()
