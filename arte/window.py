from __future__ import annotations

import numpy as np


class AccuracyWindow:
    """Accuracy over the last `size` predictions.

    A circular buffer of 0/1 correctness flags. The running sum always equals the
    sum of the valid slots, so the accuracy is available in constant time.

    Parameters
    ----------
    size
        Capacity of the window.

    """

    def __init__(self, size: int):
        if size < 1:
            raise ValueError(f"window size must be at least 1, got {size}")
        self.size = size
        self.reset()

    def reset(self):
        self._buffer = np.zeros(self.size, dtype=np.int8)
        self._sum = 0
        self._cursor = 0
        self.n = 0

    def update(self, correct: bool):
        value = 1 if correct else 0
        self._sum += value - int(self._buffer[self._cursor])
        self._buffer[self._cursor] = value
        self._cursor = (self._cursor + 1) % self.size
        if self.n < self.size:
            self.n += 1

    @property
    def accuracy(self) -> float | None:
        """Rolling accuracy, or `None` while the window is empty."""
        if self.n == 0:
            return None
        return self._sum / self.n

    def values(self) -> np.ndarray:
        """The valid slots, oldest first."""
        if self.n < self.size:
            return self._buffer[: self.n].copy()
        return np.roll(self._buffer, -self._cursor)

    def __len__(self):
        return self.n

    def __repr__(self):
        acc = "n/a" if self.accuracy is None else f"{self.accuracy:.4f}"
        return f"AccuracyWindow(size={self.size}, n={self.n}, accuracy={acc})"
