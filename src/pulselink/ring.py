"""Fixed-capacity ring buffer backed by a preallocated numpy arena."""
from __future__ import annotations

import numpy as np


class RingBuffer:
    """
    Overwrite-oldest ring with an explicit write cursor and a saturating count.
    The arena is allocated once; pushing never grows memory.
    """

    def __init__(self, capacity: int, dtype: type = float):
        if capacity < 1:
            raise ValueError("RingBuffer capacity must be at least 1")
        self.capacity = capacity
        self._arena = np.zeros(capacity, dtype=dtype)
        self._cursor = 0
        self._count = 0

    def push(self, value: float) -> None:
        self._arena[self._cursor] = value
        self._cursor = (self._cursor + 1) % self.capacity
        if self._count < self.capacity:
            self._count += 1

    def clear(self) -> None:
        self._cursor = 0
        self._count = 0

    def values(self) -> np.ndarray:
        """Copy of the live contents, oldest first."""
        if self._count < self.capacity:
            return self._arena[: self._count].copy()
        return np.roll(self._arena, -self._cursor)

    def mean(self) -> float:
        if self._count == 0:
            raise ValueError("mean of an empty ring")
        return float(self._arena[: self._count].mean())

    def std(self) -> float:
        """Population standard deviation of the live contents."""
        if self._count == 0:
            raise ValueError("std of an empty ring")
        return float(self._arena[: self._count].std())

    @property
    def full(self) -> bool:
        return self._count == self.capacity

    def __len__(self) -> int:
        return self._count

    def __bool__(self) -> bool:
        return self._count > 0
