from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import ArrayLike, NDArray

from quantlens.descriptive import rank_interpolated


class BufferFullError(RuntimeError):
    """Raised when values are added to a buffer that has no room left."""


def _empty_values() -> NDArray[np.float64]:
    return np.empty(0, dtype=np.float64)


@dataclass(eq=False)
class DoubleBuffer:
    """Fixed-capacity slot of sampled values plus its weight and tree level.

    Storage is allocated lazily on the first add, so buffers that are never
    used cost no memory. The slot keeps its storage across ``clear()`` calls.
    """

    capacity: int
    index: int = 0
    weight: int = 1
    level: int = 0
    _data: NDArray[np.float64] = field(
        default_factory=_empty_values, init=False, repr=False
    )
    _size: int = field(default=0, init=False)
    _is_sorted: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be positive.")

    @property
    def size(self) -> int:
        return self._size

    @property
    def is_allocated(self) -> bool:
        return self._data.size > 0

    @property
    def is_empty(self) -> bool:
        return self._size == 0

    @property
    def is_full(self) -> bool:
        return self._size == self.capacity

    @property
    def is_partial(self) -> bool:
        return not (self.is_empty or self.is_full)

    @property
    def is_sorted(self) -> bool:
        return self._is_sorted

    @property
    def values(self) -> NDArray[np.float64]:
        """View of the filled part of the buffer (not a copy)."""
        return self._data[: self._size]

    def allocate(self) -> None:
        if not self.is_allocated:
            self._data = np.empty(self.capacity, dtype=np.float64)

    def add(self, value: float) -> None:
        if self._size >= self.capacity:
            raise BufferFullError(f"buffer #{self.index} is full (k={self.capacity}).")
        self.allocate()
        self._data[self._size] = value
        self._size += 1
        self._is_sorted = False

    def add_all(self, values: ArrayLike) -> None:
        """Append a batch of values in one slice copy."""
        batch = np.asarray(values, dtype=np.float64).reshape(-1)
        if batch.size == 0:
            return
        end = self._size + int(batch.size)
        if end > self.capacity:
            raise BufferFullError(
                f"buffer #{self.index} cannot take {batch.size} more values "
                f"(size={self._size}, k={self.capacity})."
            )
        self.allocate()
        self._data[self._size : end] = batch
        self._size = end
        self._is_sorted = False

    def set_values(self, values: NDArray[np.float64]) -> None:
        """Replace the contents; used by collapse to store merged output."""
        self._size = 0
        self.add_all(values)

    def trim(self, front: int, back: int) -> None:
        """Drop ``front`` values from the start and ``back`` from the end."""
        if front < 0 or back < 0 or front + back > self._size:
            raise ValueError("cannot trim more values than the buffer holds.")
        kept = self._size - front - back
        if front:
            self._data[:kept] = self._data[front : front + kept]
        self._size = kept

    def clear(self) -> None:
        self._size = 0
        self._is_sorted = False

    def reset(self) -> None:
        """Return the slot to its freshly constructed state, releasing storage."""
        self._data = _empty_values()
        self._size = 0
        self._is_sorted = False
        self.weight = 1
        self.level = 0

    def sort(self) -> None:
        if not self._is_sorted:
            self.values.sort()
            self._is_sorted = True

    def contains(self, element: float) -> bool:
        self.sort()
        values = self.values
        index = int(np.searchsorted(values, element, side="left"))
        return index < self._size and bool(values[index] == element)

    def rank(self, element: float) -> float:
        """Interpolated number of contained elements ``<= element``."""
        self.sort()
        return rank_interpolated(self.values, element)

    def memory(self) -> int:
        """Number of doubles currently allocated by this slot."""
        return int(self._data.size)

    def __repr__(self) -> str:
        return (
            f"DoubleBuffer(k={self.capacity}, w={self.weight}, "
            f"l={self.level}, size={self._size})"
        )
