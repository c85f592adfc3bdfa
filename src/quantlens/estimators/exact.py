from __future__ import annotations

import math

import numpy as np
from numpy.typing import ArrayLike, NDArray

from quantlens.contracts import QuantileFinder
from quantlens.descriptive import check_phis, quantile, rank_interpolated


class ExactDoubleQuantileFinder(QuantileFinder):
    """Keep every value and answer queries exactly.

    Used when the requested error bound leaves no room for approximation or
    the stream is too small for approximation to pay off.
    """

    def __init__(self) -> None:
        self._chunks: list[NDArray[np.float64]] = []
        self._pending: list[float] = []
        self._sorted: NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self._size = 0

    @property
    def size(self) -> int:
        return self._size

    def add(self, value: float) -> None:
        self._pending.append(float(value))
        self._size += 1

    def add_range(
        self, values: ArrayLike, from_index: int = 0, to_index: int | None = None
    ) -> None:
        array = np.asarray(values, dtype=np.float64).reshape(-1)
        stop = array.size - 1 if to_index is None else to_index
        if from_index < 0 or stop >= array.size or from_index > stop + 1:
            raise ValueError(
                f"invalid range [{from_index}, {stop}] for {array.size} values."
            )
        chunk = array[from_index : stop + 1].copy()
        if chunk.size:
            self._chunks.append(chunk)
            self._size += int(chunk.size)

    def clear(self) -> None:
        self._chunks = []
        self._pending = []
        self._sorted = np.empty(0, dtype=np.float64)
        self._size = 0

    def contains(self, element: float) -> bool:
        values = self._sorted_values()
        index = int(np.searchsorted(values, element, side="left"))
        return index < values.size and bool(values[index] == element)

    def phi(self, element: float) -> float:
        if self._size == 0:
            return math.nan
        return rank_interpolated(self._sorted_values(), element) / self._size

    def quantile_elements(self, phis: ArrayLike) -> NDArray[np.float64]:
        requested = np.asarray(phis, dtype=np.float64).reshape(-1)
        check_phis(requested)
        values = self._sorted_values()
        return np.array(
            [quantile(values, float(phi)) for phi in requested], dtype=np.float64
        )

    def memory(self) -> int:
        return self._size

    def total_memory(self) -> int:
        return self._size

    def _sorted_values(self) -> NDArray[np.float64]:
        # merge pending values into the sorted array on demand
        if self._pending:
            self._chunks.append(np.array(self._pending, dtype=np.float64))
            self._pending = []
        if self._chunks:
            merged = np.concatenate([self._sorted, *self._chunks])
            merged.sort()
            self._sorted = merged
            self._chunks = []
        return self._sorted

    def __repr__(self) -> str:
        return f"ExactDoubleQuantileFinder(size={self._size})"
