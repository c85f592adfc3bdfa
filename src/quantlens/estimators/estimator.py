from __future__ import annotations

import logging

import numpy as np
from numpy.typing import ArrayLike, NDArray

from quantlens.buffers import DoubleBuffer, DoubleBufferSet
from quantlens.contracts import CollapseStrategy, QuantileFinder
from quantlens.descriptive import check_phis, epsilon_ceiling

logger = logging.getLogger(__name__)


class DoubleQuantileEstimator(QuantileFinder):
    """Approximate quantile finder over ``b`` buffers of ``k`` sampled values.

    Values are appended to the current buffer until it fills up. When a new
    buffer is needed and none is empty, the strategy picks a group of buffers
    that is collapsed into one, one level higher in the merge tree.
    """

    def __init__(self, b: int, k: int, strategy: CollapseStrategy) -> None:
        if not (b >= 2 and k >= 1):
            logger.error("Invalid estimator layout b=%d k=%d.", b, k)
            raise ValueError("estimator needs b >= 2 and k >= 1.")
        self._buffer_set = DoubleBufferSet(b, k)
        self._strategy = strategy
        self._current: DoubleBuffer | None = None
        self._size = 0

    @property
    def buffer_set(self) -> DoubleBufferSet:
        return self._buffer_set

    @property
    def strategy(self) -> CollapseStrategy:
        return self._strategy

    @property
    def b(self) -> int:
        return self._buffer_set.b

    @property
    def k(self) -> int:
        return self._buffer_set.k

    @property
    def size(self) -> int:
        return self._size

    def add(self, value: float) -> None:
        self._size += 1
        if not self._strategy.sample_next_element():
            return
        buffer = self._buffer_to_fill()
        buffer.add(value)
        if buffer.is_full:
            self._current = None

    def add_range(
        self, values: ArrayLike, from_index: int = 0, to_index: int | None = None
    ) -> None:
        array = np.asarray(values, dtype=np.float64).reshape(-1)
        stop = array.size - 1 if to_index is None else to_index
        if from_index < 0 or stop >= array.size or from_index > stop + 1:
            raise ValueError(
                f"invalid range [{from_index}, {stop}] for {array.size} values."
            )

        position = from_index
        end = stop + 1
        while position < end:
            if self._current is None:
                # the first accepted value may trigger a collapse that changes sampling
                self.add(float(array[position]))
                position += 1
                continue

            room = self._current.capacity - self._current.size
            chunk = array[position : min(end, position + room)]
            mask = self._strategy.sample_mask(chunk.size)
            self._size += int(chunk.size)
            position += int(chunk.size)

            accepted = chunk[mask]
            if accepted.size:
                self._current.add_all(accepted)
                if self._current.is_full:
                    self._current = None

    def clear(self) -> None:
        self._size = 0
        self._current = None
        self._buffer_set.clear()
        self._strategy.reset()

    def contains(self, element: float) -> bool:
        return self._buffer_set.contains(element)

    def phi(self, element: float) -> float:
        return self._buffer_set.phi(element)

    def quantile_elements(self, phis: ArrayLike) -> NDArray[np.float64]:
        requested = np.asarray(phis, dtype=np.float64).reshape(-1)
        check_phis(requested)
        with self._strategy.query_phis(
            self._buffer_set, requested, self._size
        ) as effective:
            total_size = self._buffer_set.total_size
            positions = np.array(
                [epsilon_ceiling(float(phi) * total_size) - 1 for phi in effective],
                dtype=np.int64,
            )
            return self._buffer_set.values_at_positions(
                self._buffer_set.full_or_partial_buffers(), positions
            )

    def memory(self) -> int:
        return self._buffer_set.memory()

    def total_memory(self) -> int:
        return self._buffer_set.b * self._buffer_set.k

    def _buffer_to_fill(self) -> DoubleBuffer:
        if self._current is not None:
            return self._current
        if self._buffer_set.first_empty_buffer() is None:
            self._collapse()
        buffer = self._buffer_set.first_empty_buffer()
        if buffer is None:
            raise RuntimeError("no empty buffer available after collapse.")
        self._strategy.initialize_buffer(buffer, self._buffer_set)
        buffer.allocate()
        logger.debug(
            "Filling buffer #%d at level %d with weight %d.",
            buffer.index,
            buffer.level,
            buffer.weight,
        )
        self._current = buffer
        return buffer

    def _collapse(self) -> None:
        to_collapse = self._strategy.buffers_to_collapse(self._buffer_set)
        min_level = to_collapse[0].level
        output_buffer = self._buffer_set.collapse(to_collapse)
        output_buffer.level = min_level + 1
        self._strategy.post_collapse(to_collapse, self._buffer_set)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(mem={self.memory()}, b={self.b}, k={self.k}, "
            f"size={self._size}, total_size={self._buffer_set.total_size})"
        )
