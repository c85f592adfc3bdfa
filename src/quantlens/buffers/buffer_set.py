from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Sequence

import numpy as np
from numpy.typing import NDArray

from quantlens.buffers.buffer import DoubleBuffer

logger = logging.getLogger(__name__)


class DoubleBufferSet:
    """Fixed arena of ``b`` buffers of capacity ``k``.

    Slots are created once and addressed by ``DoubleBuffer.index``; clearing
    the set resets them in place. The set also owns the even-weight toggle used
    by :meth:`collapse`, so successive collapses of one estimator alternate
    between the lower and upper middle position.
    """

    def __init__(self, b: int, k: int) -> None:
        if b < 1 or k < 1:
            logger.error("Invalid buffer set dimensions b=%d k=%d.", b, k)
            raise ValueError("buffer set needs b >= 1 and k >= 1.")
        self._k = k
        self._buffers = [DoubleBuffer(capacity=k, index=index) for index in range(b)]
        self._lower_middle = True

    @property
    def b(self) -> int:
        return len(self._buffers)

    @property
    def k(self) -> int:
        return self._k

    @property
    def buffers(self) -> tuple[DoubleBuffer, ...]:
        return tuple(self._buffers)

    @property
    def total_size(self) -> int:
        """Number of stream elements represented by all non-empty buffers."""
        return sum(buffer.size * buffer.weight for buffer in self.full_or_partial_buffers())

    def __len__(self) -> int:
        return len(self._buffers)

    def __iter__(self) -> Iterator[DoubleBuffer]:
        return iter(self._buffers)

    def __getitem__(self, index: int) -> DoubleBuffer:
        return self._buffers[index]

    def clear(self) -> None:
        for buffer in self._buffers:
            buffer.reset()
        self._lower_middle = True

    def first_empty_buffer(self) -> DoubleBuffer | None:
        """Return an empty buffer, preferring one that already owns storage."""
        candidate: DoubleBuffer | None = None
        for buffer in self._buffers:
            if not buffer.is_empty:
                continue
            if buffer.is_allocated:
                return buffer
            if candidate is None:
                candidate = buffer
        return candidate

    def number_of_empty_buffers(self) -> int:
        return sum(1 for buffer in self._buffers if buffer.is_empty)

    def partial_buffer(self) -> DoubleBuffer | None:
        for buffer in self._buffers:
            if buffer.is_partial:
                return buffer
        return None

    def full_or_partial_buffers(self) -> list[DoubleBuffer]:
        return [buffer for buffer in self._buffers if not buffer.is_empty]

    def full_or_partial_buffers_at_level(self, level: int) -> list[DoubleBuffer]:
        return [
            buffer
            for buffer in self._buffers
            if not buffer.is_empty and buffer.level == level
        ]

    def min_level_of_full_or_partial_buffers(self) -> int | None:
        levels = [buffer.level for buffer in self._buffers if not buffer.is_empty]
        return min(levels) if levels else None

    def contains(self, element: float) -> bool:
        return any(
            buffer.contains(element)
            for buffer in self._buffers
            if not buffer.is_empty
        )

    def memory(self) -> int:
        return sum(buffer.memory() for buffer in self._buffers)

    def phi(self, element: float) -> float:
        """Fraction of represented elements ``<= element`` (interpolated)."""
        total_size = self.total_size
        if total_size == 0:
            return math.nan
        below = 0.0
        for buffer in self.full_or_partial_buffers():
            below += buffer.weight * buffer.rank(element)
        return below / total_size

    def values_at_positions(
        self,
        buffers: Sequence[DoubleBuffer],
        positions: Sequence[int] | NDArray[np.int64],
    ) -> NDArray[np.float64]:
        """Return the values found at ``positions`` of the weighted merge.

        Conceptually each buffer contributes ``weight`` copies of each of its
        values; the result holds the order statistics of that union at the
        given (ascending) zero-based positions. Equal values are consumed in
        the order of ``buffers``, which decides whose weight a boundary value
        is attributed to.
        """
        targets = np.asarray(positions, dtype=np.int64)
        for buffer in buffers:
            buffer.sort()

        non_empty = [buffer for buffer in buffers if not buffer.is_empty]
        if not non_empty or targets.size == 0:
            return np.full(targets.size, math.nan, dtype=np.float64)

        merged = np.concatenate([buffer.values for buffer in non_empty])
        weights = np.concatenate(
            [
                np.full(buffer.size, buffer.weight, dtype=np.int64)
                for buffer in non_empty
            ]
        )
        order = np.argsort(merged, kind="stable")
        counters = np.cumsum(weights[order])

        hits = np.searchsorted(counters, targets, side="right")
        if hits.size and int(hits[-1]) >= counters.size:
            logger.debug(
                "Positions beyond total weight %d requested; clamping to maximum.",
                int(counters[-1]),
            )
            hits = np.minimum(hits, counters.size - 1)
        return merged[order[hits]]

    def collapse(self, buffers: Sequence[DoubleBuffer]) -> DoubleBuffer:
        """Merge same-level buffers into the first one and empty the rest."""
        if len(buffers) < 2:
            raise ValueError("collapse needs at least two buffers.")
        total_weight = sum(buffer.weight for buffer in buffers)
        positions = self._trigger_positions(total_weight)
        output_values = self.values_at_positions(buffers, positions)

        for buffer in buffers[1:]:
            buffer.clear()
        output_buffer = buffers[0]
        output_buffer.set_values(output_values)
        output_buffer.weight = total_weight
        logger.debug(
            "Collapsed %d buffers into #%d with weight %d.",
            len(buffers),
            output_buffer.index,
            total_weight,
        )
        return output_buffer

    def _trigger_positions(self, total_weight: int) -> NDArray[np.int64]:
        slots = np.arange(self._k, dtype=np.int64) * total_weight
        if total_weight % 2 != 0:
            return slots + (total_weight + 1) // 2
        # alternate between both middle positions on successive even collapses
        if self._lower_middle:
            offset = total_weight // 2
        else:
            offset = (total_weight + 2) // 2
        self._lower_middle = not self._lower_middle
        return slots + offset

    def __repr__(self) -> str:
        lines = [
            f"buffer#{buffer.index} = {buffer!r}"
            for buffer in self._buffers
            if not buffer.is_empty
        ]
        return "\n".join(lines)
