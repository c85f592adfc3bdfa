from __future__ import annotations

import contextlib
import logging
import math
import sys
from collections.abc import Iterator, Sequence

import numpy as np
from numpy.typing import NDArray

from quantlens.buffers import DoubleBuffer, DoubleBufferSet
from quantlens.contracts import CollapseStrategy
from quantlens.estimators.estimator import DoubleQuantileEstimator
from quantlens.sampling import SelectionSampler

logger = logging.getLogger(__name__)

_MAX_DOUBLE = sys.float_info.max


class KnownNStrategy(CollapseStrategy):
    """Collapse policy for a stream whose total length ``n`` is known.

    With a sampling rate above one, exactly ``floor(n / rate)`` of every ``n``
    arrivals are retained. Queries on a partially filled buffer temporarily
    pad it with alternating ``+max``/``-max`` values and correct the phis for
    the padding.
    """

    def __init__(self, n: int, sampling_rate: float, rng: np.random.Generator) -> None:
        self._n = n
        self._sampling_rate = sampling_rate
        self._rng = rng
        self._sampler: SelectionSampler | None = None
        self._had_more_than_one_empty_buffer = False
        self.reset()

    @property
    def n(self) -> int:
        return self._n

    @property
    def sampling_rate(self) -> float:
        return self._sampling_rate

    def reset(self) -> None:
        self._had_more_than_one_empty_buffer = False
        if self._sampling_rate <= 1.0:
            self._sampler = None
        else:
            self._sampler = self._new_sampler()

    def sample_next_element(self) -> bool:
        if self._sampler is None:
            return True
        if self._sampler.exhausted:
            logger.warning(
                "More than n=%d values added; restarting the sampler.", self._n
            )
            self._sampler = self._new_sampler()
        return self._sampler.sample_next_element()

    def sample_mask(self, count: int) -> NDArray[np.bool_]:
        if self._sampler is None:
            return np.ones(count, dtype=np.bool_)
        return super().sample_mask(count)

    def initialize_buffer(
        self, buffer: DoubleBuffer, buffer_set: DoubleBufferSet
    ) -> None:
        empty_buffers = buffer_set.number_of_empty_buffers()
        min_level = buffer_set.min_level_of_full_or_partial_buffers()
        if empty_buffers == 1 and not self._had_more_than_one_empty_buffer:
            buffer.level = min_level if min_level is not None else 0
        else:
            self._had_more_than_one_empty_buffer = True
            buffer.level = 0
        buffer.weight = 1

    def post_collapse(
        self, collapsed: Sequence[DoubleBuffer], buffer_set: DoubleBufferSet
    ) -> None:
        self._had_more_than_one_empty_buffer = False

    @contextlib.contextmanager
    def query_phis(
        self,
        buffer_set: DoubleBufferSet,
        phis: NDArray[np.float64],
        size: int,
    ) -> Iterator[NDArray[np.float64]]:
        partial = buffer_set.partial_buffer()
        if partial is None or size == 0:
            yield phis
            return

        missing = buffer_set.k - partial.size
        plus_count = (missing + 1) // 2
        minus_count = missing // 2
        padding = np.empty(missing, dtype=np.float64)
        padding[0::2] = _MAX_DOUBLE
        padding[1::2] = -_MAX_DOUBLE
        partial.add_all(padding)
        try:
            beta = (size + missing) / size
            adjusted = (2.0 * phis + beta - 1.0) / (2.0 * beta)
            # keep the boundary phis off the padding at either end
            total_size = buffer_set.total_size
            lowest = (minus_count + 1) / total_size
            highest = (total_size - plus_count) / total_size
            yield np.clip(adjusted, lowest, highest)
        finally:
            partial.sort()
            partial.trim(minus_count, plus_count)

    def _new_sampler(self) -> SelectionSampler:
        return SelectionSampler(
            math.floor(self._n / self._sampling_rate), self._n, self._rng
        )

    def __repr__(self) -> str:
        return f"KnownNStrategy(n={self._n}, sampling_rate={self._sampling_rate})"


class KnownDoubleQuantileEstimator(DoubleQuantileEstimator):
    """Estimator with approximation guarantees once ``n`` values were added.

    Adding more than ``n`` values is tolerated but voids the guarantees.
    """

    def __init__(
        self,
        b: int,
        k: int,
        n: int,
        sampling_rate: float,
        rng: np.random.Generator,
    ) -> None:
        super().__init__(b, k, KnownNStrategy(n, sampling_rate, rng))
