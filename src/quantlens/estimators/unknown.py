from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator, Sequence

import numpy as np
from numpy.typing import NDArray

from quantlens.buffers import DoubleBuffer, DoubleBufferSet
from quantlens.contracts import CollapseStrategy
from quantlens.descriptive import epsilon_ceiling
from quantlens.estimators.estimator import DoubleQuantileEstimator
from quantlens.sampling import WeightedRandomSampler

logger = logging.getLogger(__name__)


class UnknownNStrategy(CollapseStrategy):
    """Collapse policy for a stream of unknown length.

    Each full collapse of all ``b`` buffers grows the merge tree by one level.
    From height ``h`` on, every further growth doubles the sampling weight, so
    memory stays bounded however long the stream gets.
    """

    def __init__(
        self,
        h: int,
        rng: np.random.Generator,
        precompute_epsilon: float = 0.0,
    ) -> None:
        self._tree_height_starting_sampling = h
        self._precompute_epsilon = precompute_epsilon
        self._sampler = WeightedRandomSampler(1, rng)
        self._current_tree_height = 1

    @property
    def current_tree_height(self) -> int:
        return self._current_tree_height

    @property
    def tree_height_starting_sampling(self) -> int:
        return self._tree_height_starting_sampling

    @property
    def precompute_epsilon(self) -> float:
        return self._precompute_epsilon

    @property
    def weight(self) -> int:
        return self._sampler.weight

    def reset(self) -> None:
        self._current_tree_height = 1
        self._sampler.weight = 1

    def sample_next_element(self) -> bool:
        return self._sampler.sample_next_element()

    def sample_mask(self, count: int) -> NDArray[np.bool_]:
        return self._sampler.sample_mask(count)

    def initialize_buffer(
        self, buffer: DoubleBuffer, buffer_set: DoubleBufferSet
    ) -> None:
        buffer.level = self._current_tree_height - 1
        buffer.weight = self._sampler.weight

    def buffers_to_collapse(self, buffer_set: DoubleBufferSet) -> list[DoubleBuffer]:
        buffers = sorted(
            buffer_set.full_or_partial_buffers(), key=lambda buffer: buffer.level
        )
        if len(buffers) < 2:
            return buffers
        min_level = buffers[1].level
        if buffers[0].level < min_level:
            buffers[0].level = min_level
        return buffer_set.full_or_partial_buffers_at_level(min_level)

    def post_collapse(
        self, collapsed: Sequence[DoubleBuffer], buffer_set: DoubleBufferSet
    ) -> None:
        if len(collapsed) != buffer_set.b:
            return
        self._current_tree_height += 1
        if self._current_tree_height >= self._tree_height_starting_sampling:
            self._sampler.weight = self._sampler.weight * 2
            logger.debug(
                "Tree height %d reached; sampling weight now %d.",
                self._current_tree_height,
                self._sampler.weight,
            )

    @contextlib.contextmanager
    def query_phis(
        self,
        buffer_set: DoubleBufferSet,
        phis: NDArray[np.float64],
        size: int,
    ) -> Iterator[NDArray[np.float64]]:
        if self._precompute_epsilon <= 0.0:
            yield phis
            return
        # snap every phi to the closest point of the precomputed grid
        e = self._precompute_epsilon
        grid_points = epsilon_ceiling(1.0 / e)
        indices = np.round(((2.0 * phis / e) - 1.0) / 2.0)
        indices = np.clip(indices, 0, grid_points - 1)
        yield (e / 2.0) * (1.0 + 2.0 * indices)

    def __repr__(self) -> str:
        return (
            f"UnknownNStrategy(h={self._current_tree_height}, "
            f"h_start_sampling={self._tree_height_starting_sampling}, "
            f"precompute_epsilon={self._precompute_epsilon})"
        )


class UnknownDoubleQuantileEstimator(DoubleQuantileEstimator):
    """Estimator that needs no advance knowledge of the stream length."""

    def __init__(
        self,
        b: int,
        k: int,
        h: int,
        rng: np.random.Generator,
        precompute_epsilon: float = 0.0,
    ) -> None:
        super().__init__(b, k, UnknownNStrategy(h, rng, precompute_epsilon))

    def __repr__(self) -> str:
        return (
            f"UnknownDoubleQuantileEstimator(mem={self.memory()}, b={self.b}, "
            f"k={self.k}, size={self.size}, "
            f"total_size={self.buffer_set.total_size}, {self.strategy!r})"
        )
