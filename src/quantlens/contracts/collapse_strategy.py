from __future__ import annotations

import contextlib
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from quantlens.buffers import DoubleBuffer, DoubleBufferSet


class CollapseStrategy(ABC):
    """Policy deciding how an estimator samples, levels and merges buffers."""

    @abstractmethod
    def reset(self) -> None:
        """Return to the state of a freshly constructed strategy."""
        raise NotImplementedError

    @abstractmethod
    def sample_next_element(self) -> bool:
        """Return whether the next arriving value should be retained."""
        raise NotImplementedError

    def sample_mask(self, count: int) -> NDArray[np.bool_]:
        """Sampling decisions for the next ``count`` arrivals."""
        return np.fromiter(
            (self.sample_next_element() for _ in range(count)),
            dtype=np.bool_,
            count=count,
        )

    @abstractmethod
    def initialize_buffer(
        self, buffer: DoubleBuffer, buffer_set: DoubleBufferSet
    ) -> None:
        """Assign level and weight to a buffer about to be filled."""
        raise NotImplementedError

    def buffers_to_collapse(self, buffer_set: DoubleBufferSet) -> list[DoubleBuffer]:
        """Select the group of buffers merged by the next collapse."""
        min_level = buffer_set.min_level_of_full_or_partial_buffers()
        if min_level is None:
            return []
        return buffer_set.full_or_partial_buffers_at_level(min_level)

    @abstractmethod
    def post_collapse(
        self, collapsed: Sequence[DoubleBuffer], buffer_set: DoubleBufferSet
    ) -> None:
        """Update strategy state after ``collapsed`` were merged."""
        raise NotImplementedError

    @contextlib.contextmanager
    def query_phis(
        self,
        buffer_set: DoubleBufferSet,
        phis: NDArray[np.float64],
        size: int,
    ) -> Iterator[NDArray[np.float64]]:
        """Prepare the buffer set for a query and yield the phis to look up.

        Any temporary change made to the buffers is undone on exit.
        """
        yield phis
