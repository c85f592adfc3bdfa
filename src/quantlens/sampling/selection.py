from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


class SelectionSampler:
    """Select exactly ``n`` of the next ``population`` arrivals, uniformly.

    Sequential selection sampling: the ``t``-th arrival is accepted with
    probability ``(n - accepted) / (population - t)``. The sample is stable
    (arrival order is preserved) and needs constant memory. Uniform variates
    are drawn from the injected generator in blocks.
    """

    _BLOCK_SIZE = 256

    def __init__(self, n: int, population: int, rng: np.random.Generator) -> None:
        if n < 0:
            raise ValueError("n must be >= 0.")
        if n > population:
            raise ValueError("n must be <= population.")
        self._n = n
        self._population = population
        self._rng = rng
        self._to_select = n
        self._remaining = population
        self._uniforms: NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self._cursor = 0

    @property
    def n(self) -> int:
        return self._n

    @property
    def population(self) -> int:
        return self._population

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    @property
    def remaining(self) -> int:
        """Arrivals left before the sample is complete."""
        return self._remaining

    @property
    def exhausted(self) -> bool:
        return self._remaining == 0

    def sample_next_element(self) -> bool:
        if self._remaining == 0:
            return False
        if self._to_select == 0:
            self._remaining -= 1
            return False
        accept = self._remaining * self._next_uniform() < self._to_select
        self._remaining -= 1
        if accept:
            self._to_select -= 1
        return accept

    def sample_mask(self, count: int) -> NDArray[np.bool_]:
        mask = np.zeros(count, dtype=np.bool_)
        for index in range(count):
            mask[index] = self.sample_next_element()
        return mask

    def _next_uniform(self) -> float:
        if self._cursor >= self._uniforms.size:
            self._uniforms = self._rng.random(self._BLOCK_SIZE)
            self._cursor = 0
        value = float(self._uniforms[self._cursor])
        self._cursor += 1
        return value
