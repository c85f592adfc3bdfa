from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

_UNDEFINED = -1


class WeightedRandomSampler:
    """Accept exactly one random element out of each block of ``weight``.

    Every arrival is retained with probability ``1 / weight``; the retained
    position inside a block is drawn uniformly from the injected generator.
    """

    def __init__(self, weight: int, rng: np.random.Generator) -> None:
        self._rng = rng
        self._weight = 1
        self._skip = 0
        self._next_trigger_pos = _UNDEFINED
        self._next_skip = 0
        self.weight = weight

    @property
    def weight(self) -> int:
        return self._weight

    @weight.setter
    def weight(self, value: int) -> None:
        if value < 1:
            raise ValueError("weight must be >= 1.")
        self._weight = value
        self._skip = 0
        self._next_trigger_pos = _UNDEFINED
        self._next_skip = 0

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    def sample_next_element(self) -> bool:
        if self._skip > 0:
            self._skip -= 1
            return False

        if self._next_trigger_pos == _UNDEFINED:
            if self._weight == 1:
                self._next_trigger_pos = 0
            else:
                self._next_trigger_pos = int(self._rng.integers(0, self._weight))
            self._next_skip = self._weight - 1 - self._next_trigger_pos

        if self._next_trigger_pos > 0:
            self._next_trigger_pos -= 1
            return False

        self._next_trigger_pos = _UNDEFINED
        self._skip = self._next_skip
        return True

    def sample_mask(self, count: int) -> NDArray[np.bool_]:
        if self._weight == 1:
            return np.ones(count, dtype=np.bool_)
        mask = np.zeros(count, dtype=np.bool_)
        for index in range(count):
            mask[index] = self.sample_next_element()
        return mask
