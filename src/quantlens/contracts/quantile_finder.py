from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import ArrayLike, NDArray


class QuantileFinder(ABC):
    """Consume a numeric stream and answer quantile queries over it."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of values added so far (sampled or not)."""
        raise NotImplementedError

    @abstractmethod
    def add(self, value: float) -> None:
        """Consume a single value."""
        raise NotImplementedError

    @abstractmethod
    def add_range(
        self, values: ArrayLike, from_index: int = 0, to_index: int | None = None
    ) -> None:
        """Consume ``values[from_index..to_index]`` (both ends inclusive).

        Equivalent to calling :meth:`add` for each value in order.
        """
        raise NotImplementedError

    def add_all(self, values: ArrayLike) -> None:
        """Consume every value of a sequence."""
        self.add_range(values)

    @abstractmethod
    def clear(self) -> None:
        """Reset to the empty state."""
        raise NotImplementedError

    @abstractmethod
    def contains(self, element: float) -> bool:
        """Return whether the element is currently retained."""
        raise NotImplementedError

    @abstractmethod
    def phi(self, element: float) -> float:
        """Return the fraction of values ``<= element``, in ``[0, 1]``."""
        raise NotImplementedError

    @abstractmethod
    def quantile_elements(self, phis: ArrayLike) -> NDArray[np.float64]:
        """Return the elements at the given ascending quantile fractions.

        Each phi must lie in ``[0, 1]``. An empty finder yields NaN for every
        requested phi.
        """
        raise NotImplementedError

    @abstractmethod
    def memory(self) -> int:
        """Number of doubles currently held in memory."""
        raise NotImplementedError

    @abstractmethod
    def total_memory(self) -> int:
        """Upper bound on :meth:`memory` over the finder's lifetime."""
        raise NotImplementedError
