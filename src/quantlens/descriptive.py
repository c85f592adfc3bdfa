from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

_CEILING_EPSILON = 0.0000001


def epsilon_ceiling(value: float) -> int:
    """Return ``ceil(value)``, tolerating tiny upward rounding errors."""
    return int(math.ceil(value - _CEILING_EPSILON))


def rank_interpolated(sorted_values: NDArray[np.float64], element: float) -> float:
    """Return the linearly interpolated number of elements ``<= element``.

    Ranks are of the form ``0, 1, ..., len(sorted_values)``. If the element is
    contained, the result counts every occurrence of it. If it lies between two
    contained values, the rank is interpolated between their positions.
    """
    size = int(sorted_values.size)
    right = int(np.searchsorted(sorted_values, element, side="right"))
    left = int(np.searchsorted(sorted_values, element, side="left"))
    if right > left:
        return float(right)

    insertion_point = left
    if insertion_point == 0 or insertion_point == size:
        return float(insertion_point)

    lower = float(sorted_values[insertion_point - 1])
    upper = float(sorted_values[insertion_point])
    return insertion_point + (element - lower) / (upper - lower)


def quantile(sorted_values: NDArray[np.float64], phi: float) -> float:
    """Linearly interpolated quantile of already sorted data."""
    size = int(sorted_values.size)
    if size == 0:
        return math.nan
    index = phi * (size - 1)
    lhs = int(index)
    delta = index - lhs
    if lhs >= size - 1:
        return float(sorted_values[size - 1])
    return float((1.0 - delta) * sorted_values[lhs] + delta * sorted_values[lhs + 1])


def check_phis(phis: NDArray[np.float64]) -> None:
    """Reject phi lists that are not ascending or fall outside ``[0, 1]``."""
    if phis.size == 0:
        return
    if not np.all(np.isfinite(phis)) or phis.min() < 0.0 or phis.max() > 1.0:
        raise ValueError("phis must lie within [0, 1].")
    if np.any(np.diff(phis) < 0.0):
        raise ValueError("phis must be sorted ascending.")
