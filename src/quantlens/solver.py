"""Compute the minimum-memory buffer layout for a requested error bound.

Both searches evaluate the tree-collapse error bound over a grid of buffer
counts ``b`` and tree heights ``h``. ``C(n, k)`` below is :func:`binomial`.
"""

from __future__ import annotations

import logging
import math

from quantlens.descriptive import epsilon_ceiling
from quantlens.models import KnownNParameters, UnknownNParameters

logger = logging.getLogger(__name__)

_MAX_BUFFERS = 50
_MAX_HEIGHT = 50
_MAX_ITERATIONS = 2

__all__ = [
    "binomial",
    "epsilon_ceiling",
    "known_n_compute_b_and_k",
    "unknown_n_compute_b_and_k",
]


def binomial(n: int, k: int) -> float:
    """Binomial coefficient ``C(n, k)`` as a float."""
    if k == 0 or k == n:
        return 1.0
    if k > n / 2.0:
        k = n - k
    result = 1.0
    numerator = n - k + 1
    for denominator in range(k, 0, -1):
        result *= numerator / denominator
        numerator += 1
    return result


def _collapse_error(b: int, h: int) -> float:
    return (
        (h - 2) * round(binomial(b + h - 2, h - 1))
        - round(binomial(b + h - 3, h - 3))
        + round(binomial(b + h - 3, h - 2))
    )


def known_n_compute_b_and_k(
    n: int, epsilon: float, delta: float, quantiles: int
) -> KnownNParameters:
    """Layout for a stream of exactly ``n`` values.

    ``b == 1`` in the result means no approximate layout beats keeping all
    ``n`` values.
    """
    if epsilon <= 0.0:
        return KnownNParameters(b=1, k=n, sampling_rate=1.0)
    if epsilon >= 1.0 or delta >= 1.0:
        return KnownNParameters(b=2, k=1, sampling_rate=1.0)
    if delta > 0.0:
        parameters = _known_n_slow(n, epsilon, delta, quantiles)
    else:
        parameters = _known_n_quick(n, epsilon)
    logger.debug(
        "Known-N layout for n=%d epsilon=%s delta=%s: b=%d k=%d rate=%s",
        n,
        epsilon,
        delta,
        parameters.b,
        parameters.k,
        parameters.sampling_rate,
    )
    return parameters


def _known_n_quick(n: int, epsilon: float) -> KnownNParameters:
    bound = 2.0 * epsilon * n
    best_b = -1
    best_k = 0
    best_memory: int | None = None

    for b in range(2, _MAX_BUFFERS + 1):
        # heights where the error first drops to the bound, then the last one below it
        h = 3
        while h <= _MAX_HEIGHT and _collapse_error(b, h) - bound > 0.0:
            h += 1
        while h <= _MAX_HEIGHT and _collapse_error(b, h) - bound <= 0.0:
            h += 1
        h -= 1
        if h >= _MAX_HEIGHT and _collapse_error(b, h) - bound > 0.0:
            continue

        k = math.ceil(n / round(binomial(b + h - 2, h - 1)))
        memory = b * k
        if best_memory is None or memory < best_memory:
            best_b, best_k, best_memory = b, k, memory

    if best_b == -1:
        return KnownNParameters(b=1, k=n, sampling_rate=1.0)
    return KnownNParameters(b=best_b, k=best_k, sampling_rate=1.0)


def _known_n_slow(
    n: int, epsilon: float, delta: float, quantiles: int
) -> KnownNParameters:
    best_b = 1
    best_k = n
    sampling_rate = 1.0
    memory = n

    logarithm = math.log(2.0 * quantiles / delta)
    bound = 2.0 * epsilon * n
    u = logarithm / epsilon
    w = logarithm / (2.0 * epsilon * epsilon)

    for b in range(2, _MAX_BUFFERS):
        for h in range(3, _MAX_HEIGHT):
            v = binomial(b + h - 2, h - 1)
            t = (
                (h - 2) * v
                - binomial(b + h - 3, h - 3)
                + binomial(b + h - 3, h - 2)
            )
            k = math.ceil(n / v)
            if b * k < memory and t <= bound:
                best_b, best_k, memory = b, k, b * k
                sampling_rate = 1.0

            # t <= u * alpha / (1 - alpha)^2 and k * v >= w / (1 - alpha)^2
            x = 0.5 + 0.5 * math.sqrt(1.0 + 4.0 * t / u)
            k = math.ceil(w * x * x / v)
            if b * k < memory:
                best_b, best_k, memory = b, k, b * k
                sampling_rate = n * 2.0 * epsilon * epsilon / logarithm

    return KnownNParameters(b=best_b, k=best_k, sampling_rate=sampling_rate)


def unknown_n_compute_b_and_k(
    epsilon: float, delta: float, quantiles: int
) -> UnknownNParameters:
    """Layout for a stream whose length is not known in advance.

    The result carries the height ``h`` after which the sampling weight starts
    doubling. ``b == 1`` means exact computation is required.
    """
    if epsilon <= 0.0 or delta <= 0.0:
        return UnknownNParameters(b=1)
    if epsilon >= 1.0 or delta >= 1.0:
        return UnknownNParameters(b=2, k=1, h=3)

    max_b = _MAX_BUFFERS
    max_h = _MAX_HEIGHT
    max_tree_height = _MAX_HEIGHT
    log_delta = math.log(2.0 / (delta / quantiles)) / (2.0 * epsilon * epsilon)

    for iteration in range(_MAX_ITERATIONS):
        best = _unknown_n_search(epsilon, log_delta, max_b, max_h, max_tree_height)
        if best is not None:
            b, k, h = best
            logger.debug(
                "Unknown-N layout for epsilon=%s delta=%s: b=%d k=%d h=%d",
                epsilon,
                delta,
                b,
                k,
                h,
            )
            return UnknownNParameters(b=b, k=k, h=h)
        logger.warning(
            "No layout found for epsilon=%s delta=%s (iteration %d); widening search.",
            epsilon,
            delta,
            iteration + 1,
        )
        max_b *= 2
        max_h *= 2
        max_tree_height *= 2

    logger.warning(
        "Falling back to exact computation for epsilon=%s delta=%s.", epsilon, delta
    )
    return UnknownNParameters(b=1)


def _unknown_n_search(
    epsilon: float,
    log_delta: float,
    max_b: int,
    max_h: int,
    max_tree_height: int,
) -> tuple[int, int, int] | None:
    power = 2.0**max_tree_height
    best: tuple[int, int, int] | None = None
    best_memory: int | None = None

    for b in range(2, max_b + 1):
        for h in range(2, max_h + 1):
            ld = binomial(b + h - 2, h - 1)
            ls = binomial(b + h - 3, h - 1)
            # k >= c / (1 - alpha)^2 and k >= d / alpha
            c = log_delta / min(ld, 8.0 * ls / 3.0)
            beta = ld / ls
            cc = (beta - 2.0) * (max_tree_height - 2.0) / (beta + power - 2.0)
            d = (h + 3 + cc) / (2.0 * epsilon)

            f = c * c + 4.0 * c * d
            if f < 0.0:
                continue
            root = math.sqrt(f)
            roots = (
                (c + 2.0 * d + root) / (2.0 * d),
                (c + 2.0 * d - root) / (2.0 * d),
            )
            alphas = [alpha for alpha in roots if 0.0 < alpha < 1.0]
            if not alphas:
                continue
            alpha = max(alphas)

            k = math.ceil(max(d / alpha, (h + 1) / (2.0 * epsilon)))
            if k <= 0:
                continue
            memory = b * k
            if best_memory is None or memory < best_memory:
                best = (b, k, h)
                best_memory = memory

    return best
