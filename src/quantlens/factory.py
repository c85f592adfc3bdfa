from __future__ import annotations

import logging
import sys
from typing import Any

import numpy as np

from quantlens.contracts import QuantileFinder
from quantlens.estimators import (
    ExactDoubleQuantileFinder,
    KnownDoubleQuantileEstimator,
    UnknownDoubleQuantileEstimator,
)
from quantlens.models import QuantileFinderConfig
from quantlens.solver import known_n_compute_b_and_k, unknown_n_compute_b_and_k

logger = logging.getLogger(__name__)

_MIN_APPROXIMATE_N = 1000


def make_rng(seed: int | None = None) -> np.random.Generator:
    """Random source shared by every randomised component of one finder."""
    return np.random.Generator(np.random.PCG64(seed))


def new_equi_depth_phis(quantiles: int) -> list[float]:
    """Phis splitting the data into ``quantiles`` equally sized parts."""
    return [index / quantiles for index in range(1, quantiles)]


def new_quantile_finder(
    config: QuantileFinderConfig | None = None,
    rng: np.random.Generator | None = None,
    **overrides: Any,
) -> QuantileFinder:
    """Return the finder needing the least memory for the requested guarantees.

    ``config`` may be omitted in favour of keyword arguments accepted by
    :class:`QuantileFinderConfig`. Values are guaranteed to lie within
    ``epsilon * n`` ranks of the true quantile with probability ``1 - delta``.
    Streams shorter than a thousand values, or ``epsilon == 0``, get an exact
    finder.
    """
    if config is None:
        config = QuantileFinderConfig(**overrides)
    elif overrides:
        config = QuantileFinderConfig(**{**config.model_dump(), **overrides})
    if config.known_n and config.n is None:
        logger.error("known_n requested without n.")
        raise ValueError("n is required when known_n is set.")
    if rng is None:
        rng = make_rng(config.seed)

    n = config.n if config.n is not None else sys.maxsize
    if config.epsilon <= 0.0 or n < _MIN_APPROXIMATE_N:
        logger.debug("Using exact finder for epsilon=%s n=%d.", config.epsilon, n)
        return ExactDoubleQuantileFinder()
    n = max(n, config.quantiles)

    if config.known_n:
        known = known_n_compute_b_and_k(
            n, config.epsilon, config.delta, config.quantiles
        )
        if known.exact:
            return ExactDoubleQuantileFinder()
        logger.debug("Using known-N estimator b=%d k=%d.", known.b, known.k)
        return KnownDoubleQuantileEstimator(
            known.b, known.k, n, known.sampling_rate, rng
        )

    unknown = unknown_n_compute_b_and_k(config.epsilon, config.delta, config.quantiles)
    if unknown.exact or unknown.k is None or unknown.h is None:
        return ExactDoubleQuantileFinder()
    precompute_epsilon = config.epsilon if unknown.precompute else 0.0
    logger.debug(
        "Using unknown-N estimator b=%d k=%d h=%d.", unknown.b, unknown.k, unknown.h
    )
    return UnknownDoubleQuantileEstimator(
        unknown.b, unknown.k, unknown.h, rng, precompute_epsilon
    )
