from __future__ import annotations

import math

import numpy as np
import pytest

from quantlens.buffers import DoubleBufferSet
from quantlens.contracts import QuantileFinder
from quantlens.estimators import (
    KnownDoubleQuantileEstimator,
    UnknownDoubleQuantileEstimator,
    UnknownNStrategy,
)
from quantlens.factory import make_rng, new_quantile_finder


def test_estimator_rejects_invalid_layout() -> None:
    with pytest.raises(ValueError):
        KnownDoubleQuantileEstimator(1, 10, 100, 1.0, make_rng(0))
    with pytest.raises(ValueError):
        UnknownDoubleQuantileEstimator(2, 0, 3, make_rng(0))


def test_known_estimator_without_collapse_is_exact() -> None:
    estimator = KnownDoubleQuantileEstimator(3, 4, 12, 1.0, make_rng(0))
    estimator.add_all(np.arange(1.0, 13.0))

    assert estimator.size == 12
    np.testing.assert_array_equal(estimator.quantile_elements([0.5]), [6.0])
    assert estimator.phi(6.0) == pytest.approx(0.5)
    assert estimator.memory() == 12
    assert estimator.total_memory() == 12


def test_known_estimator_conserves_weight_across_collapses() -> None:
    estimator = KnownDoubleQuantileEstimator(3, 4, 1000, 1.0, make_rng(0))

    for value in range(1, 1001):
        estimator.add(float(value))
        if value % 4 == 0:
            assert estimator.buffer_set.total_size == value
    assert estimator.memory() <= estimator.total_memory()


def test_known_estimator_levels_follow_collapse_rounds() -> None:
    estimator = KnownDoubleQuantileEstimator(3, 4, 20, 1.0, make_rng(0))
    estimator.add_all(np.arange(1.0, 21.0))

    buffers = estimator.buffer_set.buffers
    assert [buffer.level for buffer in buffers] == [1, 0, 0]
    assert [buffer.weight for buffer in buffers] == [3, 1, 1]
    np.testing.assert_array_equal(buffers[0].values, [3.0, 6.0, 9.0, 12.0])


def test_known_estimator_pads_partial_buffer_only_during_query() -> None:
    estimator = KnownDoubleQuantileEstimator(3, 4, 6, 1.0, make_rng(0))
    estimator.add_all([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])

    quantiles = estimator.quantile_elements([0.0, 0.5, 1.0])

    np.testing.assert_array_equal(quantiles, [1.0, 3.0, 6.0])
    assert estimator.buffer_set.total_size == 6
    assert estimator.buffer_set.partial_buffer() is not None
    assert not estimator.contains(np.finfo(np.float64).max)
    assert estimator.contains(5.0)


def test_unknown_estimator_grows_tree_and_doubles_weight() -> None:
    estimator = UnknownDoubleQuantileEstimator(2, 2, 3, make_rng(0))
    strategy = estimator.strategy
    assert isinstance(strategy, UnknownNStrategy)

    for value in range(1, 8):
        estimator.add(float(value))

    assert strategy.current_tree_height == 3
    assert strategy.weight == 2
    survivor = estimator.buffer_set[0]
    assert survivor.level == 2
    assert survivor.weight == 3
    np.testing.assert_array_equal(survivor.values, [4.0, 6.0])


def test_unknown_strategy_raises_lone_lowest_buffer() -> None:
    buffer_set = DoubleBufferSet(3, 2)
    for index, level in enumerate([0, 1, 1]):
        buffer_set[index].add_all([1.0, 2.0])
        buffer_set[index].level = level
    strategy = UnknownNStrategy(3, make_rng(0))

    group = strategy.buffers_to_collapse(buffer_set)

    assert len(group) == 3
    assert buffer_set[0].level == 1


def test_unknown_strategy_snaps_phis_to_precomputed_grid() -> None:
    strategy = UnknownNStrategy(3, make_rng(0), precompute_epsilon=0.1)
    buffer_set = DoubleBufferSet(2, 2)

    with strategy.query_phis(buffer_set, np.array([0.0, 0.52, 1.0]), 0) as phis:
        snapped = phis

    np.testing.assert_allclose(snapped, [0.05, 0.55, 0.95])


@pytest.mark.parametrize("known_n", [True, False])
def test_add_range_matches_repeated_add(known_n: bool) -> None:
    values = make_rng(1).normal(size=20_000)

    def build() -> QuantileFinder:
        return new_quantile_finder(
            epsilon=0.01,
            delta=0.01,
            quantiles=3,
            n=20_000,
            known_n=known_n,
            seed=42,
        )

    one_by_one = build()
    for value in values:
        one_by_one.add(float(value))
    ranged = build()
    ranged.add_range(values, 0, 9_999)
    ranged.add_range(values, 10_000)

    phis = [0.1, 0.25, 0.5, 0.75, 0.9]
    assert ranged.size == one_by_one.size == 20_000
    np.testing.assert_array_equal(
        ranged.quantile_elements(phis), one_by_one.quantile_elements(phis)
    )


def test_add_range_rejects_invalid_bounds() -> None:
    estimator = UnknownDoubleQuantileEstimator(2, 4, 3, make_rng(0))
    with pytest.raises(ValueError):
        estimator.add_range([1.0, 2.0], 0, 2)
    with pytest.raises(ValueError):
        estimator.add_range([1.0, 2.0], -1)


def test_quantile_elements_reject_unsorted_phis() -> None:
    estimator = UnknownDoubleQuantileEstimator(2, 4, 3, make_rng(0))
    estimator.add_all([1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        estimator.quantile_elements([0.5, 0.1])


def test_clear_returns_to_empty_state() -> None:
    estimator = UnknownDoubleQuantileEstimator(2, 4, 2, make_rng(0))
    estimator.add_all(np.arange(100.0))

    estimator.clear()

    assert estimator.size == 0
    assert estimator.memory() == 0
    assert math.isnan(estimator.phi(1.0))
    assert np.isnan(estimator.quantile_elements([0.5])).all()
    strategy = estimator.strategy
    assert isinstance(strategy, UnknownNStrategy)
    assert strategy.current_tree_height == 1
    assert strategy.weight == 1


def test_estimates_are_monotone_in_phi() -> None:
    finder = new_quantile_finder(epsilon=0.01, delta=0.001, quantiles=9, seed=7)
    finder.add_all(make_rng(2).normal(size=50_000))

    quantiles = finder.quantile_elements(np.linspace(0.0, 1.0, 21))

    assert np.all(np.diff(quantiles) >= 0.0)


@pytest.mark.parametrize(
    ("known_n", "delta"),
    [(False, 0.01), (True, 0.01), (True, 0.0)],
)
def test_end_to_end_quartiles_of_integer_stream(known_n: bool, delta: float) -> None:
    finder = new_quantile_finder(
        epsilon=0.01,
        delta=delta,
        quantiles=3,
        n=100_000,
        known_n=known_n,
        seed=2024,
    )
    finder.add_all(np.arange(1.0, 100_001.0))

    quantiles = finder.quantile_elements([0.25, 0.5, 0.75])

    np.testing.assert_allclose(quantiles, [25_000.0, 50_000.0, 75_000.0], atol=1_000)
    assert finder.memory() <= finder.total_memory() < 50_000


def test_boundary_phis_return_extremes() -> None:
    finder = new_quantile_finder(
        epsilon=0.01, delta=0.0, quantiles=3, n=10_000, known_n=True, seed=1
    )
    values = make_rng(3).uniform(-5.0, 5.0, size=10_000)
    finder.add_all(values)

    low, high = finder.quantile_elements([0.0, 1.0])

    assert values.min() <= low <= np.quantile(values, 0.02)
    assert np.quantile(values, 0.98) <= high <= values.max()


def test_known_estimator_restarts_sampler_beyond_n() -> None:
    estimator = KnownDoubleQuantileEstimator(2, 4, 10, 2.0, make_rng(9))

    estimator.add_all(np.arange(20.0))

    assert estimator.size == 20
    assert estimator.buffer_set.total_size == 10


def test_known_strategy_without_sampling_keeps_every_value() -> None:
    estimator = KnownDoubleQuantileEstimator(3, 4, 100, 1.0, make_rng(0))

    mask = estimator.strategy.sample_mask(5)

    assert mask.dtype == np.bool_
    np.testing.assert_array_equal(mask, np.ones(5, dtype=np.bool_))


def test_unknown_estimator_repr_names_its_strategy() -> None:
    estimator = UnknownDoubleQuantileEstimator(2, 4, 3, make_rng(0))
    estimator.add(1.0)

    assert repr(estimator) == (
        "UnknownDoubleQuantileEstimator(mem=4, b=2, k=4, size=1, total_size=1, "
        "UnknownNStrategy(h=1, h_start_sampling=3, precompute_epsilon=0.0))"
    )


def _rank_error_trials(known_n: bool, trials: int) -> list[float]:
    n = 100_000
    phis = np.linspace(0.1, 0.9, 9)
    worst_errors = []
    for seed in range(trials):
        finder = new_quantile_finder(
            epsilon=0.01,
            delta=0.01,
            quantiles=9,
            n=n,
            known_n=known_n,
            seed=seed,
        )
        finder.add_all(make_rng(1_000 + seed).permutation(np.arange(1.0, n + 1.0)))
        quantiles = finder.quantile_elements(phis)
        worst_errors.append(float(np.max(np.abs(quantiles - phis * n))) / n)
    return worst_errors


def test_known_n_rank_error_bound_over_repeated_trials() -> None:
    worst_errors = _rank_error_trials(known_n=True, trials=20)

    failures = sum(error > 0.01 for error in worst_errors)
    assert failures / len(worst_errors) <= 0.01


def test_unknown_n_rank_error_bound_over_repeated_trials() -> None:
    worst_errors = _rank_error_trials(known_n=False, trials=40)

    # observed failure rate sits near delta, so allow a few misses
    failures = sum(error > 0.01 for error in worst_errors)
    assert failures <= 5
    assert max(worst_errors) <= 0.02
