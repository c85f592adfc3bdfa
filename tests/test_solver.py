from __future__ import annotations

import logging

import pytest

from quantlens import solver
from quantlens.solver import (
    binomial,
    known_n_compute_b_and_k,
    unknown_n_compute_b_and_k,
)


def test_binomial_values() -> None:
    assert binomial(5, 2) == pytest.approx(10.0)
    assert binomial(10, 0) == 1.0
    assert binomial(10, 10) == 1.0
    assert binomial(10, 7) == pytest.approx(120.0)
    assert binomial(50, 25) == pytest.approx(126410606437752.0, rel=1e-9)


def test_known_n_without_error_is_exact() -> None:
    parameters = known_n_compute_b_and_k(100_000, 0.0, 0.01, 100)

    assert parameters.exact
    assert parameters.k == 100_000
    assert parameters.sampling_rate == 1.0


def test_known_n_with_any_error_allowed() -> None:
    parameters = known_n_compute_b_and_k(100_000, 1.0, 0.0, 100)

    assert (parameters.b, parameters.k) == (2, 1)


def test_known_n_deterministic_layout_is_small_and_monotone() -> None:
    coarse = known_n_compute_b_and_k(1_000_000, 0.1, 0.0, 100)
    medium = known_n_compute_b_and_k(1_000_000, 0.01, 0.0, 100)
    fine = known_n_compute_b_and_k(1_000_000, 0.001, 0.0, 100)

    assert medium.b >= 2
    assert medium.sampling_rate == 1.0
    assert medium.memory < 1_000_000
    assert coarse.memory <= medium.memory <= fine.memory


def test_known_n_probabilistic_layout_never_exceeds_exact() -> None:
    parameters = known_n_compute_b_and_k(100_000, 0.01, 0.01, 3)

    assert parameters.b >= 2
    assert parameters.memory < 100_000
    assert parameters.sampling_rate >= 1.0


@pytest.mark.parametrize(("epsilon", "delta"), [(0.0, 0.01), (0.01, 0.0)])
def test_unknown_n_degenerates_to_exact(epsilon: float, delta: float) -> None:
    parameters = unknown_n_compute_b_and_k(epsilon, delta, 100)

    assert parameters.exact
    assert parameters.k is None
    assert parameters.memory is None


def test_unknown_n_with_any_error_allowed() -> None:
    parameters = unknown_n_compute_b_and_k(1.0, 0.5, 100)

    assert (parameters.b, parameters.k, parameters.h) == (2, 1, 3)


def test_unknown_n_layout() -> None:
    parameters = unknown_n_compute_b_and_k(0.01, 0.0001, 100)

    assert parameters.b >= 2
    assert parameters.k is not None and parameters.k >= 1
    assert parameters.h is not None and parameters.h >= 2
    assert parameters.memory is not None and parameters.memory < 100_000
    assert not parameters.precompute


def test_unknown_n_widens_search_then_falls_back_to_exact(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    calls: list[tuple[int, int, int]] = []

    def no_layout(
        epsilon: float, log_delta: float, max_b: int, max_h: int, max_tree_height: int
    ) -> None:
        calls.append((max_b, max_h, max_tree_height))
        return None

    monkeypatch.setattr(solver, "_unknown_n_search", no_layout)
    with caplog.at_level(logging.WARNING, logger="quantlens.solver"):
        parameters = unknown_n_compute_b_and_k(0.01, 0.01, 9)

    assert calls == [(50, 50, 50), (100, 100, 100)]
    assert parameters.exact
    assert (parameters.b, parameters.k, parameters.h) == (1, None, None)
    assert any("Falling back" in record.message for record in caplog.records)
