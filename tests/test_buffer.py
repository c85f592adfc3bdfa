from __future__ import annotations

import numpy as np
import pytest

from quantlens.buffers import BufferFullError, DoubleBuffer


def test_buffer_allocates_lazily_and_rejects_overflow() -> None:
    buffer = DoubleBuffer(capacity=3)
    assert buffer.memory() == 0
    assert buffer.is_empty

    buffer.add(3.0)
    assert buffer.memory() == 3
    assert buffer.is_partial
    buffer.add(1.0)
    buffer.add(2.0)

    assert buffer.is_full
    with pytest.raises(BufferFullError):
        buffer.add(4.0)


def test_buffer_add_all_rejects_overflow() -> None:
    buffer = DoubleBuffer(capacity=2)
    with pytest.raises(BufferFullError):
        buffer.add_all([1.0, 2.0, 3.0])
    assert buffer.size == 0


def test_buffer_sort_is_idempotent() -> None:
    buffer = DoubleBuffer(capacity=4)
    buffer.add_all([4.0, 2.0, 3.0, 1.0])

    buffer.sort()
    first = buffer.values.copy()
    buffer.sort()

    assert buffer.is_sorted
    np.testing.assert_array_equal(first, [1.0, 2.0, 3.0, 4.0])
    np.testing.assert_array_equal(buffer.values, first)

    buffer.clear()
    buffer.add(0.5)
    assert not buffer.is_sorted


def test_buffer_contains_and_rank() -> None:
    buffer = DoubleBuffer(capacity=3)
    buffer.add_all([3.0, 1.0, 2.0])

    assert buffer.contains(2.0)
    assert not buffer.contains(2.5)
    assert buffer.rank(2.5) == pytest.approx(2.5)
    assert buffer.rank(0.0) == 0.0
    assert buffer.rank(10.0) == 3.0


def test_buffer_trim_drops_both_ends() -> None:
    buffer = DoubleBuffer(capacity=5)
    buffer.add_all([1.0, 2.0, 3.0, 4.0, 5.0])

    buffer.trim(1, 2)

    np.testing.assert_array_equal(buffer.values, [2.0, 3.0])
    with pytest.raises(ValueError):
        buffer.trim(2, 1)


def test_buffer_clear_keeps_storage_and_reset_releases_it() -> None:
    buffer = DoubleBuffer(capacity=3, weight=4, level=2)
    buffer.add(1.0)

    buffer.clear()
    assert buffer.is_empty
    assert buffer.memory() == 3

    buffer.reset()
    assert buffer.memory() == 0
    assert buffer.weight == 1
    assert buffer.level == 0


def test_buffer_repr_and_capacity_validation() -> None:
    buffer = DoubleBuffer(capacity=3, weight=2, level=1)
    assert repr(buffer) == "DoubleBuffer(k=3, w=2, l=1, size=0)"
    with pytest.raises(ValueError):
        DoubleBuffer(capacity=0)


def test_buffer_internal_state_is_not_a_constructor_argument() -> None:
    with pytest.raises(TypeError):
        DoubleBuffer(capacity=3, _size=2)  # type: ignore[call-arg]

    buffer = DoubleBuffer(3)
    assert buffer.size == 0
    assert not buffer.is_allocated
    assert not buffer.is_sorted
