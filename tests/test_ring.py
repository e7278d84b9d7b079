from __future__ import annotations

import numpy as np
import pytest

from pulselink.ring import RingBuffer


def test_ring_saturates_and_overwrites_oldest() -> None:
    ring = RingBuffer(3)
    for value in (1.0, 2.0, 3.0, 4.0, 5.0):
        ring.push(value)
    assert len(ring) == 3
    assert ring.full
    assert list(ring.values()) == [3.0, 4.0, 5.0]


def test_ring_partial_fill_keeps_insertion_order() -> None:
    ring = RingBuffer(6)
    ring.push(800.0)
    ring.push(820.0)
    assert list(ring.values()) == [800.0, 820.0]
    assert ring.mean() == pytest.approx(810.0)


def test_ring_population_std() -> None:
    ring = RingBuffer(4)
    for value in (10.0, 20.0, 10.0, 20.0):
        ring.push(value)
    assert ring.std() == pytest.approx(5.0)
    assert np.isclose(ring.std(), np.std([10.0, 20.0, 10.0, 20.0]))


def test_ring_clear_and_empty_statistics() -> None:
    ring = RingBuffer(2)
    ring.push(1.0)
    ring.clear()
    assert len(ring) == 0
    assert not ring
    assert ring.values().size == 0
    with pytest.raises(ValueError):
        ring.mean()
    ring.push(7.0)
    assert list(ring.values()) == [7.0]


def test_ring_rejects_zero_capacity() -> None:
    with pytest.raises(ValueError):
        RingBuffer(0)
