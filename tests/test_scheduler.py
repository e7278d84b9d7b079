from __future__ import annotations

from pulselink.producer.scheduler import Channel, SamplingScheduler


def test_both_cadences_fire_at_origin_then_independently() -> None:
    scheduler = SamplingScheduler(4.0, 100.0)
    assert scheduler.due(0.0) == [Channel.CARDIAC, Channel.CONDUCTANCE]
    assert scheduler.due(2.0) == []
    assert scheduler.due(4.0) == [Channel.CARDIAC]
    assert scheduler.due_time(Channel.CONDUCTANCE) == 100.0


def test_late_tick_does_not_shift_schedule() -> None:
    scheduler = SamplingScheduler(4.0, 100.0)
    scheduler.due(0.0)
    # processed 3 ms late: the next due time still lands on the 4 ms grid
    assert Channel.CARDIAC in scheduler.due(7.0)
    assert scheduler.due_time(Channel.CARDIAC) == 8.0
    assert Channel.CARDIAC in scheduler.due(8.0)
    assert scheduler.due_time(Channel.CARDIAC) == 12.0


def test_missed_periods_are_caught_up_one_per_call() -> None:
    scheduler = SamplingScheduler(4.0, 100.0)
    scheduler.due(0.0)
    fired = 0
    now = 20.0
    while Channel.CARDIAC in scheduler.due(now):
        fired += 1
    assert fired == 5  # 4, 8, 12, 16, 20
    stats = scheduler.stats()["cardiac"]
    assert stats["late_ticks"] >= 1
    assert stats["max_lag_ms"] == 16.0


def test_next_due_is_earliest_marker() -> None:
    scheduler = SamplingScheduler(4.0, 100.0, start_ms=1000.0)
    assert scheduler.next_due_ms() == 1000.0
    scheduler.due(1000.0)
    assert scheduler.next_due_ms() == 1004.0
