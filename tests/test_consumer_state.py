from __future__ import annotations

from typing import List, Tuple

import pytest

from pulselink.config import ConsumerConfig
from pulselink.consumer.state import ConsumerContext, ConsumerSnapshot, replay


def cardiac_lines(duration_ms: int, period_ms: int, bpm: int, step_ms: int = 4) -> List[Tuple[str, float]]:
    lines = []
    for t in range(0, duration_ms, step_ms):
        beat = 1 if t % period_ms < 120 else 0
        lines.append((f"RAW 512 BPM {bpm} Beat {beat}", float(t)))
    return lines


def feed(context: ConsumerContext, lines: List[Tuple[str, float]]) -> ConsumerSnapshot:
    for line, now in lines:
        context.feed_line(line, now)
    return context.snapshot()


def test_lines_update_latest_values() -> None:
    context = ConsumerContext()
    context.feed_line("RAW 612 BPM 72 Beat 0", 0.0)
    context.feed_line("Value2 235 Value4 -3 Contact 1", 2.0)
    snapshot = context.snapshot(include_waveform=True)
    assert snapshot.raw == 612
    assert snapshot.reported_bpm == 72
    assert snapshot.filtered == 235
    assert snapshot.signal == -3
    assert snapshot.contact == 1
    assert snapshot.waveform == (612,)


def test_conductance_line_does_not_touch_cardiac_state() -> None:
    context = ConsumerContext()
    context.feed_line("Value2 240 Value4 2 Contact 0", 0.0)
    snapshot = context.snapshot()
    assert snapshot.raw is None
    assert snapshot.reported_bpm is None
    assert snapshot.window_bpm is None


def test_agreeing_rates_do_not_flag_mismatch() -> None:
    context = ConsumerContext()
    snapshot = feed(context, cardiac_lines(12000, 1000, 60))
    assert snapshot.window_bpm == pytest.approx(60.0)
    assert snapshot.interval_bpm == pytest.approx(60.0)
    assert not snapshot.mismatch


def test_disagreeing_rates_flag_mismatch() -> None:
    context = ConsumerContext()
    snapshot = feed(context, cardiac_lines(12000, 1000, 80))
    assert snapshot.window_bpm == pytest.approx(60.0)
    assert snapshot.mismatch


def test_reported_zero_means_unknown() -> None:
    context = ConsumerContext()
    snapshot = feed(context, cardiac_lines(12000, 1000, 0))
    assert context.reported_estimate.bpm is None
    assert not snapshot.mismatch


def test_preferred_rate_order() -> None:
    snapshot = ConsumerSnapshot(
        raw=None,
        reported_bpm=70,
        window_bpm=None,
        interval_bpm=None,
        mismatch=False,
        filtered=None,
        signal=None,
        contact=0,
        last_beat_ms=None,
    )
    assert snapshot.preferred_bpm == 70.0
    assert ConsumerSnapshot(None, 0, None, None, False, None, None, 0, None).preferred_bpm is None
    assert ConsumerSnapshot(None, 70, 66.0, 64.5, False, None, None, 0, None).preferred_bpm == 64.5


def test_waveform_is_bounded() -> None:
    context = ConsumerContext(ConsumerConfig(waveform_length=8))
    for idx in range(20):
        context.feed_line(f"RAW {idx} BPM 0 Beat 0", idx * 4.0)
    assert context.snapshot(include_waveform=True).waveform == tuple(range(12, 20))


def test_replay_is_idempotent_on_reset_context() -> None:
    lines = [line for line, _ in cardiac_lines(15000, 850, 71)]
    lines.insert(100, "Value2 301 Value4 4 Contact 1")
    lines.insert(500, "garbage RAW")
    context = ConsumerContext()
    first = replay(lines, context)
    context.reset()
    second = replay(lines, context)
    assert first == second
    assert first.contact == 1
    assert first.interval_bpm == pytest.approx(60000.0 / 850.0, rel=0.01)
