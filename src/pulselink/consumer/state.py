from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from ..config import ConsumerConfig
from ..ring import RingBuffer
from ..telemetry import LineParser, ParsedLine
from .estimators import (
    BeatEdgeTracker,
    BeatWindowEstimator,
    IntervalEstimator,
    MismatchMonitor,
    RateEstimate,
    RateSource,
)


@dataclass(frozen=True)
class ConsumerSnapshot:
    """Immutable view of consumer state for readers on another clock."""

    raw: Optional[int]
    reported_bpm: Optional[int]
    window_bpm: Optional[float]
    interval_bpm: Optional[float]
    mismatch: bool
    filtered: Optional[int]
    signal: Optional[int]
    contact: int
    last_beat_ms: Optional[float]
    waveform: Tuple[int, ...] = ()

    @property
    def preferred_bpm(self) -> Optional[float]:
        """Interval estimate first, then window, then the reported rate."""
        for value in (self.interval_bpm, self.window_bpm, self.reported_bpm):
            if value:
                return float(value)
        return None


class ConsumerContext:
    """
    Consumer-side state folded from telemetry lines. Exactly one caller
    (the reader) mutates it; others read snapshot().
    """

    def __init__(self, config: Optional[ConsumerConfig] = None):
        self.config = config or ConsumerConfig()
        self.reset()

    def reset(self) -> None:
        cfg = self.config
        self.parser = LineParser()
        self.edges = BeatEdgeTracker(cfg.min_beat_gap_ms)
        self.window = BeatWindowEstimator(cfg.window_sec, cfg.min_beat_gap_ms)
        self.intervals = IntervalEstimator(cfg.interval_capacity, max_gap_ms=cfg.window_sec * 1000.0)
        self.monitor = MismatchMonitor(cfg.mismatch_margin)
        self.waveform = RingBuffer(cfg.waveform_length, dtype=int)
        self.raw: Optional[int] = None
        self.reported_bpm: Optional[int] = None
        self.filtered: Optional[int] = None
        self.signal: Optional[int] = None
        self.contact = 0
        self.window_estimate = RateEstimate(RateSource.WINDOW, None)
        self.interval_estimate = RateEstimate(RateSource.INTERVAL, None)

    @property
    def reported_estimate(self) -> RateEstimate:
        # the producer sends 0 while its rate is unknown
        bpm = float(self.reported_bpm) if self.reported_bpm else None
        return RateEstimate(RateSource.REPORTED, bpm)

    def feed_line(self, line: str, now_ms: float) -> ParsedLine:
        parsed = self.parser.parse(line)
        if parsed.empty:
            return parsed
        if parsed.raw is not None:
            self.raw = parsed.raw
            self.waveform.push(parsed.raw)
        if parsed.bpm is not None:
            self.reported_bpm = parsed.bpm
        if parsed.beat is not None:
            if self.edges.update(parsed.beat, now_ms):
                self.window.record(now_ms)
                self.intervals.record(now_ms)
            self._recompute(now_ms)
        if parsed.filtered is not None:
            self.filtered = parsed.filtered
        if parsed.signal is not None:
            self.signal = parsed.signal
        if parsed.contact is not None:
            self.contact = parsed.contact
        return parsed

    def _recompute(self, now_ms: float) -> None:
        self.window_estimate = self.window.update(now_ms)
        self.interval_estimate = self.intervals.estimate
        self.monitor.update(self.reported_estimate, self.window_estimate)

    def snapshot(self, include_waveform: bool = False) -> ConsumerSnapshot:
        waveform: Tuple[int, ...] = ()
        if include_waveform:
            waveform = tuple(int(value) for value in self.waveform.values())
        return ConsumerSnapshot(
            raw=self.raw,
            reported_bpm=self.reported_bpm,
            window_bpm=self.window_estimate.bpm,
            interval_bpm=self.interval_estimate.bpm,
            mismatch=self.monitor.mismatch,
            filtered=self.filtered,
            signal=self.signal,
            contact=self.contact,
            last_beat_ms=self.edges.last_recorded_ms,
            waveform=waveform,
        )


def replay(lines: Iterable[str], context: ConsumerContext, cardiac_period_ms: float = 4.0, start_ms: float = 0.0) -> ConsumerSnapshot:
    """
    Feed a recorded line sequence into `context`. Arrival times are synthesised
    by advancing one cardiac period for every line that carries RAW.
    """
    now = start_ms
    for line in lines:
        parsed = context.feed_line(line, now)
        if parsed.raw is not None:
            now += cardiac_period_ms
    return context.snapshot()
