from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..config import CardiacConfig
from ..ring import RingBuffer
from ..telemetry import CardiacRecord


class BaselineTracker:
    """Exponential moving average of a channel; seeded by the first sample when no initial value is given."""

    def __init__(self, alpha: float, initial: Optional[float] = None):
        if not 0.0 < alpha <= 1.0:
            raise ValueError("alpha must be in (0, 1]")
        self.alpha = alpha
        self._initial = initial
        self.value: Optional[float] = initial

    def update(self, raw: float) -> float:
        if self.value is None:
            self.value = float(raw)
        else:
            self.value = self.value * (1.0 - self.alpha) + raw * self.alpha
        return self.value

    def threshold(self, offset: int) -> int:
        if self.value is None:
            raise ValueError("baseline has not seen a sample yet")
        return int(round(self.value)) + offset

    def reset(self) -> None:
        self.value = self._initial


class DetectorState(str, enum.Enum):
    IDLE = "idle"
    PULSE_ACTIVE = "pulse_active"


@dataclass(frozen=True)
class BeatEvent:
    timestamp_ms: float
    interval_ms: Optional[float]


class BeatDetector:
    """
    Threshold beat detector with a refractory gap and a fixed-width output pulse.

    Guards, checked in this order on every sample:
      PULSE_ACTIVE -> IDLE   once the pulse width has elapsed since acceptance.
      staleness              no accepted beat for longer than stale_ms clears the
                             interval ring, the rate and the last beat time.
      IDLE -> PULSE_ACTIVE   raw > threshold and more than refractory_ms since the
                             last accepted beat (or no previous beat).
    Intervals are only measured between accepted beats.
    """

    def __init__(
        self,
        refractory_ms: float = 600.0,
        pulse_width_ms: float = 120.0,
        stale_ms: float = 5000.0,
        interval_capacity: int = 6,
    ):
        self.refractory_ms = refractory_ms
        self.pulse_width_ms = pulse_width_ms
        self.stale_ms = stale_ms
        self.state = DetectorState.IDLE
        self._intervals = RingBuffer(interval_capacity)
        self._last_beat_ms: Optional[float] = None
        self._pulse_start_ms = 0.0
        self._bpm: Optional[float] = None
        self.beats = 0

    def update(self, raw: int, threshold: int, now_ms: float) -> Optional[BeatEvent]:
        if self.state is DetectorState.PULSE_ACTIVE and now_ms - self._pulse_start_ms >= self.pulse_width_ms:
            self.state = DetectorState.IDLE

        if self._last_beat_ms is not None and now_ms - self._last_beat_ms > self.stale_ms:
            self._intervals.clear()
            self._bpm = None
            self._last_beat_ms = None

        if self.state is not DetectorState.IDLE or raw <= threshold:
            return None
        if self._last_beat_ms is not None and now_ms - self._last_beat_ms <= self.refractory_ms:
            return None

        interval: Optional[float] = None
        if self._last_beat_ms is not None:
            interval = now_ms - self._last_beat_ms
            self._intervals.push(interval)
            self._bpm = 60000.0 / self._intervals.mean()
        self._last_beat_ms = now_ms
        self._pulse_start_ms = now_ms
        self.state = DetectorState.PULSE_ACTIVE
        self.beats += 1
        return BeatEvent(timestamp_ms=now_ms, interval_ms=interval)

    @property
    def beat_flag(self) -> int:
        return 1 if self.state is DetectorState.PULSE_ACTIVE else 0

    @property
    def bpm(self) -> Optional[float]:
        return self._bpm

    @property
    def reported_bpm(self) -> int:
        return int(round(self._bpm)) if self._bpm is not None else 0

    def intervals(self) -> np.ndarray:
        return self._intervals.values()


class CardiacChannel:
    """Baseline-tracked threshold plus beat detection for the fast cadence."""

    def __init__(self, config: CardiacConfig):
        self.config = config
        self.baseline = BaselineTracker(config.baseline_alpha, config.baseline_initial)
        self.detector = BeatDetector(
            refractory_ms=config.refractory_ms,
            pulse_width_ms=config.pulse_width_ms,
            stale_ms=config.stale_ms,
            interval_capacity=config.interval_capacity,
        )

    def process(self, raw: int, now_ms: float) -> CardiacRecord:
        self.baseline.update(raw)
        threshold = self.baseline.threshold(self.config.threshold_offset)
        self.detector.update(raw, threshold, now_ms)
        return CardiacRecord(raw=raw, bpm=self.detector.reported_bpm, beat=self.detector.beat_flag)
