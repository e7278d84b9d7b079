from __future__ import annotations

import enum
import math
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

from ..ring import RingBuffer


class RateSource(str, enum.Enum):
    REPORTED = "reported"
    WINDOW = "window"
    INTERVAL = "interval"


@dataclass(frozen=True)
class RateEstimate:
    source: RateSource
    bpm: Optional[float]


class BeatEdgeTracker:
    """
    Turns the transmitted beat flag into local beat timestamps: a 0 -> 1
    transition counts when more than min_gap_ms has passed since the last
    recorded one. This gap is tuned independently of the producer's
    refractory gap.
    """

    def __init__(self, min_gap_ms: float = 250.0):
        self.min_gap_ms = min_gap_ms
        self._state = 0
        self._last_recorded_ms: Optional[float] = None

    def update(self, beat: int, now_ms: float) -> bool:
        rising = beat == 1 and self._state == 0
        self._state = beat
        if not rising:
            return False
        if self._last_recorded_ms is not None and now_ms - self._last_recorded_ms <= self.min_gap_ms:
            return False
        self._last_recorded_ms = now_ms
        return True

    @property
    def last_recorded_ms(self) -> Optional[float]:
        return self._last_recorded_ms


class BeatWindowEstimator:
    """Beat count over a trailing window, scaled to beats per minute."""

    def __init__(self, window_sec: float = 10.0, min_gap_ms: float = 250.0):
        self.window_sec = window_sec
        # debounced edges cannot arrive faster than min_gap_ms
        capacity = int(math.ceil(window_sec * 1000.0 / min_gap_ms)) + 1
        self._timestamps: Deque[float] = deque(maxlen=capacity)
        self._bpm: Optional[float] = None

    def record(self, timestamp_ms: float) -> None:
        self._timestamps.append(timestamp_ms)

    def update(self, now_ms: float) -> RateEstimate:
        horizon = now_ms - self.window_sec * 1000.0
        while self._timestamps and self._timestamps[0] <= horizon:
            self._timestamps.popleft()
        self._bpm = len(self._timestamps) / self.window_sec * 60.0 if self._timestamps else None
        return self.estimate

    @property
    def estimate(self) -> RateEstimate:
        return RateEstimate(RateSource.WINDOW, self._bpm)

    def __len__(self) -> int:
        return len(self._timestamps)


class IntervalEstimator:
    """
    Mean of the last few beat-to-beat gaps. A gap longer than max_gap_ms is
    dropped because the earlier beat has already left the trailing window.
    """

    def __init__(self, capacity: int = 6, max_gap_ms: Optional[float] = None):
        self._gaps = RingBuffer(capacity)
        self.max_gap_ms = max_gap_ms
        self._previous_ms: Optional[float] = None

    def record(self, timestamp_ms: float) -> Optional[float]:
        gap: Optional[float] = None
        if self._previous_ms is not None:
            gap = timestamp_ms - self._previous_ms
            if self.max_gap_ms is not None and gap > self.max_gap_ms:
                gap = None
            else:
                self._gaps.push(gap)
        self._previous_ms = timestamp_ms
        return gap

    @property
    def estimate(self) -> RateEstimate:
        bpm = 60000.0 / self._gaps.mean() if self._gaps else None
        return RateEstimate(RateSource.INTERVAL, bpm)

    def gaps(self):
        return self._gaps.values()


class MismatchMonitor:
    """Raises a flag when the reported and window-based rates differ by more than `margin`."""

    def __init__(self, margin: float = 15.0):
        self.margin = margin
        self.mismatch = False

    def update(self, reported: RateEstimate, window: RateEstimate) -> bool:
        if reported.bpm is None or window.bpm is None:
            self.mismatch = False
        else:
            self.mismatch = abs(reported.bpm - window.bpm) > self.margin
        return self.mismatch
