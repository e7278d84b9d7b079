from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, List


class Channel(str, enum.Enum):
    CARDIAC = "cardiac"
    CONDUCTANCE = "conductance"


@dataclass
class Sample:
    channel: Channel
    raw: int
    timestamp_ms: float


@dataclass
class _Cadence:
    period_ms: float
    next_due_ms: float
    fired: int = 0
    late_ticks: int = 0
    max_lag_ms: float = 0.0


class SamplingScheduler:
    """
    Two independent periodic cadences driven from one clock.

    A cadence fires at most once per due() call. Its next due time advances by
    one period from the previous due time, so a late tick does not shift the
    schedule; missed periods are caught up on the following calls.
    """

    def __init__(self, cardiac_period_ms: float, conductance_period_ms: float, start_ms: float = 0.0):
        self._cadences: Dict[Channel, _Cadence] = {
            Channel.CARDIAC: _Cadence(cardiac_period_ms, start_ms),
            Channel.CONDUCTANCE: _Cadence(conductance_period_ms, start_ms),
        }

    def due(self, now_ms: float) -> List[Channel]:
        fired: List[Channel] = []
        for channel, cadence in self._cadences.items():
            if now_ms < cadence.next_due_ms:
                continue
            lag = now_ms - cadence.next_due_ms
            cadence.max_lag_ms = max(cadence.max_lag_ms, lag)
            if lag >= cadence.period_ms:
                cadence.late_ticks += 1
            cadence.next_due_ms += cadence.period_ms
            cadence.fired += 1
            fired.append(channel)
        return fired

    def next_due_ms(self) -> float:
        return min(cadence.next_due_ms for cadence in self._cadences.values())

    def due_time(self, channel: Channel) -> float:
        return self._cadences[channel].next_due_ms

    def restart(self, start_ms: float) -> None:
        for cadence in self._cadences.values():
            cadence.next_due_ms = start_ms

    def stats(self) -> Dict[str, Dict[str, float]]:
        return {
            channel.value: {
                "fired": cadence.fired,
                "late_ticks": cadence.late_ticks,
                "max_lag_ms": cadence.max_lag_ms,
            }
            for channel, cadence in self._cadences.items()
        }
