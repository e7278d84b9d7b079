"""Deterministic signal source and clock for running the producer without hardware."""
from __future__ import annotations

import math
from typing import Callable, Optional

import numpy as np

from .scheduler import Channel

ADC_MAX = 1023


class VirtualClock:
    """Millisecond clock that only moves when slept on."""

    def __init__(self, start_ms: float = 0.0):
        self._now_ms = start_ms

    def now_ms(self) -> float:
        return self._now_ms

    def sleep(self, seconds: float) -> None:
        self._now_ms += seconds * 1000.0


class SyntheticSource:
    """
    Pulse train on the cardiac channel and a drifting level on the conductance
    channel, sampled at whatever time `clock` reports.

    With pulse=False the cardiac channel is flat noise; with contact=False the
    conductance channel is a quiet constant level (sensor not on skin).
    """

    def __init__(
        self,
        clock: Callable[[], float],
        *,
        heart_rate_bpm: float = 72.0,
        pulse_amplitude: float = 250.0,
        pulse_width_ms: float = 15.0,
        cardiac_level: float = 512.0,
        cardiac_noise: float = 3.0,
        pulse: bool = True,
        conductance_level: float = 300.0,
        movement_amplitude: float = 8.0,
        movement_period_ms: float = 3000.0,
        conductance_noise: float = 6.0,
        contact: bool = True,
        seed: Optional[int] = 0,
    ):
        self._clock = clock
        self.heart_rate_bpm = heart_rate_bpm
        self.pulse_amplitude = pulse_amplitude
        self.pulse_width_ms = pulse_width_ms
        self.cardiac_level = cardiac_level
        self.cardiac_noise = cardiac_noise
        self.pulse = pulse
        self.conductance_level = conductance_level
        self.movement_amplitude = movement_amplitude
        self.movement_period_ms = movement_period_ms
        self.conductance_noise = conductance_noise
        self.contact = contact
        self._rng = np.random.default_rng(seed)

    @property
    def beat_period_ms(self) -> float:
        return 60000.0 / self.heart_rate_bpm

    def read(self, channel: Channel) -> int:
        now = self._clock()
        if channel is Channel.CARDIAC:
            value = self._cardiac(now)
        else:
            value = self._conductance(now)
        return int(np.clip(round(value), 0, ADC_MAX))

    def _cardiac(self, now_ms: float) -> float:
        value = self.cardiac_level + self._rng.normal(scale=self.cardiac_noise)
        if self.pulse:
            # peak sits a quarter period into each cycle
            phase = now_ms % self.beat_period_ms - self.beat_period_ms / 4.0
            value += self.pulse_amplitude * math.exp(-0.5 * (phase / self.pulse_width_ms) ** 2)
        return value

    def _conductance(self, now_ms: float) -> float:
        if not self.contact:
            return self.conductance_level
        movement = self.movement_amplitude * math.sin(2.0 * math.pi * now_ms / self.movement_period_ms)
        return self.conductance_level + movement + self._rng.normal(scale=self.conductance_noise)
