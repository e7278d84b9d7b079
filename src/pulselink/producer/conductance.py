from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from ..config import ConductanceConfig
from ..ring import RingBuffer
from ..telemetry import ConductanceRecord
from .cardiac import BaselineTracker


class Oversampler:
    """
    Averages `count` back-to-back reads separated by a fixed settle delay.

    This is a blocking batch: one call may block up to count * settle_us
    microseconds. The fast cadence cannot be serviced meanwhile, so the bound
    has to stay below the cardiac period (see PipelineConfig.validate).
    """

    def __init__(self, count: int = 16, settle_us: float = 100.0, sleep: Callable[[float], None] = time.sleep):
        if count < 1:
            raise ValueError("oversample count must be at least 1")
        self.count = count
        self.settle_us = settle_us
        self._sleep = sleep

    @property
    def worst_case_ms(self) -> float:
        return self.count * self.settle_us / 1000.0

    def read(self, read_fn: Callable[[], int]) -> float:
        total = 0
        for idx in range(self.count):
            if idx:
                self._sleep(self.settle_us / 1e6)
            total += read_fn()
        return total / self.count


@dataclass(frozen=True)
class ConductanceReading:
    value: float
    filtered: float
    baseline: float
    mean: float
    stddev: float
    contact: bool

    @property
    def signal(self) -> float:
        return self.filtered - self.baseline

    def to_record(self) -> ConductanceRecord:
        return ConductanceRecord(filtered=self.filtered, signal=self.signal, contact=self.contact)


class ContactClassifier:
    """
    Skin-contact inference from window variability and baseline deviation.

    Contact is absent only when the window is quiet (stddev below threshold)
    and the filtered value sits near its slow baseline.
    """

    def __init__(self, config: ConductanceConfig):
        self.config = config
        self.window = RingBuffer(config.window)
        self.filtered = BaselineTracker(config.filter_beta)
        self.baseline = BaselineTracker(1.0 - config.baseline_decay)

    def update(self, value: float) -> ConductanceReading:
        self.window.push(value)
        filtered = self.filtered.update(value)
        baseline = self.baseline.update(filtered)
        stddev = self.window.std()
        quiet = stddev < self.config.stddev_threshold
        near_baseline = abs(filtered - baseline) < self.config.deviation_threshold
        return ConductanceReading(
            value=value,
            filtered=filtered,
            baseline=baseline,
            mean=self.window.mean(),
            stddev=stddev,
            contact=not (quiet and near_baseline),
        )
