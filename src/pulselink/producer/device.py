from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional, Protocol

from ..config import PipelineConfig
from ..telemetry import TelemetryEncoder
from .cardiac import CardiacChannel
from .conductance import ContactClassifier, Oversampler
from .scheduler import Channel, Sample, SamplingScheduler

logger = logging.getLogger(__name__)


class AnalogSource(Protocol):
    def read(self, channel: Channel) -> int:
        ...


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ProducerContext:
    """
    All producer state for one pipeline instance: scheduler, trackers, rings
    and encoder. step() runs whichever cadences are due at `now_ms`.
    """

    def __init__(self, config: PipelineConfig, sleep: Callable[[float], None] = time.sleep, start_ms: float = 0.0):
        self.config = config
        self.scheduler = SamplingScheduler(config.cardiac.period_ms, config.conductance.period_ms, start_ms)
        self.cardiac = CardiacChannel(config.cardiac)
        self.oversampler = Oversampler(config.conductance.oversample, config.conductance.settle_us, sleep=sleep)
        self.contact = ContactClassifier(config.conductance)
        self.encoder = TelemetryEncoder()

    def step(self, now_ms: float, source: AnalogSource) -> List[str]:
        lines: List[str] = []
        for channel in self.scheduler.due(now_ms):
            if channel is Channel.CARDIAC:
                sample = Sample(Channel.CARDIAC, source.read(Channel.CARDIAC), now_ms)
                record = self.cardiac.process(sample.raw, sample.timestamp_ms)
                lines.append(self.encoder.encode_cardiac(record))
            else:
                value = self.oversampler.read(lambda: source.read(Channel.CONDUCTANCE))
                reading = self.contact.update(value)
                lines.append(self.encoder.encode_conductance(reading.to_record()))
        return lines


class ProducerDevice:
    """Single cooperative loop that samples, extracts features and writes lines."""

    def __init__(
        self,
        config: PipelineConfig,
        source: AnalogSource,
        *,
        clock: Callable[[], float] = monotonic_ms,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.source = source
        self._clock = clock
        self._sleep = sleep
        self.context = ProducerContext(config, sleep=sleep, start_ms=clock())
        self.lines_written = 0

    def run(
        self,
        write_line: Callable[[str], None],
        duration_ms: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> int:
        start = self._clock()
        scheduler = self.context.scheduler
        scheduler.restart(start)
        logger.info(
            "Producer started (cardiac=%.1f ms, conductance=%.1f ms, oversample may block %.2f ms)",
            self.config.cardiac.period_ms,
            self.config.conductance.period_ms,
            self.context.oversampler.worst_case_ms,
        )
        warned_late = False
        try:
            while stop_event is None or not stop_event.is_set():
                now = self._clock()
                if duration_ms is not None and now - start >= duration_ms:
                    break
                for line in self.context.step(now, self.source):
                    write_line(line)
                    self.lines_written += 1
                if not warned_late and scheduler.stats()[Channel.CARDIAC.value]["late_ticks"]:
                    logger.warning("Cardiac cadence fell a full period behind; detection timing degrades")
                    warned_late = True
                wait_ms = scheduler.next_due_ms() - self._clock()
                if wait_ms > 0:
                    self._sleep(wait_ms / 1000.0)
        except KeyboardInterrupt:
            logger.info("Stopping producer (Ctrl+C)")
        finally:
            stats = scheduler.stats()
            encoded = self.context.encoder.stats()
            logger.info(
                "Producer stopped: cardiac_lines=%d conductance_lines=%d beats=%d cardiac_max_lag=%.2f ms late_ticks=%d",
                encoded[Channel.CARDIAC.value],
                encoded[Channel.CONDUCTANCE.value],
                self.context.cardiac.detector.beats,
                stats[Channel.CARDIAC.value]["max_lag_ms"],
                stats[Channel.CARDIAC.value]["late_ticks"],
            )
        return self.lines_written
