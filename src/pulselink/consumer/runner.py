from __future__ import annotations

import logging
import sys
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

try:
    import serial  # type: ignore[import]
except ImportError:  # pragma: no cover - handled in CLI validation
    serial = None  # type: ignore[assignment]

from ..config import PipelineConfig
from ..telemetry import LineAssembler, iterate_text_stream
from .state import ConsumerContext, ConsumerSnapshot

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class SerialSettings:
    port: str
    baudrate: int = 115200
    timeout: float = 0.5


class MonitorReaderThread(threading.Thread):
    """
    The single writer of consumer state: reads the serial stream, assembles
    lines, folds them into the context and publishes the latest snapshot.
    A lost connection drops the partial line and reconnects with backoff.
    """

    def __init__(
        self,
        settings: SerialSettings,
        config: PipelineConfig,
        context: Optional[ConsumerContext] = None,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        super().__init__(daemon=True)
        self.settings = settings
        self.config = config
        self.context = context or ConsumerContext(config.consumer)
        self.assembler = LineAssembler()
        self._clock = clock
        self._stop_event = threading.Event()
        self._serial_handle = None
        self._lines = 0
        self._reconnects = 0
        self._connected_once = False
        self._latest: ConsumerSnapshot = self.context.snapshot()
        self.last_exception: Optional[Exception] = None
        self._log = logging.getLogger(__name__)

    def run(self) -> None:  # pragma: no cover - exercised via integration-style tests
        initial_delay = max(self.config.host.reconnect_initial_sec, 0.01)
        max_delay = max(self.config.host.reconnect_max_sec, initial_delay)
        backoff = initial_delay
        while not self._stop_event.is_set():
            self._serial_handle = None
            try:
                self._serial_handle = self._open_serial()
                if self._connected_once:
                    self._reconnects += 1
                    self._log.info("Reconnected to %s", self.settings.port)
                else:
                    self._log.info("Connected to %s", self.settings.port)
                    self._connected_once = True
                self.last_exception = None
                backoff = initial_delay
                self.assembler.reset()
                self._read_loop()
            except serial.SerialException as exc:  # type: ignore[union-attr]
                self.last_exception = exc
                self._log.warning("Serial error (%s): %s", self.settings.port, exc)
            except Exception as exc:
                self.last_exception = exc
                self._log.exception("Unexpected error in monitor reader")
            finally:
                self.assembler.reset()
                if self._serial_handle is not None:
                    try:
                        self._serial_handle.close()
                    except Exception:
                        self._log.debug("Error while closing %s", self.settings.port, exc_info=True)
                    self._serial_handle = None
            if self._stop_event.is_set():
                break
            wait_time = min(backoff, max_delay)
            self._log.info("Reconnecting in %.1fs", wait_time)
            self._stop_event.wait(wait_time)
            backoff = min(backoff * 2, max_delay)

    def _read_loop(self) -> None:
        chunk_size = max(self.config.host.chunk_size, 1)
        while not self._stop_event.is_set():
            chunk = self._serial_handle.read(chunk_size)
            if not chunk:
                continue
            for line in self.assembler.feed_bytes(chunk):
                self.feed(line)

    def feed(self, line: str) -> None:
        if not line:
            return
        self.context.feed_line(line, self._clock())
        self._lines += 1
        self._latest = self.context.snapshot()

    def latest(self) -> ConsumerSnapshot:
        return self._latest

    def stop(self) -> None:
        self._stop_event.set()
        if self._serial_handle is not None:
            try:
                self._serial_handle.close()
            except Exception:
                self._log.debug("Error while closing %s", self.settings.port, exc_info=True)

    def stats(self) -> dict[str, int]:
        stats = self.context.parser.stats()
        stats["fed"] = self._lines
        stats["reconnects"] = self._reconnects
        stats["dropped_partial"] = self.assembler.dropped
        return stats

    def _open_serial(self):
        if serial is None:
            raise ImportError("pyserial is required but not installed.")
        return serial.Serial(
            port=self.settings.port,
            baudrate=self.settings.baudrate,
            timeout=self.settings.timeout,
        )


class MonitorHost:
    """Runs the reader and samples its snapshot on an independent presentation clock."""

    def __init__(
        self,
        settings: SerialSettings,
        config: PipelineConfig,
        on_snapshot: Optional[Callable[[ConsumerSnapshot], None]] = None,
    ):
        self.settings = settings
        self.config = config
        self.on_snapshot = on_snapshot
        self.reader = MonitorReaderThread(settings, config)
        self._mismatch = False

    def run(self, duration_sec: Optional[float] = None) -> ConsumerSnapshot:
        if self.settings.port == "-":
            return self._run_from_stream(iterate_text_stream(sys.stdin))

        reader = self.reader
        reader.start()
        period = 1.0 / max(self.config.host.presentation_hz, 1.0)
        interval_sec = max(float(self.config.host.stats_log_interval), 5.0)
        started = time.monotonic()
        next_log = started + interval_sec
        try:
            while duration_sec is None or time.monotonic() - started < duration_sec:
                self._present(reader.latest())
                if time.monotonic() >= next_log:
                    self._log_stats()
                    next_log = time.monotonic() + interval_sec
                time.sleep(period)
        except KeyboardInterrupt:
            logger.info("Stopping monitor (Ctrl+C)")
        finally:
            reader.stop()
            reader.join(timeout=5)
            self._log_stats(final=True)
        return reader.latest()

    def _run_from_stream(self, lines: Iterable[str]) -> ConsumerSnapshot:
        for line in lines:
            self.reader.feed(line)
            self._present(self.reader.latest())
        self._log_stats(final=True)
        return self.reader.latest()

    def _present(self, snapshot: ConsumerSnapshot) -> None:
        if snapshot.mismatch != self._mismatch:
            self._mismatch = snapshot.mismatch
            if snapshot.mismatch:
                logger.warning(
                    "Rate mismatch: reported=%s window=%.1f",
                    snapshot.reported_bpm,
                    snapshot.window_bpm or 0.0,
                )
            else:
                logger.info("Rate estimates agree again")
        if self.on_snapshot is not None:
            self.on_snapshot(snapshot)

    def _log_stats(self, final: bool = False) -> None:
        stats = self.reader.stats()
        snapshot = self.reader.latest()
        logger.info(
            "%slines=%d ignored_tokens=%d reconnects=%d reported=%s window=%s interval=%s contact=%d",
            "Final stats: " if final else "",
            stats.get("fed", 0),
            stats.get("ignored_tokens", 0),
            stats.get("reconnects", 0),
            snapshot.reported_bpm,
            _fmt(snapshot.window_bpm),
            _fmt(snapshot.interval_bpm),
            snapshot.contact,
        )


def _fmt(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.1f}"
