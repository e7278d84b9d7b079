from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional


class RecordKind(str, enum.Enum):
    CARDIAC = "cardiac"
    CONDUCTANCE = "conductance"


@dataclass(frozen=True)
class CardiacRecord:
    raw: int
    bpm: int
    beat: int

    def to_line(self) -> str:
        return f"RAW {self.raw} BPM {self.bpm} Beat {self.beat}"


@dataclass(frozen=True)
class ConductanceRecord:
    filtered: float
    signal: float
    contact: bool

    def to_line(self) -> str:
        return f"Value2 {round(self.filtered)} Value4 {round(self.signal)} Contact {int(self.contact)}"


class TelemetryEncoder:
    """Turns feature records into wire lines, one line per record."""

    def __init__(self) -> None:
        self._stats: Dict[str, int] = {kind.value: 0 for kind in RecordKind}

    def encode_cardiac(self, record: CardiacRecord) -> str:
        self._stats[RecordKind.CARDIAC.value] += 1
        return record.to_line()

    def encode_conductance(self, record: ConductanceRecord) -> str:
        self._stats[RecordKind.CONDUCTANCE.value] += 1
        return record.to_line()

    def stats(self) -> Dict[str, int]:
        return dict(self._stats)


@dataclass(frozen=True)
class ParsedLine:
    raw: Optional[int] = None
    bpm: Optional[int] = None
    beat: Optional[int] = None
    filtered: Optional[int] = None
    signal: Optional[int] = None
    contact: Optional[int] = None

    @property
    def empty(self) -> bool:
        return all(
            value is None
            for value in (self.raw, self.bpm, self.beat, self.filtered, self.signal, self.contact)
        )


def _non_negative(value: int) -> bool:
    return value >= 0


def _binary(value: int) -> bool:
    return value in (0, 1)


def _any_int(value: int) -> bool:
    return True


# wire key (lower case) -> (ParsedLine field, accepted values)
FIELDS = {
    "raw": ("raw", _non_negative),
    "bpm": ("bpm", _any_int),
    "beat": ("beat", _binary),
    "value2": ("filtered", _any_int),
    "value4": ("signal", _any_int),
    "contact": ("contact", _binary),
}


class LineParser:
    """
    Tolerant field extraction for telemetry lines.

    Keys are matched case-insensitively and each consumes the next token only
    when it is an acceptable integer. Unknown or malformed tokens are skipped;
    a line without any recognised field parses to an empty ParsedLine.
    """

    def __init__(self) -> None:
        self._stats: Dict[str, int] = {"lines": 0, "empty": 0, "ignored_tokens": 0}
        self._log = logging.getLogger(__name__)

    def parse(self, line: str) -> ParsedLine:
        self._stats["lines"] += 1
        tokens = line.split()
        values: Dict[str, int] = {}
        ignored: List[str] = []
        idx = 0
        while idx < len(tokens):
            entry = FIELDS.get(tokens[idx].lower())
            if entry is not None and idx + 1 < len(tokens):
                name, accept = entry
                value = _parse_int(tokens[idx + 1])
                if value is not None and accept(value):
                    values.setdefault(name, value)
                    idx += 2
                    continue
            ignored.append(tokens[idx])
            idx += 1
        if ignored:
            self._stats["ignored_tokens"] += len(ignored)
            self._log.debug("Ignored tokens %s in line %r", ignored, line)
        parsed = ParsedLine(**values)
        if parsed.empty:
            self._stats["empty"] += 1
        return parsed

    def stats(self) -> Dict[str, int]:
        return dict(self._stats)


def _parse_int(token: str) -> Optional[int]:
    try:
        return int(token)
    except ValueError:
        return None


class LineAssembler:
    """
    Splits a decoded character stream into complete lines. The trailing partial
    line is held until its newline arrives; reset() drops it. A partial line
    longer than max_line characters is discarded so noise without newlines
    cannot grow the buffer.
    """

    def __init__(self, max_line: int = 256) -> None:
        if max_line < 1:
            raise ValueError("max_line must be at least 1")
        self.max_line = max_line
        self._buffer = ""
        self.dropped = 0
        self._log = logging.getLogger(__name__)

    def feed(self, text: str) -> List[str]:
        self._buffer += text
        parts = self._buffer.split("\n")
        self._buffer = parts.pop()
        lines: List[str] = []
        for part in parts:
            if len(part) > self.max_line:
                self._drop(len(part))
                continue
            lines.append(part.rstrip("\r").strip())
        if len(self._buffer) > self.max_line:
            self._drop(len(self._buffer))
            self._buffer = ""
        return lines

    def _drop(self, length: int) -> None:
        self.dropped += 1
        self._log.debug("Dropped %d characters without a line terminator", length)

    def feed_bytes(self, chunk: bytes) -> List[str]:
        return self.feed(chunk.decode("ascii", errors="ignore"))

    @property
    def pending(self) -> str:
        return self._buffer

    def reset(self) -> None:
        self._buffer = ""


def iterate_text_stream(handle: Iterable[str]) -> Iterator[str]:
    for line in handle:
        line = line.strip()
        if not line:
            continue
        yield line
