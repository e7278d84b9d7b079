from __future__ import annotations

from pulselink.telemetry import (
    CardiacRecord,
    ConductanceRecord,
    LineAssembler,
    LineParser,
    ParsedLine,
    TelemetryEncoder,
)


def test_encoder_emits_fixed_order_lines() -> None:
    encoder = TelemetryEncoder()
    assert encoder.encode_cardiac(CardiacRecord(raw=612, bpm=72, beat=1)) == "RAW 612 BPM 72 Beat 1"
    line = encoder.encode_conductance(ConductanceRecord(filtered=234.6, signal=-3.2, contact=False))
    assert line == "Value2 235 Value4 -3 Contact 0"
    assert encoder.stats() == {"cardiac": 1, "conductance": 1}


def test_parse_cardiac_line() -> None:
    parsed = LineParser().parse("RAW 612 BPM 72 Beat 1")
    assert parsed == ParsedLine(raw=612, bpm=72, beat=1)
    assert parsed.contact is None
    assert parsed.filtered is None


def test_parse_conductance_line() -> None:
    parsed = LineParser().parse("Value2 235 Value4 -3 Contact 0")
    assert parsed.filtered == 235
    assert parsed.signal == -3
    assert parsed.contact == 0
    assert parsed.raw is None
    assert parsed.bpm is None
    assert parsed.beat is None


def test_unknown_tokens_do_not_break_the_line() -> None:
    parser = LineParser()
    parsed = parser.parse("RAW 600 FOO bar")
    assert parsed.raw == 600
    assert parser.stats()["ignored_tokens"] == 2


def test_keys_are_case_insensitive_and_whitespace_tolerant() -> None:
    parsed = LineParser().parse("  raw 10   bpm 61 BEAT 0   \t ")
    assert parsed == ParsedLine(raw=10, bpm=61, beat=0)


def test_malformed_values_are_skipped() -> None:
    parsed = LineParser().parse("RAW abc BPM 72 Beat 7 Contact")
    assert parsed.raw is None
    assert parsed.bpm == 72
    assert parsed.beat is None
    assert parsed.contact is None


def test_negative_raw_is_rejected() -> None:
    assert LineParser().parse("RAW -5").empty


def test_first_occurrence_wins() -> None:
    assert LineParser().parse("BPM 70 BPM 90").bpm == 70


def test_empty_and_unrecognised_lines_are_noops() -> None:
    parser = LineParser()
    assert parser.parse("").empty
    assert parser.parse("hello world").empty
    stats = parser.stats()
    assert stats["lines"] == 2
    assert stats["empty"] == 2


def test_assembler_holds_partial_line_until_newline() -> None:
    assembler = LineAssembler()
    assert assembler.feed_bytes(b"RAW 612 BPM 7") == []
    assert assembler.pending == "RAW 612 BPM 7"
    lines = assembler.feed_bytes(b"2 Beat 1\r\nValue2 235 Value4 -3 Contact 0\nRAW")
    assert lines == ["RAW 612 BPM 72 Beat 1", "Value2 235 Value4 -3 Contact 0"]
    assert assembler.pending == "RAW"


def test_assembler_reset_drops_partial_line() -> None:
    assembler = LineAssembler()
    assembler.feed("RAW 61")
    assembler.reset()
    assert assembler.feed("0 BPM 72 Beat 0\n") == ["0 BPM 72 Beat 0"]
    assert LineParser().parse("0 BPM 72 Beat 0").raw is None


def test_assembler_discards_overlong_partial_line() -> None:
    assembler = LineAssembler(max_line=256)
    noise = b"\x00garbage-without-newline" * 10
    for _ in range(1000):
        assert assembler.feed_bytes(noise) == []
        assert len(assembler.pending) <= 256
    assert assembler.dropped > 0
    lines = assembler.feed_bytes(b"\nRAW 612 BPM 72 Beat 1\n")
    parsed = LineParser().parse(lines[-1])
    assert (parsed.raw, parsed.bpm, parsed.beat) == (612, 72, 1)


def test_assembler_drops_complete_line_over_bound() -> None:
    assembler = LineAssembler(max_line=16)
    assert assembler.feed("X" * 10 + "\n" + "Y" * 20 + "\nRAW 1\n") == ["X" * 10, "RAW 1"]
    assert assembler.dropped == 1
