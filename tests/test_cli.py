from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from pulselink.cli import app

runner = CliRunner()


def test_simulate_then_replay(tmp_path: Path) -> None:
    out = tmp_path / "session.txt"
    result = runner.invoke(app, ["simulate", "--virtual", "--seconds", "12", "--heart-rate", "75", "--out", str(out)])
    assert result.exit_code == 0, result.output
    lines = out.read_text(encoding="ascii").splitlines()
    assert lines[0].startswith("RAW ")
    assert any(line.startswith("Value2 ") for line in lines)

    result = runner.invoke(app, ["replay", "--in", str(out)])
    assert result.exit_code == 0, result.output
    assert "BPM:75" in result.output
    assert "mismatch:no" in result.output


def test_bad_override_is_reported() -> None:
    result = runner.invoke(app, ["simulate", "--virtual", "--seconds", "0.1", "--set", "cardiac.pulse_width_ms=900"])
    assert result.exit_code != 0


def test_monitor_rejects_empty_waveform_before_opening_port() -> None:
    result = runner.invoke(app, ["monitor", "--port", "-", "--set", "consumer.waveform_length=0"])
    assert result.exit_code == 2
    assert not isinstance(result.exception, ValueError)
