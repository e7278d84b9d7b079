"""Command line interface for the pulselink package."""
from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

import typer

from .config import PipelineConfig, load_config
from .consumer import ConsumerContext, ConsumerSnapshot, MonitorHost, SerialSettings, replay
from .producer import ProducerDevice, SyntheticSource, VirtualClock
from .producer.device import monotonic_ms

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, context_settings={"help_option_names": ["-h", "--help"]})

DEFAULT_CONFIG = Path("host/config.json")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (DEBUG, INFO, WARNING)."),
) -> None:
    """Cardiac / skin-conductance telemetry producer and monitor."""

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load(config_path: Optional[Path], preset: Optional[str], override: Optional[List[str]]) -> PipelineConfig:
    path = config_path
    if path is None and DEFAULT_CONFIG.exists():
        path = DEFAULT_CONFIG
    try:
        return load_config(path, override, preset=preset.lower() if preset else None)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc


ConfigOption = typer.Option(None, "--config", "-c", help="Path to pipeline config JSON.")
PresetOption = typer.Option(None, "--preset", "-P", help="Apply preset (rest|active) before other overrides.")
OverrideOption = typer.Option(
    None,
    "--set",
    help="Override config keys, e.g. --set cardiac.refractory_ms=500 --set consumer.window_sec=15",
)


@app.command()
def simulate(
    seconds: float = typer.Option(30.0, "--seconds", "-s", help="How long to run the producer."),
    heart_rate: float = typer.Option(72.0, "--heart-rate", help="Synthetic heart rate (bpm)."),
    no_pulse: bool = typer.Option(False, "--no-pulse", help="Flat cardiac channel (sensor removed)."),
    no_contact: bool = typer.Option(False, "--no-contact", help="Quiet conductance channel (no skin contact)."),
    virtual: bool = typer.Option(False, "--virtual", help="Run on a virtual clock as fast as possible."),
    seed: int = typer.Option(0, "--seed", help="Noise seed for the synthetic source."),
    out: Optional[Path] = typer.Option(None, "--out", help="Write lines to this file instead of stdout."),
    config_path: Optional[Path] = ConfigOption,
    preset: Optional[str] = PresetOption,
    override: Optional[List[str]] = OverrideOption,
) -> None:
    """Run the producer on a synthetic source and emit telemetry lines."""

    cfg = _load(config_path, preset, override)
    if virtual:
        clock = VirtualClock()
        now_ms, sleep = clock.now_ms, clock.sleep
    else:
        now_ms, sleep = monotonic_ms, time.sleep
    source = SyntheticSource(
        now_ms,
        heart_rate_bpm=heart_rate,
        pulse=not no_pulse,
        contact=not no_contact,
        seed=seed,
    )
    device = ProducerDevice(cfg, source, clock=now_ms, sleep=sleep)
    handle = out.open("w", encoding="ascii") if out else sys.stdout
    try:
        def write_line(line: str) -> None:
            handle.write(line + "\n")
            if not virtual:
                handle.flush()

        device.run(write_line, duration_ms=seconds * 1000.0)
    except BrokenPipeError:
        logger.info("Output closed by reader")
    finally:
        if out:
            handle.close()


@app.command()
def monitor(
    port: str = typer.Option("/dev/ttyACM0", "--port", "-p", help="Serial device. Use '-' to read from stdin."),
    baudrate: Optional[int] = typer.Option(None, "--baud", help="Serial baudrate (default from config)."),
    duration: Optional[float] = typer.Option(None, "--duration", help="Stop after N seconds."),
    config_path: Optional[Path] = ConfigOption,
    preset: Optional[str] = PresetOption,
    override: Optional[List[str]] = OverrideOption,
) -> None:
    """Read telemetry, derive local rate estimates and flag disagreement."""

    cfg = _load(config_path, preset, override)
    settings = SerialSettings(
        port=port,
        baudrate=baudrate or cfg.host.baudrate,
        timeout=cfg.host.timeout,
    )
    host = MonitorHost(settings, cfg)
    snapshot = host.run(duration_sec=duration)
    typer.echo(_describe(snapshot))


@app.command("replay")
def replay_cmd(
    input_path: Path = typer.Option(..., "--in", help="Recorded telemetry lines.", exists=True, readable=True),
    config_path: Optional[Path] = ConfigOption,
    preset: Optional[str] = PresetOption,
    override: Optional[List[str]] = OverrideOption,
) -> None:
    """Fold a recorded line file into a fresh consumer and print the final state."""

    cfg = _load(config_path, preset, override)
    context = ConsumerContext(cfg.consumer)
    with input_path.open("r", encoding="ascii", errors="ignore") as fh:
        snapshot = replay(fh, context, cardiac_period_ms=cfg.cardiac.period_ms)
    stats = context.parser.stats()
    typer.echo(f"lines={stats['lines']} empty={stats['empty']} ignored_tokens={stats['ignored_tokens']}")
    typer.echo(_describe(snapshot))


def _describe(snapshot: ConsumerSnapshot) -> str:
    def fmt(value: Optional[float]) -> str:
        return "-" if value is None else f"{value:.1f}"

    return (
        f"BPM:{snapshot.reported_bpm if snapshot.reported_bpm is not None else '-'}  "
        f"win:{fmt(snapshot.window_bpm)}  int:{fmt(snapshot.interval_bpm)}  "
        f"GSR:{snapshot.filtered if snapshot.filtered is not None else '-'}  "
        f"contact:{snapshot.contact}  mismatch:{'yes' if snapshot.mismatch else 'no'}"
    )


def run() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    run()
