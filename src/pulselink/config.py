from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence


@dataclass
class CardiacConfig:
    period_ms: float = 4.0
    baseline_alpha: float = 0.001
    baseline_initial: float = 512.0
    threshold_offset: int = 50
    refractory_ms: float = 600.0
    pulse_width_ms: float = 120.0
    stale_ms: float = 5000.0
    interval_capacity: int = 6


@dataclass
class ConductanceConfig:
    period_ms: float = 100.0
    oversample: int = 16
    settle_us: float = 100.0
    filter_beta: float = 0.18
    baseline_decay: float = 0.997
    window: int = 40
    stddev_threshold: float = 2.0
    deviation_threshold: float = 6.0

    @property
    def worst_case_block_ms(self) -> float:
        """Upper bound on time spent inside one oversampled read."""
        return self.oversample * self.settle_us / 1000.0


@dataclass
class ConsumerConfig:
    min_beat_gap_ms: float = 250.0
    window_sec: float = 10.0
    interval_capacity: int = 6
    mismatch_margin: float = 15.0
    waveform_length: int = 800


@dataclass
class HostRuntime:
    baudrate: int = 115200
    timeout: float = 0.5
    chunk_size: int = 256
    reconnect_initial_sec: float = 0.5
    reconnect_max_sec: float = 5.0
    stats_log_interval: float = 60.0
    presentation_hz: float = 60.0


@dataclass
class PipelineConfig:
    cardiac: CardiacConfig = field(default_factory=CardiacConfig)
    conductance: ConductanceConfig = field(default_factory=ConductanceConfig)
    consumer: ConsumerConfig = field(default_factory=ConsumerConfig)
    host: HostRuntime = field(default_factory=HostRuntime)

    def validate(self) -> "PipelineConfig":
        cardiac = self.cardiac
        conductance = self.conductance
        if cardiac.period_ms <= 0 or conductance.period_ms <= 0:
            raise ValueError("Cadence periods must be positive")
        if cardiac.pulse_width_ms >= cardiac.refractory_ms:
            raise ValueError(
                f"cardiac.pulse_width_ms ({cardiac.pulse_width_ms}) must be below "
                f"cardiac.refractory_ms ({cardiac.refractory_ms})"
            )
        if cardiac.interval_capacity < 1 or self.consumer.interval_capacity < 1:
            raise ValueError("Interval ring capacity must be at least 1")
        if conductance.oversample < 1 or conductance.window < 1:
            raise ValueError("conductance.oversample and conductance.window must be at least 1")
        if conductance.worst_case_block_ms >= cardiac.period_ms:
            raise ValueError(
                f"Oversampled read may block {conductance.worst_case_block_ms:.2f} ms, "
                f"which does not fit in the {cardiac.period_ms:.2f} ms cardiac period"
            )
        if self.consumer.min_beat_gap_ms <= 0 or self.consumer.window_sec <= 0:
            raise ValueError("consumer.min_beat_gap_ms and consumer.window_sec must be positive")
        if self.consumer.waveform_length < 1:
            raise ValueError("consumer.waveform_length must be at least 1")
        if self.consumer.mismatch_margin < 0:
            raise ValueError("consumer.mismatch_margin must not be negative")
        return self


PRESETS: Dict[str, Dict[str, Any]] = {
    "rest": {
        "cardiac": {"refractory_ms": 600.0, "threshold_offset": 50},
        "consumer": {"min_beat_gap_ms": 250.0, "mismatch_margin": 15.0},
    },
    "active": {
        "cardiac": {"refractory_ms": 330.0, "threshold_offset": 70},
        "consumer": {"min_beat_gap_ms": 250.0, "mismatch_margin": 20.0},
    },
}


def preset_overrides(preset: str) -> list[str]:
    try:
        data = PRESETS[preset]
    except KeyError as exc:
        raise ValueError(f"Unknown preset '{preset}'. Expected one of {sorted(PRESETS)}") from exc
    return [
        f"{section}.{key}={value}"
        for section, values in data.items()
        for key, value in values.items()
    ]


def _load_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {**base}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge(base[key], value)
        else:
            merged[key] = value
    return merged


def _build_section(cls: type, section: str, data: Dict[str, Any]) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"Config section '{section}' must be an object")
    known = {f.name: f for f in dataclasses.fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ValueError(f"Unknown key(s) in '{section}': {sorted(unknown)}")
    defaults = cls()
    kwargs: Dict[str, Any] = {}
    for name, value in data.items():
        kind = type(getattr(defaults, name))
        if kind is int and isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{section}.{name} expects {kind.__name__}, got {value!r}")
        try:
            kwargs[name] = kind(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{section}.{name} expects {kind.__name__}, got {value!r}") from exc
    return cls(**kwargs)


def load_config(
    path: Path | str | None = None,
    overrides: Sequence[str] | None = None,
    preset: Optional[str] = None,
) -> PipelineConfig:
    """
    Load a pipeline configuration from JSON and apply CLI-style overrides.

    Without a path the built-in defaults are used. A preset is applied before
    the explicit overrides, which are dotted `key=value` pairs, e.g.:
        ["cardiac.refractory_ms=500", "consumer.window_sec=15"]
    """
    data: Dict[str, Any] = _load_json(Path(path)) if path is not None else {}
    items = list(preset_overrides(preset)) if preset else []
    items.extend(overrides or [])
    override_data: Dict[str, Any] = {}
    for item in items:
        key, value = _parse_override(item)
        _assign_nested(override_data, key, value)
    merged = _merge(data, override_data)
    sections = {f.name: f for f in dataclasses.fields(PipelineConfig)}
    unknown = set(merged) - set(sections)
    if unknown:
        raise ValueError(f"Unknown config section(s): {sorted(unknown)}")
    config = PipelineConfig(
        cardiac=_build_section(CardiacConfig, "cardiac", merged.get("cardiac", {})),
        conductance=_build_section(ConductanceConfig, "conductance", merged.get("conductance", {})),
        consumer=_build_section(ConsumerConfig, "consumer", merged.get("consumer", {})),
        host=_build_section(HostRuntime, "host", merged.get("host", {})),
    )
    return config.validate()


def _parse_override(item: str) -> tuple[str, Any]:
    if "=" not in item:
        raise ValueError(f"Override '{item}' must use key=value syntax")
    key, raw_value = item.split("=", 1)
    key = key.strip()
    if not key or "." not in key:
        raise ValueError(f"Override key '{key}' must name a section, e.g. cardiac.refractory_ms")
    return key, _coerce_value(raw_value.strip())


def _coerce_value(raw: str) -> Any:
    if raw.lower() in {"true", "false"}:
        return raw.lower() == "true"
    try:
        if "." in raw or "e" in raw.lower():
            return float(raw)
        return int(raw)
    except ValueError:
        return raw


def _assign_nested(target: Dict[str, Any], dotted_key: str, value: Any) -> None:
    cursor = target
    parts = dotted_key.split(".")
    for part in parts[:-1]:
        cursor = cursor.setdefault(part, {})
    cursor[parts[-1]] = value
