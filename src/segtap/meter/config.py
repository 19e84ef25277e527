from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Sequence

from .frames import FrameFormat
from .graph import GRAPH_CAPACITY, MAX_DECIMATION
from .labels import YScalePolicy
from .stats import DEFAULT_SAMPLE_COUNT, validate_sample_count


@dataclass
class GraphOptions:
    decimation: int = 0
    auto_decimate: bool = False
    y_scale: str = "zoom"  # zoom | zero | prefsym | 0sym | forcesym | 0forcesym
    capacity: int = GRAPH_CAPACITY

    @property
    def policy(self) -> YScalePolicy:
        try:
            return YScalePolicy(self.y_scale.lower())
        except ValueError:
            raise ValueError(f"Unsupported y_scale '{self.y_scale}'") from None


@dataclass
class LogOptions:
    enabled: bool = True
    samples_to_skip: int = 0
    include_stats: bool = False
    include_errors: bool = False
    split_unit: bool = False
    timestamp: bool = True


@dataclass
class HostRuntime:
    queue_maxsize: int = 512
    reconnect_initial_sec: float = 0.5
    reconnect_max_sec: float = 5.0
    stats_log_interval: float = 60.0
    binary_chunk_size: int = 256


@dataclass
class MeterConfig:
    sample_count: int = DEFAULT_SAMPLE_COUNT
    thermocouple: bool = False
    frame_format: str = "hex"  # hex | binary
    output_csv: Path | None = None
    graph: GraphOptions = field(default_factory=GraphOptions)
    log: LogOptions = field(default_factory=LogOptions)
    host: HostRuntime = field(default_factory=HostRuntime)

    @property
    def frame_format_enum(self) -> FrameFormat:
        fmt = self.frame_format.lower()
        if fmt not in {"hex", "binary"}:
            raise ValueError(f"Unsupported frame_format '{self.frame_format}'")
        return FrameFormat(fmt)

    def validate(self) -> "MeterConfig":
        validate_sample_count(self.sample_count)
        if not 0 <= self.graph.decimation <= MAX_DECIMATION:
            raise ValueError(f"graph.decimation must be within 0..{MAX_DECIMATION}")
        if self.graph.capacity < 2:
            raise ValueError("graph.capacity must be at least 2")
        if not 0 <= self.log.samples_to_skip <= 255:
            raise ValueError("log.samples_to_skip must be within 0..255")
        if self.graph.y_scale.lower() not in {p.value for p in YScalePolicy}:
            raise ValueError(f"Unsupported y_scale '{self.graph.y_scale}'")
        if self.frame_format.lower() not in {f.value for f in FrameFormat}:
            raise ValueError(f"Unsupported frame_format '{self.frame_format}'")
        return self


def _load_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {**base}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge(base[key], value)  # type: ignore[index]
        else:
            merged[key] = value
    return merged


def load_config(path: Path | str | None, overrides: Sequence[str] | None = None) -> MeterConfig:
    """
    Load the meter host configuration from JSON and apply CLI-style overrides.

    Overrides are dotted `key=value` pairs, e.g.:
        ["graph.decimation=4", "log.include_stats=true"]
    A missing *path* (None) starts from the built-in defaults.
    """
    data = _load_json(Path(path)) if path is not None else {}
    override_data: Dict[str, Any] = {}
    for override in overrides or []:
        key, raw_value = _parse_override(override)
        _assign_nested(override_data, key, raw_value)
    merged = _merge(data, override_data)
    graph_data = merged.get("graph") or {}
    log_data = merged.get("log") or {}
    host_data = merged.get("host") or {}
    config = MeterConfig(
        sample_count=int(merged.get("sample_count", DEFAULT_SAMPLE_COUNT)),
        thermocouple=bool(merged.get("thermocouple", False)),
        frame_format=str(merged.get("frame_format", "hex")),
        output_csv=Path(merged["output_csv"]) if merged.get("output_csv") else None,
        graph=GraphOptions(
            decimation=int(graph_data.get("decimation", 0)),
            auto_decimate=bool(graph_data.get("auto_decimate", False)),
            y_scale=str(graph_data.get("y_scale", "zoom")),
            capacity=int(graph_data.get("capacity", GRAPH_CAPACITY)),
        ),
        log=LogOptions(
            enabled=bool(log_data.get("enabled", True)),
            samples_to_skip=int(log_data.get("samples_to_skip", 0)),
            include_stats=bool(log_data.get("include_stats", False)),
            include_errors=bool(log_data.get("include_errors", False)),
            split_unit=bool(log_data.get("split_unit", False)),
            timestamp=bool(log_data.get("timestamp", True)),
        ),
        host=HostRuntime(
            queue_maxsize=int(host_data.get("queue_maxsize", 512)),
            reconnect_initial_sec=float(host_data.get("reconnect_initial_sec", 0.5)),
            reconnect_max_sec=float(host_data.get("reconnect_max_sec", 5.0)),
            stats_log_interval=float(host_data.get("stats_log_interval", 60.0)),
            binary_chunk_size=int(host_data.get("binary_chunk_size", 256)),
        ),
    )
    return config.validate()


def _parse_override(item: str) -> tuple[str, Any]:
    if "=" not in item:
        raise ValueError(f"Override '{item}' must use key=value syntax")
    key, raw_value = item.split("=", 1)
    key = key.strip()
    if not key:
        raise ValueError("Override key may not be empty")
    return key, _coerce_value(raw_value.strip())


def _coerce_value(raw: str) -> Any:
    if raw.lower() in {"true", "false"}:
        return raw.lower() == "true"
    try:
        if "." in raw or "e" in raw.lower():
            return float(raw)
        return int(raw)
    except ValueError:
        pass
    if (raw.startswith("[") and raw.endswith("]")) or (raw.startswith("{") and raw.endswith("}")):
        return json.loads(raw)
    return raw


def _assign_nested(target: Dict[str, Any], dotted_key: str, value: Any) -> None:
    cursor = target
    parts = dotted_key.split(".")
    for part in parts[:-1]:
        cursor = cursor.setdefault(part, {})
    cursor[parts[-1]] = value
