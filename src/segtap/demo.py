"""Synthetic display captures for trying out the decoder without hardware."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import numpy as np

from .meter.config import LogOptions
from .meter.decoder import MID_MILLI_VOLT, MID_VOLT, PRE_AUTO, PRE_MINUS
from .meter.device import MeterDevice
from .meter.frames import format_hex_line
from .meter.labels import YScalePolicy
from .meter.segments import encode_text
from .plotting import plot_graph
from .reporting import ReadingLogger

logger = logging.getLogger(__name__)


def build_frame(text: str, pre: int = 0, mid: int = 0, post: int = 0) -> bytes:
    """
    Assemble a 9-byte display frame showing *text* (six glyphs, '.' allowed).
    """
    segments = encode_text(text)
    if len(segments) != 6:
        raise ValueError(f"Display text must hold 6 glyphs, got {text!r}")
    return bytes([pre, *segments, mid, post])


def display_text(value: float) -> str:
    """Six-digit rendition of abs(*value*) with as many decimals as fit."""
    magnitude = abs(value)
    for decimals in range(5, 0, -1):
        text = f"{magnitude:.{decimals}f}"
        if len(text) <= 7:
            return text
    return f"{magnitude:6.0f}"[-6:]


def voltage_frame(value: float, millivolt: bool = False) -> bytes:
    pre = PRE_AUTO | (PRE_MINUS if value < 0 else 0)
    mid = MID_VOLT | (MID_MILLI_VOLT if millivolt else 0)
    return build_frame(display_text(value), pre=pre, mid=mid)


def create_demo_frames(points: int = 400) -> List[bytes]:
    rng = np.random.default_rng(7)
    frames: List[bytes] = []
    t = np.arange(points)
    volts = 1.5 * np.sin(2 * np.pi * t / 150.0) + rng.normal(scale=0.01, size=points)
    for index, v in enumerate(volts):
        if abs(v) < 0.2:
            # autorange drops to the millivolt range near zero
            frames.append(voltage_frame(float(v) * 1000.0, millivolt=True))
        else:
            frames.append(voltage_frame(float(v)))
        if index == points // 2:
            frames.append(build_frame("   0L ", pre=PRE_AUTO, mid=MID_VOLT))
    return frames


def run_demo(out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    frames = create_demo_frames()
    capture_path = out_dir / "capture.hex"
    capture_path.write_text("\n".join(format_hex_line(f) for f in frames) + "\n", encoding="utf-8")

    device = MeterDevice(auto_decimate=True)
    data_logger = ReadingLogger(LogOptions(include_stats=True, include_errors=True, timestamp=True))
    for index, frame in enumerate(frames):
        device.process_frame(frame)
        data_logger.log(device.view(), ts_ms=index * 400.0)
    data_logger.export_csv(out_dir / "readings.csv")

    try:
        plot_graph(device.view(), out_dir / "graph.png", YScalePolicy.PREFER_SYMMETRIC)
    except RuntimeError as exc:
        logger.warning("plotting skipped: %s", exc)
