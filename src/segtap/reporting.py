"""Data logging of meter readings: firmware-style text lines and CSV export."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional, TextIO

import pandas as pd

from .meter.config import LogOptions
from .meter.device import MeterView

logger = logging.getLogger(__name__)

DISPLAY_WIDTH = 7
DISPLAY_LIMIT = 999999.0


def format_number(value: float) -> str:
    """
    Format *value* in the width of the meter display, keeping as many
    decimals as fit (1.23456, 12.3456, ... 123456).
    """
    value = min(max(value, -DISPLAY_LIMIT), DISPLAY_LIMIT)
    magnitude = abs(value)
    if magnitude <= 9.99999:
        decimals = 5
    elif magnitude <= 99.9999:
        decimals = 4
    elif magnitude <= 999.999:
        decimals = 3
    elif magnitude <= 9999.99:
        decimals = 2
    elif magnitude <= 99999.9:
        decimals = 1
    else:
        decimals = 0
    return f"{value:{DISPLAY_WIDTH}.{decimals}f}"


@dataclass
class LogRecord:
    ts_ms: float
    value: Optional[float]
    text: str
    unit: str
    ac: bool
    minimum: Optional[float] = None
    average: Optional[float] = None
    maximum: Optional[float] = None


class ReadingLogger:
    """
    Turn successive meter views into log lines.

    Mirrors the meter's serial data logger: every (skip + 1)th eligible
    reading is logged, non-numeric readings only when errors are included,
    and nothing is logged while the meter shows its calibration screen.
    With keep_records set, logged rows are kept for export via pandas;
    a long-running host without an export target leaves it off.
    """

    def __init__(
        self,
        options: LogOptions | None = None,
        stream: Optional[TextIO] = None,
        keep_records: bool = True,
    ):
        self.options = options or LogOptions()
        self.stream = stream
        self.keep_records = keep_records
        self.records: List[LogRecord] = []
        self._skip_counter = 0

    def log(self, view: MeterView, ts_ms: float) -> Optional[str]:
        opts = self.options
        if not opts.enabled or view.reading.annunciators.cal:
            return None
        if not view.is_numeric and not opts.include_errors:
            return None
        if self._skip_counter < opts.samples_to_skip:
            self._skip_counter += 1
            return None
        self._skip_counter = 0

        record = LogRecord(
            ts_ms=ts_ms,
            value=view.value if view.is_numeric else None,
            text=view.raw_message,
            unit=str(view.unit),
            ac=view.reading.annunciators.ac,
        )
        if opts.include_stats:
            record.minimum = view.minimum
            record.average = view.average
            record.maximum = view.maximum
        if self.keep_records:
            self.records.append(record)

        line = self.format_record(record)
        if self.stream is not None:
            self.stream.write(line + "\n")
            self.stream.flush()
        return line

    def format_record(self, record: LogRecord) -> str:
        sep = " ;" if self.options.split_unit else " "
        parts: List[str] = []
        if self.options.timestamp:
            parts.append(f"{int(record.ts_ms)}{sep}ms; ")
        number = format_number(record.value) if record.value is not None else record.text
        parts.append(f"{number}{sep}{record.unit}")
        if record.ac:
            parts.append(" AC")
        if self.options.include_stats and record.minimum is not None:
            for stat in (record.minimum, record.average, record.maximum):
                parts.append(f"; {format_number(stat)}{sep}{record.unit}")
        return "".join(parts)

    def to_frame(self) -> pd.DataFrame:
        columns = ["ts_ms", "value", "text", "unit", "ac", "minimum", "average", "maximum"]
        return pd.DataFrame([asdict(r) for r in self.records], columns=columns)

    def export_csv(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_frame().to_csv(path, index=False)
        logger.info("Wrote %d log rows to %s", len(self.records), path)
        return path
