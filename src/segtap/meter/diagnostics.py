"""Side channel for protocol anomalies found while decoding."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Dict, List, Protocol

logger = logging.getLogger(__name__)


class DiagnosticKind(str, enum.Enum):
    WRONG_BYTE_COUNT = "wrong_byte_count"
    DUPLICATE_DECIMAL_POINT = "duplicate_decimal_point"
    FRAME_OVERFLOW = "frame_overflow"


@dataclass(frozen=True)
class DiagnosticEvent:
    kind: DiagnosticKind
    detail: str = ""
    byte_count: int = 0


class DiagnosticSink(Protocol):
    def report(self, event: DiagnosticEvent) -> None:
        ...


class LoggingDiagnostics:
    """Default sink: logs every event at DEBUG and keeps per-kind counters."""

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {kind.value: 0 for kind in DiagnosticKind}

    def report(self, event: DiagnosticEvent) -> None:
        self._counts[event.kind.value] += 1
        logger.debug("%s (n=%d) %s", event.kind.value, event.byte_count, event.detail)

    def stats(self) -> Dict[str, int]:
        return dict(self._counts)

    def reset(self) -> None:
        for key in self._counts:
            self._counts[key] = 0


class RecordingDiagnostics:
    """Keeps every reported event, handy for capture analysis."""

    def __init__(self) -> None:
        self.events: List[DiagnosticEvent] = []

    def report(self, event: DiagnosticEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[DiagnosticKind]:
        return [event.kind for event in self.events]


def emit(sink: DiagnosticSink, event: DiagnosticEvent) -> None:
    """Deliver *event* to *sink*; a failing sink never disturbs decoding."""
    try:
        sink.report(event)
    except Exception:
        logger.debug("Diagnostic sink failed for %s", event.kind.value, exc_info=True)
