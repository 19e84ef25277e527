"""
Decoding and state keeping for a tapped seven-segment multimeter display.

Raw display frames (annunciator bytes plus segment bytes) are decoded into
readings, resolved into units, and folded into rolling statistics and a
decimated graph history. Axis labels for the graph and a hold snapshot of
the whole state are provided on top. The transport helpers (frame capture
formats, serial reader, host loop) live here too so the CLI stays thin.
"""

from .config import GraphOptions, HostRuntime, LogOptions, MeterConfig, load_config
from .decoder import Annunciators, DecodedReading, FrameDecoder
from .device import HoldSnapshot, MeterDevice, MeterView
from .diagnostics import DiagnosticEvent, DiagnosticKind, LoggingDiagnostics, RecordingDiagnostics
from .frames import FrameFormat, FrameParser, crc16_ccitt
from .graph import GraphBuffer, GraphDisplayData
from .labels import GraphLabel, GraphScale, YScalePolicy, compute_scale, format_label
from .runner import MeterHost
from .stats import StatisticsCache
from .units import UnitDescriptor, resolve_unit

__all__ = [
    "GraphOptions",
    "HostRuntime",
    "LogOptions",
    "MeterConfig",
    "load_config",
    "Annunciators",
    "DecodedReading",
    "FrameDecoder",
    "HoldSnapshot",
    "MeterDevice",
    "MeterView",
    "DiagnosticEvent",
    "DiagnosticKind",
    "LoggingDiagnostics",
    "RecordingDiagnostics",
    "FrameFormat",
    "FrameParser",
    "crc16_ccitt",
    "GraphBuffer",
    "GraphDisplayData",
    "GraphLabel",
    "GraphScale",
    "YScalePolicy",
    "compute_scale",
    "format_label",
    "MeterHost",
    "StatisticsCache",
    "UnitDescriptor",
    "resolve_unit",
]
