from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from .decoder import DecodedReading, FrameDecoder, RawFrame
from .diagnostics import DiagnosticSink
from .graph import GRAPH_CAPACITY, GraphBuffer, GraphDisplayData, fill_display_data
from .labels import YScalePolicy
from .stats import DEFAULT_SAMPLE_COUNT, StatisticsCache
from .units import NO_UNIT, UnitDescriptor, resolve_unit

logger = logging.getLogger(__name__)


@dataclass
class MeterView:
    """Read-only accessors over one reading with its statistics and graph."""

    reading: DecodedReading = field(default_factory=DecodedReading)
    unit: UnitDescriptor = NO_UNIT
    stats: StatisticsCache = field(default_factory=StatisticsCache)
    graph: GraphBuffer = field(default_factory=GraphBuffer)
    thermocouple: bool = False

    @property
    def message(self) -> str:
        return self.reading.message

    @property
    def raw_message(self) -> str:
        return self.reading.raw_message

    @property
    def decimal_point_mask(self) -> int:
        return self.reading.decimal_point_mask

    def is_decimal_point_on(self, position: int) -> bool:
        return self.reading.is_decimal_point_on(position)

    @property
    def is_numeric(self) -> bool:
        return self.reading.is_numeric

    @property
    def is_overrange(self) -> bool:
        return self.reading.is_overrange

    @property
    def value(self) -> float:
        return self.reading.value

    @property
    def average(self) -> float:
        return self.stats.average

    @property
    def minimum(self) -> float:
        return self.stats.minimum

    @property
    def maximum(self) -> float:
        return self.stats.maximum

    @property
    def graph_size(self) -> int:
        return self.graph.count

    def graph_value(self, logical: int) -> float:
        return self.graph.get(logical)

    def graph_average(self, start: int, num_points: int) -> float:
        return self.graph.average(start, num_points)

    def graph_display(
        self, x_size: int = GRAPH_CAPACITY, y_size: int = 63, policy: YScalePolicy = YScalePolicy.ZOOM
    ) -> GraphDisplayData:
        return fill_display_data(self.graph, x_size, y_size, policy)


class HoldSnapshot(MeterView):
    """Frozen copy of the live view, taken when hold mode is entered."""

    @classmethod
    def capture(
        cls,
        reading: DecodedReading,
        unit: UnitDescriptor,
        stats: StatisticsCache,
        graph: GraphBuffer,
        thermocouple: bool = False,
    ) -> "HoldSnapshot":
        return cls(
            reading=reading,
            unit=unit,
            stats=stats.copy(),
            graph=graph.copy(),
            thermocouple=thermocouple,
        )


class MeterDevice:
    """
    Owner of the decode -> statistics -> graph pipeline.

    One frame is processed per call to process_frame(). The update sequence
    and all accessors share a lock, so readers on other threads always see a
    complete update. Accessors take a ``hold`` flag selecting the snapshot
    captured by set_hold(True); without a snapshot the live view is returned.
    """

    def __init__(
        self,
        *,
        sample_count: int = DEFAULT_SAMPLE_COUNT,
        decimation: int = 0,
        auto_decimate: bool = False,
        thermocouple: bool = False,
        diagnostics: Optional[DiagnosticSink] = None,
        graph_capacity: int = GRAPH_CAPACITY,
    ):
        self.decoder = FrameDecoder(diagnostics)
        self._live = MeterView(
            stats=StatisticsCache(sample_count),
            graph=GraphBuffer(graph_capacity, decimation, auto_decimate),
            thermocouple=thermocouple,
        )
        self._snapshot: Optional[HoldSnapshot] = None
        self._mode_flags: Optional[int] = None
        self._lock = threading.RLock()
        self._processed = 0

    def process_frame(self, frame: RawFrame, byte_count: Optional[int] = None) -> DecodedReading:
        reading = self.decoder.decode(frame, byte_count)
        with self._lock:
            live = self._live
            unit = resolve_unit(reading.annunciators, live.thermocouple)
            live.reading = reading
            live.unit = unit
            self._processed += 1
            if not reading.is_numeric:
                return reading
            mode_flags = reading.annunciators.mode_flags()
            factor = live.stats.conversion_factor(unit)
            if self._mode_flags is not None and mode_flags != self._mode_flags:
                logger.debug("Mode flags changed, statistics reset")
                factor = None
                live.stats.invalidate()
            self._mode_flags = mode_flags
            if factor is None:
                live.graph.reset()
            elif factor != 1.0:
                live.graph.rescale(factor)
            live.stats.update(reading, unit)
            live.graph.push(reading.value)
        return reading

    def view(self, hold: bool = False) -> MeterView:
        with self._lock:
            if hold and self._snapshot is not None:
                return self._snapshot
            return self._live

    def snapshot(self) -> HoldSnapshot:
        """Consistent copy of the live state, independent of hold mode."""
        with self._lock:
            live = self._live
            return HoldSnapshot.capture(live.reading, live.unit, live.stats, live.graph, live.thermocouple)

    # Configuration surface

    def set_hold(self, hold: bool) -> None:
        with self._lock:
            if not hold:
                self._snapshot = None
            elif self._snapshot is None:
                # an active hold keeps its snapshot until released
                self._snapshot = self.snapshot()
                logger.debug("Hold on")

    @property
    def hold(self) -> bool:
        return self._snapshot is not None

    def set_sample_count(self, n: int) -> None:
        with self._lock:
            self._live.stats.set_sample_count(n)

    def set_decimation(self, samples_to_skip: int) -> None:
        with self._lock:
            self._live.graph.set_decimation(samples_to_skip)

    def set_auto_decimate(self, enabled: bool) -> None:
        with self._lock:
            self._live.graph.set_auto_decimate(enabled)

    def set_thermocouple_mode(self, enabled: bool) -> None:
        with self._lock:
            self._live.thermocouple = bool(enabled)

    def reset_statistics(self) -> None:
        with self._lock:
            self._live.stats.reset()
            self._live.graph.reset()

    # Accessors

    def message(self, hold: bool = False) -> str:
        return self.view(hold).message

    def raw_message(self, hold: bool = False) -> str:
        return self.view(hold).raw_message

    def is_decimal_point_on(self, position: int, hold: bool = False) -> bool:
        return self.view(hold).is_decimal_point_on(position)

    def unit(self, hold: bool = False) -> UnitDescriptor:
        return self.view(hold).unit

    def value(self, hold: bool = False) -> float:
        return self.view(hold).value

    def average(self, hold: bool = False) -> float:
        with self._lock:
            return self.view(hold).average

    def minimum(self, hold: bool = False) -> float:
        with self._lock:
            return self.view(hold).minimum

    def maximum(self, hold: bool = False) -> float:
        with self._lock:
            return self.view(hold).maximum

    def graph_size(self, hold: bool = False) -> int:
        with self._lock:
            return self.view(hold).graph_size

    def graph_value(self, logical: int, hold: bool = False) -> float:
        with self._lock:
            return self.view(hold).graph_value(logical)

    def graph_display(
        self,
        x_size: int = GRAPH_CAPACITY,
        y_size: int = 63,
        policy: YScalePolicy = YScalePolicy.ZOOM,
        hold: bool = False,
    ) -> GraphDisplayData:
        with self._lock:
            return self.view(hold).graph_display(x_size, y_size, policy)

    def stats(self) -> Dict[str, int]:
        stats = self.decoder.stats()
        stats["processed"] = self._processed
        return stats
