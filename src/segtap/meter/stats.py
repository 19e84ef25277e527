from __future__ import annotations

import copy
import logging
from typing import Optional

from .decoder import DecodedReading
from .units import UnitDescriptor

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_COUNT = 10
MAX_SAMPLE_COUNT = 255


def validate_sample_count(n: int) -> int:
    if not 1 <= int(n) <= MAX_SAMPLE_COUNT:
        raise ValueError(f"sample count must be within 1..{MAX_SAMPLE_COUNT}, got {n}")
    return int(n)


class StatisticsCache:
    """
    Rolling average, minimum and maximum of the numeric readings.

    The average is an exponential moving average with weight 1/sample_count,
    so changing the sample count only affects future updates. When the unit
    prefix changes (mV -> V) the accumulated values are rescaled into the new
    unit; when the measured quantity itself changes they are reset.
    """

    def __init__(self, sample_count: int = DEFAULT_SAMPLE_COUNT):
        self.sample_count = validate_sample_count(sample_count)
        self.average = 0.0
        self.minimum = 0.0
        self.maximum = 0.0
        self.unit: Optional[UnitDescriptor] = None
        self._last_value = 0.0
        self._seen_numeric = False
        self._primed = False

    def set_sample_count(self, n: int) -> None:
        self.sample_count = validate_sample_count(n)

    def conversion_factor(self, unit: UnitDescriptor) -> Optional[float]:
        """
        Factor converting accumulated values into *unit*.

        Returns None when the values cannot be carried over (different
        quantity, or nothing accumulated yet).
        """
        if self.unit is None or not self._primed:
            return None
        if self.unit.quantity != unit.quantity:
            return None
        if self.unit.pow10 == unit.pow10:
            return 1.0
        return 10.0 ** (self.unit.pow10 - unit.pow10)

    def update(self, reading: DecodedReading, unit: UnitDescriptor) -> None:
        if not reading.is_numeric:
            return
        value = reading.value
        self._last_value = value
        self._seen_numeric = True
        factor = self.conversion_factor(unit)
        if factor is None:
            if self._primed:
                logger.debug("Unit changed %s -> %s, statistics reset", self.unit, unit)
            self.unit = unit
            self.reset()
            return
        if factor != 1.0:
            self.rescale(factor)
            self.unit = unit
        self.average += (value - self.average) / self.sample_count
        if value < self.minimum:
            self.minimum = value
        if value > self.maximum:
            self.maximum = value

    def invalidate(self) -> None:
        """Forget the shadow unit; the next numeric reading restarts the statistics."""
        self.unit = None

    def reset(self) -> None:
        self.average = self._last_value
        self.minimum = self._last_value
        self.maximum = self._last_value
        self._primed = self._seen_numeric

    def rescale(self, factor: float) -> None:
        self.average *= factor
        self.minimum *= factor
        self.maximum *= factor

    def copy(self) -> "StatisticsCache":
        return copy.copy(self)
