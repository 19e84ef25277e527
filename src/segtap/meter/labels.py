"""
Axis labels and y-axis autoscaling for the graph view.

A label is a mantissa/exponent pair. Scales are snapped to the 1-2-5 series so
the axis text stays short ("200m", "5k").
"""
from __future__ import annotations

import enum
import functools
import math
from dataclasses import dataclass
from typing import NamedTuple

SCALE_LOG_MIN = -6
SCALE_LOG_MAX = 6
SCALE_VALUE_MIN = 1e-6

LABEL_PREFIXES = ("n", "µ", "m", "", "k", "M", "G")


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class GraphLabel:
    mantissa: int = 0
    exponent: int = 0

    def value(self) -> float:
        return self.mantissa * 10.0**self.exponent

    def is_normalized(self) -> bool:
        return abs(self.mantissa) < 10

    def is_positive(self) -> bool:
        return self.mantissa > 0

    def is_negative(self) -> bool:
        return self.mantissa < 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GraphLabel):
            return NotImplemented
        if self.is_normalized() and other.is_normalized():
            if self.mantissa == 0 and other.mantissa == 0:
                return True
            return self.mantissa == other.mantissa and self.exponent == other.exponent
        return self.value() == other.value()

    def __lt__(self, other: "GraphLabel") -> bool:
        if not isinstance(other, GraphLabel):
            return NotImplemented
        return self.value() < other.value()

    def __hash__(self) -> int:
        return hash(self.value())

    def __neg__(self) -> "GraphLabel":
        return GraphLabel(-self.mantissa, self.exponent)

    def __abs__(self) -> "GraphLabel":
        return GraphLabel(abs(self.mantissa), self.exponent)

    def increment(self) -> "GraphLabel":
        """Multiply by ten (exponent + 1), mantissa unchanged."""
        return GraphLabel(self.mantissa, self.exponent + 1)

    def decrement(self) -> "GraphLabel":
        return GraphLabel(self.mantissa, self.exponent - 1)

    def __float__(self) -> float:
        return self.value()


ZERO_LABEL = GraphLabel(0, 0)


class YScalePolicy(str, enum.Enum):
    ZOOM = "zoom"
    INCLUDE_ZERO = "zero"
    PREFER_SYMMETRIC = "prefsym"
    ZERO_AND_SYMMETRIC = "0sym"
    FORCE_SYMMETRIC = "forcesym"
    ZERO_AND_FORCE_SYMMETRIC = "0forcesym"


class GraphScale(NamedTuple):
    low: GraphLabel
    high: GraphLabel
    includes_zero: bool


def log10_ceiling(x: float) -> int:
    """Smallest p (clamped to [-6, 6]) with |x| < 10**p."""
    x = abs(x)
    if x <= SCALE_VALUE_MIN:
        return SCALE_LOG_MIN
    for p in range(SCALE_LOG_MIN, SCALE_LOG_MAX):
        if x < 10.0**p:
            return p
    return SCALE_LOG_MAX


def label_above(x: float) -> GraphLabel:
    """1-2-5 series label at or above x."""
    if not math.isfinite(x):
        raise ValueError(f"Cannot scale non-finite value {x!r}")
    if x == 0:
        return GraphLabel(0, SCALE_LOG_MIN)
    p = log10_ceiling(x)
    norm = x * 10.0 ** (-p)
    if norm > 0:
        if norm < 0.2:
            label = GraphLabel(2, p - 1)
        elif norm < 0.5:
            label = GraphLabel(5, p - 1)
        else:
            label = GraphLabel(1, p)
    else:
        if norm < -0.5:
            label = GraphLabel(-5, p - 1)
        elif norm < -0.2:
            label = GraphLabel(-2, p - 1)
        else:
            label = GraphLabel(-1, p - 1)
    while label.value() < x:
        label = _next_up(label)
    return label


def label_below(x: float) -> GraphLabel:
    """1-2-5 series label at or below x."""
    return -label_above(-x)


def _next_up(label: GraphLabel) -> GraphLabel:
    m, e = label.mantissa, label.exponent
    if m == 0:
        return GraphLabel(1, SCALE_LOG_MIN)
    if m > 0:
        return {1: GraphLabel(2, e), 2: GraphLabel(5, e)}.get(m, GraphLabel(1, e + 1))
    return {-5: GraphLabel(-2, e), -2: GraphLabel(-1, e)}.get(m, GraphLabel(-5, e - 1))


def compute_scale(minimum: float, maximum: float, policy: YScalePolicy = YScalePolicy.ZOOM) -> GraphScale:
    """
    Pick normalized axis labels covering [minimum, maximum].

    The symmetric policies mirror the larger bound; FORCE_SYMMETRIC does so
    even when the data does not straddle zero.
    """
    low = label_below(minimum)
    high = label_above(maximum)

    if low == high:
        if high.is_positive():
            high = high.increment()
            low = low.decrement()
        elif high.is_negative():
            high = high.decrement()
            low = low.increment()
        else:
            high = GraphLabel(1, SCALE_LOG_MIN)
            low = GraphLabel(-1, SCALE_LOG_MIN)

    if policy in (
        YScalePolicy.INCLUDE_ZERO,
        YScalePolicy.ZERO_AND_SYMMETRIC,
        YScalePolicy.ZERO_AND_FORCE_SYMMETRIC,
    ):
        if low.is_positive():
            low = ZERO_LABEL
        if high.is_negative():
            high = ZERO_LABEL

    if policy in (YScalePolicy.PREFER_SYMMETRIC, YScalePolicy.ZERO_AND_SYMMETRIC):
        if low.is_negative() and high.is_positive():
            low, high = _mirror(low, high)
    elif policy in (YScalePolicy.FORCE_SYMMETRIC, YScalePolicy.ZERO_AND_FORCE_SYMMETRIC):
        if low.is_positive() and high.is_positive():
            low = -high
        elif low.is_negative() and high.is_negative():
            high = -low
        else:
            low, high = _mirror(low, high)

    includes_zero = low.value() <= 0.0 <= high.value()
    return GraphScale(low, high, includes_zero)


def _mirror(low: GraphLabel, high: GraphLabel) -> tuple[GraphLabel, GraphLabel]:
    if abs(low) > high:
        return low, -low
    return -high, high


def format_label(label: GraphLabel, unit_pow10: int = 0) -> str:
    """
    Render *label* with an SI prefix, e.g. (2, -1) with a mV unit -> "200µ".
    """
    pow10 = label.exponent + unit_pow10
    group, zeroes = divmod(pow10, 3)
    index = min(max(group + 3, 0), len(LABEL_PREFIXES) - 1)
    if index != group + 3:
        return f"{label.mantissa}e{pow10}"
    return f"{label.mantissa}{'0' * zeroes}{LABEL_PREFIXES[index]}"
