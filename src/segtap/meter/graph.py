from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

import numpy as np

from .labels import GraphLabel, YScalePolicy, compute_scale

logger = logging.getLogger(__name__)

GRAPH_CAPACITY = 180
MAX_DECIMATION = 255


def to_array_index(logical: int, write_index: int, count: int) -> int:
    return (logical + write_index + 1) % count


def to_logical_index(array_index: int, write_index: int, count: int) -> int:
    return (count + array_index - write_index - 1) % count


def _validate_decimation(samples_to_skip: int) -> int:
    if not 0 <= int(samples_to_skip) <= MAX_DECIMATION:
        raise ValueError(f"decimation must be within 0..{MAX_DECIMATION}, got {samples_to_skip}")
    return int(samples_to_skip)


class GraphBuffer:
    """
    Fixed-capacity ring of graph samples with decimation.

    Only every Nth pushed sample is stored (N = decimation, 0 and 1 both
    store every sample). Logical index 0 is the oldest stored sample. When
    auto decimation is on and the ring is full, the period doubles and the
    stored history is compacted instead of being overwritten.
    """

    def __init__(self, capacity: int = GRAPH_CAPACITY, decimation: int = 0, auto_decimate: bool = False):
        if capacity < 2:
            raise ValueError("graph capacity must be at least 2")
        self.capacity = capacity
        self._data = np.zeros(capacity, dtype=float)
        self.write_index = capacity - 1
        self.count = 0
        self.decimation = _validate_decimation(decimation)
        self.auto_decimate = auto_decimate
        self._skip_counter = 0

    @property
    def period(self) -> int:
        return max(self.decimation, 1)

    @property
    def is_full(self) -> bool:
        return self.count == self.capacity

    def __len__(self) -> int:
        return self.count

    def array_index(self, logical: int) -> int:
        return to_array_index(logical, self.write_index, self.count)

    def logical_index(self, array_index: int) -> int:
        return to_logical_index(array_index, self.write_index, self.count)

    def push(self, x: float) -> bool:
        """Offer a sample; returns True when it was stored."""
        if self._skip_counter > 0:
            self._skip_counter -= 1
            return False
        if self.is_full and self.auto_decimate and self.decimation < MAX_DECIMATION:
            new_decimation = min(self.period * 2, MAX_DECIMATION)
            logger.debug("Graph full, decimation %d -> %d", self.decimation, new_decimation)
            self._resample(new_decimation)
            self.decimation = new_decimation
        self.write_index = (self.write_index + 1) % self.capacity
        self._data[self.write_index] = x
        if self.count < self.capacity:
            self.count += 1
        self._skip_counter = self.period - 1
        return True

    def get(self, logical: int) -> float:
        if not 0 <= logical < self.count:
            raise IndexError(f"graph index {logical} out of range (size {self.count})")
        return float(self._data[self.array_index(logical)])

    def __getitem__(self, logical: int) -> float:
        return self.get(logical)

    def values(self) -> np.ndarray:
        """Stored samples ordered oldest first (a copy)."""
        if self.count == 0:
            return np.zeros(0, dtype=float)
        order = (np.arange(self.count) + self.write_index + 1) % self.count
        return self._data[order].copy()

    def minimum(self) -> float:
        return float(self.values().min()) if self.count else 0.0

    def maximum(self) -> float:
        return float(self.values().max()) if self.count else 0.0

    def average(self, start: int, num_points: int) -> float:
        """Mean of *num_points* samples from logical index *start*, wrapping around."""
        if self.count == 0 or num_points <= 0:
            return 0.0
        order = (np.arange(num_points) + start) % self.count
        return float(self.values()[order].mean())

    def set_decimation(self, samples_to_skip: int) -> None:
        samples_to_skip = _validate_decimation(samples_to_skip)
        if samples_to_skip == self.decimation:
            return
        self._resample(samples_to_skip)
        self.decimation = samples_to_skip

    def set_auto_decimate(self, enabled: bool) -> None:
        self.auto_decimate = bool(enabled)

    def rescale(self, factor: float) -> None:
        self._data[: self.count] *= factor

    def reset(self) -> None:
        self.write_index = self.capacity - 1
        self.count = 0
        self._skip_counter = 0
        if self.auto_decimate:
            self.decimation = 0

    def copy(self) -> "GraphBuffer":
        clone = GraphBuffer(self.capacity, self.decimation, self.auto_decimate)
        clone._data = self._data.copy()
        clone.write_index = self.write_index
        clone.count = self.count
        clone._skip_counter = self._skip_counter
        return clone

    def _resample(self, new_decimation: int) -> None:
        """
        Re-grid the stored history for a new decimation period.

        Samples are placed on a time axis anchored at the oldest sample. A
        longer period keeps every k-th sample, a shorter one repeats samples.
        Samples skipped since the last stored one count towards the new
        period: each full new period of them repeats the newest sample.
        Only the newest `capacity` points survive.
        """
        if self.count == 0:
            return
        old_period = self.period
        new_period = max(new_decimation, 1)
        if old_period == new_period:
            return
        elapsed = old_period - 1 - self._skip_counter
        pending = elapsed // new_period
        ordered = self.values()
        size = (self.count - 1) * old_period // new_period + 1
        times = np.arange(size) * new_period
        indices = np.concatenate([times // old_period, np.full(pending, self.count - 1, dtype=int)])
        size += pending
        self._skip_counter = new_period - 1 - elapsed % new_period
        if size > self.capacity:
            indices = indices[-self.capacity :]
            size = self.capacity
        self._data[:size] = ordered[indices]
        self.count = size
        self.write_index = size - 1


@dataclass
class GraphDisplayData:
    """Graph samples mapped to pixel rows, ready for a renderer."""

    points: List[int]
    low: GraphLabel
    high: GraphLabel
    y_zero: int
    includes_zero: bool
    decimation: int
    x_size: int
    y_size: int


def fill_display_data(
    graph: GraphBuffer,
    x_size: int = GRAPH_CAPACITY,
    y_size: int = 63,
    policy: YScalePolicy = YScalePolicy.ZOOM,
) -> GraphDisplayData:
    values = graph.values()[:x_size]
    grmin = float(values.min()) if values.size else 0.0
    grmax = float(values.max()) if values.size else 0.0
    scale = compute_scale(grmin, grmax, policy)
    ymin = scale.low.value()
    ymax = scale.high.value()
    factor = y_size / (ymax - ymin)
    points = np.floor((values - ymin) * factor + 0.5).astype(int)
    y_zero = int(0.5 - ymin * factor) if scale.low.is_negative() and scale.high.is_positive() else 0
    return GraphDisplayData(
        points=[int(p) for p in np.clip(points, 0, y_size)],
        low=scale.low,
        high=scale.high,
        y_zero=y_zero,
        includes_zero=scale.includes_zero,
        decimation=graph.decimation,
        x_size=x_size,
        y_size=y_size,
    )
