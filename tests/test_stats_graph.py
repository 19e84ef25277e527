from __future__ import annotations

import numpy as np
import pytest

from segtap.meter.decoder import DecodedReading
from segtap.meter.graph import (
    GRAPH_CAPACITY,
    MAX_DECIMATION,
    GraphBuffer,
    fill_display_data,
    to_array_index,
    to_logical_index,
)
from segtap.meter.labels import YScalePolicy
from segtap.meter.stats import StatisticsCache
from segtap.meter.units import UnitDescriptor

VOLT = UnitDescriptor("V", 0)
MILLIVOLT = UnitDescriptor("mV", -3)
OHM = UnitDescriptor("Ω", 0)


def numeric(value: float) -> DecodedReading:
    return DecodedReading(message=str(value), is_numeric=True, value=value)


def test_first_reading_primes_statistics():
    stats = StatisticsCache(10)
    stats.update(numeric(2.5), VOLT)
    assert stats.average == stats.minimum == stats.maximum == 2.5
    assert stats.unit == VOLT


def test_exponential_average_and_extremes():
    stats = StatisticsCache(4)
    for value in (0.0, 4.0, -2.0):
        stats.update(numeric(value), VOLT)
    # 0 -> 1.0 -> 1.0 + (-3.0 / 4)
    assert np.isclose(stats.average, 0.25)
    assert stats.minimum == -2.0
    assert stats.maximum == 4.0


def test_non_numeric_reading_is_ignored():
    stats = StatisticsCache()
    stats.update(numeric(1.0), VOLT)
    stats.update(DecodedReading(message=" 0L", is_overrange=True), VOLT)
    assert stats.average == 1.0


def test_prefix_change_rescales_accumulated_values():
    stats = StatisticsCache(10)
    stats.update(numeric(500.0), MILLIVOLT)
    stats.update(numeric(0.5), VOLT)
    assert stats.unit == VOLT
    assert np.isclose(stats.average, 0.5)
    assert np.isclose(stats.minimum, 0.5)
    assert np.isclose(stats.maximum, 0.5)


def test_rescale_round_trip_restores_values():
    stats = StatisticsCache(3)
    for value in (1.25, 1.5, 1.0):
        stats.update(numeric(value), VOLT)
    before = (stats.average, stats.minimum, stats.maximum)
    stats.rescale(1000.0)
    stats.rescale(0.001)
    assert np.allclose((stats.average, stats.minimum, stats.maximum), before)


def test_quantity_change_resets_statistics():
    stats = StatisticsCache()
    stats.update(numeric(5.0), VOLT)
    stats.update(numeric(6.0), VOLT)
    stats.update(numeric(470.0), OHM)
    assert stats.unit == OHM
    assert stats.average == stats.minimum == stats.maximum == 470.0


def test_sample_count_is_validated():
    with pytest.raises(ValueError):
        StatisticsCache(0)
    stats = StatisticsCache()
    with pytest.raises(ValueError):
        stats.set_sample_count(256)
    stats.set_sample_count(255)
    assert stats.sample_count == 255


def test_copy_is_independent():
    stats = StatisticsCache()
    stats.update(numeric(1.0), VOLT)
    clone = stats.copy()
    stats.update(numeric(9.0), VOLT)
    assert clone.maximum == 1.0


def test_index_mapping_round_trips():
    for count in range(1, GRAPH_CAPACITY + 1):
        for write_index in range(count):
            seen = set()
            for logical in range(count):
                array = to_array_index(logical, write_index, count)
                assert 0 <= array < count
                assert to_logical_index(array, write_index, count) == logical
                seen.add(array)
            assert len(seen) == count
            # the newest sample sits at the write index
            assert to_array_index(count - 1, write_index, count) == write_index


def test_ring_evicts_oldest_sample():
    graph = GraphBuffer(capacity=4)
    for value in range(1, 7):
        assert graph.push(float(value))
    assert graph.is_full
    assert list(graph.values()) == [3.0, 4.0, 5.0, 6.0]
    assert graph[0] == 3.0
    assert graph.get(3) == 6.0
    with pytest.raises(IndexError):
        graph.get(4)


def test_decimation_keeps_every_nth_sample():
    graph = GraphBuffer(decimation=3)
    stored = [graph.push(float(v)) for v in range(10)]
    assert stored == [True, False, False] * 3 + [True]
    assert list(graph.values()) == [0.0, 3.0, 6.0, 9.0]

    plain = GraphBuffer(decimation=1)
    for v in range(3):
        plain.push(float(v))
    assert len(plain) == 3


def test_auto_decimation_doubles_period_when_full():
    graph = GraphBuffer(capacity=4, auto_decimate=True)
    for v in range(9):
        graph.push(float(v))
    assert graph.decimation == 4
    assert list(graph.values()) == [0.0, 4.0, 8.0]

    graph.reset()
    assert graph.decimation == 0
    assert len(graph) == 0


def test_auto_decimation_stops_at_limit():
    graph = GraphBuffer(capacity=2, decimation=MAX_DECIMATION, auto_decimate=True)
    for v in range(3 * MAX_DECIMATION):
        graph.push(float(v))
    assert graph.decimation == MAX_DECIMATION
    assert list(graph.values()) == [255.0, 510.0]


def test_shorter_period_repeats_samples():
    graph = GraphBuffer(decimation=2)
    for v in range(5):
        graph.push(float(v))
    assert list(graph.values()) == [0.0, 2.0, 4.0]
    graph.set_decimation(1)
    assert list(graph.values()) == [0.0, 0.0, 2.0, 2.0, 4.0]
    with pytest.raises(ValueError):
        graph.set_decimation(MAX_DECIMATION + 1)


def test_shorter_period_counts_skipped_samples():
    graph = GraphBuffer(decimation=4)
    for v in range(7):
        graph.push(float(v))
    assert list(graph.values()) == [0.0, 4.0]
    # samples 5 and 6 were skipped; at period 1 each stands for the newest sample
    graph.set_decimation(1)
    assert list(graph.values()) == [0.0, 0.0, 0.0, 0.0, 4.0, 4.0, 4.0]
    assert graph.push(7.0)
    assert graph.values()[-1] == 7.0

    halved = GraphBuffer(decimation=4)
    for v in range(8):
        halved.push(float(v))
    halved.set_decimation(2)
    assert list(halved.values()) == [0.0, 0.0, 4.0, 4.0]
    assert halved.push(8.0)
    assert not halved.push(9.0)


def test_cursor_average_wraps_around():
    graph = GraphBuffer(capacity=4)
    for v in (1.0, 2.0, 3.0, 4.0):
        graph.push(v)
    assert graph.average(3, 2) == 2.5
    assert graph.average(0, 4) == 2.5
    assert graph.minimum() == 1.0
    assert graph.maximum() == 4.0


def test_graph_rescale_and_copy():
    graph = GraphBuffer(capacity=4)
    graph.push(500.0)
    clone = graph.copy()
    graph.rescale(0.001)
    assert np.isclose(graph[0], 0.5)
    assert clone[0] == 500.0


def test_display_data_maps_samples_to_rows():
    graph = GraphBuffer()
    graph.push(0.0)
    graph.push(1.0)
    display = fill_display_data(graph, y_size=63, policy=YScalePolicy.ZOOM)
    assert display.points == [0, 32]
    assert display.low.value() == 0.0
    assert display.high.value() == 2.0
    assert display.y_zero == 0
    assert display.includes_zero


def test_display_data_zero_row_for_signed_range():
    graph = GraphBuffer()
    for v in (-1.0, 1.0):
        graph.push(v)
    display = fill_display_data(graph, y_size=64, policy=YScalePolicy.PREFER_SYMMETRIC)
    assert display.low == -display.high
    assert display.y_zero == 32
    assert all(0 <= p <= 64 for p in display.points)
