from __future__ import annotations

import numpy as np
import pytest

from segtap.demo import build_frame
from segtap.meter.decoder import (
    MID_VOLT,
    POST_CAL,
    PRE_AC,
    PRE_MINUS,
    FrameDecoder,
    parse_message_value,
)
from segtap.meter.diagnostics import DiagnosticKind, RecordingDiagnostics
from segtap.meter.segments import DP_BIT, encode_glyph, encode_text, glyph_for, segment_index


def enc(glyph: str, dp: bool = False) -> int:
    return encode_glyph(glyph, decimal_point=dp)


def test_digit_codes_match_display_wiring():
    expected = {"0": 0x77, "1": 0x60, "2": 0x3E, "3": 0x7C, "4": 0x69, "5": 0x5D, "6": 0x5F, "7": 0x64, "8": 0x7F, "9": 0x6D}
    for digit, index in expected.items():
        raw = enc(digit)
        assert segment_index(raw) == index
        assert glyph_for(raw) == digit
        assert glyph_for(raw | DP_BIT) == digit


def test_encode_rejects_unknown_glyph():
    with pytest.raises(ValueError):
        encode_glyph("*")
    with pytest.raises(ValueError):
        encode_glyph("Z")


def test_signed_reading_with_decimal_point():
    decoder = FrameDecoder(RecordingDiagnostics())
    frame = [PRE_MINUS, enc("1"), enc("2"), enc("3", dp=True), enc("4"), enc("5"), enc("6"), 0, 0]
    reading = decoder.decode(frame)
    assert reading.message == "-12.3456"
    assert reading.raw_message == "-123456"
    assert reading.is_numeric
    assert not reading.is_overrange
    assert np.isclose(reading.value, -12.3456)
    assert reading.is_decimal_point_on(3)
    assert not reading.is_decimal_point_on(2)
    assert reading.decimal_point_mask == 1 << 3
    assert reading.annunciators.minus
    assert decoder.diagnostics.events == []


def test_leading_blanks_are_skipped():
    reading = FrameDecoder().decode(build_frame("   1.25", mid=MID_VOLT))
    assert reading.is_numeric
    assert np.isclose(reading.value, 1.25)
    assert reading.annunciators.volt


def test_overrange_is_not_numeric():
    reading = FrameDecoder().decode(build_frame("   0L ", pre=PRE_AC, mid=MID_VOLT))
    assert not reading.is_numeric
    assert reading.is_overrange
    assert reading.value == 0.0
    assert reading.annunciators.ac


def test_cal_message_sets_cal_annunciator():
    reading = FrameDecoder().decode(build_frame(" CAL  "))
    assert not reading.is_numeric
    assert reading.annunciators.cal
    assert reading.annunciators.post & POST_CAL


def test_empty_frame_is_not_numeric():
    sink = RecordingDiagnostics()
    reading = FrameDecoder(sink).decode(b"")
    assert reading.message == " " * 7
    assert reading.raw_message == " " * 7
    assert not reading.is_numeric
    assert sink.kinds() == [DiagnosticKind.WRONG_BYTE_COUNT]


def test_short_frame_zero_fills_annunciators():
    sink = RecordingDiagnostics()
    decoder = FrameDecoder(sink)
    frame = [0x00] + encode_text("123")
    reading = decoder.decode(frame)
    assert reading.is_numeric
    assert reading.value == 123.0
    assert reading.annunciators.mid == 0
    assert reading.annunciators.post == 0
    assert reading.byte_count == 4
    assert sink.events[0].kind is DiagnosticKind.WRONG_BYTE_COUNT
    assert sink.events[0].byte_count == 4
    assert decoder.stats()["short_frames"] == 1


def test_byte_count_limits_the_decoded_prefix():
    frame = build_frame("123456")
    reading = FrameDecoder(RecordingDiagnostics()).decode(frame, byte_count=3)
    assert reading.message == "12"
    assert reading.raw_message == " 12    "


def test_oversized_frame_is_truncated():
    sink = RecordingDiagnostics()
    frame = build_frame("123456") * 3
    reading = FrameDecoder(sink).decode(frame)
    assert reading.byte_count == 18
    assert DiagnosticKind.FRAME_OVERFLOW in sink.kinds()
    assert DiagnosticKind.WRONG_BYTE_COUNT in sink.kinds()


def test_duplicate_decimal_point_reported_once_in_message():
    sink = RecordingDiagnostics()
    frame = [0x00, enc("1"), enc("2", dp=True), enc("3"), enc("4", dp=True), enc("5"), enc("6"), 0, 0]
    reading = FrameDecoder(sink).decode(frame)
    assert reading.message == "1.23456"
    assert reading.is_decimal_point_on(2)
    assert reading.is_decimal_point_on(4)
    assert np.isclose(reading.value, 1.23456)
    assert sink.kinds() == [DiagnosticKind.DUPLICATE_DECIMAL_POINT]


def test_failing_sink_does_not_break_decoding():
    class Broken:
        def report(self, event):
            raise RuntimeError("sink down")

    reading = FrameDecoder(Broken()).decode(b"\x00")
    assert reading.byte_count == 1


def test_parse_message_value_variants():
    assert parse_message_value("  12.5") == 12.5
    assert parse_message_value("-  0.25") == -0.25
    assert parse_message_value("      ") == 0.0
    assert parse_message_value(".5") == 0.5
