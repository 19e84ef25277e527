from __future__ import annotations

from segtap.demo import build_frame, voltage_frame
from segtap.meter.frames import (
    FrameFormat,
    FrameParser,
    crc16_ccitt,
    format_hex_line,
    iterate_binary_stream,
    iterate_text_stream,
    pack_frame,
)


def build_packet(body: bytes, *, crc_override: int | None = None, length_override: int | None = None) -> bytes:
    crc = crc_override if crc_override is not None else crc16_ccitt(body)
    length = length_override if length_override is not None else len(body)
    return b"\x55\xAA" + bytes([length]) + body + crc.to_bytes(2, "little")


def feed(parser: FrameParser, packet: bytes) -> list:
    return list(parser.parse_binary([packet]))


def test_crc16_known_vector():
    assert crc16_ccitt(b"123456789") == 0x29B1


def test_pack_frame_matches_layout():
    body = voltage_frame(1.0)
    assert pack_frame(body) == build_packet(body)


def test_binary_frame_crc_failure():
    parser = FrameParser(FrameFormat.BINARY)
    body = voltage_frame(1.25)
    frames = feed(parser, build_packet(body))
    assert frames == [body]
    stats = parser.stats()
    assert stats["frames"] == 1
    assert stats["crc_errors"] == 0

    bad_crc = (crc16_ccitt(body) ^ 0xFFFF) & 0xFFFF
    frames = feed(parser, build_packet(body, crc_override=bad_crc))
    assert frames == []
    assert parser.stats()["crc_errors"] == 1


def test_binary_frame_length_error():
    parser = FrameParser(FrameFormat.BINARY)
    body = voltage_frame(1.25)
    frames = feed(parser, build_packet(body, length_override=40))
    assert frames == []
    assert parser.stats()["length_errors"] == 1

    # Parser recovers when the next packet is correct
    frames = feed(parser, build_packet(body))
    assert frames == [body]
    assert parser.stats()["frames"] == 1


def test_binary_stream_split_across_chunks():
    parser = FrameParser(FrameFormat.BINARY)
    stream = b"\x00\x13" + pack_frame(voltage_frame(1.0)) + b"\x55" + pack_frame(voltage_frame(2.0))
    chunks = [stream[i : i + 3] for i in range(0, len(stream), 3)]
    frames = list(parser.parse_binary(chunks))
    assert frames == [voltage_frame(1.0), voltage_frame(2.0)]


def test_short_and_empty_payloads_pass_through():
    parser = FrameParser(FrameFormat.BINARY)
    frames = list(parser.parse_binary([pack_frame(b""), pack_frame(b"\x00\x60")]))
    assert frames == [b"", b"\x00\x60"]


def test_hex_lines_with_comments():
    parser = FrameParser(FrameFormat.HEX)
    frame = build_frame("123456")
    lines = ["# capture", format_hex_line(frame) + "  # first", "", "zz 11", frame.hex()]
    frames = list(parser.iter_frames(lines))
    assert frames == [frame, frame]
    stats = parser.stats()
    assert stats["frames"] == 2
    assert stats["parse_errors"] == 1


def test_stream_helpers(tmp_path):
    path = tmp_path / "capture.bin"
    path.write_bytes(pack_frame(voltage_frame(3.0)) * 3)
    with path.open("rb") as fh:
        chunks = list(iterate_binary_stream(fh, chunk_size=5))
    assert b"".join(chunks) == path.read_bytes()
    assert list(iterate_text_stream(["# c\n", "\n", " 00 11 \n"])) == ["00 11"]
