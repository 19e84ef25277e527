from __future__ import annotations

import enum
import logging
import struct
from typing import Any, Dict, Iterable, Iterator

from .decoder import MAX_FRAME_SIZE

MAGIC = b"\x55\xAA"


class FrameFormat(str, enum.Enum):
    HEX = "hex"
    BINARY = "binary"


def crc16_ccitt(data: bytes, poly: int = 0x1021, init: int = 0xFFFF) -> int:
    crc = init
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = (crc << 1) ^ poly
            else:
                crc <<= 1
            crc &= 0xFFFF
    return crc


def pack_frame(payload: bytes) -> bytes:
    """Wrap raw display bytes into a binary capture packet."""
    if len(payload) > 0xFF:
        raise ValueError(f"payload too long ({len(payload)} bytes)")
    return MAGIC + bytes([len(payload)]) + bytes(payload) + struct.pack("<H", crc16_ccitt(bytes(payload)))


def format_hex_line(payload: bytes) -> str:
    return " ".join(f"{b:02X}" for b in payload)


class FrameParser:
    """
    Streaming parser for captured display frames.

    HEX captures hold one frame per line as hex bytes ("80 60 3E ..."), the
    way the display tap dumps them for debugging. BINARY captures use the
    0x55AA magic, a length byte, the raw frame bytes and a CRC16 trailer.
    Neither format raises on bad input; rejected data is counted instead.
    """

    def __init__(self, fmt: FrameFormat):
        self.fmt = fmt
        self._buffer = bytearray()
        self._stats: Dict[str, int] = {"frames": 0, "crc_errors": 0, "length_errors": 0, "parse_errors": 0}
        self._log = logging.getLogger(__name__)

    def parse_hex(self, lines: Iterable[str]) -> Iterator[bytes]:
        for line in lines:
            text = line.split("#", 1)[0].strip()
            if not text:
                continue
            try:
                payload = bytes.fromhex(text)
            except ValueError:
                self._stats["parse_errors"] += 1
                self._log.debug("Discarding malformed hex line: %r", text)
                continue
            self._stats["frames"] += 1
            yield payload

    def parse_binary(self, chunks: Iterable[bytes]) -> Iterator[bytes]:
        for chunk in chunks:
            if not chunk:
                continue
            self._buffer.extend(chunk)
            yield from self._extract_frames()

    def _extract_frames(self) -> Iterator[bytes]:
        while True:
            start = self._buffer.find(MAGIC)
            if start < 0:
                # keep a trailing 0x55 that may start the next header
                if self._buffer[-1:] == MAGIC[:1]:
                    del self._buffer[:-1]
                else:
                    self._buffer.clear()
                break
            if len(self._buffer) < start + 3:
                break
            length = self._buffer[start + 2]
            if length > MAX_FRAME_SIZE:
                self._stats["length_errors"] += 1
                self._log.debug("Discarding frame with unexpected payload length: %s", length)
                del self._buffer[: start + 2]
                continue
            frame_end = start + 3 + length + 2
            if len(self._buffer) < frame_end:
                break
            payload = bytes(self._buffer[start + 3 : start + 3 + length])
            crc_expected = struct.unpack_from("<H", self._buffer, frame_end - 2)[0]
            crc_actual = crc16_ccitt(payload)
            if crc_actual != crc_expected:
                self._stats["crc_errors"] += 1
                self._log.debug("CRC mismatch (expected=%04X, actual=%04X)", crc_expected, crc_actual)
                del self._buffer[: start + 2]
                continue
            self._stats["frames"] += 1
            del self._buffer[:frame_end]
            yield payload

    def iter_frames(self, source: Iterable[str] | Iterable[bytes]) -> Iterator[bytes]:
        if self.fmt is FrameFormat.HEX:
            return self.parse_hex(source)  # type: ignore[arg-type]
        return self.parse_binary(source)  # type: ignore[arg-type]

    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def reset(self) -> None:
        self._buffer.clear()


def iterate_text_stream(handle: Iterable[str]) -> Iterator[str]:
    for line in handle:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        yield line


def iterate_binary_stream(handle: Any, chunk_size: int = 256) -> Iterator[bytes]:
    while True:
        chunk = handle.read(chunk_size)
        if not chunk:
            break
        yield chunk
