"""Seven-segment glyph table of the multimeter display."""
from __future__ import annotations

DP_BIT = 0x04

# Indexed by the 7-bit segment code, i.e. the raw byte with the decimal point
# bit removed (see segment_index).
SEGMENT_TABLE = (
    " 'iI^**T-*rf***F"  # 0x00-0x0f
    "_*eL***C=*ctX*gE"  # 0x10-0x1f
    "'\"**?*****/****P"  # 0x20-0x2f
    "*****M***Y*@*Q2R"  # 0x30-0x3f
    "i********\\nh***K"  # 0x40-0x4f
    "j*u* *WGa*ob*5*6"  # 0x50-0x5f
    "1***777N*4*H*9*A"  # 0x60-0x6f
    "JVJUD**0*yd&39a8"  # 0x70-0x7f
)

assert len(SEGMENT_TABLE) == 128


def has_decimal_point(segment_byte: int) -> bool:
    return (segment_byte & DP_BIT) != 0


def segment_index(segment_byte: int) -> int:
    """Drop the DP bit and shift the five high bits down into a 7-bit code."""
    return ((segment_byte & 0xF8) >> 1) | (segment_byte & 0x03)


def glyph_for(segment_byte: int) -> str:
    return SEGMENT_TABLE[segment_index(segment_byte)]


def encode_glyph(glyph: str, decimal_point: bool = False) -> int:
    """
    Return the raw segment byte that displays *glyph*.

    The first matching table entry is used. Raises ValueError for glyphs the
    display cannot show.
    """
    if len(glyph) != 1 or glyph == "*":
        raise ValueError(f"Cannot encode glyph {glyph!r}")
    index = SEGMENT_TABLE.find(glyph)
    if index < 0:
        raise ValueError(f"Cannot encode glyph {glyph!r}")
    raw = ((index & 0x7C) << 1) | (index & 0x03)
    if decimal_point:
        raw |= DP_BIT
    return raw


def encode_text(text: str) -> list[int]:
    """
    Encode display text into segment bytes.

    A '.' attaches the decimal point to the glyph that follows it, matching
    the way the decoder places the point in front of its glyph.
    """
    encoded: list[int] = []
    pending_dp = False
    for ch in text:
        if ch == ".":
            pending_dp = True
            continue
        encoded.append(encode_glyph(ch, decimal_point=pending_dp))
        pending_dp = False
    return encoded
