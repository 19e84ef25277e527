from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Union

from .diagnostics import DiagnosticEvent, DiagnosticKind, DiagnosticSink, LoggingDiagnostics, emit
from .segments import glyph_for, has_decimal_point

logger = logging.getLogger(__name__)

FRAME_SIZE = 9
MAX_FRAME_SIZE = 18
DIGIT_POSITIONS = 7  # sign slot + 6 glyphs

# annunciators_pre (byte 0)
PRE_AUTO = 0x01
PRE_REL = 0x02
PRE_STO = 0x04
PRE_DB = 0x08
PRE_AC = 0x10
PRE_RCL = 0x20
PRE_BAT = 0x40
PRE_MINUS = 0x80

# annunciators_mid (byte 7)
MID_MILLI_VOLT = 0x01
MID_MEGA = 0x02
MID_MICRO = 0x04
MID_VOLT = 0x08
MID_KILO = 0x10
MID_MILLI_AMP = 0x20

# annunciators_post (byte 8)
POST_CAL = 0x01
POST_OHM = 0x02
POST_AMP = 0x04
POST_RMT = 0x20

_NUMBER_RE = re.compile(r"\s*(-?)\s*(\d*\.?\d*)")

RawFrame = Union[bytes, bytearray, Sequence[int]]


@dataclass(frozen=True)
class Annunciators:
    pre: int = 0
    mid: int = 0
    post: int = 0

    @property
    def auto(self) -> bool:
        return bool(self.pre & PRE_AUTO)

    @property
    def rel(self) -> bool:
        return bool(self.pre & PRE_REL)

    @property
    def sto(self) -> bool:
        return bool(self.pre & PRE_STO)

    @property
    def db(self) -> bool:
        return bool(self.pre & PRE_DB)

    @property
    def ac(self) -> bool:
        return bool(self.pre & PRE_AC)

    @property
    def rcl(self) -> bool:
        return bool(self.pre & PRE_RCL)

    @property
    def bat(self) -> bool:
        return bool(self.pre & PRE_BAT)

    @property
    def minus(self) -> bool:
        return bool(self.pre & PRE_MINUS)

    @property
    def milli_volt(self) -> bool:
        return bool(self.mid & MID_MILLI_VOLT)

    @property
    def mega(self) -> bool:
        return bool(self.mid & MID_MEGA)

    @property
    def micro(self) -> bool:
        return bool(self.mid & MID_MICRO)

    @property
    def volt(self) -> bool:
        return bool(self.mid & MID_VOLT)

    @property
    def kilo(self) -> bool:
        return bool(self.mid & MID_KILO)

    @property
    def milli_amp(self) -> bool:
        return bool(self.mid & MID_MILLI_AMP)

    @property
    def cal(self) -> bool:
        return bool(self.post & POST_CAL)

    @property
    def ohm(self) -> bool:
        return bool(self.post & POST_OHM)

    @property
    def amp(self) -> bool:
        return bool(self.post & POST_AMP)

    @property
    def rmt(self) -> bool:
        return bool(self.post & POST_RMT)

    def mode_flags(self) -> int:
        """Flags that change what is being measured (AC, REL, dB)."""
        return self.pre & (PRE_AC | PRE_REL | PRE_DB)


@dataclass(frozen=True)
class DecodedReading:
    """Result of decoding one display refresh."""

    message: str = ""
    raw_message: str = " " * DIGIT_POSITIONS
    decimal_point_mask: int = 0
    is_numeric: bool = False
    is_overrange: bool = False
    value: float = 0.0
    annunciators: Annunciators = field(default_factory=Annunciators)
    byte_count: int = 0

    def is_decimal_point_on(self, position: int) -> bool:
        return bool((self.decimal_point_mask >> position) & 1)


def parse_message_value(message: str) -> float:
    """
    Value of a numeric display message.

    Leading spaces are skipped and so are the blanked digits between the sign
    and the first lit digit. A message without digits reads as 0.0.
    """
    match = _NUMBER_RE.match(message)
    if match is None:
        return 0.0
    sign, number = match.groups()
    if not any(ch.isdigit() for ch in number):
        return 0.0
    return float(sign + number)


class FrameDecoder:
    """
    Decode raw display frames into DecodedReading objects.

    Decoding never raises: short frames are zero filled, oversized frames are
    truncated, and every anomaly is reported to the diagnostic sink. An empty
    frame decodes to a blank, non-numeric message.
    """

    def __init__(self, diagnostics: Optional[DiagnosticSink] = None):
        self.diagnostics = diagnostics if diagnostics is not None else LoggingDiagnostics()
        self._stats: Dict[str, int] = {"frames": 0, "short_frames": 0, "duplicate_dp": 0}

    def decode(self, frame: RawFrame, byte_count: Optional[int] = None) -> DecodedReading:
        data = bytes(frame[:MAX_FRAME_SIZE])
        if len(frame) > MAX_FRAME_SIZE:
            emit(
                self.diagnostics,
                DiagnosticEvent(
                    DiagnosticKind.FRAME_OVERFLOW,
                    f"{len(frame)} bytes, truncated to {MAX_FRAME_SIZE}",
                    len(frame),
                ),
            )
        n = len(data) if byte_count is None else max(0, min(byte_count, len(data)))
        self._stats["frames"] += 1
        if n != FRAME_SIZE:
            if n < FRAME_SIZE:
                self._stats["short_frames"] += 1
            emit(self.diagnostics, DiagnosticEvent(DiagnosticKind.WRONG_BYTE_COUNT, f"n={n}", n))

        pre = data[0] if n > 0 else 0x00
        mid = data[7] if n > 7 else 0x00
        post = data[8] if n > 8 else 0x00

        message = []
        raw = [" "] * DIGIT_POSITIONS
        if pre & PRE_MINUS:
            raw[0] = "-"
            message.append("-")

        dp_mask = 0
        num_dp = 0
        is_numeric = n > 0
        for position in range(1, min(n, DIGIT_POSITIONS)):
            segment = data[position]
            if has_decimal_point(segment):
                dp_mask |= 1 << position
                num_dp += 1
                if num_dp == 1:
                    message.append(".")
                else:
                    self._stats["duplicate_dp"] += 1
                    emit(
                        self.diagnostics,
                        DiagnosticEvent(
                            DiagnosticKind.DUPLICATE_DECIMAL_POINT, f"position {position}", n
                        ),
                    )
            glyph = glyph_for(segment)
            raw[position] = glyph
            message.append(glyph)
            if not (glyph.isdigit() or glyph == " "):
                is_numeric = False

        text = "".join(message) if n > 0 else " " * DIGIT_POSITIONS
        is_overrange = False
        value = 0.0
        if is_numeric:
            value = parse_message_value(text)
        else:
            is_overrange = "0L" in text
            if text.startswith(" CAL"):
                post |= POST_CAL

        return DecodedReading(
            message=text,
            raw_message="".join(raw),
            decimal_point_mask=dp_mask,
            is_numeric=is_numeric,
            is_overrange=is_overrange,
            value=value,
            annunciators=Annunciators(pre=pre, mid=mid, post=post),
            byte_count=n,
        )

    def stats(self) -> Dict[str, int]:
        return dict(self._stats)
