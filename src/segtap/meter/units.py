from __future__ import annotations

from dataclasses import dataclass

from .decoder import Annunciators

SI_PREFIXES = ("m", "µ", "k", "M")
TEMPERATURE_SYMBOL = "°C"


@dataclass(frozen=True)
class UnitDescriptor:
    """Displayed unit and the power of ten of its SI prefix (mV -> -3)."""

    symbol: str = ""
    pow10: int = 0

    @property
    def quantity(self) -> str:
        if len(self.symbol) > 1 and self.symbol[0] in SI_PREFIXES:
            return self.symbol[1:]
        return self.symbol

    def __str__(self) -> str:
        return self.symbol


NO_UNIT = UnitDescriptor()


def resolve_unit(
    annunciators: Annunciators,
    thermocouple: bool = False,
    *,
    include_db: bool = False,
) -> UnitDescriptor:
    """
    Derive the unit from the annunciator bits.

    Voltage takes priority over resistance, resistance over current. With
    *thermocouple* set a DC millivolt reading is shown in °C, without any
    power-of-ten scaling.
    """
    if annunciators.volt:
        if annunciators.milli_volt:
            if thermocouple and not annunciators.ac:
                return UnitDescriptor(TEMPERATURE_SYMBOL, 0)
            return UnitDescriptor("mV", -3)
        return UnitDescriptor("V", 0)
    if annunciators.ohm:
        if annunciators.mega:
            return UnitDescriptor("MΩ", 6)
        if annunciators.kilo:
            return UnitDescriptor("kΩ", 3)
        return UnitDescriptor("Ω", 0)
    if annunciators.amp:
        if annunciators.micro:
            return UnitDescriptor("µA", -6)
        if annunciators.milli_amp:
            return UnitDescriptor("mA", -3)
        return UnitDescriptor("A", 0)
    if include_db and annunciators.db:
        return UnitDescriptor("dB", 0)
    return NO_UNIT
