"""Packets a driver sends to the host session during acquisition."""

from dataclasses import dataclass
from enum import Enum


class Quantity(Enum):
    VOLTAGE = "voltage"
    CURRENT = "current"
    POWER = "power"
    ENERGY = "energy"
    CAPACITY = "capacity"
    TEMPERATURE = "temperature"


class Unit(Enum):
    VOLT = "V"
    AMPERE = "A"
    WATT = "W"
    WATT_HOUR = "Wh"
    AMPERE_HOUR = "Ah"
    CELSIUS = "°C"


@dataclass(frozen=True)
class StreamStart:
    """Header sent once when acquisition starts."""

    device: str
    start_time: float


@dataclass(frozen=True)
class FrameBegin:
    pass


@dataclass(frozen=True)
class AnalogSample:
    """One value on one channel."""

    channel: str
    value: float
    quantity: Quantity
    unit: Unit
    digits: int


@dataclass(frozen=True)
class FrameEnd:
    pass


@dataclass(frozen=True)
class StreamEnd:
    device: str
