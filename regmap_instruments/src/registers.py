"""
Register map and register access for the Riden RD60xx family.

Every transport round trip goes through read_registers() or
write_register(), which hold the instance lock for exactly one
transaction. Callers never take the lock themselves.
"""

import logging
from enum import IntEnum
from typing import List

from .errors import ArgumentError, TransportError

logger = logging.getLogger(__name__)

UINT16_MAX = 0xFFFF


class RidenRegister(IntEnum):
    """Holding register addresses. Two-word registers are listed in TWO_WORD_REGISTERS."""

    MODEL = 0
    SERIAL = 1
    FIRMWARE = 3
    TEMP_INTERNAL = 4
    TEMP_INTERNAL_F = 6
    VOLTAGE_TARGET = 8
    CURRENT_LIMIT = 9
    VOLTAGE = 10
    CURRENT = 11
    POWER = 13
    INPUT_VOLTAGE = 14
    PROTECTION_STATUS = 16  # bit 0 OVP, bit 1 OCP
    REGULATION_STATUS = 17  # 0 CV, 1 CC
    ENABLE = 18
    BATTERY_MODE = 32
    BATTERY_VOLTAGE = 33
    TEMP_EXTERNAL = 34
    TEMP_EXTERNAL_F = 36
    CAPACITY = 38
    ENERGY = 40
    DATE_YEAR = 48
    DATE_MONTH = 49
    DATE_DAY = 50
    TIME_HOUR = 51
    TIME_MIN = 52
    TIME_SEC = 53
    BACKLIGHT = 72
    OVP_THRESHOLD = 82
    OCP_THRESHOLD = 83

    @property
    def width(self) -> int:
        """Number of 16-bit words the register spans."""
        return 2 if self in TWO_WORD_REGISTERS else 1


TWO_WORD_REGISTERS = frozenset({
    RidenRegister.SERIAL,
    RidenRegister.TEMP_INTERNAL,
    RidenRegister.TEMP_INTERNAL_F,
    RidenRegister.TEMP_EXTERNAL,
    RidenRegister.TEMP_EXTERNAL_F,
    RidenRegister.CAPACITY,
    RidenRegister.ENERGY,
})

# Identity block: model, serial (2 words), firmware
IDENTITY_BLOCK_ADDRESS = RidenRegister.MODEL
IDENTITY_BLOCK_SIZE = 4


def _transport_of(instance):
    if instance is None:
        raise ArgumentError("No device instance")
    transport = getattr(instance, "transport", None)
    if transport is None:
        raise ArgumentError(f"{instance!r} has no transport")
    return transport


def read_registers(instance, address: int, count: int) -> List[int]:
    """
    Read consecutive holding registers from a device instance.

    Args:
        instance: DeviceInstance owning the transport and its lock.
        address (int): First register address.
        count (int): Number of 16-bit registers to read.

    Returns:
        list[int]: `count` unsigned 16-bit values in register order.

    Raises:
        ArgumentError: If the instance, address or count is invalid.
        TransportError: Passed through from the transport, or raised when
                        the response does not carry `count` registers.
    """
    transport = _transport_of(instance)
    if address < 0 or count < 1:
        raise ArgumentError(f"Invalid register read: address={address}, count={count}")

    with instance.lock:
        values = transport.read_holding_registers(int(address), int(count))

    if values is None or len(values) != count:
        got = 0 if values is None else len(values)
        raise TransportError(
            f"Malformed response: expected {count} registers at {address}, got {got}"
        )

    registers = [int(v) & UINT16_MAX for v in values]
    for offset, value in enumerate(registers):
        logger.debug("read modbus: register=%d, val=%d", address + offset, value)
    return registers


def write_register(instance, address: int, value: int) -> None:
    """
    Write a single holding register on a device instance.

    Raises:
        ArgumentError: If the instance is invalid or value does not fit 16 bits.
        TransportError: Passed through from the transport.
    """
    transport = _transport_of(instance)
    value = int(value)
    if address < 0 or not 0 <= value <= UINT16_MAX:
        raise ArgumentError(f"Invalid register write: address={address}, value={value}")

    with instance.lock:
        transport.write_multiple_registers(int(address), [value])
    logger.debug("write modbus: register=%d, val=%d", address, value)


def decode_u32(high: int, low: int) -> int:
    """Assemble two big-endian-ordered 16-bit words into one unsigned 32-bit value."""
    return ((high & UINT16_MAX) << 16) | (low & UINT16_MAX)


def decode_signed_magnitude(sign: int, magnitude: int) -> int:
    """Decode a sign-flag/magnitude register pair (sign non-zero means negative)."""
    return -magnitude if sign else magnitude
