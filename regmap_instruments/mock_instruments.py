"""
Mock Riden power supply for running the REPL and tests without hardware.

Usage:
    regmap-repl --mock
"""

import random

from regmap_instruments.src.errors import TransportError
from regmap_instruments.src.registers import RidenRegister
from regmap_instruments.src.transport import Transport

MOCK_PORT = "mock/rd6006"


class MockRidenTransport(Transport):
    """
    Holding-register bank that behaves like an RD60xx.

    Writing ENABLE, VOLTAGE_TARGET or CURRENT_LIMIT updates the measured
    output the next time it is read. Set `fail_reads` to make the next N
    reads raise TransportError.
    """

    REGISTER_COUNT = 128

    def __init__(self, descriptor=MOCK_PORT, model_code=6006, serial=1234, firmware=128,
                 noise=False, load_ohms=10.0):
        self.descriptor = descriptor
        self.registers = [0] * self.REGISTER_COUNT
        self.noise = noise
        self.load_ohms = load_ohms
        self.fail_reads = 0
        self.reads = []
        self.writes = []
        self._open = False
        self.open_count = 0

        self.registers[RidenRegister.MODEL] = model_code * 10 + 1
        self.registers[RidenRegister.SERIAL] = (serial >> 16) & 0xFFFF
        self.registers[RidenRegister.SERIAL + 1] = serial & 0xFFFF
        self.registers[RidenRegister.FIRMWARE] = firmware
        self.registers[RidenRegister.TEMP_INTERNAL + 1] = 25
        self.registers[RidenRegister.TEMP_EXTERNAL] = 1
        self.registers[RidenRegister.TEMP_EXTERNAL + 1] = 5
        self.registers[RidenRegister.VOLTAGE_TARGET] = 500
        self.registers[RidenRegister.CURRENT_LIMIT] = 1000
        self.registers[RidenRegister.OVP_THRESHOLD] = 6200
        self.registers[RidenRegister.OCP_THRESHOLD] = 6200

    @property
    def is_open(self):
        return self._open

    def open(self):
        self._open = True
        self.open_count += 1

    def close(self):
        self._open = False

    def _update_outputs(self):
        regs = self.registers
        if not regs[RidenRegister.ENABLE]:
            regs[RidenRegister.VOLTAGE] = 0
            regs[RidenRegister.CURRENT] = 0
            regs[RidenRegister.POWER] = 0
            regs[RidenRegister.REGULATION_STATUS] = 0
            return
        volts = regs[RidenRegister.VOLTAGE_TARGET] / 100.0
        amps = volts / self.load_ohms
        limit = regs[RidenRegister.CURRENT_LIMIT] / 1000.0
        regs[RidenRegister.REGULATION_STATUS] = 1 if amps > limit else 0
        if amps > limit:
            amps = limit
            volts = amps * self.load_ohms
        if self.noise:
            volts += random.uniform(-0.01, 0.01)
        regs[RidenRegister.VOLTAGE] = max(0, int(round(volts * 100)))
        regs[RidenRegister.CURRENT] = max(0, int(round(amps * 1000)))
        regs[RidenRegister.POWER] = max(0, int(round(volts * amps * 100)))

    def read_holding_registers(self, address, count):
        if not self._open:
            raise TransportError(f"{self.descriptor}: transport not open")
        if self.fail_reads:
            self.fail_reads -= 1
            raise TransportError(f"{self.descriptor}: timeout reading HR{address}")
        if address < 0 or address + count > self.REGISTER_COUNT:
            raise TransportError(f"{self.descriptor}: illegal data address {address}")
        self._update_outputs()
        self.reads.append((address, count))
        return self.registers[address:address + count]

    def write_multiple_registers(self, address, values):
        if not self._open:
            raise TransportError(f"{self.descriptor}: transport not open")
        if address < 0 or address + len(values) > self.REGISTER_COUNT:
            raise TransportError(f"{self.descriptor}: illegal data address {address}")
        self.writes.append((address, list(values)))
        for offset, value in enumerate(values):
            self.registers[address + offset] = value & 0xFFFF


def mock_opener(transports):
    """Build an opener that hands out the given mock transports by descriptor."""

    def opener(descriptor, options=None):
        try:
            return transports[descriptor]
        except KeyError:
            raise TransportError(f"{descriptor}: no such port")

    return opener


def get_mock_driver(verbose=True):
    from regmap_instruments import ColorPrinter, RidenRD

    if verbose:
        ColorPrinter.warning("Mock mode: no real instruments connected")
        ColorPrinter.info(f"Injecting: RD6006 at {MOCK_PORT}")
    transports = {MOCK_PORT: MockRidenTransport(noise=True)}
    return RidenRD(opener=mock_opener(transports), enumerate_ports=lambda: [MOCK_PORT])
