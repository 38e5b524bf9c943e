"""
Periodic acquisition for register-mapped power supplies.

Each tick reads four register blocks, scales them with the device
profile and sends one frame holding one sample per channel. A tick that
hits a transport error sends nothing; the limit check runs either way.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .device_manager import DeviceStatus
from .errors import ArgumentError, TransportError
from .packets import AnalogSample, FrameBegin, FrameEnd, Quantity, StreamEnd, StreamStart, Unit
from .registers import RidenRegister, decode_signed_magnitude, decode_u32, read_registers

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 10
ACCUMULATOR_SCALE = 0.001  # Ah / Wh per LSB
ACCUMULATOR_DIGITS = 3
TEMPERATURE_DIGITS = 0


class PollerState(Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class Reading:
    """One converted set of measurements."""

    voltage: float
    current: float
    power: float
    capacity: float
    energy: float
    temp_internal: float
    temp_external: float


def decode_accumulator(high: int, low: int) -> float:
    return decode_u32(high, low) * ACCUMULATOR_SCALE


class AcquisitionPoller:
    """
    Idle/Running state machine installed on one DeviceInstance.

    start() arms the limits and registers poll() with the session;
    stop() removes it again. stop() does not interrupt a tick in progress.
    """

    def __init__(self, instance, interval_ms: int = POLL_INTERVAL_MS):
        if instance is None:
            raise ArgumentError("No device instance")
        self.instance = instance
        self.interval_ms = interval_ms
        self.state = PollerState.IDLE
        self.session = None
        self._handle = None
        instance.poller = self

    @property
    def running(self) -> bool:
        return self.state is PollerState.RUNNING

    def start(self, session):
        """Reset the limits, register the periodic tick and send the stream header."""
        if session is None:
            raise ArgumentError("No session to acquire into")
        if self.running:
            raise ArgumentError(f"{self.instance.model} is already acquiring")

        self.session = session
        self._handle = session.add_source(self.interval_ms, self.poll)
        limits = self.instance.limits
        limits.acquisition_start()
        self.state = PollerState.RUNNING
        self.instance.status = DeviceStatus.ACTIVE
        session.send(StreamStart(self.instance.model, limits.start_time))
        logger.info("Acquisition started on %s", self.instance.model)

    def stop(self):
        """Remove the tick and send the stream end. No-op when idle."""
        if not self.running:
            return
        self.session.remove_source(self._handle)
        self._handle = None
        self.state = PollerState.IDLE
        self.instance.status = DeviceStatus.INACTIVE
        self.session.send(StreamEnd(self.instance.model))
        logger.info("Acquisition stopped on %s (%r)", self.instance.model, self.instance.limits)

    def read_sample(self) -> Reading:
        """
        Read and convert one sample.

        Raises:
            TransportError: From any of the four register reads.
        """
        instance = self.instance
        profile = instance.profile

        # voltage, current, (unused), power
        regs = read_registers(instance, RidenRegister.VOLTAGE, 4)
        voltage = profile.voltage.to_physical(regs[0])
        current = profile.current.to_physical(regs[1])
        power = profile.power.to_physical(regs[3])

        regs = read_registers(instance, RidenRegister.CAPACITY, 4)
        capacity = decode_accumulator(regs[0], regs[1])
        energy = decode_accumulator(regs[2], regs[3])

        regs = read_registers(instance, RidenRegister.TEMP_INTERNAL, 2)
        temp_internal = float(decode_signed_magnitude(regs[0], regs[1]))

        regs = read_registers(instance, RidenRegister.TEMP_EXTERNAL, 2)
        temp_external = float(decode_signed_magnitude(regs[0], regs[1]))

        return Reading(voltage, current, power, capacity, energy, temp_internal, temp_external)

    def _send_frame(self, reading: Reading):
        profile = self.instance.profile
        # Capacity is read but not streamed
        values = (
            (reading.voltage, Quantity.VOLTAGE, Unit.VOLT, profile.voltage.display_digits),
            (reading.current, Quantity.CURRENT, Unit.AMPERE, profile.current.display_digits),
            (reading.power, Quantity.POWER, Unit.WATT, profile.power.display_digits),
            (reading.energy, Quantity.ENERGY, Unit.WATT_HOUR, ACCUMULATOR_DIGITS),
            (reading.temp_internal, Quantity.TEMPERATURE, Unit.CELSIUS, TEMPERATURE_DIGITS),
            (reading.temp_external, Quantity.TEMPERATURE, Unit.CELSIUS, TEMPERATURE_DIGITS),
        )
        session = self.session
        session.send(FrameBegin())
        for channel, (value, quantity, unit, digits) in zip(self.instance.channels, values):
            session.send(AnalogSample(channel.name, value, quantity, unit, digits))
        session.send(FrameEnd())

    def poll(self):
        """
        One tick: read, convert, send, then check the limits.

        A tick on an idle poller (never started, or stopped while the read
        was in flight) sends nothing and counts nothing.
        """
        try:
            reading = self.read_sample()
        except TransportError as exc:
            logger.warning("Poll of %s failed: %s", self.instance.model, exc)
            reading = None

        if not self.running:
            logger.debug("Dropping tick on idle poller for %s", self.instance.model)
            return

        if reading is not None:
            logger.debug(
                "V=%.3fV I=%.3fA P=%.3fW C=%.3fAh E=%.3fWh T1=%.1fC T2=%.1fC",
                reading.voltage, reading.current, reading.power, reading.capacity,
                reading.energy, reading.temp_internal, reading.temp_external,
            )
            self._send_frame(reading)
            self.instance.limits.update_samples_read(1)

        if self.instance.limits.check():
            self.stop()
