"""
Device Discovery Module

Probes transport candidates, reads the identification block and matches
it against the profile table. Scanning returns the instances it built;
the caller owns them.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import SCAN_OPTIONS, ConfigKey
from .device_manager import DeviceInstance
from .errors import ArgumentError, TransportError
from .profiles import find_profile
from .registers import IDENTITY_BLOCK_ADDRESS, IDENTITY_BLOCK_SIZE, decode_u32, read_registers
from .terminal import ColorPrinter
from .transport import DEFAULT_MODBUSADDR, DEFAULT_SERIALCOMM, open_modbus_transport

logger = logging.getLogger(__name__)

ScanOption = Tuple[ConfigKey, Any]

# Applied only when the caller did not pass the same key
DEFAULT_SCAN_OPTIONS: Tuple[ScanOption, ...] = (
    (ConfigKey.SERIALCOMM, DEFAULT_SERIALCOMM),
    (ConfigKey.MODBUSADDR, DEFAULT_MODBUSADDR),
)


@dataclass(frozen=True)
class Identity:
    """Decoded identification block."""

    model_code: int
    raw_model: int
    serial: str
    firmware: str


def decode_identity(registers: Sequence[int]) -> Identity:
    """
    Decode the 4-register identification block.

    Register 0 is the model code times ten, registers 1-2 the serial
    number (32-bit, high word first) and register 3 the firmware
    version times 100.
    """
    if len(registers) < IDENTITY_BLOCK_SIZE:
        raise ArgumentError(f"Identity block needs {IDENTITY_BLOCK_SIZE} registers, got {len(registers)}")
    raw_model = registers[0]
    return Identity(
        model_code=raw_model // 10,
        raw_model=raw_model,
        serial=f"{decode_u32(registers[1], registers[2]):08d}",
        firmware=f"{registers[3] / 100.0:1.2f}",
    )


def normalize_options(options) -> List[ScanOption]:
    """
    Accept a dict or a sequence of (key, value) pairs; unwrap tagged values.

    Raises:
        ArgumentError: For a key that is not a scan option.
    """
    if options is None:
        return []
    items = options.items() if isinstance(options, dict) else options
    normalized = []
    for key, value in items:
        if not isinstance(key, ConfigKey):
            key = ConfigKey.from_name(str(key))
        if key not in SCAN_OPTIONS.keys:
            raise ArgumentError(f"'{key.value}' is not a scan option")
        normalized.append((key, getattr(value, "value", value)))
    return normalized


def apply_defaults(options, defaults: Iterable[ScanOption] = DEFAULT_SCAN_OPTIONS) -> List[ScanOption]:
    """
    Merge transport defaults under caller options.

    A default is added only if no caller option has the same key; the
    caller's value always wins, whatever it is.
    """
    merged = normalize_options(options)
    given = {key for key, _ in merged}
    for key, value in defaults:
        if key not in given:
            logger.info("Using default %s: %s", key.value, value)
            merged.insert(0, (key, value))
    return merged


class _ProvisionalHandle:
    """Stand-in instance so the identity read goes through the access layer."""

    def __init__(self, transport):
        self.transport = transport
        self.lock = threading.Lock()


class DeviceScanner:
    """
    Scans transport candidates and builds DeviceInstances for known models.

    Args:
        opener: Callable(descriptor, options_by_name) returning an unopened
                Transport. Defaults to Modbus RTU/TCP.
        clock: Optional monotonic clock handed to each instance's limits.
    """

    VENDOR = "Riden"

    def __init__(self, opener: Callable = open_modbus_transport, clock: Optional[Callable] = None):
        self.opener = opener
        self.clock = clock

    def probe(self, descriptor: str, transport_options: Dict[str, Any]) -> Optional[DeviceInstance]:
        """
        Identify the device behind one descriptor.

        Returns:
            DeviceInstance, or None if the model is unknown.

        Raises:
            TransportError: If the provisional connection or read fails.
        """
        transport = self.opener(descriptor, transport_options)
        transport.open()
        try:
            registers = read_registers(_ProvisionalHandle(transport), IDENTITY_BLOCK_ADDRESS, IDENTITY_BLOCK_SIZE)
        finally:
            transport.close()

        identity = decode_identity(registers)
        profile = find_profile(identity.model_code)
        if profile is None:
            logger.error("Unknown model: %d", identity.model_code)
            return None

        logger.info("Model: %s (%d)", profile.name, identity.raw_model)
        logger.info("Firmware version: %s", identity.firmware)
        logger.info("Serial number: %s", identity.serial)

        return DeviceInstance(
            transport,
            profile,
            vendor=self.VENDOR,
            version=identity.firmware,
            serial_num=identity.serial,
            clock=self.clock,
        )

    def scan(self, candidates: Iterable[str], options=None, verbose: bool = False) -> List[DeviceInstance]:
        """Scans candidate connections and returns an instance per supported device.

        Args:
            candidates: Connection descriptors (serial ports, "tcp/host:port").
            options: Scan options as (ConfigKey, value) pairs or a dict. Transport
                     defaults fill in serialcomm and modbusaddr when absent.
            verbose (bool): Print progress to the terminal.

        Returns:
            List[DeviceInstance]: Identified devices, in candidate order. A candidate
            that fails to answer or reports an unknown model is left out.
        """
        merged = apply_defaults(options)
        transport_options = {key.value: value for key, value in merged if key is not ConfigKey.CONN}

        if verbose:
            ColorPrinter.header("Scanning for Instruments")

        devices: List[DeviceInstance] = []
        for descriptor in candidates:
            if verbose:
                print(f"Checking {descriptor}...", end=" ", flush=True)
            try:
                device = self.probe(descriptor, transport_options)
            except TransportError as exc:
                logger.warning("No response from %s: %s", descriptor, exc)
                if verbose:
                    print(f"{ColorPrinter.RED}No response{ColorPrinter.RESET}")
                continue

            if device is None:
                if verbose:
                    ColorPrinter.warning("  -> Unknown or unsupported device.")
                continue

            if verbose:
                print(f"{ColorPrinter.GREEN}Found: {device.model}{ColorPrinter.RESET}")
                ColorPrinter.success(
                    f"  -> {device.vendor} {device.model}, fw {device.version}, serial {device.serial_num}"
                )
            devices.append(device)

        if verbose:
            print()
            if devices:
                ColorPrinter.success(f"Discovery Complete. Found {len(devices)} instruments.")
            else:
                ColorPrinter.warning("Discovery Complete. No supported instruments found.")
            print("-" * 60)

        return devices


def conn_candidates(options, enumerate_ports: Callable[[], List[str]]) -> List[str]:
    """Candidates for a scan: the conn option if given, otherwise every enumerated port."""
    for key, value in normalize_options(options):
        if key is ConfigKey.CONN:
            return [str(value)]
    return enumerate_ports()
