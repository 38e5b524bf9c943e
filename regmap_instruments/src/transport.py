"""
Register transports for Modbus instruments.

The driver core only needs the four calls on Transport; everything
below that line (framing, CRC, addressing) belongs to pymodbus.

Connection descriptors:
    /dev/ttyUSB0, COM3         Modbus RTU over a serial port
    tcp/192.168.1.20:502       Modbus TCP
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from pymodbus.client import ModbusSerialClient, ModbusTcpClient
from pymodbus.exceptions import ModbusException
from serial.tools import list_ports

from .errors import ArgumentError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_SERIALCOMM = "115200/8n1"
DEFAULT_MODBUSADDR = 1
DEFAULT_TCP_PORT = 502

PARITY_MAP = {"n": "N", "e": "E", "o": "O", "m": "M", "s": "S"}


def parse_serialcomm(serialcomm: str) -> Dict[str, object]:
    """
    Parse a serial settings string such as "115200/8n1".

    Returns:
        dict: baudrate, bytesize, parity and stopbits keyword arguments.

    Raises:
        ArgumentError: If the string is not in baud/<bits><parity><stop> form.
    """
    try:
        baud_str, frame = serialcomm.strip().lower().split("/", 1)
        baudrate = int(baud_str)
        bytesize = int(frame[0])
        parity = PARITY_MAP[frame[1]]
        stopbits = float(frame[2:]) if "." in frame[2:] else int(frame[2:])
    except (ValueError, IndexError, KeyError, AttributeError):
        raise ArgumentError(f"Invalid serialcomm '{serialcomm}', expected e.g. 115200/8n1")

    if baudrate <= 0 or bytesize not in (5, 6, 7, 8) or stopbits not in (1, 1.5, 2):
        raise ArgumentError(f"Invalid serialcomm '{serialcomm}'")

    return {
        "baudrate": baudrate,
        "bytesize": bytesize,
        "parity": parity,
        "stopbits": stopbits,
    }


def scan_serial_ports() -> List[str]:
    """List serial port device paths that could host a Modbus RTU device."""
    ports = []
    for port in list_ports.comports():
        # Bluetooth virtual ports hang on open
        if any(skip in (port.description or "") for skip in ["Bluetooth", "BTHENUM"]):
            logger.debug("Skipping virtual port %s", port.device)
            continue
        ports.append(port.device)
    return sorted(ports)


class Transport(ABC):
    """Holding-register transport consumed by the register access layer."""

    descriptor: str = ""

    @abstractmethod
    def open(self) -> None:
        """Open the connection. Raises TransportError on failure."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection. Safe to call on a closed transport."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    def read_holding_registers(self, address: int, count: int) -> List[int]:
        """Read `count` 16-bit holding registers starting at `address`."""

    @abstractmethod
    def write_multiple_registers(self, address: int, values: Sequence[int]) -> None:
        """Write consecutive 16-bit holding registers starting at `address`."""


class ModbusTransport(Transport):
    """
    Modbus client wrapper shared by the RTU and TCP transports.

    Subclasses only build the pymodbus client; request handling and
    error translation live here.
    """

    def __init__(self, descriptor: str, modbusaddr: int = DEFAULT_MODBUSADDR, timeout: float = 1.0):
        self.descriptor = descriptor
        self.modbusaddr = int(modbusaddr)
        self.timeout = timeout
        self._client = None

    @abstractmethod
    def _create_client(self):
        """Build the (unconnected) pymodbus client."""

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def open(self) -> None:
        if self._client is not None:
            return
        client = self._create_client()
        try:
            connected = client.connect()
        except ModbusException as exc:
            raise TransportError(f"{self.descriptor}: {exc}") from exc
        if not connected:
            client.close()
            raise TransportError(f"{self.descriptor}: cannot connect")
        self._client = client
        logger.debug("Opened %r", self)

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            finally:
                self._client = None
            logger.debug("Closed %r", self)

    def _require_client(self):
        if self._client is None:
            raise TransportError(f"{self.descriptor}: transport not open")
        return self._client

    def read_holding_registers(self, address: int, count: int) -> List[int]:
        client = self._require_client()
        try:
            rr = client.read_holding_registers(address, count=count, device_id=self.modbusaddr)
        except ModbusException as exc:
            raise TransportError(f"{self.descriptor}: read HR{address} failed: {exc}") from exc
        if rr.isError():
            raise TransportError(f"{self.descriptor}: read HR{address} failed: {rr}")
        return list(rr.registers)

    def write_multiple_registers(self, address: int, values: Sequence[int]) -> None:
        client = self._require_client()
        try:
            wr = client.write_registers(address, list(values), device_id=self.modbusaddr)
        except ModbusException as exc:
            raise TransportError(f"{self.descriptor}: write HR{address} failed: {exc}") from exc
        if wr.isError():
            raise TransportError(f"{self.descriptor}: write HR{address} failed: {wr}")


class ModbusRtuTransport(ModbusTransport):
    """Modbus RTU over a serial port."""

    def __init__(self, port: str, serialcomm: str = DEFAULT_SERIALCOMM,
                 modbusaddr: int = DEFAULT_MODBUSADDR, timeout: float = 1.0):
        super().__init__(port, modbusaddr=modbusaddr, timeout=timeout)
        self.serial_settings = parse_serialcomm(serialcomm)

    def _create_client(self):
        return ModbusSerialClient(port=self.descriptor, timeout=self.timeout, **self.serial_settings)

    def __repr__(self):
        s = self.serial_settings
        return (
            f"ModbusRtuTransport(port={self.descriptor!r}, "
            f"{s['baudrate']}/{s['bytesize']}{s['parity'].lower()}{s['stopbits']}, "
            f"addr={self.modbusaddr})"
        )


class ModbusTcpTransport(ModbusTransport):
    """Modbus TCP, for RTU devices behind a gateway."""

    def __init__(self, host: str, port: int = DEFAULT_TCP_PORT,
                 modbusaddr: int = DEFAULT_MODBUSADDR, timeout: float = 1.0):
        super().__init__(f"tcp/{host}:{port}", modbusaddr=modbusaddr, timeout=timeout)
        self.host = host
        self.port = port

    def _create_client(self):
        return ModbusTcpClient(self.host, port=self.port, timeout=self.timeout)

    def __repr__(self):
        return f"ModbusTcpTransport(host={self.host!r}, port={self.port}, addr={self.modbusaddr})"


def open_modbus_transport(descriptor: str, options: Optional[Dict[str, object]] = None) -> Transport:
    """
    Build an (unopened) Modbus transport for a connection descriptor.

    Args:
        descriptor: Serial port path, or "tcp/<host>[:<port>]".
        options: Transport options keyed by option name
                 ("serialcomm", "modbusaddr"). Missing keys use defaults.

    Returns:
        Transport: ModbusRtuTransport or ModbusTcpTransport.
    """
    if not descriptor:
        raise ArgumentError("Empty connection descriptor")
    options = options or {}
    modbusaddr = int(options.get("modbusaddr", DEFAULT_MODBUSADDR))

    if descriptor.startswith("tcp/"):
        hostport = descriptor[len("tcp/"):]
        host, _, port = hostport.partition(":")
        if not host:
            raise ArgumentError(f"Invalid TCP descriptor '{descriptor}'")
        try:
            port_num = int(port) if port else DEFAULT_TCP_PORT
        except ValueError:
            raise ArgumentError(f"Invalid TCP port in '{descriptor}'")
        return ModbusTcpTransport(host, port_num, modbusaddr=modbusaddr)

    serialcomm = str(options.get("serialcomm", DEFAULT_SERIALCOMM))
    return ModbusRtuTransport(descriptor, serialcomm=serialcomm, modbusaddr=modbusaddr)
