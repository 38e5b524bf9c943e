"""
Test Modbus Transports
======================
Connection descriptors, serial settings and pymodbus error translation.
No hardware is touched; the pymodbus client is replaced with a fake.
"""

from types import SimpleNamespace

import pytest
from pymodbus.exceptions import ModbusException

from regmap_instruments.src import transport as transport_mod
from regmap_instruments.src.errors import ArgumentError, TransportError
from regmap_instruments.src.transport import (
    ModbusRtuTransport,
    ModbusTcpTransport,
    open_modbus_transport,
    parse_serialcomm,
    scan_serial_ports,
)


class FakeResponse:
    def __init__(self, registers=None, error=False):
        self.registers = registers or []
        self._error = error

    def isError(self):
        return self._error


class FakeClient:
    def __init__(self, connected=True):
        self.connected = connected
        self.closed = False
        self.calls = []
        self.response = FakeResponse([1, 2, 3])
        self.raise_on_read = None

    def connect(self):
        return self.connected

    def close(self):
        self.closed = True

    def read_holding_registers(self, address, count=1, device_id=1):
        self.calls.append(("read", address, count, device_id))
        if self.raise_on_read:
            raise self.raise_on_read
        return self.response

    def write_registers(self, address, values, device_id=1):
        self.calls.append(("write", address, values, device_id))
        return self.response


@pytest.fixture
def fake_client(monkeypatch):
    client = FakeClient()
    monkeypatch.setattr(ModbusRtuTransport, "_create_client", lambda self: client)
    return client


def test_parse_default_serialcomm():
    assert parse_serialcomm("115200/8n1") == {
        "baudrate": 115200,
        "bytesize": 8,
        "parity": "N",
        "stopbits": 1,
    }


def test_parse_other_framing():
    settings = parse_serialcomm("9600/7e2")
    assert settings["baudrate"] == 9600
    assert settings["bytesize"] == 7
    assert settings["parity"] == "E"
    assert settings["stopbits"] == 2


@pytest.mark.parametrize("text", ["", "fast", "115200", "115200/9n1", "abc/8n1", "9600/8x1", "9600/8n3"])
def test_parse_rejects_bad_serialcomm(text):
    with pytest.raises(ArgumentError):
        parse_serialcomm(text)


def test_serial_descriptor_builds_rtu():
    t = open_modbus_transport("/dev/ttyUSB0", {"serialcomm": "9600/8n1", "modbusaddr": 3})
    assert isinstance(t, ModbusRtuTransport)
    assert t.descriptor == "/dev/ttyUSB0"
    assert t.modbusaddr == 3
    assert t.serial_settings["baudrate"] == 9600
    assert not t.is_open


def test_serial_descriptor_defaults():
    t = open_modbus_transport("COM3")
    assert t.modbusaddr == 1
    assert t.serial_settings["baudrate"] == 115200


def test_tcp_descriptor_builds_tcp():
    t = open_modbus_transport("tcp/10.0.0.5:1502", {"modbusaddr": 2})
    assert isinstance(t, ModbusTcpTransport)
    assert (t.host, t.port, t.modbusaddr) == ("10.0.0.5", 1502, 2)
    assert open_modbus_transport("tcp/10.0.0.5").port == 502


@pytest.mark.parametrize("descriptor", ["", "tcp/", "tcp/:502", "tcp/host:port"])
def test_bad_descriptors(descriptor):
    with pytest.raises(ArgumentError):
        open_modbus_transport(descriptor)


def test_read_passes_device_id(fake_client):
    t = ModbusRtuTransport("/dev/ttyUSB0", modbusaddr=5)
    t.open()
    assert t.is_open
    assert t.read_holding_registers(10, 3) == [1, 2, 3]
    assert fake_client.calls == [("read", 10, 3, 5)]


def test_write_passes_values(fake_client):
    t = ModbusRtuTransport("/dev/ttyUSB0")
    t.open()
    t.write_multiple_registers(8, [1234])
    assert fake_client.calls == [("write", 8, [1234], 1)]


def test_error_response_becomes_transport_error(fake_client):
    t = ModbusRtuTransport("/dev/ttyUSB0")
    t.open()
    fake_client.response = FakeResponse(error=True)
    with pytest.raises(TransportError):
        t.read_holding_registers(0, 4)
    with pytest.raises(TransportError):
        t.write_multiple_registers(8, [1])


def test_modbus_exception_becomes_transport_error(fake_client):
    t = ModbusRtuTransport("/dev/ttyUSB0")
    t.open()
    fake_client.raise_on_read = ModbusException("No response received")
    with pytest.raises(TransportError, match="HR0"):
        t.read_holding_registers(0, 4)


def test_failed_connect(fake_client):
    fake_client.connected = False
    t = ModbusRtuTransport("/dev/ttyUSB0")
    with pytest.raises(TransportError, match="cannot connect"):
        t.open()
    assert fake_client.closed
    assert not t.is_open


def test_io_requires_open_transport():
    t = ModbusRtuTransport("/dev/ttyUSB0")
    with pytest.raises(TransportError):
        t.read_holding_registers(0, 1)


def test_close_is_idempotent(fake_client):
    t = ModbusRtuTransport("/dev/ttyUSB0")
    t.open()
    t.close()
    t.close()
    assert fake_client.closed
    assert not t.is_open


def test_scan_serial_ports_skips_bluetooth(monkeypatch):
    ports = [
        SimpleNamespace(device="/dev/ttyUSB1", description="CH340 serial"),
        SimpleNamespace(device="/dev/rfcomm0", description="Bluetooth serial"),
        SimpleNamespace(device="/dev/ttyUSB0", description=None),
    ]
    monkeypatch.setattr(transport_mod.list_ports, "comports", lambda: ports)
    assert scan_serial_ports() == ["/dev/ttyUSB0", "/dev/ttyUSB1"]


def test_modbus_transport_needs_a_client_factory():
    with pytest.raises(TypeError):
        transport_mod.ModbusTransport("/dev/ttyUSB0")
