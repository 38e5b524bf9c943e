__version__ = "1.0.0"
__author__ = "Brighton Sikarskie, Cesar Magana"

from .src.errors import (
    RegmapError,
    ArgumentError,
    UnsupportedError,
    UnsupportedModelError,
    KeyNotApplicableError,
    TransportError,
)
from .src.transport import ModbusRtuTransport, ModbusTcpTransport, open_modbus_transport, scan_serial_ports
from .src.profiles import Profile, ScalingSpec, SUPPORTED_MODELS, find_profile
from .src.device_manager import DeviceInstance
from .src.config import ConfigKey, config_get, config_set, config_list
from .src.discovery import DeviceScanner
from .src.session import PollingSession
from .src.acquisition import AcquisitionPoller
from .src.riden_rd import RidenRD
from .src.scpi_idn import IdnRecord, VisaIdentifier, parse_idn
from .src.terminal import ColorPrinter

__all__ = [
    "RegmapError",
    "ArgumentError",
    "UnsupportedError",
    "UnsupportedModelError",
    "KeyNotApplicableError",
    "TransportError",
    "ModbusRtuTransport",
    "ModbusTcpTransport",
    "open_modbus_transport",
    "scan_serial_ports",
    "Profile",
    "ScalingSpec",
    "SUPPORTED_MODELS",
    "find_profile",
    "DeviceInstance",
    "ConfigKey",
    "config_get",
    "config_set",
    "config_list",
    "DeviceScanner",
    "PollingSession",
    "AcquisitionPoller",
    "RidenRD",
    "IdnRecord",
    "VisaIdentifier",
    "parse_idn",
    "ColorPrinter",
]
