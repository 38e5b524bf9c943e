"""
Driver for Riden RD60xx Power Supplies
Instrument Type: DC Power Supply (single channel, Modbus RTU)

Protocol notes:
- Holding registers only; reads use FC03, writes FC16 with one register
- Default serial settings 115200/8n1, Modbus address 1
- Model code in register 0 is the model number times ten (RD6006 -> 60060)
- Measurements and setpoints are raw integers scaled by the model's step
"""

import logging
from typing import Callable, Iterable, List, Optional

from .acquisition import AcquisitionPoller
from .config import ConfigKey, ConfigValue, config_get, config_list, config_set
from .device_manager import DeviceInstance
from .discovery import DeviceScanner, conn_candidates
from .errors import ArgumentError
from .transport import open_modbus_transport, scan_serial_ports

logger = logging.getLogger(__name__)


class RidenRD:
    """
    Driver descriptor for the Riden RD60xx family.

    This is the fixed shape the host sees: scan, open/close, config
    get/set/list and acquisition start/stop. The driver keeps no list of
    devices; scan() hands them to the caller.
    """

    name = "riden-rd"
    longname = "Riden RD60xx series"

    def __init__(self, opener: Callable = open_modbus_transport,
                 enumerate_ports: Callable[[], List[str]] = scan_serial_ports, clock=None):
        self.scanner = DeviceScanner(opener=opener, clock=clock)
        self.enumerate_ports = enumerate_ports

    def scan(self, options=None, verbose: bool = False) -> List[DeviceInstance]:
        """
        Find supported devices.

        Args:
            options: Scan options, e.g. {ConfigKey.CONN: "/dev/ttyUSB0"}. Without
                     CONN every serial port on the system is probed.
            verbose (bool): Print progress to the terminal.

        Returns:
            List[DeviceInstance]: One per identified device.
        """
        candidates = conn_candidates(options, self.enumerate_ports)
        return self.scanner.scan(candidates, options, verbose=verbose)

    @staticmethod
    def _require(instance) -> DeviceInstance:
        if instance is None or instance.transport is None:
            raise ArgumentError("No device instance")
        return instance

    def dev_open(self, instance):
        self._require(instance).open()

    def dev_close(self, instance):
        self._require(instance).close()

    def dev_clear(self, instances: Iterable[DeviceInstance]):
        """Close the given instances and release their transports."""
        for instance in instances:
            if instance is not None:
                instance.clear()

    def config_get(self, key: ConfigKey, instance, channel_group=None) -> ConfigValue:
        return config_get(instance, key, channel_group)

    def config_set(self, key: ConfigKey, value: ConfigValue, instance, channel_group=None):
        config_set(instance, key, value, channel_group)

    def config_list(self, key: ConfigKey, instance=None, channel_group=None) -> ConfigValue:
        return config_list(instance, key, channel_group)

    def acquisition_start(self, instance, session, interval_ms: Optional[int] = None):
        """Install a poller on the instance if needed and start it."""
        instance = self._require(instance)
        poller = instance.poller
        if poller is None:
            poller = AcquisitionPoller(instance) if interval_ms is None else AcquisitionPoller(instance, interval_ms)
        elif interval_ms is not None:
            poller.interval_ms = interval_ms
        poller.start(session)
        return poller

    def acquisition_stop(self, instance):
        instance = self._require(instance)
        if instance.poller is not None:
            instance.poller.stop()
