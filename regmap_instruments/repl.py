#!/usr/bin/env python3
"""
Interactive REPL for register-mapped bench power supplies.

Use to discover supplies, read and write configuration keys, and stream
measurements to the console.
"""

import argparse
import cmd
import logging
import shlex
import sys
from typing import Dict, Optional

from regmap_instruments import ColorPrinter, RidenRD
from regmap_instruments.src.config import (
    ConfigKey,
    IntValue,
    config_list,
    display_digits,
    format_value,
    value_from_text,
)
from regmap_instruments.src.device_manager import DeviceInstance
from regmap_instruments.src.errors import RegmapError
from regmap_instruments.src.packets import AnalogSample, StreamEnd, StreamStart
from regmap_instruments.src.scpi_idn import VisaIdentifier
from regmap_instruments.src.session import PollingSession

DEVICE_PREFIX = "psu"

# Short names accepted by 'get' and 'set'
KEY_ALIASES = {
    "v": ConfigKey.VOLTAGE,
    "i": ConfigKey.CURRENT,
    "vset": ConfigKey.VOLTAGE_TARGET,
    "iset": ConfigKey.CURRENT_LIMIT,
    "out": ConfigKey.ENABLED,
    "output": ConfigKey.ENABLED,
    "mode": ConfigKey.REGULATION,
    "ovp": ConfigKey.OVP_THRESHOLD,
    "ocp": ConfigKey.OCP_THRESHOLD,
    "samples": ConfigKey.LIMIT_SAMPLES,
    "time": ConfigKey.LIMIT_MSEC,
}


class InstrumentRepl(cmd.Cmd):
    intro = "Register-mapped PSU REPL. Type 'help' for commands."
    prompt = "regmap> "

    def __init__(self, driver: Optional[RidenRD] = None, scan_on_start: bool = True):
        super().__init__()
        self.driver = driver or RidenRD()
        self.devices: Dict[str, DeviceInstance] = {}
        self.selected: Optional[str] = None

        if scan_on_start:
            ColorPrinter.info("Scanning for instruments... (Ctrl+C to cancel)")
            self.scan()
            if self.devices:
                ColorPrinter.success(f"Found {len(self.devices)} device(s)")
            else:
                ColorPrinter.warning(f"Found {len(self.devices)} device(s)")

    # --------------------------
    # Core helpers
    # --------------------------
    def scan(self, options=None):
        self._close_all()
        found = self.driver.scan(options, verbose=True)
        for index, dev in enumerate(found, start=1):
            name = DEVICE_PREFIX if index == 1 else f"{DEVICE_PREFIX}{index}"
            try:
                self.driver.dev_open(dev)
            except RegmapError as exc:
                ColorPrinter.error(f"{name}: {exc}")
                continue
            self.devices[name] = dev
        if self.devices:
            self.selected = next(iter(self.devices))

    def _close_all(self):
        self.driver.dev_clear(self.devices.values())
        self.devices = {}
        self.selected = None

    def _get_device(self, name: Optional[str] = None) -> Optional[DeviceInstance]:
        if not self.devices:
            ColorPrinter.warning("No instruments connected. Run 'scan' first.")
            return None

        name = name or self.selected
        if name not in self.devices:
            ColorPrinter.warning(
                f"Unknown instrument '{name}'. Available: {list(self.devices.keys())}"
            )
            return None
        return self.devices[name]

    def _parse_args(self, arg):
        try:
            return shlex.split(arg)
        except ValueError as exc:
            ColorPrinter.error(f"Parse error: {exc}")
            return []

    def _parse_key(self, text) -> Optional[ConfigKey]:
        key = KEY_ALIASES.get(text.lower())
        if key is not None:
            return key
        try:
            return ConfigKey.from_name(text)
        except RegmapError as exc:
            ColorPrinter.error(str(exc))
            return None

    def _is_help(self, args):
        if not args:
            return False
        return args[-1].lower() in ("help", "-h", "--help")

    def _print_usage(self, lines):
        for line in lines:
            print(line)

    def _print_devices(self):
        if not self.devices:
            ColorPrinter.warning("No instruments connected.")
            return
        for name, dev in self.devices.items():
            marker = "*" if name == self.selected else " "
            ColorPrinter.cyan(
                f"{marker} {name:<6} {dev.vendor} {dev.model}  fw {dev.version}  "
                f"serial {dev.serial_num}  @ {dev.resource_name}"
            )

    def _print_packet(self, packet):
        if isinstance(packet, AnalogSample):
            ColorPrinter.reading(packet.channel, packet.value, packet.unit.value, packet.digits)
        elif isinstance(packet, StreamStart):
            ColorPrinter.info(f"Acquisition started on {packet.device}")
        elif isinstance(packet, StreamEnd):
            ColorPrinter.info(f"Acquisition finished on {packet.device}")
        else:
            print("-" * 24)

    # --------------------------
    # General commands
    # --------------------------
    def do_scan(self, arg):
        "scan [conn=<port>] [serialcomm=115200/8n1] [modbusaddr=1]: discover supplies"
        args = self._parse_args(arg)
        if self._is_help(args):
            self._print_usage(
                [
                    "scan [key=value ...]",
                    "  - example: scan",
                    "  - example: scan conn=/dev/ttyUSB0 modbusaddr=2",
                    "  - example: scan conn=tcp/192.168.1.50:502",
                ]
            )
            return
        options = {}
        for item in args:
            key, sep, value = item.partition("=")
            if not sep:
                ColorPrinter.error(f"Expected key=value, got '{item}'")
                return
            parsed = self._parse_key(key)
            if parsed is None:
                return
            if parsed is ConfigKey.MODBUSADDR:
                try:
                    value = int(value, 0)
                except ValueError:
                    ColorPrinter.error(f"Invalid Modbus address '{value}'")
                    return
            options[parsed] = value
        try:
            self.scan(options)
        except RegmapError as exc:
            ColorPrinter.error(str(exc))

    def do_list(self, arg):
        "list: show connected instruments"
        self._print_devices()

    def do_use(self, arg):
        "use <name>: set active instrument"
        args = self._parse_args(arg)
        if self._is_help(args) or not args:
            self._print_usage(["use <name>", "  - example: use psu2"])
            self._print_devices()
            return
        name = args[0]
        if name not in self.devices:
            ColorPrinter.warning(f"Unknown instrument '{name}'.")
            return
        self.selected = name
        ColorPrinter.success(f"Selected: {name}")

    def do_status(self, arg):
        "status: show current selection and output state"
        dev = self._get_device()
        if dev is None:
            return
        ColorPrinter.info(f"Selected: {self.selected}")
        for key in (ConfigKey.ENABLED, ConfigKey.REGULATION, ConfigKey.VOLTAGE, ConfigKey.CURRENT,
                    ConfigKey.VOLTAGE_TARGET, ConfigKey.CURRENT_LIMIT):
            try:
                value = self.driver.config_get(key, dev)
            except RegmapError as exc:
                ColorPrinter.error(f"{key.value}: {exc}")
                return
            ColorPrinter.cyan(f"  {key.value:<16} {format_value(value, display_digits(dev, key))}")

    def do_get(self, arg):
        "get <key>: read a configuration key from the active supply"
        args = self._parse_args(arg)
        if self._is_help(args) or not args:
            self._print_usage(
                [
                    "get <key>",
                    "  - keys: voltage, current, voltage_target, current_limit, enabled, regulation,",
                    "          ovp_enabled, ovp_active, ovp_threshold, ocp_enabled, ocp_active,",
                    "          ocp_threshold, limit_samples, limit_time",
                    "  - example: get vset",
                ]
            )
            return
        key = self._parse_key(args[0])
        dev = self._get_device()
        if key is None or dev is None:
            return
        try:
            value = self.driver.config_get(key, dev)
            ColorPrinter.cyan(f"{key.value} = {format_value(value, display_digits(dev, key))}")
        except RegmapError as exc:
            ColorPrinter.error(str(exc))

    def do_set(self, arg):
        "set <key> <value>: write a configuration key on the active supply"
        args = self._parse_args(arg)
        if self._is_help(args) or len(args) < 2:
            self._print_usage(
                [
                    "set <key> <value>",
                    "  - example: set vset 12.5",
                    "  - example: set iset 1.2",
                    "  - example: set out on",
                ]
            )
            return
        key = self._parse_key(args[0])
        dev = self._get_device()
        if key is None or dev is None:
            return
        try:
            value = value_from_text(key, args[1])
            self.driver.config_set(key, value, dev)
        except RegmapError as exc:
            ColorPrinter.error(str(exc))
            return
        ColorPrinter.success(f"{key.value} <- {format_value(value, display_digits(dev, key))}")

    def do_options(self, arg):
        "options [key]: list valid values of a key, or the supported keys"
        args = self._parse_args(arg)
        dev = self.devices.get(self.selected) if self.selected else None
        if args:
            key = self._parse_key(args[0])
            if key is None:
                return
        else:
            key = ConfigKey.DEVICE_OPTIONS
        try:
            ColorPrinter.cyan(f"{key.value}: {format_value(config_list(dev, key))}")
        except RegmapError as exc:
            ColorPrinter.error(str(exc))

    def do_acquire(self, arg):
        "acquire [samples=N] [time=ms]: stream measurements until a limit or Ctrl+C"
        args = self._parse_args(arg)
        if self._is_help(args):
            self._print_usage(
                [
                    "acquire [samples=N] [time=ms]",
                    "  - example: acquire samples=10",
                    "  - example: acquire time=2000",
                    "  - without limits, runs until Ctrl+C",
                ]
            )
            return
        dev = self._get_device()
        if dev is None:
            return
        limits = {ConfigKey.LIMIT_SAMPLES: 0, ConfigKey.LIMIT_MSEC: 0}
        for item in args:
            name, _, value = item.partition("=")
            key = KEY_ALIASES.get(name.lower())
            if key not in limits:
                ColorPrinter.error(f"Unknown acquire option '{item}'")
                return
            try:
                limits[key] = int(value)
            except ValueError:
                ColorPrinter.error(f"Invalid number in '{item}'")
                return

        session = PollingSession(on_packet=self._print_packet, keep_packets=False)
        try:
            for key, value in limits.items():
                self.driver.config_set(key, IntValue(value), dev)
            self.driver.acquisition_start(dev, session)
            session.run()
        except KeyboardInterrupt:
            print()
        except RegmapError as exc:
            ColorPrinter.error(str(exc))
        finally:
            self.driver.acquisition_stop(dev)
        ColorPrinter.info(f"Samples read: {dev.limits.samples_read}")

    def do_idn(self, arg):
        "idn <visa-resource>: query *IDN? on a SCPI instrument"
        args = self._parse_args(arg)
        if self._is_help(args) or not args:
            self._print_usage(["idn <visa-resource>", "  - example: idn USB0::0x1AB1::0x0E11::DP8A1234::INSTR"])
            return
        try:
            record = VisaIdentifier(args[0]).identify()
        except RegmapError as exc:
            ColorPrinter.error(str(exc))
            return
        ColorPrinter.cyan(f"manufacturer: {record.manufacturer}")
        ColorPrinter.cyan(f"model:        {record.model}")
        ColorPrinter.cyan(f"serial:       {record.serial}")
        ColorPrinter.cyan(f"firmware:     {record.firmware}")

    def do_close(self, arg):
        "close: disconnect all instruments"
        self._close_all()
        ColorPrinter.info("All instruments disconnected.")

    def do_exit(self, arg):
        "exit: quit the REPL"
        self._close_all()
        return True

    def do_quit(self, arg):
        "quit: quit the REPL"
        return self.do_exit(arg)

    def do_EOF(self, arg):
        print()
        return self.do_exit(arg)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Interactive REPL for register-mapped power supplies")
    parser.add_argument("--mock", action="store_true", help="use a simulated RD6006 instead of hardware")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="log driver activity (-vv for registers)")
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    driver = None
    if args.mock:
        from regmap_instruments import mock_instruments
        driver = mock_instruments.get_mock_driver()

    repl = InstrumentRepl(driver)
    try:
        repl.cmdloop()
    except KeyboardInterrupt:
        print("\nGoodbye!")
        repl.do_exit("")


if __name__ == "__main__":
    sys.exit(main())
