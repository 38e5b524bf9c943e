"""
Key-based configuration for register-mapped power supplies.

Every value crossing this interface is one of the tagged variants below;
each key declares the variant it carries (KEY_VALUE_TYPES) and the
operations it supports (DEVICE_OPTIONS).
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum, Flag
from typing import Dict, Tuple, Union

from .errors import ArgumentError, KeyNotApplicableError
from .registers import RidenRegister, read_registers, write_register

logger = logging.getLogger(__name__)


class ConfigKey(Enum):
    # Scan options
    CONN = "conn"
    SERIALCOMM = "serialcomm"
    MODBUSADDR = "modbusaddr"
    # Driver class
    POWER_SUPPLY = "power_supply"
    # Acquisition
    CONTINUOUS = "continuous"
    LIMIT_SAMPLES = "limit_samples"
    LIMIT_MSEC = "limit_time"
    # Output
    VOLTAGE = "voltage"
    VOLTAGE_TARGET = "voltage_target"
    CURRENT = "current"
    CURRENT_LIMIT = "current_limit"
    ENABLED = "enabled"
    REGULATION = "regulation"
    # Protection
    OVP_ENABLED = "ovp_enabled"
    OVP_ACTIVE = "ovp_active"
    OVP_THRESHOLD = "ovp_threshold"
    OCP_ENABLED = "ocp_enabled"
    OCP_ACTIVE = "ocp_active"
    OCP_THRESHOLD = "ocp_threshold"
    # Discovery
    SCAN_OPTIONS = "scan_options"
    DEVICE_OPTIONS = "device_options"

    @classmethod
    def from_name(cls, name: str) -> "ConfigKey":
        """Look a key up by its value ("voltage_target") or member name."""
        text = name.strip().lower().replace("-", "_")
        for key in cls:
            if key.value == text or key.name.lower() == text:
                return key
        raise ArgumentError(f"Unknown configuration key '{name}'")


class Capability(Flag):
    NONE = 0
    GET = 1
    SET = 2
    LIST = 4


@dataclass(frozen=True)
class FloatValue:
    value: float


@dataclass(frozen=True)
class BoolValue:
    value: bool


@dataclass(frozen=True)
class StringValue:
    value: str


@dataclass(frozen=True)
class IntValue:
    value: int


@dataclass(frozen=True)
class RangeValue:
    min: float
    max: float
    step: float


@dataclass(frozen=True)
class OptionSet:
    options: Tuple[Tuple[ConfigKey, Capability], ...]

    @property
    def keys(self) -> Tuple[ConfigKey, ...]:
        return tuple(key for key, _ in self.options)

    def capabilities(self, key: ConfigKey) -> Capability:
        for option, caps in self.options:
            if option is key:
                return caps
        return Capability.NONE


ConfigValue = Union[FloatValue, BoolValue, StringValue, IntValue, RangeValue, OptionSet]

REGULATION_CC = "CC"
REGULATION_CV = "CV"

G, S, L = Capability.GET, Capability.SET, Capability.LIST

SCAN_OPTIONS = OptionSet((
    (ConfigKey.CONN, Capability.NONE),
    (ConfigKey.SERIALCOMM, Capability.NONE),
    (ConfigKey.MODBUSADDR, Capability.NONE),
))

DRIVER_OPTIONS = OptionSet((
    (ConfigKey.POWER_SUPPLY, Capability.NONE),
))

DEVICE_OPTIONS = OptionSet((
    (ConfigKey.CONTINUOUS, Capability.NONE),
    (ConfigKey.LIMIT_SAMPLES, G | S),
    (ConfigKey.LIMIT_MSEC, G | S),
    (ConfigKey.VOLTAGE, G),
    (ConfigKey.VOLTAGE_TARGET, G | S | L),
    (ConfigKey.CURRENT, G),
    (ConfigKey.CURRENT_LIMIT, G | S | L),
    (ConfigKey.ENABLED, G | S),
    (ConfigKey.REGULATION, G),
    (ConfigKey.OVP_ENABLED, G),
    (ConfigKey.OVP_ACTIVE, G),
    (ConfigKey.OVP_THRESHOLD, G | S),
    (ConfigKey.OCP_ENABLED, G),
    (ConfigKey.OCP_ACTIVE, G),
    (ConfigKey.OCP_THRESHOLD, G | S),
))

KEY_VALUE_TYPES: Dict[ConfigKey, type] = {
    ConfigKey.CONN: StringValue,
    ConfigKey.SERIALCOMM: StringValue,
    ConfigKey.MODBUSADDR: IntValue,
    ConfigKey.LIMIT_SAMPLES: IntValue,
    ConfigKey.LIMIT_MSEC: IntValue,
    ConfigKey.VOLTAGE: FloatValue,
    ConfigKey.VOLTAGE_TARGET: FloatValue,
    ConfigKey.CURRENT: FloatValue,
    ConfigKey.CURRENT_LIMIT: FloatValue,
    ConfigKey.ENABLED: BoolValue,
    ConfigKey.REGULATION: StringValue,
    ConfigKey.OVP_ENABLED: BoolValue,
    ConfigKey.OVP_ACTIVE: BoolValue,
    ConfigKey.OVP_THRESHOLD: FloatValue,
    ConfigKey.OCP_ENABLED: BoolValue,
    ConfigKey.OCP_ACTIVE: BoolValue,
    ConfigKey.OCP_THRESHOLD: FloatValue,
}

# Scaled quantities: key -> (register, profile attribute holding its ScalingSpec)
QUANTITY_REGISTERS = {
    ConfigKey.VOLTAGE: (RidenRegister.VOLTAGE, "voltage"),
    ConfigKey.VOLTAGE_TARGET: (RidenRegister.VOLTAGE_TARGET, "voltage"),
    ConfigKey.CURRENT: (RidenRegister.CURRENT, "current"),
    ConfigKey.CURRENT_LIMIT: (RidenRegister.CURRENT_LIMIT, "current"),
    ConfigKey.OVP_THRESHOLD: (RidenRegister.OVP_THRESHOLD, "ovp"),
    ConfigKey.OCP_THRESHOLD: (RidenRegister.OCP_THRESHOLD, "ocp"),
}

SETTABLE_QUANTITIES = frozenset({
    ConfigKey.VOLTAGE_TARGET,
    ConfigKey.CURRENT_LIMIT,
    ConfigKey.OVP_THRESHOLD,
    ConfigKey.OCP_THRESHOLD,
})

LISTABLE_QUANTITIES = SETTABLE_QUANTITIES

PROTECTION_STATUS_BITS = {
    ConfigKey.OVP_ACTIVE: 0x01,
    ConfigKey.OCP_ACTIVE: 0x02,
}

# No hardware query exists; protection is always on for supported models
ALWAYS_ENABLED = frozenset({ConfigKey.OVP_ENABLED, ConfigKey.OCP_ENABLED})


def _require_instance(instance):
    if instance is None:
        raise ArgumentError("This configuration key needs a device instance")
    return instance


def _scaling(instance, attr):
    return getattr(instance.profile, attr)


def _check_channel_group(instance, channel_group):
    if channel_group is not None:
        instance.channel_group(getattr(channel_group, "name", channel_group))


def display_digits(instance, key: ConfigKey, default: int = 3) -> int:
    """Display digits the profile gives a scaled quantity; `default` for anything else."""
    if instance is None or key not in QUANTITY_REGISTERS:
        return default
    _, attr = QUANTITY_REGISTERS[key]
    return _scaling(instance, attr).display_digits


def config_get(instance, key: ConfigKey, channel_group=None) -> ConfigValue:
    """
    Read one configuration value.

    Args:
        instance: DeviceInstance to query.
        key (ConfigKey): Key to read.
        channel_group: Optional group name or ChannelGroup; must exist on the instance.

    Returns:
        ConfigValue: Variant declared for the key in KEY_VALUE_TYPES.

    Raises:
        ArgumentError: If instance is missing or the channel group is unknown.
        KeyNotApplicableError: If the key cannot be read.
        TransportError: Passed through from the register read.
    """
    if not isinstance(key, ConfigKey):
        raise ArgumentError(f"Not a configuration key: {key!r}")
    instance = _require_instance(instance)
    _check_channel_group(instance, channel_group)

    if key is ConfigKey.LIMIT_SAMPLES:
        return IntValue(instance.limits.limit_samples)
    elif key is ConfigKey.LIMIT_MSEC:
        return IntValue(instance.limits.limit_msec)
    elif key in QUANTITY_REGISTERS:
        register, attr = QUANTITY_REGISTERS[key]
        raw = read_registers(instance, register, 1)[0]
        return FloatValue(_scaling(instance, attr).to_physical(raw))
    elif key is ConfigKey.ENABLED:
        raw = read_registers(instance, RidenRegister.ENABLE, 1)[0]
        return BoolValue(bool(raw))
    elif key is ConfigKey.REGULATION:
        raw = read_registers(instance, RidenRegister.REGULATION_STATUS, 1)[0]
        return StringValue(REGULATION_CC if raw else REGULATION_CV)
    elif key in PROTECTION_STATUS_BITS:
        raw = read_registers(instance, RidenRegister.PROTECTION_STATUS, 1)[0]
        return BoolValue(bool(raw & PROTECTION_STATUS_BITS[key]))
    elif key in ALWAYS_ENABLED:
        return BoolValue(True)

    raise KeyNotApplicableError(key, "get")


def _check_variant(key, value):
    expected = KEY_VALUE_TYPES.get(key)
    if expected is None or not isinstance(value, expected):
        got = type(value).__name__
        want = expected.__name__ if expected else "nothing"
        raise ArgumentError(f"Key '{key.value}' takes {want}, got {got}")


def config_set(instance, key: ConfigKey, value: ConfigValue, channel_group=None) -> None:
    """
    Write one configuration value.

    Quantities are converted with the profile's inverse scaling (clamped to
    the model's range) and written as a single register. Limit keys only
    update the instance's SessionLimits.

    Raises:
        ArgumentError: If instance or channel group is invalid, or the value variant is wrong.
        KeyNotApplicableError: If the key cannot be written.
        TransportError: Passed through from the register write.
    """
    if not isinstance(key, ConfigKey):
        raise ArgumentError(f"Not a configuration key: {key!r}")
    instance = _require_instance(instance)
    _check_channel_group(instance, channel_group)
    if not DEVICE_OPTIONS.capabilities(key) & Capability.SET:
        raise KeyNotApplicableError(key, "set")
    _check_variant(key, value)

    if key is ConfigKey.LIMIT_SAMPLES:
        instance.limits.set_limit_samples(value.value)
    elif key is ConfigKey.LIMIT_MSEC:
        instance.limits.set_limit_msec(value.value)
    elif key is ConfigKey.ENABLED:
        write_register(instance, RidenRegister.ENABLE, 1 if value.value else 0)
    elif key in SETTABLE_QUANTITIES:
        if not math.isfinite(value.value):
            raise ArgumentError(f"Key '{key.value}' needs a finite number, got {value.value}")
        register, attr = QUANTITY_REGISTERS[key]
        raw = _scaling(instance, attr).to_raw(value.value)
        write_register(instance, register, raw)
    else:
        raise KeyNotApplicableError(key, "set")

    logger.debug("config set %s=%r on %s", key.value, value, instance.model)


def config_list(instance, key: ConfigKey, channel_group=None) -> ConfigValue:
    """
    Enumerate the valid values of a key.

    SCAN_OPTIONS and DEVICE_OPTIONS work without an instance (DEVICE_OPTIONS
    then lists the driver options). Range keys return the model's
    {min, max, step}.
    """
    if not isinstance(key, ConfigKey):
        raise ArgumentError(f"Not a configuration key: {key!r}")

    if key is ConfigKey.SCAN_OPTIONS:
        return SCAN_OPTIONS
    if key is ConfigKey.DEVICE_OPTIONS:
        return DRIVER_OPTIONS if instance is None else DEVICE_OPTIONS

    instance = _require_instance(instance)
    _check_channel_group(instance, channel_group)
    if key in LISTABLE_QUANTITIES:
        _, attr = QUANTITY_REGISTERS[key]
        return RangeValue(*_scaling(instance, attr).as_range())

    logger.info("config list: unsupported key: %s", key.value)
    raise KeyNotApplicableError(key, "list")


def value_from_text(key: ConfigKey, text: str) -> ConfigValue:
    """Parse user text (REPL, scan options) into the variant a key carries."""
    expected = KEY_VALUE_TYPES.get(key)
    if expected is None:
        raise KeyNotApplicableError(key, "set")
    text = text.strip()
    try:
        if expected is FloatValue:
            return FloatValue(float(text))
        if expected is IntValue:
            return IntValue(int(text, 0))
        if expected is BoolValue:
            lowered = text.lower()
            if lowered in ("1", "on", "true", "yes"):
                return BoolValue(True)
            if lowered in ("0", "off", "false", "no"):
                return BoolValue(False)
            raise ValueError(text)
    except ValueError:
        raise ArgumentError(f"Invalid value '{text}' for key '{key.value}'")
    return StringValue(text)


def format_value(value: ConfigValue, digits: int = 3) -> str:
    """Render a value for console output; floats get `digits` decimals."""
    if isinstance(value, RangeValue):
        return f"min={value.min:g} max={value.max:g} step={value.step:g}"
    if isinstance(value, OptionSet):
        parts = []
        for key, caps in value.options:
            flags = "".join(f for f, c in (("G", G), ("S", S), ("L", L)) if caps & c)
            parts.append(f"{key.value}[{flags}]" if flags else key.value)
        return ", ".join(parts)
    if isinstance(value, BoolValue):
        return "on" if value.value else "off"
    if isinstance(value, FloatValue):
        return f"{value.value:.{digits}f}"
    return str(value.value)
