"""
Test Configuration Keys
=======================
get/set/list semantics on a simulated RD6006.
"""

import math

import pytest

from regmap_instruments.mock_instruments import MockRidenTransport
from regmap_instruments.src.config import (
    DEVICE_OPTIONS,
    DRIVER_OPTIONS,
    SCAN_OPTIONS,
    BoolValue,
    Capability,
    ConfigKey,
    FloatValue,
    IntValue,
    RangeValue,
    StringValue,
    config_get,
    config_list,
    config_set,
    display_digits,
    format_value,
    value_from_text,
)
from regmap_instruments.src.device_manager import DeviceInstance
from regmap_instruments.src.errors import ArgumentError, KeyNotApplicableError, TransportError
from regmap_instruments.src.profiles import SUPPORTED_MODELS, find_profile
from regmap_instruments.src.registers import RidenRegister


def test_set_then_get_voltage_target(instance, transport):
    config_set(instance, ConfigKey.VOLTAGE_TARGET, FloatValue(12.34))
    assert transport.registers[RidenRegister.VOLTAGE_TARGET] == 1234
    assert config_get(instance, ConfigKey.VOLTAGE_TARGET).value == pytest.approx(12.34)


def test_set_current_limit(instance, transport):
    config_set(instance, ConfigKey.CURRENT_LIMIT, FloatValue(1.5))
    assert transport.writes[-1] == (RidenRegister.CURRENT_LIMIT, [1500])


def test_set_clamps_to_model_range(instance, transport):
    config_set(instance, ConfigKey.VOLTAGE_TARGET, FloatValue(75.0))
    assert transport.registers[RidenRegister.VOLTAGE_TARGET] == 6000
    config_set(instance, ConfigKey.CURRENT_LIMIT, FloatValue(-1.0))
    assert transport.registers[RidenRegister.CURRENT_LIMIT] == 0


def test_set_thresholds(instance, transport):
    config_set(instance, ConfigKey.OVP_THRESHOLD, FloatValue(30.0))
    config_set(instance, ConfigKey.OCP_THRESHOLD, FloatValue(2.5))
    assert transport.registers[RidenRegister.OVP_THRESHOLD] == 3000
    assert transport.registers[RidenRegister.OCP_THRESHOLD] == 2500
    assert config_get(instance, ConfigKey.OCP_THRESHOLD).value == pytest.approx(2.5)


def test_measured_values(instance):
    config_set(instance, ConfigKey.VOLTAGE_TARGET, FloatValue(5.0))
    config_set(instance, ConfigKey.ENABLED, BoolValue(True))
    # 10 ohm load on the simulated output
    assert config_get(instance, ConfigKey.VOLTAGE).value == pytest.approx(5.0)
    assert config_get(instance, ConfigKey.CURRENT).value == pytest.approx(0.5)


def test_enabled_round_trip(instance, transport):
    assert config_get(instance, ConfigKey.ENABLED) == BoolValue(False)
    config_set(instance, ConfigKey.ENABLED, BoolValue(True))
    assert transport.registers[RidenRegister.ENABLE] == 1
    assert config_get(instance, ConfigKey.ENABLED) == BoolValue(True)


def test_regulation_mode(instance):
    config_set(instance, ConfigKey.ENABLED, BoolValue(True))
    config_set(instance, ConfigKey.CURRENT_LIMIT, FloatValue(1.0))
    config_set(instance, ConfigKey.VOLTAGE_TARGET, FloatValue(5.0))
    assert config_get(instance, ConfigKey.REGULATION) == StringValue("CV")
    # 12 V into 10 ohm wants 1.2 A, above the 1.0 A limit
    config_set(instance, ConfigKey.VOLTAGE_TARGET, FloatValue(12.0))
    assert config_get(instance, ConfigKey.REGULATION) == StringValue("CC")


@pytest.mark.parametrize("status, ovp, ocp", [(0, False, False), (1, True, False), (2, False, True), (3, True, True)])
def test_protection_active_bits(instance, transport, status, ovp, ocp):
    transport.registers[RidenRegister.PROTECTION_STATUS] = status
    assert config_get(instance, ConfigKey.OVP_ACTIVE).value is ovp
    assert config_get(instance, ConfigKey.OCP_ACTIVE).value is ocp


def test_protection_enabled_is_fixed(instance, transport):
    reads = len(transport.reads)
    assert config_get(instance, ConfigKey.OVP_ENABLED) == BoolValue(True)
    assert config_get(instance, ConfigKey.OCP_ENABLED) == BoolValue(True)
    assert len(transport.reads) == reads


def test_limit_keys_stay_in_software(instance, transport):
    config_set(instance, ConfigKey.LIMIT_SAMPLES, IntValue(100))
    config_set(instance, ConfigKey.LIMIT_MSEC, IntValue(2500))
    assert config_get(instance, ConfigKey.LIMIT_SAMPLES) == IntValue(100)
    assert config_get(instance, ConfigKey.LIMIT_MSEC) == IntValue(2500)
    assert transport.writes == []


def test_negative_limit_rejected(instance):
    with pytest.raises(ArgumentError):
        config_set(instance, ConfigKey.LIMIT_SAMPLES, IntValue(-1))


@pytest.mark.parametrize(
    "key",
    [ConfigKey.VOLTAGE, ConfigKey.CURRENT, ConfigKey.REGULATION, ConfigKey.OVP_ENABLED,
     ConfigKey.OCP_ACTIVE, ConfigKey.CONTINUOUS, ConfigKey.CONN],
)
def test_read_only_keys_cannot_be_set(instance, transport, key):
    with pytest.raises(KeyNotApplicableError):
        config_set(instance, key, BoolValue(True))
    assert transport.writes == []


def test_get_unsupported_key(instance):
    with pytest.raises(KeyNotApplicableError) as excinfo:
        config_get(instance, ConfigKey.CONTINUOUS)
    assert excinfo.value.operation == "get"


def test_wrong_variant_rejected(instance, transport):
    with pytest.raises(ArgumentError):
        config_set(instance, ConfigKey.VOLTAGE_TARGET, BoolValue(True))
    with pytest.raises(ArgumentError):
        config_set(instance, ConfigKey.ENABLED, FloatValue(1.0))
    assert transport.writes == []


@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
def test_non_finite_rejected(instance, transport, bad):
    with pytest.raises(ArgumentError):
        config_set(instance, ConfigKey.VOLTAGE_TARGET, FloatValue(bad))
    assert transport.writes == []


def test_missing_instance():
    with pytest.raises(ArgumentError):
        config_get(None, ConfigKey.VOLTAGE)
    with pytest.raises(ArgumentError):
        config_set(None, ConfigKey.VOLTAGE_TARGET, FloatValue(1.0))
    with pytest.raises(ArgumentError):
        config_list(None, ConfigKey.VOLTAGE_TARGET)


def test_not_a_key(instance):
    with pytest.raises(ArgumentError):
        config_get(instance, "voltage")


def test_transport_error_passes_through(instance, transport):
    transport.fail_reads = 1
    with pytest.raises(TransportError):
        config_get(instance, ConfigKey.VOLTAGE)


@pytest.mark.parametrize("profile", SUPPORTED_MODELS, ids=lambda p: p.name)
def test_list_ranges_follow_profile(transport, profile):
    dev = DeviceInstance(transport, profile)
    assert config_list(dev, ConfigKey.VOLTAGE_TARGET) == RangeValue(*profile.voltage.as_range())
    assert config_list(dev, ConfigKey.CURRENT_LIMIT) == RangeValue(*profile.current.as_range())
    assert config_list(dev, ConfigKey.OVP_THRESHOLD) == RangeValue(*profile.ovp.as_range())
    assert config_list(dev, ConfigKey.OCP_THRESHOLD) == RangeValue(*profile.ocp.as_range())


def test_list_rd6012_ocp_range():
    dev = DeviceInstance(MockRidenTransport(model_code=6012), find_profile(6012))
    assert config_list(dev, ConfigKey.OCP_THRESHOLD) == RangeValue(0, 12.4, 0.001)


def test_list_options_without_instance():
    assert config_list(None, ConfigKey.SCAN_OPTIONS) is SCAN_OPTIONS
    assert SCAN_OPTIONS.keys == (ConfigKey.CONN, ConfigKey.SERIALCOMM, ConfigKey.MODBUSADDR)
    assert config_list(None, ConfigKey.DEVICE_OPTIONS) is DRIVER_OPTIONS


def test_list_device_options(instance):
    options = config_list(instance, ConfigKey.DEVICE_OPTIONS)
    assert options is DEVICE_OPTIONS
    assert options.capabilities(ConfigKey.VOLTAGE_TARGET) == Capability.GET | Capability.SET | Capability.LIST
    assert options.capabilities(ConfigKey.OVP_ENABLED) == Capability.GET
    assert options.capabilities(ConfigKey.CONN) == Capability.NONE


def test_list_unsupported_key(instance):
    with pytest.raises(KeyNotApplicableError):
        config_list(instance, ConfigKey.ENABLED)


def test_value_from_text():
    assert value_from_text(ConfigKey.VOLTAGE_TARGET, " 12.5 ") == FloatValue(12.5)
    assert value_from_text(ConfigKey.ENABLED, "on") == BoolValue(True)
    assert value_from_text(ConfigKey.ENABLED, "0") == BoolValue(False)
    assert value_from_text(ConfigKey.LIMIT_SAMPLES, "0x10") == IntValue(16)
    assert value_from_text(ConfigKey.CONN, "/dev/ttyUSB0") == StringValue("/dev/ttyUSB0")
    with pytest.raises(ArgumentError):
        value_from_text(ConfigKey.ENABLED, "maybe")
    with pytest.raises(ArgumentError):
        value_from_text(ConfigKey.VOLTAGE_TARGET, "twelve")


def test_format_value():
    assert format_value(FloatValue(1.5)) == "1.500"
    assert format_value(BoolValue(False)) == "off"
    assert format_value(RangeValue(0, 60.0, 0.01)) == "min=0 max=60 step=0.01"
    assert "voltage_target[GSL]" in format_value(DEVICE_OPTIONS)


def test_key_lookup_by_name():
    assert ConfigKey.from_name("voltage-target") is ConfigKey.VOLTAGE_TARGET
    assert ConfigKey.from_name("LIMIT_MSEC") is ConfigKey.LIMIT_MSEC
    assert ConfigKey.from_name("limit_time") is ConfigKey.LIMIT_MSEC


def test_channel_group_checked(instance, transport):
    group = instance.channel_group()
    assert config_get(instance, ConfigKey.ENABLED, "1") == BoolValue(False)
    config_set(instance, ConfigKey.ENABLED, BoolValue(True), group)
    assert config_list(instance, ConfigKey.VOLTAGE_TARGET, "1") == RangeValue(0, 60.0, 0.01)

    writes = len(transport.writes)
    with pytest.raises(ArgumentError):
        config_get(instance, ConfigKey.ENABLED, "2")
    with pytest.raises(ArgumentError):
        config_set(instance, ConfigKey.ENABLED, BoolValue(False), "2")
    with pytest.raises(ArgumentError):
        config_list(instance, ConfigKey.VOLTAGE_TARGET, "2")
    assert len(transport.writes) == writes


def test_format_uses_profile_digits(instance):
    assert display_digits(instance, ConfigKey.VOLTAGE_TARGET) == 2
    assert display_digits(instance, ConfigKey.CURRENT) == 3
    assert display_digits(instance, ConfigKey.ENABLED) == 3
    assert display_digits(None, ConfigKey.VOLTAGE) == 3
    assert format_value(FloatValue(12.34), display_digits(instance, ConfigKey.VOLTAGE)) == "12.34"
    assert format_value(FloatValue(1.5), display_digits(instance, ConfigKey.CURRENT_LIMIT)) == "1.500"
