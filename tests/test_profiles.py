"""
Test Device Profiles
====================
Scaling between raw register integers and physical values, and the
model lookup used at scan time.
"""

import pytest

from regmap_instruments.src.errors import UnsupportedModelError
from regmap_instruments.src.profiles import SUPPORTED_MODELS, ScalingSpec, find_profile, require_profile


def test_lookup_known_models():
    assert find_profile(6006).name == "RD6006"
    assert find_profile(6012).name == "RD6012"


def test_lookup_is_exact():
    assert find_profile(6018) is None
    assert find_profile(60060) is None
    with pytest.raises(UnsupportedModelError) as excinfo:
        require_profile(6018)
    assert excinfo.value.identity_code == 6018


def test_rd6012_differs_in_power_and_ocp():
    rd6006, rd6012 = find_profile(6006), find_profile(6012)
    assert rd6006.voltage == rd6012.voltage
    assert rd6006.power.max == 380.0
    assert rd6012.power.max == 720.0
    assert rd6006.ocp.max == pytest.approx(6.2)
    assert rd6012.ocp.max == pytest.approx(12.4)


def test_raw_to_physical():
    voltage = find_profile(6006).voltage
    assert voltage.to_physical(1234) == pytest.approx(12.34)
    assert find_profile(6006).current.to_physical(1500) == pytest.approx(1.5)


@pytest.mark.parametrize("physical", [0.0, 0.01, 3.3, 12.34, 59.99, 60.0])
def test_voltage_round_trip_within_half_step(physical):
    voltage = find_profile(6006).voltage
    back = voltage.to_physical(voltage.to_raw(physical))
    assert abs(back - physical) <= voltage.step / 2


def test_to_raw_clamps_to_range():
    voltage = find_profile(6006).voltage
    assert voltage.to_raw(75.0) == 6000
    assert voltage.to_raw(-3.0) == 0


def test_to_raw_never_leaves_16_bits():
    wide = ScalingSpec(0, 1000.0, 0.001, 3, 3)
    assert wide.to_raw(1000.0) == 0xFFFF


def test_profiles_are_immutable():
    profile = SUPPORTED_MODELS[0]
    with pytest.raises(Exception):
        profile.name = "RD9999"
    with pytest.raises(Exception):
        profile.voltage.step = 1.0


@pytest.mark.parametrize("profile", SUPPORTED_MODELS, ids=lambda p: p.name)
@pytest.mark.parametrize("quantity", ["voltage", "current", "power", "ovp", "ocp"])
def test_every_raw_value_survives_decode_encode(profile, quantity):
    spec = getattr(profile, quantity)
    top = round(spec.max / spec.step)
    mismatches = [
        raw for raw in range(0x10000)
        if spec.to_raw(spec.to_physical(raw)) != min(raw, top)
    ]
    assert mismatches == []
