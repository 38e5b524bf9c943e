"""
Shared fixtures: a simulated RD6006 register bank and a manual clock so
acquisition timing is deterministic.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from regmap_instruments.mock_instruments import MockRidenTransport
from regmap_instruments.src.device_manager import DeviceInstance
from regmap_instruments.src.profiles import find_profile
from regmap_instruments.src.session import PollingSession


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def transport():
    return MockRidenTransport()


@pytest.fixture
def instance(transport, clock):
    dev = DeviceInstance(transport, find_profile(6006), version="1.28", serial_num="00001234", clock=clock)
    dev.open()
    yield dev
    dev.close()


@pytest.fixture
def session(clock):
    return PollingSession(clock=clock, sleep=clock.advance)
