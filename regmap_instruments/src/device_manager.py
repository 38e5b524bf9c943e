import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .errors import ArgumentError
from .limits import SessionLimits

logger = logging.getLogger(__name__)

# One analog channel per streamed quantity, in emission order
CHANNEL_NAMES = ("V", "I", "P", "E", "T1", "T2")
CHANNEL_GROUP_NAME = "1"


class DeviceStatus(Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


@dataclass
class Channel:
    index: int
    name: str
    enabled: bool = True
    analog: bool = True


@dataclass
class ChannelGroup:
    name: str
    channels: List[Channel] = field(default_factory=list)


def build_channel_group(names=CHANNEL_NAMES, group_name=CHANNEL_GROUP_NAME) -> ChannelGroup:
    """Build the single channel group of a power supply, one channel per name."""
    return ChannelGroup(group_name, [Channel(i, name) for i, name in enumerate(names)])


class DeviceInstance:
    """
    One identified device bound to its profile.

    Owns the transport handle, the software limits and the lock that
    serializes register transactions. The profile is fixed at scan time.
    """

    def __init__(self, transport, profile, vendor="Riden", version="", serial_num="", clock=None):
        if transport is None or profile is None:
            raise ArgumentError("A device instance needs a transport and a profile")
        self.transport = transport
        self._profile = profile
        self.vendor = vendor
        self.model = profile.name
        self.version = version
        self.serial_num = serial_num
        self.status = DeviceStatus.INACTIVE
        self.channel_groups = [build_channel_group()]
        self.limits = SessionLimits(clock) if clock else SessionLimits()
        self.lock = threading.Lock()
        self.poller = None

    @property
    def profile(self):
        return self._profile

    @property
    def channels(self) -> List[Channel]:
        return [ch for group in self.channel_groups for ch in group.channels]

    @property
    def resource_name(self) -> str:
        return getattr(self.transport, "descriptor", "")

    def channel_group(self, name: Optional[str] = None) -> ChannelGroup:
        """Return the named channel group, or the first one when name is None."""
        if name is None:
            return self.channel_groups[0]
        for group in self.channel_groups:
            if group.name == name:
                return group
        raise ArgumentError(f"No channel group '{name}' on {self.model}")

    def open(self):
        """Opens the transport for this instance."""
        if self.transport is None:
            raise ArgumentError(f"{self.model} has been cleared")
        self.transport.open()
        logger.info("Connected to %s %s at %s", self.vendor, self.model, self.resource_name)

    def close(self):
        """Closes the transport. Acquisition, if any, is stopped first."""
        if self.poller is not None:
            self.poller.stop()
        if self.transport is not None:
            self.transport.close()
            logger.info("Disconnected from %s", self.resource_name)

    def clear(self):
        """Close and release the transport handle and the lock."""
        self.close()
        self.transport = None
        self.lock = None
        self.poller = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __repr__(self):
        return (
            f"DeviceInstance({self.vendor} {self.model}, fw={self.version}, "
            f"serial={self.serial_num}, conn={self.resource_name}, status={self.status.value})"
        )
