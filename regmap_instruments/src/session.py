"""
Host session contract, and a single-threaded session that drives it.

A driver registers a periodic source on the session and sends packets
to it. PollingSession runs every source from one loop, so ticks never
overlap; stopping only prevents future ticks.
"""

import itertools
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class Session(ABC):
    """What a driver needs from the host while acquiring."""

    @abstractmethod
    def add_source(self, interval_ms: int, callback: Callable[[], None]) -> int:
        """Call `callback` every `interval_ms` until removed. Returns a handle."""

    @abstractmethod
    def remove_source(self, handle: int) -> None:
        """Stop calling a source. Unknown handles are ignored."""

    @abstractmethod
    def send(self, packet) -> None:
        """Deliver one packet to the host."""


class _Source:
    def __init__(self, interval_ms, callback, due):
        self.interval = interval_ms / 1000.0
        self.callback = callback
        self.due = due


class PollingSession(Session):
    """
    Runs periodic sources in the calling thread.

    Args:
        on_packet: Optional callable receiving each packet as it is sent.
        keep_packets (bool): Also append packets to `self.packets`.
        clock / sleep: Time functions, replaceable for tests.
    """

    def __init__(self, on_packet: Optional[Callable] = None, keep_packets: bool = True,
                 clock: Callable[[], float] = time.monotonic, sleep: Callable[[float], None] = time.sleep):
        self.on_packet = on_packet
        self.keep_packets = keep_packets
        self.packets: List[object] = []
        self._clock = clock
        self._sleep = sleep
        self._sources: Dict[int, _Source] = {}
        self._handles = itertools.count(1)
        self._running = False

    @property
    def has_sources(self) -> bool:
        return bool(self._sources)

    def add_source(self, interval_ms: int, callback: Callable[[], None]) -> int:
        if interval_ms <= 0:
            raise ValueError("Source interval must be positive")
        handle = next(self._handles)
        self._sources[handle] = _Source(interval_ms, callback, self._clock() + interval_ms / 1000.0)
        logger.debug("Added source %d every %d ms", handle, interval_ms)
        return handle

    def remove_source(self, handle: int) -> None:
        if self._sources.pop(handle, None) is not None:
            logger.debug("Removed source %d", handle)

    def send(self, packet) -> None:
        if self.keep_packets:
            self.packets.append(packet)
        if self.on_packet is not None:
            self.on_packet(packet)

    def stop(self) -> None:
        """Make run() return after the current tick."""
        self._running = False

    def run(self, max_ticks: Optional[int] = None) -> int:
        """
        Dispatch sources until none are left, stop() is called or
        `max_ticks` callbacks have run.

        Returns:
            int: Number of callbacks dispatched.
        """
        ticks = 0
        self._running = True
        while self._running and self._sources:
            if max_ticks is not None and ticks >= max_ticks:
                break
            handle, source = min(self._sources.items(), key=lambda item: item[1].due)
            delay = source.due - self._clock()
            if delay > 0:
                self._sleep(delay)
            source.callback()
            ticks += 1
            if handle in self._sources:
                # Late ticks are not replayed
                source.due = max(source.due + source.interval, self._clock())
        self._running = False
        return ticks
