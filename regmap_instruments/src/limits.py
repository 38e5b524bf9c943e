"""Software acquisition limits: stop after N samples or after N milliseconds."""

import time

from .errors import ArgumentError


class SessionLimits:
    """
    Sample-count and elapsed-time bounds for one acquisition.

    A limit of 0 is "unset" and never triggers. Counters are reset by
    acquisition_start() and only grow afterwards.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self.limit_samples = 0
        self.limit_msec = 0
        self.samples_read = 0
        self.start_time = None

    def set_limit_samples(self, samples: int):
        if samples < 0:
            raise ArgumentError("Sample limit must be >= 0")
        self.limit_samples = int(samples)

    def set_limit_msec(self, msec: int):
        if msec < 0:
            raise ArgumentError("Time limit must be >= 0")
        self.limit_msec = int(msec)

    def acquisition_start(self):
        self.samples_read = 0
        self.start_time = self._clock()

    def update_samples_read(self, count: int = 1):
        self.samples_read += count

    def elapsed_msec(self) -> float:
        if self.start_time is None:
            return 0.0
        return (self._clock() - self.start_time) * 1000.0

    def check(self) -> bool:
        """Return True when a configured limit has been reached."""
        if self.limit_samples and self.samples_read >= self.limit_samples:
            return True
        if self.limit_msec and self.start_time is not None:
            if self.elapsed_msec() >= self.limit_msec:
                return True
        return False

    def __repr__(self):
        return (
            f"SessionLimits(samples={self.samples_read}/{self.limit_samples or '-'}, "
            f"msec={self.limit_msec or '-'})"
        )
