"""
Error types shared by the register-mapped instrument drivers.

ArgumentError and UnsupportedError are returned to the caller immediately.
TransportError is raised by the transport adapters and passed through the
driver core untouched; nothing here retries.
"""


class RegmapError(Exception):
    """Base class for every error raised by this package."""


class ArgumentError(RegmapError, ValueError):
    """A missing or invalid instance, handle, key or value."""


class UnsupportedError(RegmapError):
    """The request is valid but this driver cannot serve it."""


class UnsupportedModelError(UnsupportedError):
    """The identity code read from a device is not in the profile table."""

    def __init__(self, identity_code):
        super().__init__(f"Unsupported model: {identity_code}")
        self.identity_code = identity_code


class KeyNotApplicableError(UnsupportedError):
    """The configuration key does not apply to this driver or operation."""

    def __init__(self, key, operation="get"):
        name = getattr(key, "value", key)
        super().__init__(f"Key '{name}' is not applicable to config {operation}")
        self.key = key
        self.operation = operation


class TransportError(RegmapError, IOError):
    """I/O failure, timeout or malformed response from the transport."""
