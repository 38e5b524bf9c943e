"""
SCPI identification for instruments reached through PyVISA.

parse_idn() turns a "*IDN?" answer into a record with named fields and
reports each kind of malformed answer as its own error.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import pyvisa

from .errors import ArgumentError, TransportError

logger = logging.getLogger(__name__)

IDN_FIELDS = ("manufacturer", "model", "serial", "firmware")


class IdnParseError(ArgumentError):
    """The identification answer is not a valid *IDN? response."""


class IdnEmptyResponseError(IdnParseError):
    def __init__(self):
        super().__init__("Empty *IDN? response")


class IdnFieldCountError(IdnParseError):
    def __init__(self, count, response):
        super().__init__(f"*IDN? response has {count} fields, expected {len(IDN_FIELDS)}: {response!r}")
        self.count = count


class IdnEmptyFieldError(IdnParseError):
    def __init__(self, field, response):
        super().__init__(f"*IDN? response has an empty {field} field: {response!r}")
        self.field = field


@dataclass(frozen=True)
class IdnRecord:
    manufacturer: str
    model: str
    serial: str
    firmware: str

    def __str__(self):
        return f"{self.manufacturer} {self.model} (serial {self.serial}, fw {self.firmware})"


def parse_idn(response: Optional[str]) -> IdnRecord:
    """
    Parse "<manufacturer>,<model>,<serial>,<firmware>".

    Raises:
        IdnEmptyResponseError: Nothing but whitespace was received.
        IdnFieldCountError: Not exactly four comma-separated fields.
        IdnEmptyFieldError: A field is blank.
    """
    text = (response or "").strip()
    if not text:
        raise IdnEmptyResponseError()

    parts = [part.strip() for part in text.split(",")]
    if len(parts) != len(IDN_FIELDS):
        raise IdnFieldCountError(len(parts), text)

    for field, value in zip(IDN_FIELDS, parts):
        if not value:
            raise IdnEmptyFieldError(field, text)

    return IdnRecord(*parts)


class VisaIdentifier:
    """
    Asks a VISA resource for *IDN? and parses the answer.

    Args:
        resource_name (str): VISA resource, e.g. "USB0::0x1AB1::0x0641::DG4E1234::INSTR".
        resource_manager: Optional pyvisa.ResourceManager to share.
        timeout_ms (int): I/O timeout for the query.
    """

    def __init__(self, resource_name, resource_manager=None, timeout_ms=2000):
        self.resource_name = resource_name
        self.rm = resource_manager or pyvisa.ResourceManager()
        self.timeout_ms = timeout_ms

    def identify(self) -> IdnRecord:
        try:
            inst = self.rm.open_resource(self.resource_name, timeout=self.timeout_ms)
        except pyvisa.VisaIOError as exc:
            raise TransportError(f"{self.resource_name}: {exc}") from exc
        try:
            inst.read_termination = "\n"
            response = inst.query("*IDN?")
        except pyvisa.VisaIOError as exc:
            raise TransportError(f"{self.resource_name}: *IDN? failed: {exc}") from exc
        finally:
            inst.close()

        record = parse_idn(response)
        logger.info("%s identified as %s", self.resource_name, record)
        return record
