"""Exception types raised by the record store."""

from __future__ import annotations


class StoreError(Exception):
    """Base class for record store errors."""


class MalformedRecord(StoreError, ValueError):
    """Stored text could not be parsed into the expected flat-record shape."""


class InvalidInteger(MalformedRecord):
    """An unquoted value was not a decimal integer."""


class UnsafeText(StoreError, ValueError):
    """A text value cannot be written because the format has no escaping."""


class RecordNotFound(StoreError, LookupError):
    """Raised by strict lookups and updates when no record file exists."""

    def __init__(self, record_id: int) -> None:
        super().__init__(f"Record not found: {record_id}")
        self.record_id = record_id
