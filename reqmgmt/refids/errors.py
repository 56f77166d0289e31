"""Errors raised while allocating reference ids.

Only ``UnknownFamily`` and ``InternalFormatError`` ever reach callers of the
allocator; the other kinds are converted into a fallback-form id.
"""
from __future__ import annotations


class ReferenceIdError(RuntimeError):
    """Base class for reference id allocation failures."""


class UnknownFamily(ReferenceIdError, LookupError):
    """The requested prefix is not registered."""

    def __init__(self, prefix: object) -> None:
        self.prefix = prefix
        super().__init__(f"Unknown reference id family: {prefix!r}")


class CounterUnavailable(ReferenceIdError):
    """The counter store could not advance the family counter."""

    def __init__(self, prefix: str, reason: str) -> None:
        self.prefix = prefix
        self.reason = reason
        super().__init__(f"Counter for {prefix} unavailable: {reason}")


class CoordinationTimeout(ReferenceIdError):
    """The cooperative lock for a family could not be acquired within budget."""

    def __init__(self, coord_key: int, timeout: float) -> None:
        self.coord_key = coord_key
        self.timeout = timeout
        super().__init__(f"Could not acquire lock {coord_key} within {timeout * 1000:.0f} ms")


class InternalFormatError(ReferenceIdError, ValueError):
    """A sequential id could not be formatted; the enclosing transaction must abort."""
