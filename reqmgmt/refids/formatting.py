"""
Reference id formatting and parsing.

Responsibilities:
- Render sequential ids: ``PREFIX-007`` below 1000, ``PREFIX-1000`` and up unpadded
- Render fallback ids: ``PREFIX-`` + 8 lowercase hex digits from a random 128-bit value
- Parse either form back into its parts
- Recognize loosely typed ids in search queries
"""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Optional

from .errors import InternalFormatError
from .families import FamilyRegistry, registry as default_registry

_PREFIX_RE = re.compile(r"^[A-Z]{2,6}$")
_REFERENCE_RE = re.compile(r"^(?P<prefix>[A-Z]{2,6})-(?P<tail>[0-9a-f]+)$")
_PADDED_RE = re.compile(r"^[0-9]{3}$")
_UNPADDED_RE = re.compile(r"^[1-9][0-9]{3,}$")
_FALLBACK_RE = re.compile(r"^[0-9a-f]{8}$")
_DETECT_RE = re.compile(r"^(?P<prefix>[A-Za-z]{2,6})-(?P<tail>[0-9]+)$")

FALLBACK_HEX_DIGITS = 8


@dataclass(frozen=True)
class ParsedReferenceId:
    prefix: str
    tail: str
    number: Optional[int]

    @property
    def is_fallback(self) -> bool:
        return self.number is None


def format_reference_id(prefix: str, number: int) -> str:
    """Return the sequential form for ``number``.

    Raises InternalFormatError when the inputs cannot produce a valid id.
    """
    if not isinstance(prefix, str) or not _PREFIX_RE.match(prefix):
        raise InternalFormatError(f"Invalid reference id prefix {prefix!r}")
    if isinstance(number, bool) or not isinstance(number, int) or number < 1:
        raise InternalFormatError(f"Counter for {prefix} produced invalid value {number!r}")
    if number <= 999:
        return f"{prefix}-{number:03d}"
    return f"{prefix}-{number}"


def fallback_reference_id(prefix: str) -> str:
    """Return a non-sequential id built from the low 32 bits of a random UUID."""
    if not isinstance(prefix, str) or not _PREFIX_RE.match(prefix):
        raise InternalFormatError(f"Invalid reference id prefix {prefix!r}")
    low_bits = uuid.uuid4().int & 0xFFFFFFFF
    return f"{prefix}-{low_bits:0{FALLBACK_HEX_DIGITS}x}"


def parse_reference_id(value: str, *, families: FamilyRegistry = default_registry) -> ParsedReferenceId:
    """Parse ``value`` into prefix, tail and number (None for the fallback form).

    Raises ValueError if the value does not follow the reference id grammar or
    names an unregistered prefix. An 8-digit all-decimal tail is read as a number.
    Input is taken verbatim; see ``detect_reference_id`` for search queries.
    """
    match = _REFERENCE_RE.match(value or "")
    if not match:
        raise ValueError(f"Malformed reference id: {value!r}")
    prefix, tail = match.group("prefix"), match.group("tail")
    if prefix not in families:
        raise ValueError(f"Unknown reference id prefix in {value!r}")
    if _PADDED_RE.match(tail) and tail != "000":
        return ParsedReferenceId(prefix=prefix, tail=tail, number=int(tail))
    if _UNPADDED_RE.match(tail):
        return ParsedReferenceId(prefix=prefix, tail=tail, number=int(tail))
    if _FALLBACK_RE.match(tail):
        return ParsedReferenceId(prefix=prefix, tail=tail, number=None)
    raise ValueError(f"Malformed reference id tail: {value!r}")


def is_sequential_reference_id(value: Optional[str], prefix: str) -> bool:
    """Return True if ``value`` is a sequential-form id of family ``prefix``."""
    if not value or not value.startswith(f"{prefix}-"):
        return False
    tail = value[len(prefix) + 1:]
    return bool((_PADDED_RE.match(tail) and tail != "000") or _UNPADDED_RE.match(tail))


def detect_reference_id(
    query: Optional[str], *, families: FamilyRegistry = default_registry
) -> Optional[ParsedReferenceId]:
    """Recognize a search query that names a sequential reference id.

    Lenient where ``parse_reference_id`` is strict: surrounding whitespace is
    ignored, the prefix matches case-insensitively and any run of digits is
    accepted (``" us-119 "``, ``"EP-7"``). Returns None when the query is not
    a reference id of a registered family.
    """
    match = _DETECT_RE.match((query or "").strip())
    if not match:
        return None
    prefix = match.group("prefix").upper()
    if prefix not in families:
        return None
    tail = match.group("tail")
    return ParsedReferenceId(prefix=prefix, tail=tail, number=int(tail))
