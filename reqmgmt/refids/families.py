"""
Static registry of the entity families that carry reference ids.

A family is one entity kind whose reference ids share a prefix, a counter
(native sequence or derived count) and a cooperative-lock key. The registry
is built once at import time and is read-only afterwards.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, Tuple, Union

from .errors import UnknownFamily

# Lock keys are an owned namespace shared with anything else that takes
# advisory locks on the same database.
COORD_KEY_NAMESPACE = range(2147483632, 2147483648)

_PREFIX_RE = re.compile(r"^[A-Z]{2,6}$")


class FamilyTag(str, Enum):
    EPIC = "EP"
    USER_STORY = "US"
    REQUIREMENT = "REQ"
    ACCEPTANCE_CRITERIA = "AC"
    STEERING_DOCUMENT = "STD"
    PROMPT = "PROMPT"


@dataclass(frozen=True)
class Family:
    prefix: str
    coord_key: int
    counter_name: str
    table_name: str


FamilyRef = Union[FamilyTag, str]


DEFAULT_FAMILIES: Tuple[Family, ...] = (
    Family("EP", 2147483647, "epic_ref_seq", "epics"),
    Family("US", 2147483646, "user_story_ref_seq", "user_stories"),
    Family("REQ", 2147483645, "requirement_ref_seq", "requirements"),
    Family("AC", 2147483644, "acceptance_criteria_ref_seq", "acceptance_criteria"),
    Family("STD", 2147483643, "steering_document_ref_seq", "steering_documents"),
    Family("PROMPT", 2147483642, "prompt_ref_seq", "prompts"),
)


class FamilyRegistry:
    """Immutable lookup of families by prefix."""

    def __init__(self, families: Iterable[Family]) -> None:
        by_prefix: Dict[str, Family] = {}
        seen_keys: Dict[int, str] = {}
        seen_counters: Dict[str, str] = {}
        for family in families:
            if not _PREFIX_RE.match(family.prefix):
                raise ValueError(f"Invalid family prefix {family.prefix!r}: expected 2-6 upper-case letters")
            if family.prefix in by_prefix:
                raise ValueError(f"Duplicate family prefix {family.prefix!r}")
            if family.coord_key not in COORD_KEY_NAMESPACE:
                raise ValueError(
                    f"Coordination key {family.coord_key} for {family.prefix} is outside the reserved block "
                    f"{COORD_KEY_NAMESPACE.start}..{COORD_KEY_NAMESPACE.stop - 1}"
                )
            if family.coord_key in seen_keys:
                raise ValueError(
                    f"Coordination key {family.coord_key} shared by {seen_keys[family.coord_key]} and {family.prefix}"
                )
            if family.counter_name in seen_counters:
                raise ValueError(
                    f"Counter {family.counter_name!r} shared by {seen_counters[family.counter_name]} and {family.prefix}"
                )
            by_prefix[family.prefix] = family
            seen_keys[family.coord_key] = family.prefix
            seen_counters[family.counter_name] = family.prefix
        self._by_prefix = by_prefix

    def resolve(self, prefix: FamilyRef) -> Family:
        """Return the family registered for ``prefix`` (a tag or a raw prefix)."""
        key = prefix.value if isinstance(prefix, FamilyTag) else prefix
        try:
            return self._by_prefix[key]
        except (KeyError, TypeError):
            raise UnknownFamily(prefix) from None

    def __contains__(self, prefix: object) -> bool:
        key = prefix.value if isinstance(prefix, FamilyTag) else prefix
        return key in self._by_prefix

    def __iter__(self) -> Iterator[Family]:
        return iter(self._by_prefix.values())

    def __len__(self) -> int:
        return len(self._by_prefix)

    @property
    def prefixes(self) -> Tuple[str, ...]:
        return tuple(self._by_prefix)


registry = FamilyRegistry(DEFAULT_FAMILIES)
