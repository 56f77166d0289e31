"""Human-readable reference ids (EP-001, US-042, ...) for entity families."""

from .allocator import (
    Allocation,
    AllocationMode,
    Allocator,
    generate,
    get_allocator,
    refresh_allocator,
    set_allocator,
)
from .coordinator import AdvisoryLock, Coordinator, LocalLock
from .errors import (
    CoordinationTimeout,
    CounterUnavailable,
    InternalFormatError,
    ReferenceIdError,
    UnknownFamily,
)
from .families import DEFAULT_FAMILIES, Family, FamilyRegistry, FamilyTag, registry
from .formatting import (
    ParsedReferenceId,
    detect_reference_id,
    fallback_reference_id,
    format_reference_id,
    is_sequential_reference_id,
    parse_reference_id,
)
from .hooks import assign_reference_id, listen_for_reference_ids
from .stores import (
    CounterStore,
    CountStore,
    DialectProbe,
    InMemoryCounter,
    SequenceStore,
    probe_dialect,
    select_counter_store,
)

__all__ = [
    # allocation
    "Allocation",
    "AllocationMode",
    "Allocator",
    "generate",
    "get_allocator",
    "refresh_allocator",
    "set_allocator",
    "assign_reference_id",
    "listen_for_reference_ids",
    # coordination
    "AdvisoryLock",
    "Coordinator",
    "LocalLock",
    # errors
    "CoordinationTimeout",
    "CounterUnavailable",
    "InternalFormatError",
    "ReferenceIdError",
    "UnknownFamily",
    # families
    "DEFAULT_FAMILIES",
    "Family",
    "FamilyRegistry",
    "FamilyTag",
    "registry",
    # formatting
    "ParsedReferenceId",
    "detect_reference_id",
    "fallback_reference_id",
    "format_reference_id",
    "is_sequential_reference_id",
    "parse_reference_id",
    # stores
    "CounterStore",
    "CountStore",
    "DialectProbe",
    "InMemoryCounter",
    "SequenceStore",
    "probe_dialect",
    "select_counter_store",
]
