"""
Reference id allocation.

``Allocator.allocate(prefix, tx)`` resolves the family, advances its counter
(directly when the store is atomic, under the coordinator otherwise) and
formats the result. Coordination timeouts and counter failures turn into a
fallback-form id; unknown families and formatting errors propagate.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union

from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from reqmgmt.utils.runtime import is_pytest_runtime
from reqmgmt.utils.settings import get_reference_id_settings

from .coordinator import Coordinator
from .errors import CoordinationTimeout, CounterUnavailable
from .families import Family, FamilyRef, FamilyRegistry, registry as default_registry
from .formatting import fallback_reference_id, format_reference_id
from .stores import CounterStore, InMemoryCounter, probe_dialect, select_counter_store

logger = logging.getLogger(__name__)

Transaction = Union[Connection, Session, None]


class AllocationMode(str, Enum):
    ATOMIC = "atomic"
    COORDINATED = "coordinated"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Allocation:
    reference_id: str
    prefix: str
    number: Optional[int]
    mode: AllocationMode


def _connection_for(tx: Transaction) -> Optional[Connection]:
    if isinstance(tx, Session):
        return tx.connection()
    return tx


class Allocator:
    """Process-wide reference id allocator."""

    def __init__(
        self,
        families: FamilyRegistry = default_registry,
        *,
        store: Optional[CounterStore] = None,
        coordinator: Optional[Coordinator] = None,
    ) -> None:
        self.families = families
        self.coordinator = coordinator or Coordinator()
        self._store = store
        self._stores_by_dialect: Dict[str, Optional[CounterStore]] = {}
        self._stores_lock = threading.Lock()

    def store_for(self, conn: Optional[Connection]) -> Optional[CounterStore]:
        """Return the counter store for ``conn``: the injected one, else the probed one."""
        if self._store is not None:
            return self._store
        if conn is None:
            return None
        probe = probe_dialect(conn)
        with self._stores_lock:
            if probe.name not in self._stores_by_dialect:
                self._stores_by_dialect[probe.name] = select_counter_store(probe)
            return self._stores_by_dialect[probe.name]

    def _advance(self, family: Family, store: CounterStore, conn: Optional[Connection]) -> tuple[int, AllocationMode]:
        if store.atomic:
            return store.advance(family, conn), AllocationMode.ATOMIC
        number = self.coordinator.with_lock(family.coord_key, conn, lambda: store.advance(family, conn))
        return number, AllocationMode.COORDINATED

    def _fallback(self, family: Family, cause: str) -> Allocation:
        reference_id = fallback_reference_id(family.prefix)
        logger.warning("Issued fallback reference id %s (%s)", reference_id, cause)
        return Allocation(reference_id=reference_id, prefix=family.prefix, number=None, mode=AllocationMode.FALLBACK)

    def issue(self, prefix: FamilyRef, tx: Transaction) -> Allocation:
        """Allocate a new reference id and report how it was obtained."""
        family = self.families.resolve(prefix)
        conn = _connection_for(tx)
        store = self.store_for(conn)
        if store is None:
            dialect = conn.dialect.name if conn is not None else "none"
            return self._fallback(family, f"no counter store for dialect {dialect}")
        try:
            number, mode = self._advance(family, store, conn)
        except (CoordinationTimeout, CounterUnavailable) as exc:
            return self._fallback(family, str(exc))
        reference_id = format_reference_id(family.prefix, number)
        logger.debug("Allocated %s via %s store (%s)", reference_id, store.name, mode.value)
        return Allocation(reference_id=reference_id, prefix=family.prefix, number=number, mode=mode)

    def allocate(self, prefix: FamilyRef, tx: Transaction) -> str:
        """Return a new reference id for ``prefix`` within ``tx``."""
        return self.issue(prefix, tx).reference_id


def build_allocator() -> Allocator:
    """Build an allocator from environment settings.

    ``REFID_COUNTER_BACKEND=memory`` selects an InMemoryCounter and is only
    honored under pytest.
    """
    settings = get_reference_id_settings()
    if settings.counter_backend == "memory":
        if not is_pytest_runtime():
            raise RuntimeError("REFID_COUNTER_BACKEND=memory is only available in test runs")
        return Allocator(store=InMemoryCounter())
    return Allocator()


_allocator: Optional[Allocator] = None
_allocator_lock = threading.Lock()


def get_allocator() -> Allocator:
    global _allocator
    with _allocator_lock:
        if _allocator is None:
            _allocator = build_allocator()
        return _allocator


def set_allocator(allocator: Allocator) -> None:
    """Install ``allocator`` as the process-wide default."""
    global _allocator
    with _allocator_lock:
        _allocator = allocator


def refresh_allocator() -> None:
    """Drop the process-wide allocator so the next use rebuilds it from settings."""
    global _allocator
    with _allocator_lock:
        _allocator = None


def generate(tx: Transaction, family_tag: FamilyRef) -> str:
    """Allocate a reference id for ``family_tag`` using the process-wide allocator."""
    return get_allocator().allocate(family_tag, tx)
