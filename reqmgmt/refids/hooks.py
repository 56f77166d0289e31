"""
Entity creation hook.

Before an entity of a reference-id family is inserted, keep the identifier
it already carries or allocate one with the in-flight transaction. The
mapper ``before_insert`` binding passes the flush connection, so the counter
advance and the row insert share one transaction.
"""
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import event

from .allocator import Allocator, Transaction, get_allocator
from .families import FamilyRef

REFERENCE_ID_ATTR = "reference_id"


def assign_reference_id(
    entity: Any,
    tx: Transaction,
    family: FamilyRef,
    *,
    allocator: Optional[Allocator] = None,
) -> str:
    """Install a reference id on ``entity`` unless it already has one.

    Errors from the allocator propagate and abort the creation.
    """
    current = getattr(entity, REFERENCE_ID_ATTR, None)
    if current:
        return current
    reference_id = (allocator or get_allocator()).allocate(family, tx)
    setattr(entity, REFERENCE_ID_ATTR, reference_id)
    return reference_id


def _before_insert(mapper, connection, target) -> None:
    assign_reference_id(target, connection, target.__reference_family__)


def listen_for_reference_ids(mixin: type) -> None:
    """Attach the hook to every mapped subclass of ``mixin``."""
    event.listen(mixin, "before_insert", _before_insert, propagate=True)
