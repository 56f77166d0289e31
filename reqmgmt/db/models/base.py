"""
Shared SQLAlchemy base and helpers.
"""
from datetime import datetime, UTC
from typing import ClassVar

from sqlalchemy import Column, Sequence, String
from sqlalchemy.orm import declarative_base

from reqmgmt.refids import FamilyTag, listen_for_reference_ids, registry


def now_utc():
    """Return an aware UTC datetime for default/updated timestamps."""
    return datetime.now(UTC)


Base = declarative_base()

# Native counters for each family; created on PostgreSQL, ignored by SQLite.
REFERENCE_SEQUENCES = {
    family.prefix: Sequence(family.counter_name, start=1, metadata=Base.metadata)
    for family in registry
}


class ReferenceIdMixin:
    """Human-readable reference id column shared by the entity families."""

    __reference_family__: ClassVar[FamilyTag]

    reference_id = Column(String(20), nullable=False, unique=True)


listen_for_reference_ids(ReferenceIdMixin)
