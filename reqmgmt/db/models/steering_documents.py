import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID

from reqmgmt.refids import FamilyTag
from .base import Base, ReferenceIdMixin, now_utc


class SteeringDocument(ReferenceIdMixin, Base):
    __tablename__ = 'steering_documents'
    __reference_family__ = FamilyTag.STEERING_DOCUMENT

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    creator_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)
