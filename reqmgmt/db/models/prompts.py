import uuid
from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID

from reqmgmt.refids import FamilyTag
from .base import Base, ReferenceIdMixin, now_utc


class Prompt(ReferenceIdMixin, Base):
    __tablename__ = 'prompts'
    __reference_family__ = FamilyTag.PROMPT

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    role = Column(String(20), nullable=False, default='assistant')  # user|assistant
    is_active = Column(Boolean, nullable=False, default=False)
    creator_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)
