import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from reqmgmt.refids import FamilyTag
from .base import Base, ReferenceIdMixin, now_utc


class Requirement(ReferenceIdMixin, Base):
    __tablename__ = 'requirements'
    __reference_family__ = FamilyTag.REQUIREMENT

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_story_id = Column(UUID(as_uuid=True), ForeignKey('user_stories.id', ondelete='CASCADE'), nullable=False)
    acceptance_criteria_id = Column(
        UUID(as_uuid=True), ForeignKey('acceptance_criteria.id', ondelete='SET NULL'), nullable=True
    )
    creator_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    assignee_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    priority = Column(Integer, nullable=False, default=3)
    status = Column(String(50), nullable=False, default='Draft')
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    user_story = relationship("UserStory", back_populates="requirements")
    acceptance_criteria = relationship("AcceptanceCriteria", back_populates="requirements")

    __table_args__ = (
        Index('idx_requirements_user_story_status', 'user_story_id', 'status'),
    )
