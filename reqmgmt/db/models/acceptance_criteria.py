import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Index, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from reqmgmt.refids import FamilyTag
from .base import Base, ReferenceIdMixin, now_utc


class AcceptanceCriteria(ReferenceIdMixin, Base):
    __tablename__ = 'acceptance_criteria'
    __reference_family__ = FamilyTag.ACCEPTANCE_CRITERIA

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_story_id = Column(UUID(as_uuid=True), ForeignKey('user_stories.id', ondelete='CASCADE'), nullable=False)
    author_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    description = Column(Text, nullable=False)  # EARS format: WHEN ... THEN ... SHALL ...
    created_at = Column(DateTime(timezone=True), default=now_utc)
    last_modified = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    user_story = relationship("UserStory", back_populates="acceptance_criteria")
    requirements = relationship("Requirement", back_populates="acceptance_criteria")

    __table_args__ = (
        Index('idx_acceptance_criteria_user_story_created', 'user_story_id', 'created_at'),
    )
