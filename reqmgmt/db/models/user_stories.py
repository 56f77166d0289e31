import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from reqmgmt.refids import FamilyTag
from .base import Base, ReferenceIdMixin, now_utc


class UserStory(ReferenceIdMixin, Base):
    __tablename__ = 'user_stories'
    __reference_family__ = FamilyTag.USER_STORY

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    epic_id = Column(UUID(as_uuid=True), ForeignKey('epics.id', ondelete='CASCADE'), nullable=False)
    creator_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    assignee_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    priority = Column(Integer, nullable=False, default=3)
    status = Column(String(50), nullable=False, default='Backlog')
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    last_modified = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    epic = relationship("Epic", back_populates="user_stories")
    acceptance_criteria = relationship("AcceptanceCriteria", back_populates="user_story")
    requirements = relationship("Requirement", back_populates="user_story")

    __table_args__ = (
        Index('idx_user_stories_epic_status', 'epic_id', 'status'),
    )
