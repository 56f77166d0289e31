import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from reqmgmt.refids import FamilyTag
from .base import Base, ReferenceIdMixin, now_utc


class Epic(ReferenceIdMixin, Base):
    __tablename__ = 'epics'
    __reference_family__ = FamilyTag.EPIC

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    creator_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    assignee_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    priority = Column(Integer, nullable=False, default=3)  # 1=Critical .. 4=Low
    status = Column(String(50), nullable=False, default='Backlog')
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    user_stories = relationship("UserStory", back_populates="epic")

    __table_args__ = (
        Index('idx_epics_status_priority', 'status', 'priority'),
    )
