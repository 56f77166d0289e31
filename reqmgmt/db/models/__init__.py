"""
Domain-split SQLAlchemy models.

Exposes `Base`, `now_utc`, the reference id mixin and sequences, and all ORM
classes. Importing this package attaches the reference id creation hook.
"""

from .base import Base, REFERENCE_SEQUENCES, ReferenceIdMixin, now_utc  # re-export

from .users import User
from .epics import Epic
from .user_stories import UserStory
from .acceptance_criteria import AcceptanceCriteria
from .requirements import Requirement
from .steering_documents import SteeringDocument
from .prompts import Prompt

__all__ = [
    # base
    "Base",
    "REFERENCE_SEQUENCES",
    "ReferenceIdMixin",
    "now_utc",
    # users
    "User",
    # reference id families
    "Epic",
    "UserStory",
    "AcceptanceCriteria",
    "Requirement",
    "SteeringDocument",
    "Prompt",
]
