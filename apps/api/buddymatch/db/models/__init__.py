"""SQLAlchemy ORM models."""

from buddymatch.db.models.auth import User, UserProfile
from buddymatch.db.models.buddies import BuddyProfile
from buddymatch.db.models.feedback import Feedback
from buddymatch.db.models.matches import Match
from buddymatch.db.models.notifications import Notification

__all__ = [
    "BuddyProfile",
    "Feedback",
    "Match",
    "Notification",
    "User",
    "UserProfile",
]
