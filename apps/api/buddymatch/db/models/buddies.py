"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buddymatch.db.base import Base

if TYPE_CHECKING:
    from buddymatch.db.models import User


class BuddyProfile(Base):
    """
    Mentoring profile of a BUDDY user.

    At most one per user. Current load is never stored here: it is always
    counted from accepted matches (see capacity_service).
    """

    __tablename__ = "buddy_profiles"
    __table_args__ = (
        CheckConstraint("max_buddies >= 1", name="ck_buddy_profiles_max_buddies_positive"),
        Index("idx_buddy_profiles_available", "is_available"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    location: Mapped[str] = mapped_column(String(100), nullable=False)
    unit: Mapped[str] = mapped_column(String(100), nullable=False)
    tech_stack: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    interests: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Capacity: maximum number of accepted matches
    max_buddies: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Descriptive mentoring metadata
    experience: Mapped[str | None] = mapped_column(Text, nullable=True)
    mentoring_style: Mapped[str | None] = mapped_column(Text, nullable=True)
    availability: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    user: Mapped["User"] = relationship(back_populates="buddy_profile")
