"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import (
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buddymatch.db.base import Base

if TYPE_CHECKING:
    from buddymatch.db.models import Match, User


class Feedback(Base):
    """Post-completion rating of a match by one of its participants."""

    __tablename__ = "feedback"
    __table_args__ = (
        UniqueConstraint("match_id", "user_id", name="uq_feedback_match_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    match_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Ratings 1-5; only the overall rating is required
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    helpfulness: Mapped[int | None] = mapped_column(Integer, nullable=True)
    communication: Mapped[int | None] = mapped_column(Integer, nullable=True)
    availability: Mapped[int | None] = mapped_column(Integer, nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    match: Mapped["Match"] = relationship(back_populates="feedback")
    user: Mapped["User"] = relationship()
