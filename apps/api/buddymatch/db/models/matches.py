"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import uuid
from datetime import datetime

from sqlalchemy import (
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buddymatch.db.base import Base

if TYPE_CHECKING:
    from buddymatch.db.models import Feedback, User


class Match(Base):
    """
    Buddy match request from a sender to a buddy receiver.

    Tracks the lifecycle from request through a single accept/reject response.
    Only one pending request is allowed per (sender, receiver) pair.
    """

    __tablename__ = "matches"
    __table_args__ = (
        # Only one pending request per sender/receiver pair
        Index(
            "uq_one_pending_match_per_pair",
            "sender_id",
            "receiver_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
        Index("idx_matches_receiver_status", "receiver_id", "status"),
        Index("idx_matches_sender_status", "sender_id", "status"),
        Index("idx_matches_created", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Set for HR placing a newcomer; empty for peer-to-peer connections
    newcomer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    type: Mapped[str] = mapped_column(String(30), nullable=False)

    # Status workflow: PENDING → ACCEPTED/REJECTED (→ COMPLETED administratively)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")

    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    start_date: Mapped[datetime | None] = mapped_column(nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)

    responded_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    # Relationships
    sender: Mapped["User"] = relationship(foreign_keys=[sender_id])
    receiver: Mapped["User"] = relationship(foreign_keys=[receiver_id])
    newcomer: Mapped[Optional["User"]] = relationship(foreign_keys=[newcomer_id])
    feedback: Mapped[list["Feedback"]] = relationship(
        back_populates="match",
        cascade="all, delete-orphan",
    )
