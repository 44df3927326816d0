"""Match request/response schemas."""

from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from buddymatch.db.enums import RESPONSE_STATUSES, MatchStatus, MatchType


class MatchCreate(BaseModel):
    """Request to create a buddy match."""

    receiver_id: UUID
    type: MatchType
    newcomer_id: UUID | None = None
    message: str | None = Field(None, max_length=2000)
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("message")
    @classmethod
    def _strip_message(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("start_date", "end_date")
    @classmethod
    def _as_naive_utc(cls, value: datetime | None) -> datetime | None:
        # Stored columns are naive UTC; offset-aware input is converted.
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    @model_validator(mode="after")
    def _check_date_order(self) -> "MatchCreate":
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class MatchRespond(BaseModel):
    """Receiver's answer to a pending match."""

    status: MatchStatus
    message: str | None = Field(None, max_length=2000)

    @field_validator("status")
    @classmethod
    def _only_response_statuses(cls, value: MatchStatus) -> MatchStatus:
        if value not in RESPONSE_STATUSES:
            raise ValueError("status must be ACCEPTED or REJECTED")
        return value

    @field_validator("message")
    @classmethod
    def _strip_message(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class UserSummary(BaseModel):
    """Denormalized participant fields for display."""

    id: str
    first_name: str
    last_name: str
    email: str
    department: str | None = None
    position: str | None = None


class MatchRead(BaseModel):
    """Match response."""

    id: str
    sender_id: str
    receiver_id: str
    newcomer_id: str | None
    type: str
    status: str
    message: str | None
    response_message: str | None
    start_date: str | None
    end_date: str | None
    responded_at: str | None
    created_at: str
    updated_at: str
    # Denormalized for convenience
    sender: UserSummary | None = None
    receiver: UserSummary | None = None
    newcomer: UserSummary | None = None


class MatchStatsResponse(BaseModel):
    """Match stats summary."""

    total: int
    by_status: dict[str, int]
