"""Feedback schemas."""

from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class FeedbackCreate(BaseModel):
    match_id: UUID
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=500)
    helpfulness: int | None = Field(None, ge=1, le=5)
    communication: int | None = Field(None, ge=1, le=5)
    availability: int | None = Field(None, ge=1, le=5)

    @field_validator("comment", mode="before")
    @classmethod
    def _strip_comment(cls, value):
        if isinstance(value, str):
            return value.strip() or None
        return value


class FeedbackAuthor(BaseModel):
    id: str
    first_name: str
    last_name: str


class FeedbackRead(BaseModel):
    id: str
    match_id: str
    user_id: str
    rating: int
    helpfulness: int | None
    communication: int | None
    availability: int | None
    comment: str | None
    created_at: str
    user: FeedbackAuthor | None = None
    match_type: str | None = None


class FeedbackAverages(BaseModel):
    rating: float | None
    helpfulness: float | None
    communication: float | None
    availability: float | None


class FeedbackStatsResponse(BaseModel):
    count: int
    averages: FeedbackAverages
    recent_feedback: list[FeedbackRead]
