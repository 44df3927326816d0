"""AI suggestion schemas."""

from pydantic import BaseModel, ConfigDict, Field


class NewcomerProfile(BaseModel):
    """Newcomer attributes sent to the ranking prompt (also the cache key)."""

    first_name: str
    last_name: str
    department: str = ""
    position: str = ""
    location: str = ""
    bio: str = ""
    interests: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    timezone: str = ""


class BuddyProfileSummary(BaseModel):
    location: str
    unit: str
    tech_stack: list[str]
    interests: list[str]
    experience: str
    mentoring_style: str
    availability: str


class AISuggestion(BaseModel):
    buddy_id: str
    buddy_name: str
    score: float = Field(..., ge=0, le=1)
    reasoning: str
    buddy_profile: BuddyProfileSummary


class AISuggestionResponse(BaseModel):
    suggestions: list[AISuggestion]
    total_analyzed: int
    processing_time_ms: int


class AISuggestionRequest(BaseModel):
    newcomer_id: str = Field(..., min_length=1)


class AIStatusResponse(BaseModel):
    enabled: bool
    message: str


class RawSuggestion(BaseModel):
    """One suggestion as returned by the completion provider."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    buddy_id: str = Field(..., alias="buddyId", min_length=1)
    score: float | None = None
    reasoning: str | None = None
