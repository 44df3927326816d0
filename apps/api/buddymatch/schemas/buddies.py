"""Buddy profile and directory schemas."""

from pydantic import BaseModel, Field, field_validator

from buddymatch.core.config import settings


def _clean_terms(values: list[str] | None) -> list[str] | None:
    if values is None:
        return None
    return [v.strip() for v in values if v and v.strip()]


def _check_max_buddies(value: int | None) -> int | None:
    if value is not None and value > settings.MAX_BUDDIES_LIMIT:
        raise ValueError(f"max_buddies must be at most {settings.MAX_BUDDIES_LIMIT}")
    return value


class BuddyProfileCreate(BaseModel):
    location: str = Field(..., min_length=1, max_length=100)
    unit: str = Field(..., min_length=1, max_length=100)
    tech_stack: list[str]
    interests: list[str]
    max_buddies: int = Field(default_factory=lambda: settings.DEFAULT_MAX_BUDDIES, ge=1)
    experience: str | None = None
    mentoring_style: str | None = None
    availability: str | None = None

    @field_validator("location", "unit", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("tech_stack", "interests")
    @classmethod
    def _terms(cls, value: list[str]) -> list[str]:
        return _clean_terms(value)

    @field_validator("max_buddies")
    @classmethod
    def _limit(cls, value: int) -> int:
        return _check_max_buddies(value)


class BuddyProfileUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    location: str | None = Field(None, min_length=1, max_length=100)
    unit: str | None = Field(None, min_length=1, max_length=100)
    tech_stack: list[str] | None = None
    interests: list[str] | None = None
    max_buddies: int | None = Field(None, ge=1)
    experience: str | None = None
    mentoring_style: str | None = None
    availability: str | None = None
    is_available: bool | None = None

    @field_validator("location", "unit", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("tech_stack", "interests")
    @classmethod
    def _terms(cls, value: list[str] | None) -> list[str] | None:
        return _clean_terms(value)

    @field_validator("max_buddies")
    @classmethod
    def _limit(cls, value: int | None) -> int | None:
        return _check_max_buddies(value)


class BuddyUser(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    department: str | None = None
    position: str | None = None
    bio: str | None = None


class BuddyRead(BaseModel):
    id: str
    user_id: str
    location: str
    unit: str
    tech_stack: list[str]
    interests: list[str]
    max_buddies: int
    is_available: bool
    experience: str | None
    mentoring_style: str | None
    availability: str | None
    created_at: str
    updated_at: str
    user: BuddyUser
    # Live accepted-match count
    current_buddies: int


class BuddyDashboardRow(BaseModel):
    id: str
    name: str
    email: str
    location: str
    unit: str
    max_buddies: int
    current_buddies: int
    availability: bool
    utilization_rate: float


class MatchDistributionBucket(BaseModel):
    name: str
    value: int
    match_count: int
