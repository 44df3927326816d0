"""Buddy service - buddy profiles, directory search and HR load views."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from buddymatch.db.models import BuddyProfile, User
from buddymatch.schemas.buddies import BuddyProfileCreate, BuddyProfileUpdate
from buddymatch.services import capacity_service

logger = logging.getLogger(__name__)


# Explicit nulls for these are ignored on update
REQUIRED_PROFILE_FIELDS = frozenset(
    {"location", "unit", "tech_stack", "interests", "max_buddies", "is_available"}
)


class BuddyServiceError(Exception):
    """Base exception for buddy profile errors."""

    pass


class BuddyProfileExistsError(BuddyServiceError):
    pass


class BuddyProfileNotFoundError(BuddyServiceError):
    pass


# =============================================================================
# Directory
# =============================================================================


def parse_terms(raw: str | None) -> list[str]:
    """Split a comma-separated query value into trimmed, non-empty terms."""
    if not raw:
        return []
    return [term.strip() for term in raw.split(",") if term.strip()]


@dataclass
class BuddyFilters:
    """Directory filters; every supplied filter must match."""

    location: str | None = None
    unit: str | None = None
    tech_stack: list[str] = field(default_factory=list)
    interests: list[str] = field(default_factory=list)
    available_only: bool = False

    @classmethod
    def from_query(
        cls,
        location: str | None = None,
        unit: str | None = None,
        tech_stack: str | None = None,
        interests: str | None = None,
        available: str | None = None,
    ) -> "BuddyFilters":
        # Only the literal "true" restricts; there is no unavailable-only filter
        return cls(
            location=(location or "").strip() or None,
            unit=(unit or "").strip() or None,
            tech_stack=parse_terms(tech_stack),
            interests=parse_terms(interests),
            available_only=available == "true",
        )


def _contains_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _any_term_equals(values: list[str] | None, terms: list[str]) -> bool:
    wanted = {term.casefold() for term in terms}
    return any(value.casefold() in wanted for value in values or [])


def search_buddies(
    db: Session,
    requester_id: UUID,
    filters: BuddyFilters,
) -> list[tuple[BuddyProfile, int]]:
    """
    Buddy profiles of active users matching filters, newest first.

    The requester is never in their own results. Each profile is paired with
    its live accepted-match count.
    """
    query = (
        db.query(BuddyProfile)
        .join(User, BuddyProfile.user_id == User.id)
        .options(joinedload(BuddyProfile.user).joinedload(User.profile))
        .filter(
            User.is_active.is_(True),
            BuddyProfile.user_id != requester_id,
        )
    )
    if filters.available_only:
        query = query.filter(BuddyProfile.is_available.is_(True))
    if filters.location:
        query = query.filter(BuddyProfile.location.ilike(_contains_pattern(filters.location), escape="\\"))
    if filters.unit:
        query = query.filter(BuddyProfile.unit.ilike(_contains_pattern(filters.unit), escape="\\"))

    buddies = query.order_by(BuddyProfile.created_at.desc(), BuddyProfile.id).all()

    # JSON list columns: exact (case-insensitive) term matching happens here
    if filters.tech_stack:
        buddies = [b for b in buddies if _any_term_equals(b.tech_stack, filters.tech_stack)]
    if filters.interests:
        buddies = [b for b in buddies if _any_term_equals(b.interests, filters.interests)]

    loads = capacity_service.current_loads(db, {b.user_id for b in buddies})
    return [(buddy, loads.get(buddy.user_id, 0)) for buddy in buddies]


# =============================================================================
# Own profile
# =============================================================================


def get_profile(db: Session, user_id: UUID) -> BuddyProfile | None:
    return (
        db.query(BuddyProfile)
        .options(joinedload(BuddyProfile.user).joinedload(User.profile))
        .filter(BuddyProfile.user_id == user_id)
        .first()
    )


def create_profile(db: Session, user_id: UUID, data: BuddyProfileCreate) -> BuddyProfile:
    """Create the caller's buddy profile (one per user)."""
    if get_profile(db, user_id):
        raise BuddyProfileExistsError("Buddy profile already exists")

    profile = BuddyProfile(
        user_id=user_id,
        location=data.location,
        unit=data.unit,
        tech_stack=data.tech_stack,
        interests=data.interests,
        max_buddies=data.max_buddies,
        experience=data.experience,
        mentoring_style=data.mentoring_style,
        availability=data.availability,
    )
    db.add(profile)
    db.commit()
    logger.info(f"Buddy profile created for user {user_id}")
    return get_profile(db, user_id)


def update_profile(db: Session, user_id: UUID, data: BuddyProfileUpdate) -> BuddyProfile:
    """
    Apply a partial update to the caller's buddy profile.

    Lowering max_buddies below the current load is allowed; it shows up as
    utilization above 100 and blocks new accepts until load drops.
    """
    profile = get_profile(db, user_id)
    if not profile:
        raise BuddyProfileNotFoundError("Buddy profile not found")

    for field_name, value in data.model_dump(exclude_unset=True).items():
        if value is None and field_name in REQUIRED_PROFILE_FIELDS:
            continue
        setattr(profile, field_name, value)
    profile.updated_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(profile)
    return profile


# =============================================================================
# HR views
# =============================================================================


def get_dashboard(db: Session) -> list[dict]:
    """Per-buddy load and utilization for every buddy profile."""
    buddies = (
        db.query(BuddyProfile)
        .options(joinedload(BuddyProfile.user))
        .order_by(BuddyProfile.created_at, BuddyProfile.id)
        .all()
    )
    loads = capacity_service.current_loads(db, {b.user_id for b in buddies})

    rows = []
    for buddy in buddies:
        current = loads.get(buddy.user_id, 0)
        rows.append(
            {
                "id": str(buddy.id),
                "name": buddy.user.full_name,
                "email": buddy.user.email,
                "location": buddy.location,
                "unit": buddy.unit,
                "max_buddies": buddy.max_buddies,
                "current_buddies": current,
                "availability": buddy.is_available,
                "utilization_rate": capacity_service.compute_utilization(current, buddy.max_buddies),
            }
        )
    return rows


def get_match_distribution(db: Session) -> list[dict]:
    """Histogram: how many buddies currently hold N accepted matches, by N ascending."""
    buddy_ids = {user_id for (user_id,) in db.query(BuddyProfile.user_id).all()}
    loads = capacity_service.current_loads(db, buddy_ids)
    histogram = Counter(loads.values())

    return [
        {
            "name": f"{count} {'Match' if count == 1 else 'Matches'}",
            "value": buddies,
            "match_count": count,
        }
        for count, buddies in sorted(histogram.items())
    ]
