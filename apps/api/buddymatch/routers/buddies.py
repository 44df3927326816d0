"""Buddies router - buddy directory, own profile and HR load views."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from buddymatch.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_roles,
)
from buddymatch.db.enums import Role
from buddymatch.db.models import BuddyProfile
from buddymatch.schemas.auth import UserSession
from buddymatch.schemas.buddies import (
    BuddyDashboardRow,
    BuddyProfileCreate,
    BuddyProfileUpdate,
    BuddyRead,
    BuddyUser,
    MatchDistributionBucket,
)
from buddymatch.services import buddy_service, capacity_service

router = APIRouter(prefix="/buddies", tags=["Buddies"])


def _buddy_to_read(buddy: BuddyProfile, current_buddies: int) -> BuddyRead:
    user = buddy.user
    profile = user.profile
    return BuddyRead(
        id=str(buddy.id),
        user_id=str(buddy.user_id),
        location=buddy.location,
        unit=buddy.unit,
        tech_stack=list(buddy.tech_stack or []),
        interests=list(buddy.interests or []),
        max_buddies=buddy.max_buddies,
        is_available=buddy.is_available,
        experience=buddy.experience,
        mentoring_style=buddy.mentoring_style,
        availability=buddy.availability,
        created_at=buddy.created_at.isoformat(),
        updated_at=buddy.updated_at.isoformat(),
        user=BuddyUser(
            id=str(user.id),
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            department=profile.department if profile else None,
            position=profile.position if profile else None,
            bio=profile.bio if profile else None,
        ),
        current_buddies=current_buddies,
    )


@router.get("/", response_model=list[BuddyRead])
def list_buddies(
    location: str | None = Query(None, description="Case-insensitive substring"),
    unit: str | None = Query(None, description="Case-insensitive substring"),
    tech_stack: str | None = Query(None, alias="techStack", description="Comma-separated, any term matches"),
    interests: str | None = Query(None, description="Comma-separated, any term matches"),
    available: str | None = Query(None, description='"true" restricts to available buddies'),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> list[BuddyRead]:
    """Search the buddy directory (excludes the caller)."""
    filters = buddy_service.BuddyFilters.from_query(
        location=location,
        unit=unit,
        tech_stack=tech_stack,
        interests=interests,
        available=available,
    )
    results = buddy_service.search_buddies(db, session.user_id, filters)
    return [_buddy_to_read(buddy, load) for buddy, load in results]


@router.get("/me", response_model=BuddyRead)
def get_my_profile(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles([Role.BUDDY])),
) -> BuddyRead:
    profile = buddy_service.get_profile(db, session.user_id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Buddy profile not found")
    return _buddy_to_read(profile, capacity_service.current_load(db, session.user_id))


@router.post(
    "/",
    response_model=BuddyRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_my_profile(
    data: BuddyProfileCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles([Role.BUDDY])),
) -> BuddyRead:
    try:
        profile = buddy_service.create_profile(db, session.user_id, data)
    except buddy_service.BuddyProfileExistsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _buddy_to_read(profile, 0)


@router.put(
    "/me",
    response_model=BuddyRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_my_profile(
    data: BuddyProfileUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles([Role.BUDDY])),
) -> BuddyRead:
    try:
        profile = buddy_service.update_profile(db, session.user_id, data)
    except buddy_service.BuddyProfileNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _buddy_to_read(profile, capacity_service.current_load(db, session.user_id))


@router.get("/dashboard", response_model=list[BuddyDashboardRow])
def get_dashboard(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles([Role.HR])),
):
    """Per-buddy load and utilization (HR only)."""
    return buddy_service.get_dashboard(db)


@router.get("/match-distribution", response_model=list[MatchDistributionBucket])
def get_match_distribution(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles([Role.HR])),
):
    """How many buddies hold N accepted matches (HR only)."""
    return buddy_service.get_match_distribution(db)
