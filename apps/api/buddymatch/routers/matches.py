"""Matches router - buddy match requests and responses."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from buddymatch.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_roles,
)
from buddymatch.db.enums import ROLES_CAN_CREATE_MATCHES, MatchStatus, MatchType, Role
from buddymatch.db.models import Match, User
from buddymatch.schemas.auth import UserSession
from buddymatch.schemas.matches import (
    MatchCreate,
    MatchRead,
    MatchRespond,
    MatchStatsResponse,
    UserSummary,
)
from buddymatch.services import match_service

router = APIRouter(prefix="/matches", tags=["Matches"])


# =============================================================================
# Helper Functions
# =============================================================================


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _user_summary(user: User | None) -> UserSummary | None:
    if not user:
        return None
    profile = user.profile
    return UserSummary(
        id=str(user.id),
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        department=profile.department if profile else None,
        position=profile.position if profile else None,
    )


def _match_to_read(match: Match) -> MatchRead:
    """Convert Match model to MatchRead schema with participant summaries."""
    return MatchRead(
        id=str(match.id),
        sender_id=str(match.sender_id),
        receiver_id=str(match.receiver_id),
        newcomer_id=str(match.newcomer_id) if match.newcomer_id else None,
        type=match.type,
        status=match.status,
        message=match.message,
        response_message=match.response_message,
        start_date=_iso(match.start_date),
        end_date=_iso(match.end_date),
        responded_at=_iso(match.responded_at),
        created_at=match.created_at.isoformat(),
        updated_at=match.updated_at.isoformat(),
        sender=_user_summary(match.sender),
        receiver=_user_summary(match.receiver),
        newcomer=_user_summary(match.newcomer),
    )


def _parse_match_id(raw: str) -> UUID | None:
    """Malformed ids are treated like unknown ones."""
    try:
        return UUID(raw.strip())
    except ValueError:
        return None


def _raise_http(exc: match_service.MatchServiceError):
    if isinstance(exc, match_service.MatchPermissionError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message)
    if isinstance(exc, match_service.MatchNotRespondableError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "/",
    response_model=MatchRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_match(
    data: MatchCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles(ROLES_CAN_CREATE_MATCHES)),
) -> MatchRead:
    """
    Send a match request to a buddy.

    HR places newcomers (NEWCOMER_MATCH); buddies send peer requests
    (RELOCATION_SUPPORT, OFFICE_CONNECTION) to other buddies.
    """
    try:
        match = match_service.create_match(
            db=db,
            sender_id=session.user_id,
            sender_role=session.role,
            data=data,
        )
    except match_service.MatchServiceError as e:
        _raise_http(e)

    return _match_to_read(match)


@router.get("/", response_model=list[MatchRead])
def list_matches(
    status_filter: MatchStatus | None = Query(None, alias="status", description="Filter by status"),
    type_filter: MatchType | None = Query(None, alias="type", description="Filter by match type"),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> list[MatchRead]:
    """List matches the caller sent or received, newest first."""
    matches = match_service.list_matches_for_user(
        db=db,
        user_id=session.user_id,
        status_filter=status_filter,
        type_filter=type_filter,
    )
    return [_match_to_read(m) for m in matches]


@router.get("/stats", response_model=MatchStatsResponse)
def get_match_stats(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles([Role.HR])),
) -> MatchStatsResponse:
    """Total matches and counts by status (HR only)."""
    total, by_status = match_service.get_match_stats(db)
    return MatchStatsResponse(total=total, by_status=by_status)


@router.get("/{match_id}", response_model=MatchRead)
def get_match(
    match_id: str,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> MatchRead:
    """Get a match the caller participates in."""
    match_uuid = _parse_match_id(match_id)
    match = None
    if match_uuid:
        match = match_service.get_match_for_participant(db, match_uuid, session.user_id)
    if not match:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Match not found")
    return _match_to_read(match)


@router.patch(
    "/{match_id}/respond",
    response_model=MatchRead,
    dependencies=[Depends(require_csrf_header)],
)
def respond_to_match(
    match_id: str,
    data: MatchRespond,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles([Role.BUDDY])),
) -> MatchRead:
    """
    Accept or reject a pending match (receiver only).

    Missing, foreign and already-answered matches all return the same 404.
    """
    match_uuid = _parse_match_id(match_id)
    try:
        if match_uuid is None:
            raise match_service.MatchNotRespondableError(match_service.NotRespondableReason.NOT_FOUND)
        match = match_service.respond_to_match(
            db=db,
            match_id=match_uuid,
            responder_id=session.user_id,
            status=data.status,
            message=data.message,
        )
    except match_service.MatchServiceError as e:
        _raise_http(e)

    return _match_to_read(match)
