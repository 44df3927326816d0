"""Feedback router - ratings for completed matches."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from buddymatch.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_roles,
)
from buddymatch.db.enums import Role
from buddymatch.db.models import Feedback
from buddymatch.schemas.auth import UserSession
from buddymatch.schemas.feedback import (
    FeedbackAuthor,
    FeedbackAverages,
    FeedbackCreate,
    FeedbackRead,
    FeedbackStatsResponse,
)
from buddymatch.services import feedback_service

router = APIRouter(prefix="/feedback", tags=["Feedback"])


def _feedback_to_read(feedback: Feedback, include_match_type: bool = False) -> FeedbackRead:
    author = feedback.user
    return FeedbackRead(
        id=str(feedback.id),
        match_id=str(feedback.match_id),
        user_id=str(feedback.user_id),
        rating=feedback.rating,
        helpfulness=feedback.helpfulness,
        communication=feedback.communication,
        availability=feedback.availability,
        comment=feedback.comment,
        created_at=feedback.created_at.isoformat(),
        user=FeedbackAuthor(
            id=str(author.id),
            first_name=author.first_name,
            last_name=author.last_name,
        )
        if author
        else None,
        match_type=feedback.match.type if include_match_type and feedback.match else None,
    )


@router.post(
    "/",
    response_model=FeedbackRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def submit_feedback(
    data: FeedbackCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> FeedbackRead:
    """Rate a completed match you took part in (once per match)."""
    try:
        feedback = feedback_service.submit_feedback(db, session.user_id, data)
    except feedback_service.FeedbackMatchNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except feedback_service.DuplicateFeedbackError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _feedback_to_read(feedback)


@router.get("/match/{match_id}", response_model=list[FeedbackRead])
def list_match_feedback(
    match_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
) -> list[FeedbackRead]:
    if not feedback_service.is_participant(db, match_id, session.user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Match not found")
    return [_feedback_to_read(f) for f in feedback_service.list_feedback_for_match(db, match_id)]


@router.get("/stats", response_model=FeedbackStatsResponse)
def get_feedback_stats(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles([Role.HR])),
) -> FeedbackStatsResponse:
    """Average ratings and the latest feedback (HR only)."""
    stats = feedback_service.get_feedback_stats(db)
    return FeedbackStatsResponse(
        count=stats["count"],
        averages=FeedbackAverages(**stats["averages"]),
        recent_feedback=[_feedback_to_read(f, include_match_type=True) for f in stats["recent"]],
    )
