"""Feedback service - post-completion ratings and HR aggregates."""

import logging
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from buddymatch.db.enums import MatchStatus
from buddymatch.db.models import Feedback, Match
from buddymatch.schemas.feedback import FeedbackCreate

logger = logging.getLogger(__name__)

RECENT_FEEDBACK_LIMIT = 10


class FeedbackServiceError(Exception):
    """Base exception for feedback errors."""

    pass


class FeedbackMatchNotFoundError(FeedbackServiceError):
    pass


class DuplicateFeedbackError(FeedbackServiceError):
    pass


def _participant_filter(user_id: UUID):
    return or_(Match.sender_id == user_id, Match.receiver_id == user_id)


def submit_feedback(db: Session, user_id: UUID, data: FeedbackCreate) -> Feedback:
    """
    Record the caller's rating for a completed match they took part in.

    Raises:
        FeedbackMatchNotFoundError: not a participant, or match not COMPLETED
        DuplicateFeedbackError: caller already rated this match
    """
    match = (
        db.query(Match)
        .filter(
            Match.id == data.match_id,
            _participant_filter(user_id),
            Match.status == MatchStatus.COMPLETED.value,
        )
        .first()
    )
    if not match:
        raise FeedbackMatchNotFoundError("Match not found or not completed")

    existing = (
        db.query(Feedback)
        .filter(Feedback.match_id == match.id, Feedback.user_id == user_id)
        .first()
    )
    if existing:
        raise DuplicateFeedbackError("Feedback already submitted for this match")

    feedback = Feedback(
        match_id=match.id,
        user_id=user_id,
        rating=data.rating,
        comment=data.comment,
        helpfulness=data.helpfulness,
        communication=data.communication,
        availability=data.availability,
    )
    db.add(feedback)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateFeedbackError("Feedback already submitted for this match")

    db.refresh(feedback)
    logger.info(f"Feedback {feedback.id} recorded for match {match.id}")
    return feedback


def is_participant(db: Session, match_id: UUID, user_id: UUID) -> bool:
    return (
        db.query(Match.id)
        .filter(Match.id == match_id, _participant_filter(user_id))
        .first()
        is not None
    )


def list_feedback_for_match(db: Session, match_id: UUID) -> list[Feedback]:
    """All feedback on a match, newest first (caller checks participation)."""
    return (
        db.query(Feedback)
        .options(joinedload(Feedback.user))
        .filter(Feedback.match_id == match_id)
        .order_by(Feedback.created_at.desc(), Feedback.id)
        .all()
    )


def _average(value) -> float | None:
    return round(float(value), 2) if value is not None else None


def get_feedback_stats(db: Session) -> dict:
    """Averages of rating and sub-dimensions, total count and the most recent entries."""
    row = db.query(
        func.count(Feedback.id),
        func.avg(Feedback.rating),
        func.avg(Feedback.helpfulness),
        func.avg(Feedback.communication),
        func.avg(Feedback.availability),
    ).one()
    count, rating, helpfulness, communication, availability = row

    recent = (
        db.query(Feedback)
        .options(joinedload(Feedback.user), joinedload(Feedback.match))
        .order_by(Feedback.created_at.desc(), Feedback.id)
        .limit(RECENT_FEEDBACK_LIMIT)
        .all()
    )

    return {
        "count": count or 0,
        "averages": {
            "rating": _average(rating),
            "helpfulness": _average(helpfulness),
            "communication": _average(communication),
            "availability": _average(availability),
        },
        "recent": recent,
    }
