"""Match service - buddy match lifecycle (create, respond, complete) and queries.

This is the only module that writes Match.status.

Create validates in a fixed order and the first failing check wins:
role/type rules, receiver owns a buddy profile, newcomer (if any) exists
with role NEWCOMER, receiver below capacity, no pending request from the
same sender. A partial unique index backs the last check against racing
inserts.

Respond looks the match up by id, receiver and PENDING status in one go.
Any miss is reported as the same not-found outcome. Accepting re-checks
capacity while holding a row lock on the receiver's buddy profile, then
writes through one conditional UPDATE so concurrent accepts cannot push a
buddy past max_buddies.

Notifications are recorded after the transition commits. A failure there
is logged and does not undo the transition.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from buddymatch.db.enums import (
    PEER_MATCH_TYPES,
    RESPONSE_STATUSES,
    ROLES_CAN_CREATE_MATCHES,
    MatchStatus,
    MatchType,
    NotificationType,
    Role,
)
from buddymatch.db.models import BuddyProfile, Match, User
from buddymatch.schemas.matches import MatchCreate
from buddymatch.services import capacity_service, notification_service

logger = logging.getLogger(__name__)

NOT_RESPONDABLE_MESSAGE = "Match not found or already responded"


# =============================================================================
# Errors
# =============================================================================


class MatchServiceError(Exception):
    """Base exception for match service errors."""

    message = "Match operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class MatchPermissionError(MatchServiceError):
    """Caller's role may not perform this match operation."""

    message = "Insufficient permissions"


class MatchRuleError(MatchServiceError):
    """Business rule violation (maps to 400)."""

    pass


class MatchTypeNotAllowedError(MatchRuleError):
    message = "HR can only create NEWCOMER_MATCH type matches"


class NewcomerNotAllowedError(MatchRuleError):
    message = "BUDDY cannot include newcomer_id"


class ReceiverNotBuddyError(MatchRuleError):
    message = "Receiver must be a buddy"


class SelfMatchError(MatchRuleError):
    message = "Cannot create a match with yourself"


class NewcomerNotFoundError(MatchRuleError):
    message = "Newcomer not found"


class NotANewcomerError(MatchRuleError):
    message = "Selected user is not a newcomer"


class BuddyCapacityError(MatchRuleError):
    message = "Buddy has reached maximum capacity"


class DuplicatePendingMatchError(MatchRuleError):
    message = "Pending match already exists"


class NotRespondableReason(str, Enum):
    """Internal cause behind a not-respondable outcome (logged, never returned)."""

    NOT_FOUND = "not_found"
    NOT_RECEIVER = "not_receiver"
    ALREADY_RESPONDED = "already_responded"


class MatchNotRespondableError(MatchServiceError):
    """Match missing, owned by someone else, or already answered."""

    message = NOT_RESPONDABLE_MESSAGE

    def __init__(self, reason: NotRespondableReason):
        self.reason = reason
        super().__init__(NOT_RESPONDABLE_MESSAGE)


class MatchNotFoundError(MatchServiceError):
    message = "Match not found"


class MatchStateError(MatchServiceError):
    """Administrative transition attempted from the wrong status."""

    pass


# =============================================================================
# Queries
# =============================================================================


def _with_participants(query):
    return query.options(
        joinedload(Match.sender).joinedload(User.profile),
        joinedload(Match.receiver).joinedload(User.profile),
        joinedload(Match.newcomer).joinedload(User.profile),
    )


def get_match(db: Session, match_id: UUID) -> Match | None:
    """Get match by ID with participants loaded."""
    return _with_participants(db.query(Match)).filter(Match.id == match_id).first()


def get_match_for_participant(db: Session, match_id: UUID, user_id: UUID) -> Match | None:
    """Get match only if the user is its sender or receiver."""
    return (
        _with_participants(db.query(Match))
        .filter(
            Match.id == match_id,
            or_(Match.sender_id == user_id, Match.receiver_id == user_id),
        )
        .first()
    )


def list_matches_for_user(
    db: Session,
    user_id: UUID,
    status_filter: MatchStatus | None = None,
    type_filter: MatchType | None = None,
) -> list[Match]:
    """List matches where the user is sender or receiver, newest first."""
    query = _with_participants(db.query(Match)).filter(
        or_(Match.sender_id == user_id, Match.receiver_id == user_id)
    )
    if status_filter:
        query = query.filter(Match.status == status_filter.value)
    if type_filter:
        query = query.filter(Match.type == type_filter.value)
    return query.order_by(Match.created_at.desc(), Match.id).all()


def get_pending_match(db: Session, sender_id: UUID, receiver_id: UUID) -> Match | None:
    """Find the pending match for a sender/receiver pair."""
    return (
        db.query(Match)
        .filter(
            Match.sender_id == sender_id,
            Match.receiver_id == receiver_id,
            Match.status == MatchStatus.PENDING.value,
        )
        .first()
    )


def get_match_stats(db: Session) -> tuple[int, dict[str, int]]:
    """Return total matches and counts by status."""
    total = db.query(Match).count()
    counts = {status.value: 0 for status in MatchStatus}
    rows = db.query(Match.status, func.count(Match.id)).group_by(Match.status).all()

    for status, count in rows:
        counts[status] = count

    return total, counts


# =============================================================================
# Create
# =============================================================================


def _check_role_rules(sender_role: Role, data: MatchCreate) -> None:
    if sender_role not in ROLES_CAN_CREATE_MATCHES:
        raise MatchPermissionError()
    if data.type == MatchType.NEWCOMER_MATCH and sender_role != Role.HR:
        raise MatchPermissionError()
    if sender_role == Role.HR and data.type in PEER_MATCH_TYPES:
        raise MatchTypeNotAllowedError()
    if sender_role == Role.BUDDY and data.newcomer_id:
        raise NewcomerNotAllowedError()


def create_match(
    db: Session,
    sender_id: UUID,
    sender_role: Role,
    data: MatchCreate,
) -> Match:
    """
    Create a PENDING match and notify the receiver.

    Raises a MatchServiceError subclass on the first failing check.
    """
    _check_role_rules(sender_role, data)

    receiver = (
        db.query(User)
        .options(joinedload(User.buddy_profile))
        .filter(User.id == data.receiver_id)
        .first()
    )
    if not receiver or not receiver.buddy_profile:
        raise ReceiverNotBuddyError()

    if receiver.id == sender_id:
        raise SelfMatchError()

    newcomer = None
    if data.newcomer_id:
        newcomer = db.get(User, data.newcomer_id)
        if not newcomer:
            raise NewcomerNotFoundError()
        if newcomer.role != Role.NEWCOMER.value:
            raise NotANewcomerError()

    load = capacity_service.current_load(db, receiver.id)
    if not capacity_service.has_capacity(load, receiver.buddy_profile.max_buddies):
        raise BuddyCapacityError()

    if get_pending_match(db, sender_id, receiver.id):
        raise DuplicatePendingMatchError()

    match = Match(
        sender_id=sender_id,
        receiver_id=receiver.id,
        newcomer_id=newcomer.id if newcomer else None,
        type=data.type.value,
        status=MatchStatus.PENDING.value,
        message=data.message,
        start_date=data.start_date,
        end_date=data.end_date,
    )
    db.add(match)
    try:
        db.commit()
    except IntegrityError:
        # Lost the race against a concurrent request for the same pair
        db.rollback()
        raise DuplicatePendingMatchError()

    logger.info(
        f"Match {match.id} created: sender={sender_id} receiver={receiver.id} type={data.type.value}"
    )

    sender = db.get(User, sender_id)
    title, body = _request_notification_text(sender_role, data.type, sender, newcomer)
    _notify_best_effort(
        db,
        user_id=receiver.id,
        type=NotificationType.MATCH_REQUEST,
        title=title,
        body=body,
        match_id=match.id,
    )

    return get_match(db, match.id)


def _describe_user(user: User | None, fallback: str) -> str:
    """'First Last (Department) - Position' with the optional parts omitted."""
    if not user:
        return fallback
    text = user.full_name
    profile = user.profile
    if profile and profile.department:
        text += f" ({profile.department})"
    if profile and profile.position:
        text += f" - {profile.position}"
    return text


def _request_notification_text(
    sender_role: Role,
    match_type: MatchType,
    sender: User | None,
    newcomer: User | None,
) -> tuple[str, str]:
    if sender_role == Role.HR and newcomer:
        return (
            "New Buddy Match Request from HR",
            f"You have been assigned as a buddy for {_describe_user(newcomer, 'a newcomer')}. "
            f"This is a {match_type.label} request.",
        )
    if sender_role == Role.BUDDY:
        return (
            "New Buddy Connection Request",
            f"{_describe_user(sender, 'a colleague')} wants to connect with you "
            f"for {match_type.label}.",
        )
    return (
        "New Buddy Match Request",
        f"You have a new {match_type.label} request from HR",
    )


# =============================================================================
# Respond
# =============================================================================


def _get_respondable_match(db: Session, match_id: UUID, responder_id: UUID) -> Match:
    match = db.get(Match, match_id)
    reason = None
    if not match:
        reason = NotRespondableReason.NOT_FOUND
    elif match.receiver_id != responder_id:
        reason = NotRespondableReason.NOT_RECEIVER
    elif match.status != MatchStatus.PENDING.value:
        reason = NotRespondableReason.ALREADY_RESPONDED

    if reason:
        logger.info(f"Match {match_id} not respondable by {responder_id}: {reason.value}")
        raise MatchNotRespondableError(reason)
    return match


def respond_to_match(
    db: Session,
    match_id: UUID,
    responder_id: UUID,
    status: MatchStatus,
    message: str | None = None,
) -> Match:
    """
    Accept or reject a pending match as its receiver and notify the sender.

    Raises:
        MatchNotRespondableError: missing, foreign, or already answered (all the same outward)
        BuddyCapacityError: accepting would exceed the receiver's max_buddies
    """
    if status not in RESPONSE_STATUSES:
        raise ValueError(f"Invalid response status: {status}")

    match = _get_respondable_match(db, match_id, responder_id)
    accepting = status == MatchStatus.ACCEPTED

    conditions = [
        Match.id == match.id,
        Match.receiver_id == responder_id,
        Match.status == MatchStatus.PENDING.value,
    ]

    if accepting:
        # Serializes concurrent accepts for the same buddy (no-op on SQLite,
        # where the single UPDATE below is already atomic).
        profile = (
            db.query(BuddyProfile)
            .filter(BuddyProfile.user_id == responder_id)
            .with_for_update()
            .first()
        )
        if profile:
            load = capacity_service.current_load(db, responder_id)
            if not capacity_service.has_capacity(load, profile.max_buddies):
                db.rollback()
                raise BuddyCapacityError("Maximum buddy capacity reached")
            conditions.append(
                capacity_service.accepted_count_subquery(responder_id) < profile.max_buddies
            )

    now = datetime.now(timezone.utc)
    result = db.execute(
        update(Match)
        .where(*conditions)
        .values(
            status=status.value,
            responded_at=now,
            response_message=message,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        db.rollback()
        current = db.get(Match, match_id)
        if (
            accepting
            and current is not None
            and current.receiver_id == responder_id
            and current.status == MatchStatus.PENDING.value
        ):
            raise BuddyCapacityError("Maximum buddy capacity reached")
        logger.info(f"Match {match_id} answered concurrently; rejecting response by {responder_id}")
        raise MatchNotRespondableError(NotRespondableReason.ALREADY_RESPONDED)

    db.commit()
    db.refresh(match)

    logger.info(f"Match {match.id} {status.value.lower()} by {responder_id}")

    body = f"Your buddy match request has been {status.value.lower()}"
    if message:
        body += f": {message}"
    _notify_best_effort(
        db,
        user_id=match.sender_id,
        type=NotificationType.MATCH_RESPONSE,
        title=f"Match {status.value}",
        body=body,
        match_id=match.id,
    )

    return get_match(db, match.id)


# =============================================================================
# Administrative
# =============================================================================


def complete_match(db: Session, match_id: UUID) -> Match:
    """Mark an accepted match as completed (administrative, makes it eligible for feedback)."""
    match = db.get(Match, match_id)
    if not match:
        raise MatchNotFoundError()

    now = datetime.now(timezone.utc)
    result = db.execute(
        update(Match)
        .where(Match.id == match_id, Match.status == MatchStatus.ACCEPTED.value)
        .values(status=MatchStatus.COMPLETED.value, completed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise MatchStateError(f"Cannot complete match with status: {match.status}")

    db.commit()
    db.refresh(match)
    return match


# =============================================================================
# Notifications
# =============================================================================


def _notify_best_effort(
    db: Session,
    user_id: UUID,
    type: NotificationType,
    title: str,
    body: str,
    match_id: UUID,
) -> None:
    """Record a notification in its own transaction; failures are logged, not raised."""
    try:
        notification_service.create_notification(
            db=db,
            user_id=user_id,
            type=type,
            title=title,
            body=body,
            entity_type="match",
            entity_id=match_id,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            f"Failed to record {type.value} notification for user {user_id} (match {match_id})"
        )
