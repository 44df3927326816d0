"""Capacity ledger - live buddy load and utilization.

Load is always counted from accepted matches; nothing here is cached or
stored, so the numbers cannot drift from the match table.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, aliased

from buddymatch.db.enums import MatchStatus
from buddymatch.db.models import BuddyProfile, Match


class CapacityError(Exception):
    """Base exception for capacity ledger errors."""

    pass


class BuddyProfileNotFoundError(CapacityError):
    """User has no buddy profile."""

    pass


class InvalidCapacityError(CapacityError):
    """Buddy profile has a non-positive max_buddies."""

    pass


def accepted_count_subquery(receiver_id):
    """
    Scalar subquery counting accepted matches for a receiver.

    Aliased so it stays uncorrelated when embedded in an UPDATE of matches.
    """
    counted = aliased(Match)
    return (
        select(func.count(counted.id))
        .where(
            counted.receiver_id == receiver_id,
            counted.status == MatchStatus.ACCEPTED.value,
        )
        .scalar_subquery()
    )


def current_load(db: Session, buddy_user_id: UUID) -> int:
    """Number of accepted matches where the buddy is the receiver."""
    return (
        db.query(func.count(Match.id))
        .filter(
            Match.receiver_id == buddy_user_id,
            Match.status == MatchStatus.ACCEPTED.value,
        )
        .scalar()
        or 0
    )


def current_loads(db: Session, buddy_user_ids: set[UUID]) -> dict[UUID, int]:
    """Batch accepted-match counts, one grouped query. Missing ids count as 0."""
    if not buddy_user_ids:
        return {}
    rows = (
        db.query(Match.receiver_id, func.count(Match.id))
        .filter(
            Match.receiver_id.in_(buddy_user_ids),
            Match.status == MatchStatus.ACCEPTED.value,
        )
        .group_by(Match.receiver_id)
        .all()
    )
    loads = {user_id: 0 for user_id in buddy_user_ids}
    for receiver_id, count in rows:
        loads[receiver_id] = count
    return loads


def compute_utilization(accepted_count: int, max_buddies: int) -> float:
    """
    Percentage of capacity in use, rounded to two decimals.

    Not clamped: lowering max_buddies below the accepted count yields > 100.
    """
    if max_buddies <= 0:
        raise InvalidCapacityError(f"max_buddies must be positive, got {max_buddies}")
    return round(accepted_count / max_buddies * 100, 2)


def has_capacity(accepted_count: int, max_buddies: int) -> bool:
    return accepted_count < max_buddies


def utilization(db: Session, buddy_user_id: UUID) -> float:
    """Live utilization for a buddy; raises if the user has no buddy profile."""
    profile = db.query(BuddyProfile).filter(BuddyProfile.user_id == buddy_user_id).first()
    if not profile:
        raise BuddyProfileNotFoundError(str(buddy_user_id))
    return compute_utilization(current_load(db, buddy_user_id), profile.max_buddies)
