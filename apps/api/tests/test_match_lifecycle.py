"""Service-level tests for the match lifecycle: create, respond, complete."""

import logging
import uuid

import pytest
from sqlalchemy.exc import SQLAlchemyError

from buddymatch.db.enums import PEER_MATCH_TYPES, MatchStatus, MatchType, NotificationType, Role
from buddymatch.db.models import Match, Notification
from buddymatch.schemas.matches import MatchCreate
from buddymatch.services import capacity_service, match_service, notification_service
from buddymatch.services.match_service import NotRespondableReason


def _newcomer_match(receiver, newcomer=None, **kwargs) -> MatchCreate:
    return MatchCreate(
        receiver_id=receiver.id,
        type=MatchType.NEWCOMER_MATCH,
        newcomer_id=newcomer.id if newcomer else None,
        **kwargs,
    )


def _notifications_for(db, user) -> list[Notification]:
    return db.query(Notification).filter(Notification.user_id == user.id).all()


# =============================================================================
# Create: role and type rules
# =============================================================================


def test_hr_creates_pending_newcomer_match(db, hr_user, make_buddy, newcomer):
    buddy = make_buddy()

    match = match_service.create_match(
        db, hr_user.id, Role.HR, _newcomer_match(buddy, newcomer, message="  Welcome!  ")
    )

    assert match.status == MatchStatus.PENDING.value
    assert match.type == MatchType.NEWCOMER_MATCH.value
    assert match.sender_id == hr_user.id
    assert match.receiver_id == buddy.id
    assert match.newcomer_id == newcomer.id
    assert match.message == "Welcome!"
    assert match.responded_at is None


@pytest.mark.parametrize("match_type", sorted(PEER_MATCH_TYPES, key=lambda t: t.value))
def test_hr_cannot_create_peer_match(db, hr_user, make_buddy, match_type):
    buddy = make_buddy()
    data = MatchCreate(receiver_id=buddy.id, type=match_type)

    with pytest.raises(match_service.MatchTypeNotAllowedError) as exc:
        match_service.create_match(db, hr_user.id, Role.HR, data)

    assert exc.value.message == "HR can only create NEWCOMER_MATCH type matches"


def test_buddy_cannot_create_newcomer_match(db, make_buddy):
    sender = make_buddy(first_name="Bert")
    receiver = make_buddy(first_name="Rita")

    with pytest.raises(match_service.MatchPermissionError):
        match_service.create_match(db, sender.id, Role.BUDDY, _newcomer_match(receiver))


def test_buddy_cannot_attach_newcomer(db, make_buddy, newcomer):
    sender = make_buddy(first_name="Bert")
    receiver = make_buddy(first_name="Rita")
    data = MatchCreate(
        receiver_id=receiver.id,
        type=MatchType.OFFICE_CONNECTION,
        newcomer_id=newcomer.id,
    )

    with pytest.raises(match_service.NewcomerNotAllowedError) as exc:
        match_service.create_match(db, sender.id, Role.BUDDY, data)

    assert exc.value.message == "BUDDY cannot include newcomer_id"


@pytest.mark.parametrize(
    "role", [Role.NEWCOMER, Role.RELOCATED_EMPLOYEE, Role.EXISTING_EMPLOYEE]
)
def test_other_roles_cannot_create_matches(db, make_user, make_buddy, role):
    sender = make_user(role)
    buddy = make_buddy()
    data = MatchCreate(receiver_id=buddy.id, type=MatchType.OFFICE_CONNECTION)

    with pytest.raises(match_service.MatchPermissionError):
        match_service.create_match(db, sender.id, role, data)


# =============================================================================
# Create: validation order
# =============================================================================


def test_receiver_without_buddy_profile_is_rejected(db, hr_user, make_user, newcomer):
    not_a_buddy = make_user(Role.EXISTING_EMPLOYEE)

    with pytest.raises(match_service.ReceiverNotBuddyError):
        match_service.create_match(
            db, hr_user.id, Role.HR, _newcomer_match(not_a_buddy, newcomer)
        )


def test_unknown_receiver_is_rejected(db, hr_user):
    data = MatchCreate(receiver_id=uuid.uuid4(), type=MatchType.NEWCOMER_MATCH)

    with pytest.raises(match_service.ReceiverNotBuddyError) as exc:
        match_service.create_match(db, hr_user.id, Role.HR, data)

    assert exc.value.message == "Receiver must be a buddy"


def test_receiver_check_runs_before_newcomer_check(db, hr_user, make_user):
    not_a_buddy = make_user(Role.EXISTING_EMPLOYEE)
    data = MatchCreate(
        receiver_id=not_a_buddy.id,
        type=MatchType.NEWCOMER_MATCH,
        newcomer_id=uuid.uuid4(),
    )

    with pytest.raises(match_service.ReceiverNotBuddyError):
        match_service.create_match(db, hr_user.id, Role.HR, data)


def test_buddy_cannot_match_with_self(db, make_buddy):
    buddy = make_buddy()
    data = MatchCreate(receiver_id=buddy.id, type=MatchType.OFFICE_CONNECTION)

    with pytest.raises(match_service.SelfMatchError):
        match_service.create_match(db, buddy.id, Role.BUDDY, data)


def test_missing_newcomer_is_rejected(db, hr_user, make_buddy):
    buddy = make_buddy()
    data = MatchCreate(
        receiver_id=buddy.id, type=MatchType.NEWCOMER_MATCH, newcomer_id=uuid.uuid4()
    )

    with pytest.raises(match_service.NewcomerNotFoundError):
        match_service.create_match(db, hr_user.id, Role.HR, data)


def test_newcomer_must_have_newcomer_role(db, hr_user, make_buddy):
    buddy = make_buddy()
    other_buddy = make_buddy(first_name="Other")

    with pytest.raises(match_service.NotANewcomerError) as exc:
        match_service.create_match(
            db, hr_user.id, Role.HR, _newcomer_match(buddy, other_buddy)
        )

    assert exc.value.message == "Selected user is not a newcomer"


def test_full_buddy_rejects_new_requests(db, hr_user, make_user, make_buddy, make_match):
    buddy = make_buddy(max_buddies=1)
    make_match(make_user(Role.HR), buddy, MatchStatus.ACCEPTED)

    with pytest.raises(match_service.BuddyCapacityError) as exc:
        match_service.create_match(db, hr_user.id, Role.HR, _newcomer_match(buddy))

    assert exc.value.message == "Buddy has reached maximum capacity"


def test_capacity_check_runs_before_duplicate_check(
    db, hr_user, make_user, make_buddy, make_match
):
    buddy = make_buddy(max_buddies=1)
    make_match(hr_user, buddy, MatchStatus.PENDING)
    make_match(make_user(Role.HR), buddy, MatchStatus.ACCEPTED)

    with pytest.raises(match_service.BuddyCapacityError):
        match_service.create_match(db, hr_user.id, Role.HR, _newcomer_match(buddy))


def test_pending_requests_do_not_consume_capacity(db, make_user, make_buddy, make_match):
    buddy = make_buddy(max_buddies=1)
    make_match(make_user(Role.HR), buddy, MatchStatus.PENDING)
    sender = make_user(Role.HR)

    match = match_service.create_match(db, sender.id, Role.HR, _newcomer_match(buddy))

    assert match.status == MatchStatus.PENDING.value


# =============================================================================
# Create: duplicate pending guard
# =============================================================================


def test_duplicate_pending_match_is_rejected(db, hr_user, make_buddy):
    buddy = make_buddy()
    match_service.create_match(db, hr_user.id, Role.HR, _newcomer_match(buddy))

    with pytest.raises(match_service.DuplicatePendingMatchError) as exc:
        match_service.create_match(db, hr_user.id, Role.HR, _newcomer_match(buddy))

    assert exc.value.message == "Pending match already exists"
    assert db.query(Match).count() == 1


def test_duplicate_guard_is_scoped_to_sender(db, hr_user, make_user, make_buddy):
    buddy = make_buddy()
    other_hr = make_user(Role.HR)
    match_service.create_match(db, hr_user.id, Role.HR, _newcomer_match(buddy))

    match_service.create_match(db, other_hr.id, Role.HR, _newcomer_match(buddy))

    assert db.query(Match).count() == 2


def test_new_request_allowed_after_previous_was_answered(db, hr_user, make_buddy):
    buddy = make_buddy()
    first = match_service.create_match(db, hr_user.id, Role.HR, _newcomer_match(buddy))
    match_service.respond_to_match(db, first.id, buddy.id, MatchStatus.REJECTED)

    second = match_service.create_match(db, hr_user.id, Role.HR, _newcomer_match(buddy))

    assert second.id != first.id
    assert second.status == MatchStatus.PENDING.value


def test_unique_index_catches_racing_duplicate(db, hr_user, make_buddy, monkeypatch):
    buddy = make_buddy()
    match_service.create_match(db, hr_user.id, Role.HR, _newcomer_match(buddy))

    # Simulate a concurrent request that passed the pre-check
    monkeypatch.setattr(match_service, "get_pending_match", lambda *args: None)

    with pytest.raises(match_service.DuplicatePendingMatchError):
        match_service.create_match(db, hr_user.id, Role.HR, _newcomer_match(buddy))

    assert db.query(Match).count() == 1


# =============================================================================
# Create: notifications
# =============================================================================


def test_hr_request_notifies_receiver_with_newcomer_details(
    db, hr_user, make_buddy, newcomer
):
    buddy = make_buddy()

    match = match_service.create_match(
        db, hr_user.id, Role.HR, _newcomer_match(buddy, newcomer)
    )

    [notification] = _notifications_for(db, buddy)
    assert notification.type == NotificationType.MATCH_REQUEST.value
    assert notification.title == "New Buddy Match Request from HR"
    assert notification.body == (
        "You have been assigned as a buddy for Nora Tester (Engineering) - Backend Developer. "
        "This is a newcomer match request."
    )
    assert notification.entity_type == "match"
    assert notification.entity_id == match.id
    assert _notifications_for(db, hr_user) == []


def test_hr_request_without_newcomer_uses_generic_text(db, hr_user, make_buddy):
    buddy = make_buddy()

    match_service.create_match(db, hr_user.id, Role.HR, _newcomer_match(buddy))

    [notification] = _notifications_for(db, buddy)
    assert notification.title == "New Buddy Match Request"
    assert notification.body == "You have a new newcomer match request from HR"


def test_peer_request_notifies_receiver(db, make_buddy):
    sender = make_buddy(first_name="Bert")
    receiver = make_buddy(first_name="Rita")
    data = MatchCreate(receiver_id=receiver.id, type=MatchType.OFFICE_CONNECTION)

    match_service.create_match(db, sender.id, Role.BUDDY, data)

    [notification] = _notifications_for(db, receiver)
    assert notification.title == "New Buddy Connection Request"
    assert notification.body == "Bert Tester wants to connect with you for office connection."


def test_notification_failure_does_not_undo_create(
    db, hr_user, make_buddy, monkeypatch, caplog
):
    buddy = make_buddy()

    def _fail(*args, **kwargs):
        raise SQLAlchemyError("notifications table unavailable")

    monkeypatch.setattr(notification_service, "create_notification", _fail)

    with caplog.at_level(logging.ERROR, logger="buddymatch.services.match_service"):
        match = match_service.create_match(db, hr_user.id, Role.HR, _newcomer_match(buddy))

    assert match.status == MatchStatus.PENDING.value
    assert db.get(Match, match.id) is not None
    assert "Failed to record MATCH_REQUEST notification" in caplog.text


# =============================================================================
# Respond
# =============================================================================


def test_receiver_accepts_pending_match(db, hr_user, make_buddy, make_match):
    buddy = make_buddy()
    pending = make_match(hr_user, buddy)

    match = match_service.respond_to_match(
        db, pending.id, buddy.id, MatchStatus.ACCEPTED, message="See you Monday"
    )

    assert match.status == MatchStatus.ACCEPTED.value
    assert match.response_message == "See you Monday"
    assert match.responded_at is not None
    assert capacity_service.current_load(db, buddy.id) == 1

    [notification] = _notifications_for(db, hr_user)
    assert notification.type == NotificationType.MATCH_RESPONSE.value
    assert notification.title == "Match ACCEPTED"
    assert notification.body == "Your buddy match request has been accepted: See you Monday"


def test_receiver_rejects_pending_match(db, hr_user, make_buddy, make_match):
    buddy = make_buddy()
    pending = make_match(hr_user, buddy)

    match = match_service.respond_to_match(db, pending.id, buddy.id, MatchStatus.REJECTED)

    assert match.status == MatchStatus.REJECTED.value
    assert match.response_message is None
    assert capacity_service.current_load(db, buddy.id) == 0

    [notification] = _notifications_for(db, hr_user)
    assert notification.title == "Match REJECTED"
    assert notification.body == "Your buddy match request has been rejected"


def test_second_response_is_not_respondable(db, hr_user, make_buddy, make_match):
    buddy = make_buddy()
    pending = make_match(hr_user, buddy)
    match_service.respond_to_match(db, pending.id, buddy.id, MatchStatus.ACCEPTED)

    with pytest.raises(match_service.MatchNotRespondableError) as exc:
        match_service.respond_to_match(db, pending.id, buddy.id, MatchStatus.REJECTED)

    assert exc.value.reason == NotRespondableReason.ALREADY_RESPONDED
    assert exc.value.message == "Match not found or already responded"
    assert db.get(Match, pending.id).status == MatchStatus.ACCEPTED.value


def test_only_receiver_can_respond(db, hr_user, make_buddy, make_match):
    buddy = make_buddy()
    stranger = make_buddy(first_name="Stranger")
    pending = make_match(hr_user, buddy)

    with pytest.raises(match_service.MatchNotRespondableError) as exc:
        match_service.respond_to_match(db, pending.id, stranger.id, MatchStatus.ACCEPTED)

    assert exc.value.reason == NotRespondableReason.NOT_RECEIVER
    assert exc.value.message == "Match not found or already responded"
    assert db.get(Match, pending.id).status == MatchStatus.PENDING.value


def test_unknown_match_is_not_respondable(db, make_buddy):
    buddy = make_buddy()

    with pytest.raises(match_service.MatchNotRespondableError) as exc:
        match_service.respond_to_match(db, uuid.uuid4(), buddy.id, MatchStatus.ACCEPTED)

    assert exc.value.reason == NotRespondableReason.NOT_FOUND


def test_respond_rejects_non_response_status(db, hr_user, make_buddy, make_match):
    buddy = make_buddy()
    pending = make_match(hr_user, buddy)

    with pytest.raises(ValueError):
        match_service.respond_to_match(db, pending.id, buddy.id, MatchStatus.COMPLETED)


def test_accept_beyond_capacity_is_refused(db, hr_user, make_user, make_buddy, make_match):
    buddy = make_buddy(max_buddies=1)
    first = make_match(hr_user, buddy)
    second = make_match(make_user(Role.HR), buddy)
    match_service.respond_to_match(db, first.id, buddy.id, MatchStatus.ACCEPTED)

    with pytest.raises(match_service.BuddyCapacityError) as exc:
        match_service.respond_to_match(db, second.id, buddy.id, MatchStatus.ACCEPTED)

    assert exc.value.message == "Maximum buddy capacity reached"
    assert db.get(Match, second.id).status == MatchStatus.PENDING.value


def test_reject_allowed_when_buddy_is_full(db, hr_user, make_user, make_buddy, make_match):
    buddy = make_buddy(max_buddies=1)
    make_match(make_user(Role.HR), buddy, MatchStatus.ACCEPTED)
    pending = make_match(hr_user, buddy)

    match = match_service.respond_to_match(db, pending.id, buddy.id, MatchStatus.REJECTED)

    assert match.status == MatchStatus.REJECTED.value


def test_conditional_update_guards_racing_accepts(
    db, hr_user, make_user, make_buddy, make_match, monkeypatch
):
    buddy = make_buddy(max_buddies=1)
    first = make_match(hr_user, buddy)
    second = make_match(make_user(Role.HR), buddy)
    match_service.respond_to_match(db, first.id, buddy.id, MatchStatus.ACCEPTED)

    # A stale read of the load lets the second accept past the pre-check
    monkeypatch.setattr(capacity_service, "current_load", lambda db, user_id: 0)

    with pytest.raises(match_service.BuddyCapacityError):
        match_service.respond_to_match(db, second.id, buddy.id, MatchStatus.ACCEPTED)

    assert db.get(Match, second.id).status == MatchStatus.PENDING.value
    monkeypatch.undo()
    assert capacity_service.current_load(db, buddy.id) == 1


def test_response_notification_failure_is_logged(
    db, hr_user, make_buddy, make_match, monkeypatch, caplog
):
    buddy = make_buddy()
    pending = make_match(hr_user, buddy)

    def _fail(*args, **kwargs):
        raise SQLAlchemyError("notifications table unavailable")

    monkeypatch.setattr(notification_service, "create_notification", _fail)

    with caplog.at_level(logging.ERROR, logger="buddymatch.services.match_service"):
        match = match_service.respond_to_match(db, pending.id, buddy.id, MatchStatus.ACCEPTED)

    assert match.status == MatchStatus.ACCEPTED.value
    assert "Failed to record MATCH_RESPONSE notification" in caplog.text


# =============================================================================
# Complete
# =============================================================================


def test_complete_accepted_match(db, hr_user, make_buddy, make_match):
    buddy = make_buddy()
    accepted = make_match(hr_user, buddy, MatchStatus.ACCEPTED)

    match = match_service.complete_match(db, accepted.id)

    assert match.status == MatchStatus.COMPLETED.value
    assert match.completed_at is not None
    # Completed matches free up capacity
    assert capacity_service.current_load(db, buddy.id) == 0


def test_complete_requires_accepted_status(db, hr_user, make_buddy, make_match):
    buddy = make_buddy()
    pending = make_match(hr_user, buddy)

    with pytest.raises(match_service.MatchStateError):
        match_service.complete_match(db, pending.id)

    assert db.get(Match, pending.id).status == MatchStatus.PENDING.value


def test_complete_unknown_match(db):
    with pytest.raises(match_service.MatchNotFoundError):
        match_service.complete_match(db, uuid.uuid4())


# =============================================================================
# Queries
# =============================================================================


def test_list_matches_for_user_filters(db, hr_user, make_buddy, make_match):
    buddy = make_buddy()
    peer = make_buddy(first_name="Peer")
    make_match(hr_user, buddy, MatchStatus.ACCEPTED)
    make_match(peer, buddy, MatchStatus.PENDING, type=MatchType.OFFICE_CONNECTION)
    make_match(hr_user, peer, MatchStatus.PENDING)

    assert len(match_service.list_matches_for_user(db, buddy.id)) == 2
    pending = match_service.list_matches_for_user(db, buddy.id, status_filter=MatchStatus.PENDING)
    assert [m.sender_id for m in pending] == [peer.id]
    office = match_service.list_matches_for_user(
        db, peer.id, type_filter=MatchType.OFFICE_CONNECTION
    )
    assert [m.receiver_id for m in office] == [buddy.id]


def test_get_match_for_participant(db, hr_user, make_buddy, make_match):
    buddy = make_buddy()
    stranger = make_buddy(first_name="Stranger")
    match = make_match(hr_user, buddy)

    assert match_service.get_match_for_participant(db, match.id, hr_user.id) is not None
    assert match_service.get_match_for_participant(db, match.id, buddy.id) is not None
    assert match_service.get_match_for_participant(db, match.id, stranger.id) is None


def test_match_stats_counts_every_status(db, hr_user, make_user, make_buddy, make_match):
    buddy = make_buddy()
    make_match(hr_user, buddy, MatchStatus.PENDING)
    make_match(make_user(Role.HR), buddy, MatchStatus.ACCEPTED)
    make_match(hr_user, buddy, MatchStatus.REJECTED)

    total, counts = match_service.get_match_stats(db)

    assert total == 3
    assert counts == {"PENDING": 1, "ACCEPTED": 1, "REJECTED": 1, "COMPLETED": 0}
