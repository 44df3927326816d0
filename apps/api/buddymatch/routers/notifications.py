"""
Notifications Router - /me/notifications endpoints.

Notifications are recorded by match transitions; this router only lists
them and tracks read status.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from buddymatch.core.deps import get_current_session, get_db, require_csrf_header
from buddymatch.db.models import Notification
from buddymatch.schemas.auth import UserSession
from buddymatch.services import notification_service


router = APIRouter(prefix="/me", tags=["Notifications"])


# =============================================================================
# Schemas
# =============================================================================


class NotificationRead(BaseModel):
    """Notification response."""
    id: str
    type: str
    title: str
    body: str | None
    entity_type: str | None
    entity_id: str | None
    read_at: str | None
    created_at: str


class NotificationListResponse(BaseModel):
    """Paginated notification list."""
    items: list[NotificationRead]
    unread_count: int


class UnreadCountResponse(BaseModel):
    """Unread count only (for polling)."""
    count: int


def _to_read(n: Notification) -> NotificationRead:
    return NotificationRead(
        id=str(n.id),
        type=n.type,
        title=n.title,
        body=n.body,
        entity_type=n.entity_type,
        entity_id=str(n.entity_id) if n.entity_id else None,
        read_at=n.read_at.isoformat() if n.read_at else None,
        created_at=n.created_at.isoformat(),
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Get user's notifications, newest first."""
    notifications = notification_service.get_notifications(
        db=db,
        user_id=session.user_id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    unread_count = notification_service.get_unread_count(db=db, user_id=session.user_id)

    return NotificationListResponse(
        items=[_to_read(n) for n in notifications],
        unread_count=unread_count,
    )


@router.get("/notifications/count", response_model=UnreadCountResponse)
def get_unread_count(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Get unread notification count (for polling)."""
    count = notification_service.get_unread_count(db=db, user_id=session.user_id)
    return UnreadCountResponse(count=count)


@router.patch(
    "/notifications/{notification_id}/read",
    response_model=NotificationRead,
    dependencies=[Depends(require_csrf_header)],
)
def mark_notification_read(
    notification_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Mark a notification as read."""
    notification = notification_service.mark_read(
        db=db,
        notification_id=notification_id,
        user_id=session.user_id,
    )

    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")

    return _to_read(notification)


@router.post(
    "/notifications/read-all",
    dependencies=[Depends(require_csrf_header)],
)
def mark_all_read(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Mark all notifications as read."""
    count = notification_service.mark_all_read(db=db, user_id=session.user_id)
    return {"marked_read": count}
