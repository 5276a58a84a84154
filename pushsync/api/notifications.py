"""
Notification feed and delivery preferences.

GET    /notifications                  - newest-first page of the user's notifications
GET    /notifications/unread-count     - number of unread notifications
POST   /notifications/{id}/read        - mark one notification read
POST   /notifications/read-all         - mark every notification read
DELETE /notifications/{id}             - delete one notification
GET    /notifications/preferences      - preference record (created with defaults)
PATCH  /notifications/preferences      - partial update, last write wins
POST   /notifications/test             - send a synthetic notification end to end
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from pushsync.api.deps import get_current_user
from pushsync.core.events import NotificationKind, NotificationPriority
from pushsync.database import get_db
from pushsync.models.notification import Notification
from pushsync.models.user import User
from pushsync.schemas.notification import NotificationPage, NotificationRecord, UnreadCount
from pushsync.schemas.preference import NotificationPreference, PreferencePatch
from pushsync.services import notifications as notification_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _unread_count(user_id: int, db: Session) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        .count()
    )


def _get_own_notification(notification_id: int, user_id: int, db: Session) -> Notification:
    notification = db.query(Notification).filter_by(id=notification_id, user_id=user_id).first()
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------


@router.get("", response_model=NotificationPage)
async def list_notifications(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    kind: NotificationKind | None = Query(default=None, alias="type"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationPage:
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712
    if kind is not None:
        query = query.filter(Notification.kind == kind.value)

    total = query.count()
    rows = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return NotificationPage(
        notifications=[NotificationRecord.model_validate(r) for r in rows],
        total=total,
        unread_count=_unread_count(current_user.id, db),
    )


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UnreadCount:
    return UnreadCount(count=_unread_count(current_user.id, db))


@router.post("/read-all")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == current_user.id, Notification.is_read == False)  # noqa: E712
        .update({"is_read": True, "read_at": datetime.now(timezone.utc)}, synchronize_session=False)
    )
    db.commit()
    return {"status": "read", "updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationRecord)
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationRecord:
    notification = _get_own_notification(notification_id, current_user.id, db)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(notification)
    return NotificationRecord.model_validate(notification)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    notification = _get_own_notification(notification_id, current_user.id, db)
    db.delete(notification)
    db.commit()
    return {"status": "deleted"}


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


@router.get("/preferences", response_model=NotificationPreference)
async def get_preferences(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationPreference:
    prefs = notification_service.get_or_create_preferences(current_user.id, db)
    return NotificationPreference.model_validate(prefs)


@router.patch("/preferences", response_model=NotificationPreference)
async def update_preferences(
    patch: PreferencePatch,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    client_sequence: int | None = Header(default=None, alias="X-Client-Sequence"),
) -> NotificationPreference:
    """Apply only the fields present in the body. Requests are applied in arrival order."""
    prefs = notification_service.get_or_create_preferences(current_user.id, db)
    changes = patch.changes()
    for field, value in changes.items():
        setattr(prefs, field, value)
    db.commit()
    db.refresh(prefs)
    logger.debug(
        "Preferences updated for user %s (seq=%s): %s",
        current_user.id,
        client_sequence,
        sorted(changes),
    )
    return NotificationPreference.model_validate(prefs)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


@router.post("/test")
async def send_test_notification(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Send a synthetic system notification through the normal delivery path."""
    notification = notification_service.send(
        user=current_user,
        kind=NotificationKind.SYSTEM,
        title="Test Notification",
        body="If you can see this, push notifications are working.",
        priority=NotificationPriority.NORMAL,
        action_url="/notifications",
        db=db,
    )
    if notification is None:
        return {"status": "suppressed", "notification": None}
    return {
        "status": "sent",
        "notification": NotificationRecord.model_validate(notification).model_dump(by_alias=True, mode="json"),
        "sentViaWebPush": notification.sent_via_web_push,
        "sentViaEmail": notification.sent_via_email,
    }
