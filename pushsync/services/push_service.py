"""
Web Push delivery service.

Uses pywebpush to send push notifications to a user's registered devices.
Registrations the push service reports as gone (HTTP 404/410) are deleted;
other failures are counted and the device is deactivated once the count
reaches PUSH_MAX_FAILURES.
"""

import json
import logging
from datetime import datetime, timezone

from pywebpush import WebPushException, webpush
from sqlalchemy.orm import Session

from pushsync.config import settings
from pushsync.models.notification import Notification
from pushsync.models.push_subscription import PushSubscription

logger = logging.getLogger(__name__)

_GONE = (404, 410)


def is_configured() -> bool:
    return bool(settings.VAPID_PRIVATE_KEY and settings.VAPID_PUBLIC_KEY)


def build_payload(notification: Notification) -> str:
    data = {
        "notificationId": notification.id,
        "kind": notification.kind,
        "actionUrl": notification.action_url,
        "priority": notification.priority,
    }
    if notification.data:
        data.update(notification.data)
    return json.dumps(
        {
            "title": notification.title,
            "body": notification.body,
            "tag": f"notification-{notification.id}",
            "data": data,
        }
    )


def send_push_to_user(*, user_id: int, notification: Notification, db: Session) -> int:
    """Push ``notification`` to every active device of a user.

    Returns the number of devices that accepted the message. Silently skips
    (returns 0) if VAPID keys are not configured.
    """
    if not is_configured():
        logger.debug("VAPID keys not configured, skipping web push for user %s", user_id)
        return 0

    subscriptions = db.query(PushSubscription).filter_by(user_id=user_id, is_active=True).all()
    if not subscriptions:
        return 0

    payload = build_payload(notification)
    urgency = "high" if notification.priority == "urgent" else "normal"
    sent = 0

    for sub in subscriptions:
        try:
            webpush(
                subscription_info=sub.subscription_info(),
                data=payload,
                vapid_private_key=settings.VAPID_PRIVATE_KEY,
                vapid_claims={"sub": settings.VAPID_CLAIMS_EMAIL},
                ttl=settings.PUSH_TTL_SECONDS,
                headers={"Urgency": urgency},
            )
        except WebPushException as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            if status_code in _GONE:
                logger.info("Removing expired push subscription %s for user %s", sub.id, user_id)
                db.delete(sub)
            else:
                _record_failure(sub)
                logger.warning("Push delivery failed for subscription %s (%s): %s", sub.id, status_code, exc)
            continue
        except Exception as exc:
            _record_failure(sub)
            logger.warning("Unexpected push error for subscription %s: %s", sub.id, exc)
            continue

        sub.last_used_at = datetime.now(timezone.utc)
        sub.failure_count = 0
        sent += 1

    db.commit()
    return sent


def _record_failure(sub: PushSubscription) -> None:
    sub.failure_count = (sub.failure_count or 0) + 1
    sub.last_failure_at = datetime.now(timezone.utc)
    if sub.failure_count >= settings.PUSH_MAX_FAILURES:
        logger.info("Deactivating push subscription %s after %s failures", sub.id, sub.failure_count)
        sub.is_active = False
