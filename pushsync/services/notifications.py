"""
Notification send path for the registry service.

send() is the single entry point upstream producers (and the diagnostic
/notifications/test endpoint) use. It consults the user's preferences,
stores the notification, then fans out to web push and email. Channel
failures never propagate: a dead mail server or push service must not stop
the notification from being recorded.
"""

import logging
import smtplib
from datetime import datetime, time, timezone
from email.mime.text import MIMEText
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from pushsync.config import settings
from pushsync.core.events import DeliveryChannel, NotificationKind, NotificationPriority
from pushsync.models.notification import Notification
from pushsync.models.notification_preference import NotificationPreference
from pushsync.models.user import User
from pushsync.schemas.preference import NotificationPreference as PreferenceSnapshot
from pushsync.services import push_service

logger = logging.getLogger(__name__)


def get_or_create_preferences(user_id: int, db: Session) -> NotificationPreference:
    """Preferences are created lazily with defaults on first access."""
    prefs = db.query(NotificationPreference).filter_by(user_id=user_id).first()
    if prefs is None:
        prefs = NotificationPreference(user_id=user_id)
        db.add(prefs)
        db.commit()
        db.refresh(prefs)
    return prefs


def is_quiet_hours(prefs: PreferenceSnapshot, now: datetime | None = None) -> bool:
    """True when ``now`` falls inside the user's quiet window, in their timezone.

    Windows that wrap midnight (22:00 - 07:00) are supported. Both ends are
    inclusive.
    """
    if not prefs.quiet_hours_enabled:
        return False

    try:
        tz = ZoneInfo(prefs.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r in preferences, using UTC", prefs.timezone)
        tz = timezone.utc

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(tz)
    current = time(local.hour, local.minute)
    start = time(prefs.quiet_hours_start.hour, prefs.quiet_hours_start.minute)
    end = time(prefs.quiet_hours_end.hour, prefs.quiet_hours_end.minute)

    if start > end:
        return current >= start or current <= end
    return start <= current <= end


def send(
    *,
    user: User,
    kind: NotificationKind,
    title: str,
    body: str,
    db: Session,
    priority: NotificationPriority = NotificationPriority.NORMAL,
    action_url: str | None = None,
    data: dict | None = None,
    skip_push: bool = False,
    skip_email: bool = False,
    now: datetime | None = None,
) -> Notification | None:
    """Record a notification for ``user`` and deliver it over enabled channels.

    Returns None when the master switch or the kind's category switch is off:
    nothing is stored in that case.
    """
    kind = NotificationKind(kind)
    prefs = PreferenceSnapshot.model_validate(get_or_create_preferences(user.id, db))

    if not prefs.allows(kind):
        logger.info("Notification %s suppressed for user %s by preferences", kind.value, user.id)
        return None

    if is_quiet_hours(prefs, now):
        # Stored, but no push during quiet hours
        skip_push = True

    notification = Notification(
        user_id=user.id,
        kind=kind.value,
        title=title,
        body=body,
        data=data,
        priority=NotificationPriority(priority).value,
        action_url=action_url,
    )
    if now is not None:
        notification.created_at = now
    db.add(notification)
    db.commit()
    db.refresh(notification)

    if not skip_push and prefs.allows(kind, DeliveryChannel.PUSH):
        notification.sent_via_web_push = push_service.send_push_to_user(
            user_id=user.id, notification=notification, db=db
        ) > 0

    if not skip_email and prefs.allows(kind, DeliveryChannel.EMAIL):
        notification.sent_via_email = send_email(user.email, notification)

    db.commit()
    db.refresh(notification)
    return notification


def send_email(email: str, notification: Notification) -> bool:
    """Deliver a plain-text copy of ``notification``. False when SMTP is off or fails."""
    if not settings.SMTP_HOST:
        return False

    text = notification.body
    if notification.action_url:
        text = f"{text}\n\n{notification.action_url}"
    msg = MIMEText(text)
    msg["Subject"] = notification.title
    msg["From"] = settings.SMTP_FROM_EMAIL
    msg["To"] = email

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as smtp:
            if settings.SMTP_TLS:
                smtp.starttls()
            if settings.SMTP_USERNAME:
                smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            smtp.send_message(msg)
    except Exception as exc:
        logger.warning("Failed to send notification email to %s: %s", email, exc)
        return False

    logger.info("Notification %s emailed to %s", notification.id, email)
    return True
