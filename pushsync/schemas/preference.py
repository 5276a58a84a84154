from datetime import time
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from pushsync.core.events import (
    CHANNEL_PREFERENCE_FIELD,
    KIND_PREFERENCE_FIELD,
    DeliveryChannel,
    NotificationKind,
)

_camel = {"alias_generator": to_camel, "populate_by_name": True}

EmailDigest = Literal["none", "daily", "weekly"]


class NotificationPreference(BaseModel):
    """Flat record of delivery switches for one user.

    ``enable_notifications`` is the master switch: while it is off every other
    switch is inert, but their values are kept so re-enabling restores them.
    """

    # Master controls
    enable_notifications: bool = True
    enable_web_push: bool = True
    enable_email: bool = True
    enable_whatsapp: bool = False

    # Finance
    bill_reminders: bool = True
    bill_reminder_days: list[int] = [7, 3, 1]
    budget_alerts: bool = True
    budget_threshold: int = Field(80, ge=1, le=100)

    # Social
    post_published: bool = True
    post_failed: bool = True

    # Work / projects
    project_deadlines: bool = True
    deadline_reminder_days: list[int] = [7, 2]
    task_reminders: bool = True

    # Goals
    goal_progress: bool = True
    milestone_reminders: bool = True

    # System
    system_updates: bool = True
    security_alerts: bool = True

    # Scheduling
    quiet_hours_enabled: bool = False
    quiet_hours_start: time = time(22, 0)
    quiet_hours_end: time = time(7, 0)
    timezone: str = Field("Asia/Jakarta", max_length=50)

    # Email digest
    email_digest: EmailDigest = "daily"
    email_digest_time: time = time(8, 0)

    model_config = {**_camel, "from_attributes": True}

    def allows(self, kind: NotificationKind | str, channel: DeliveryChannel | str | None = None) -> bool:
        """Would a notification of ``kind`` be delivered (over ``channel``)?"""
        if not self.enable_notifications:
            return False
        field = KIND_PREFERENCE_FIELD[NotificationKind(kind)]
        if field is not None and not getattr(self, field):
            return False
        if channel is not None:
            return bool(getattr(self, CHANNEL_PREFERENCE_FIELD[DeliveryChannel(channel)]))
        return True


class PreferencePatch(BaseModel):
    """Partial update. Unknown fields are rejected rather than ignored."""

    enable_notifications: bool | None = None
    enable_web_push: bool | None = None
    enable_email: bool | None = None
    enable_whatsapp: bool | None = None
    bill_reminders: bool | None = None
    bill_reminder_days: list[int] | None = None
    budget_alerts: bool | None = None
    budget_threshold: int | None = Field(None, ge=1, le=100)
    post_published: bool | None = None
    post_failed: bool | None = None
    project_deadlines: bool | None = None
    deadline_reminder_days: list[int] | None = None
    task_reminders: bool | None = None
    goal_progress: bool | None = None
    milestone_reminders: bool | None = None
    system_updates: bool | None = None
    security_alerts: bool | None = None
    quiet_hours_enabled: bool | None = None
    quiet_hours_start: time | None = None
    quiet_hours_end: time | None = None
    timezone: str | None = Field(None, max_length=50)
    email_digest: EmailDigest | None = None
    email_digest_time: time | None = None

    model_config = {**_camel, "extra": "forbid"}

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually sent, keyed by attribute name."""
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}

    def to_wire(self) -> dict[str, Any]:
        dumped = self.model_dump(exclude_unset=True, by_alias=True, mode="json")
        return {k: v for k, v in dumped.items() if v is not None}
