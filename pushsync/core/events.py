# Closed vocabularies shared by the registry service and the client core.
# Values are the wire strings; keep them stable.

from enum import Enum


class NotificationKind(str, Enum):
    BILL_REMINDER = "bill_reminder"
    BUDGET_ALERT = "budget_alert"
    POST_PUBLISHED = "post_published"
    POST_SCHEDULED = "post_scheduled"
    POST_FAILED = "post_failed"
    PROJECT_DEADLINE = "project_deadline"
    TASK_REMINDER = "task_reminder"
    GOAL_PROGRESS = "goal_progress"
    MILESTONE_REMINDER = "milestone_reminder"
    SECURITY_ALERT = "security_alert"
    SYSTEM = "system"
    CUSTOM = "custom"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class DeliveryChannel(str, Enum):
    PUSH = "push"
    EMAIL = "email"
    WHATSAPP = "whatsapp"


class PermissionState(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class SubscriptionState(str, Enum):
    UNSUPPORTED = "unsupported"
    IDLE = "idle"
    CHECKING = "checking"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBING = "unsubscribing"
    ERROR = "error"


# Preference switch gating each kind. None means only the master switch applies.
KIND_PREFERENCE_FIELD: dict[NotificationKind, str | None] = {
    NotificationKind.BILL_REMINDER: "bill_reminders",
    NotificationKind.BUDGET_ALERT: "budget_alerts",
    NotificationKind.POST_PUBLISHED: "post_published",
    NotificationKind.POST_SCHEDULED: "post_published",
    NotificationKind.POST_FAILED: "post_failed",
    NotificationKind.PROJECT_DEADLINE: "project_deadlines",
    NotificationKind.TASK_REMINDER: "task_reminders",
    NotificationKind.GOAL_PROGRESS: "goal_progress",
    NotificationKind.MILESTONE_REMINDER: "milestone_reminders",
    NotificationKind.SECURITY_ALERT: "security_alerts",
    NotificationKind.SYSTEM: "system_updates",
    NotificationKind.CUSTOM: None,
}

CHANNEL_PREFERENCE_FIELD: dict[DeliveryChannel, str] = {
    DeliveryChannel.PUSH: "enable_web_push",
    DeliveryChannel.EMAIL: "enable_email",
    DeliveryChannel.WHATSAPP: "enable_whatsapp",
}
