from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field
from pydantic.alias_generators import to_camel

from pushsync.core.events import NotificationKind, NotificationPriority

_camel = {"alias_generator": to_camel, "populate_by_name": True}


class NotificationRecord(BaseModel):
    id: int
    # Older registries call these "type" and "message"
    kind: NotificationKind = Field(validation_alias=AliasChoices("kind", "type"))
    title: str
    body: str = Field("", validation_alias=AliasChoices("body", "message"))
    is_read: bool = Field(False, validation_alias=AliasChoices("isRead", "is_read"))
    created_at: datetime = Field(validation_alias=AliasChoices("createdAt", "created_at"))
    priority: NotificationPriority = NotificationPriority.NORMAL
    action_url: str | None = Field(None, validation_alias=AliasChoices("actionUrl", "action_url"))
    data: dict[str, Any] | None = None
    read_at: datetime | None = Field(None, validation_alias=AliasChoices("readAt", "read_at"))

    model_config = {**_camel, "from_attributes": True}


class NotificationPage(BaseModel):
    notifications: list[NotificationRecord] = []
    total: int = 0
    unread_count: int = Field(0, validation_alias=AliasChoices("unreadCount", "unread_count"))

    model_config = _camel


class UnreadCount(BaseModel):
    count: int
