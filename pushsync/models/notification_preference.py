import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Time
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pushsync.database import Base


class NotificationPreference(Base):
    """One row per user. Defaults mirror pushsync.schemas.preference."""

    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    # Master switch: while off, the switches below are inert but kept
    enable_notifications = Column(Boolean, nullable=False, default=True)
    enable_web_push = Column(Boolean, nullable=False, default=True)
    enable_email = Column(Boolean, nullable=False, default=True)
    enable_whatsapp = Column(Boolean, nullable=False, default=False)

    bill_reminders = Column(Boolean, nullable=False, default=True)
    bill_reminder_days = Column(JSON, nullable=False, default=lambda: [7, 3, 1])
    budget_alerts = Column(Boolean, nullable=False, default=True)
    budget_threshold = Column(Integer, nullable=False, default=80)

    post_published = Column(Boolean, nullable=False, default=True)
    post_failed = Column(Boolean, nullable=False, default=True)

    project_deadlines = Column(Boolean, nullable=False, default=True)
    deadline_reminder_days = Column(JSON, nullable=False, default=lambda: [7, 2])
    task_reminders = Column(Boolean, nullable=False, default=True)

    goal_progress = Column(Boolean, nullable=False, default=True)
    milestone_reminders = Column(Boolean, nullable=False, default=True)

    system_updates = Column(Boolean, nullable=False, default=True)
    security_alerts = Column(Boolean, nullable=False, default=True)

    quiet_hours_enabled = Column(Boolean, nullable=False, default=False)
    quiet_hours_start = Column(Time, nullable=False, default=datetime.time(22, 0))
    quiet_hours_end = Column(Time, nullable=False, default=datetime.time(7, 0))
    timezone = Column(String(50), nullable=False, default="Asia/Jakarta")

    email_digest = Column(String(16), nullable=False, default="daily")
    email_digest_time = Column(Time, nullable=False, default=datetime.time(8, 0))

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="notification_preference")
