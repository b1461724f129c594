"""
Workspace Notification Models
Per-workspace Slack / Chatwork / SMS channel settings
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from .database import Base


class WorkspaceNotificationSettings(Base):
    """Channels notified when invitees request new slots or book an open slot"""

    __tablename__ = "workspace_notification_settings"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(String(64), nullable=False, unique=True, index=True)

    # Slack incoming webhook (encrypted)
    slack_enabled = Column(Boolean, default=False, nullable=False)
    slack_webhook_url = Column(Text, nullable=True)

    # Chatwork room message (token encrypted)
    chatwork_enabled = Column(Boolean, default=False, nullable=False)
    chatwork_api_token = Column(Text, nullable=True)
    chatwork_room_id = Column(String(64), nullable=True)

    # SMS via Twilio, E.164
    sms_enabled = Column(Boolean, default=False, nullable=False)
    sms_to_phone = Column(String(20), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
