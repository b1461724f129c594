"""
Workspace Notification Service
Fans scheduling events out to the workspace's Slack / Chatwork / SMS channels

Targets are resolved inside the request (while the session is open); the
delivery itself runs as a FastAPI background task and never raises.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from ..domain.notifications.repository import NotificationSettingsRepository
from ..security_utils import decrypt_secret
from .chatwork_client import build_chatwork_body, send_chatwork_message
from .slack_client import build_slack_payload, send_slack_webhook
from .sms_client import send_sms, sms_configured

logger = logging.getLogger(__name__)

EVENT_ADDITIONAL_SLOTS = "additional_slots"
EVENT_OPEN_SLOTS_CREATED = "open_slots_created"
EVENT_OPEN_SLOT_BOOKED = "open_slot_booked"


@dataclass
class NotificationEvent:
    event_type: str
    title: str
    lines: list[str] = field(default_factory=list)
    link_url: Optional[str] = None


@dataclass
class NotificationTargets:
    slack_webhook_url: Optional[str] = None
    chatwork_api_token: Optional[str] = None
    chatwork_room_id: Optional[str] = None
    sms_to_phone: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.slack_webhook_url or self.chatwork_room_id or self.sms_to_phone)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = NotificationSettingsRepository()

    def collect_targets(self, workspace_id: str) -> NotificationTargets:
        """Decrypt the enabled channels of a workspace"""
        settings = self.repo.get_by_workspace(self.db, workspace_id)
        targets = NotificationTargets()
        if not settings:
            return targets

        if settings.slack_enabled and settings.slack_webhook_url:
            targets.slack_webhook_url = decrypt_secret(settings.slack_webhook_url)

        if settings.chatwork_enabled and settings.chatwork_api_token and settings.chatwork_room_id:
            token = decrypt_secret(settings.chatwork_api_token)
            if token:
                targets.chatwork_api_token = token
                targets.chatwork_room_id = settings.chatwork_room_id

        if settings.sms_enabled and settings.sms_to_phone:
            if sms_configured():
                targets.sms_to_phone = settings.sms_to_phone
            else:
                logger.debug(f"SMS enabled for workspace {workspace_id} but Twilio is not configured")

        return targets

    def schedule(self, background_tasks: BackgroundTasks, workspace_id: str, event: NotificationEvent) -> bool:
        """Queue delivery of event after the response is sent"""
        targets = self.collect_targets(workspace_id)
        if targets.is_empty():
            logger.debug(f"No notification channels enabled for workspace {workspace_id}")
            return False
        background_tasks.add_task(dispatch_event, targets, event)
        return True


async def dispatch_event(targets: NotificationTargets, event: NotificationEvent) -> dict:
    """Send event to every target; each channel is isolated from the others"""
    result = {"slack_sent": False, "chatwork_sent": False, "sms_sent": False}

    if targets.slack_webhook_url:
        try:
            payload = build_slack_payload(event.title, event.lines, event.link_url)
            sent = await send_slack_webhook(targets.slack_webhook_url, payload)
            result["slack_sent"] = sent.success
        except Exception as e:
            logger.error(f"❌ Failed to send {event.event_type} Slack notification: {e}")

    if targets.chatwork_api_token and targets.chatwork_room_id:
        try:
            body = build_chatwork_body(event.title, event.lines, event.link_url)
            sent = await send_chatwork_message(targets.chatwork_api_token, targets.chatwork_room_id, body)
            result["chatwork_sent"] = sent.success
        except Exception as e:
            logger.error(f"❌ Failed to send {event.event_type} Chatwork notification: {e}")

    if targets.sms_to_phone:
        try:
            text = event.title if not event.link_url else f"{event.title}\n{event.link_url}"
            sent = await send_sms(targets.sms_to_phone, text)
            result["sms_sent"] = sent.success
        except Exception as e:
            logger.error(f"❌ Failed to send {event.event_type} SMS notification: {e}")

    logger.info(f"📣 {event.event_type} notification dispatched: {result}")
    return result
