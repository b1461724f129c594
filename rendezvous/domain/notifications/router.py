"""Workspace notification settings endpoints"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...models_notifications import WorkspaceNotificationSettings
from ...security_utils import decrypt_secret, encrypt_secret, mask_sensitive_data
from ...tenant import Tenant, get_tenant
from .repository import NotificationSettingsRepository
from .schemas import NotificationSettingsResponse, NotificationSettingsUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspace/notifications", tags=["Notifications"])


def _to_response(workspace_id: str, settings: WorkspaceNotificationSettings = None) -> NotificationSettingsResponse:
    if settings is None:
        return NotificationSettingsResponse(workspace_id=workspace_id)
    return NotificationSettingsResponse(
        workspace_id=workspace_id,
        slack_enabled=settings.slack_enabled,
        slack_webhook_url_masked=mask_sensitive_data(decrypt_secret(settings.slack_webhook_url), 6),
        chatwork_enabled=settings.chatwork_enabled,
        chatwork_api_token_masked=mask_sensitive_data(decrypt_secret(settings.chatwork_api_token)),
        chatwork_room_id=settings.chatwork_room_id,
        sms_enabled=settings.sms_enabled,
        sms_to_phone=settings.sms_to_phone,
    )


@router.get("", response_model=NotificationSettingsResponse)
async def get_notification_settings(
    tenant: Tenant = Depends(get_tenant),
    db: Session = Depends(get_db),
):
    """Notification channels of the workspace (secrets masked)"""
    settings = NotificationSettingsRepository.get_by_workspace(db, tenant.workspace_id)
    return _to_response(tenant.workspace_id, settings)


@router.put("", response_model=NotificationSettingsResponse)
async def update_notification_settings(
    data: NotificationSettingsUpdate,
    tenant: Tenant = Depends(get_tenant),
    db: Session = Depends(get_db),
):
    """Save notification channels; secrets are encrypted before storage"""
    settings = NotificationSettingsRepository.upsert(
        db,
        tenant.workspace_id,
        slack_enabled=data.slack_enabled,
        slack_webhook_url=encrypt_secret(data.slack_webhook_url),
        chatwork_enabled=data.chatwork_enabled,
        chatwork_api_token=encrypt_secret(data.chatwork_api_token),
        chatwork_room_id=data.chatwork_room_id,
        sms_enabled=data.sms_enabled,
        sms_to_phone=data.sms_to_phone,
    )
    logger.info(f"🔔 Notification settings updated for workspace {tenant.workspace_id} by {tenant.user_id}")
    return _to_response(tenant.workspace_id, settings)


__all__ = ["router"]
