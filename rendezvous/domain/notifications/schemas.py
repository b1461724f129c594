"""Notification settings schemas"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_e164_phone


class NotificationSettingsUpdate(BaseModel):
    """Secrets are write-only; omit a field to keep its stored value"""

    slack_enabled: Optional[bool] = None
    slack_webhook_url: Optional[str] = None
    chatwork_enabled: Optional[bool] = None
    chatwork_api_token: Optional[str] = None
    chatwork_room_id: Optional[str] = None
    sms_enabled: Optional[bool] = None
    sms_to_phone: Optional[str] = None

    @field_validator("slack_webhook_url")
    @classmethod
    def validate_webhook_url(cls, v):
        if v and not v.startswith("https://"):
            raise ValueError("Slack webhook URL must use https")
        return v

    @field_validator("chatwork_room_id")
    @classmethod
    def validate_room_id(cls, v):
        if v and not v.isdigit():
            raise ValueError("Chatwork room ID must be numeric")
        return v

    @field_validator("sms_to_phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_e164_phone(v)
        return v


class NotificationSettingsResponse(BaseModel):
    workspace_id: str
    slack_enabled: bool = False
    slack_webhook_url_masked: Optional[str] = None
    chatwork_enabled: bool = False
    chatwork_api_token_masked: Optional[str] = None
    chatwork_room_id: Optional[str] = None
    sms_enabled: bool = False
    sms_to_phone: Optional[str] = None
