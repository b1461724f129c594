"""Open slots schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from ...shared.validators import validate_uuid
from ...utils.sanitization import validate_and_sanitize_input
from ..scheduling.slot_generator import BUSINESS_DAYS, WEEKDAY_KEYS

Prefer = Literal["morning", "afternoon", "evening", "any"]


class OpenSlotConstraints(BaseModel):
    """Search constraints; omitted values fall back to next business day 09:00 → +14 days"""

    time_min: Optional[datetime] = None
    time_max: Optional[datetime] = None
    prefer: Prefer = "afternoon"
    days: list[str] = Field(default_factory=lambda: list(BUSINESS_DAYS))
    duration: int = Field(60, ge=15, le=480)
    slot_interval: int = Field(30, ge=15, le=120)

    @field_validator("days")
    @classmethod
    def validate_days(cls, v):
        days = [d.lower()[:3] for d in v]
        unknown = [d for d in days if d not in WEEKDAY_KEYS]
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(unknown)}")
        if not days:
            raise ValueError("At least one weekday is required")
        return days


class Invitee(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None

    @field_validator("name")
    @classmethod
    def sanitize_name(cls, v):
        return validate_and_sanitize_input(v, max_length=100)


class OpenSlotCreateRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    invitee: Invitee
    thread_id: Optional[str] = None
    constraints: OpenSlotConstraints = Field(default_factory=OpenSlotConstraints)
    expires_in_days: Optional[int] = Field(None, ge=1, le=30)


class OpenSlotItemResponse(BaseModel):
    id: str
    start_at: datetime
    end_at: datetime
    label: str


class OpenSlotCreateResponse(BaseModel):
    success: bool = True
    thread_id: str
    open_slots_id: str
    token: str
    share_url: str
    slots_count: int
    slots: list[OpenSlotItemResponse]
    expires_at: datetime


class OpenSlotPageResponse(BaseModel):
    token: str
    title: Optional[str]
    status: str
    invitee_name: Optional[str]
    duration_minutes: int
    timezone: str
    expires_at: datetime
    slots: list[OpenSlotItemResponse]


class SelectSlotRequest(BaseModel):
    slot_id: str
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr

    @field_validator("slot_id")
    @classmethod
    def validate_slot_id(cls, v):
        if not validate_uuid(v):
            raise ValueError("Invalid slot id format")
        return v

    @field_validator("name")
    @classmethod
    def sanitize_name(cls, v):
        v = validate_and_sanitize_input(v, max_length=100)
        if not v:
            raise ValueError("Name is required")
        return v


class SelectSlotResponse(BaseModel):
    success: bool = True
    redirect_url: str
    slot: OpenSlotItemResponse


class CancelOpenSlotsResponse(BaseModel):
    success: bool = True
    status: str
