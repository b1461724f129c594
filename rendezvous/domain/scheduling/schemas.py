"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from ...shared.validators import validate_timezone
from ...utils.sanitization import validate_and_sanitize_input
from ..failures.schemas import FailureSummary

RangePreference = Literal["this_week", "next_week", "next_next_week", "any"]
TimeOfDayPreference = Literal["morning", "afternoon", "evening", "any"]


class SlotResponse(BaseModel):
    id: str
    start_at: datetime
    end_at: datetime
    label: Optional[str] = None
    proposal_version: int

    class Config:
        from_attributes = True


class RequestAlternateRequest(BaseModel):
    """Invitee asks for different dates"""

    range: RangePreference
    prefer: TimeOfDayPreference
    comment: Optional[str] = Field(None, max_length=1000)

    @field_validator("comment")
    @classmethod
    def sanitize_comment(cls, v):
        if v is None:
            return v
        return validate_and_sanitize_input(v, max_length=1000) or None


class ReproposalResult(BaseModel):
    success: bool = True
    max_reached: bool = False
    slots: Optional[list[SlotResponse]] = None
    new_proposal_version: Optional[int] = None
    remaining_proposals: Optional[int] = None
    auto_open_slots: Optional[bool] = None
    open_slots_url: Optional[str] = None
    open_slots_token: Optional[str] = None


class InviteViewResponse(BaseModel):
    thread_id: str
    title: str
    status: str
    invite_status: str
    candidate_name: str
    timezone: str
    duration_minutes: int
    proposal_version: int
    slots: list[SlotResponse]
    remaining_proposals: int
    max_reached: bool
    open_slots_url: Optional[str] = None


class InviteeInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr

    @field_validator("name")
    @classmethod
    def sanitize_name(cls, v):
        return validate_and_sanitize_input(v, max_length=100)


class ExplicitSlot(BaseModel):
    start_at: datetime
    end_at: datetime

    @model_validator(mode="after")
    def check_order(self):
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class ThreadCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    invitee: InviteeInput
    duration: int = Field(60, ge=15, le=480)
    timezone: Optional[str] = None
    range: RangePreference = "any"
    prefer: TimeOfDayPreference = "any"
    slots: Optional[list[ExplicitSlot]] = Field(None, max_length=20)

    @field_validator("title")
    @classmethod
    def sanitize_title(cls, v):
        v = validate_and_sanitize_input(v, max_length=255)
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("description")
    @classmethod
    def sanitize_description(cls, v):
        if v is None:
            return v
        return validate_and_sanitize_input(v, max_length=2000)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v):
        if v:
            return validate_timezone(v)
        return v


class EscalationDecisionResponse(BaseModel):
    action: str
    max_reached: bool
    remaining_proposals: int
    escalation_level: int
    reason: str


class ThreadCreateResponse(BaseModel):
    success: bool = True
    thread_id: str
    invite_token: str
    invite_url: str
    proposal_version: int
    slots: list[SlotResponse]


class ThreadDetailResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    status: str
    slot_policy: str
    timezone: str
    duration_minutes: int
    proposal_version: int
    additional_propose_count: int
    final_slot_id: Optional[str] = None
    finalized_at: Optional[datetime] = None
    slots: list[SlotResponse]
    failure_summary: FailureSummary
    decision: EscalationDecisionResponse
    open_slots_url: Optional[str] = None
