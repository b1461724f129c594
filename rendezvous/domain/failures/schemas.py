"""Failure domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, field_validator

FailureType = Literal[
    "no_common_slot",
    "proposal_rejected",
    "reschedule_failed",
    "manual_fail",
    "invite_expired",
    "candidate_exhausted",
]
FailureStage = Literal["propose", "reschedule", "finalize", "invite"]


class ParticipantFailureCount(BaseModel):
    participant_key: str
    count: int


class FailureSummary(BaseModel):
    """Failures of one thread aggregated for UI and ops visibility"""

    thread_id: str
    total_failures: int = 0
    unique_failure_types: int = 0
    by_type: dict[str, int] = {}
    by_participant: list[ParticipantFailureCount] = []
    last_failed_at: Optional[datetime] = None
    # 0 = none, 1 = caution, 2 = needs attention
    escalation_level: int = 0


class WorkspaceFailureStats(BaseModel):
    workspace_id: str
    days: int
    total_failures: int
    threads_with_failures: int
    by_type: dict[str, int]


class FailureRecordRequest(BaseModel):
    """Organizer report of a failed attempt"""

    failure_type: FailureType = "manual_fail"
    stage: FailureStage
    participant_key: Optional[str] = None
    meta: Optional[dict[str, Any]] = None

    @field_validator("participant_key")
    @classmethod
    def validate_participant_key(cls, v):
        if v is not None:
            v = v.strip()
            if not v:
                return None
            if len(v) > 255:
                raise ValueError("participant_key must be at most 255 characters")
        return v


class FailureResponse(BaseModel):
    id: str
    thread_id: str
    participant_key: str
    failure_type: str
    failure_stage: str
    count: int
    first_failed_at: datetime
    last_failed_at: datetime
    meta_json: dict[str, Any]

    class Config:
        from_attributes = True


class FailureResetResponse(BaseModel):
    deleted: int
