import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

THREAD_PARTICIPANT_KEY = "_thread_"

FAILURE_TYPES = (
    "no_common_slot",
    "proposal_rejected",
    "reschedule_failed",
    "manual_fail",
    "invite_expired",
    "candidate_exhausted",
)

FAILURE_STAGES = ("propose", "reschedule", "finalize", "invite")

# Thread statuses that take no further proposals or bookings
CLOSED_THREAD_STATUSES = ("confirmed", "cancelled", "failed")


def generate_id():
    """Generate a unique ID for rows that are referenced from public links"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, the storage convention for every DateTime column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SchedulingThread(Base):
    __tablename__ = "scheduling_threads"

    id = Column(String(36), primary_key=True, default=generate_id)
    workspace_id = Column(String(64), nullable=False, index=True)
    organizer_user_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # Workflow: draft → sent (collecting) → confirmed | cancelled | failed
    status = Column(String(20), default="draft", nullable=False, index=True)
    mode = Column(String(20), default="one_on_one", nullable=False)
    # fixed | candidates | open_slots
    slot_policy = Column(String(20), default="candidates", nullable=False)
    timezone = Column(String(64), nullable=False)
    duration_minutes = Column(Integer, default=60, nullable=False)

    # Candidate generation, +1 per re-proposal
    proposal_version = Column(Integer, default=1, nullable=False)
    # Re-proposals made beyond the original proposal
    additional_propose_count = Column(Integer, default=0, nullable=False)

    final_slot_id = Column(String(36), nullable=True)
    finalized_at = Column(DateTime, nullable=True)
    # Open-slots page currently published for the thread, swapped under a guarded update
    current_open_slot_id = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    invites = relationship("ThreadInvite", back_populates="thread", cascade="all, delete-orphan")
    slots = relationship(
        "SchedulingSlot",
        back_populates="thread",
        cascade="all, delete-orphan",
        order_by="SchedulingSlot.start_at",
    )
    open_slots = relationship("OpenSlot", back_populates="thread")


class ThreadInvite(Base):
    """Public invite link (/i/:token) sent to one invitee of a thread"""

    __tablename__ = "thread_invites"

    id = Column(String(36), primary_key=True, default=generate_id)
    thread_id = Column(
        String(36), ForeignKey("scheduling_threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False)
    candidate_name = Column(String(255), nullable=False)
    # Participant key used for failure tracking
    invitee_key = Column(String(255), nullable=True)
    # pending | accepted | declined | expired
    status = Column(String(20), default="pending", nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())

    thread = relationship("SchedulingThread", back_populates="invites")


class SchedulingSlot(Base):
    __tablename__ = "scheduling_slots"

    id = Column(String(36), primary_key=True, default=generate_id)
    thread_id = Column(
        String(36), ForeignKey("scheduling_threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    timezone = Column(String(64), nullable=False)
    label = Column(String(100), nullable=True)
    proposal_version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())

    thread = relationship("SchedulingThread", back_populates="slots")


class ThreadAlternateRequest(Base):
    """One row per request-alternate call, keeps the invitee's preference and comment"""

    __tablename__ = "thread_alternate_requests"

    id = Column(String(36), primary_key=True, default=generate_id)
    thread_id = Column(
        String(36), ForeignKey("scheduling_threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invite_id = Column(String(36), ForeignKey("thread_invites.id", ondelete="SET NULL"), nullable=True)
    range = Column(String(20), nullable=False)
    prefer = Column(String(20), nullable=False)
    comment = Column(Text, nullable=True)
    # reproposed | escalated
    outcome = Column(String(20), nullable=False)
    proposal_version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())


class ThreadFailure(Base):
    """Accumulated failure count per (workspace, thread, participant, failure type)"""

    __tablename__ = "thread_failures"
    __table_args__ = (
        UniqueConstraint(
            "workspace_id",
            "thread_id",
            "participant_key",
            "failure_type",
            name="uq_thread_failures_key",
        ),
        CheckConstraint("count >= 1", name="ck_thread_failures_count_positive"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    workspace_id = Column(String(64), nullable=False)
    owner_user_id = Column(String(64), nullable=False)
    thread_id = Column(
        String(36), ForeignKey("scheduling_threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # '_thread_' = failure of the whole thread, otherwise invitee_key / user id
    participant_key = Column(String(255), nullable=False, default=THREAD_PARTICIPANT_KEY)
    failure_type = Column(String(32), nullable=False)
    failure_stage = Column(String(16), nullable=False)
    count = Column(Integer, nullable=False, default=1)
    first_failed_at = Column(DateTime, nullable=False)
    last_failed_at = Column(DateTime, nullable=False, index=True)
    # Latest payload only: range, duration, candidate_count, excluded_count, reason
    meta_json = Column(JSON, nullable=False, default=dict)


class OpenSlot(Base):
    """Public booking page (/open/:token) listing time ranges any one respondent may claim"""

    __tablename__ = "open_slots"

    id = Column(String(36), primary_key=True, default=generate_id)
    thread_id = Column(
        String(36), ForeignKey("scheduling_threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token = Column(String(64), unique=True, nullable=False, index=True)
    workspace_id = Column(String(64), nullable=False, index=True)
    owner_user_id = Column(String(64), nullable=False, index=True)

    time_min = Column(DateTime, nullable=False)
    time_max = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, default=60, nullable=False)
    prefer = Column(String(20), default="afternoon", nullable=False)
    days = Column(JSON, nullable=False, default=list)
    slot_interval_minutes = Column(Integer, default=30, nullable=False)

    title = Column(String(255), nullable=True)
    invitee_name = Column(String(255), nullable=True)
    invitee_email = Column(String(255), nullable=True)

    # active | expired | cancelled | completed
    status = Column(String(20), default="active", nullable=False, index=True)
    # direct | auto_from_alternate
    source = Column(String(32), default="direct", nullable=False)

    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)

    thread = relationship("SchedulingThread", back_populates="open_slots")
    items = relationship(
        "OpenSlotItem",
        back_populates="open_slot",
        cascade="all, delete-orphan",
        order_by="OpenSlotItem.start_at",
    )


class OpenSlotItem(Base):
    __tablename__ = "open_slot_items"

    id = Column(String(36), primary_key=True, default=generate_id)
    open_slot_id = Column(
        String(36), ForeignKey("open_slots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_at = Column(DateTime, nullable=False, index=True)
    end_at = Column(DateTime, nullable=False)
    # available | selected | disabled
    status = Column(String(20), default="available", nullable=False, index=True)
    selected_at = Column(DateTime, nullable=True)
    selected_by_name = Column(String(255), nullable=True)
    selected_by_email = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())

    open_slot = relationship("OpenSlot", back_populates="items")
