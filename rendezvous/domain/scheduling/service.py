"""Scheduling service - one-on-one threads and the public invite view"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import DEFAULT_TIMEZONE, FRONTEND_URL, INVITE_TTL_DAYS, MAX_ADDITIONAL_PROPOSALS
from ...errors import ConflictError, NotFoundError, StorageError
from ...models import SchedulingThread, utcnow
from ...security_utils import generate_secure_token
from ...tenant import Tenant
from ..failures.repository import ThreadFailuresRepository
from ..open_slots.service import build_share_url
from .candidates import CandidateGenerator
from .escalation import decide
from .reproposal import get_live_invite
from .repository import SchedulingRepository
from .schemas import (
    EscalationDecisionResponse,
    InviteViewResponse,
    SlotResponse,
    ThreadCreateRequest,
    ThreadCreateResponse,
    ThreadDetailResponse,
)
from .slot_generator import AvailableSlot, format_slot_label, to_utc_naive

logger = logging.getLogger(__name__)


def build_invite_url(token: str) -> str:
    return f"{FRONTEND_URL.rstrip('/')}/i/{token}"


class SchedulingService:
    """Service layer for one-on-one threads"""

    def __init__(self, db: Session, candidate_generator: Optional[CandidateGenerator] = None):
        self.db = db
        self.repo = SchedulingRepository()
        self.failures_repo = ThreadFailuresRepository()
        self.candidates = candidate_generator or CandidateGenerator(db)

    def create_thread(
        self, data: ThreadCreateRequest, tenant: Tenant, now: Optional[datetime] = None
    ) -> ThreadCreateResponse:
        """Create a sent thread with its invite and first proposal"""
        now = now or utcnow()
        tz = data.timezone or DEFAULT_TIMEZONE
        email = data.invitee.email.lower()

        try:
            thread = self.repo.create_thread(
                self.db,
                workspace_id=tenant.workspace_id,
                organizer_user_id=tenant.user_id,
                title=data.title,
                description=data.description,
                status="sent",
                slot_policy="fixed" if data.slots else "candidates",
                timezone=tz,
                duration_minutes=data.duration,
            )

            if data.slots:
                slots = []
                for s in data.slots:
                    start_at = to_utc_naive(s.start_at) if s.start_at.tzinfo else s.start_at
                    end_at = to_utc_naive(s.end_at) if s.end_at.tzinfo else s.end_at
                    slots.append(AvailableSlot(start_at, end_at, format_slot_label(start_at, end_at, tz)))
            else:
                slots = self.candidates.generate(thread, data.range, data.prefer, now=now).slots
                if not slots:
                    self.db.rollback()
                    raise ConflictError(
                        "no_available_slots", "No free time was found for the requested range"
                    )

            created_slots = self.repo.add_slots(self.db, thread, slots, thread.proposal_version)
            invite = self.repo.create_invite(
                self.db,
                thread,
                token=generate_secure_token(24),
                email=email,
                candidate_name=data.invitee.name,
                invitee_key=email,
                status="pending",
                expires_at=now + timedelta(days=INVITE_TTL_DAYS),
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create thread for user {tenant.user_id}: {e}")
            raise StorageError("Failed to create thread") from e

        logger.info(f"📨 Thread {thread.id} created with {len(created_slots)} slots for {email}")
        return ThreadCreateResponse(
            thread_id=thread.id,
            invite_token=invite.token,
            invite_url=build_invite_url(invite.token),
            proposal_version=thread.proposal_version,
            slots=[SlotResponse.model_validate(s) for s in created_slots],
        )

    def _open_slots_url(self, thread: SchedulingThread) -> Optional[str]:
        page = self.repo.get_current_open_slot(self.db, thread.id)
        return build_share_url(page.token) if page else None

    def get_thread_detail(self, thread_id: str, tenant: Tenant) -> ThreadDetailResponse:
        thread = self.repo.get_thread(self.db, thread_id, tenant.workspace_id)
        if not thread:
            raise NotFoundError("Thread not found")

        summary = self.failures_repo.get_failure_summary_by_thread(self.db, thread.id)
        decision = decide(thread.additional_propose_count, MAX_ADDITIONAL_PROPOSALS, summary)

        return ThreadDetailResponse(
            id=thread.id,
            title=thread.title,
            description=thread.description,
            status=thread.status,
            slot_policy=thread.slot_policy,
            timezone=thread.timezone,
            duration_minutes=thread.duration_minutes,
            proposal_version=thread.proposal_version,
            additional_propose_count=thread.additional_propose_count,
            final_slot_id=thread.final_slot_id,
            finalized_at=thread.finalized_at,
            slots=[SlotResponse.model_validate(s) for s in thread.slots],
            failure_summary=summary,
            decision=EscalationDecisionResponse(
                action=decision.action,
                max_reached=decision.max_reached,
                remaining_proposals=decision.remaining_proposals,
                escalation_level=decision.escalation_level,
                reason=decision.reason,
            ),
            open_slots_url=self._open_slots_url(thread),
        )

    def get_invite_view(self, token: str, now: Optional[datetime] = None) -> InviteViewResponse:
        """What the invitee sees at /i/:token"""
        now = now or utcnow()
        invite = get_live_invite(self.db, token, now)
        thread = invite.thread
        decision = decide(thread.additional_propose_count, MAX_ADDITIONAL_PROPOSALS)
        slots = self.repo.get_slots(self.db, thread.id, thread.proposal_version)

        return InviteViewResponse(
            thread_id=thread.id,
            title=thread.title,
            status=thread.status,
            invite_status=invite.status,
            candidate_name=invite.candidate_name,
            timezone=thread.timezone,
            duration_minutes=thread.duration_minutes,
            proposal_version=thread.proposal_version,
            slots=[SlotResponse.model_validate(s) for s in slots],
            remaining_proposals=decision.remaining_proposals,
            max_reached=decision.max_reached,
            open_slots_url=self._open_slots_url(thread) if decision.max_reached else None,
        )
