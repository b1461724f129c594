"""
Request-alternate flow

An invitee who can't make any proposed slot asks for new ones. While the
thread's additional_propose_count is below MAX_ADDITIONAL_PROPOSALS a new
candidate generation is proposed; once it reaches the cap the thread
escalates to a public open-slots page instead.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import MAX_ADDITIONAL_PROPOSALS
from ...errors import ConflictError, NotFoundError, StorageError
from ...models import CLOSED_THREAD_STATUSES, OpenSlot, SchedulingThread, ThreadInvite, utcnow
from ...services.notification_service import (
    EVENT_ADDITIONAL_SLOTS,
    EVENT_OPEN_SLOTS_CREATED,
    NotificationEvent,
)
from ..failures.repository import ThreadFailuresRepository
from ..open_slots.schemas import OpenSlotConstraints
from ..open_slots.service import OpenSlotsService, build_share_url
from .candidates import CandidateGenerator
from .escalation import decide
from .repository import SchedulingRepository
from .schemas import ReproposalResult, RequestAlternateRequest, SlotResponse

logger = logging.getLogger(__name__)


@dataclass
class ReproposalOutcome:
    result: ReproposalResult
    workspace_id: str
    event: Optional[NotificationEvent] = None


def get_live_invite(db: Session, token: str, now: datetime) -> ThreadInvite:
    """Invite for a public token; unknown and expired look the same"""
    invite = SchedulingRepository.get_invite_by_token(db, token)
    if not invite or invite.status == "expired" or invite.expires_at <= now:
        raise NotFoundError()
    return invite


class ReproposalService:
    def __init__(
        self,
        db: Session,
        candidate_generator: Optional[CandidateGenerator] = None,
        max_additional: int = MAX_ADDITIONAL_PROPOSALS,
    ):
        self.db = db
        self.repo = SchedulingRepository()
        self.failures_repo = ThreadFailuresRepository()
        self.candidates = candidate_generator or CandidateGenerator(db)
        self.max_additional = max_additional

    def request_alternate(
        self, token: str, data: RequestAlternateRequest, now: Optional[datetime] = None
    ) -> ReproposalOutcome:
        now = now or utcnow()
        invite = get_live_invite(self.db, token, now)
        thread = invite.thread
        count = thread.additional_propose_count

        summary = self.failures_repo.get_failure_summary_by_thread(self.db, thread.id)
        decision = decide(count, self.max_additional, summary)

        if decision.max_reached:
            return self._escalate(thread, invite, data, now)

        if thread.status in CLOSED_THREAD_STATUSES:
            raise ConflictError("thread_closed", f"This scheduling thread is already {thread.status}")

        return self._repropose(thread, invite, data, count, now)

    # ------------------------------------------------------------------

    def _repropose(
        self,
        thread: SchedulingThread,
        invite: ThreadInvite,
        data: RequestAlternateRequest,
        count: int,
        now: datetime,
    ) -> ReproposalOutcome:
        previous_version = thread.proposal_version
        candidates = self.candidates.generate(thread, data.range, data.prefer, now=now)

        if not candidates.slots:
            self._record_exhausted(
                thread,
                invite,
                now,
                {
                    "range": data.range,
                    "prefer": data.prefer,
                    "duration": thread.duration_minutes,
                    "candidate_count": 0,
                    "excluded_count": candidates.excluded_count,
                    "reason": "no candidates in requested range",
                },
            )
            raise ConflictError(
                "no_available_slots",
                "No free time was found for the requested dates. Please choose a different range.",
            )

        new_version = previous_version + 1
        try:
            if not self.repo.bump_proposal_counter(self.db, thread.id, count):
                self.db.rollback()
                logger.warning(f"⚠️ Concurrent request-alternate on thread {thread.id} (count={count})")
                raise ConflictError("concurrent_update", "The proposal was updated by another request")

            slots = self.repo.add_slots(self.db, thread, candidates.slots, new_version)
            self.repo.record_alternate_request(
                self.db,
                thread_id=thread.id,
                invite_id=invite.id,
                range=data.range,
                prefer=data.prefer,
                comment=data.comment,
                outcome="reproposed",
                proposal_version=new_version,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to store re-proposal for thread {thread.id}: {e}")
            raise StorageError("Failed to store re-proposal") from e

        self.db.refresh(thread)
        logger.info(
            f"🔁 Re-proposed thread {thread.id}: version {previous_version} → {new_version}, "
            f"additional_propose_count={thread.additional_propose_count}"
        )

        slot_responses = [SlotResponse.model_validate(s) for s in slots]
        event = NotificationEvent(
            event_type=EVENT_ADDITIONAL_SLOTS,
            title=f"{invite.candidate_name} requested other dates for \"{thread.title}\"",
            lines=[s.label or "" for s in slot_responses] + ([f"Comment: {data.comment}"] if data.comment else []),
        )
        return ReproposalOutcome(
            result=ReproposalResult(
                max_reached=False,
                slots=slot_responses,
                new_proposal_version=new_version,
                remaining_proposals=max(self.max_additional - thread.additional_propose_count, 0),
            ),
            workspace_id=thread.workspace_id,
            event=event,
        )

    def _escalate(
        self,
        thread: SchedulingThread,
        invite: ThreadInvite,
        data: RequestAlternateRequest,
        now: datetime,
    ) -> ReproposalOutcome:
        """Reuse the thread's open-slots page, or publish one seeded from the invite"""
        try:
            if thread.status in CLOSED_THREAD_STATUSES:
                page = self.repo.get_current_open_slot(self.db, thread.id)
                if page is None:
                    raise ConflictError("thread_closed", f"This scheduling thread is already {thread.status}")
                created = False
            else:
                page, created = self._open_page(thread, invite, data, now)

            self.repo.record_alternate_request(
                self.db,
                thread_id=thread.id,
                invite_id=invite.id,
                range=data.range,
                prefer=data.prefer,
                comment=data.comment,
                outcome="escalated",
                proposal_version=thread.proposal_version,
            )
            token = page.token
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to escalate thread {thread.id}: {e}")
            raise StorageError("Failed to create open slots") from e

        share_url = build_share_url(token)
        logger.info(
            f"🚨 Thread {thread.id} escalated to open slots "
            f"({'created' if created else 'reused'} page, count={thread.additional_propose_count})"
        )

        event = None
        if created:
            event = NotificationEvent(
                event_type=EVENT_OPEN_SLOTS_CREATED,
                title=f"Open slots page created for \"{thread.title}\" after {self.max_additional} re-proposals",
                lines=[f"Invitee: {invite.candidate_name}"]
                + ([f"Comment: {data.comment}"] if data.comment else []),
                link_url=share_url,
            )
        return ReproposalOutcome(
            result=ReproposalResult(
                max_reached=True,
                auto_open_slots=True,
                open_slots_url=share_url,
                open_slots_token=token,
                remaining_proposals=0,
            ),
            workspace_id=thread.workspace_id,
            event=event,
        )

    def _open_page(
        self, thread: SchedulingThread, invite: ThreadInvite, data: RequestAlternateRequest, now: datetime
    ) -> tuple[OpenSlot, bool]:
        constraints = OpenSlotConstraints(prefer=data.prefer, duration=thread.duration_minutes)
        try:
            return OpenSlotsService(self.db).open_for_thread(
                thread,
                now,
                invitee_name=invite.candidate_name,
                invitee_email=invite.email,
                constraints=constraints,
                title=thread.title,
                source="auto_from_alternate",
            )
        except ConflictError as e:
            if e.error != "no_available_slots":
                raise
            self.db.rollback()
            self._record_exhausted(
                thread,
                invite,
                now,
                {
                    "range": "open_slots",
                    "prefer": data.prefer,
                    "duration": thread.duration_minutes,
                    "candidate_count": 0,
                    "excluded_count": 0,
                    "reason": "no open slots for escalation",
                },
            )
            raise

    def _record_exhausted(self, thread: SchedulingThread, invite: ThreadInvite, now: datetime, meta: dict) -> None:
        """candidate_exhausted failure, committed on its own; the counter is untouched"""
        try:
            self.failures_repo.increment_failure(
                self.db,
                workspace_id=thread.workspace_id,
                owner_user_id=thread.organizer_user_id,
                thread_id=thread.id,
                failure_type="candidate_exhausted",
                stage="reschedule",
                participant_key=invite.invitee_key or invite.email.lower(),
                meta=meta,
                now=now,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to record candidate_exhausted for thread {thread.id}: {e}")
            raise StorageError("Failed to record failure") from e
