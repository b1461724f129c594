"""Scheduling repository - threads, invites, proposed slots"""

from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from ...models import (
    CLOSED_THREAD_STATUSES,
    OpenSlot,
    SchedulingSlot,
    SchedulingThread,
    ThreadAlternateRequest,
    ThreadInvite,
    utcnow,
)


class SchedulingRepository:
    """Repository for scheduling thread database operations

    Writes are flushed, never committed; the calling service owns the transaction.
    """

    @staticmethod
    def get_thread(db: Session, thread_id: str, workspace_id: Optional[str] = None) -> Optional[SchedulingThread]:
        query = db.query(SchedulingThread).filter(SchedulingThread.id == thread_id)
        if workspace_id is not None:
            query = query.filter(SchedulingThread.workspace_id == workspace_id)
        return query.first()

    @staticmethod
    def get_invite_by_token(db: Session, token: str) -> Optional[ThreadInvite]:
        return (
            db.query(ThreadInvite)
            .options(joinedload(ThreadInvite.thread))
            .filter(ThreadInvite.token == token)
            .first()
        )

    @staticmethod
    def create_thread(db: Session, **thread_data) -> SchedulingThread:
        thread = SchedulingThread(**thread_data)
        db.add(thread)
        db.flush()
        return thread

    @staticmethod
    def create_invite(db: Session, thread: SchedulingThread, **invite_data) -> ThreadInvite:
        invite = ThreadInvite(thread_id=thread.id, **invite_data)
        db.add(invite)
        db.flush()
        return invite

    @staticmethod
    def add_slots(
        db: Session, thread: SchedulingThread, slots: list, proposal_version: int
    ) -> list[SchedulingSlot]:
        """Insert generated slots (objects with start_at / end_at / label) under one version"""
        created = [
            SchedulingSlot(
                thread_id=thread.id,
                start_at=slot.start_at,
                end_at=slot.end_at,
                label=slot.label,
                timezone=thread.timezone,
                proposal_version=proposal_version,
            )
            for slot in slots
        ]
        db.add_all(created)
        db.flush()
        return created

    @staticmethod
    def get_slots(db: Session, thread_id: str, proposal_version: Optional[int] = None) -> list[SchedulingSlot]:
        query = db.query(SchedulingSlot).filter(SchedulingSlot.thread_id == thread_id)
        if proposal_version is not None:
            query = query.filter(SchedulingSlot.proposal_version == proposal_version)
        return query.order_by(SchedulingSlot.start_at).all()

    @staticmethod
    def get_confirmed_bookings(
        db: Session, organizer_user_id: str, time_min: datetime, time_max: datetime
    ) -> list[SchedulingSlot]:
        """Final slots of the organizer's confirmed threads overlapping the range"""
        return (
            db.query(SchedulingSlot)
            .join(SchedulingThread, SchedulingThread.final_slot_id == SchedulingSlot.id)
            .filter(
                SchedulingThread.organizer_user_id == organizer_user_id,
                SchedulingThread.status == "confirmed",
                SchedulingSlot.start_at < time_max,
                SchedulingSlot.end_at > time_min,
            )
            .all()
        )

    @staticmethod
    def bump_proposal_counter(db: Session, thread_id: str, expected_count: int) -> bool:
        """Guarded increment of additional_propose_count and proposal_version

        Returns False when another request changed the counter first.
        """
        result = db.execute(
            update(SchedulingThread)
            .where(
                SchedulingThread.id == thread_id,
                SchedulingThread.additional_propose_count == expected_count,
            )
            .values(
                additional_propose_count=SchedulingThread.additional_propose_count + 1,
                proposal_version=SchedulingThread.proposal_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def record_alternate_request(db: Session, **request_data) -> ThreadAlternateRequest:
        request = ThreadAlternateRequest(**request_data)
        db.add(request)
        db.flush()
        return request


    @staticmethod
    def get_current_open_slot(db: Session, thread_id: str) -> Optional[OpenSlot]:
        """The page currently published for the thread, read fresh from the database"""
        return (
            db.query(OpenSlot)
            .join(SchedulingThread, SchedulingThread.current_open_slot_id == OpenSlot.id)
            .filter(SchedulingThread.id == thread_id)
            .populate_existing()
            .first()
        )

    @staticmethod
    def swap_open_slot(db: Session, thread_id: str, expected_id: Optional[str], new_id: str) -> bool:
        """Publish new_id as the thread's page, only if the current page is still expected_id

        Returns False when another request published a page first or the thread closed.
        """
        current = SchedulingThread.current_open_slot_id
        result = db.execute(
            update(SchedulingThread)
            .where(
                SchedulingThread.id == thread_id,
                current.is_(None) if expected_id is None else current == expected_id,
                SchedulingThread.status.notin_(CLOSED_THREAD_STATUSES),
            )
            .values(current_open_slot_id=new_id, slot_policy="open_slots", updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def finalize_thread(db: Session, thread_id: str, final_slot_id: str, now: datetime) -> bool:
        """Open thread → confirmed. False when the thread was already closed."""
        result = db.execute(
            update(SchedulingThread)
            .where(
                SchedulingThread.id == thread_id,
                SchedulingThread.status.notin_(CLOSED_THREAD_STATUSES),
            )
            .values(status="confirmed", final_slot_id=final_slot_id, finalized_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
