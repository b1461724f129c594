"""Thread failure repository - failure counting per (thread, participant, type)"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import StorageError
from ...models import THREAD_PARTICIPANT_KEY, ThreadFailure, generate_id, utcnow
from .schemas import FailureSummary, ParticipantFailureCount, WorkspaceFailureStats

logger = logging.getLogger(__name__)

TOP_PARTICIPANTS = 3
# Attempts for dialects without INSERT ... ON CONFLICT
CAS_MAX_ATTEMPTS = 5

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def escalation_level_for(total_failures: int) -> int:
    """0 = no problem, 1 = caution, 2 = needs attention"""
    if total_failures <= 0:
        return 0
    if total_failures == 1:
        return 1
    return 2


class ThreadFailuresRepository:
    """Repository for thread failure rows

    Writes are flushed, never committed; the calling service owns the transaction.
    """

    @staticmethod
    def increment_failure(
        db: Session,
        workspace_id: str,
        owner_user_id: str,
        thread_id: str,
        failure_type: str,
        stage: str,
        participant_key: Optional[str] = None,
        meta: Optional[dict] = None,
        now: Optional[datetime] = None,
    ) -> ThreadFailure:
        """Record one failure, inserting the row or bumping its count in a single statement"""
        participant_key = participant_key or THREAD_PARTICIPANT_KEY
        now = now or utcnow()
        meta = meta or {}

        insert = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
        if insert is None:
            return ThreadFailuresRepository._increment_with_cas(
                db, workspace_id, owner_user_id, thread_id, failure_type, stage, participant_key, meta, now
            )

        stmt = insert(ThreadFailure).values(
            id=generate_id(),
            workspace_id=workspace_id,
            owner_user_id=owner_user_id,
            thread_id=thread_id,
            participant_key=participant_key,
            failure_type=failure_type,
            failure_stage=stage,
            count=1,
            first_failed_at=now,
            last_failed_at=now,
            meta_json=meta,
        )
        # first_failed_at and owner_user_id stay as first written
        stmt = stmt.on_conflict_do_update(
            index_elements=["workspace_id", "thread_id", "participant_key", "failure_type"],
            set_={
                "count": ThreadFailure.count + 1,
                "last_failed_at": stmt.excluded.last_failed_at,
                "failure_stage": stmt.excluded.failure_stage,
                "meta_json": stmt.excluded.meta_json,
            },
        ).returning(ThreadFailure)

        failure = db.scalars(stmt, execution_options={"populate_existing": True}).one()
        logger.info(
            f"📉 Failure recorded: thread={thread_id} participant={participant_key} "
            f"type={failure_type} stage={stage} count={failure.count}"
        )
        return failure

    @staticmethod
    def _increment_with_cas(
        db: Session,
        workspace_id: str,
        owner_user_id: str,
        thread_id: str,
        failure_type: str,
        stage: str,
        participant_key: str,
        meta: dict,
        now: datetime,
    ) -> ThreadFailure:
        """Compare-and-swap loop keyed on the unique constraint"""
        for _ in range(CAS_MAX_ATTEMPTS):
            existing = (
                db.query(ThreadFailure)
                .filter(
                    ThreadFailure.workspace_id == workspace_id,
                    ThreadFailure.thread_id == thread_id,
                    ThreadFailure.participant_key == participant_key,
                    ThreadFailure.failure_type == failure_type,
                )
                .populate_existing()
                .first()
            )

            if existing is None:
                failure = ThreadFailure(
                    workspace_id=workspace_id,
                    owner_user_id=owner_user_id,
                    thread_id=thread_id,
                    participant_key=participant_key,
                    failure_type=failure_type,
                    failure_stage=stage,
                    count=1,
                    first_failed_at=now,
                    last_failed_at=now,
                    meta_json=meta,
                )
                try:
                    with db.begin_nested():
                        db.add(failure)
                    return failure
                except IntegrityError:
                    # Lost the insert race, the row now exists
                    continue

            result = db.execute(
                update(ThreadFailure)
                .where(ThreadFailure.id == existing.id, ThreadFailure.count == existing.count)
                .values(
                    count=existing.count + 1,
                    last_failed_at=now,
                    failure_stage=stage,
                    meta_json=meta,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                db.refresh(existing)
                return existing

        raise StorageError(f"Could not record failure for thread {thread_id} after {CAS_MAX_ATTEMPTS} attempts")

    @staticmethod
    def get_failures_by_thread(db: Session, thread_id: str) -> list[ThreadFailure]:
        """All failure rows for a thread, most recent first"""
        return (
            db.query(ThreadFailure)
            .filter(ThreadFailure.thread_id == thread_id)
            .order_by(ThreadFailure.last_failed_at.desc())
            .all()
        )

    @staticmethod
    def get_failure_summary_by_thread(db: Session, thread_id: str) -> FailureSummary:
        """Aggregate a thread's failures into totals, breakdowns and an escalation level"""
        rows = ThreadFailuresRepository.get_failures_by_thread(db, thread_id)

        total = 0
        by_type: dict[str, int] = {}
        by_participant: dict[str, int] = {}
        last_failed_at = None

        for row in rows:
            total += row.count
            by_type[row.failure_type] = by_type.get(row.failure_type, 0) + row.count
            if row.participant_key != THREAD_PARTICIPANT_KEY:
                by_participant[row.participant_key] = by_participant.get(row.participant_key, 0) + row.count
            if last_failed_at is None or row.last_failed_at > last_failed_at:
                last_failed_at = row.last_failed_at

        # Insertion order follows last_failed_at desc, so ties keep the most recent participant first
        top = sorted(by_participant.items(), key=lambda item: item[1], reverse=True)[:TOP_PARTICIPANTS]

        return FailureSummary(
            thread_id=thread_id,
            total_failures=total,
            unique_failure_types=len(by_type),
            by_type=by_type,
            by_participant=[ParticipantFailureCount(participant_key=k, count=c) for k, c in top],
            last_failed_at=last_failed_at,
            escalation_level=escalation_level_for(total),
        )

    @staticmethod
    def reset_failures_by_thread(db: Session, thread_id: str) -> int:
        deleted = (
            db.query(ThreadFailure)
            .filter(ThreadFailure.thread_id == thread_id)
            .delete(synchronize_session=False)
        )
        db.flush()
        return deleted

    @staticmethod
    def reset_failure_by_type(db: Session, thread_id: str, failure_type: str) -> int:
        deleted = (
            db.query(ThreadFailure)
            .filter(ThreadFailure.thread_id == thread_id, ThreadFailure.failure_type == failure_type)
            .delete(synchronize_session=False)
        )
        db.flush()
        return deleted

    @staticmethod
    def reset_failures_by_participant(db: Session, thread_id: str, participant_key: str) -> int:
        deleted = (
            db.query(ThreadFailure)
            .filter(ThreadFailure.thread_id == thread_id, ThreadFailure.participant_key == participant_key)
            .delete(synchronize_session=False)
        )
        db.flush()
        return deleted

    @staticmethod
    def reset_failures_by_type_and_participant(
        db: Session, thread_id: str, failure_type: str, participant_key: str
    ) -> int:
        deleted = (
            db.query(ThreadFailure)
            .filter(
                ThreadFailure.thread_id == thread_id,
                ThreadFailure.failure_type == failure_type,
                ThreadFailure.participant_key == participant_key,
            )
            .delete(synchronize_session=False)
        )
        db.flush()
        return deleted

    @staticmethod
    def get_workspace_failure_stats(
        db: Session, workspace_id: str, days: int = 30, now: Optional[datetime] = None
    ) -> WorkspaceFailureStats:
        """Failure totals for rows whose last failure falls in the trailing window"""
        since = (now or utcnow()) - timedelta(days=days)
        base = db.query(ThreadFailure).filter(
            ThreadFailure.workspace_id == workspace_id,
            ThreadFailure.last_failed_at >= since,
        )

        total, threads = base.with_entities(
            func.coalesce(func.sum(ThreadFailure.count), 0),
            func.count(func.distinct(ThreadFailure.thread_id)),
        ).one()

        by_type_rows = (
            base.with_entities(ThreadFailure.failure_type, func.sum(ThreadFailure.count))
            .group_by(ThreadFailure.failure_type)
            .all()
        )

        return WorkspaceFailureStats(
            workspace_id=workspace_id,
            days=days,
            total_failures=int(total or 0),
            threads_with_failures=int(threads or 0),
            by_type={failure_type: int(count) for failure_type, count in by_type_rows},
        )
