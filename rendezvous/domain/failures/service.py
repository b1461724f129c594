"""Failure service - recording and reading thread failures"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import NotFoundError, StorageError
from ...models import SchedulingThread, ThreadFailure
from ...tenant import Tenant
from .repository import ThreadFailuresRepository
from .schemas import FailureRecordRequest, FailureSummary, WorkspaceFailureStats

logger = logging.getLogger(__name__)


class FailureService:
    """Service layer for the failure counter

    Storage errors roll back and surface as StorageError, never retried here.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = ThreadFailuresRepository()

    def _get_thread(self, thread_id: str, tenant: Tenant) -> SchedulingThread:
        thread = (
            self.db.query(SchedulingThread)
            .filter(
                SchedulingThread.id == thread_id,
                SchedulingThread.workspace_id == tenant.workspace_id,
            )
            .first()
        )
        if not thread:
            raise NotFoundError("Thread not found")
        return thread

    def record_failure(
        self, thread_id: str, data: FailureRecordRequest, tenant: Tenant, now: Optional[datetime] = None
    ) -> ThreadFailure:
        thread = self._get_thread(thread_id, tenant)
        try:
            failure = self.repo.increment_failure(
                self.db,
                workspace_id=thread.workspace_id,
                owner_user_id=thread.organizer_user_id,
                thread_id=thread.id,
                failure_type=data.failure_type,
                stage=data.stage,
                participant_key=data.participant_key,
                meta=data.meta,
                now=now,
            )
            self.db.commit()
            return failure
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to record failure for thread {thread_id}: {e}")
            raise StorageError("Failed to record failure") from e

    def get_summary(self, thread_id: str, tenant: Tenant) -> FailureSummary:
        thread = self._get_thread(thread_id, tenant)
        try:
            return self.repo.get_failure_summary_by_thread(self.db, thread.id)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to read failures for thread {thread_id}: {e}")
            raise StorageError("Failed to read failures") from e

    def reset(
        self,
        thread_id: str,
        tenant: Tenant,
        failure_type: Optional[str] = None,
        participant_key: Optional[str] = None,
    ) -> int:
        """Delete failures by type, by participant, or the whole thread when neither is given"""
        thread = self._get_thread(thread_id, tenant)
        try:
            if failure_type and participant_key:
                deleted = self.repo.reset_failures_by_type_and_participant(
                    self.db, thread.id, failure_type, participant_key
                )
            elif failure_type:
                deleted = self.repo.reset_failure_by_type(self.db, thread.id, failure_type)
            elif participant_key:
                deleted = self.repo.reset_failures_by_participant(self.db, thread.id, participant_key)
            else:
                deleted = self.repo.reset_failures_by_thread(self.db, thread.id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to reset failures for thread {thread_id}: {e}")
            raise StorageError("Failed to reset failures") from e

        logger.info(
            f"🧹 Reset {deleted} failure rows for thread {thread_id} "
            f"(type={failure_type or '*'}, participant={participant_key or '*'})"
        )
        return deleted

    def get_workspace_stats(self, tenant: Tenant, days: int = 30) -> WorkspaceFailureStats:
        try:
            return self.repo.get_workspace_failure_stats(self.db, tenant.workspace_id, days)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to read failure stats for workspace {tenant.workspace_id}: {e}")
            raise StorageError("Failed to read failure stats") from e
