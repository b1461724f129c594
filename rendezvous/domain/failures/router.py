"""Failure router - internal/admin endpoints for thread failures"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...tenant import Tenant, get_tenant
from .schemas import (
    FailureRecordRequest,
    FailureResetResponse,
    FailureResponse,
    FailureSummary,
    FailureType,
    WorkspaceFailureStats,
)
from .service import FailureService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Failures"])


def get_failure_service(db: Session = Depends(get_db)) -> FailureService:
    """Dependency injection for FailureService"""
    return FailureService(db)


# ============================================================================
# THREAD FAILURES
# ============================================================================


@router.get("/threads/{thread_id}/failures", response_model=FailureSummary)
async def get_thread_failures(
    thread_id: str,
    tenant: Tenant = Depends(get_tenant),
    service: FailureService = Depends(get_failure_service),
):
    """Failure summary with escalation level for a thread"""
    return service.get_summary(thread_id, tenant)


@router.post("/threads/{thread_id}/failures", response_model=FailureResponse)
async def record_thread_failure(
    thread_id: str,
    data: FailureRecordRequest,
    tenant: Tenant = Depends(get_tenant),
    service: FailureService = Depends(get_failure_service),
):
    """Record a failure reported by the organizer"""
    return service.record_failure(thread_id, data, tenant)


@router.delete("/threads/{thread_id}/failures", response_model=FailureResetResponse)
async def reset_thread_failures(
    thread_id: str,
    failure_type: Optional[FailureType] = Query(None),
    participant_key: Optional[str] = Query(None),
    tenant: Tenant = Depends(get_tenant),
    service: FailureService = Depends(get_failure_service),
):
    """Clear failures by type / participant, or all of them"""
    deleted = service.reset(thread_id, tenant, failure_type, participant_key)
    return FailureResetResponse(deleted=deleted)


# ============================================================================
# WORKSPACE STATS
# ============================================================================


@router.get("/failures/stats", response_model=WorkspaceFailureStats)
async def get_failure_stats(
    days: int = Query(30, ge=1, le=365),
    tenant: Tenant = Depends(get_tenant),
    service: FailureService = Depends(get_failure_service),
):
    """Workspace failure totals over the trailing window"""
    return service.get_workspace_stats(tenant, days)


__all__ = ["router"]
