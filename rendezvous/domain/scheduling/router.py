"""Scheduling router - public invite links and organizer one-on-one threads"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...rate_limiter import create_rate_limiter
from ...services.notification_service import NotificationService
from ...tenant import Tenant, get_tenant
from .reproposal import ReproposalService
from .schemas import (
    InviteViewResponse,
    ReproposalResult,
    RequestAlternateRequest,
    ThreadCreateRequest,
    ThreadCreateResponse,
    ThreadDetailResponse,
)
from .service import SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Invites"])
threads_router = APIRouter(prefix="/one-on-one/threads", tags=["One-on-one"])

invite_view_limit = create_rate_limiter(limit=120, window_seconds=60, key_prefix="invite_view")
request_alternate_limit = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="request_alternate")


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    """Dependency injection for SchedulingService"""
    return SchedulingService(db)


def get_reproposal_service(db: Session = Depends(get_db)) -> ReproposalService:
    """Dependency injection for ReproposalService"""
    return ReproposalService(db)


# ============================================================================
# PUBLIC INVITE ENDPOINTS
# ============================================================================


@router.get("/i/{token}", response_model=InviteViewResponse, dependencies=[Depends(invite_view_limit)])
async def get_invite(
    token: str,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Invite page data: current proposal and remaining re-proposals"""
    return service.get_invite_view(token)


@router.post(
    "/i/{token}/request-alternate",
    response_model=ReproposalResult,
    response_model_exclude_none=True,
    dependencies=[Depends(request_alternate_limit)],
)
async def request_alternate(
    token: str,
    data: RequestAlternateRequest,
    background_tasks: BackgroundTasks,
    service: ReproposalService = Depends(get_reproposal_service),
):
    """Ask for other dates; escalates to an open-slots page once the budget is spent"""
    outcome = service.request_alternate(token, data)
    if outcome.event:
        NotificationService(service.db).schedule(background_tasks, outcome.workspace_id, outcome.event)
    return outcome.result


# ============================================================================
# ORGANIZER THREADS
# ============================================================================


@threads_router.post("", response_model=ThreadCreateResponse)
async def create_thread(
    data: ThreadCreateRequest,
    tenant: Tenant = Depends(get_tenant),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Create a one-on-one thread, its invite link and the first proposal"""
    return service.create_thread(data, tenant)


@threads_router.get("/{thread_id}", response_model=ThreadDetailResponse)
async def get_thread(
    thread_id: str,
    tenant: Tenant = Depends(get_tenant),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Thread state with counters, failure summary and escalation preview"""
    return service.get_thread_detail(thread_id, tenant)


__all__ = ["router", "threads_router"]
