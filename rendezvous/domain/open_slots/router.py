"""Open slots router - public booking page and organizer management"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...rate_limiter import create_rate_limiter
from ...services.notification_service import (
    EVENT_OPEN_SLOTS_CREATED,
    NotificationEvent,
    NotificationService,
)
from ...tenant import Tenant, get_tenant
from .schemas import (
    CancelOpenSlotsResponse,
    OpenSlotCreateRequest,
    OpenSlotCreateResponse,
    OpenSlotPageResponse,
    SelectSlotRequest,
    SelectSlotResponse,
)
from .service import OpenSlotsService, build_share_url, item_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/open", tags=["Open Slots"])
organizer_router = APIRouter(prefix="/one-on-one/open-slots", tags=["Open Slots"])

open_view_limit = create_rate_limiter(limit=120, window_seconds=60, key_prefix="open_slots_view")
select_limit = create_rate_limiter(limit=20, window_seconds=600, key_prefix="open_slots_select")


def get_open_slots_service(db: Session = Depends(get_db)) -> OpenSlotsService:
    """Dependency injection for OpenSlotsService"""
    return OpenSlotsService(db)


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================


@router.get("/{token}", response_model=OpenSlotPageResponse, dependencies=[Depends(open_view_limit)])
async def get_open_slots(
    token: str,
    service: OpenSlotsService = Depends(get_open_slots_service),
):
    """Available slots of a public page"""
    return service.list_slots(token)


@router.post("/{token}/select", response_model=SelectSlotResponse, dependencies=[Depends(select_limit)])
async def select_open_slot(
    token: str,
    data: SelectSlotRequest,
    background_tasks: BackgroundTasks,
    service: OpenSlotsService = Depends(get_open_slots_service),
):
    """Claim a slot; 409 slot_already_selected when someone got there first"""
    outcome = service.select_slot(token, data.slot_id, data.name, str(data.email))
    NotificationService(service.db).schedule(background_tasks, outcome.workspace_id, outcome.event)
    return outcome.response


# ============================================================================
# ORGANIZER ENDPOINTS
# ============================================================================


@organizer_router.post("", response_model=OpenSlotCreateResponse)
async def create_open_slots(
    data: OpenSlotCreateRequest,
    background_tasks: BackgroundTasks,
    tenant: Tenant = Depends(get_tenant),
    service: OpenSlotsService = Depends(get_open_slots_service),
):
    """Create a public open-slots page directly; a thread with a live page gets that page back"""
    open_slot, created = service.create_open_slots(
        tenant,
        thread_id=data.thread_id,
        invitee_name=data.invitee.name,
        invitee_email=str(data.invitee.email) if data.invitee.email else None,
        constraints=data.constraints,
        title=data.title,
        source="direct",
        expires_in_days=data.expires_in_days,
    )
    share_url = build_share_url(open_slot.token)
    tz = open_slot.thread.timezone
    slots = [item_to_response(item, tz) for item in open_slot.items]

    if created:
        NotificationService(service.db).schedule(
            background_tasks,
            tenant.workspace_id,
            NotificationEvent(
                event_type=EVENT_OPEN_SLOTS_CREATED,
                title=f"Open slots page created for \"{open_slot.title}\"",
                lines=[f"Invitee: {open_slot.invitee_name}", f"{len(slots)} slots"],
                link_url=share_url,
            ),
        )
    return OpenSlotCreateResponse(
        thread_id=open_slot.thread_id,
        open_slots_id=open_slot.id,
        token=open_slot.token,
        share_url=share_url,
        slots_count=len(slots),
        slots=slots,
        expires_at=open_slot.expires_at,
    )


@organizer_router.post("/{token}/cancel", response_model=CancelOpenSlotsResponse)
async def cancel_open_slots(
    token: str,
    tenant: Tenant = Depends(get_tenant),
    service: OpenSlotsService = Depends(get_open_slots_service),
):
    """Withdraw a page; its token then behaves like an unknown one"""
    open_slot = service.cancel(token, tenant)
    return CancelOpenSlotsResponse(status=open_slot.status)


__all__ = ["router", "organizer_router"]
