"""Open slots service - public booking fallback and single-winner slot claims"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import (
    DEFAULT_TIMEZONE,
    FRONTEND_URL,
    OPEN_SLOTS_MAX_PER_DAY,
    OPEN_SLOTS_MAX_TOTAL,
    OPEN_SLOTS_TTL_DAYS,
    OPEN_SLOTS_WINDOW_DAYS,
)
from ...errors import ConflictError, NotFoundError, StorageError, ValidationError
from ...models import (
    CLOSED_THREAD_STATUSES,
    OpenSlot,
    OpenSlotItem,
    SchedulingSlot,
    SchedulingThread,
    utcnow,
)
from ...security_utils import generate_secure_token
from ...services.notification_service import (
    EVENT_OPEN_SLOT_BOOKED,
    NotificationEvent,
)
from ...tenant import Tenant
from ..failures.repository import ThreadFailuresRepository
from ..scheduling.repository import SchedulingRepository
from ..scheduling.slot_generator import (
    Interval,
    format_slot_label,
    generate_available_slots,
    get_time_window,
    local_midnight_utc,
    to_local,
)
from .repository import OpenSlotsRepository
from .schemas import (
    OpenSlotConstraints,
    OpenSlotItemResponse,
    OpenSlotPageResponse,
    SelectSlotResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Meeting"
BUSINESS_DAY_START_HOUR = 9


def build_share_url(token: str) -> str:
    return f"{FRONTEND_URL.rstrip('/')}/open/{token}"


def next_business_day_start(now: datetime, tz: str) -> datetime:
    """09:00 local on the next weekday after now, as naive UTC"""
    day = to_local(now, tz).date() + timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return local_midnight_utc(day, tz) + timedelta(hours=BUSINESS_DAY_START_HOUR)


def _naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def item_to_response(item: OpenSlotItem, tz: str) -> OpenSlotItemResponse:
    return OpenSlotItemResponse(
        id=item.id,
        start_at=item.start_at,
        end_at=item.end_at,
        label=format_slot_label(item.start_at, item.end_at, tz),
    )


@dataclass
class SelectOutcome:
    response: SelectSlotResponse
    workspace_id: str
    event: NotificationEvent


class OpenSlotsService:
    """Service layer for open-slots pages"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = OpenSlotsRepository()
        self.scheduling_repo = SchedulingRepository()
        self.failures_repo = ThreadFailuresRepository()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def build_open_slots(
        self,
        workspace_id: str,
        owner_user_id: str,
        invitee_name: str,
        invitee_email: Optional[str] = None,
        thread: Optional[SchedulingThread] = None,
        constraints: Optional[OpenSlotConstraints] = None,
        title: Optional[str] = None,
        source: str = "direct",
        expires_in_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> OpenSlot:
        """Generate the slot list and stage the page in the current transaction

        Raises ConflictError("no_available_slots") when nothing fits.
        """
        now = now or utcnow()
        constraints = constraints or OpenSlotConstraints()
        tz = thread.timezone if thread else DEFAULT_TIMEZONE

        time_min = _naive_utc(constraints.time_min) or next_business_day_start(now, tz)
        time_max = _naive_utc(constraints.time_max) or now + timedelta(days=OPEN_SLOTS_WINDOW_DAYS)
        time_min = max(time_min, now)
        if time_max <= time_min:
            raise ValidationError("The search period must end after it starts")

        busy = [
            Interval(b.start_at, b.end_at)
            for b in self.scheduling_repo.get_confirmed_bookings(self.db, owner_user_id, time_min, time_max)
        ]
        slots = generate_available_slots(
            time_min=time_min,
            time_max=time_max,
            busy=busy,
            meeting_length_min=constraints.duration,
            step_min=constraints.slot_interval,
            max_results=OPEN_SLOTS_MAX_TOTAL,
            day_time_window=get_time_window(constraints.prefer),
            days=constraints.days,
            timezone_name=tz,
            max_per_day=OPEN_SLOTS_MAX_PER_DAY,
        )
        if not slots:
            logger.warning(
                f"⚠️ No open slots between {time_min} and {time_max} for user {owner_user_id} "
                f"(prefer={constraints.prefer}, days={constraints.days})"
            )
            raise ConflictError(
                "no_available_slots",
                "No free time was found in the requested period. Try widening the time of day, weekdays or period.",
            )

        new_thread = thread is None
        if new_thread:
            thread = self.scheduling_repo.create_thread(
                self.db,
                workspace_id=workspace_id,
                organizer_user_id=owner_user_id,
                title=title or DEFAULT_TITLE,
                status="draft",
                slot_policy="open_slots",
                timezone=tz,
                duration_minutes=constraints.duration,
            )

        open_slot = self.repo.create(
            self.db,
            slots,
            thread_id=thread.id,
            token=generate_secure_token(24),
            workspace_id=workspace_id,
            owner_user_id=owner_user_id,
            time_min=time_min,
            time_max=time_max,
            duration_minutes=constraints.duration,
            prefer=constraints.prefer,
            days=constraints.days,
            slot_interval_minutes=constraints.slot_interval,
            title=title or thread.title,
            invitee_name=invitee_name,
            invitee_email=invitee_email,
            status="active",
            source=source,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(days=expires_in_days or OPEN_SLOTS_TTL_DAYS),
        )
        if new_thread:
            thread.current_open_slot_id = open_slot.id
        logger.info(
            f"📅 Open slots created: thread={thread.id} items={len(slots)} source={source} "
            f"expires_at={open_slot.expires_at.isoformat()}"
        )
        return open_slot

    def open_for_thread(
        self, thread: SchedulingThread, now: datetime, **build_kwargs
    ) -> tuple[OpenSlot, bool]:
        """The thread's live page, or a new one published under a guarded swap

        Returns (page, created). Must run before anything else is staged in
        the transaction: a request that loses the swap rolls back and gets the
        winner's page instead.
        """
        current = self.scheduling_repo.get_current_open_slot(self.db, thread.id)
        if current is not None and current.status == "active" and current.expires_at > now:
            return current, False
        if thread.status in CLOSED_THREAD_STATUSES:
            raise ConflictError("thread_closed", f"This scheduling thread is already {thread.status}")

        expected_id = current.id if current is not None else None
        open_slot = self.build_open_slots(
            thread.workspace_id, thread.organizer_user_id, thread=thread, now=now, **build_kwargs
        )
        if self.scheduling_repo.swap_open_slot(self.db, thread.id, expected_id, open_slot.id):
            return open_slot, True

        thread_id = thread.id
        self.db.rollback()
        winner = self.scheduling_repo.get_current_open_slot(self.db, thread_id)
        if winner is None or winner.id == expected_id:
            raise ConflictError("thread_closed", "This scheduling thread is already closed")
        logger.info(f"🔒 Thread {thread_id} already has open slots {winner.id}, reusing it")
        return winner, False

    def create_open_slots(
        self, tenant: Tenant, thread_id: Optional[str] = None, now: Optional[datetime] = None, **kwargs
    ) -> tuple[OpenSlot, bool]:
        """Direct creation by the organizer, committed on return

        An existing thread keeps its live page; (page, False) is returned then.
        """
        now = now or utcnow()
        thread = None
        if thread_id:
            thread = self.scheduling_repo.get_thread(self.db, thread_id, tenant.workspace_id)
            if not thread:
                raise NotFoundError("Thread not found")
        try:
            if thread is None:
                open_slot = self.build_open_slots(tenant.workspace_id, tenant.user_id, now=now, **kwargs)
                created = True
            else:
                open_slot, created = self.open_for_thread(thread, now, **kwargs)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create open slots: {e}")
            raise StorageError("Failed to create open slots") from e
        self.db.refresh(open_slot)
        return open_slot, created

    # ------------------------------------------------------------------
    # Public page
    # ------------------------------------------------------------------

    def _get_live_page(self, token: str, now: datetime) -> OpenSlot:
        """Page for a public token; unknown, cancelled and expired look the same"""
        open_slot = self.repo.get_by_token(self.db, token)
        if not open_slot or open_slot.status in ("cancelled", "expired"):
            raise NotFoundError()
        if open_slot.status == "active" and open_slot.expires_at <= now:
            raise NotFoundError()
        return open_slot

    def list_slots(self, token: str, now: Optional[datetime] = None) -> OpenSlotPageResponse:
        now = now or utcnow()
        open_slot = self._get_live_page(token, now)
        tz = open_slot.thread.timezone if open_slot.thread else DEFAULT_TIMEZONE
        items = self.repo.get_available_items(self.db, open_slot.id) if open_slot.status == "active" else []

        return OpenSlotPageResponse(
            token=open_slot.token,
            title=open_slot.title,
            status=open_slot.status,
            invitee_name=open_slot.invitee_name,
            duration_minutes=open_slot.duration_minutes,
            timezone=tz,
            expires_at=open_slot.expires_at,
            slots=[item_to_response(item, tz) for item in items],
        )

    def select_slot(
        self, token: str, slot_id: str, name: str, email: str, now: Optional[datetime] = None
    ) -> SelectOutcome:
        """Claim one item. The first claim wins, every later claim is a conflict."""
        now = now or utcnow()
        open_slot = self._get_live_page(token, now)
        open_slot_id = open_slot.id

        try:
            if not self.repo.claim_item(self.db, open_slot_id, slot_id, name, email, now):
                self.db.rollback()
                if self.repo.get_item(self.db, open_slot_id, slot_id) is None:
                    raise NotFoundError("Slot not found")
                logger.info(f"🔒 Slot {slot_id} already selected (open_slots={open_slot_id})")
                raise ConflictError("slot_already_selected", "This slot has already been selected")

            if not self.repo.transition_status(self.db, open_slot_id, "active", "completed", now):
                # Another slot on the same page won
                self.db.rollback()
                logger.info(f"🔒 Open slots {open_slot_id} already completed")
                raise ConflictError("slot_already_selected", "This page has already been booked")

            self.repo.disable_available_items(self.db, open_slot_id)
            item = self.repo.get_item(self.db, open_slot_id, slot_id)
            thread = open_slot.thread
            if not self._finalize_thread(thread, item, now):
                # Booked through another page or closed by the organizer
                self.db.rollback()
                logger.info(f"🔒 Thread {open_slot.thread_id} already closed, booking on {open_slot_id} refused")
                raise ConflictError("slot_already_selected", "This meeting has already been booked")

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to select slot {slot_id}: {e}")
            raise StorageError("Failed to select slot") from e

        tz = thread.timezone if thread is not None else DEFAULT_TIMEZONE
        slot = item_to_response(item, tz)
        logger.info(f"✅ Open slot booked: open_slots={open_slot_id} item={slot_id} by {email}")

        event = NotificationEvent(
            event_type=EVENT_OPEN_SLOT_BOOKED,
            title=f"{name} booked \"{open_slot.title or DEFAULT_TITLE}\"",
            lines=[slot.label, email],
        )
        return SelectOutcome(
            response=SelectSlotResponse(
                redirect_url=f"{build_share_url(token)}/thanks",
                slot=slot,
            ),
            workspace_id=open_slot.workspace_id,
            event=event,
        )

    def _finalize_thread(self, thread: SchedulingThread, item: OpenSlotItem, now: datetime) -> bool:
        final_slot = SchedulingSlot(
            thread_id=thread.id,
            start_at=item.start_at,
            end_at=item.end_at,
            timezone=thread.timezone,
            label=format_slot_label(item.start_at, item.end_at, thread.timezone),
            proposal_version=thread.proposal_version,
        )
        self.db.add(final_slot)
        self.db.flush()

        if not self.scheduling_repo.finalize_thread(self.db, thread.id, final_slot.id, now):
            return False
        deleted = self.failures_repo.reset_failures_by_thread(self.db, thread.id)
        logger.info(f"🎉 Thread {thread.id} confirmed via open slots ({deleted} failure rows cleared)")
        return True

    # ------------------------------------------------------------------
    # Organizer
    # ------------------------------------------------------------------

    def cancel(self, token: str, tenant: Tenant, now: Optional[datetime] = None) -> OpenSlot:
        now = now or utcnow()
        open_slot = self.repo.get_by_token(self.db, token)
        if not open_slot or open_slot.workspace_id != tenant.workspace_id:
            raise NotFoundError("Open slots page not found")

        try:
            if not self.repo.transition_status(self.db, open_slot.id, "active", "cancelled", now):
                self.db.rollback()
                raise ConflictError("not_active", f"Open slots page is {open_slot.status}")
            self.repo.disable_available_items(self.db, open_slot.id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to cancel open slots {open_slot.id}: {e}")
            raise StorageError("Failed to cancel open slots") from e

        self.db.refresh(open_slot)
        logger.info(f"🛑 Open slots {open_slot.id} cancelled by {tenant.user_id}")
        return open_slot
