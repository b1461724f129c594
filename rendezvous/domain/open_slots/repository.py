"""Open slots repository - public booking pages and their items"""

from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from ...models import OpenSlot, OpenSlotItem


class OpenSlotsRepository:
    """Writes are flushed, never committed; the calling service owns the transaction."""

    @staticmethod
    def get_by_token(db: Session, token: str) -> Optional[OpenSlot]:
        return (
            db.query(OpenSlot)
            .options(joinedload(OpenSlot.thread))
            .filter(OpenSlot.token == token)
            .first()
        )

    @staticmethod
    def get_item(db: Session, open_slot_id: str, item_id: str) -> Optional[OpenSlotItem]:
        return (
            db.query(OpenSlotItem)
            .filter(OpenSlotItem.id == item_id, OpenSlotItem.open_slot_id == open_slot_id)
            .populate_existing()
            .first()
        )

    @staticmethod
    def get_available_items(db: Session, open_slot_id: str) -> list[OpenSlotItem]:
        return (
            db.query(OpenSlotItem)
            .filter(OpenSlotItem.open_slot_id == open_slot_id, OpenSlotItem.status == "available")
            .order_by(OpenSlotItem.start_at)
            .all()
        )

    @staticmethod
    def create(db: Session, slots: list, **open_slot_data) -> OpenSlot:
        """Insert the page and one available item per generated slot"""
        open_slot = OpenSlot(**open_slot_data)
        open_slot.items = [
            OpenSlotItem(start_at=slot.start_at, end_at=slot.end_at, status="available") for slot in slots
        ]
        db.add(open_slot)
        db.flush()
        return open_slot

    @staticmethod
    def claim_item(
        db: Session, open_slot_id: str, item_id: str, name: str, email: str, now: datetime
    ) -> bool:
        """available → selected, only if still available. False means someone else won."""
        result = db.execute(
            update(OpenSlotItem)
            .where(
                OpenSlotItem.id == item_id,
                OpenSlotItem.open_slot_id == open_slot_id,
                OpenSlotItem.status == "available",
            )
            .values(
                status="selected",
                selected_at=now,
                selected_by_name=name,
                selected_by_email=email,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def transition_status(
        db: Session, open_slot_id: str, from_status: str, to_status: str, now: datetime
    ) -> bool:
        """Guarded page status change"""
        result = db.execute(
            update(OpenSlot)
            .where(OpenSlot.id == open_slot_id, OpenSlot.status == from_status)
            .values(status=to_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def disable_available_items(db: Session, open_slot_id: str) -> int:
        return db.execute(
            update(OpenSlotItem)
            .where(OpenSlotItem.open_slot_id == open_slot_id, OpenSlotItem.status == "available")
            .values(status="disabled")
            .execution_options(synchronize_session=False)
        ).rowcount

    @staticmethod
    def expire_active_before(db: Session, now: datetime) -> int:
        """active pages past expires_at → expired"""
        return db.execute(
            update(OpenSlot)
            .where(OpenSlot.status == "active", OpenSlot.expires_at <= now)
            .values(status="expired", updated_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
