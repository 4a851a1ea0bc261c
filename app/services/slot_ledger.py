"""Slot ledger: exclusive ownership of a doctor's (date, time) slot."""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from uuid import UUID

import structlog
from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.time_slots import normalize_time, slot_key
from app.models.appointments import slot_locks

logger = structlog.get_logger(__name__)


class SlotOutcome(str, Enum):
    """Result of an acquire or move."""

    ACQUIRED = "acquired"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class Slot:
    """A doctor's bookable (date, time) with its derived lock key."""

    doctor_id: str
    appointment_date: date
    appointment_time: str

    @classmethod
    def of(cls, doctor_id: str, appointment_date: date, appointment_time: str) -> "Slot":
        """Build a slot, normalizing the time and validating the key parts."""
        normalized = normalize_time(appointment_time)
        slot = cls(doctor_id, appointment_date, normalized)
        # Raises InvalidSlotException for missing parts
        slot_key(doctor_id, appointment_date, normalized)
        return slot

    @property
    def key(self) -> str:
        """Deterministic lock key for this slot."""
        return slot_key(self.doctor_id, self.appointment_date, self.appointment_time)


class SlotLedger:
    """
    Owns the slot lock keyspace.

    Every method executes on the caller's session, so lock writes commit or
    roll back together with the caller's appointment writes. Nothing here
    commits, and conflicts are returned rather than retried.
    """

    def __init__(self, db: AsyncSession):
        """Initialize ledger with the caller's database session."""
        self.db = db

    async def holder(self, key: str) -> UUID | None:
        """Return the appointment currently holding ``key``, if any."""
        result = await self.db.execute(
            select(slot_locks.c.appointment_id).where(slot_locks.c.key == key)
        )
        return result.scalar_one_or_none()

    async def try_acquire(self, slot: Slot, appointment_id: UUID) -> SlotOutcome:
        """
        Claim a free slot for an appointment.

        Args:
            slot: Slot to claim
            appointment_id: Appointment that will own the lock

        Returns:
            ACQUIRED if the lock row was written, CONFLICT if the slot is held
        """
        key = slot.key
        if await self.holder(key) is not None:
            logger.info("slot_conflict", slot_key=key, appointment_id=str(appointment_id))
            return SlotOutcome.CONFLICT

        return await self._write(slot, appointment_id)

    async def move(
        self,
        old_slot: Slot | None,
        new_slot: Slot,
        appointment_id: UUID,
    ) -> SlotOutcome:
        """
        Move an appointment's lock from ``old_slot`` to ``new_slot``.

        The old lock is only removed when this appointment owns it. When
        ``old_slot`` is None the release step is skipped and the new slot
        must still be acquired.
        """
        new_key = new_slot.key
        if old_slot is not None and old_slot.key == new_key:
            if await self.holder(new_key) == appointment_id:
                return SlotOutcome.ACQUIRED
            return await self.try_acquire(new_slot, appointment_id)

        current = await self.holder(new_key)
        if current is not None:
            logger.info(
                "slot_conflict",
                slot_key=new_key,
                appointment_id=str(appointment_id),
                holder=str(current),
            )
            return SlotOutcome.CONFLICT

        if old_slot is not None:
            await self.release(old_slot.key, appointment_id)

        return await self._write(new_slot, appointment_id)

    async def release(self, key: str, appointment_id: UUID | None = None) -> bool:
        """
        Delete a slot lock. Releasing an absent key is a no-op.

        When ``appointment_id`` is given only a lock owned by that appointment
        is removed, so a stale release never frees a slot someone else rebooked.

        Returns:
            True if a lock row was deleted
        """
        stmt = delete(slot_locks).where(slot_locks.c.key == key)
        if appointment_id is not None:
            stmt = stmt.where(slot_locks.c.appointment_id == appointment_id)

        result = await self.db.execute(stmt)
        released = bool(result.rowcount)
        logger.debug("slot_released", slot_key=key, released=released)
        return released

    async def _write(self, slot: Slot, appointment_id: UUID) -> SlotOutcome:
        try:
            await self.db.execute(
                insert(slot_locks).values(
                    key=slot.key,
                    appointment_id=appointment_id,
                    doctor_id=slot.doctor_id,
                    appointment_date=slot.appointment_date,
                    appointment_time=slot.appointment_time,
                    created_at=datetime.now(UTC),
                )
            )
        except IntegrityError:
            # Lost the race to a transaction that committed after our read
            logger.info(
                "slot_conflict",
                slot_key=slot.key,
                appointment_id=str(appointment_id),
                detected_by="unique_constraint",
            )
            return SlotOutcome.CONFLICT
        return SlotOutcome.ACQUIRED
