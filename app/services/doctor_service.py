"""Doctor schedule lookups and slot availability."""

from datetime import date
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.redis_client import CacheManager
from app.core.time_slots import (
    DEFAULT_VISITING_HOURS,
    generate_time_slots,
    normalize_blocked_dates,
    time_to_minutes,
    weekday_name,
)
from app.models.appointments import slot_locks
from app.models.doctors import doctors
from app.schemas.schedule import AvailableSlotsResponse, SlotCheckResponse
from app.services.slot_ledger import Slot, SlotLedger

logger = structlog.get_logger(__name__)


class DoctorScheduleService:
    """Read side of doctor availability."""

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with database session and optional cache manager."""
        self.db = db
        self.cache = cache_manager

    @staticmethod
    def schedule_cache_key(doctor_id: str) -> str:
        """Generate cache key for a doctor's schedule."""
        return f"doctor:schedule:{doctor_id}"

    @classmethod
    async def invalidate(cls, cache_manager: CacheManager | None, doctor_id: str) -> None:
        """Drop a cached schedule after it changed."""
        if cache_manager:
            await cache_manager.delete(cls.schedule_cache_key(doctor_id))

    async def get_schedule(self, doctor_id: str) -> dict[str, Any]:
        """
        Get a doctor's visiting hours and normalized blocked dates.

        Doctors without stored visiting hours get the clinic defaults.
        """
        if self.cache:
            cached = await self.cache.get_json(self.schedule_cache_key(doctor_id))
            if cached:
                return cached

        result = await self.db.execute(
            select(doctors.c.visiting_hours, doctors.c.blocked_dates).where(
                doctors.c.id == doctor_id
            )
        )
        row = result.fetchone()

        schedule = {
            "doctor_id": doctor_id,
            "visiting_hours": (row.visiting_hours if row else None) or DEFAULT_VISITING_HOURS,
            "blocked_dates": normalize_blocked_dates(row.blocked_dates if row else None),
        }

        if self.cache:
            await self.cache.set_json(
                self.schedule_cache_key(doctor_id),
                schedule,
                ttl=settings.doctor_schedule_cache_ttl,
            )

        return schedule

    async def check_slot(self, doctor_id: str, day: date, time: str) -> SlotCheckResponse:
        """Report whether a slot is currently free. Read-only; booking can still lose the race."""
        slot = Slot.of(doctor_id, day, time)
        holder = await SlotLedger(self.db).holder(slot.key)
        return SlotCheckResponse(
            doctor_id=doctor_id,
            date=day,
            time=slot.appointment_time,
            slot_key=slot.key,
            available=holder is None,
        )

    async def available_slots(self, doctor_id: str, day: date) -> AvailableSlotsResponse:
        """
        List free slot start times for a doctor on a day.

        A held slot at ``t`` hides every generated slot in ``[t, t + duration)``.
        """
        schedule = await self.get_schedule(doctor_id)
        if day.isoformat() in schedule["blocked_dates"]:
            return AvailableSlotsResponse(doctor_id=doctor_id, date=day, blocked=True, slots=[])

        duration = settings.slot_duration_minutes
        day_schedule = schedule["visiting_hours"].get(weekday_name(day))
        candidates = generate_time_slots(day_schedule, duration)

        result = await self.db.execute(
            select(slot_locks.c.appointment_time).where(
                slot_locks.c.doctor_id == doctor_id,
                slot_locks.c.appointment_date == day,
            )
        )
        held = [time_to_minutes(value) for value in result.scalars().all()]

        free = [
            candidate
            for candidate in candidates
            if not any(start <= time_to_minutes(candidate) < start + duration for start in held)
        ]
        return AvailableSlotsResponse(doctor_id=doctor_id, date=day, blocked=False, slots=free)
