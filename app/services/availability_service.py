"""Availability change processor: approve doctor schedule changes and cascade conflicts."""

from collections.abc import Callable
from datetime import date, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import RequestNotFoundException, RequestNotPendingException
from app.core.redis_client import CacheManager
from app.core.time_slots import chunked, normalize_blocked_dates
from app.database import transaction
from app.models.appointments import appointments
from app.models.doctors import doctors, schedule_change_requests
from app.models.notifications import appointment_change_events, notifications
from app.schemas.appointments import AppointmentStatus
from app.schemas.auth import Actor
from app.schemas.schedule import (
    ScheduleApprovalResponse,
    ScheduleRequestStatus,
    ScheduleRequestType,
)
from app.services.booking_service import utcnow
from app.services.doctor_service import DoctorScheduleService
from app.services.notification_service import change_event_values, notification_values

logger = structlog.get_logger(__name__)

LEAVE_CONFLICT_EVENT = "doctor_leave_conflict"


def schedule_parts(request_type: ScheduleRequestType) -> tuple[bool, bool]:
    """Return (apply visiting hours, apply blocked dates) for a request type."""
    if request_type is ScheduleRequestType.VISITING_HOURS:
        return True, False
    if request_type is ScheduleRequestType.BLOCKED_DATES:
        return False, True
    if request_type is ScheduleRequestType.BOTH:
        return True, True
    raise ValueError(f"Unhandled schedule request type: {request_type}")


def parse_blocked_days(entries: list[Any] | None) -> list[date]:
    """Blocked date entries as calendar dates; unreadable entries are logged and skipped."""
    days: list[date] = []
    for value in normalize_blocked_dates(entries):
        try:
            days.append(date.fromisoformat(value))
        except ValueError:
            logger.warning("blocked_date_unparseable", value=value)
    return days


class AvailabilityChangeProcessor:
    """
    Drives a schedule change request from ``pending`` to ``approved``.

    Applying the schedule, moving conflicting bookings to
    ``awaiting_reschedule``, writing their change events and patient
    notifications, and finalizing the request all commit as one transaction.
    Conflicting bookings are never cancelled automatically.
    """

    def __init__(
        self,
        db: AsyncSession,
        cache_manager: CacheManager | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize processor with database session and optional cache manager."""
        self.db = db
        self.cache = cache_manager
        self.clock = clock

    async def find_conflicts(self, doctor_id: str, blocked_days: list[date]) -> list[Any]:
        """
        Confirmed appointments for a doctor on any of the blocked days.

        Dates are looked up in chunks so no single IN (...) exceeds the
        configured arity.
        """
        conflicts: list[Any] = []
        for chunk in chunked(blocked_days, settings.blocked_dates_query_chunk):
            result = await self.db.execute(
                select(
                    appointments.c.id,
                    appointments.c.patient_id,
                    appointments.c.doctor_name,
                    appointments.c.appointment_date,
                    appointments.c.appointment_time,
                )
                .where(
                    appointments.c.doctor_id == doctor_id,
                    appointments.c.status == AppointmentStatus.CONFIRMED.value,
                    appointments.c.appointment_date.in_(chunk),
                )
                .order_by(appointments.c.appointment_date, appointments.c.appointment_time)
            )
            conflicts.extend(result.fetchall())
        return conflicts

    async def _apply_schedule(self, request: Any, now: datetime) -> tuple[bool, bool]:
        apply_hours, apply_blocked = schedule_parts(ScheduleRequestType(request.request_type))

        values: dict[str, Any] = {"updated_at": now}
        if apply_hours:
            values["visiting_hours"] = request.visiting_hours
        if apply_blocked:
            values["blocked_dates"] = request.blocked_dates or []

        result = await self.db.execute(
            update(doctors).where(doctors.c.id == request.doctor_id).values(**values)
        )
        if not result.rowcount:
            await self.db.execute(
                insert(doctors).values(id=request.doctor_id, created_at=now, **values)
            )
        return apply_hours, apply_blocked

    async def _hold_for_reschedule(
        self,
        appointment: Any,
        request_id: UUID,
        doctor_id: str,
        now: datetime,
    ) -> bool:
        # Re-validate: only rows still confirmed in the scanned slot are moved
        result = await self.db.execute(
            update(appointments)
            .where(
                appointments.c.id == appointment.id,
                appointments.c.status == AppointmentStatus.CONFIRMED.value,
                appointments.c.appointment_date == appointment.appointment_date,
                appointments.c.appointment_time == appointment.appointment_time,
            )
            .values(
                status=AppointmentStatus.AWAITING_RESCHEDULE.value,
                cancellation_reason="doctor_unavailable",
                affected_by_leave_request_id=str(request_id),
                conflict_detected_at=now,
                updated_at=now,
            )
        )
        if not result.rowcount:
            logger.info(
                "leave_conflict_skipped",
                appointment_id=str(appointment.id),
                request_id=str(request_id),
                reason="changed_since_scan",
            )
            return False

        await self.db.execute(
            insert(appointment_change_events).values(
                **change_event_values(
                    LEAVE_CONFLICT_EVENT,
                    appointment.id,
                    doctor_id=doctor_id,
                    patient_id=appointment.patient_id,
                    request_id=str(request_id),
                    prev_status=AppointmentStatus.CONFIRMED.value,
                    next_status=AppointmentStatus.AWAITING_RESCHEDULE.value,
                    created_at=now,
                )
            )
        )

        if appointment.patient_id:
            doctor_name = appointment.doctor_name or ""
            await self.db.execute(
                insert(notifications).values(
                    **notification_values(
                        appointment.patient_id,
                        "Appointment affected by doctor leave",
                        f"Your appointment with Dr. {doctor_name} on "
                        f"{appointment.appointment_date.isoformat()} is awaiting reschedule. "
                        "Please reschedule.",
                        appointment_id=appointment.id,
                        notification_type="warning",
                        created_at=now,
                    )
                )
            )
        return True

    async def approve(self, request_id: UUID, approver: Actor) -> ScheduleApprovalResponse:
        """
        Approve a pending schedule change request.

        Args:
            request_id: Schedule change request ID
            approver: Admin approving the request

        Returns:
            Conflict counters for the approval

        Raises:
            RequestNotFoundException: If the request does not exist
            RequestNotPendingException: If the request was already approved
        """
        now = self.clock()

        async with transaction(self.db):
            result = await self.db.execute(
                select(schedule_change_requests)
                .where(schedule_change_requests.c.id == request_id)
                .with_for_update()
            )
            request = result.fetchone()
            if request is None:
                raise RequestNotFoundException()
            if ScheduleRequestStatus(request.status) is not ScheduleRequestStatus.PENDING:
                raise RequestNotPendingException()

            doctor_id = request.doctor_id
            _, apply_blocked = await self._apply_schedule(request, now)

            conflicts: list[Any] = []
            if apply_blocked:
                blocked_days = parse_blocked_days(request.blocked_dates)
                if blocked_days:
                    conflicts = await self.find_conflicts(doctor_id, blocked_days)

            awaiting_count = 0
            for appointment in conflicts:
                if await self._hold_for_reschedule(appointment, request_id, doctor_id, now):
                    awaiting_count += 1

            await self.db.execute(
                update(schedule_change_requests)
                .where(schedule_change_requests.c.id == request_id)
                .values(
                    status=ScheduleRequestStatus.APPROVED.value,
                    approved_at=now,
                    approved_by=approver.id,
                    conflicts_detected=awaiting_count,
                    awaiting_count=awaiting_count,
                    cancelled_count=0,
                    updated_at=now,
                )
            )

        await DoctorScheduleService.invalidate(self.cache, doctor_id)

        logger.info(
            "schedule_request_approved",
            request_id=str(request_id),
            doctor_id=doctor_id,
            request_type=request.request_type,
            scanned=len(conflicts),
            awaiting_count=awaiting_count,
        )

        return ScheduleApprovalResponse(
            request_id=request_id,
            status=ScheduleRequestStatus.APPROVED,
            conflicts=awaiting_count,
            awaiting_count=awaiting_count,
            cancelled_count=0,
        )
