"""Booking service: create and reschedule appointments against the slot ledger."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AppointmentNotFoundException,
    BadRequestException,
    ForbiddenException,
    InvalidSlotException,
    InvalidStatusTransitionException,
    NotAppointmentOwnerException,
    SlotAlreadyBookedException,
)
from app.database import transaction
from app.models.appointments import appointments
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentCreatedResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
)
from app.schemas.auth import Actor, ActorRole
from app.services.slot_ledger import Slot, SlotLedger, SlotOutcome

logger = structlog.get_logger(__name__)

RESCHEDULABLE_STATUSES = frozenset(
    {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.AWAITING_RESCHEDULE,
        AppointmentStatus.DOCTOR_CANCELLED,
    }
)


def utcnow() -> datetime:
    """Current time, timezone-aware."""
    return datetime.now(UTC)


async def fetch_appointment(
    db: AsyncSession,
    appointment_id: UUID,
    *,
    for_update: bool = False,
) -> Any:
    """
    Load one appointment row.

    With ``for_update`` the row stays locked until the surrounding
    transaction ends, serializing concurrent status changes.

    Raises:
        AppointmentNotFoundException: If no such appointment exists
    """
    stmt = select(appointments).where(appointments.c.id == appointment_id)
    if for_update:
        stmt = stmt.with_for_update()

    result = await db.execute(stmt)
    row = result.fetchone()
    if row is None:
        raise AppointmentNotFoundException()
    return row


def current_slot(row: Any) -> Slot | None:
    """Slot held by an appointment row, or None when its stored slot is unreadable."""
    try:
        return Slot.of(row.doctor_id, row.appointment_date, row.appointment_time)
    except InvalidSlotException:
        logger.warning(
            "appointment_slot_underivable",
            appointment_id=str(row.id),
            doctor_id=row.doctor_id,
            appointment_date=str(row.appointment_date),
            appointment_time=row.appointment_time,
        )
        return None


@dataclass(frozen=True)
class RescheduleResult:
    """Outcome of a successful reschedule."""

    appointment: AppointmentResponse
    previous_status: AppointmentStatus
    previous_slot_key: str | None
    slot_key: str


class BookingService:
    """Service for creating and moving bookings."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        """Initialize service with database session."""
        self.db = db
        self.ledger = SlotLedger(db)
        self.clock = clock

    @staticmethod
    def _resolve_patient(actor: Actor, data: AppointmentCreate) -> str:
        if actor.role is ActorRole.PATIENT:
            if data.patient_id and data.patient_id != actor.id:
                raise ForbiddenException("Patients can only book for themselves")
            return actor.id
        if not data.patient_id:
            raise BadRequestException("patient_id is required when booking on behalf of a patient")
        return data.patient_id

    async def create_appointment(
        self,
        actor: Actor,
        data: AppointmentCreate,
    ) -> AppointmentCreatedResponse:
        """
        Book a slot and create a confirmed appointment.

        The slot lock and the appointment row are written in one transaction.

        Args:
            actor: Requester
            data: Appointment creation data

        Returns:
            Created appointment reference

        Raises:
            SlotAlreadyBookedException: If the slot is already held
            InvalidSlotException: If the date/time cannot be interpreted
        """
        patient_id = self._resolve_patient(actor, data)
        slot = Slot.of(data.doctor_id, data.appointment_date, data.appointment_time)
        appointment_id = uuid4()
        now = self.clock()

        async with transaction(self.db):
            if await self.ledger.try_acquire(slot, appointment_id) is SlotOutcome.CONFLICT:
                raise SlotAlreadyBookedException()

            await self.db.execute(
                insert(appointments).values(
                    id=appointment_id,
                    doctor_id=data.doctor_id,
                    doctor_name=data.doctor_name,
                    patient_id=patient_id,
                    patient_name=data.patient_name,
                    patient_phone=data.patient_phone,
                    appointment_date=slot.appointment_date,
                    appointment_time=slot.appointment_time,
                    reason=data.reason,
                    symptoms=data.symptoms,
                    payment_amount=data.payment_amount,
                    status=AppointmentStatus.CONFIRMED.value,
                    diagnosis_history=[],
                    created_at=now,
                    updated_at=now,
                )
            )

        logger.info(
            "appointment_created",
            appointment_id=str(appointment_id),
            slot_key=slot.key,
            booked_by=actor.role.value,
        )

        return AppointmentCreatedResponse(
            appointment_id=appointment_id,
            slot_key=slot.key,
            appointment_date=slot.appointment_date,
            appointment_time=slot.appointment_time,
            status=AppointmentStatus.CONFIRMED,
        )

    async def get_appointment(self, appointment_id: UUID, actor: Actor) -> AppointmentResponse:
        """
        Get appointment by ID.

        Patients see their own appointments, doctors their own patients',
        staff see everything.

        Raises:
            AppointmentNotFoundException: If appointment not found
            ForbiddenException: If user doesn't have access
        """
        row = await fetch_appointment(self.db, appointment_id)

        if actor.role is ActorRole.PATIENT and row.patient_id != actor.id:
            raise ForbiddenException("Access denied to this appointment")
        if actor.role is ActorRole.DOCTOR and row.doctor_id != actor.id:
            raise ForbiddenException("Access denied to this appointment")

        return AppointmentResponse.from_row(row)

    async def reschedule_appointment(
        self,
        appointment_id: UUID,
        requester_id: str,
        data: AppointmentReschedule,
    ) -> RescheduleResult:
        """
        Move an appointment to a new slot.

        The old lock is released and the new one claimed in the same
        transaction as the appointment update. No notification is sent.

        Raises:
            AppointmentNotFoundException: If appointment not found
            NotAppointmentOwnerException: If requester is not the patient
            InvalidStatusTransitionException: If the appointment is closed
            SlotAlreadyBookedException: If the new slot is held
        """
        now = self.clock()

        async with transaction(self.db):
            row = await fetch_appointment(self.db, appointment_id, for_update=True)

            if row.patient_id != requester_id:
                raise NotAppointmentOwnerException()

            previous_status = AppointmentStatus(row.status)
            if previous_status not in RESCHEDULABLE_STATUSES:
                raise InvalidStatusTransitionException(
                    f"Cannot reschedule a {previous_status.value} appointment"
                )

            new_slot = Slot.of(row.doctor_id, data.new_date, data.new_time)
            old_slot = current_slot(row)

            if await self.ledger.move(old_slot, new_slot, row.id) is SlotOutcome.CONFLICT:
                raise SlotAlreadyBookedException()

            result = await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(
                    appointment_date=new_slot.appointment_date,
                    appointment_time=new_slot.appointment_time,
                    status=AppointmentStatus.CONFIRMED.value,
                    cancellation_reason=None,
                    affected_by_leave_request_id=None,
                    conflict_detected_at=None,
                    updated_at=now,
                )
                .returning(appointments)
            )
            updated = result.fetchone()

        logger.info(
            "appointment_rescheduled",
            appointment_id=str(appointment_id),
            previous_slot_key=old_slot.key if old_slot else None,
            slot_key=new_slot.key,
        )

        return RescheduleResult(
            appointment=AppointmentResponse.from_row(updated),
            previous_status=previous_status,
            previous_slot_key=old_slot.key if old_slot else None,
            slot_key=new_slot.key,
        )
