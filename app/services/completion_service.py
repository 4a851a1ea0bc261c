"""Completion sequencer: same-day consultation ordering and diagnosis history."""

from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    DiagnosisRequiredException,
    ForbiddenException,
    InvalidStatusTransitionException,
    OrderingViolationException,
)
from app.database import transaction
from app.models.appointments import appointments
from app.schemas.appointments import AppointmentComplete, AppointmentStatus
from app.schemas.auth import Actor, ActorRole
from app.services.booking_service import current_slot, fetch_appointment, utcnow
from app.services.notification_service import NotificationSink
from app.services.slot_ledger import SlotLedger

logger = structlog.get_logger(__name__)


class CompletionSequencer:
    """
    Closes consultations in chronological order.

    For a given doctor and day an appointment can only be completed once
    every earlier confirmed appointment has left the ``confirmed`` state.
    """

    def __init__(
        self,
        db: AsyncSession,
        sink: NotificationSink | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize sequencer with database session and optional notification sink."""
        self.db = db
        self.ledger = SlotLedger(db)
        self.sink = sink
        self.clock = clock

    async def earlier_open_appointments(self, row: Any) -> list[UUID]:
        """Confirmed appointments for the same doctor and day that start before ``row``."""
        result = await self.db.execute(
            select(appointments.c.id)
            .where(
                appointments.c.doctor_id == row.doctor_id,
                appointments.c.appointment_date == row.appointment_date,
                appointments.c.status == AppointmentStatus.CONFIRMED.value,
                appointments.c.appointment_time < row.appointment_time,
                appointments.c.id != row.id,
            )
            .order_by(appointments.c.appointment_time)
        )
        return list(result.scalars().all())

    async def complete(
        self,
        appointment_id: UUID,
        data: AppointmentComplete,
        actor: Actor,
    ) -> None:
        """
        Complete a consultation.

        Completing an already completed appointment records a diagnosis
        update: history is appended and the slot release is a no-op.

        Raises:
            DiagnosisRequiredException: If no diagnosis was given
            AppointmentNotFoundException: If appointment not found
            ForbiddenException: If a doctor completes another doctor's appointment
            InvalidStatusTransitionException: If the appointment is not open
            OrderingViolationException: If an earlier appointment is still confirmed
        """
        diagnoses = [d.strip() for d in data.diagnosis if d and d.strip()]
        if not diagnoses:
            raise DiagnosisRequiredException()

        now = self.clock()

        async with transaction(self.db):
            row = await fetch_appointment(self.db, appointment_id, for_update=True)

            if actor.role is ActorRole.DOCTOR and row.doctor_id != actor.id:
                raise ForbiddenException("Only the appointment's doctor can complete it")

            previous_status = AppointmentStatus(row.status)
            if previous_status is AppointmentStatus.CONFIRMED:
                earlier = await self.earlier_open_appointments(row)
                if earlier:
                    logger.info(
                        "completion_ordering_violation",
                        appointment_id=str(appointment_id),
                        earlier_open=len(earlier),
                    )
                    raise OrderingViolationException()
            elif previous_status is not AppointmentStatus.COMPLETED:
                raise InvalidStatusTransitionException(
                    f"Cannot complete a {previous_status.value} appointment"
                )

            history = list(row.diagnosis_history or [])
            history.append(
                {
                    "diagnoses": diagnoses,
                    "updated_by": actor.id,
                    "updated_at": now.isoformat(),
                }
            )

            await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(
                    status=AppointmentStatus.COMPLETED.value,
                    medicine=data.medicine or "",
                    doctor_notes=data.notes or "",
                    final_diagnosis=diagnoses,
                    diagnosis_history=history,
                    completed_at=row.completed_at or now,
                    updated_at=now,
                )
            )

            slot = current_slot(row)
            if slot is not None:
                await self.ledger.release(slot.key, row.id)

        logger.info(
            "appointment_completed",
            appointment_id=str(appointment_id),
            doctor_id=row.doctor_id,
            diagnosis_updates=len(history),
        )

        if self.sink is not None and previous_status is AppointmentStatus.CONFIRMED:
            await self.sink.publish_transition(
                dict(row._mapping),
                "appointment_completed",
                previous_status.value,
                AppointmentStatus.COMPLETED.value,
                actor_id=actor.id,
                title="Consultation completed",
                message="Your consultation is complete. Your prescription is now available.",
            )

    async def mark_not_attended(self, appointment_id: UUID, actor: Actor) -> None:
        """
        Record that the patient did not turn up and free the slot.

        Raises:
            AppointmentNotFoundException: If appointment not found
            InvalidStatusTransitionException: If the appointment is completed or cancelled
        """
        now = self.clock()

        async with transaction(self.db):
            row = await fetch_appointment(self.db, appointment_id, for_update=True)
            previous_status = AppointmentStatus(row.status)

            if previous_status in (
                AppointmentStatus.COMPLETED,
                AppointmentStatus.CANCELLED,
                AppointmentStatus.DOCTOR_CANCELLED,
            ):
                raise InvalidStatusTransitionException(
                    f"Cannot mark {previous_status.value} appointment as not attended"
                )

            if previous_status is not AppointmentStatus.NOT_ATTENDED:
                await self.db.execute(
                    update(appointments)
                    .where(appointments.c.id == appointment_id)
                    .values(
                        status=AppointmentStatus.NOT_ATTENDED.value,
                        not_attended_at=now,
                        marked_not_attended_by=actor.id,
                        updated_at=now,
                    )
                )

            slot = current_slot(row)
            if slot is not None:
                await self.ledger.release(slot.key, row.id)

        logger.info(
            "appointment_not_attended",
            appointment_id=str(appointment_id),
            marked_by=actor.id,
        )

        if self.sink is not None and previous_status is not AppointmentStatus.NOT_ATTENDED:
            await self.sink.publish_transition(
                dict(row._mapping),
                "appointment_not_attended",
                previous_status.value,
                AppointmentStatus.NOT_ATTENDED.value,
                actor_id=actor.id,
                title="Appointment missed",
                message=(
                    f"We noticed you missed your appointment on {row.appointment_date}. "
                    "Please book a new appointment at your convenience."
                ),
            )
