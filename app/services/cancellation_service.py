"""Cancellation service: refund policy and slot release."""

import math
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import InvalidStatusTransitionException
from app.core.time_slots import normalize_time
from app.database import transaction
from app.models.appointments import appointments
from app.schemas.appointments import AppointmentStatus, CancellationPolicy, CancellationResult
from app.schemas.auth import Actor
from app.services.booking_service import current_slot, fetch_appointment, utcnow
from app.services.notification_service import NotificationSink
from app.services.slot_ledger import SlotLedger

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RefundQuote:
    """Refund owed for a cancellation."""

    refund_amount: float
    fee: float
    policy: CancellationPolicy


def compute_refund(
    payment_amount: float,
    hours_until: float,
    *,
    flat_fee: float = 100.0,
    full_refund_window_hours: float = 10.0,
) -> RefundQuote:
    """
    Apply the tiered cancellation policy.

    Cancelling at least ``full_refund_window_hours`` ahead refunds everything.
    Later cancellations (including after the start time) pay a flat fee,
    capped at the amount paid so the refund never goes negative.
    """
    paid = max(float(payment_amount or 0), 0.0)
    if hours_until >= full_refund_window_hours:
        return RefundQuote(refund_amount=paid, fee=0.0, policy=CancellationPolicy.FULL_REFUND)

    fee = min(flat_fee, paid)
    return RefundQuote(refund_amount=paid - fee, fee=fee, policy=CancellationPolicy.WITH_FEE)


def hours_until_appointment(
    appointment_date: date,
    appointment_time: str,
    now: datetime,
    timezone: str,
) -> float:
    """Signed fractional hours from ``now`` to the appointment start in the clinic timezone."""
    starts_at = datetime.combine(
        appointment_date,
        time.fromisoformat(normalize_time(appointment_time)),
        tzinfo=ZoneInfo(timezone),
    )
    return (starts_at - now).total_seconds() / 3600


def new_refund_transaction_id(now: datetime) -> str:
    """Synthetic refund reference for downstream bookkeeping."""
    return f"REFUND{int(now.timestamp() * 1000)}{secrets.randbelow(1000)}"


class CancellationService:
    """Service for cancelling appointments."""

    def __init__(
        self,
        db: AsyncSession,
        sink: NotificationSink | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize service with database session and optional notification sink."""
        self.db = db
        self.ledger = SlotLedger(db)
        self.sink = sink
        self.clock = clock

    async def cancel_appointment(self, appointment_id: UUID, actor: Actor) -> CancellationResult:
        """
        Cancel an appointment and compute its refund.

        Ownership is not checked here. Cancelling an already cancelled
        appointment returns the refund recorded the first time.

        Args:
            appointment_id: Appointment ID
            actor: Who is cancelling (recorded as ``cancelled_by``)

        Returns:
            Refund amount, fee and refund transaction id

        Raises:
            AppointmentNotFoundException: If appointment not found
            InvalidStatusTransitionException: If the appointment is completed or not attended
        """
        now = self.clock()

        async with transaction(self.db):
            row = await fetch_appointment(self.db, appointment_id, for_update=True)
            previous_status = AppointmentStatus(row.status)

            if previous_status is AppointmentStatus.CANCELLED:
                slot = current_slot(row)
                if slot is not None:
                    await self.ledger.release(slot.key, row.id)
                already = CancellationResult(
                    appointment_id=row.id,
                    refund_amount=row.refund_amount or 0.0,
                    fee=row.cancellation_fee or 0.0,
                    refund_transaction_id=row.refund_transaction_id or "",
                    cancellation_policy=row.cancellation_policy or CancellationPolicy.FULL_REFUND,
                    hours_before_cancellation=row.hours_before_cancellation or 0.0,
                )
            elif previous_status in (AppointmentStatus.COMPLETED, AppointmentStatus.NOT_ATTENDED):
                raise InvalidStatusTransitionException(
                    f"Cannot cancel a {previous_status.value} appointment"
                )
            elif previous_status in (
                AppointmentStatus.CONFIRMED,
                AppointmentStatus.AWAITING_RESCHEDULE,
                AppointmentStatus.DOCTOR_CANCELLED,
            ):
                already = None
            else:
                raise InvalidStatusTransitionException(
                    f"Unhandled appointment status {previous_status.value}"
                )

            if already is None:
                hours_until = hours_until_appointment(
                    row.appointment_date,
                    row.appointment_time,
                    now,
                    settings.clinic_timezone,
                )
                quote = compute_refund(
                    row.payment_amount,
                    hours_until,
                    flat_fee=settings.cancellation_flat_fee,
                    full_refund_window_hours=settings.full_refund_window_hours,
                )
                refund_transaction_id = new_refund_transaction_id(now)
                hours_before = math.floor(hours_until * 10) / 10

                await self.db.execute(
                    update(appointments)
                    .where(appointments.c.id == appointment_id)
                    .values(
                        status=AppointmentStatus.CANCELLED.value,
                        cancelled_at=now,
                        cancelled_by=actor.role.value,
                        cancellation_policy=quote.policy.value,
                        hours_before_cancellation=hours_before,
                        refund_status="processed",
                        refund_amount=quote.refund_amount,
                        cancellation_fee=quote.fee,
                        refund_transaction_id=refund_transaction_id,
                        refund_processed_at=now,
                        updated_at=now,
                    )
                )

                slot = current_slot(row)
                if slot is not None:
                    await self.ledger.release(slot.key, row.id)

        if already is not None:
            logger.info("appointment_already_cancelled", appointment_id=str(appointment_id))
            return already

        logger.info(
            "appointment_cancelled",
            appointment_id=str(appointment_id),
            cancelled_by=actor.role.value,
            policy=quote.policy.value,
            refund_amount=quote.refund_amount,
            fee=quote.fee,
        )

        if self.sink is not None:
            if quote.fee:
                message = (
                    f"Refund of {quote.refund_amount:.2f} processed. "
                    f"Cancellation fee: {quote.fee:.2f}. Refund ID: {refund_transaction_id}"
                )
            else:
                message = (
                    f"Full refund of {quote.refund_amount:.2f} processed. "
                    f"Refund ID: {refund_transaction_id}"
                )
            await self.sink.publish_transition(
                dict(row._mapping),
                "appointment_cancelled",
                previous_status.value,
                AppointmentStatus.CANCELLED.value,
                actor_id=actor.id,
                title="Appointment cancelled",
                message=message,
            )

        return CancellationResult(
            appointment_id=appointment_id,
            refund_amount=quote.refund_amount,
            fee=quote.fee,
            refund_transaction_id=refund_transaction_id,
            cancellation_policy=quote.policy,
            hours_before_cancellation=hours_before,
        )
