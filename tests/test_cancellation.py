"""Tests for cancellation refunds and slot release."""

import re
import uuid
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import func, select, update

from app.core.exceptions import AppointmentNotFoundException, InvalidStatusTransitionException
from app.models import appointment_change_events, appointments, notifications
from app.schemas.appointments import CancellationPolicy
from app.services.cancellation_service import (
    CancellationService,
    compute_refund,
    hours_until_appointment,
    new_refund_transaction_id,
)
from app.services.slot_ledger import SlotLedger
from tests.conftest import MONDAY

IST = ZoneInfo("Asia/Kolkata")


def ist(hour: int, minute: int = 0, day: int = 11) -> datetime:
    return datetime(2030, 3, day, hour, minute, tzinfo=IST)


def fixed_clock(moment: datetime):
    return lambda: moment


@pytest.mark.parametrize(
    ("payment", "hours", "refund", "fee", "policy"),
    [
        (500, 15, 500, 0, CancellationPolicy.FULL_REFUND),
        (500, 10, 500, 0, CancellationPolicy.FULL_REFUND),
        (500, 9.99, 400, 100, CancellationPolicy.WITH_FEE),
        (500, 0, 400, 100, CancellationPolicy.WITH_FEE),
        (500, -3, 400, 100, CancellationPolicy.WITH_FEE),
        (50, 2, 0, 50, CancellationPolicy.WITH_FEE),
        (0, 2, 0, 0, CancellationPolicy.WITH_FEE),
        (0, 48, 0, 0, CancellationPolicy.FULL_REFUND),
    ],
)
def test_compute_refund(payment, hours, refund, fee, policy):
    quote = compute_refund(payment, hours)

    assert quote.refund_amount == refund
    assert quote.fee == fee
    assert quote.policy is policy


def test_refund_never_exceeds_payment_or_goes_negative():
    for payment in (0, 1, 99.5, 100, 250, 5000):
        for hours in (-24, 0, 5, 9.9, 10, 72):
            quote = compute_refund(payment, hours)
            assert 0 <= quote.refund_amount <= payment
            assert quote.refund_amount + quote.fee == pytest.approx(payment)


def test_refund_is_monotonic_in_notice():
    refunds = [compute_refund(500, hours).refund_amount for hours in (-5, 0, 5, 9.99, 10, 20)]
    assert refunds == sorted(refunds)


def test_hours_until_uses_clinic_timezone():
    now = ist(10, 0).astimezone(ZoneInfo("UTC"))
    assert hours_until_appointment(MONDAY, "20:00", now, "Asia/Kolkata") == pytest.approx(10)


def test_refund_transaction_id_format():
    moment = datetime(2030, 3, 11, 6, 30, tzinfo=ZoneInfo("UTC"))
    refund_id = new_refund_transaction_id(moment)

    assert re.fullmatch(rf"REFUND{int(moment.timestamp() * 1000)}\d{{1,3}}", refund_id)


@pytest.mark.asyncio
async def test_cancel_with_full_notice(db_session, book, patient):
    appointment_id = await book("20:00", payment_amount=500)

    result = await CancellationService(db_session, clock=fixed_clock(ist(8, 0))).cancel_appointment(
        appointment_id, patient
    )

    assert result.refund_amount == 500
    assert result.fee == 0
    assert result.cancellation_policy is CancellationPolicy.FULL_REFUND
    assert result.hours_before_cancellation == 12.0
    assert result.refund_transaction_id.startswith("REFUND")


@pytest.mark.asyncio
async def test_cancel_late_pays_flat_fee(db_session, book, patient):
    appointment_id = await book("20:00", payment_amount=500)

    result = await CancellationService(
        db_session, clock=fixed_clock(ist(12, 1))
    ).cancel_appointment(appointment_id, patient)

    assert result.refund_amount == 400
    assert result.fee == 100
    assert result.cancellation_policy is CancellationPolicy.WITH_FEE
    # 7h59m floors to one decimal
    assert result.hours_before_cancellation == 7.9

    row = (
        await db_session.execute(select(appointments).where(appointments.c.id == appointment_id))
    ).fetchone()
    assert row.status == "cancelled"
    assert row.cancelled_by == "patient"
    assert row.refund_status == "processed"
    assert row.refund_amount == 400
    assert row.cancellation_fee == 100
    assert row.refund_transaction_id == result.refund_transaction_id


@pytest.mark.asyncio
async def test_cancel_small_payment_fee_is_capped(db_session, book, patient):
    appointment_id = await book("20:00", payment_amount=50)

    result = await CancellationService(
        db_session, clock=fixed_clock(ist(19, 0))
    ).cancel_appointment(appointment_id, patient)

    assert result.refund_amount == 0
    assert result.fee == 50


@pytest.mark.asyncio
async def test_cancel_after_start_time(db_session, book, receptionist):
    appointment_id = await book("09:00", payment_amount=500)

    result = await CancellationService(
        db_session, clock=fixed_clock(ist(10, 0))
    ).cancel_appointment(appointment_id, receptionist)

    assert result.fee == 100
    assert result.hours_before_cancellation == -1.0


@pytest.mark.asyncio
async def test_cancel_releases_slot_for_rebooking(db_session, book, patient):
    appointment_id = await book("09:00")

    await CancellationService(db_session, clock=fixed_clock(ist(1, 0, day=10))).cancel_appointment(
        appointment_id, patient
    )

    assert await SlotLedger(db_session).holder("doc-1_2030-03-11_09-00") is None
    # Someone else can now take it
    rebooked = await book("09:00")
    assert rebooked != appointment_id


@pytest.mark.asyncio
async def test_cancel_succeeds_when_notifications_fail(db_session, book, patient, broken_sink):
    appointment_id = await book("20:00", payment_amount=500)

    result = await CancellationService(
        db_session, sink=broken_sink, clock=fixed_clock(ist(12, 1))
    ).cancel_appointment(appointment_id, patient)

    assert result.refund_amount == 400
    assert result.fee == 100
    assert result.refund_transaction_id.startswith("REFUND")

    row = (
        await db_session.execute(select(appointments).where(appointments.c.id == appointment_id))
    ).fetchone()
    assert row.status == "cancelled"
    assert row.refund_transaction_id == result.refund_transaction_id
    assert await SlotLedger(db_session).holder("doc-1_2030-03-11_20-00") is None

    events = await db_session.execute(select(func.count()).select_from(appointment_change_events))
    assert events.scalar_one() == 0


@pytest.mark.asyncio
async def test_cancel_twice_returns_first_refund(db_session, book, patient, sink):
    appointment_id = await book("20:00", payment_amount=500)

    first = await CancellationService(
        db_session, sink=sink, clock=fixed_clock(ist(12, 0))
    ).cancel_appointment(appointment_id, patient)
    second = await CancellationService(
        db_session, sink=sink, clock=fixed_clock(ist(13, 0))
    ).cancel_appointment(appointment_id, patient)

    assert second.refund_transaction_id == first.refund_transaction_id
    assert second.refund_amount == first.refund_amount
    assert second.fee == first.fee

    events = await db_session.execute(select(func.count()).select_from(appointment_change_events))
    assert events.scalar_one() == 1
    sent = await db_session.execute(select(notifications.c.message))
    messages = sent.scalars().all()
    assert len(messages) == 1
    assert "Cancellation fee: 100.00" in messages[0]


@pytest.mark.asyncio
async def test_cancel_completed_appointment_rejected(db_session, book, patient):
    appointment_id = await book("09:00")
    await db_session.execute(
        update(appointments).where(appointments.c.id == appointment_id).values(status="completed")
    )
    await db_session.commit()

    with pytest.raises(InvalidStatusTransitionException):
        await CancellationService(db_session).cancel_appointment(appointment_id, patient)


@pytest.mark.asyncio
async def test_cancel_awaiting_reschedule_allowed(db_session, book, patient):
    appointment_id = await book("20:00")
    await db_session.execute(
        update(appointments)
        .where(appointments.c.id == appointment_id)
        .values(status="awaiting_reschedule")
    )
    await db_session.commit()

    result = await CancellationService(
        db_session, clock=fixed_clock(ist(20, 0) - timedelta(days=2))
    ).cancel_appointment(appointment_id, patient)

    assert result.cancellation_policy is CancellationPolicy.FULL_REFUND
    assert await SlotLedger(db_session).holder("doc-1_2030-03-11_20-00") is None


@pytest.mark.asyncio
async def test_cancel_unknown_appointment(db_session, patient):
    with pytest.raises(AppointmentNotFoundException):
        await CancellationService(db_session).cancel_appointment(uuid.uuid4(), patient)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("cancelled_at", "fee", "refund"),
    [
        (datetime(2025, 3, 10, 3, 0, tzinfo=IST), 100, 400),
        (datetime(2025, 3, 9, 20, 0, tzinfo=IST), 0, 500),
    ],
)
async def test_morning_appointment_scenario(db_session, book, patient, cancelled_at, fee, refund):
    """09:00 booking paid 500: six hours notice pays the fee, thirteen hours does not."""
    appointment_id = await book("09:00", appointment_date=date(2025, 3, 10), payment_amount=500)

    result = await CancellationService(
        db_session, clock=fixed_clock(cancelled_at)
    ).cancel_appointment(appointment_id, patient)

    assert result.fee == fee
    assert result.refund_amount == refund
