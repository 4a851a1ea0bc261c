"""Tests for slot checks and available slot listing."""

from datetime import timedelta

import pytest
from sqlalchemy import insert

from app.core.exceptions import InvalidSlotException
from app.models import doctors
from app.services.doctor_service import DoctorScheduleService
from tests.conftest import DOCTOR_ID, MONDAY


@pytest.mark.asyncio
async def test_check_slot(db_session, book):
    service = DoctorScheduleService(db_session)
    await book("09:00")

    taken = await service.check_slot(DOCTOR_ID, MONDAY, "9:00 AM")
    free = await service.check_slot(DOCTOR_ID, MONDAY, "09:15")

    assert taken.available is False
    assert taken.slot_key == "doc-1_2030-03-11_09-00"
    assert free.available is True
    assert free.time == "09:15"


@pytest.mark.asyncio
async def test_check_slot_invalid_time(db_session):
    with pytest.raises(InvalidSlotException):
        await DoctorScheduleService(db_session).check_slot(DOCTOR_ID, MONDAY, "whenever")


@pytest.mark.asyncio
async def test_available_slots_default_hours(db_session, book):
    await book("09:00")
    await book("14:30")

    result = await DoctorScheduleService(db_session).available_slots(DOCTOR_ID, MONDAY)

    assert result.blocked is False
    assert len(result.slots) == 26
    assert "09:00" not in result.slots
    assert "14:30" not in result.slots
    assert "09:15" in result.slots


@pytest.mark.asyncio
async def test_available_slots_hide_off_grid_booking(db_session, book):
    """A booking at 09:05 hides every slot starting inside its 15 minutes."""
    await book("09:05")

    result = await DoctorScheduleService(db_session).available_slots(DOCTOR_ID, MONDAY)

    assert "09:00" in result.slots
    assert "09:15" not in result.slots


@pytest.mark.asyncio
async def test_available_slots_blocked_and_closed_days(db_session):
    await db_session.execute(
        insert(doctors).values(
            id=DOCTOR_ID,
            visiting_hours={
                "monday": {"is_available": True, "slots": [{"start": "10:00", "end": "11:00"}]},
                "tuesday": {"is_available": False, "slots": []},
            },
            blocked_dates=[{"date": (MONDAY + timedelta(days=7)).isoformat()}],
        )
    )
    await db_session.commit()
    service = DoctorScheduleService(db_session)

    monday = await service.available_slots(DOCTOR_ID, MONDAY)
    tuesday = await service.available_slots(DOCTOR_ID, MONDAY + timedelta(days=1))
    blocked = await service.available_slots(DOCTOR_ID, MONDAY + timedelta(days=7))

    assert monday.slots == ["10:00", "10:15", "10:30", "10:45"]
    assert tuesday.slots == []
    assert blocked.blocked is True
    assert blocked.slots == []
