"""Doctor availability and slot check endpoints."""

from datetime import date

from fastapi import APIRouter, Query, status

from app.dependencies import Cache, DatabaseSession
from app.schemas.schedule import AvailableSlotsResponse, SlotCheckResponse
from app.services.doctor_service import DoctorScheduleService

router = APIRouter()


@router.get(
    "/slots/check",
    response_model=SlotCheckResponse,
    status_code=status.HTTP_200_OK,
    tags=["Slots"],
    summary="Check whether a slot is free",
)
async def check_slot(
    db: DatabaseSession,
    doctor_id: str = Query(..., min_length=1),
    day: date = Query(..., alias="date"),
    time: str = Query(..., min_length=1),
) -> SlotCheckResponse:
    """
    Check a slot before collecting payment.

    A free slot here is not a reservation: booking can still return
    SLOT_ALREADY_BOOKED.
    """
    service = DoctorScheduleService(db)
    return await service.check_slot(doctor_id, day, time)


@router.get(
    "/doctors/{doctor_id}/available-slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="List free slots for a day",
)
async def available_slots(
    doctor_id: str,
    db: DatabaseSession,
    cache: Cache,
    day: date = Query(..., alias="date"),
) -> AvailableSlotsResponse:
    """List free slot start times from the doctor's visiting hours and blocked dates."""
    service = DoctorScheduleService(db, cache)
    return await service.available_slots(doctor_id, day)
