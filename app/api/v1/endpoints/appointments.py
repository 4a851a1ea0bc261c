"""Appointment endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import (
    CurrentActor,
    DatabaseSession,
    DoctorActor,
    FrontDeskActor,
    Sink,
)
from app.schemas.appointments import (
    AppointmentComplete,
    AppointmentCreate,
    AppointmentCreatedResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    CancellationResult,
    OperationResponse,
)
from app.services.booking_service import BookingService
from app.services.cancellation_service import CancellationService
from app.services.completion_service import CompletionSequencer

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book an appointment",
    responses={409: {"description": "SLOT_ALREADY_BOOKED"}},
)
async def create_appointment(
    data: AppointmentCreate,
    current_actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentCreatedResponse:
    """
    Book a slot for a patient.

    Patients book for themselves; staff must pass ``patient_id``.
    """
    service = BookingService(db)
    return await service.create_appointment(current_actor, data)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get a specific appointment by ID."""
    service = BookingService(db)
    return await service.get_appointment(appointment_id, current_actor)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=OperationResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Move appointment to a new slot",
    responses={
        403: {"description": "UNAUTHORIZED"},
        404: {"description": "APPOINTMENT_NOT_FOUND"},
        409: {"description": "SLOT_ALREADY_BOOKED"},
    },
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    current_actor: CurrentActor,
    db: DatabaseSession,
    sink: Sink,
) -> OperationResponse:
    """
    Reschedule an appointment owned by the requesting patient.

    The booking service only moves the slot; telling the patient is done here.
    """
    service = BookingService(db)
    result = await service.reschedule_appointment(appointment_id, current_actor.id, data)

    appointment = result.appointment
    await sink.publish_transition(
        appointment.model_dump(),
        "appointment_rescheduled",
        result.previous_status.value,
        AppointmentStatus.CONFIRMED.value,
        actor_id=current_actor.id,
        title="Appointment rescheduled",
        message=(
            f"Your appointment is now on {appointment.appointment_date.isoformat()} "
            f"at {appointment.appointment_time}."
        ),
    )
    return OperationResponse()


@router.post(
    "/{appointment_id}/cancel",
    response_model=CancellationResult,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment and compute refund",
)
async def cancel_appointment(
    appointment_id: UUID,
    current_actor: CurrentActor,
    db: DatabaseSession,
    sink: Sink,
) -> CancellationResult:
    """
    Cancel an appointment.

    At least 10 hours ahead refunds in full; later cancellations pay a flat fee.
    """
    service = CancellationService(db, sink=sink)
    return await service.cancel_appointment(appointment_id, current_actor)


@router.post(
    "/{appointment_id}/complete",
    response_model=OperationResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Complete consultation",
    responses={
        400: {"description": "DIAGNOSIS_REQUIRED"},
        409: {"description": "ORDERING_VIOLATION"},
    },
)
async def complete_appointment(
    appointment_id: UUID,
    data: AppointmentComplete,
    current_actor: DoctorActor,
    db: DatabaseSession,
    sink: Sink,
) -> OperationResponse:
    """Complete a consultation; earlier same-day appointments must be closed first."""
    sequencer = CompletionSequencer(db, sink=sink)
    await sequencer.complete(appointment_id, data, current_actor)
    return OperationResponse()


@router.post(
    "/{appointment_id}/mark-not-attended",
    response_model=OperationResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Mark appointment as not attended",
)
async def mark_not_attended(
    appointment_id: UUID,
    current_actor: FrontDeskActor,
    db: DatabaseSession,
    sink: Sink,
) -> OperationResponse:
    """Mark an appointment as not attended (receptionist or admin)."""
    sequencer = CompletionSequencer(db, sink=sink)
    await sequencer.mark_not_attended(appointment_id, current_actor)
    return OperationResponse()
