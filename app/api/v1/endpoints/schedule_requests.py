"""Schedule change request endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import AdminActor, Cache, DatabaseSession
from app.schemas.schedule import ScheduleApprovalResponse
from app.services.availability_service import AvailabilityChangeProcessor

router = APIRouter()


@router.post(
    "/{request_id}/approve",
    response_model=ScheduleApprovalResponse,
    status_code=status.HTTP_200_OK,
    tags=["Schedule Requests"],
    summary="Approve a doctor's schedule change",
    responses={
        400: {"description": "REQUEST_NOT_PENDING"},
        404: {"description": "REQUEST_NOT_FOUND"},
    },
)
async def approve_schedule_request(
    request_id: UUID,
    current_actor: AdminActor,
    db: DatabaseSession,
    cache: Cache,
) -> ScheduleApprovalResponse:
    """
    Apply a pending schedule change.

    Confirmed appointments on newly blocked dates move to
    ``awaiting_reschedule``; none are cancelled.
    """
    processor = AvailabilityChangeProcessor(db, cache)
    return await processor.approve(request_id, current_actor)
