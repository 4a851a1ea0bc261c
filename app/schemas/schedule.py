"""Doctor schedule, slot availability and schedule change schemas."""

from datetime import date
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class ScheduleRequestType(str, Enum):
    """Which parts of the schedule a change request replaces."""

    VISITING_HOURS = "visitingHours"
    BLOCKED_DATES = "blockedDates"
    BOTH = "both"


class ScheduleRequestStatus(str, Enum):
    """Schedule change request lifecycle."""

    PENDING = "pending"
    APPROVED = "approved"


class SlotCheckResponse(BaseModel):
    """Result of a slot availability probe."""

    doctor_id: str
    date: date
    time: str
    slot_key: str
    available: bool


class AvailableSlotsResponse(BaseModel):
    """Free slots for a doctor on one day."""

    doctor_id: str
    date: date
    blocked: bool
    slots: list[str]


class ScheduleApprovalResponse(BaseModel):
    """Outcome of approving a schedule change request."""

    request_id: UUID
    status: ScheduleRequestStatus
    conflicts: int
    awaiting_count: int
    cancelled_count: int
