"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DOCTOR_CANCELLED = "doctor_cancelled"
    NOT_ATTENDED = "not_attended"
    AWAITING_RESCHEDULE = "awaiting_reschedule"


class CancellationPolicy(str, Enum):
    """Refund tier applied on cancellation."""

    FULL_REFUND = "full_refund"
    WITH_FEE = "with_fee"


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    doctor_id: str = Field(..., min_length=1, max_length=128)
    doctor_name: str | None = Field(None, max_length=200)
    # Staff book on behalf of a patient; patients always book for themselves
    patient_id: str | None = Field(None, max_length=128)
    patient_name: str | None = Field(None, max_length=200)
    patient_phone: str | None = Field(None, max_length=20)
    appointment_date: date
    appointment_time: str = Field(..., min_length=1, max_length=16)
    reason: str | None = Field(None, max_length=500)
    symptoms: str | None = Field(None, max_length=1000)
    payment_amount: float = Field(default=0, ge=0)

    @field_validator("patient_phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Validate phone number format."""
        if v is None:
            return v
        cleaned = (
            v.replace("-", "").replace(" ", "").replace("(", "").replace(")", "").replace("+", "")
        )
        if not cleaned.isdigit():
            raise ValueError("Phone number must contain only digits and separators")
        return v


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to a new slot."""

    new_date: date
    new_time: str = Field(..., min_length=1, max_length=16)


class AppointmentComplete(BaseModel):
    """Schema for completing a consultation."""

    diagnosis: list[str] = Field(default_factory=list)
    medicine: str | None = None
    notes: str | None = None


class AppointmentCreatedResponse(BaseModel):
    """Schema returned after a successful booking."""

    appointment_id: UUID
    slot_key: str
    appointment_date: date
    appointment_time: str
    status: AppointmentStatus


class OperationResponse(BaseModel):
    """Generic acknowledgement."""

    ok: bool = True


class CancellationResult(BaseModel):
    """Refund outcome of a cancellation."""

    appointment_id: UUID
    refund_amount: float
    fee: float
    refund_transaction_id: str
    cancellation_policy: CancellationPolicy
    hours_before_cancellation: float


class DiagnosisHistoryEntry(BaseModel):
    """One recorded diagnosis update."""

    diagnoses: list[str]
    updated_by: str
    updated_at: datetime


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    doctor_id: str
    patient_id: str
    doctor_name: str | None = None
    patient_name: str | None = None
    appointment_date: date
    appointment_time: str
    status: AppointmentStatus
    payment_amount: float
    reason: str | None = None
    symptoms: str | None = None
    cancelled_by: str | None = None
    cancellation_policy: CancellationPolicy | None = None
    hours_before_cancellation: float | None = None
    refund_amount: float | None = None
    cancellation_fee: float | None = None
    refund_transaction_id: str | None = None
    refund_processed_at: datetime | None = None
    medicine: str | None = None
    doctor_notes: str | None = None
    final_diagnosis: list[str] | None = None
    diagnosis_history: list[DiagnosisHistoryEntry] | None = None
    affected_by_leave_request_id: str | None = None
    conflict_detected_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_row(cls, row: Any) -> "AppointmentResponse":
        """Build from a SQLAlchemy row or mapping."""
        mapping = row._mapping if hasattr(row, "_mapping") else row
        return cls.model_validate(dict(mapping))
