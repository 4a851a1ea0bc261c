"""Appointments and slot lock tables using SQLAlchemy Core."""

import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    Index,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
)

from app.models.base import metadata

APPOINTMENT_STATUSES = (
    "confirmed",
    "completed",
    "cancelled",
    "doctor_cancelled",
    "not_attended",
    "awaiting_reschedule",
)

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
    # Ownership / references (opaque identity-provider ids)
    Column("doctor_id", String(128), nullable=False),
    Column("patient_id", String(128), nullable=False),
    # Snapshot fields (denormalized for history)
    Column("doctor_name", Text, nullable=True),
    Column("patient_name", Text, nullable=True),
    Column("patient_phone", String(20), nullable=True),
    # Slot
    Column("appointment_date", Date, nullable=False),
    # Always normalized 24-hour HH:MM
    Column("appointment_time", String(5), nullable=False),
    # Clinical intake
    Column("reason", Text, nullable=True),
    Column("symptoms", Text, nullable=True),
    # Status management
    Column("status", String(32), nullable=False, server_default="confirmed"),
    Column("payment_amount", Numeric(10, 2, asdecimal=False), nullable=False, server_default="0"),
    # Cancellation and refund
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    Column("cancelled_by", String(32), nullable=True),
    Column("cancellation_policy", String(32), nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    Column("hours_before_cancellation", Float, nullable=True),
    Column("refund_status", String(32), nullable=True),
    Column("refund_amount", Numeric(10, 2, asdecimal=False), nullable=True),
    Column("cancellation_fee", Numeric(10, 2, asdecimal=False), nullable=True),
    Column("refund_transaction_id", String(64), nullable=True),
    Column("refund_processed_at", DateTime(timezone=True), nullable=True),
    # Completion
    Column("medicine", Text, nullable=True),
    Column("doctor_notes", Text, nullable=True),
    Column("final_diagnosis", JSON, nullable=True),
    # Append-only list of {diagnoses, updated_by, updated_at}
    Column("diagnosis_history", JSON, nullable=True),
    Column("completed_at", DateTime(timezone=True), nullable=True),
    # Attendance
    Column("not_attended_at", DateTime(timezone=True), nullable=True),
    Column("marked_not_attended_by", String(128), nullable=True),
    # Doctor leave conflicts
    Column("affected_by_leave_request_id", String(64), nullable=True),
    Column("conflict_detected_at", DateTime(timezone=True), nullable=True),
    # Audit fields (rows are never hard-deleted)
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "status IN ("
        + ", ".join(f"'{status}'" for status in APPOINTMENT_STATUSES)
        + ")",
        name="appointments_status_check",
    ),
    Index("idx_appointments_doctor_day_status", "doctor_id", "appointment_date", "status"),
    Index("idx_appointments_patient_id", "patient_id"),
)

# One row per held (doctor, date, time). The primary key is the exclusivity guarantee.
slot_locks = Table(
    "slot_locks",
    metadata,
    Column("key", String(255), primary_key=True),
    Column("appointment_id", Uuid(as_uuid=True), nullable=False),
    Column("doctor_id", String(128), nullable=False),
    Column("appointment_date", Date, nullable=False),
    Column("appointment_time", String(5), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("idx_slot_locks_doctor_date", "doctor_id", "appointment_date"),
)
