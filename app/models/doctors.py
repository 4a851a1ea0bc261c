"""Doctor schedule and schedule change request tables."""

import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    func,
)

from app.models.base import metadata

doctors = Table(
    "doctors",
    metadata,
    Column("id", String(128), primary_key=True),
    Column("name", Text, nullable=True),
    Column("specialization", String(200), nullable=True),
    # {"monday": {"is_available": true, "slots": [{"start": "09:00", "end": "13:00"}]}, ...}
    Column("visiting_hours", JSON, nullable=True),
    # ["2025-03-10", {"date": "2025-03-11", "reason": "Conference"}, ...]
    Column("blocked_dates", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

schedule_change_requests = Table(
    "schedule_change_requests",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("doctor_id", String(128), nullable=False),
    Column("request_type", String(32), nullable=False),
    Column("visiting_hours", JSON, nullable=True),
    Column("blocked_dates", JSON, nullable=True),
    Column("reason", Text, nullable=True),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("approved_at", DateTime(timezone=True), nullable=True),
    Column("approved_by", String(128), nullable=True),
    Column("conflicts_detected", Integer, nullable=True),
    Column("awaiting_count", Integer, nullable=True),
    Column("cancelled_count", Integer, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "request_type IN ('visitingHours', 'blockedDates', 'both')",
        name="schedule_change_requests_type_check",
    ),
    CheckConstraint(
        "status IN ('pending', 'approved')",
        name="schedule_change_requests_status_check",
    ),
    Index("idx_schedule_change_requests_doctor", "doctor_id"),
)
