"""Audit trail and in-app notification tables."""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from app.models.base import metadata

# Append-only: rows are inserted, never updated.
appointment_change_events = Table(
    "appointment_change_events",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("type", String(64), nullable=False),
    Column("appointment_id", Uuid(as_uuid=True), nullable=False),
    Column("doctor_id", String(128), nullable=True),
    Column("patient_id", String(128), nullable=True),
    Column("request_id", String(64), nullable=True),
    Column("actor_id", String(128), nullable=True),
    Column("prev_status", String(32), nullable=True),
    Column("next_status", String(32), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("idx_change_events_appointment", "appointment_id"),
    Index("idx_change_events_request", "request_id"),
)

notifications = Table(
    "notifications",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("user_id", String(128), nullable=False),
    Column("type", String(32), nullable=False, server_default="info"),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("appointment_id", Uuid(as_uuid=True), nullable=True),
    Column("read", Boolean, nullable=False, server_default=text("false")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("idx_notifications_user_id", "user_id"),
)
