"""Database models."""

from app.models.appointments import appointments, slot_locks
from app.models.base import metadata
from app.models.doctors import doctors, schedule_change_requests
from app.models.notifications import appointment_change_events, notifications

__all__ = [
    "appointment_change_events",
    "appointments",
    "doctors",
    "metadata",
    "notifications",
    "schedule_change_requests",
    "slot_locks",
]
