"""Requester identity schemas."""

from enum import Enum

from pydantic import BaseModel, Field


class ActorRole(str, Enum):
    """Role claim carried by the bearer token."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"
    ADMIN = "admin"


class Actor(BaseModel):
    """Authenticated requester."""

    id: str = Field(..., min_length=1)
    role: ActorRole = ActorRole.PATIENT
