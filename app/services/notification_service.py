"""Audit trail and in-app patient notifications."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.notifications import appointment_change_events, notifications

logger = structlog.get_logger(__name__)


def change_event_values(
    event_type: str,
    appointment_id: UUID,
    *,
    doctor_id: str | None = None,
    patient_id: str | None = None,
    request_id: str | None = None,
    actor_id: str | None = None,
    prev_status: str | None = None,
    next_status: str | None = None,
    created_at: datetime | None = None,
) -> dict[str, Any]:
    """Build an appointment change event row."""
    return {
        "type": event_type,
        "appointment_id": appointment_id,
        "doctor_id": doctor_id,
        "patient_id": patient_id,
        "request_id": request_id,
        "actor_id": actor_id,
        "prev_status": prev_status,
        "next_status": next_status,
        "created_at": created_at or datetime.now(UTC),
    }


def notification_values(
    user_id: str,
    title: str,
    message: str,
    *,
    appointment_id: UUID | None = None,
    notification_type: str = "info",
    created_at: datetime | None = None,
) -> dict[str, Any]:
    """Build an unread in-app notification row."""
    return {
        "user_id": user_id,
        "type": notification_type,
        "title": title,
        "message": message,
        "appointment_id": appointment_id,
        "read": False,
        "created_at": created_at or datetime.now(UTC),
    }


class NotificationSink:
    """
    Fire-and-forget writer for change events and patient notifications.

    Each call runs in its own session so a failure here can never roll back
    or fail the scheduling operation that triggered it. Errors are logged
    and swallowed.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize sink with a session factory."""
        self.session_factory = session_factory

    async def record_change_event(self, event: dict[str, Any]) -> bool:
        """
        Append a change event to the audit trail.

        Args:
            event: Row built with ``change_event_values``

        Returns:
            True if the event was stored
        """
        try:
            async with self.session_factory() as session:
                await session.execute(insert(appointment_change_events).values(**event))
                await session.commit()
            return True
        except Exception as e:
            logger.warning(
                "change_event_record_failed",
                event_type=event.get("type"),
                appointment_id=str(event.get("appointment_id")),
                error=str(e),
            )
            return False

    async def notify(self, user_id: str, notification: dict[str, Any]) -> bool:
        """
        Store an in-app notification for a user.

        Args:
            user_id: Recipient
            notification: Mapping with at least ``title`` and ``message``

        Returns:
            True if the notification was stored
        """
        try:
            values = notification_values(
                user_id,
                notification["title"],
                notification["message"],
                appointment_id=notification.get("appointment_id"),
                notification_type=notification.get("type", "info"),
            )
            async with self.session_factory() as session:
                await session.execute(insert(notifications).values(**values))
                await session.commit()
            logger.info("notification_stored", user_id=user_id, title=values["title"])
            return True
        except Exception as e:
            logger.warning("notification_failed", user_id=user_id, error=str(e))
            return False

    async def publish_transition(
        self,
        appointment: dict[str, Any],
        event_type: str,
        prev_status: str | None,
        next_status: str,
        *,
        actor_id: str | None = None,
        title: str | None = None,
        message: str | None = None,
    ) -> None:
        """Record a status transition and, when a message is given, tell the patient."""
        await self.record_change_event(
            change_event_values(
                event_type,
                appointment["id"],
                doctor_id=appointment.get("doctor_id"),
                patient_id=appointment.get("patient_id"),
                actor_id=actor_id,
                prev_status=prev_status,
                next_status=next_status,
            )
        )
        if title and message and appointment.get("patient_id"):
            await self.notify(
                appointment["patient_id"],
                {"title": title, "message": message, "appointment_id": appointment["id"]},
            )
