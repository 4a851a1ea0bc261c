"""FastAPI dependencies."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenException
from app.core.redis_client import CacheManager, get_cache_manager
from app.core.security import actor_from_payload, decode_access_token
from app.database import AsyncSessionLocal, get_db
from app.schemas.auth import Actor, ActorRole
from app.services.notification_service import NotificationSink

# Security
security = HTTPBearer()


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Actor:
    """
    Extract the requester from the bearer token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Requester id and role

    Raises:
        HTTPException: If token is invalid or expired
    """
    payload = decode_access_token(credentials.credentials)
    actor = actor_from_payload(payload) if payload is not None else None

    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return actor


def require_roles(*roles: ActorRole) -> Callable:
    """Dependency factory restricting an endpoint to the given roles."""

    async def checker(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
        if actor.role not in roles:
            raise ForbiddenException(
                f"Access denied. This endpoint requires role: {', '.join(r.value for r in roles)}"
            )
        return actor

    return checker


def get_notification_sink() -> NotificationSink:
    """Dependency for the fire-and-forget notification sink."""
    return NotificationSink(AsyncSessionLocal)


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
DoctorActor = Annotated[Actor, Depends(require_roles(ActorRole.DOCTOR))]
FrontDeskActor = Annotated[Actor, Depends(require_roles(ActorRole.RECEPTIONIST, ActorRole.ADMIN))]
AdminActor = Annotated[Actor, Depends(require_roles(ActorRole.ADMIN))]
Cache = Annotated[CacheManager | None, Depends(get_cache_manager)]
Sink = Annotated[NotificationSink, Depends(get_notification_sink)]
