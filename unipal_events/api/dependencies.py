"""
Dependency injection for the UniPal Events Service.
Provides database sessions, the lifecycle manager, and authentication dependencies.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Generator

from ..core.clock import SystemClock
from ..core.roles import Actor, Role
from ..db.database import DatabaseConnection
from ..db.redis_client import RedisConnection
from ..services.event_manager import EventLifecycleManager
from ..services.event_publisher import EventPublisher
from ..services.jwt_service import JWTService
from ..services.notification_service import NotificationService

# Security scheme
security = HTTPBearer()

# Global instances
db_connection = DatabaseConnection()
redis_connection = RedisConnection()
jwt_service = JWTService()
notification_service = NotificationService()
system_clock = SystemClock()


def get_database_session() -> Generator[Session, None, None]:
    """
    Get database session dependency.

    Yields:
        SQLAlchemy database session
    """
    yield from db_connection.get_session()


async def get_jwt_service() -> JWTService:
    if not jwt_service._initialized:
        await jwt_service.initialize()
    return jwt_service


def get_notification_service() -> NotificationService:
    return notification_service


def get_event_publisher() -> EventPublisher:
    """Publisher bound to Redis when it is connected; a no-op publisher otherwise."""
    client = redis_connection.redis_client if redis_connection.is_initialized else None
    return EventPublisher(client)


def get_clock():
    return system_clock


def get_event_manager(
    session: Session = Depends(get_database_session),
    notifier: NotificationService = Depends(get_notification_service),
    publisher: EventPublisher = Depends(get_event_publisher),
    clock=Depends(get_clock)
) -> EventLifecycleManager:
    """
    Get the lifecycle manager for this request.

    Args:
        session: Database session
        notifier: Email notification sender
        publisher: Lifecycle event publisher
        clock: Time source

    Returns:
        EventLifecycleManager instance
    """
    return EventLifecycleManager(session, notifier, publisher, clock)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    jwt_svc: JWTService = Depends(get_jwt_service)
) -> Actor:
    """
    Get the authenticated actor.

    Legacy role names are normalised; tokens with an unknown role are rejected.

    Raises:
        HTTPException: If authentication fails
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    actor = jwt_svc.authenticate(credentials.credentials)
    if actor is None:
        raise credentials_exception
    return actor


async def get_current_dean(current_actor: Actor = Depends(get_current_actor)) -> Actor:
    if not current_actor.is_dean:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions"
        )
    return current_actor


async def get_current_staff(current_actor: Actor = Depends(get_current_actor)) -> Actor:
    """Coordinators and deans."""
    if current_actor.role not in (Role.COORDINATOR, Role.DEAN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions"
        )
    return current_actor
