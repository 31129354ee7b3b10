"""
FastAPI dependency injection functions.

This module provides dependency functions that can be injected into
FastAPI route handlers for database sessions, the caller identity and
the group service.
"""

from typing import Generator, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.core.database import get_db
from app.services.domain.group_service import GroupService
from app.services.gateway import PersistenceGateway
from app.services.integration.notification_service import NotificationService


def get_database() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database session.

    Yields:
        Session: SQLAlchemy database session
    """
    yield from get_db()


def get_current_user_id(request: Request) -> int:
    """
    Authenticated user id.

    Token verification happens upstream; the verifying middleware forwards
    the user id in ``settings.user_id_header``.
    """
    raw: Optional[str] = request.headers.get(settings.user_id_header)
    try:
        user_id = int(raw) if raw is not None else 0
    except ValueError:
        user_id = 0
    if user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authenticated user"
        )
    return user_id


def get_notification_service() -> NotificationService:
    """FastAPI dependency for the notification dispatcher."""
    service = NotificationService()
    service.initialize()
    return service


def get_group_service(
    db: Session = Depends(get_database),
    notifier: NotificationService = Depends(get_notification_service)
) -> GroupService:
    """
    FastAPI dependency for a request scoped GroupService.

    Returns:
        GroupService: service bound to this request's database session
    """
    service = GroupService(PersistenceGateway(db), notifier)
    service.initialize({
        "members_can_invite": settings.members_can_invite,
        "visit_card_max_length": settings.visit_card_max_length,
    })
    return service
