"""
Notification Integration Service

Hands group events to the Celery push worker. Publishing is fire-and-forget:
the caller never waits for delivery and a broker outage never undoes a
state change that has already been committed.
"""

import logging
from typing import Any, Dict

from kombu.exceptions import OperationalError

from app.services.base import BaseService
from app.tasks.notifications.push_tasks import push_group_event

logger = logging.getLogger(__name__)


class GroupEvent:
    """Event names published for group state changes."""
    CREATED = "group.created"
    DISMISSED = "group.dismissed"
    MEMBERS_JOINED = "group.members_joined"
    MEMBER_QUIT = "group.member_quit"
    MEMBERS_REMOVED = "group.members_removed"
    UPDATED = "group.updated"
    NOTICE_PUBLISHED = "group.notice_published"


class NotificationService(BaseService):
    """Service for dispatching group events to members."""

    def __init__(self):
        super().__init__("NotificationService")

    def publish(self, event: str, group_id: int, payload: Dict[str, Any] = None) -> bool:
        """
        Enqueue a push of ``event`` to the members of ``group_id``.

        Returns:
            True if the task was handed to the broker, False otherwise
        """
        payload = payload or {}
        try:
            async_result = push_group_event.delay(event, group_id, payload)
        except OperationalError as e:
            self.logger.error(f"Failed to enqueue {event} for group {group_id}: {e}")
            return False

        self.logger.info(f"Enqueued {event} for group {group_id} (task {async_result.id})")
        return True
