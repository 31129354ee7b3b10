"""
Realtime push of group events.

Workers resolve who should hear about a group event and publish it to each
recipient's Redis channel, where the websocket gateway picks it up.
"""

from celery import shared_task
from sqlalchemy.orm import Session
from typing import Any, Dict, List
from datetime import datetime
import logging

import redis

from app.config.celery_config import celery_app  # noqa: F401
from app.core.database import SessionLocal
from app.core.redis import redis_manager
from app.models import GroupMember, MemberStatus

logger = logging.getLogger(__name__)


def get_db_session() -> Session:
    """Get database session for tasks."""
    return SessionLocal()


def resolve_recipients(db: Session, group_id: int, extra_user_ids: List[int] = None) -> List[int]:
    """
    Active members of the group plus any explicitly named users.

    Users named in the payload are included so that people who just left or
    were removed still receive the event describing it.
    """
    rows = (
        db.query(GroupMember.user_id)
        .filter(GroupMember.group_id == group_id, GroupMember.status == MemberStatus.ACTIVE)
        .all()
    )
    recipients = [row.user_id for row in rows]
    for user_id in extra_user_ids or []:
        if user_id not in recipients:
            recipients.append(user_id)
    return recipients


@shared_task(bind=True, name="notifications.push_group_event", max_retries=5)
def push_group_event(self, event: str, group_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deliver a group event to every recipient's realtime channel.

    Args:
        event: Event name, e.g. ``group.members_joined``
        group_id: Group the event belongs to
        payload: Event body; ``user_ids`` lists users affected by the change

    Returns:
        Dict with the recipients and delivery counts
    """
    db = get_db_session()
    try:
        recipients = resolve_recipients(db, group_id, payload.get("user_ids"))
    finally:
        db.close()

    message = {
        "event": event,
        "group_id": group_id,
        "payload": payload,
        "sent_at": datetime.utcnow().isoformat(),
    }

    try:
        delivered = redis_manager.publish_to_users(recipients, message)
    except redis.RedisError as e:
        logger.warning(f"Push of {event} for group {group_id} failed, retrying: {e}")
        raise self.retry(exc=e, countdown=2 ** self.request.retries)

    logger.info(f"Pushed {event} for group {group_id} to {len(recipients)} users")

    return {
        "event": event,
        "group_id": group_id,
        "recipients": recipients,
        "online": sum(1 for count in delivered.values() if count),
        "task_id": self.request.id,
    }
