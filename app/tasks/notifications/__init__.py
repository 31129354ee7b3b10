"""
Notification tasks: realtime delivery of group events.
"""

from .push_tasks import push_group_event

__all__ = [
    'push_group_event'
]
