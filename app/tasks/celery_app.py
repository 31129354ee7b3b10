"""
Main Celery application instance and task discovery.

This module is the entry point for Celery workers:
    celery -A app.tasks.celery_app worker -Q notifications
"""

from app.config.celery_config import celery_app

# Import task modules so they are registered with the worker
from app.tasks.notifications import push_tasks  # noqa: F401


__all__ = ["celery_app"]


def get_registered_tasks():
    """
    Get list of all registered Celery tasks.

    Returns:
        list: List of task names registered with Celery
    """
    return list(celery_app.tasks.keys())
