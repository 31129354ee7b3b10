"""
Celery configuration and setup.

This module configures Celery with the Redis broker and result backend
used to deliver group notifications asynchronously.
"""

from celery import Celery
from kombu import Queue

from app.config.settings import settings


def make_celery() -> Celery:
    """
    Create and configure Celery application instance.

    Returns:
        Celery: Configured Celery application
    """
    celery_app = Celery("group_chat")

    celery_app.conf.update(
        # Broker and Result Backend
        broker_url=settings.celery_broker_url,
        result_backend=settings.celery_result_backend,

        # Task Serialization
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],

        # Push results are never read back
        task_ignore_result=True,

        # Task Routing and Queues
        task_routes={
            "notifications.*": {"queue": "notifications"},
        },
        task_queues=(
            Queue("default", priority=1),
            Queue("notifications", priority=5),
        ),
        task_default_queue="default",

        # Worker Configuration
        worker_prefetch_multiplier=1,  # Prevent worker from hoarding tasks
        task_acks_late=True,  # At-least-once: acknowledge after the push went out

        # Task Execution Configuration
        task_always_eager=False,
        task_eager_propagates=True,

        # Retry Configuration
        task_default_retry_delay=5,

        # Time Limits
        task_soft_time_limit=30,
        task_time_limit=60,

        timezone='UTC',
        worker_hijack_root_logger=False,
    )

    celery_app.autodiscover_tasks(['app.tasks.notifications'], related_name='push_tasks')

    return celery_app


# Create the global Celery instance
celery_app = make_celery()

