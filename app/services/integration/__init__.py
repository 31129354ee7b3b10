"""
Integration Services

This module contains services for integrating with external systems,
currently the asynchronous group notification dispatcher.
"""

from .notification_service import NotificationService, GroupEvent

__all__ = [
    'NotificationService',
    'GroupEvent'
]
