"""
Domain Services

This module contains the business logic services for each domain entity.
Domain services encapsulate business rules, validation, and orchestration
specific to each business domain.

Available Domain Services:
=========================

1. **GroupService** - Group lifecycle, membership, visit cards and notices
"""

from .group_service import GroupService, Role

__all__ = [
    'GroupService',
    'Role'
]
