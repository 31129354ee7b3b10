"""
Database models package.

This module imports all SQLAlchemy models to ensure they are
registered with the database metadata for table creation.
"""

# Import all models to register them with SQLAlchemy
from app.models.users import User, FriendLink, ChatListEntry, ChatType
from app.models.groups import (
    Group, GroupMember, GroupNotice, GroupMemberRecord,
    GroupStatus, MemberStatus, MemberRecordKind
)

# Export all models for easy importing
__all__ = [
    # User side models
    "User",
    "FriendLink",
    "ChatListEntry",

    # Group models
    "Group",
    "GroupMember",
    "GroupNotice",
    "GroupMemberRecord",

    # Enums
    "ChatType",
    "GroupStatus",
    "MemberStatus",
    "MemberRecordKind"
]
