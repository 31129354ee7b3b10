"""
Pydantic schemas package.

This module imports all Pydantic schemas for API request/response validation
and provides a centralized place to access all schema definitions.
"""

from app.schemas.groups import (
    GroupCreate, GroupAction, GroupInvite, GroupEdit, GroupRemoveMembers,
    VisitCardUpdate, NoticeEdit, NoticeDelete,
    ApiResponse, GroupCreated, NoticeSummary, GroupDetail,
    MemberResponse, FriendResponse, NoticeResponse
)

__all__ = [
    # Request schemas
    "GroupCreate", "GroupAction", "GroupInvite", "GroupEdit", "GroupRemoveMembers",
    "VisitCardUpdate", "NoticeEdit", "NoticeDelete",

    # Response schemas
    "ApiResponse", "GroupCreated", "NoticeSummary", "GroupDetail",
    "MemberResponse", "FriendResponse", "NoticeResponse"
]
