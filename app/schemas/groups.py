"""
Pydantic schemas for the group endpoints.

Request schemas validate and normalize client input before it reaches the
GroupService; response schemas describe what the endpoints return.
"""

from pydantic import BaseModel, Field, validator
from typing import Any, Dict, Generic, List, Optional, TypeVar
from datetime import datetime

T = TypeVar("T")


def _split_ids(value):
    """Accept ``[1, 2]`` as well as the legacy ``"1,2"`` form."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


# Request schemas
class GroupCreate(BaseModel):
    """Schema for creating a new group."""
    group_name: str = Field(..., min_length=1, max_length=30)
    group_profile: str = Field(..., max_length=100)
    avatar: str = ""
    uids: List[int] = Field(..., min_length=1)

    @validator('uids', pre=True)
    def split_uids(cls, v):
        """Accept comma separated ids."""
        return _split_ids(v)


class GroupAction(BaseModel):
    """Schema for requests that only name a group (dismiss, secede)."""
    group_id: int = Field(..., gt=0)


class GroupInvite(GroupAction):
    """Schema for inviting users into a group."""
    uids: List[int]

    @validator('uids', pre=True)
    def split_uids(cls, v):
        """Accept comma separated ids."""
        return _split_ids(v)


class GroupEdit(GroupAction):
    """Schema for editing a group's profile."""
    group_name: str = Field(..., min_length=1, max_length=30)
    group_profile: str = Field(..., max_length=100)
    avatar: str


class GroupRemoveMembers(GroupAction):
    """Schema for removing members from a group."""
    members_ids: List[int] = Field(..., min_length=1)


class VisitCardUpdate(GroupAction):
    """Schema for setting the caller's visit card."""
    visit_card: str = Field(..., min_length=1)


class NoticeEdit(GroupAction):
    """Schema for creating (notice_id=0) or editing a notice."""
    notice_id: int = Field(..., ge=0)
    title: str = Field(..., min_length=1, max_length=50)
    content: str = Field(..., min_length=1)


class NoticeDelete(GroupAction):
    """Schema for deleting a notice."""
    notice_id: int = Field(..., gt=0)


# Response schemas
class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by every group endpoint."""
    message: str = ""
    data: Optional[T] = None


class GroupCreated(BaseModel):
    """Result of a successful create."""
    group_id: int


class NoticeSummary(BaseModel):
    """Latest notice shown on the group detail page."""
    title: str
    content: str


class GroupDetail(BaseModel):
    """Group profile as seen by the caller."""
    group_id: int
    group_name: str
    group_profile: str
    avatar: str
    created_at: datetime
    is_manager: bool
    manager_nickname: str
    visit_card: str
    not_disturb: bool
    notice: Dict[str, Any] = {}


class MemberResponse(BaseModel):
    """One active group member."""
    id: int
    user_id: int
    is_manager: bool
    visit_card: str
    nickname: str
    avatar: str
    gender: int
    motto: str


class FriendResponse(BaseModel):
    """A friend who can be invited into the group."""
    id: int
    friend_remark: str
    nickname: str
    avatar: str
    gender: int
    motto: str


class NoticeResponse(BaseModel):
    """A notice in the group's notice list."""
    id: int
    user_id: int
    title: str
    content: str
    created_at: datetime
    updated_at: datetime
    avatar: str
    nickname: str
