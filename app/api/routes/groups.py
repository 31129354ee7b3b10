"""
Group chat API endpoints.

This module exposes the GroupService over HTTP. Handlers only parse the
request, call the service as the authenticated user and translate the
ServiceResult into a response; every group rule lives in the service.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Any, Dict, List, Optional

from app.core.dependencies import get_current_user_id, get_group_service
from app.schemas.groups import (
    GroupCreate, GroupAction, GroupInvite, GroupEdit, GroupRemoveMembers,
    VisitCardUpdate, NoticeEdit, NoticeDelete,
    ApiResponse, GroupCreated, GroupDetail, MemberResponse, FriendResponse, NoticeResponse
)
from app.services.base import ErrorKind, ServiceResult
from app.services.domain.group_service import GroupService

router = APIRouter()

STATUS_BY_KIND = {
    ErrorKind.VALIDATION_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def unwrap(result: ServiceResult, message: str) -> Any:
    """Return the result data or raise an HTTPException carrying ``message``."""
    if result.success:
        return result.data
    raise HTTPException(
        status_code=STATUS_BY_KIND[result.kind],
        detail={
            "message": message,
            "error": result.error.error_code,
            "reason": result.error.message,
        }
    )


@router.post("/create", response_model=ApiResponse[GroupCreated])
async def create_group(
    payload: GroupCreate,
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """
    Create a group owned by the caller.

    - **group_name**: display name of the group
    - **group_profile**: short description
    - **uids**: friends to add, as a list or a comma separated string
    """
    data = unwrap(
        service.create_group(
            user_id,
            {"name": payload.group_name, "profile": payload.group_profile, "avatar": payload.avatar},
            payload.uids,
        ),
        "Failed to create the group, please try again later"
    )
    return {"message": "Group created", "data": {"group_id": data["group_id"]}}


@router.post("/dismiss", response_model=ApiResponse)
async def dismiss_group(
    payload: GroupAction,
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Dismiss a group. Owner only, irreversible."""
    unwrap(service.dismiss_group(payload.group_id, user_id), "Failed to dismiss the group")
    return {"message": "Group dismissed"}


@router.post("/invite", response_model=ApiResponse)
async def invite_members(
    payload: GroupInvite,
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Invite friends into a group. Users already in the group are skipped."""
    data = unwrap(
        service.invite_members(user_id, payload.group_id, payload.uids),
        "Failed to invite friends into the group"
    )
    return {"message": "Friends joined the group", "data": data}


@router.post("/secede", response_model=ApiResponse)
async def secede_group(
    payload: GroupAction,
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Leave a group."""
    data = unwrap(service.quit_group(user_id, payload.group_id), "Failed to leave the group")
    return {"message": "Left the group", "data": data}


@router.post("/edit", response_model=ApiResponse)
async def edit_group(
    payload: GroupEdit,
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Edit the group's name, profile and avatar. Owner only."""
    unwrap(
        service.edit_group_detail(payload.group_id, user_id, {
            "name": payload.group_name,
            "profile": payload.group_profile,
            "avatar": payload.avatar,
        }),
        "Failed to update the group"
    )
    return {"message": "Group updated"}


@router.post("/remove-members", response_model=ApiResponse)
async def remove_members(
    payload: GroupRemoveMembers,
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Remove members from a group. Owner only."""
    data = unwrap(
        service.remove_members(payload.group_id, user_id, payload.members_ids),
        "Failed to remove group members"
    )
    return {"message": "Members removed", "data": data}


@router.get("/detail", response_model=ApiResponse[Optional[GroupDetail]])
async def get_group_detail(
    group_id: int = Query(0, description="Group to describe"),
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """
    Group profile as seen by the caller.

    Returns ``data: null`` when the group does not exist or was dismissed.
    """
    data = unwrap(service.get_group_detail(group_id, user_id), "Failed to load the group")
    return {"data": data or None}


@router.post("/set-group-card", response_model=ApiResponse)
async def set_group_card(
    payload: VisitCardUpdate,
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Set the caller's visit card (display name) in a group."""
    unwrap(
        service.set_visit_card(payload.group_id, user_id, payload.visit_card),
        "Failed to update the visit card"
    )
    return {"message": "Visit card updated"}


@router.get("/invite-friends", response_model=ApiResponse[List[FriendResponse]])
async def get_invite_friends(
    group_id: int = Query(0, description="Exclude active members of this group"),
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Friends of the caller that can still be invited into the group."""
    data = unwrap(service.list_invitable_friends(user_id, group_id), "Failed to load friends")
    return {"data": data}


@router.get("/members", response_model=ApiResponse[List[MemberResponse]])
async def get_group_members(
    group_id: int = Query(0, description="Group to list"),
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Active members of a group, owner first. Members only."""
    data = unwrap(service.list_members(group_id, user_id), "Not allowed to view this group")
    return {"data": data}


@router.get("/notices", response_model=ApiResponse[List[NoticeResponse]])
async def get_group_notices(
    group_id: int = Query(0, description="Group to list"),
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Current notices of a group, newest first. Members only."""
    data = unwrap(service.list_notices(group_id, user_id), "Not allowed to view this group")
    return {"data": data}


@router.post("/edit-notice", response_model=ApiResponse[Dict[str, Any]])
async def edit_notice(
    payload: NoticeEdit,
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Create a notice (``notice_id`` 0) or edit an existing one. Owner only."""
    data = unwrap(
        service.create_or_update_notice(
            payload.group_id, user_id, payload.notice_id, payload.title, payload.content
        ),
        "Failed to save the notice"
    )
    message = "Notice created" if data["created"] else "Notice updated"
    return {"message": message, "data": data}


@router.post("/delete-notice", response_model=ApiResponse)
async def delete_notice(
    payload: NoticeDelete,
    user_id: int = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Soft-delete a notice. Owner only."""
    unwrap(service.delete_notice(payload.group_id, user_id, payload.notice_id), "Failed to delete the notice")
    return {"message": "Notice deleted"}
