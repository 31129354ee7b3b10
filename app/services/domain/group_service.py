"""
Group Domain Service

This service owns every state change a chat group can go through: creation,
dismissal, invitations, members quitting or being removed, profile edits,
visit cards and notices. It holds no state between calls; each operation is
one short transaction against the persistence gateway, and every lifecycle
transition is a conditional update so repeated or concurrent calls are
idempotent.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError

from app.models import (
    User, FriendLink, ChatListEntry, ChatType,
    Group, GroupMember, GroupNotice, GroupMemberRecord,
    GroupStatus, MemberStatus, MemberRecordKind
)
from app.services.base import (
    BaseService, ServiceResult, service_method,
    ValidationError, NotFoundError, GroupDismissedError, ConflictError, AuthorizationError
)
from app.services.gateway import PersistenceGateway
from app.services.integration.notification_service import NotificationService, GroupEvent

logger = logging.getLogger(__name__)

EDITABLE_GROUP_FIELDS = ("name", "profile", "avatar")


class Role(Enum):
    """Privilege an operation requires on a group."""
    MEMBER = "member"
    OWNER = "owner"


class GroupService(BaseService):
    """Service for group membership and notice management."""

    def __init__(self, gateway: PersistenceGateway, notifier: NotificationService):
        super().__init__("GroupService")
        self.gateway = gateway
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Group lifecycle
    # ------------------------------------------------------------------

    @service_method
    def create_group(self, creator_id: int, group_info: Dict[str, Any],
                     friend_ids: Iterable[Any] = None) -> ServiceResult[Dict[str, Any]]:
        """Create a group owned by ``creator_id`` with the given friends as members."""
        name = (group_info.get("name") or "").strip()
        if not name:
            raise ValidationError("Group name is required", "name", group_info.get("name"))

        member_ids = [uid for uid in self._clean_ids(friend_ids or [], "uids") if uid != creator_id]

        with self.gateway.atomic():
            group = self.gateway.create(
                Group,
                owner_id=creator_id,
                name=name,
                profile=group_info.get("profile") or "",
                avatar=group_info.get("avatar") or "",
            )
            group_id = group.id
            joined = self._join(group_id, [creator_id] + member_ids, owner_id=creator_id)

        self.notifier.publish(GroupEvent.CREATED, group_id, {
            "owner_id": creator_id,
            "name": name,
            "user_ids": joined,
        })
        return ServiceResult.success_result({"group_id": group_id, "user_ids": joined})

    @service_method
    def dismiss_group(self, group_id: int, requester_id: int) -> ServiceResult[bool]:
        """Dismiss a group for good and remove every member from it."""
        self._require(Role.OWNER, group_id, requester_id)

        with self.gateway.atomic():
            member_ids = self._active_member_ids(group_id)
            dismissed = self.gateway.update(
                Group,
                {"id": group_id, "status": GroupStatus.ACTIVE},
                {"status": GroupStatus.DISMISSED, "dismissed_at": datetime.utcnow()},
            )
            if not dismissed:
                raise GroupDismissedError(group_id)
            self.gateway.update(
                GroupMember,
                {"group_id": group_id, "status": MemberStatus.ACTIVE},
                {"status": MemberStatus.REMOVED},
            )
            self._close_chat(group_id, member_ids)

        self.notifier.publish(GroupEvent.DISMISSED, group_id, {
            "operator_id": requester_id,
            "user_ids": member_ids,
        })
        return ServiceResult.success_result(True)

    @service_method
    def edit_group_detail(self, group_id: int, requester_id: int,
                          fields: Dict[str, Any]) -> ServiceResult[bool]:
        """Update the group's name, profile and avatar in one statement."""
        changes = {
            key: value for key, value in (fields or {}).items()
            if key in EDITABLE_GROUP_FIELDS and value is not None
        }
        if not changes:
            raise ValidationError("No editable group fields supplied", "fields")
        if "name" in changes:
            changes["name"] = str(changes["name"]).strip()
            if not changes["name"]:
                raise ValidationError("Group name cannot be empty", "name")

        self._require(Role.OWNER, group_id, requester_id)

        with self.gateway.atomic():
            updated = self.gateway.update(Group, {"id": group_id, "status": GroupStatus.ACTIVE}, changes)
            if not updated:
                raise GroupDismissedError(group_id)

        self.notifier.publish(GroupEvent.UPDATED, group_id, {"operator_id": requester_id, **changes})
        return ServiceResult.success_result(True)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    @service_method
    def invite_members(self, inviter_id: int, group_id: int,
                       uids: Iterable[Any]) -> ServiceResult[Dict[str, Any]]:
        """
        Add users to a group.

        Duplicate ids and users who are already active members are dropped
        silently. Previously removed members are re-activated.
        """
        user_ids = self._clean_ids(uids, "uids")
        if not user_ids:
            raise ValidationError("At least one user id is required", "uids")

        self._load_group(group_id)
        role = Role.MEMBER if self.get_config("members_can_invite", False) else Role.OWNER
        self._require(role, group_id, inviter_id)

        try:
            joined, record_id = self._add_members(group_id, inviter_id, user_ids)
        except IntegrityError:
            # a concurrent invite inserted one of the memberships first
            logger.info(f"Membership race while inviting into group {group_id}, retrying")
            joined, record_id = self._add_members(group_id, inviter_id, user_ids)

        if not joined:
            return ServiceResult.success_result({"record_id": None, "user_ids": []})

        self.notifier.publish(GroupEvent.MEMBERS_JOINED, group_id, {
            "operator_id": inviter_id,
            "record_id": record_id,
            "user_ids": joined,
        })
        return ServiceResult.success_result({"record_id": record_id, "user_ids": joined})

    @service_method
    def quit_group(self, user_id: int, group_id: int) -> ServiceResult[Dict[str, Any]]:
        """Leave a group. The owner has to dismiss the group instead."""
        group = self._load_group(group_id)
        if group.owner_id == user_id:
            raise ConflictError("The group owner cannot quit the group, dismiss it instead", "group")

        with self.gateway.atomic():
            left = self.gateway.update(
                GroupMember,
                {"group_id": group_id, "user_id": user_id, "status": MemberStatus.ACTIVE},
                {"status": MemberStatus.REMOVED},
            )
            if not left:
                raise AuthorizationError("Not a member of this group", Role.MEMBER.value)
            self._close_chat(group_id, [user_id])
            record_id = self._record(group_id, user_id, MemberRecordKind.QUIT, [user_id])

        self.notifier.publish(GroupEvent.MEMBER_QUIT, group_id, {
            "operator_id": user_id,
            "record_id": record_id,
            "user_ids": [user_id],
        })
        return ServiceResult.success_result({"record_id": record_id})

    @service_method
    def remove_members(self, group_id: int, requester_id: int,
                       member_ids: Iterable[Any]) -> ServiceResult[Dict[str, Any]]:
        """Remove members from a group. Ids that are not active members are ignored."""
        user_ids = self._clean_ids(member_ids, "members_ids")
        if not user_ids:
            raise ValidationError("At least one member id is required", "members_ids")

        group = self._require(Role.OWNER, group_id, requester_id)
        if group.owner_id in user_ids:
            raise ConflictError("The group owner cannot be removed", "owner")

        with self.gateway.atomic():
            removed = [
                uid for uid in user_ids
                if self.gateway.update(
                    GroupMember,
                    {"group_id": group_id, "user_id": uid, "status": MemberStatus.ACTIVE},
                    {"status": MemberStatus.REMOVED},
                )
            ]
            if not removed:
                return ServiceResult.success_result({"record_id": None, "user_ids": []})
            self._close_chat(group_id, removed)
            record_id = self._record(group_id, requester_id, MemberRecordKind.REMOVE, removed)

        self.notifier.publish(GroupEvent.MEMBERS_REMOVED, group_id, {
            "operator_id": requester_id,
            "record_id": record_id,
            "user_ids": removed,
        })
        return ServiceResult.success_result({"record_id": record_id, "user_ids": removed})

    @service_method
    def set_visit_card(self, group_id: int, user_id: int, card: str) -> ServiceResult[bool]:
        """Set the caller's display name inside the group."""
        card = (card or "").strip()
        max_length = self.get_config("visit_card_max_length", 20)
        if not card:
            raise ValidationError("Visit card cannot be empty", "visit_card")
        if len(card) > max_length:
            raise ValidationError(f"Visit card must be at most {max_length} characters", "visit_card", card)

        with self.gateway.atomic():
            updated = self.gateway.update(
                GroupMember,
                {"group_id": group_id, "user_id": user_id, "status": MemberStatus.ACTIVE},
                {"visit_card": card},
            )
            if not updated:
                raise AuthorizationError("Not a member of this group", Role.MEMBER.value)

        return ServiceResult.success_result(True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @service_method
    def get_group_detail(self, group_id: int, caller_id: int) -> ServiceResult[Dict[str, Any]]:
        """Group profile as seen by ``caller_id``; empty when the group is gone."""
        group = self.gateway.find(Group, id=group_id, status=GroupStatus.ACTIVE)
        if group is None:
            return ServiceResult.success_result({})

        owner = self.gateway.find(User, id=group.owner_id)
        member = self.gateway.find(GroupMember, group_id=group_id, user_id=caller_id, status=MemberStatus.ACTIVE)
        chat = self.gateway.find(ChatListEntry, user_id=caller_id, group_id=group_id, type=ChatType.GROUP)
        notice = self.gateway.find(
            GroupNotice, order_by=GroupNotice.id.desc(), group_id=group_id, is_deleted=False
        )

        return ServiceResult.success_result({
            "group_id": group.id,
            "group_name": group.name,
            "group_profile": group.profile,
            "avatar": group.avatar,
            "created_at": group.created_at,
            "is_manager": group.owner_id == caller_id,
            "manager_nickname": owner.nickname if owner else "",
            "visit_card": member.visit_card if member else "",
            "not_disturb": bool(chat.not_disturb) if chat else False,
            "notice": {"title": notice.title, "content": notice.content} if notice else {},
        })

    @service_method
    def list_members(self, group_id: int, caller_id: int) -> ServiceResult[List[Dict[str, Any]]]:
        """Active members, owner first."""
        self._require(Role.MEMBER, group_id, caller_id)

        members = self.gateway.list(
            GroupMember,
            order_by=[GroupMember.is_owner.desc(), GroupMember.id],
            group_id=group_id,
            status=MemberStatus.ACTIVE,
        )
        users = self._users(m.user_id for m in members)

        return ServiceResult.success_result([
            {
                "id": m.id,
                "user_id": m.user_id,
                "is_manager": m.is_owner,
                "visit_card": m.visit_card,
                **self._profile(users.get(m.user_id)),
            }
            for m in members
        ])

    @service_method
    def list_invitable_friends(self, caller_id: int, group_id: int = 0) -> ServiceResult[List[Dict[str, Any]]]:
        """Caller's friends who are not active members of ``group_id``."""
        links = self.gateway.list(FriendLink, order_by=FriendLink.id, user_id=caller_id, is_active=True)

        if group_id and group_id > 0:
            joined = set(self._active_member_ids(group_id))
            links = [link for link in links if link.friend_id not in joined]

        users = self._users(link.friend_id for link in links)
        return ServiceResult.success_result([
            {
                "id": link.friend_id,
                "friend_remark": link.remark,
                **self._profile(users.get(link.friend_id)),
            }
            for link in links
        ])

    @service_method
    def list_notices(self, group_id: int, caller_id: int) -> ServiceResult[List[Dict[str, Any]]]:
        """Non-deleted notices of a group, newest first."""
        self._require(Role.MEMBER, group_id, caller_id)

        notices = self.gateway.list(
            GroupNotice, order_by=GroupNotice.id.desc(), group_id=group_id, is_deleted=False
        )
        authors = self._users(n.author_id for n in notices)

        rows = []
        for notice in notices:
            author = authors.get(notice.author_id)
            rows.append({
                "id": notice.id,
                "user_id": notice.author_id,
                "title": notice.title,
                "content": notice.content,
                "created_at": notice.created_at,
                "updated_at": notice.updated_at,
                "avatar": author.avatar if author else "",
                "nickname": author.nickname if author else "",
            })
        return ServiceResult.success_result(rows)

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    @service_method
    def create_or_update_notice(self, group_id: int, requester_id: int, notice_id: Optional[int],
                                title: str, content: str) -> ServiceResult[Dict[str, Any]]:
        """Create a notice when ``notice_id`` is empty, otherwise edit it in place."""
        title = (title or "").strip()
        content = (content or "").strip()
        if not title:
            raise ValidationError("Notice title is required", "title")
        if not content:
            raise ValidationError("Notice content is required", "content")

        self._require(Role.OWNER, group_id, requester_id)

        now = datetime.utcnow()
        created = not notice_id
        with self.gateway.atomic():
            if created:
                notice = self.gateway.create(
                    GroupNotice,
                    group_id=group_id,
                    author_id=requester_id,
                    title=title,
                    content=content,
                    created_at=now,
                    updated_at=now,
                )
                notice_id = notice.id
            else:
                updated = self.gateway.update(
                    GroupNotice,
                    {"id": notice_id, "group_id": group_id, "is_deleted": False},
                    {"title": title, "content": content, "updated_at": now},
                )
                if not updated:
                    raise NotFoundError("Notice", notice_id)

        self.notifier.publish(GroupEvent.NOTICE_PUBLISHED, group_id, {
            "operator_id": requester_id,
            "notice_id": notice_id,
            "title": title,
            "created": created,
        })
        return ServiceResult.success_result({"notice_id": notice_id, "created": created})

    @service_method
    def delete_notice(self, group_id: int, requester_id: int, notice_id: int) -> ServiceResult[bool]:
        """Soft-delete a notice. Deleting it again is a no-op."""
        self._require(Role.OWNER, group_id, requester_id)

        with self.gateway.atomic():
            notice = self.gateway.find(GroupNotice, id=notice_id, group_id=group_id)
            if notice is None:
                raise NotFoundError("Notice", notice_id)
            self.gateway.update(
                GroupNotice,
                {"id": notice_id, "is_deleted": False},
                {"is_deleted": True, "deleted_at": datetime.utcnow()},
            )

        return ServiceResult.success_result(True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_group(self, group_id: int) -> Group:
        group = self.gateway.find(Group, id=group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        if group.status != GroupStatus.ACTIVE:
            raise GroupDismissedError(group_id)
        return group

    def _require(self, role: Role, group_id: int, user_id: int) -> Group:
        """
        Capability check shared by every operation that needs a privilege.

        OWNER: the group must be active and owned by ``user_id``.
        MEMBER: ``user_id`` must hold an active membership of an active group.
        A dismissed group has no active memberships, so MEMBER checks on it
        fail as unauthorized rather than not found.
        """
        if role is Role.OWNER:
            group = self._load_group(group_id)
            if group.owner_id != user_id:
                raise AuthorizationError("Only the group owner can do this", Role.OWNER.value)
            return group

        member = self.gateway.find(GroupMember, group_id=group_id, user_id=user_id, status=MemberStatus.ACTIVE)
        group = self.gateway.find(Group, id=group_id, status=GroupStatus.ACTIVE) if member else None
        if group is None:
            raise AuthorizationError("Not a member of this group", Role.MEMBER.value)
        return group

    def _join(self, group_id: int, user_ids: List[int], owner_id: int = None) -> List[int]:
        """Insert or re-activate memberships; returns the users who actually joined."""
        existing = {
            m.user_id: m
            for m in self.gateway.list(GroupMember, group_id=group_id, user_id__in=user_ids)
        }

        joined = []
        for user_id in user_ids:
            member = existing.get(user_id)
            if member is None:
                self.gateway.create(GroupMember, group_id=group_id, user_id=user_id, is_owner=user_id == owner_id)
            elif member.status == MemberStatus.REMOVED:
                reactivated = self.gateway.update(
                    GroupMember,
                    {"id": member.id, "status": MemberStatus.REMOVED},
                    {"status": MemberStatus.ACTIVE, "visit_card": ""},
                )
                if not reactivated:
                    continue
            else:
                continue
            joined.append(user_id)
            self._open_chat(user_id, group_id)
        return joined

    def _add_members(self, group_id: int, inviter_id: int, user_ids: List[int]):
        with self.gateway.atomic():
            joined = self._join(group_id, user_ids)
            if not joined:
                return joined, None
            return joined, self._record(group_id, inviter_id, MemberRecordKind.INVITE, joined)

    def _open_chat(self, user_id: int, group_id: int) -> None:
        chat = self.gateway.find(ChatListEntry, user_id=user_id, group_id=group_id, type=ChatType.GROUP)
        if chat is None:
            self.gateway.create(ChatListEntry, user_id=user_id, group_id=group_id, type=ChatType.GROUP)
        elif not chat.is_active:
            self.gateway.update(ChatListEntry, {"id": chat.id}, {"is_active": True})

    def _close_chat(self, group_id: int, user_ids: List[int]) -> None:
        """Drop the group from the chat list of users who left it."""
        if not user_ids:
            return
        self.gateway.update(
            ChatListEntry,
            {"group_id": group_id, "user_id__in": user_ids, "type": ChatType.GROUP, "is_active": True},
            {"is_active": False},
        )

    def _record(self, group_id: int, operator_id: int, kind: MemberRecordKind, user_ids: List[int]) -> int:
        record = self.gateway.create(
            GroupMemberRecord,
            group_id=group_id,
            operator_id=operator_id,
            kind=kind.value,
            user_ids=",".join(str(uid) for uid in user_ids),
        )
        return record.id

    def _active_member_ids(self, group_id: int) -> List[int]:
        members = self.gateway.list(
            GroupMember, order_by=GroupMember.id, group_id=group_id, status=MemberStatus.ACTIVE
        )
        return [m.user_id for m in members]

    def _users(self, user_ids: Iterable[int]) -> Dict[int, User]:
        user_ids = list(set(user_ids))
        if not user_ids:
            return {}
        return {user.id: user for user in self.gateway.list(User, id__in=user_ids)}

    @staticmethod
    def _profile(user: Optional[User]) -> Dict[str, Any]:
        if user is None:
            return {"nickname": "", "avatar": "", "gender": 0, "motto": ""}
        return {"nickname": user.nickname, "avatar": user.avatar, "gender": user.gender, "motto": user.motto}

    @staticmethod
    def _clean_ids(values: Iterable[Any], field: str) -> List[int]:
        """Positive integer ids, de-duplicated, first occurrence order kept."""
        seen = []
        for value in values:
            try:
                user_id = int(value)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid user id: {value!r}", field, value)
            if user_id > 0 and user_id not in seen:
                seen.append(user_id)
        return seen
