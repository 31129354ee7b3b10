from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.database import Base
from app.models import (
    User, Group, GroupMember, GroupNotice, GroupMemberRecord, ChatListEntry,
    GroupStatus, MemberStatus
)
from app.services.base import ErrorKind
from app.services.domain.group_service import GroupService
from app.services.gateway import PersistenceGateway
from app.services.integration.notification_service import GroupEvent, NotificationService


def active_member_ids(gateway, group_id):
    return sorted(
        m.user_id for m in gateway.list(GroupMember, group_id=group_id, status=MemberStatus.ACTIVE)
    )


# create_group


def test_create_group_adds_owner_and_friends(group_service, gateway, notifier):
    result = group_service.create_group(1, {"name": " hikers ", "avatar": "g.png"}, [2, 3, 3, "2", 1, 0])

    assert result.success
    group_id = result.data["group_id"]
    group = gateway.find(Group, id=group_id)
    assert group.owner_id == 1
    assert group.name == "hikers"
    assert group.status == GroupStatus.ACTIVE
    assert active_member_ids(gateway, group_id) == [1, 2, 3]
    assert result.data["user_ids"] == [1, 2, 3]

    owner = gateway.find(GroupMember, group_id=group_id, user_id=1)
    assert owner.is_owner is True
    assert gateway.count(GroupMember, group_id=group_id, is_owner=True) == 1
    assert gateway.count(ChatListEntry, group_id=group_id) == 3

    notifier.publish.assert_called_once_with(
        GroupEvent.CREATED, group_id, {"owner_id": 1, "name": "hikers", "user_ids": [1, 2, 3]}
    )


def test_create_group_requires_name(group_service, gateway, notifier):
    result = group_service.create_group(1, {"name": "  "}, [2])

    assert not result.success
    assert result.kind is ErrorKind.VALIDATION_FAILED
    assert gateway.count(Group) == 0
    notifier.publish.assert_not_called()


def test_create_group_rejects_malformed_ids(group_service, gateway):
    result = group_service.create_group(1, {"name": "hikers"}, [2, "abc"])

    assert result.kind is ErrorKind.VALIDATION_FAILED
    assert gateway.count(Group) == 0


def test_create_group_rolls_back_on_failure(group_service, gateway, mocker):
    mocker.patch.object(group_service, "_open_chat", side_effect=RuntimeError("disk full"))

    with pytest.raises(RuntimeError):
        group_service.create_group(1, {"name": "hikers"}, [2, 3])

    assert gateway.count(Group) == 0
    assert gateway.count(GroupMember) == 0


# dismiss_group


def test_dismiss_group_removes_every_member(group_service, gateway, notifier, group_id):
    notifier.reset_mock()

    result = group_service.dismiss_group(group_id, 1)

    assert result.success
    group = gateway.find(Group, id=group_id)
    assert group.status == GroupStatus.DISMISSED
    assert group.dismissed_at is not None
    assert active_member_ids(gateway, group_id) == []
    assert gateway.count(ChatListEntry, group_id=group_id, is_active=True) == 0
    notifier.publish.assert_called_once_with(
        GroupEvent.DISMISSED, group_id, {"operator_id": 1, "user_ids": [1, 2, 3]}
    )


def test_dismiss_group_by_member_is_unauthorized(group_service, gateway, group_id):
    result = group_service.dismiss_group(group_id, 2)

    assert result.kind is ErrorKind.UNAUTHORIZED
    assert gateway.find(Group, id=group_id).status == GroupStatus.ACTIVE


def test_dismiss_missing_group_is_not_found(group_service):
    result = group_service.dismiss_group(999, 1)

    assert result.kind is ErrorKind.NOT_FOUND


def test_dismiss_is_irreversible(group_service, group_id):
    assert group_service.dismiss_group(group_id, 1).success

    again = group_service.dismiss_group(group_id, 1)

    assert again.kind is ErrorKind.NOT_FOUND
    assert again.error.error_code == "ALREADY_DISMISSED"


def test_dismissed_group_cannot_be_reactivated(gateway, group_service, group_id):
    group_service.dismiss_group(group_id, 1)
    group = gateway.find(Group, id=group_id)

    with pytest.raises(ValueError):
        group.status = GroupStatus.ACTIVE


def test_list_members_after_dismiss_is_unauthorized_for_everyone(group_service, group_id):
    group_service.dismiss_group(group_id, 1)

    for user_id in (1, 2, 3):
        assert group_service.list_members(group_id, user_id).kind is ErrorKind.UNAUTHORIZED


# invite_members


def test_invite_members_skips_duplicates_and_existing(group_service, gateway, notifier, group_id):
    notifier.reset_mock()

    result = group_service.invite_members(1, group_id, [4, 4, 2, 5])

    assert result.success
    assert result.data["user_ids"] == [4, 5]
    assert active_member_ids(gateway, group_id) == [1, 2, 3, 4, 5]
    record = gateway.find(GroupMemberRecord, id=result.data["record_id"])
    assert record.kind == "invite"
    assert record.user_id_list == [4, 5]
    notifier.publish.assert_called_once()
    assert notifier.publish.call_args.args[0] == GroupEvent.MEMBERS_JOINED


def test_invite_members_is_idempotent(group_service, gateway, notifier, group_id):
    group_service.invite_members(1, group_id, [4])
    notifier.reset_mock()

    again = group_service.invite_members(1, group_id, [4])

    assert again.success
    assert again.data == {"record_id": None, "user_ids": []}
    assert gateway.count(GroupMember, group_id=group_id, user_id=4) == 1
    notifier.publish.assert_not_called()


def test_invite_reactivates_removed_member(group_service, gateway, group_id):
    group_service.set_visit_card(group_id, 2, "bobby")
    group_service.quit_group(2, group_id)

    result = group_service.invite_members(1, group_id, [2])

    assert result.data["user_ids"] == [2]
    assert gateway.count(GroupMember, group_id=group_id, user_id=2) == 1
    member = gateway.find(GroupMember, group_id=group_id, user_id=2)
    assert member.status == MemberStatus.ACTIVE
    assert member.visit_card == ""


def test_invite_into_dismissed_group_fails(group_service, group_id):
    group_service.dismiss_group(group_id, 1)

    result = group_service.invite_members(1, group_id, [4])

    assert result.kind is ErrorKind.NOT_FOUND
    assert result.error.error_code == "ALREADY_DISMISSED"


def test_invite_requires_owner_by_default(group_service, group_id):
    result = group_service.invite_members(2, group_id, [5])

    assert result.kind is ErrorKind.UNAUTHORIZED


def test_invite_by_member_when_allowed(group_service, gateway, group_id):
    group_service.initialize({"members_can_invite": True})

    result = group_service.invite_members(2, group_id, [5])

    assert result.success
    assert 5 in active_member_ids(gateway, group_id)


def test_invite_requires_ids(group_service, group_id):
    assert group_service.invite_members(1, group_id, [0]).kind is ErrorKind.VALIDATION_FAILED


def test_invite_reopens_chat_of_returning_member(group_service, gateway, group_id):
    group_service.quit_group(2, group_id)
    assert gateway.find(ChatListEntry, user_id=2, group_id=group_id).is_active is False

    group_service.invite_members(1, group_id, [2])

    assert gateway.count(ChatListEntry, user_id=2, group_id=group_id) == 1
    assert gateway.find(ChatListEntry, user_id=2, group_id=group_id).is_active is True


def test_concurrent_invites_of_same_user_are_idempotent(tmp_path, mocker):
    engine = create_engine(f"sqlite:///{tmp_path / 'groups.db'}")
    Base.metadata.create_all(bind=engine)
    make_session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session_a, session_b = make_session(), make_session()
    session_a.add_all([User(id=uid, nickname=f"user{uid}") for uid in (1, 2, 4)])
    session_a.commit()

    services = []
    for session in (session_a, session_b):
        service = GroupService(PersistenceGateway(session), MagicMock(spec=NotificationService))
        service.initialize({"members_can_invite": False})
        services.append(service)
    service_a, service_b = services
    group_id = service_a.create_group(1, {"name": "hikers"}, [2]).data["group_id"]

    # service B commits the same invite between A's membership read and A's insert
    real_list = service_a.gateway.list
    raced = []

    def list_then_race(model, *args, **filters):
        rows = real_list(model, *args, **filters)
        if model is GroupMember and not raced:
            raced.append(service_b.invite_members(1, group_id, [4]))
        return rows

    mocker.patch.object(service_a.gateway, "list", side_effect=list_then_race)
    service_a.notifier.reset_mock()

    result = service_a.invite_members(1, group_id, [4])

    assert raced[0].data["user_ids"] == [4]
    assert result.success
    assert result.data == {"record_id": None, "user_ids": []}
    assert session_a.query(GroupMember).filter_by(group_id=group_id, user_id=4).count() == 1
    assert session_a.query(GroupMemberRecord).filter_by(group_id=group_id).count() == 1
    service_a.notifier.publish.assert_not_called()

    session_a.close()
    session_b.close()
    engine.dispose()


# quit_group


def test_quit_group_by_owner_conflicts(group_service, gateway, group_id):
    result = group_service.quit_group(1, group_id)

    assert result.kind is ErrorKind.CONFLICT
    assert active_member_ids(gateway, group_id) == [1, 2, 3]


def test_quit_group_removes_exactly_one_membership(group_service, gateway, notifier, group_id):
    notifier.reset_mock()

    result = group_service.quit_group(2, group_id)

    assert result.success
    assert active_member_ids(gateway, group_id) == [1, 3]
    record = gateway.find(GroupMemberRecord, id=result.data["record_id"])
    assert record.kind == "quit"
    assert record.operator_id == 2
    notifier.publish.assert_called_once_with(
        GroupEvent.MEMBER_QUIT, group_id,
        {"operator_id": 2, "record_id": result.data["record_id"], "user_ids": [2]}
    )


def test_quit_group_twice_is_unauthorized(group_service, group_id):
    group_service.quit_group(2, group_id)

    assert group_service.quit_group(2, group_id).kind is ErrorKind.UNAUTHORIZED


def test_quit_missing_group_is_not_found(group_service):
    assert group_service.quit_group(2, 999).kind is ErrorKind.NOT_FOUND


# remove_members


def test_remove_members_by_owner(group_service, gateway, group_id):
    result = group_service.remove_members(group_id, 1, [2, 3])

    assert result.success
    assert result.data["user_ids"] == [2, 3]
    assert active_member_ids(gateway, group_id) == [1]
    assert [c.user_id for c in gateway.list(ChatListEntry, group_id=group_id, is_active=True)] == [1]


def test_remove_members_is_idempotent(group_service, gateway, notifier, group_id):
    group_service.remove_members(group_id, 1, [2])
    notifier.reset_mock()

    again = group_service.remove_members(group_id, 1, [2, 4])

    assert again.success
    assert again.data == {"record_id": None, "user_ids": []}
    assert gateway.count(GroupMemberRecord, group_id=group_id, kind="remove") == 1
    notifier.publish.assert_not_called()


def test_remove_members_requires_owner(group_service, gateway, group_id):
    result = group_service.remove_members(group_id, 2, [3])

    assert result.kind is ErrorKind.UNAUTHORIZED
    assert active_member_ids(gateway, group_id) == [1, 2, 3]


def test_remove_owner_conflicts(group_service, group_id):
    assert group_service.remove_members(group_id, 1, [1, 2]).kind is ErrorKind.CONFLICT


# edit_group_detail / set_visit_card


def test_edit_group_detail(group_service, gateway, notifier, group_id):
    result = group_service.edit_group_detail(group_id, 1, {"name": "climbers", "profile": "rocks", "avatar": "c.png"})

    assert result.success
    group = gateway.find(Group, id=group_id)
    assert (group.name, group.profile, group.avatar) == ("climbers", "rocks", "c.png")
    assert notifier.publish.call_args.args[0] == GroupEvent.UPDATED


def test_edit_group_detail_requires_owner(group_service, group_id):
    assert group_service.edit_group_detail(group_id, 2, {"name": "x"}).kind is ErrorKind.UNAUTHORIZED


def test_edit_group_detail_rejects_empty_name(group_service, group_id):
    assert group_service.edit_group_detail(group_id, 1, {"name": " "}).kind is ErrorKind.VALIDATION_FAILED
    assert group_service.edit_group_detail(group_id, 1, {"owner_id": 2}).kind is ErrorKind.VALIDATION_FAILED


def test_set_visit_card(group_service, gateway, group_id):
    assert group_service.set_visit_card(group_id, 2, "bobby").success

    assert gateway.find(GroupMember, group_id=group_id, user_id=2).visit_card == "bobby"
    assert gateway.find(GroupMember, group_id=group_id, user_id=3).visit_card == ""


def test_set_visit_card_requires_membership(group_service, group_id):
    assert group_service.set_visit_card(group_id, 4, "dave").kind is ErrorKind.UNAUTHORIZED


def test_set_visit_card_length_limit(group_service, group_id):
    assert group_service.set_visit_card(group_id, 2, "x" * 21).kind is ErrorKind.VALIDATION_FAILED


# get_group_detail


def test_get_group_detail(group_service, db_session, group_id):
    group_service.set_visit_card(group_id, 2, "bobby")
    db_session.query(ChatListEntry).filter_by(user_id=2, group_id=group_id).update({"not_disturb": True})
    db_session.commit()

    detail = group_service.get_group_detail(group_id, 2).data

    assert detail["group_id"] == group_id
    assert detail["group_name"] == "hikers"
    assert detail["group_profile"] == "weekend trips"
    assert detail["is_manager"] is False
    assert detail["manager_nickname"] == "alice"
    assert detail["visit_card"] == "bobby"
    assert detail["not_disturb"] is True
    assert detail["notice"] == {}


def test_get_group_detail_for_owner_and_outsider(group_service, group_id):
    assert group_service.get_group_detail(group_id, 1).data["is_manager"] is True

    outsider = group_service.get_group_detail(group_id, 5).data
    assert outsider["visit_card"] == ""
    assert outsider["not_disturb"] is False


def test_get_group_detail_of_missing_or_dismissed_group_is_empty(group_service, group_id):
    assert group_service.get_group_detail(999, 1).data == {}

    group_service.dismiss_group(group_id, 1)
    result = group_service.get_group_detail(group_id, 1)

    assert result.success
    assert result.data == {}


# list_members / list_invitable_friends


def test_list_members_owner_first(group_service, gateway, group_id):
    group_service.invite_members(1, group_id, [4])

    members = group_service.list_members(group_id, 3).data

    assert [m["user_id"] for m in members] == [1, 2, 3, 4]
    assert members[0]["is_manager"] is True
    assert members[0]["nickname"] == "alice"
    assert members[0]["gender"] == 2
    assert all(not m["is_manager"] for m in members[1:])


def test_list_members_requires_membership(group_service, group_id):
    assert group_service.list_members(group_id, 4).kind is ErrorKind.UNAUTHORIZED


def test_list_invitable_friends_excludes_members(group_service, group_id):
    friends = group_service.list_invitable_friends(1, group_id).data

    assert [f["id"] for f in friends] == [4]
    assert friends[0]["nickname"] == "dave"
    assert friends[0]["friend_remark"] == "friend 4"


def test_list_invitable_friends_without_group(group_service):
    friends = group_service.list_invitable_friends(1, 0).data

    assert [f["id"] for f in friends] == [2, 3, 4]


def test_list_invitable_friends_includes_members_who_left(group_service, group_id):
    group_service.quit_group(2, group_id)

    assert [f["id"] for f in group_service.list_invitable_friends(1, group_id).data] == [2, 4]


# notices


def test_create_notice_shows_in_detail(group_service, group_id):
    result = group_service.create_or_update_notice(group_id, 1, 0, "A", "first")

    assert result.success
    assert result.data["created"] is True
    assert group_service.get_group_detail(group_id, 2).data["notice"] == {"title": "A", "content": "first"}


def test_update_notice_in_place(group_service, gateway, group_id):
    notice_id = group_service.create_or_update_notice(group_id, 1, 0, "A", "first").data["notice_id"]

    result = group_service.create_or_update_notice(group_id, 1, notice_id, "B", "second")

    assert result.success
    assert result.data == {"notice_id": notice_id, "created": False}
    assert gateway.count(GroupNotice, group_id=group_id) == 1
    notice = gateway.find(GroupNotice, id=notice_id)
    assert (notice.title, notice.content) == ("B", "second")


def test_update_missing_notice_is_not_found(group_service, group_id):
    assert group_service.create_or_update_notice(group_id, 1, 42, "B", "x").kind is ErrorKind.NOT_FOUND


def test_notice_requires_owner(group_service, gateway, group_id):
    result = group_service.create_or_update_notice(group_id, 2, 0, "A", "first")

    assert result.kind is ErrorKind.UNAUTHORIZED
    assert gateway.count(GroupNotice) == 0


def test_notice_requires_title_and_content(group_service, group_id):
    assert group_service.create_or_update_notice(group_id, 1, 0, "", "x").kind is ErrorKind.VALIDATION_FAILED
    assert group_service.create_or_update_notice(group_id, 1, 0, "A", " ").kind is ErrorKind.VALIDATION_FAILED


def test_delete_notice_is_soft(group_service, gateway, group_id):
    notice_id = group_service.create_or_update_notice(group_id, 1, 0, "A", "first").data["notice_id"]

    assert group_service.delete_notice(group_id, 1, notice_id).success

    assert group_service.get_group_detail(group_id, 1).data["notice"] == {}
    notice = gateway.find(GroupNotice, id=notice_id)
    assert notice is not None
    assert notice.is_deleted is True
    assert notice.deleted_at is not None
    assert group_service.delete_notice(group_id, 1, notice_id).success


def test_detail_shows_latest_remaining_notice(group_service, group_id):
    first = group_service.create_or_update_notice(group_id, 1, 0, "A", "first").data["notice_id"]
    second = group_service.create_or_update_notice(group_id, 1, 0, "B", "second").data["notice_id"]

    assert group_service.get_group_detail(group_id, 1).data["notice"]["title"] == "B"

    group_service.delete_notice(group_id, 1, second)
    assert group_service.get_group_detail(group_id, 1).data["notice"]["title"] == "A"

    notices = group_service.list_notices(group_id, 3).data
    assert [n["id"] for n in notices] == [first]
    assert notices[0]["nickname"] == "alice"


def test_deleted_notice_cannot_be_edited(group_service, group_id):
    notice_id = group_service.create_or_update_notice(group_id, 1, 0, "A", "first").data["notice_id"]
    group_service.delete_notice(group_id, 1, notice_id)

    assert group_service.create_or_update_notice(group_id, 1, notice_id, "B", "x").kind is ErrorKind.NOT_FOUND


def test_delete_notice_of_other_group_is_not_found(group_service, group_id):
    other = group_service.create_group(1, {"name": "other"}, []).data["group_id"]
    notice_id = group_service.create_or_update_notice(other, 1, 0, "A", "first").data["notice_id"]

    assert group_service.delete_notice(group_id, 1, notice_id).kind is ErrorKind.NOT_FOUND


def test_delete_notice_requires_owner(group_service, group_id):
    notice_id = group_service.create_or_update_notice(group_id, 1, 0, "A", "first").data["notice_id"]

    assert group_service.delete_notice(group_id, 2, notice_id).kind is ErrorKind.UNAUTHORIZED


def test_list_notices_requires_membership(group_service, group_id):
    assert group_service.list_notices(group_id, 5).kind is ErrorKind.UNAUTHORIZED


# scenario


def test_group_lifecycle_scenario(group_service, gateway):
    group_id = group_service.create_group(1, {"name": "trip"}, [2, 3]).data["group_id"]
    members = group_service.list_members(group_id, 1).data
    assert {m["user_id"] for m in members} == {1, 2, 3}
    assert [m["user_id"] for m in members if m["is_manager"]] == [1]

    assert group_service.quit_group(2, group_id).success
    assert {m["user_id"] for m in group_service.list_members(group_id, 1).data} == {1, 3}

    assert group_service.dismiss_group(group_id, 1).success
    assert gateway.find(Group, id=group_id).status == GroupStatus.DISMISSED
    assert group_service.list_members(group_id, 3).kind is ErrorKind.UNAUTHORIZED
