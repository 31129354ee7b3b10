"""
Group chat SQLAlchemy models.

This module defines groups, their memberships, announcements (notices) and
the membership change records returned to clients after invite, quit and
remove operations.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import validates
from sqlalchemy.sql import func
import enum

from app.core.database import Base
from app.models.types import IntEnumType


class GroupStatus(enum.IntEnum):
    """Group lifecycle. A dismissed group never becomes active again."""
    ACTIVE = 0
    DISMISSED = 1


class MemberStatus(enum.IntEnum):
    """Membership lifecycle. Removed members may be re-invited."""
    ACTIVE = 0
    REMOVED = 1


class MemberRecordKind(enum.Enum):
    """Membership change recorded for the group timeline."""
    INVITE = "invite"
    QUIT = "quit"
    REMOVE = "remove"


class Group(Base):
    """
    A chat group with exactly one owner.
    """
    __tablename__ = "users_group"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    name = Column(String(30), nullable=False)
    profile = Column(String(100), nullable=False, default="")
    avatar = Column(String(255), nullable=False, default="")

    status = Column(IntEnumType(GroupStatus), nullable=False, default=GroupStatus.ACTIVE, index=True)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)
    dismissed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Group(id={self.id}, name='{self.name}', status={self.status})>"

    @validates("status")
    def validate_status(self, key, value):
        value = GroupStatus(value)
        if self.status == GroupStatus.DISMISSED and value != GroupStatus.DISMISSED:
            raise ValueError(f"Group {self.id} is dismissed and cannot be reactivated")
        return value

    @property
    def is_active(self):
        return self.status == GroupStatus.ACTIVE


class GroupMember(Base):
    """
    Membership of one user in one group. Unique per (group_id, user_id).
    """
    __tablename__ = "users_group_member"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member"),
    )

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey('users_group.id'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    is_owner = Column(Boolean, default=False, nullable=False)
    visit_card = Column(String(20), nullable=False, default="")
    status = Column(IntEnumType(MemberStatus), nullable=False, default=MemberStatus.ACTIVE)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<GroupMember(group_id={self.group_id}, user_id={self.user_id}, status={self.status})>"


class GroupNotice(Base):
    """
    Group announcement. Deletion is soft: the row always stays.
    """
    __tablename__ = "users_group_notice"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey('users_group.id'), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey('users.id'), nullable=False)

    title = Column(String(50), nullable=False)
    content = Column(Text, nullable=False)

    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<GroupNotice(id={self.id}, group_id={self.group_id}, deleted={self.is_deleted})>"

    @validates("is_deleted")
    def validate_is_deleted(self, key, value):
        if self.is_deleted and not value:
            raise ValueError(f"Notice {self.id} is deleted and cannot be restored")
        return value


class GroupMemberRecord(Base):
    """
    Membership change (invite, quit, remove) shown in the group timeline.
    """
    __tablename__ = "users_group_member_record"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey('users_group.id'), nullable=False, index=True)
    operator_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    kind = Column(String(10), nullable=False)
    user_ids = Column(String(1000), nullable=False, default="")  # comma separated

    created_at = Column(DateTime, default=func.now(), nullable=False)

    def __repr__(self):
        return f"<GroupMemberRecord(id={self.id}, group_id={self.group_id}, kind='{self.kind}')>"

    @property
    def user_id_list(self):
        return [int(uid) for uid in self.user_ids.split(",") if uid]
