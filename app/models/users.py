"""
User, friend and chat list SQLAlchemy models.

These tables belong to the wider chat application. The group service only
reads them: user profiles for display, friend links for invitation candidates
and chat list entries for per-conversation settings.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
import enum

from app.core.database import Base
from app.models.types import IntEnumType


class ChatType(enum.IntEnum):
    """Kind of conversation a chat list entry points at."""
    PRIVATE = 1
    GROUP = 2


class User(Base):
    """
    Chat application user profile.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    mobile = Column(String(20), unique=True, index=True, nullable=True)
    nickname = Column(String(50), nullable=False, default="")
    avatar = Column(String(255), nullable=False, default="")
    gender = Column(Integer, nullable=False, default=0)  # 0 unknown, 1 male, 2 female
    motto = Column(String(100), nullable=False, default="")

    created_at = Column(DateTime, default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, nickname='{self.nickname}')>"


class FriendLink(Base):
    """
    Directed friend relation: ``friend_id`` appears in ``user_id``'s contacts.

    Both directions are stored, so a friendship is two rows.
    """
    __tablename__ = "users_friends"
    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="uq_users_friends_pair"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    friend_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    remark = Column(String(50), nullable=False, default="")
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=func.now(), nullable=False)

    def __repr__(self):
        return f"<FriendLink(user_id={self.user_id}, friend_id={self.friend_id})>"


class ChatListEntry(Base):
    """
    A conversation shown in a user's chat list, with its notification settings.
    """
    __tablename__ = "users_chat_list"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(IntEnumType(ChatType), nullable=False, default=ChatType.PRIVATE)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    friend_id = Column(Integer, nullable=True)
    group_id = Column(Integer, nullable=True, index=True)

    not_disturb = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<ChatListEntry(user_id={self.user_id}, type={self.type}, group_id={self.group_id})>"
