import os

# Settings are read at import time; keep tests off the on-disk database.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DEBUG", "false")

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.database import Base
from app.models import User, FriendLink
from app.services.domain.group_service import GroupService
from app.services.gateway import PersistenceGateway
from app.services.integration.notification_service import NotificationService

# Fixtures


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def users(db_session):
    """Users 1-5. User 1 is friends with 2, 3 and 4; user 2 is friends with 1 and 5."""
    rows = [
        User(id=1, nickname="alice", avatar="a.png", gender=2, motto="hi"),
        User(id=2, nickname="bob"),
        User(id=3, nickname="carol"),
        User(id=4, nickname="dave"),
        User(id=5, nickname="erin"),
    ]
    db_session.add_all(rows)
    for user_id, friend_id in [(1, 2), (1, 3), (1, 4), (2, 1), (2, 5)]:
        db_session.add(FriendLink(user_id=user_id, friend_id=friend_id, remark=f"friend {friend_id}"))
    db_session.commit()
    return rows


@pytest.fixture
def notifier():
    return MagicMock(spec=NotificationService)


@pytest.fixture
def gateway(db_session):
    return PersistenceGateway(db_session)


@pytest.fixture
def group_service(gateway, notifier, users):
    service = GroupService(gateway, notifier)
    service.initialize({"members_can_invite": False, "visit_card_max_length": 20})
    return service


@pytest.fixture
def group_id(group_service):
    """Group owned by user 1 with members 2 and 3."""
    result = group_service.create_group(1, {"name": "hikers", "profile": "weekend trips"}, [2, 3])
    assert result.success
    return result.data["group_id"]
