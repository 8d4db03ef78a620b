"""Shared test fixtures."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

import core.realtime
import core.storage
from core.db import get_session, init_db, new_id, use_engine
from core.models import User, UserRole
from core.storage import ObjectStorage
from marketplace.campaigns import create_campaign


@pytest.fixture(autouse=True)
def storage(monkeypatch):
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://storage.example.ch/signed"
    store = ObjectStorage(client=client)
    monkeypatch.setattr(core.storage, "_storage", store)
    return store


@pytest.fixture(autouse=True)
def feed(monkeypatch):
    feed = core.realtime.ChangeFeed()
    monkeypatch.setattr(core.realtime, "_feed", feed)
    return feed


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    use_engine(engine)
    init_db()
    yield engine
    use_engine(None)


@pytest.fixture
def make_user(db):
    def _make(role: str, full_name: str = "Test User", email: str | None = None) -> User:
        user = User(
            id=new_id(),
            email=email or f"{new_id()[:8]}@example.ch",
            hashed_password="!",
            full_name=full_name,
            role=role,
        )
        with get_session() as session:
            session.add(user)
            session.commit()
        return user

    return _make


@pytest.fixture
def brand(make_user) -> User:
    return make_user(UserRole.BRAND, "Léa Brand")


@pytest.fixture
def creator(make_user) -> User:
    return make_user(UserRole.CREATOR, "Noé Creator")


@pytest.fixture
def admin(make_user) -> User:
    return make_user(UserRole.ADMIN, "Agency Admin")


@pytest.fixture
def campaign(brand):
    result = create_campaign(brand.id, {"title": "Spot été", "budget_chf": 500})
    assert result.success, result.error
    return result.data
