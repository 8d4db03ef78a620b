"""SQLAlchemy database client."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from core.config import settings
from core.models import Base

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_engine(settings.database_url, echo=False)
    return _engine


def get_session() -> Session:
    global _session_factory
    if _session_factory is None:
        # Rows are handed back to callers after the session closes.
        _session_factory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory()


def init_db() -> None:
    Base.metadata.create_all(get_engine())


def use_engine(engine: Engine | None) -> None:
    """Swap the engine used by get_session (None resets to settings)."""
    global _engine, _session_factory
    if _engine is not None and _engine is not engine:
        _engine.dispose()
    _engine = engine
    _session_factory = None


def new_id() -> str:
    return str(uuid.uuid4())
