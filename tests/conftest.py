"""Shared test fixtures: in-memory SQLite and the dummy catalogue app.

Every test gets a fresh schema on a private in-memory SQLite database
(``StaticPool`` keeps the single connection alive) and a ``Session`` bound
to it.  Process-level state -- the configuration registry, the settings
cache and the acting user -- is reset around every test.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from dummy_app.models import Album, Artist, Base, Song, User
from manageable import acting_as, reset_configuration
from manageable.settings import get_settings

# ---------------------------------------------------------------------------
# Process state
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_manageable_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear MANAGEABLE_* env vars, settings cache, registry and acting user."""
    for key in list(os.environ):
        if key.startswith("MANAGEABLE_"):
            monkeypatch.delenv(key)
    get_settings.cache_clear()
    reset_configuration()
    with acting_as(None):
        yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite defers BEGIN and mishandles SAVEPOINT; take over transaction start
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection):
        connection.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Iterator[Session]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def catalogue(session: Session) -> dict[str, int]:
    """Seed artists, albums and songs.  Returns album ids keyed by name.

    The session is cleared afterwards so tests load records through managers.
    """
    massive_attack = Artist(name="Massive Attack")
    pink_floyd = Artist(name="Pink Floyd")
    albums = [
        Album(
            name="Mezzanine",
            genre="electronic",
            released_at=date(1998, 4, 20),
            price=Decimal("9.99"),
            artist=massive_attack,
            songs=[Song(name="Angel", length=379), Song(name="Teardrop", length=330)],
        ),
        Album(name="Blue Lines", genre="electronic", released_at=date(1991, 4, 8), artist=massive_attack),
        Album(
            name="Animals",
            genre="rock",
            released_at=date(1977, 1, 23),
            artist=pink_floyd,
            songs=[Song(name="Dogs", length=1024)],
        ),
        Album(name="Heligoland", genre="electronic", published=False, released_at=date(2010, 2, 8)),
    ]
    session.add_all(albums)
    session.commit()
    ids = {album.name: album.id for album in albums}
    session.expunge_all()
    return ids


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.fixture
def member() -> User:
    return User(name="alice", admin=False)


@pytest.fixture
def admin() -> User:
    return User(name="root", admin=True)
