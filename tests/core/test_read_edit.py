"""Tests for the read and edit actions."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from dummy_app.managers import AlbumManager, SongManager
from dummy_app.models import Album, User
from manageable import AuthorizationDenied, DefaultsRegistry, Manager, RecordNotFound, acting_as


def test_read_returns_record_with_default_includes(session: Session, catalogue: dict) -> None:
    manager = AlbumManager(session)
    album = manager.read(catalogue["Mezzanine"])

    assert album.name == "Mezzanine"
    assert "songs" not in inspect(album).unloaded
    assert [song.name for song in album.songs] == ["Angel", "Teardrop"]
    assert manager.record is album
    assert manager.action == "read"


def test_read_accepts_string_ids(session: Session, catalogue: dict) -> None:
    assert AlbumManager(session).read(str(catalogue["Animals"])).name == "Animals"


def test_read_select_limits_loaded_columns(session: Session, catalogue: dict) -> None:
    album = AlbumManager(session).read(catalogue["Mezzanine"], {"select": ["name"], "includes": []})
    state = inspect(album)
    assert "genre" in state.unloaded
    assert "songs" in state.unloaded
    assert "name" not in state.unloaded


def test_read_select_accepts_a_single_column_name(session: Session, catalogue: dict) -> None:
    album = AlbumManager(session).read(catalogue["Animals"], {"select": "genre", "includes": []})
    state = inspect(album)
    assert "name" in state.unloaded
    assert "genre" not in state.unloaded


def test_read_denied_is_distinct_from_not_found(session: Session, catalogue: dict) -> None:
    manager = AlbumManager(session)

    with pytest.raises(AuthorizationDenied) as denied:
        manager.read(catalogue["Heligoland"])
    assert not isinstance(denied.value, LookupError)
    assert denied.value.action == "read"
    assert isinstance(denied.value.record, Album)

    with pytest.raises(RecordNotFound) as missing:
        manager.read(9999)
    assert not isinstance(missing.value, AuthorizationDenied)
    assert missing.value.record_id == 9999


def test_admin_reads_unpublished(session: Session, catalogue: dict, admin: User) -> None:
    with acting_as(admin):
        assert AlbumManager(session).read(catalogue["Heligoland"]).published is False


def test_read_extension_can_narrow_the_scope(session: Session, catalogue: dict) -> None:
    def rock_only(manager):
        manager.target = manager.target.where(Album.genre == "rock")

    manager = AlbumManager(session)
    assert manager.read(catalogue["Animals"], extension=rock_only).name == "Animals"
    with pytest.raises(RecordNotFound):
        manager.read(catalogue["Mezzanine"], extension=rock_only)


def test_edit_requires_update_permission(session: Session, catalogue: dict, member: User) -> None:
    manager = AlbumManager(session)
    with pytest.raises(AuthorizationDenied) as excinfo:
        manager.edit(catalogue["Mezzanine"])
    assert excinfo.value.action == "edit"

    with manager.with_current_user(member):
        album = manager.edit(catalogue["Mezzanine"])
    assert album.name == "Mezzanine"
    assert "songs" not in inspect(album).unloaded


def test_read_on_open_policy(session: Session, catalogue: dict) -> None:
    manager = SongManager(session)
    songs = session.scalars(manager.list()).all()
    song = manager.read(songs[0].id)
    assert song is songs[0]


def _read_sql(manager: Manager, id: int, options: dict | None = None) -> str:
    statements = []
    manager.read(id, options, extension=lambda m: statements.append(str(m.target)))
    return statements[0]


def test_loading_strategy_falls_back_to_action_default(session: Session, catalogue: dict) -> None:
    class JoinedManager(Manager, actions=["read"], entity=Album):
        defaults = DefaultsRegistry().includes("songs", loading="joined", actions="read")

    sql = _read_sql(JoinedManager(session), catalogue["Mezzanine"], {"includes": {"associations": ["artist"]}})
    assert "LEFT OUTER JOIN artists" in sql
    assert "songs" not in sql

    sql = _read_sql(JoinedManager(session), catalogue["Mezzanine"], {"includes": ["artist"]})
    assert "LEFT OUTER JOIN artists" in sql


def test_loading_strategy_falls_back_to_all_actions_default(session: Session, catalogue: dict) -> None:
    class MixedManager(Manager, actions=["read"], entity=Album):
        defaults = DefaultsRegistry().includes("artist", loading="joined").includes("songs", actions="read")

    sql = _read_sql(MixedManager(session), catalogue["Mezzanine"])
    assert "LEFT OUTER JOIN songs" in sql
    assert "artists" not in sql


def test_call_site_loading_keeps_default_associations(session: Session, catalogue: dict) -> None:
    manager = AlbumManager(session)
    sql = _read_sql(manager, catalogue["Mezzanine"], {"includes": {"associations": None, "loading": "joined"}})
    assert "LEFT OUTER JOIN songs" in sql
    assert [song.name for song in manager.record.songs] == ["Angel", "Teardrop"]

    assert "JOIN" not in _read_sql(AlbumManager(session), catalogue["Mezzanine"])
