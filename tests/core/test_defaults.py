"""Tests for DefaultsRegistry and default resolution precedence."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from dummy_app.models import Album
from manageable import ALL_ACTIONS, ConfigurationError, DefaultsRegistry, Manager, deferred
from manageable.defaults import MISSING, Deferred, DefaultResolver
from manageable.models import Action, LoadingStrategy


def test_builder_methods_return_new_registries() -> None:
    base = DefaultsRegistry()
    ordered = base.order("name")
    assert base.lookup("order", "list") is MISSING
    assert ordered.lookup("order", "list") == ["name"]
    assert ordered is not base


def test_registry_is_read_only() -> None:
    registry = DefaultsRegistry().order("name")
    with pytest.raises(TypeError):
        registry["order"]["all"] = ["genre"]  # type: ignore[index]


def test_action_scoped_default_wins_over_all_actions() -> None:
    registry = DefaultsRegistry().page_size(25).page_size(5, actions="list")
    assert registry.lookup("page_size", "list") == 5
    assert registry.lookup("page_size", "read") == 25


def test_unknown_key_and_action_are_rejected() -> None:
    with pytest.raises(ConfigurationError, match="Unknown defaults key"):
        DefaultsRegistry().with_default("limit", 3)
    with pytest.raises(ConfigurationError, match="Unknown action"):
        DefaultsRegistry().order("name", actions=["index"])
    with pytest.raises(ConfigurationError, match="page size"):
        DefaultsRegistry().page_size(0)
    with pytest.raises(ConfigurationError, match="loading strategy"):
        DefaultsRegistry().includes("songs", loading="eager")


def test_includes_keeps_loading_strategy() -> None:
    registry = DefaultsRegistry().includes("songs", {"artist": "albums"}, loading="joined")
    value = registry.lookup("includes", "read")
    assert value == {"associations": ["songs", {"artist": "albums"}], "loading": LoadingStrategy.JOINED}


def test_functions_are_deferred() -> None:
    registry = DefaultsRegistry().order(lambda manager: ["genre"]).attribute_values(genre="rock")
    assert isinstance(registry.lookup("order", "list"), Deferred)
    assert registry.lookup("attributes", "new") == {"genre": "rock"}


def test_attribute_values_rejects_mixed_arguments() -> None:
    with pytest.raises(ConfigurationError):
        DefaultsRegistry().attribute_values({"genre": "rock"}, name="x")


class _PrecedenceManager(Manager, actions=ALL_ACTIONS, entity=Album, authorization=None, search=None, pagination=None):
    defaults = DefaultsRegistry().order("genre").order("name", actions="list")


@pytest.mark.parametrize(
    ("action", "option", "expected"),
    [
        (Action.LIST, "released_at", "released_at"),  # call-site option
        (Action.LIST, None, ["name"]),  # action default
        (Action.READ, None, ["genre"]),  # all-actions default
    ],
)
def test_resolution_precedence(session: Session, action: Action, option: object, expected: object) -> None:
    resolver = DefaultResolver(_PrecedenceManager.defaults, _PrecedenceManager(session), action)
    assert resolver.resolve("order", option) == expected


def test_absent_default_resolves_to_none(session: Session) -> None:
    resolver = DefaultResolver(DefaultsRegistry(), _PrecedenceManager(session), Action.LIST)
    assert resolver.resolve("scopes") is None
    assert resolver.resolve("no-such-key") is None


def test_deferred_default_sees_the_manager_once_per_invocation(session: Session, catalogue: dict) -> None:
    calls = []

    def order_by_flag(manager):
        calls.append(manager)
        return ["name desc"] if manager.options.extra("reverse") else ["name"]

    class ReversibleManager(Manager, actions=["list"], entity=Album, authorization=None, search=None, pagination=None):
        defaults = DefaultsRegistry().order(order_by_flag)

    manager = ReversibleManager(session)
    names = session.scalars(manager.list({"reverse": True})).all()
    assert [album.name for album in names][0] == "Mezzanine"
    assert manager.resolve_default("order") == ["name desc"]
    assert calls == [manager]

    names = session.scalars(manager.list()).all()
    assert [album.name for album in names][0] == "Animals"
    assert len(calls) == 2


def test_deferred_method_name(session: Session) -> None:
    class MethodManager(Manager, actions=["new"], entity=Album, authorization=None):
        defaults = DefaultsRegistry().attribute_values(deferred("default_album_values"))

        def default_album_values(self):
            return {"genre": "jazz", "name": "Untitled"}

    album = MethodManager(session).new({"name": "Kind of Blue"})
    assert album.genre == "jazz"
    assert album.name == "Kind of Blue"


def test_sibling_types_never_share_defaults() -> None:
    class ParentManager(Manager, actions=["list"], entity=Album):
        defaults = DefaultsRegistry().order("name")

    class FirstChildManager(ParentManager):
        defaults = ParentManager.defaults.page_size(5)

    class SecondChildManager(ParentManager):
        pass

    assert FirstChildManager.defaults.lookup("page_size", "list") == 5
    assert SecondChildManager.defaults.lookup("page_size", "list") is MISSING
    assert ParentManager.defaults.lookup("page_size", "list") is MISSING
    assert SecondChildManager.defaults.lookup("order", "list") == ["name"]
    assert SecondChildManager.defaults is not ParentManager.defaults


def test_defaults_must_be_a_registry() -> None:
    with pytest.raises(ConfigurationError, match="DefaultsRegistry"):

        class BrokenManager(Manager, actions=["list"], entity=Album):
            defaults = {"order": {"all": ["name"]}}
