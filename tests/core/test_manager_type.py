"""Tests for manager type construction: actions, entity inference, adapters."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from dummy_app.managers import AlbumManager, ArtistManager, LabelManager, SongManager
from dummy_app.models import Album, Label, Song
from manageable import ALL_ACTIONS, ConfigurationError, Manager, configure
from manageable.adapters import (
    NullAuthorization,
    NullPagination,
    NullSearch,
    OffsetPagination,
    PolicyAuthorization,
    PredicateSearch,
)
from manageable.managers import ListAction, ReadAction, manager_actions
from manageable.models import Action


def test_entity_inferred_from_defining_module() -> None:
    assert AlbumManager.entity is Album
    assert SongManager.entity is Song


def test_entity_inferred_from_declarative_registry() -> None:
    assert LabelManager.entity is Label


def test_entity_inference_honours_configured_suffix() -> None:
    configure(manager_suffix="Service")

    class AlbumService(Manager, actions=["list"]):
        pass

    assert AlbumService.entity is Album


def test_failed_inference_leaves_entity_unset(session: Session) -> None:
    class JukeboxManager(Manager, actions=["list"]):
        pass

    assert JukeboxManager.entity is None
    with pytest.raises(ConfigurationError, match="has no entity"):
        JukeboxManager(session)


def test_explicit_entity_wins_over_inference() -> None:
    class AlbumManager(Manager, actions=["list"], entity=Song):
        pass

    assert AlbumManager.entity is Song


def test_action_subset_composes_only_those_mixins() -> None:
    assert issubclass(SongManager, ListAction)
    assert issubclass(SongManager, ReadAction)
    assert SongManager.actions == {Action.LIST, Action.READ}
    assert not hasattr(SongManager, "create")
    assert not hasattr(SongManager, "delete")
    assert list(manager_actions(SongManager)) == ["list", "read"]


def test_all_actions() -> None:
    assert AlbumManager.actions == set(Action)
    assert list(manager_actions(ArtistManager)) == ["list", "read", "new", "create", "edit", "update", "delete"]


def test_unknown_action_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="Unknown action"):

        class BadManager(Manager, actions=["list", "index"], entity=Album):
            pass


def test_adapters_selected_from_configuration() -> None:
    configure(authorization="policy", search="predicates", pagination="offset")

    class AlbumManager(Manager, actions=ALL_ACTIONS):
        pass

    assert isinstance(AlbumManager.authorization_adapter, PolicyAuthorization)
    assert isinstance(AlbumManager.search_adapter, PredicateSearch)
    assert isinstance(AlbumManager.pagination_adapter, OffsetPagination)


def test_unconfigured_adapters_are_no_ops() -> None:
    class AlbumManager(Manager, actions=ALL_ACTIONS):
        pass

    assert isinstance(AlbumManager.authorization_adapter, NullAuthorization)
    assert isinstance(AlbumManager.search_adapter, NullSearch)
    assert isinstance(AlbumManager.pagination_adapter, NullPagination)


def test_adapter_class_keyword() -> None:
    class CountingPagination:
        def paginate(self, scope, page_number, page_size):
            return scope.limit(1)

    class AlbumManager(Manager, actions=["list"], pagination=CountingPagination):
        pass

    assert isinstance(AlbumManager.pagination_adapter, CountingPagination)


def test_adapter_not_implementing_interface_is_rejected() -> None:
    class NotASearch:
        def search(self, scope):
            return scope

    with pytest.raises(ConfigurationError, match="search adapter interface"):

        class AlbumManager(Manager, actions=["list"], search=NotASearch):
            pass

    with pytest.raises(ConfigurationError, match="Invalid authorization adapter"):

        class OtherAlbumManager(Manager, actions=["list"], entity=Album, authorization="cancan"):
            pass


def test_subclass_inherits_adapters_and_entity() -> None:
    class SpecialAlbumManager(AlbumManager):
        pass

    assert SpecialAlbumManager.entity is Album
    assert SpecialAlbumManager.authorization_adapter is AlbumManager.authorization_adapter
    assert SpecialAlbumManager.actions == AlbumManager.actions


@pytest.mark.parametrize("value", [{"when": "x"}, {"if": 3}, {"if": "a", "unless": "b"}, "yes"])
def test_invalid_unique_search(value: object) -> None:
    with pytest.raises(ConfigurationError, match="unique_search"):

        class AlbumManager(Manager, actions=["list"], unique_search=value):
            pass


def test_unique_search_conditions(session: Session) -> None:
    class AlwaysManager(Manager, actions=["list"], entity=Album, unique_search=True):
        pass

    class UnlessManager(Manager, actions=["list"], entity=Album, unique_search={"unless": lambda m: m.flag}):
        flag = True

    assert AlwaysManager(session).is_unique_search() is True
    assert UnlessManager(session).is_unique_search() is False
    assert AlbumManager(session).is_unique_search() is False
