"""Tests for attribute normalization against the SQLAlchemy type schema."""

from __future__ import annotations

import copy
from datetime import date, datetime

import pytest
from sqlalchemy.orm import Session

from dummy_app.models import Album, Song
from manageable import SqlAlchemyBackend, configure, decimal_separator
from manageable.models import DatetimePrecision, SemanticType
from manageable.normalizer import AttributeNormalizer, normalize_decimal_separator, parse_datetime


@pytest.fixture
def normalizer(session: Session) -> AttributeNormalizer:
    return AttributeNormalizer(SqlAlchemyBackend(session))


def test_semantic_types_come_from_column_types(session: Session) -> None:
    backend = SqlAlchemyBackend(session)
    assert backend.attribute_semantic_type(Album, "released_at") == SemanticType.DATE
    assert backend.attribute_semantic_type(Album, "recorded_at") == SemanticType.DATETIME
    assert backend.attribute_semantic_type(Album, "price") == SemanticType.DECIMAL
    assert backend.attribute_semantic_type(Album, "rating") == SemanticType.FLOAT
    assert backend.attribute_semantic_type(Album, "name") == SemanticType.OTHER
    assert backend.attribute_semantic_type(Album, "songs") is None
    assert backend.association_target_type(Album, "songs") is Song
    assert backend.association_target_type(Album, "name") is None


@pytest.mark.parametrize(
    ("separator", "value", "expected"),
    [
        (",", "12,50", "12.50"),
        (".", "12,50", "12,50"),
        (",", "12.5,0", "12.5,0"),
        (",", "1,234,5", "1,234,5"),
        (",", "12.50", "12.50"),
        (",", 12.5, 12.5),
    ],
)
def test_decimal_separator(separator: str, value: object, expected: object) -> None:
    assert normalize_decimal_separator(value, separator) == expected


def test_decimal_comma_under_locale(normalizer: AttributeNormalizer) -> None:
    with decimal_separator(","):
        result = normalizer.normalize(Album, {"price": "12,50", "rating": "4,5", "name": "1,2"})
    assert result == {"price": "12.50", "rating": "4.5", "name": "1,2"}

    assert normalizer.normalize(Album, {"price": "12,50"}) == {"price": "12,50"}


def test_configured_separator_applies_without_locale_block(normalizer: AttributeNormalizer) -> None:
    configure(decimal_separator=",")
    assert normalizer.normalize(Album, {"price": "7,25"}) == {"price": "7.25"}


def test_dates_are_parsed_day_first(normalizer: AttributeNormalizer) -> None:
    result = normalizer.normalize(Album, {"released_at": "8-4-91"})
    assert result == {"released_at": date(1991, 4, 8)}


def test_month_first_parsing(session: Session) -> None:
    normalizer = AttributeNormalizer(SqlAlchemyBackend(session), day_first=False)
    assert normalizer.normalize(Album, {"released_at": "8-4-91"}) == {"released_at": date(1991, 8, 4)}


def test_datetimes_are_truncated_to_precision(normalizer: AttributeNormalizer) -> None:
    result = normalizer.normalize(Album, {"recorded_at": "2021-03-04 10:11:12.5"})
    assert result == {"recorded_at": datetime(2021, 3, 4, 10, 11)}

    configure(datetime_precision="hour")
    result = normalizer.normalize(Album, {"recorded_at": "2021-03-04 10:11:12"})
    assert result == {"recorded_at": datetime(2021, 3, 4, 10)}


def test_unparseable_values_pass_through(normalizer: AttributeNormalizer) -> None:
    attributes = {"released_at": "someday", "recorded_at": "", "price": None, "rating": 3}
    assert normalizer.normalize(Album, attributes) == attributes


def test_nested_association_attributes(normalizer: AttributeNormalizer) -> None:
    attributes = {
        "name": "Mezzanine",
        "songs_attributes": [
            {"name": "Angel", "recorded_on": "1-2-1997"},
            {"id": 4, "_destroy": "1"},
        ],
        "artist_attributes": {"name": "Massive Attack"},
    }
    result = normalizer.normalize(Album, attributes)
    assert result["songs_attributes"][0] == {"name": "Angel", "recorded_on": date(1997, 2, 1)}
    assert result["songs_attributes"][1] == {"id": 4, "_destroy": "1"}
    assert result["artist_attributes"] == {"name": "Massive Attack"}


def test_unknown_attributes_and_associations_pass_through(normalizer: AttributeNormalizer) -> None:
    attributes = {"sleeve_attributes": {"released_at": "8-4-91"}, "colour": "8-4-91"}
    assert normalizer.normalize(Album, attributes) == attributes


def test_input_tree_is_never_mutated(normalizer: AttributeNormalizer) -> None:
    attributes = {"released_at": "8-4-91", "songs_attributes": [{"recorded_on": "1-2-1997"}]}
    snapshot = copy.deepcopy(attributes)

    result = normalizer.normalize(Album, attributes)
    assert attributes == snapshot
    assert result["songs_attributes"] is not attributes["songs_attributes"]


def test_without_entity_tree_is_copied(normalizer: AttributeNormalizer) -> None:
    attributes = {"released_at": "8-4-91", "nested": {"a": [1, 2]}}
    result = normalizer.normalize(None, attributes)
    assert result == attributes
    assert result["nested"] is not attributes["nested"]


def test_parse_datetime() -> None:
    assert parse_datetime("31/12/2020 23:59:59", precision=DatetimePrecision.SEC) == datetime(2020, 12, 31, 23, 59, 59)
    assert parse_datetime("not a date") is None
    assert parse_datetime(20201231) is None
    assert parse_datetime("   ") is None
