from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from bson import ObjectId

from people.validation import (
    BAND_MEMBER_ONLY_MESSAGE,
    normalize_year_joined,
    serialize_person,
    validate_person,
    validate_update,
)


def _person(**overrides) -> dict:
    attrs = {"first_name": "Agnetha", "sur_name": "Fältskog"}
    attrs.update(overrides)
    return attrs


@pytest.mark.parametrize("value", ["1969", 1969, " 1969 "])
def test_four_digit_year_becomes_january_first_utc(value) -> None:
    assert normalize_year_joined(value) == datetime(1969, 1, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", ["69", "nineteen", 19690, True, 1969.0, None])
def test_other_inputs_pass_through_unchanged(value) -> None:
    assert normalize_year_joined(value) == value


def test_dates_pass_through_as_utc_datetimes() -> None:
    aware = datetime(1972, 6, 1, tzinfo=timezone.utc)
    assert normalize_year_joined(aware) is aware
    assert normalize_year_joined(date(1972, 6, 1)) == aware
    assert normalize_year_joined(datetime(1972, 6, 1)) == aware


@pytest.mark.parametrize(
    "value, expected",
    [
        ("1970-06-01", datetime(1970, 6, 1, tzinfo=timezone.utc)),
        ("1970-06-01T12:30:00", datetime(1970, 6, 1, 12, 30, tzinfo=timezone.utc)),
        ("1970-06-01T12:30:00+00:00", datetime(1970, 6, 1, 12, 30, tzinfo=timezone.utc)),
    ],
)
def test_iso_date_strings_become_utc_datetimes(value, expected) -> None:
    assert normalize_year_joined(value) == expected


def test_member_with_iso_date_serializes_to_year() -> None:
    result = validate_person(_person(band_member=True, year_joined="1970-06-01"))

    assert result.ok
    assert serialize_person(result.document)["year_joined"] == 1970


def test_band_member_year_round_trips_as_integer() -> None:
    result = validate_person(_person(band_member=True, year_joined="1969"))

    assert result.ok
    assert result.document["year_joined"] == datetime(1969, 1, 1, tzinfo=timezone.utc)

    stored = {"_id": ObjectId(), "__v": 0, **result.document}
    out = serialize_person(stored)
    assert out["year_joined"] == 1969
    assert out["id"] == str(stored["_id"])
    assert "_id" not in out
    assert "__v" not in out


def test_year_joined_rejected_for_non_member() -> None:
    result = validate_person(_person(band_member=False, year_joined="1969"))

    assert not result.ok
    assert result.errors == {"year_joined": BAND_MEMBER_ONLY_MESSAGE}


def test_year_joined_required_for_member() -> None:
    result = validate_person(_person(band_member=True))

    assert result.errors == {"year_joined": "year_joined is required when person is band_member"}


def test_unparseable_year_is_rejected() -> None:
    result = validate_person(_person(band_member=True, year_joined="late sixties"))

    assert result.errors == {"year_joined": "year_joined must be a date or a 4-digit year"}


def test_defaults_and_unknown_fields() -> None:
    result = validate_person(_person(nickname="Anna"))

    assert result.ok
    assert result.document == {
        "first_name": "Agnetha",
        "sur_name": "Fältskog",
        "band_member": False,
        "ipi_number": None,
        "instrument": [],
        "release_entity": [],
    }


def test_names_are_required() -> None:
    result = validate_person({"first_name": "", "alias": "Frida"})

    assert result.errors == {
        "first_name": "first_name is required",
        "sur_name": "sur_name is required",
    }


def test_type_errors_are_collected() -> None:
    result = validate_person(
        _person(alias=7, band_member="yes", ipi_number=123, instrument=["not-an-id"], release_entity="x")
    )

    assert set(result.errors) == {"alias", "band_member", "ipi_number", "instrument", "release_entity"}


def test_references_are_converted_to_object_ids() -> None:
    instrument_id = ObjectId()
    result = validate_person(_person(instrument=[str(instrument_id)], release_entity=[instrument_id]))

    assert result.ok
    assert result.document["instrument"] == [instrument_id]
    assert serialize_person(result.document)["instrument"] == [str(instrument_id)]


def test_update_is_validated_against_stored_document() -> None:
    current = {
        "_id": ObjectId(),
        "first_name": "Benny",
        "sur_name": "Andersson",
        "band_member": False,
        "ipi_number": None,
    }

    rejected = validate_update(current, {"year_joined": 1970})
    assert rejected.errors == {"year_joined": BAND_MEMBER_ONLY_MESSAGE}

    accepted = validate_update(current, {"band_member": True, "year_joined": "1970"})
    assert accepted.ok
    assert accepted.document == {
        "band_member": True,
        "year_joined": datetime(1970, 1, 1, tzinfo=timezone.utc),
    }


def test_update_can_clear_year_when_leaving_band() -> None:
    current = {
        "first_name": "Björn",
        "sur_name": "Ulvaeus",
        "band_member": True,
        "year_joined": datetime(1970, 1, 1, tzinfo=timezone.utc),
    }

    result = validate_update(current, {"band_member": False, "year_joined": None})

    assert result.ok
    assert result.document == {"band_member": False, "year_joined": None}
