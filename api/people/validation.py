"""
Person document rules: normalization, validation and serialization.

Validation runs explicitly before every write and returns a
`ValidationResult` instead of raising, so callers decide how to surface
errors (the service turns them into HTTP 422).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Mapping

from bson import ObjectId
from bson.errors import InvalidId

PERSON_FIELDS = (
    "first_name",
    "sur_name",
    "alias",
    "band_member",
    "year_joined",
    "ipi_number",
    "instrument",
    "release_entity",
)
REFERENCE_FIELDS = ("instrument", "release_entity")
TIMESTAMP_FIELDS = ("createdAt", "updatedAt")

YEAR_PATTERN = re.compile(r"\d{4}")

BAND_MEMBER_ONLY_MESSAGE = "year_joined can only be submitted if person is band_member"


@dataclass(frozen=True)
class ValidationResult:
    document: dict[str, Any]
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def normalize_year_joined(value: Any) -> Any:
    """
    Turn a 4-digit year (str or int) into a UTC datetime at January 1st.

    Dates and ISO 8601 date strings become UTC datetimes. Anything else is
    returned unchanged so validation can reject it.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    # bool is an int subclass; True is not a year.
    if isinstance(value, bool):
        return value
    if isinstance(value, (str, int)):
        text = str(value).strip()
        if YEAR_PATTERN.fullmatch(text):
            return datetime(int(text), 1, 1, tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return value
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)
    return value


def _required_text(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def _to_object_ids(values: Any) -> list[ObjectId] | None:
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        return None
    out: list[ObjectId] = []
    for item in values:
        if isinstance(item, ObjectId):
            out.append(item)
            continue
        try:
            out.append(ObjectId(str(item)))
        except (InvalidId, TypeError):
            return None
    return out


def validate_person(attrs: Mapping[str, Any]) -> ValidationResult:
    """
    Validate and normalize a full Person document.

    Unknown keys are dropped.
    """
    doc: dict[str, Any] = {key: attrs[key] for key in PERSON_FIELDS if key in attrs}
    errors: dict[str, str] = {}

    for name in ("first_name", "sur_name"):
        if not _required_text(doc.get(name)):
            errors[name] = f"{name} is required"

    alias = doc.get("alias")
    if alias is not None and not isinstance(alias, str):
        errors["alias"] = "alias must be a string"

    band_member = doc.get("band_member", False)
    if band_member is None:
        band_member = False
    if not isinstance(band_member, bool):
        errors["band_member"] = "band_member must be a boolean"
    doc["band_member"] = band_member

    year_joined = normalize_year_joined(doc.get("year_joined"))
    if year_joined is None:
        doc.pop("year_joined", None)
        if band_member is True:
            errors["year_joined"] = "year_joined is required when person is band_member"
    elif not isinstance(year_joined, datetime):
        errors["year_joined"] = "year_joined must be a date or a 4-digit year"
    elif band_member is not True:
        errors["year_joined"] = BAND_MEMBER_ONLY_MESSAGE
    else:
        doc["year_joined"] = year_joined

    ipi_number = doc.get("ipi_number")
    if ipi_number is not None and not isinstance(ipi_number, str):
        errors["ipi_number"] = "ipi_number must be a string or null"
    doc["ipi_number"] = ipi_number

    for name in REFERENCE_FIELDS:
        ids = _to_object_ids(doc.get(name))
        if ids is None:
            errors[name] = f"{name} must be a list of object ids"
        else:
            doc[name] = ids

    return ValidationResult(document=doc, errors=errors)


def validate_update(current: Mapping[str, Any], changes: Mapping[str, Any]) -> ValidationResult:
    """
    Validate a partial update against the stored document.

    The returned document holds only the changed fields, normalized.
    """
    merged = {key: current[key] for key in PERSON_FIELDS if key in current}
    merged.update({key: value for key, value in changes.items() if key in PERSON_FIELDS})
    result = validate_person(merged)

    changed = {key for key in changes if key in PERSON_FIELDS}
    document = {key: result.document[key] for key in changed if key in result.document}
    # Clearing year_joined is expressed as an explicit None.
    if "year_joined" in changed and "year_joined" not in result.document:
        document["year_joined"] = None
    return ValidationResult(document=document, errors=result.errors)


def serialize_person(doc: Mapping[str, Any]) -> dict[str, Any]:
    """
    Public representation: `_id` becomes `id`, `year_joined` becomes a bare
    year, the version marker is dropped.
    """
    out: dict[str, Any] = {}
    if "_id" in doc:
        out["id"] = str(doc["_id"])

    for key, value in doc.items():
        if key in ("_id", "__v"):
            continue
        out[key] = value

    year_joined = doc.get("year_joined")
    if isinstance(year_joined, datetime):
        if year_joined.tzinfo is not None:
            year_joined = year_joined.astimezone(timezone.utc)
        out["year_joined"] = year_joined.year

    for name in REFERENCE_FIELDS:
        if name in doc:
            out[name] = [str(item) for item in doc.get(name) or []]

    return out
