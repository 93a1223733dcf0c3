"""
People business logic.

Every write goes through `validation` first; driver errors that map to a
client mistake (duplicate names, duplicate IPI numbers) become HTTP errors.
"""

from __future__ import annotations

from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, status
from pymongo.errors import DuplicateKeyError

from core.db import DatabaseConnection

from . import repository, schemas, validation


def _parse_id(person_id: str) -> ObjectId:
    try:
        return ObjectId(person_id)
    except (InvalidId, TypeError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Person not found.") from exc


def _raise_validation(errors: dict[str, str]) -> None:
    raise HTTPException(
        status_code=422,
        detail={"message": "Person validation failed.", "errors": errors},
    )


def _duplicate_detail(exc: DuplicateKeyError) -> str:
    key_pattern = (exc.details or {}).get("keyPattern") or {}
    if "ipi_number" in key_pattern:
        return "A person with this ipi_number already exists."
    return "A person with this first_name and sur_name already exists."


async def create_person(conn: DatabaseConnection, payload: schemas.PersonCreate) -> dict[str, Any]:
    result = validation.validate_person(payload.model_dump())
    if not result.ok:
        _raise_validation(result.errors)

    try:
        row = await repository.insert_person(conn, result.document)
    except DuplicateKeyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_duplicate_detail(exc)) from exc
    return validation.serialize_person(row)


async def get_person(conn: DatabaseConnection, person_id: str) -> dict[str, Any]:
    row = await repository.get_person(conn, _parse_id(person_id))
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Person not found.")
    return validation.serialize_person(row)


async def list_people(
    conn: DatabaseConnection,
    *,
    band_member: bool | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[dict[str, Any]]:
    filters: dict[str, Any] = {}
    if band_member is not None:
        filters["band_member"] = band_member
    rows = await repository.list_people(conn, filters=filters, limit=limit, offset=offset)
    return [validation.serialize_person(row) for row in rows]


async def search_people(conn: DatabaseConnection, text: str, *, limit: int = 20) -> list[dict[str, Any]]:
    text = (text or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Search text is required.")
    rows = await repository.search_people(conn, text, limit=limit)
    return [validation.serialize_person(row) for row in rows]


async def update_person(
    conn: DatabaseConnection,
    person_id: str,
    payload: schemas.PersonUpdate,
) -> dict[str, Any]:
    oid = _parse_id(person_id)
    current = await repository.get_person(conn, oid)
    if current is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Person not found.")

    changes = payload.model_dump(exclude_unset=True)
    result = validation.validate_update(current, changes)
    if not result.ok:
        _raise_validation(result.errors)

    try:
        row = await repository.update_person(conn, oid, result.document)
    except DuplicateKeyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_duplicate_detail(exc)) from exc
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Person not found.")
    return validation.serialize_person(row)


async def delete_person(conn: DatabaseConnection, person_id: str) -> dict[str, Any]:
    deleted = await repository.delete_person(conn, _parse_id(person_id))
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Person not found.")
    return {"ok": True, "id": person_id}
