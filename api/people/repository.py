"""
Person persistence (motor).

Collection `people` is created with a Swedish, case-insensitive default
collation; uniqueness of the name pair is enforced by MongoDB under that
collation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from pymongo import ASCENDING, TEXT, IndexModel, ReturnDocument
from pymongo.collation import Collation
from pymongo.errors import CollectionInvalid

from core.db import DatabaseConnection

from .validation import PERSON_FIELDS

COLLECTION_NAME = "people"
PERSON_COLLATION = Collation(locale="sv", strength=2)

logger = logging.getLogger(__name__)


def person_indexes() -> list[IndexModel]:
    return [
        IndexModel(
            [("first_name", ASCENDING), ("sur_name", ASCENDING)],
            name="first_name_sur_name_unique",
            unique=True,
            collation=PERSON_COLLATION,
        ),
        # Text indexes only accept the simple collation.
        IndexModel(
            [("first_name", TEXT), ("sur_name", TEXT)],
            name="name_text",
            default_language="swedish",
            collation=Collation(locale="simple"),
        ),
        IndexModel([("year_joined", ASCENDING)], name="year_joined"),
        IndexModel([("band_member", ASCENDING), ("year_joined", ASCENDING)], name="band_member_year_joined"),
        IndexModel(
            [("ipi_number", ASCENDING)],
            name="ipi_number_unique",
            unique=True,
            partialFilterExpression={"ipi_number": {"$type": "string"}},
        ),
    ]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _collection(conn: DatabaseConnection):
    return conn.database()[COLLECTION_NAME]


async def ensure_indexes(conn: DatabaseConnection) -> None:
    database = conn.database()
    try:
        await database.create_collection(COLLECTION_NAME, collation=PERSON_COLLATION)
    except CollectionInvalid:
        # Already exists; its collation was fixed at creation.
        pass
    names = await database[COLLECTION_NAME].create_indexes(person_indexes())
    logger.info("people indexes ensured names=%s", names)


async def insert_person(conn: DatabaseConnection, document: dict[str, Any]) -> dict[str, Any]:
    now = _utc_now()
    row = {**document, "createdAt": now, "updatedAt": now}
    result = await _collection(conn).insert_one(row)
    row["_id"] = result.inserted_id
    return row


async def get_person(conn: DatabaseConnection, person_id: ObjectId) -> dict[str, Any] | None:
    return await _collection(conn).find_one({"_id": person_id})


async def list_people(
    conn: DatabaseConnection,
    *,
    filters: dict[str, Any] | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[dict[str, Any]]:
    query = conn.apply_strict_query(filters or {}, (*PERSON_FIELDS, "_id"))
    cursor = (
        _collection(conn)
        .find(query)
        .sort([("sur_name", ASCENDING), ("first_name", ASCENDING)])
        .skip(offset)
        .limit(limit)
    )
    return await cursor.to_list(length=limit)


async def search_people(conn: DatabaseConnection, text: str, *, limit: int = 20) -> list[dict[str, Any]]:
    """
    Full-text search over first and last names, best matches first.
    """
    cursor = (
        _collection(conn)
        .find({"$text": {"$search": text}}, {"score": {"$meta": "textScore"}})
        .sort([("score", {"$meta": "textScore"})])
        .limit(limit)
    )
    rows = await cursor.to_list(length=limit)
    for row in rows:
        row.pop("score", None)
    return rows


async def update_person(
    conn: DatabaseConnection,
    person_id: ObjectId,
    changes: dict[str, Any],
) -> dict[str, Any] | None:
    """
    Apply already-validated changes. A `None` year_joined removes the field.
    """
    to_set = {key: value for key, value in changes.items() if not (key == "year_joined" and value is None)}
    to_set["updatedAt"] = _utc_now()
    update: dict[str, Any] = {"$set": to_set}
    if "year_joined" in changes and changes["year_joined"] is None:
        update["$unset"] = {"year_joined": ""}

    return await _collection(conn).find_one_and_update(
        {"_id": person_id},
        update,
        return_document=ReturnDocument.AFTER,
    )


async def delete_person(conn: DatabaseConnection, person_id: ObjectId) -> bool:
    result = await _collection(conn).delete_one({"_id": person_id})
    return result.deleted_count == 1
