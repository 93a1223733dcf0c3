"""
People API endpoints.

Not mounted unless PEOPLE_API_ENABLED is set (see `api/main.py`).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status

from core.db import DatabaseConnection

from . import schemas, service

router = APIRouter(prefix="/people")


def get_connection(request: Request) -> DatabaseConnection:
    return request.app.state.database


@router.post("", status_code=status.HTTP_201_CREATED, response_model=schemas.PersonResponse)
async def create_person(
    request: schemas.PersonCreate,
    conn: DatabaseConnection = Depends(get_connection),
) -> dict:
    return await service.create_person(conn, request)


@router.get("")
async def list_people(
    band_member: bool | None = Query(default=None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    conn: DatabaseConnection = Depends(get_connection),
) -> dict:
    people = await service.list_people(conn, band_member=band_member, limit=limit, offset=offset)
    return {"people": people, "limit": limit, "offset": offset, "count": len(people)}


@router.get("/search")
async def search_people(
    q: str = Query(..., min_length=1, max_length=200),
    limit: int = Query(20, ge=1, le=100),
    conn: DatabaseConnection = Depends(get_connection),
) -> dict:
    people = await service.search_people(conn, q, limit=limit)
    return {"query": q, "people": people, "count": len(people)}


@router.get("/{person_id}", response_model=schemas.PersonResponse)
async def get_person(
    person_id: str,
    conn: DatabaseConnection = Depends(get_connection),
) -> dict:
    return await service.get_person(conn, person_id)


@router.patch("/{person_id}", response_model=schemas.PersonResponse)
async def update_person(
    person_id: str,
    request: schemas.PersonUpdate,
    conn: DatabaseConnection = Depends(get_connection),
) -> dict:
    return await service.update_person(conn, person_id, request)


@router.delete("/{person_id}")
async def delete_person(
    person_id: str,
    conn: DatabaseConnection = Depends(get_connection),
) -> dict:
    return await service.delete_person(conn, person_id)
