"""
Pydantic schemas for the people endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class PersonCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=200)
    sur_name: str = Field(..., min_length=1, max_length=200)
    alias: str | None = Field(default=None, max_length=200)
    band_member: bool = False
    # A 4-digit year or an ISO 8601 date; normalized to a date before storage.
    year_joined: int | str | None = None
    ipi_number: str | None = Field(default=None, max_length=64)
    instrument: list[str] = Field(default_factory=list)
    release_entity: list[str] = Field(default_factory=list)


class PersonUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=200)
    sur_name: str | None = Field(default=None, min_length=1, max_length=200)
    alias: str | None = Field(default=None, max_length=200)
    band_member: bool | None = None
    year_joined: int | str | None = None
    ipi_number: str | None = Field(default=None, max_length=64)
    instrument: list[str] | None = None
    release_entity: list[str] | None = None


class PersonResponse(BaseModel):
    id: str
    first_name: str
    sur_name: str
    alias: str | None = None
    band_member: bool
    year_joined: int | None = None
    ipi_number: str | None = None
    instrument: list[str] = Field(default_factory=list)
    release_entity: list[str] = Field(default_factory=list)
    createdAt: datetime | None = None
    updatedAt: datetime | None = None
