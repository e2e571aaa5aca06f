# streamz/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GenreRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str


class GenreOut(GenreRef):
    description: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class GenreCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None


class GenreUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    slug: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None


class VideoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    file_url: str
    thumbnail_url: Optional[str] = None
    duration: Optional[int] = None
    mime_type: Optional[str] = None
    genre: Optional[GenreRef] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class VideoUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    genre_id: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0)


_EMAIL = r"^[^@\s]+@[^@\s]+$"


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    avatar_url: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class UserCreate(BaseModel):
    email: str = Field(pattern=_EMAIL)
    name: str = Field(min_length=1)
    avatar_url: Optional[str] = None


class UserUpdate(BaseModel):
    email: Optional[str] = Field(default=None, pattern=_EMAIL)
    name: Optional[str] = Field(default=None, min_length=1)
    avatar_url: Optional[str] = None
    is_active: Optional[bool] = None
