# streamz/users.py
"""
Admin view of user accounts. Sign-up, login and password handling live in the
identity service; rows here carry profile fields only.
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from streamz.auth import require_admin
from streamz.deps import get_metadata
from streamz.errors import NotFound
from streamz.metadata import MetadataStore
from streamz.schemas import UserCreate, UserOut, UserUpdate

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("")
def list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    sort_by: Literal["created_at", "name", "email"] = "created_at",
    search: Optional[str] = None,
    active: Optional[bool] = None,
    metadata: MetadataStore = Depends(get_metadata),
):
    users, total = metadata.list_users(
        limit=limit, offset=offset, sort_by=sort_by, search=search, active=active
    )
    return {
        "users": [UserOut.model_validate(u) for u in users],
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + limit < total,
    }


@router.get("/count")
def count_users(metadata: MetadataStore = Depends(get_metadata)):
    counts = metadata.count_users()
    total = counts["total"]
    counts["percentage_active"] = round(counts["active"] / total * 100) if total else 0
    return counts


@router.get("/growth")
def user_growth(
    period: Literal["day", "week", "month", "year"] = "month",
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    metadata: MetadataStore = Depends(get_metadata),
):
    data = [{"date": d, "count": c} for d, c in metadata.user_growth(period, start_date, end_date)]
    return {
        "period": period,
        "data": data,
        "total_growth": sum(item["count"] for item in data),
        "start_date": start_date.isoformat() if start_date else "beginning",
        "end_date": end_date.isoformat() if end_date else "now",
    }


@router.post("", status_code=201)
def create_user(body: UserCreate, metadata: MetadataStore = Depends(get_metadata)):
    user = metadata.create_user(body.email, body.name, avatar_url=body.avatar_url)
    return {"message": "User created successfully", "user": UserOut.model_validate(user)}


@router.get("/{user_id}")
def get_user(user_id: str, metadata: MetadataStore = Depends(get_metadata)):
    user = metadata.get_user(user_id)
    if user is None:
        raise NotFound("User not found")
    return {"user": UserOut.model_validate(user)}


@router.put("/{user_id}")
def update_user(user_id: str, body: UserUpdate, metadata: MetadataStore = Depends(get_metadata)):
    # null clears avatar_url only; the other columns are NOT NULL
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k == "avatar_url"}
    if changes.get("email"):
        changes["email"] = changes["email"].strip().lower()
    user = metadata.update_user(user_id, changes)
    return {"message": "User updated successfully", "user": UserOut.model_validate(user)}


@router.delete("/{user_id}")
def delete_user(user_id: str, metadata: MetadataStore = Depends(get_metadata)):
    if not metadata.delete_user(user_id):
        raise NotFound("User not found")
    return {"message": "User deleted successfully", "deleted_user_id": user_id}
