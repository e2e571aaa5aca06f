# streamz/genres.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from streamz.auth import require_admin
from streamz.deps import get_metadata
from streamz.errors import NotFound
from streamz.metadata import MetadataStore, slugify
from streamz.schemas import GenreCreate, GenreOut, GenreUpdate

router = APIRouter()


@router.get("")
def list_genres(metadata: MetadataStore = Depends(get_metadata)):
    return {"genres": [GenreOut.model_validate(g) for g in metadata.list_genres()]}


@router.get("/{genre_id}")
def get_genre(genre_id: str, metadata: MetadataStore = Depends(get_metadata)):
    genre = metadata.get_genre(genre_id)
    if genre is None:
        raise NotFound("Genre not found")
    return {"genre": GenreOut.model_validate(genre)}


@router.post("", dependencies=[Depends(require_admin)], status_code=201)
def create_genre(body: GenreCreate, metadata: MetadataStore = Depends(get_metadata)):
    slug = slugify(body.slug) if body.slug else None
    genre = metadata.create_genre(body.name, slug=slug, description=body.description)
    return {"message": "Genre created successfully", "genre": GenreOut.model_validate(genre)}


@router.put("/{genre_id}", dependencies=[Depends(require_admin)])
def update_genre(genre_id: str, body: GenreUpdate, metadata: MetadataStore = Depends(get_metadata)):
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k == "description"}
    if changes.get("slug"):
        changes["slug"] = slugify(changes["slug"])
    genre = metadata.update_genre(genre_id, changes)
    return {"message": "Genre updated successfully", "genre": GenreOut.model_validate(genre)}


@router.delete("/{genre_id}", dependencies=[Depends(require_admin)])
def delete_genre(genre_id: str, metadata: MetadataStore = Depends(get_metadata)):
    if not metadata.delete_genre(genre_id):
        raise NotFound("Genre not found")
    return {"message": "Genre deleted successfully"}
