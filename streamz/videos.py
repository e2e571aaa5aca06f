# streamz/videos.py
from __future__ import annotations

import logging
import os
import re
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from streamz.auth import require_admin
from streamz.config import Settings
from streamz.deps import get_metadata, get_settings, get_storage
from streamz.errors import BadRequest, InvalidLocator, NotFound, PayloadTooLarge, StreamzError
from streamz.locator import resolve_storage_key
from streamz.metadata import MetadataStore
from streamz.schemas import VideoOut, VideoUpdate

logger = logging.getLogger("streamz.videos")

router = APIRouter()


def safe_filename(name: Optional[str]) -> str:
    base = os.path.basename(name or "") or "video"
    return re.sub(r"[^A-Za-z0-9._-]+", "_", base).strip("._") or "video"


def _upload_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    f = file.file
    f.seek(0, os.SEEK_END)
    size = f.tell()
    f.seek(0)
    return size


@router.get("")
def list_videos(metadata: MetadataStore = Depends(get_metadata)):
    return {"videos": [VideoOut.model_validate(v) for v in metadata.list_videos()]}


@router.get("/{video_id}")
def get_video(video_id: str, metadata: MetadataStore = Depends(get_metadata)):
    video = metadata.get_video(video_id)
    if video is None:
        raise NotFound("Video not found")
    return {"video": VideoOut.model_validate(video)}


@router.post("", dependencies=[Depends(require_admin)], status_code=201)
async def upload_video(
    title: str = Form(..., min_length=1),
    description: Optional[str] = Form(None),
    genre_id: Optional[str] = Form(None),
    duration: Optional[int] = Form(None, ge=0),
    video: UploadFile = File(...),
    metadata: MetadataStore = Depends(get_metadata),
    storage=Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    content_type = video.content_type or ""
    if not content_type.startswith("video/"):
        raise BadRequest("Only video files are allowed")
    size = _upload_size(video)
    if size > settings.max_upload_bytes:
        raise PayloadTooLarge(f"Maximum file size is {settings.max_upload_bytes // (1024 * 1024)}MB")

    video_id = str(uuid.uuid4())
    key = f"{settings.key_prefix}{video_id}-{safe_filename(video.filename)}"

    # object first, then the row: a row never points at bytes that were not written
    await storage.put(key, video.file, content_type)
    try:
        row = await run_in_threadpool(
            metadata.create_video,
            id=video_id,
            title=title.strip(),
            description=description,
            file_url=key,
            mime_type=content_type,
            duration=duration,
            genre_id=genre_id or None,
        )
    except Exception:
        logger.warning("Row insert failed for %s; removing uploaded object %r", video_id, key)
        try:
            await storage.delete(key)
        except StreamzError as e:
            logger.warning("Could not remove orphaned object %r: %s", key, e.message)
        raise

    logger.info("Uploaded video %s (%d bytes) as %r", video_id, size, key)
    return {"message": "Video uploaded successfully", "video": VideoOut.model_validate(row)}


@router.put("/{video_id}", dependencies=[Depends(require_admin)])
def update_video(video_id: str, body: VideoUpdate, metadata: MetadataStore = Depends(get_metadata)):
    changes = body.model_dump(exclude_unset=True)
    if changes.get("title", "") is None:
        raise BadRequest("title cannot be null")
    if "genre_id" in changes and not changes["genre_id"]:
        changes["genre_id"] = None
    video = metadata.update_video(video_id, changes)
    return {"message": "Video updated successfully", "video": VideoOut.model_validate(video)}


@router.delete("/{video_id}", dependencies=[Depends(require_admin)])
async def delete_video(
    video_id: str,
    metadata: MetadataStore = Depends(get_metadata),
    storage=Depends(get_storage),
):
    video = await run_in_threadpool(metadata.get_video, video_id)
    if video is None:
        raise NotFound("Video not found")

    # storage cleanup is best-effort; the row goes regardless
    try:
        await storage.delete(resolve_storage_key(video.file_url, storage.bucket))
    except InvalidLocator as e:
        logger.warning("Video %s has an unusable locator, skipping object delete: %s", video_id, e.message)
    except StreamzError as e:
        logger.warning("Could not delete object for video %s: %s", video_id, e.message)

    await run_in_threadpool(metadata.delete_video, video_id)
    return JSONResponse({"message": "Video deleted successfully"})
