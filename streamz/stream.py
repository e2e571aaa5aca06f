# streamz/stream.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from streamz.config import Settings
from streamz.deps import get_relay, get_settings
from streamz.relay import VideoRelay

EXPOSE_HEADERS = ["Content-Length", "Content-Range", "Content-Type", "Accept-Ranges"]

router = APIRouter()


def preflight_headers(request: Request, settings: Settings) -> dict:
    origins = settings.origins
    origin = (request.headers.get("origin") or "").rstrip("/")
    if "*" in origins:
        allow = "*"
    elif origin in origins:
        allow = origin
    else:
        allow = origins[0] if origins else "*"
    return {
        "Access-Control-Allow-Origin": allow,
        "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
        "Access-Control-Allow-Headers": "Range, Content-Type, Authorization",
        "Access-Control-Expose-Headers": ", ".join(EXPOSE_HEADERS),
        "Access-Control-Max-Age": "86400",
        "Vary": "Origin",
    }


@router.options("/{video_id}")
def options_stream(video_id: str, request: Request, settings: Settings = Depends(get_settings)):
    # answered before any lookup; never touches storage or the database
    return Response(status_code=204, headers=preflight_headers(request, settings))


@router.api_route("/{video_id}", methods=["GET", "HEAD"])
async def stream_video(video_id: str, request: Request, relay: VideoRelay = Depends(get_relay)):
    """
    Relay the video's bytes from object storage.

    200 with the whole object when no ``Range`` is sent, 206 for a
    satisfiable ``bytes=a-b`` / ``bytes=a-``, 416 with
    ``Content-Range: bytes */<size>`` otherwise.
    """
    return await relay.respond(
        video_id,
        request.headers.get("range"),
        head=request.method == "HEAD",
    )
