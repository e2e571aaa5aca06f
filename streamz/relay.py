# streamz/relay.py
"""
Range-streaming relay.

One request walks: lookup row -> resolve key -> HEAD -> negotiate range ->
GET + stream. Steps are strictly sequential and nothing is shared between
requests except the two pooled clients. No step is retried; a failure ends
the request and the player re-requests.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import anyio
from anyio import to_thread
from starlette.responses import Response, StreamingResponse
from starlette.types import Receive, Scope, Send

from streamz.errors import InvalidLocator, NotFound, ObjectMissing, StreamzError, TransferError, UpstreamTimeout
from streamz.locator import resolve_storage_key
from streamz.metadata import MetadataStore, Video
from streamz.ranges import RangePlan, negotiate_range
from streamz.storage import ByteSource

logger = logging.getLogger("streamz.relay")

DEFAULT_CONTENT_TYPE = "video/mp4"
# what S3/R2 report when the uploader never set a type
_UNSET_CONTENT_TYPES = {"application/octet-stream", "binary/octet-stream"}


@dataclass(frozen=True)
class StreamTarget:
    video: Video
    key: str
    content_type: str
    plan: RangePlan


class RelayResponse(StreamingResponse):
    """
    Streams ``length`` bytes from ``source``, starting with the prefetched
    ``first`` chunk. The source is closed however the response ends:
    completion, storage failure, or client disconnect.
    """

    def __init__(
        self,
        source: ByteSource,
        first: bytes,
        length: int,
        *,
        chunk_size: int,
        label: str,
        status_code: int,
        headers: dict,
    ):
        self._source = source
        self._first = first
        self._length = length
        self._chunk_size = chunk_size
        self._label = label
        self.bytes_sent = 0
        super().__init__(self._body(), status_code=status_code, headers=headers)

    async def _body(self):
        chunk = self._first
        self._first = b""
        while True:
            self.bytes_sent += len(chunk)
            yield chunk
            remaining = self._length - self.bytes_sent
            if remaining <= 0:
                return
            try:
                chunk = await self._source.read(min(self._chunk_size, remaining))
                if not chunk:
                    raise TransferError(f"storage ended {remaining} bytes early")
            except StreamzError as e:
                # headers are already out; the server can only drop the connection
                logger.error("Transfer aborted for %s after %d bytes: %s", self._label, self.bytes_sent, e.message)
                raise

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            with anyio.CancelScope(shield=True):
                await self._source.aclose()
            if self.bytes_sent < self._length:
                logger.info("Stream for %s ended early at %d/%d bytes", self._label, self.bytes_sent, self._length)


class VideoRelay:
    def __init__(self, metadata: MetadataStore, storage, *, chunk_size: int = 512 * 1024, lookup_timeout: float = 10.0):
        self.metadata = metadata
        self.storage = storage
        self.chunk_size = chunk_size
        self.lookup_timeout = lookup_timeout

    async def _lookup(self, video_id: str) -> Video:
        try:
            with anyio.fail_after(self.lookup_timeout):
                video = await to_thread.run_sync(self.metadata.get_video, video_id, abandon_on_cancel=True)
        except TimeoutError:
            raise UpstreamTimeout("Metadata lookup timed out") from None
        if video is None:
            raise NotFound("Video not found")
        return video

    async def prepare(self, video_id: str, range_header: Optional[str]) -> StreamTarget:
        """Run every step up to and including range negotiation."""
        video = await self._lookup(video_id)

        try:
            key = resolve_storage_key(video.file_url, self.storage.bucket)
        except InvalidLocator as e:
            logger.error("Video %s has an unusable locator: %s", video_id, e.message)
            raise

        try:
            with anyio.fail_after(self.lookup_timeout):
                info = await self.storage.head(key)
        except TimeoutError:
            raise UpstreamTimeout("Storage lookup timed out") from None
        except ObjectMissing:
            logger.error("Video %s points at missing storage object %r", video_id, key)
            raise

        content_type = info.content_type
        if not content_type or content_type in _UNSET_CONTENT_TYPES:
            content_type = video.mime_type or DEFAULT_CONTENT_TYPE

        plan = negotiate_range(range_header, info.size)
        logger.debug("Video %s key=%r size=%d range=%r -> %d", video_id, key, info.size, range_header, plan.status)
        return StreamTarget(video=video, key=key, content_type=content_type, plan=plan)

    async def respond(self, video_id: str, range_header: Optional[str], *, head: bool = False) -> Response:
        target = await self.prepare(video_id, range_header)
        plan = target.plan

        if not plan.satisfiable:
            return Response(status_code=416, headers=plan.headers())
        headers = plan.headers(target.content_type)
        if head or plan.length == 0:
            return Response(status_code=plan.status, headers=headers)

        if plan.partial:
            obj = await self.storage.get(target.key, plan.start, plan.end)
        else:
            obj = await self.storage.get(target.key)
        if obj.content_length is not None and obj.content_length != plan.length:
            logger.warning(
                "Storage sent %d bytes for %r, expected %d", obj.content_length, target.key, plan.length
            )

        # nothing is on the wire yet, so a failure here can still be a 500
        try:
            first = await obj.body.read(min(self.chunk_size, plan.length))
            if not first:
                raise TransferError(f"storage returned an empty body for {target.key!r}")
        except StreamzError as e:
            with anyio.CancelScope(shield=True):
                await obj.body.aclose()
            if isinstance(e, TransferError):
                raise
            raise TransferError(e.message) from e

        return RelayResponse(
            obj.body,
            first,
            plan.length,
            chunk_size=self.chunk_size,
            label=f"video {video_id}",
            status_code=plan.status,
            headers=headers,
        )
