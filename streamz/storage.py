# streamz/storage.py
"""
Object Storage Gateway: an S3-compatible bucket (Cloudflare R2, MinIO, AWS).

boto3 is synchronous, so every call runs in a worker thread. Response bodies
of any shape are wrapped into a ``ByteSource`` at this boundary; the relay
only ever sees ``read(n)`` / ``aclose()``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, BinaryIO, Optional, Protocol

import httpx
from anyio import to_thread
from boto3.session import Session
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from streamz.config import Settings
from streamz.errors import ObjectMissing, StorageError

logger = logging.getLogger("streamz.storage")

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


@dataclass(frozen=True)
class ObjectInfo:
    size: int
    content_type: Optional[str] = None


# ---------- byte sources ----------


class ByteSource(Protocol):
    async def read(self, size: int) -> bytes: ...

    async def aclose(self) -> None: ...


class BytesSource:
    def __init__(self, data: bytes):
        self._view = memoryview(bytes(data))
        self._pos = 0

    async def read(self, size: int) -> bytes:
        chunk = self._view[self._pos:self._pos + size].tobytes()
        self._pos += len(chunk)
        return chunk

    async def aclose(self) -> None:
        self._view.release()


class SyncReaderSource:
    """File-like bodies with a blocking ``read(n)``, e.g. botocore StreamingBody."""

    def __init__(self, body: Any):
        self._body = body
        self._closed = False

    async def read(self, size: int) -> bytes:
        try:
            # abandoned on cancel so a disconnect need not wait out the read
            # timeout; aclose() then closes the body under the stuck read
            return await to_thread.run_sync(self._body.read, size, abandon_on_cancel=True)
        except (BotoCoreError, OSError) as e:
            raise StorageError(f"body read failed: {e}") from e

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        close = getattr(self._body, "close", None)
        if close is not None:
            await to_thread.run_sync(close)


class AsyncIterSource:
    """Async iterables of byte chunks, e.g. ``httpx.Response.aiter_bytes()``."""

    def __init__(self, body: Any):
        self._it = body.__aiter__()
        self._buf = b""
        self._done = False

    async def read(self, size: int) -> bytes:
        while len(self._buf) < size and not self._done:
            try:
                self._buf += await self._it.__anext__()
            except StopAsyncIteration:
                self._done = True
            except (httpx.HTTPError, OSError) as e:
                raise StorageError(f"body read failed: {e}") from e
        chunk, self._buf = self._buf[:size], self._buf[size:]
        return chunk

    async def aclose(self) -> None:
        self._done = True
        self._buf = b""
        aclose = getattr(self._it, "aclose", None)
        if aclose is not None:
            await aclose()


def as_byte_source(body: Any) -> ByteSource:
    if isinstance(body, (bytes, bytearray, memoryview)):
        return BytesSource(bytes(body))
    if hasattr(body, "__aiter__"):
        return AsyncIterSource(body)
    if hasattr(body, "read"):
        return SyncReaderSource(body)
    raise TypeError(f"unsupported body type: {type(body).__name__}")


@dataclass
class StoredObject:
    body: ByteSource
    content_type: Optional[str]
    content_length: Optional[int]


# ---------- S3 gateway ----------


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3Storage:
    def __init__(self, client: Any, bucket: str):
        self._client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3Storage":
        session = Session(
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            region_name=settings.s3_region,
        )
        client = session.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            config=BotoConfig(
                signature_version="s3v4",
                connect_timeout=settings.storage_connect_timeout,
                read_timeout=settings.storage_read_timeout,
                # failures surface to the client, which may retry
                retries={"total_max_attempts": 1},
            ),
        )
        logger.info("S3 storage configured - bucket: %s", settings.s3_bucket)
        return cls(client, settings.s3_bucket)

    async def _call(self, method: str, *, abandon: bool = False, **kwargs: Any) -> Any:
        func = partial(getattr(self._client, method), Bucket=self.bucket, **kwargs)
        try:
            return await to_thread.run_sync(func, abandon_on_cancel=abandon)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise ObjectMissing(f"no object for key {kwargs.get('Key')!r}") from e
            raise StorageError(f"{method} failed: {_error_code(e) or e}") from e
        except BotoCoreError as e:
            raise StorageError(f"{method} failed: {e}") from e

    async def head(self, key: str) -> ObjectInfo:
        res = await self._call("head_object", abandon=True, Key=key)
        return ObjectInfo(size=int(res["ContentLength"]), content_type=res.get("ContentType"))

    async def get(self, key: str, start: Optional[int] = None, end: Optional[int] = None) -> StoredObject:
        kwargs: dict = {"Key": key}
        if start is not None:
            kwargs["Range"] = f"bytes={start}-{'' if end is None else end}"
        res = await self._call("get_object", **kwargs)
        length = res.get("ContentLength")
        return StoredObject(
            body=as_byte_source(res["Body"]),
            content_type=res.get("ContentType"),
            content_length=int(length) if length is not None else None,
        )

    async def put(self, key: str, fileobj: BinaryIO, content_type: str) -> None:
        await self._call("put_object", Key=key, Body=fileobj, ContentType=content_type)

    async def delete(self, key: str) -> None:
        await self._call("delete_object", Key=key)

    def close(self) -> None:
        self._client.close()
