from __future__ import annotations

import anyio
import pytest
from fastapi.testclient import TestClient

from streamz.app import create_app
from streamz.config import Settings
from streamz.errors import ObjectMissing
from streamz.metadata import MetadataStore
from streamz.storage import AsyncIterSource, ObjectInfo, StoredObject

ADMIN_TOKEN = "test-admin-token"


class TrackedSource(AsyncIterSource):
    def __init__(self, storage: "MemoryStorage", body):
        super().__init__(body)
        self._storage = storage
        self._released = False
        storage.open_reads += 1

    async def aclose(self) -> None:
        if not self._released:
            self._released = True
            self._storage.open_reads -= 1
        await super().aclose()


class MemoryStorage:
    """In-memory stand-in for the S3 gateway, with knobs for slow or failing reads."""

    def __init__(self, chunk: int = 4096, delay: float = 0.0, fail_at: int | None = None, bucket: str = "videos"):
        self.bucket = bucket
        self.objects: dict[str, tuple[bytes, str | None]] = {}
        self.chunk = chunk
        self.delay = delay
        self.fail_at = fail_at
        self.open_reads = 0
        self.head_calls: list[str] = []
        self.get_calls: list[tuple] = []
        self.deleted: list[str] = []

    def add(self, key: str, data: bytes, content_type: str | None = "video/mp4") -> None:
        self.objects[key] = (data, content_type)

    async def head(self, key: str) -> ObjectInfo:
        self.head_calls.append(key)
        if key not in self.objects:
            raise ObjectMissing(f"no object for key {key!r}")
        data, ct = self.objects[key]
        return ObjectInfo(size=len(data), content_type=ct)

    async def _chunks(self, data: bytes, offset: int):
        for i in range(0, len(data), self.chunk):
            if self.delay:
                await anyio.sleep(self.delay)
            if self.fail_at is not None and offset + i >= self.fail_at:
                raise OSError("connection reset by peer")
            yield data[i:i + self.chunk]

    async def get(self, key: str, start: int | None = None, end: int | None = None) -> StoredObject:
        self.get_calls.append((key, start, end))
        if key not in self.objects:
            raise ObjectMissing(f"no object for key {key!r}")
        data, ct = self.objects[key]
        offset = 0
        if start is not None:
            offset = start
            data = data[start:None if end is None else end + 1]
        return StoredObject(
            body=TrackedSource(self, self._chunks(data, offset)),
            content_type=ct,
            content_length=len(data),
        )

    async def put(self, key: str, fileobj, content_type: str) -> None:
        self.objects[key] = (fileobj.read(), content_type)

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.objects.pop(key, None)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'streamz.db'}",
        admin_token=ADMIN_TOKEN,
        allowed_origins="http://localhost:3000",
        chunk_size=1024,
        lookup_timeout=2.0,
    )


@pytest.fixture
def metadata(settings):
    store = MetadataStore.from_url(settings.database_url)
    store.create_all()
    yield store
    store.dispose()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def app(settings, metadata, storage):
    return create_app(settings, metadata=metadata, storage=storage)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def sample_bytes():
    return bytes(range(256)) * 4  # 1024 bytes, each offset distinguishable mod 256


@pytest.fixture
def video(metadata, storage, sample_bytes):
    """A 1000-byte video stored under a bare key."""
    data = (sample_bytes * 2)[:1000]
    storage.add("videos/sample.mp4", data)
    return metadata.create_video(title="Sample", file_url="videos/sample.mp4", mime_type="video/mp4")
