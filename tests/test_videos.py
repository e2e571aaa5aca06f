import io

import pytest

from streamz.errors import StorageError


def upload(client, headers, data=b"\x00\x00\x00\x18ftypmp42" + b"x" * 100, **form):
    fields = {"title": "My Clip", **form}
    return client.post(
        "/api/videos",
        data=fields,
        files={"video": ("my clip (final).mp4", io.BytesIO(data), "video/mp4")},
        headers=headers,
    )


def test_upload_stores_object_then_row(client, admin, storage, metadata):
    r = upload(client, admin, description="first cut", duration="95")
    assert r.status_code == 201
    video = r.json()["video"]
    assert video["title"] == "My Clip"
    assert video["duration"] == 95
    assert video["mime_type"] == "video/mp4"
    key = video["file_url"]
    assert key == f"videos/{video['id']}-my_clip_final_.mp4"
    assert storage.objects[key][1] == "video/mp4"
    assert metadata.get_video(video["id"]).file_url == key


def test_uploaded_video_streams_back(client, admin):
    data = bytes(range(200))
    video = upload(client, admin, data=data).json()["video"]
    r = client.get(f"/api/stream/{video['id']}", headers={"Range": "bytes=50-59"})
    assert r.status_code == 206
    assert r.content == data[50:60]


def test_upload_requires_admin(client, storage):
    assert upload(client, {}).status_code == 401
    r = upload(client, {"Authorization": "Bearer wrong"})
    assert r.status_code == 401
    assert r.json()["code"] == "INVALID_ADMIN_TOKEN"
    assert storage.objects == {}


def test_upload_rejects_non_video(client, admin, storage):
    r = client.post(
        "/api/videos",
        data={"title": "notes"},
        files={"video": ("notes.txt", io.BytesIO(b"hello"), "text/plain")},
        headers=admin,
    )
    assert r.status_code == 400
    assert storage.objects == {}


def test_upload_size_limit(app, client, admin, storage):
    app.state.settings = app.state.settings.model_copy(update={"max_upload_bytes": 10})
    r = upload(client, admin, data=b"x" * 11)
    assert r.status_code == 413
    assert r.json()["code"] == "FILE_TOO_LARGE"
    assert storage.objects == {}


def test_upload_with_unknown_genre_removes_object(client, admin, storage):
    r = upload(client, admin, genre_id="1b4e28ba-2fa1-11d2-883f-0016d3cca427")
    assert r.status_code == 404
    assert storage.objects == {}
    assert len(storage.deleted) == 1


def test_list_and_get(client, admin, metadata):
    genre = metadata.create_genre("Action Movies")
    first = upload(client, admin, genre_id=genre.id).json()["video"]
    upload(client, admin, title="Second")

    listing = client.get("/api/videos").json()["videos"]
    assert {v["title"] for v in listing} == {"My Clip", "Second"}

    r = client.get(f"/api/videos/{first['id']}")
    assert r.status_code == 200
    assert r.json()["video"]["genre"] == {"id": genre.id, "name": "Action Movies", "slug": "action-movies"}


def test_get_unknown_video(client):
    r = client.get("/api/videos/1b4e28ba-2fa1-11d2-883f-0016d3cca427")
    assert r.status_code == 404
    assert r.json()["error"] == "Not found"


def test_update(client, admin, video, metadata):
    genre = metadata.create_genre("Drama")
    r = client.put(
        f"/api/videos/{video.id}",
        json={"title": "Renamed", "genre_id": genre.id},
        headers=admin,
    )
    assert r.status_code == 200
    body = r.json()["video"]
    assert body["title"] == "Renamed"
    assert body["genre"]["slug"] == "drama"
    assert body["file_url"] == "videos/sample.mp4"

    r = client.put(f"/api/videos/{video.id}", json={"genre_id": None}, headers=admin)
    assert r.json()["video"]["genre"] is None


def test_update_requires_admin_and_existing_row(client, admin, video):
    assert client.put(f"/api/videos/{video.id}", json={"title": "x"}).status_code == 401
    r = client.put("/api/videos/1b4e28ba-2fa1-11d2-883f-0016d3cca427", json={"title": "x"}, headers=admin)
    assert r.status_code == 404
    assert client.put(f"/api/videos/{video.id}", json={"title": None}, headers=admin).status_code == 400


def test_delete_removes_row_and_object(client, admin, video, storage):
    r = client.delete(f"/api/videos/{video.id}", headers=admin)
    assert r.status_code == 200
    assert storage.deleted == ["videos/sample.mp4"]
    assert client.get(f"/api/videos/{video.id}").status_code == 404
    assert client.get(f"/api/stream/{video.id}").status_code == 404


def test_delete_resolves_url_locators(client, admin, metadata, storage):
    storage.add("videos/legacy clip.mp4", b"abc")
    v = metadata.create_video(title="Legacy", file_url="https://pub-1.r2.dev/videos/legacy%20clip.mp4")
    client.delete(f"/api/videos/{v.id}", headers=admin)
    assert storage.deleted == ["videos/legacy clip.mp4"]
    assert "videos/legacy clip.mp4" not in storage.objects


def test_delete_is_best_effort_on_storage(client, admin, video, storage):
    async def failing_delete(key):
        raise StorageError("bucket unavailable")

    storage.delete = failing_delete
    r = client.delete(f"/api/videos/{video.id}", headers=admin)
    assert r.status_code == 200
    assert client.get(f"/api/videos/{video.id}").status_code == 404


@pytest.mark.parametrize("method", ["delete", "put"])
def test_admin_routes_reject_missing_token(client, video, method):
    r = client.request(method.upper(), f"/api/videos/{video.id}", json={"title": "x"})
    assert r.status_code == 401
