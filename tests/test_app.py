import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from streamz.app import create_app
from streamz.config import Settings


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "OK"
    assert body["service"] == "Streamz API"


def test_unknown_api_route_is_json(client):
    r = client.get("/api/nothing-here")
    assert r.status_code == 404
    assert set(r.json()) == {"error", "message", "code"}


def test_admin_disabled_without_token(settings, metadata, storage):
    app = create_app(settings.model_copy(update={"admin_token": None}), metadata=metadata, storage=storage)
    r = TestClient(app).post("/api/genres", json={"name": "x"}, headers={"Authorization": "Bearer "})
    assert r.status_code == 401


def test_unexpected_errors_are_json(app, metadata):
    def explode(video_id):
        raise RuntimeError("db down")

    metadata.get_video = explode
    r = TestClient(app, raise_server_exceptions=False).get(
        "/api/stream/1b4e28ba-2fa1-11d2-883f-0016d3cca427"
    )
    assert r.status_code == 500
    assert r.json()["code"] == "INTERNAL_ERROR"


def test_lifespan_builds_handles_from_settings(tmp_path, monkeypatch):
    closed = []

    class FakeS3:
        @classmethod
        def from_settings(cls, settings):
            return cls()

        def close(self):
            closed.append(True)

    monkeypatch.setattr("streamz.app.S3Storage", FakeS3)
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'life.db'}")
    app = create_app(settings)
    with TestClient(app) as c:
        assert app.state.relay is not None
        assert c.get("/api/videos").json() == {"videos": []}
    assert closed == [True]


def test_origins_parsing():
    s = Settings(allowed_origins="http://a.test/, https://b.test ,")
    assert s.origins == ["http://a.test", "https://b.test"]


def test_origins_accept_json_list():
    s = Settings(allowed_origins='["http://a.test/", "https://b.test"]')
    assert s.origins == ["http://a.test", "https://b.test"]


def test_origins_reject_malformed_json_list():
    with pytest.raises(ValidationError):
        Settings(allowed_origins='["http://a.test", 3]')
    with pytest.raises(ValidationError):
        Settings(allowed_origins='["http://a.test"')


def test_json_origins_reach_cors(settings, metadata, storage):
    app = create_app(
        settings.model_copy(update={"allowed_origins": '["http://a.test"]'}), metadata=metadata, storage=storage
    )
    r = TestClient(app).get("/api/health", headers={"Origin": "http://a.test"})
    assert r.headers["access-control-allow-origin"] == "http://a.test"
