from __future__ import annotations

from uuid import UUID, uuid4

import jwt
import pytest
from fastapi.testclient import TestClient

from tubely.core.auth import ISSUER
from tubely.core.config import get_settings
from tubely.main import create_app
from tubely.media.probe import VideoGeometry

from tests.fakes import FakeProbe, FakeRewriter, RecordingObjectStore

TEST_SECRET = "test-secret"


@pytest.fixture(autouse=True)
def configure_environment(monkeypatch, tmp_path):
    db_path = tmp_path / "tubely_test.db"

    monkeypatch.setenv("TUBELY_ENVIRONMENT", "test")
    monkeypatch.setenv("TUBELY_LOG_LEVEL", "debug")
    monkeypatch.setenv("TUBELY_DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("TUBELY_CREATE_SCHEMA_ON_STARTUP", "true")
    monkeypatch.setenv("TUBELY_ASSETS_ROOT", str(tmp_path / "assets"))
    monkeypatch.setenv("TUBELY_SCRATCH_DIR", str(tmp_path / "scratch"))
    monkeypatch.setenv("TUBELY_OBJECT_STORE_BACKEND", "local")
    monkeypatch.setenv("TUBELY_LOCAL_OBJECT_STORE_PATH", str(tmp_path / "objects"))
    monkeypatch.setenv("TUBELY_S3_BUCKET", "tubely-test")
    monkeypatch.setenv("TUBELY_S3_CF_DISTRO", "https://cdn.example.test")
    monkeypatch.setenv("TUBELY_PORT", "8091")
    monkeypatch.setenv("TUBELY_JWT_SECRET", TEST_SECRET)

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings(configure_environment):
    return get_settings()


@pytest.fixture()
def probe() -> FakeProbe:
    return FakeProbe(VideoGeometry(width=1280, height=720))


@pytest.fixture()
def rewriter() -> FakeRewriter:
    return FakeRewriter()


@pytest.fixture()
def store() -> RecordingObjectStore:
    return RecordingObjectStore()


@pytest.fixture()
def client(settings, probe, rewriter, store):
    app = create_app(settings, object_store=store, media_probe=probe, faststart_rewriter=rewriter)
    with TestClient(app) as client:
        yield client


def build_token(user_id: UUID, *, secret: str = TEST_SECRET) -> str:
    return jwt.encode({"sub": str(user_id), "iss": ISSUER}, secret, algorithm="HS256")


def auth_headers(user_id: UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token(user_id)}"}


@pytest.fixture()
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture()
def owner_headers(owner_id) -> dict[str, str]:
    return auth_headers(owner_id)


@pytest.fixture()
def video_id(client, owner_headers) -> str:
    resp = client.post("/videos", json={"title": "Boots", "description": "first take"}, headers=owner_headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]
