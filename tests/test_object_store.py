from __future__ import annotations

import io
from pathlib import Path

import boto3
import pytest
from botocore.stub import ANY, Stubber

from tubely.core.config import get_settings
from tubely.core.storage import LocalObjectStore, ObjectStoreError, S3ObjectStore, get_object_store


@pytest.fixture()
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def test_put_sends_single_put_object(s3_client):
    store = S3ObjectStore(s3_client)
    body = io.BytesIO(b"fast-start-bytes")
    with Stubber(s3_client) as stubber:
        stubber.add_response(
            "put_object",
            {"ETag": '"abc"'},
            {"Bucket": "tubely-test", "Key": "landscape/token.mp4", "Body": ANY, "ContentType": "video/mp4"},
        )
        store.put("tubely-test", "landscape/token.mp4", body, "video/mp4")
        stubber.assert_no_pending_responses()


def test_put_client_error_becomes_store_error(s3_client):
    store = S3ObjectStore(s3_client)
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("put_object", service_error_code="SlowDown", http_status_code=503)
        with pytest.raises(ObjectStoreError):
            store.put("tubely-test", "landscape/token.mp4", io.BytesIO(b"x"), "video/mp4")


def test_presign_does_not_require_object(s3_client):
    store = S3ObjectStore(s3_client)

    url = store.presign("tubely-test", "portrait/missing.mp4", 600)

    assert "portrait/missing.mp4" in url
    assert "X-Amz-Expires=600" in url or "Expires=" in url


def test_local_store_overwrites_silently(tmp_path: Path):
    store = LocalObjectStore(tmp_path)
    store.put("bucket", "other/key.mp4", io.BytesIO(b"first"), "video/mp4")
    store.put("bucket", "other/key.mp4", io.BytesIO(b"second"), "video/mp4")

    assert (tmp_path / "bucket" / "other" / "key.mp4").read_bytes() == b"second"
    assert store.presign("bucket", "other/key.mp4", 60).startswith("file://")


def test_local_store_rejects_escaping_keys(tmp_path: Path):
    store = LocalObjectStore(tmp_path / "objects")
    with pytest.raises(ObjectStoreError):
        store.put("bucket", "../../etc/passwd", io.BytesIO(b"x"), "text/plain")


def test_backend_selection(monkeypatch):
    monkeypatch.setenv("TUBELY_OBJECT_STORE_BACKEND", "s3")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    get_settings.cache_clear()
    assert isinstance(get_object_store(get_settings()), S3ObjectStore)

    monkeypatch.setenv("TUBELY_OBJECT_STORE_BACKEND", "local")
    get_settings.cache_clear()
    assert isinstance(get_object_store(get_settings()), LocalObjectStore)
