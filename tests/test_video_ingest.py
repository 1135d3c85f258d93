from __future__ import annotations

import asyncio
import io
import threading
from pathlib import Path
from uuid import uuid4

import pytest
from starlette.datastructures import FormData, Headers, UploadFile
from structlog.testing import capture_logs

from tubely.core.errors import BadRequest, Internal, NotFound, Unauthorized, UnsupportedMediaType, UpstreamUnavailable
from tubely.db.models import Video
from tubely.media.probe import VideoGeometry
from tubely.media.staging import StagedFile, StagingArea
from tubely.services.video_ingest import VideoIngestService

from tests.fakes import (
    FakeFormRequest,
    FakeProbe,
    FakeRewriter,
    InMemoryVideoRepository,
    RecordingObjectStore,
    staged_files,
)

PAYLOAD = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 4096


def _upload(content_type: str | None = "video/mp4", data: bytes = PAYLOAD, filename: str = "clip.mp4") -> UploadFile:
    headers = Headers({"content-type": content_type}) if content_type is not None else Headers({})
    return UploadFile(file=io.BytesIO(data), filename=filename, headers=headers)


def _request(upload: UploadFile | None = None, field: str = "video") -> FakeFormRequest:
    items = [(field, upload if upload is not None else _upload())]
    return FakeFormRequest(FormData(items))


class Harness:
    def __init__(self, settings, tmp_path: Path, **overrides):
        self.owner = uuid4()
        self.video = Video(id=uuid4(), user_id=self.owner, title="Boots", description="")
        self.repository = overrides.get("repository") or InMemoryVideoRepository(self.video)
        self.store = overrides.get("store") or RecordingObjectStore()
        self.probe = overrides.get("probe") or FakeProbe(VideoGeometry(width=1280, height=720))
        self.rewriter = overrides.get("rewriter") or FakeRewriter()
        self.scratch = tmp_path / "scratch"
        self.service = VideoIngestService(
            settings,
            self.repository,
            self.store,
            self.probe,
            self.rewriter,
            StagingArea(self.scratch),
        )

    def upload(self, request: FakeFormRequest, *, user_id=None, video_id=None) -> Video:
        return asyncio.run(
            self.service.upload_video(
                video_id=video_id or self.video.id,
                user_id=user_id or self.owner,
                request=request,
            )
        )


def test_landscape_upload_publishes_under_landscape_prefix(settings, tmp_path):
    harness = Harness(settings, tmp_path)

    video = harness.upload(_request())

    assert len(harness.store.puts) == 1
    put = harness.store.puts[0]
    assert put["bucket"] == settings.s3_bucket
    assert put["key"].startswith("landscape/")
    assert put["key"].endswith(".mp4")
    assert put["content_type"] == "video/mp4"
    assert put["size"] == len(PAYLOAD)
    assert video.video_url == f"https://cdn.example.test/{put['key']}"
    assert harness.repository.updates[-1]["video_url"] == video.video_url
    assert staged_files(harness.scratch) == []


def test_portrait_upload_uses_portrait_prefix(settings, tmp_path):
    harness = Harness(settings, tmp_path, probe=FakeProbe(VideoGeometry(width=720, height=1280)))

    video = harness.upload(_request())

    assert "/portrait/" in video.video_url
    assert harness.store.puts[0]["key"].startswith("portrait/")


def test_other_ratio_uses_other_prefix(settings, tmp_path):
    harness = Harness(settings, tmp_path, probe=FakeProbe(VideoGeometry(width=640, height=480)))

    video = harness.upload(_request())

    assert harness.store.puts[0]["key"].startswith("other/")
    assert "/other/" in video.video_url


def test_steps_see_staged_then_rewritten_file(settings, tmp_path):
    harness = Harness(settings, tmp_path)

    harness.upload(_request())

    staged = harness.probe.calls[0]
    assert staged.parent == harness.scratch
    assert harness.rewriter.calls == [staged]
    assert harness.rewriter.outputs[0].name == staged.name + ".processing"


def test_other_user_is_rejected_before_any_work(settings, tmp_path):
    harness = Harness(settings, tmp_path)
    request = _request()

    with pytest.raises(Unauthorized):
        harness.upload(request, user_id=uuid4())

    assert request.form_calls == 0
    assert harness.probe.calls == []
    assert harness.rewriter.calls == []
    assert harness.store.puts == []
    assert harness.repository.updates == []
    assert not harness.scratch.exists()


def test_unknown_record_is_not_found(settings, tmp_path):
    harness = Harness(settings, tmp_path)
    request = _request()

    with pytest.raises(NotFound):
        harness.upload(request, video_id=uuid4())

    assert request.form_calls == 0


@pytest.mark.parametrize("content_type", ["video/quicktime", "image/png", "video/mp4x", "application/octet-stream"])
def test_wrong_content_type_is_rejected_before_staging(settings, tmp_path, content_type):
    harness = Harness(settings, tmp_path)

    with pytest.raises(UnsupportedMediaType):
        harness.upload(_request(_upload(content_type)))

    assert not harness.scratch.exists()
    assert harness.probe.calls == []


def test_content_type_parameters_are_ignored(settings, tmp_path):
    harness = Harness(settings, tmp_path)

    harness.upload(_request(_upload("Video/MP4; codecs=avc1")))

    assert len(harness.store.puts) == 1


@pytest.mark.parametrize("content_type", [None, "", "mp4", "video/", "/mp4", "video mp4"])
def test_missing_or_malformed_content_type_is_bad_request(settings, tmp_path, content_type):
    harness = Harness(settings, tmp_path)

    with pytest.raises(BadRequest):
        harness.upload(_request(_upload(content_type)))

    assert not harness.scratch.exists()


def test_missing_form_field_is_bad_request(settings, tmp_path):
    harness = Harness(settings, tmp_path)

    with pytest.raises(BadRequest):
        harness.upload(_request(field="file"))


def test_probe_failure_is_internal_and_cleans_up(settings, tmp_path):
    harness = Harness(settings, tmp_path, probe=FakeProbe(None))

    with pytest.raises(Internal):
        harness.upload(_request())

    assert harness.rewriter.calls == []
    assert harness.store.puts == []
    assert harness.video.video_url is None
    assert staged_files(harness.scratch) == []


def test_zero_video_streams_is_internal_without_store_write(settings, tmp_path):
    harness = Harness(settings, tmp_path, probe=FakeProbe(ffprobe_output='{"streams": []}'))

    with pytest.raises(Internal) as excinfo:
        harness.upload(_request())

    assert "no video streams found" in str(excinfo.value)
    assert harness.store.puts == []
    assert staged_files(harness.scratch) == []


def test_rewrite_failure_is_internal_and_removes_both_files(settings, tmp_path):
    harness = Harness(settings, tmp_path, rewriter=FakeRewriter(fail=True))

    with pytest.raises(Internal) as excinfo:
        harness.upload(_request())

    assert "moov atom not found" in str(excinfo.value)
    assert harness.store.puts == []
    assert staged_files(harness.scratch) == []


def test_store_failure_is_upstream_and_leaves_record_untouched(settings, tmp_path):
    harness = Harness(settings, tmp_path, store=RecordingObjectStore(fail=True))

    with pytest.raises(UpstreamUnavailable):
        harness.upload(_request())

    assert harness.video.video_url is None
    assert harness.repository.updates == []
    assert staged_files(harness.scratch) == []


def test_metadata_failure_is_internal_and_keeps_remote_object(settings, tmp_path):
    owner = uuid4()
    video = Video(id=uuid4(), user_id=owner, title="Boots", description="")
    harness = Harness(settings, tmp_path, repository=InMemoryVideoRepository(video, fail_updates=True))
    harness.owner = owner
    harness.video = video

    with pytest.raises(Internal):
        harness.upload(_request())

    assert len(harness.store.puts) == 1
    assert staged_files(harness.scratch) == []


def test_repeated_identical_uploads_get_distinct_keys(settings, tmp_path):
    harness = Harness(settings, tmp_path)

    for _ in range(25):
        harness.upload(_request())

    keys = [put["key"] for put in harness.store.puts]
    assert len(keys) == 25
    assert len(set(keys)) == 25


def test_staged_writes_run_off_the_event_loop_thread(settings, tmp_path, monkeypatch):
    on_loop_thread = []
    original_write = StagedFile.write

    def recording_write(self, chunk):
        on_loop_thread.append(threading.current_thread() is threading.main_thread())
        return original_write(self, chunk)

    monkeypatch.setattr(StagedFile, "write", recording_write)

    Harness(settings, tmp_path).upload(_request())

    assert on_loop_thread
    assert not any(on_loop_thread)


def _refuse_removal(self, path):
    raise PermissionError(13, "Permission denied", str(path))


def test_cleanup_failure_does_not_replace_pipeline_error(settings, tmp_path, monkeypatch):
    harness = Harness(settings, tmp_path, store=RecordingObjectStore(fail=True))
    monkeypatch.setattr(StagingArea, "remove", _refuse_removal)

    with pytest.raises(UpstreamUnavailable):
        harness.upload(_request())

    assert harness.repository.updates == []


def test_cleanup_failure_after_success_still_returns_record(settings, tmp_path, monkeypatch):
    harness = Harness(settings, tmp_path)
    monkeypatch.setattr(StagingArea, "remove", _refuse_removal)

    video = harness.upload(_request())

    assert video.video_url.startswith("https://cdn.example.test/landscape/")
    assert harness.repository.updates[-1]["video_url"] == video.video_url


@pytest.mark.parametrize("content_type", ["video/quicktime", None])
def test_rejected_upload_is_closed(settings, tmp_path, content_type):
    harness = Harness(settings, tmp_path)
    upload = _upload(content_type)

    with pytest.raises((UnsupportedMediaType, BadRequest)):
        harness.upload(_request(upload))

    assert upload.file.closed
    assert staged_files(harness.scratch) == []


def test_pipeline_failure_is_left_to_the_error_handler_to_log(settings, tmp_path):
    harness = Harness(settings, tmp_path, store=RecordingObjectStore(fail=True))

    with capture_logs() as logs:
        with pytest.raises(UpstreamUnavailable):
            harness.upload(_request())

    assert [entry for entry in logs if entry["log_level"] in ("warning", "error")] == []
    assert "video_upload_probed" in [entry["event"] for entry in logs]
