from __future__ import annotations

import asyncio
from pathlib import Path
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from starlette.datastructures import UploadFile

from tubely.core.config import Settings
from tubely.core.errors import Internal, UnsupportedMediaType, UpstreamUnavailable
from tubely.core.logging import get_logger
from tubely.core.storage import ObjectStore, ObjectStoreError
from tubely.db.models import Video
from tubely.db.repository import VideoRepository
from tubely.media.faststart import FastStartError, FastStartRewriter, faststart_output_path
from tubely.media.object_key import derive_object_key
from tubely.media.probe import AspectClass, MediaProbe, MediaProbeError
from tubely.media.staging import StagedFile, StagingArea, StagingScope

from .uploads import UPLOAD_CHUNK_SIZE, SupportsForm, parse_media_type, read_form_file
from .videos import load_owned_video, public_video_url

VIDEO_FORM_FIELD = "video"
ACCEPTED_VIDEO_TYPE = "video/mp4"


class VideoIngestService:
    """Validate, stage, inspect, remux and publish one uploaded MP4.

    Steps run strictly in sequence on the calling request. Blocking work
    (disk, ffprobe, ffmpeg, the S3 transfer) is pushed to a worker thread
    one step at a time. Nothing is retried.
    """

    def __init__(
        self,
        settings: Settings,
        repository: VideoRepository,
        store: ObjectStore,
        probe: MediaProbe,
        rewriter: FastStartRewriter,
        staging: StagingArea,
    ):
        self.settings = settings
        self.repository = repository
        self.store = store
        self.probe = probe
        self.rewriter = rewriter
        self.staging = staging
        self.logger = get_logger(component="video_ingest")

    async def upload_video(self, *, video_id: UUID, user_id: UUID, request: SupportsForm) -> Video:
        logger = self.logger.bind(video_id=str(video_id), user_id=str(user_id))

        video = await load_owned_video(self.repository, video_id, user_id)

        upload = await read_form_file(request, VIDEO_FORM_FIELD)
        scope = StagingScope(self.staging)
        try:
            media_type = parse_media_type(upload.content_type)
            if media_type != ACCEPTED_VIDEO_TYPE:
                raise UnsupportedMediaType("Video upload must be .mp4")
            extension = media_type.split("/", 1)[1]
            return await self._ingest(scope, video, upload, media_type, extension, logger)
        finally:
            await asyncio.to_thread(self._release, scope, logger)
            await upload.close()

    @staticmethod
    def _release(scope: StagingScope, logger) -> None:
        # The outcome of the request stands; a leftover scratch file is only logged.
        try:
            scope.release()
        except OSError as exc:
            logger.error("staged_upload_cleanup_failed", error=str(exc))

    async def _ingest(
        self,
        scope: StagingScope,
        video: Video,
        upload: UploadFile,
        media_type: str,
        extension: str,
        logger,
    ) -> Video:
        staged = await self._stage(scope, upload, media_type, extension)
        logger.info("video_upload_staged", path=str(staged.path), size_bytes=staged.size_bytes)

        try:
            geometry = await asyncio.to_thread(self.probe.probe, staged.path)
        except MediaProbeError as exc:
            raise Internal(f"getVideoAspectRatio failed: {exc}") from exc
        orientation: AspectClass = geometry.orientation
        logger.info("video_upload_probed", width=geometry.width, height=geometry.height, orientation=orientation.value)

        scope.adopt(faststart_output_path(staged.path))
        try:
            fast_path = await asyncio.to_thread(self.rewriter.rewrite, staged.path)
        except FastStartError as exc:
            raise Internal(f"processVideoForFastStart failed: {exc}") from exc
        scope.adopt(fast_path)

        key = derive_object_key(orientation, extension)
        try:
            await asyncio.to_thread(self._put, fast_path, key, media_type)
        except ObjectStoreError as exc:
            raise UpstreamUnavailable(f"Failed to create object in remote bucket: {exc}") from exc
        except OSError as exc:
            raise Internal(f"Failed to read processed video: {exc}") from exc
        logger.info("video_upload_stored", bucket=self.settings.s3_bucket, key=key)

        video.video_url = public_video_url(self.settings, key)
        try:
            updated = await self.repository.update_video(video)
        except SQLAlchemyError as exc:
            # The uploaded object stays in the bucket without a record pointing at it.
            logger.warning("video_object_orphaned", bucket=self.settings.s3_bucket, key=key)
            raise Internal("Failed to update video url in database") from exc

        logger.info("video_upload_completed", video_url=updated.video_url)
        return updated

    async def _stage(self, scope: StagingScope, upload: UploadFile, media_type: str, extension: str) -> StagedFile:
        try:
            staged = await asyncio.to_thread(scope.create, extension, media_type=media_type)
            while chunk := await upload.read(UPLOAD_CHUNK_SIZE):
                await asyncio.to_thread(staged.write, chunk)
            await asyncio.to_thread(staged.rewind)
        except OSError as exc:
            raise Internal(f"Failed to write to temp file: {exc}") from exc
        return staged

    def _put(self, path: Path, key: str, media_type: str) -> None:
        with path.open("rb") as handle:
            self.store.put(self.settings.s3_bucket, key, handle, media_type)


__all__ = ["VideoIngestService", "VIDEO_FORM_FIELD", "ACCEPTED_VIDEO_TYPE"]
