from __future__ import annotations

import asyncio
from pathlib import Path
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from tubely.core.config import Settings
from tubely.core.errors import Internal, PayloadTooLarge, UnsupportedMediaType
from tubely.core.logging import get_logger
from tubely.db.models import Video
from tubely.db.repository import VideoRepository
from tubely.media.object_key import generate_token

from .uploads import SupportsForm, parse_media_type, read_form_file
from .videos import load_owned_video

THUMBNAIL_FORM_FIELD = "thumbnail"
THUMBNAIL_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg"}


class ThumbnailService:
    """Store a PNG/JPEG thumbnail under the local assets tree and link it to the video."""

    def __init__(self, settings: Settings, repository: VideoRepository):
        self.settings = settings
        self.repository = repository
        self.logger = get_logger(component="thumbnails")

    async def upload_thumbnail(self, *, video_id: UUID, user_id: UUID, request: SupportsForm) -> Video:
        video = await load_owned_video(self.repository, video_id, user_id)

        upload = await read_form_file(request, THUMBNAIL_FORM_FIELD)
        try:
            media_type = parse_media_type(upload.content_type)
            extension = THUMBNAIL_EXTENSIONS.get(media_type)
            if extension is None:
                raise UnsupportedMediaType("thumbnails must be .png or .jpg files only")
            data = await upload.read(self.settings.max_thumbnail_upload_bytes + 1)
        finally:
            await upload.close()
        if len(data) > self.settings.max_thumbnail_upload_bytes:
            raise PayloadTooLarge("Thumbnail exceeds the upload size limit")

        filename = f"{generate_token()}.{extension}"
        target = Path(self.settings.assets_root) / filename
        try:
            await asyncio.to_thread(_write_asset, target, data)
        except OSError as exc:
            raise Internal(f"Could not copy file to storage: {exc}") from exc

        video.thumbnail_url = f"{self.settings.public_origin}/assets/{filename}"
        try:
            updated = await self.repository.update_video(video)
        except SQLAlchemyError as exc:
            raise Internal("Error updating video thumbnail") from exc

        self.logger.info(
            "thumbnail_stored",
            video_id=str(video_id),
            path=str(target),
            media_type=media_type,
            size_bytes=len(data),
        )
        return updated


def _write_asset(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


__all__ = ["ThumbnailService", "THUMBNAIL_FORM_FIELD", "THUMBNAIL_EXTENSIONS"]
