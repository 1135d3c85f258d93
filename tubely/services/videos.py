from __future__ import annotations

from uuid import UUID

from tubely.core.config import Settings
from tubely.core.errors import NotFound, Unauthorized, UpstreamUnavailable
from tubely.core.storage import ObjectStore, ObjectStoreError
from tubely.db.models import Video
from tubely.db.repository import VideoRepository


async def load_owned_video(repository: VideoRepository, video_id: UUID, user_id: UUID) -> Video:
    video = await repository.get_video(video_id)
    if video is None:
        raise NotFound("Couldn't find video")
    if video.user_id != user_id:
        raise Unauthorized("Video does not belong to user")
    return video


def public_video_url(settings: Settings, key: str) -> str:
    return f"{settings.distribution_root}/{key}"


def object_key_from_url(settings: Settings, video_url: str) -> str | None:
    prefix = f"{settings.distribution_root}/"
    if not video_url.startswith(prefix):
        return None
    key = video_url[len(prefix):]
    return key or None


def playback_url(settings: Settings, store: ObjectStore, video: Video) -> str:
    """Mint a time-limited GET URL for the object behind ``video.video_url``."""
    if not video.video_url:
        raise NotFound("Video has no uploaded file")
    key = object_key_from_url(settings, video.video_url)
    if key is None:
        raise NotFound("Video file is not stored in the configured bucket")
    try:
        return store.presign(settings.s3_bucket, key, settings.presign_ttl_seconds)
    except ObjectStoreError as exc:
        raise UpstreamUnavailable(str(exc)) from exc


__all__ = ["load_owned_video", "public_video_url", "object_key_from_url", "playback_url"]
