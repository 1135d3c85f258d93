from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Video


class VideoRepository(Protocol):
    """Key-value-by-id access to video records. No cross-call transactions."""

    async def get_video(self, video_id: UUID) -> Video | None: ...

    async def update_video(self, video: Video) -> Video: ...

    async def create_video(self, *, user_id: UUID, title: str, description: str) -> Video: ...

    async def list_videos(self, user_id: UUID) -> list[Video]: ...


class SQLVideoRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_video(self, video_id: UUID) -> Video | None:
        return await self.session.get(Video, video_id)

    async def update_video(self, video: Video) -> Video:
        # Plain read-then-write: a concurrent writer on the same row wins if it commits last.
        try:
            self.session.add(video)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(video)
        return video

    async def create_video(self, *, user_id: UUID, title: str, description: str) -> Video:
        video = Video(user_id=user_id, title=title, description=description)
        self.session.add(video)
        await self.session.commit()
        await self.session.refresh(video)
        return video

    async def list_videos(self, user_id: UUID) -> list[Video]:
        stmt = select(Video).where(Video.user_id == user_id).order_by(Video.created_at)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


__all__ = ["VideoRepository", "SQLVideoRepository"]
