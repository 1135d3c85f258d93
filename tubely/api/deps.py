from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tubely.core.auth import Caller, get_caller
from tubely.core.config import Settings
from tubely.core.storage import ObjectStore
from tubely.db.repository import SQLVideoRepository
from tubely.media.faststart import FastStartRewriter
from tubely.media.probe import MediaProbe
from tubely.media.staging import StagingArea
from tubely.services.thumbnails import ThumbnailService
from tubely.services.video_ingest import VideoIngestService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):  # pragma: no cover - defensive
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_app_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_object_store(request: Request) -> ObjectStore:
    store: ObjectStore = request.app.state.object_store
    return store


def get_media_probe(request: Request) -> MediaProbe:
    return request.app.state.media_probe


def get_faststart_rewriter(request: Request) -> FastStartRewriter:
    return request.app.state.faststart_rewriter


def get_staging_area(request: Request) -> StagingArea:
    return request.app.state.staging_area


def get_repository(session: AsyncSession = Depends(get_session)) -> SQLVideoRepository:
    return SQLVideoRepository(session)


def get_ingest_service(
    settings: Settings = Depends(get_app_settings),
    repository: SQLVideoRepository = Depends(get_repository),
    store: ObjectStore = Depends(get_object_store),
    probe: MediaProbe = Depends(get_media_probe),
    rewriter: FastStartRewriter = Depends(get_faststart_rewriter),
    staging: StagingArea = Depends(get_staging_area),
) -> VideoIngestService:
    return VideoIngestService(settings, repository, store, probe, rewriter, staging)


def get_thumbnail_service(
    settings: Settings = Depends(get_app_settings),
    repository: SQLVideoRepository = Depends(get_repository),
) -> ThumbnailService:
    return ThumbnailService(settings, repository)


CallerDependency = Annotated[Caller, Depends(get_caller)]
RepositoryDependency = Annotated[SQLVideoRepository, Depends(get_repository)]
SettingsDependency = Annotated[Settings, Depends(get_app_settings)]
ObjectStoreDependency = Annotated[ObjectStore, Depends(get_object_store)]
IngestServiceDependency = Annotated[VideoIngestService, Depends(get_ingest_service)]
ThumbnailServiceDependency = Annotated[ThumbnailService, Depends(get_thumbnail_service)]


__all__ = [
    "get_session",
    "get_app_settings",
    "get_object_store",
    "get_media_probe",
    "get_faststart_rewriter",
    "get_staging_area",
    "get_repository",
    "get_ingest_service",
    "get_thumbnail_service",
    "CallerDependency",
    "RepositoryDependency",
    "SettingsDependency",
    "ObjectStoreDependency",
    "IngestServiceDependency",
    "ThumbnailServiceDependency",
]
