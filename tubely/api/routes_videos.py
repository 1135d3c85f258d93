from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Request, status

from tubely.core.logging import bind_request_context
from tubely.services.videos import load_owned_video, playback_url

from . import deps, schemas


router = APIRouter(prefix="/videos", tags=["videos"])

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": schemas.ErrorResponse},
    status.HTTP_401_UNAUTHORIZED: {"model": schemas.ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorResponse},
}

UPLOAD_ERROR_RESPONSES = {
    **ERROR_RESPONSES,
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": schemas.ErrorResponse},
    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": schemas.ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": schemas.ErrorResponse},
}


@router.post("", response_model=schemas.VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    caller: deps.CallerDependency,
    repository: deps.RepositoryDependency,
) -> schemas.VideoResponse:
    video = await repository.create_video(
        user_id=caller.user_id,
        title=payload.title,
        description=payload.description,
    )
    return schemas.VideoResponse.model_validate(video)


@router.get("", response_model=list[schemas.VideoResponse])
async def list_videos(
    caller: deps.CallerDependency,
    repository: deps.RepositoryDependency,
) -> list[schemas.VideoResponse]:
    videos = await repository.list_videos(caller.user_id)
    return [schemas.VideoResponse.model_validate(video) for video in videos]


@router.get("/{video_id}", response_model=schemas.VideoResponse, responses=ERROR_RESPONSES)
async def get_video(
    video_id: UUID,
    caller: deps.CallerDependency,
    repository: deps.RepositoryDependency,
) -> schemas.VideoResponse:
    video = await load_owned_video(repository, video_id, caller.user_id)
    return schemas.VideoResponse.model_validate(video)


@router.post(
    "/{video_id}/upload",
    response_model=schemas.VideoResponse,
    responses={**UPLOAD_ERROR_RESPONSES, status.HTTP_502_BAD_GATEWAY: {"model": schemas.ErrorResponse}},
)
async def upload_video(
    video_id: UUID,
    request: Request,
    caller: deps.CallerDependency,
    service: deps.IngestServiceDependency,
) -> schemas.VideoResponse:
    bind_request_context(video_id=str(video_id), user_id=str(caller.user_id), route="upload_video")
    video = await service.upload_video(video_id=video_id, user_id=caller.user_id, request=request)
    return schemas.VideoResponse.model_validate(video)


@router.post("/{video_id}/thumbnail", response_model=schemas.VideoResponse, responses=UPLOAD_ERROR_RESPONSES)
async def upload_thumbnail(
    video_id: UUID,
    request: Request,
    caller: deps.CallerDependency,
    service: deps.ThumbnailServiceDependency,
) -> schemas.VideoResponse:
    bind_request_context(video_id=str(video_id), user_id=str(caller.user_id), route="upload_thumbnail")
    video = await service.upload_thumbnail(video_id=video_id, user_id=caller.user_id, request=request)
    return schemas.VideoResponse.model_validate(video)


@router.get(
    "/{video_id}/playback-url",
    response_model=schemas.PlaybackURLResponse,
    responses={**ERROR_RESPONSES, status.HTTP_502_BAD_GATEWAY: {"model": schemas.ErrorResponse}},
)
async def get_playback_url(
    video_id: UUID,
    caller: deps.CallerDependency,
    repository: deps.RepositoryDependency,
    settings: deps.SettingsDependency,
    store: deps.ObjectStoreDependency,
) -> schemas.PlaybackURLResponse:
    video = await load_owned_video(repository, video_id, caller.user_id)
    url = playback_url(settings, store, video)
    return schemas.PlaybackURLResponse(url=url, expires_in=settings.presign_ttl_seconds)


__all__ = ["router"]
