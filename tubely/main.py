from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from tubely.api import get_api_router
from tubely.api.limits import BodySizeLimitMiddleware, upload_limits
from tubely.core.config import Settings, get_settings
from tubely.core.db import create_engine, create_schema, create_session_factory
from tubely.core.errors import BadRequest, TubelyError
from tubely.core.logging import configure_logging, get_logger, level_from_name
from tubely.core.storage import ObjectStore, get_object_store
from tubely.media.faststart import FastStartRewriter, FFmpegFastStartRewriter
from tubely.media.probe import FFprobeMediaProbe, MediaProbe
from tubely.media.staging import StagingArea

logger = get_logger(component="http")


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def handle_tubely_error(request: Request, exc: TubelyError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log("request_failed", path=request.url.path, kind=exc.kind, status=exc.status_code, error=exc.message)
    return _error_response(exc.status_code, exc.message)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    )
    return _error_response(BadRequest.status_code, problems or "Invalid request")


def create_app(
    settings: Optional[Settings] = None,
    *,
    object_store: Optional[ObjectStore] = None,
    media_probe: Optional[MediaProbe] = None,
    faststart_rewriter: Optional[FastStartRewriter] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(level=level_from_name(settings.log_level))

    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    store = object_store or get_object_store(settings)
    probe = media_probe or FFprobeMediaProbe(
        binary=settings.ffprobe_binary,
        timeout_s=settings.tool_timeout_seconds,
    )
    rewriter = faststart_rewriter or FFmpegFastStartRewriter(
        binary=settings.ffmpeg_binary,
        timeout_s=settings.tool_timeout_seconds,
    )
    staging = StagingArea(Path(settings.scratch_dir))

    assets_root = Path(settings.assets_root)
    assets_root.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.object_store = store
        app.state.media_probe = probe
        app.state.faststart_rewriter = rewriter
        app.state.staging_area = staging
        if settings.create_schema_on_startup:
            await create_schema(engine)
        logger.info("app_started", environment=settings.environment, object_store=settings.object_store_backend)
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.add_exception_handler(TubelyError, handle_tubely_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_middleware(
        BodySizeLimitMiddleware,
        limits=upload_limits(settings.max_video_upload_bytes, settings.max_thumbnail_upload_bytes),
    )

    app.include_router(get_api_router())
    app.mount("/assets", StaticFiles(directory=assets_root), name="assets")
    return app


__all__ = ["create_app"]
