from __future__ import annotations

import json
import re
from typing import Pattern, Sequence

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from tubely.core.errors import PayloadTooLarge
from tubely.core.logging import get_logger

logger = get_logger(component="body_limit")

DEFAULT_BODY_LIMIT = 1 << 20


class BodySizeLimitMiddleware:
    """Reject request bodies above a per-route byte limit before the app buffers them.

    A declared ``Content-Length`` above the limit is refused without reading
    the body. Bodies without one (chunked) are counted as they stream in and
    the request is aborted the moment the running total crosses the limit.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        limits: Sequence[tuple[str, int]] = (),
        default_limit: int = DEFAULT_BODY_LIMIT,
    ) -> None:
        self.app = app
        self.limits: list[tuple[Pattern[str], int]] = [(re.compile(pattern), limit) for pattern, limit in limits]
        self.default_limit = default_limit

    def limit_for(self, path: str) -> int:
        for pattern, limit in self.limits:
            if pattern.fullmatch(path):
                return limit
        return self.default_limit

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        limit = self.limit_for(scope["path"])
        declared = _content_length(scope)
        if declared is not None and declared > limit:
            logger.warning("request_body_rejected", path=scope["path"], declared=declared, limit=limit)
            await _send_too_large(send)
            return

        received = 0
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    raise PayloadTooLarge("Request body exceeds the upload size limit")
            return message

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracking_send)
        except PayloadTooLarge:
            logger.warning("request_body_aborted", path=scope["path"], received=received, limit=limit)
            if response_started:
                raise
            await _send_too_large(send)


def _content_length(scope: Scope) -> int | None:
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


async def _send_too_large(send: Send) -> None:
    body = json.dumps({"error": "Request body exceeds the upload size limit"}).encode("utf-8")
    await send(
        {
            "type": "http.response.start",
            "status": PayloadTooLarge.status_code,
            "headers": [
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode("ascii")),
                (b"connection", b"close"),
            ],
        }
    )
    await send({"type": "http.response.body", "body": body})


def upload_limits(video_limit: int, thumbnail_limit: int) -> list[tuple[str, int]]:
    return [
        (r"/videos/[^/]+/upload", video_limit),
        (r"/videos/[^/]+/thumbnail", thumbnail_limit),
    ]


__all__ = ["BodySizeLimitMiddleware", "DEFAULT_BODY_LIMIT", "upload_limits"]
