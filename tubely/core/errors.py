"""Failure taxonomy shared by the HTTP boundary and the ingest services.

Every pipeline step raises a component error (``MediaProbeError``,
``ObjectStoreError``, ...). The services translate each of them into exactly
one ``TubelyError`` subclass, and the exception handlers in ``tubely.main``
render that as ``{"error": message}`` with the subclass' status code.
"""

from __future__ import annotations

from fastapi import status


class TubelyError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind: str = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequest(TubelyError):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "bad_request"


class Unauthorized(TubelyError):
    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "unauthorized"


class NotFound(TubelyError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "not_found"


class PayloadTooLarge(TubelyError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    kind = "payload_too_large"


class UnsupportedMediaType(TubelyError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    kind = "unsupported_media_type"


class Internal(TubelyError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "internal"


class UpstreamUnavailable(TubelyError):
    status_code = status.HTTP_502_BAD_GATEWAY
    kind = "upstream_unavailable"


__all__ = [
    "TubelyError",
    "BadRequest",
    "Unauthorized",
    "NotFound",
    "PayloadTooLarge",
    "UnsupportedMediaType",
    "Internal",
    "UpstreamUnavailable",
]
