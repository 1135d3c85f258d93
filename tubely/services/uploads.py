from __future__ import annotations

import re
from typing import Any, Protocol

from starlette.datastructures import UploadFile

from tubely.core.errors import BadRequest

_TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"
_MEDIA_TYPE_RE = re.compile(rf"^\s*({_TOKEN})/({_TOKEN})\s*$")

UPLOAD_CHUNK_SIZE = 1024 * 1024


class SupportsForm(Protocol):
    async def form(self, **kwargs: Any) -> Any: ...


def parse_media_type(header: str | None) -> str:
    """Return the lower-cased ``type/subtype`` of a Content-Type header.

    Parameters such as ``; codecs=...`` are dropped. A missing or malformed
    header is a ``BadRequest``.
    """
    if not header or not header.strip():
        raise BadRequest("Header must include Content-Type")
    essence = header.split(";", 1)[0]
    match = _MEDIA_TYPE_RE.match(essence)
    if not match:
        raise BadRequest(f"Invalid Content-Type header: {header!r}")
    return f"{match.group(1)}/{match.group(2)}".lower()


async def read_form_file(request: SupportsForm, field: str) -> UploadFile:
    form = await request.form(max_files=1, max_fields=16)
    upload = form.get(field)
    if upload is None:
        raise BadRequest(f"Form field '{field}' is required")
    if not isinstance(upload, UploadFile):
        raise BadRequest(f"Form field '{field}' must be a file")
    return upload


__all__ = ["UPLOAD_CHUNK_SIZE", "SupportsForm", "parse_media_type", "read_form_file"]
