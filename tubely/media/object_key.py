from __future__ import annotations

import base64
import secrets

from .probe import AspectClass

TOKEN_BYTES = 32


def generate_token(nbytes: int = TOKEN_BYTES) -> str:
    """Return ``nbytes`` of CSPRNG output as unpadded URL-safe base64."""
    raw = secrets.token_bytes(nbytes)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def derive_object_key(orientation: AspectClass | str, extension: str) -> str:
    """Build ``{orientation}/{token}.{extension}``.

    Keys are unique only probabilistically; nothing checks for an existing object.
    """
    prefix = orientation.value if isinstance(orientation, AspectClass) else str(orientation)
    return f"{prefix}/{generate_token()}.{extension.lstrip('.')}"


__all__ = ["TOKEN_BYTES", "generate_token", "derive_object_key"]
