from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings
from .errors import Unauthorized


security = HTTPBearer(auto_error=False)

ISSUER = "tubely-access"


@dataclass(frozen=True)
class Caller:
    user_id: UUID


def issue_token(user_id: UUID, settings: Settings, *, expires_in: timedelta = timedelta(hours=1)) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "iss": ISSUER,
        "sub": str(user_id),
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + expires_in).timestamp()),
    }
    return jwt.encode(claims, settings.secrets.jwt_secret, algorithm=settings.jwt_algorithm)


def validate_token(token: str, settings: Settings) -> UUID:
    try:
        payload = jwt.decode(
            token,
            settings.secrets.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=ISSUER,
        )
    except jwt.PyJWTError as exc:
        raise Unauthorized("Couldn't validate JWT") from exc

    subject = payload.get("sub")
    try:
        return UUID(str(subject))
    except ValueError as exc:
        raise Unauthorized("Token subject is not a user id") from exc


async def get_caller(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Caller:
    if not credentials:
        raise Unauthorized("Couldn't find JWT")

    settings: Settings = request.app.state.settings
    caller = Caller(user_id=validate_token(credentials.credentials, settings))
    request.state.caller = caller
    return caller


__all__ = ["Caller", "ISSUER", "issue_token", "validate_token", "get_caller"]
