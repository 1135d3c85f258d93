from __future__ import annotations

import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Secrets(BaseSettings):
    """Secrets configuration, loaded from the environment or a secrets management service."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: str = Field(default="change-me", description="Signing secret for bearer token validation.")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Secrets":
        return cls()


class Settings(BaseSettings):
    """Centralised runtime configuration for the Tubely API."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Tubely API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")

    port: int = Field(default=8091, description="Port the API is served on.")
    public_base_url: Optional[str] = Field(
        default=None,
        description="Public origin used for thumbnail URLs (defaults to http://localhost:{port}).",
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./tubely.db",
        description="SQLAlchemy compatible DSN.",
    )
    create_schema_on_startup: bool = Field(
        default=False,
        description="Create tables at startup instead of running migrations (SQLite development).",
    )

    assets_root: Path = Field(default_factory=lambda: Path("assets"), description="Durable thumbnail tree.")
    scratch_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "tubely-scratch",
        description="Process-local scratch area for staged uploads.",
    )

    object_store_backend: Literal["s3", "local"] = Field(default="s3", description="Active object store implementation.")
    local_object_store_path: Path = Field(
        default_factory=lambda: Path("objects"),
        description="Base path for the filesystem object store.",
    )
    s3_bucket: str = Field(default="tubely-videos")
    s3_region: str = Field(default="us-east-1")
    s3_endpoint_url: Optional[str] = Field(default=None, description="Override for S3 compatible endpoints.")
    s3_cf_distro: str = Field(
        default="https://localhost.cloudfront.net",
        description="Distribution root prefixed to object keys in public video URLs.",
    )
    presign_ttl_seconds: int = Field(default=3600, ge=1, description="Lifetime of presigned playback URLs.")

    max_video_upload_bytes: int = Field(default=10 << 30, description="Hard limit for video upload bodies.")
    max_thumbnail_upload_bytes: int = Field(default=10 << 20, description="Hard limit for thumbnail upload bodies.")

    ffprobe_binary: str = Field(default="ffprobe")
    ffmpeg_binary: str = Field(default="ffmpeg")
    tool_timeout_seconds: float = Field(default=300.0, gt=0, description="Timeout for ffprobe/ffmpeg invocations.")

    jwt_algorithm: str = Field(default="HS256", description="Algorithm used for JWT tokens.")

    secrets: Secrets = Field(default_factory=Secrets, description="Holds sensitive configuration.")

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()

    @property
    def public_origin(self) -> str:
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        return f"http://localhost:{self.port}"

    @property
    def distribution_root(self) -> str:
        return self.s3_cf_distro.rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "TUBELY_ENV": "TUBELY_ENVIRONMENT",
        "TUBELY_DB_URL": "TUBELY_DATABASE_URL",
        "S3_BUCKET": "TUBELY_S3_BUCKET",
        "S3_REGION": "TUBELY_S3_REGION",
        "S3_CF_DISTRO": "TUBELY_S3_CF_DISTRO",
        "JWT_SECRET": "TUBELY_JWT_SECRET",
        "PORT": "TUBELY_PORT",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value and not os.getenv(target):
            os.environ[target] = value

    settings = Settings()

    secrets = Secrets.from_settings(settings)

    if settings.environment_lower == "production" and secrets.jwt_secret == "change-me":
        raise ValueError("Production environment must have a non-default JWT secret.")

    settings.secrets = secrets
    return settings


__all__ = ["Settings", "Secrets", "get_settings"]
