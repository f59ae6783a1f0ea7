from __future__ import annotations

import os
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pixelprobe.logging import get_logger
from pixelprobe.service.aspect import AspectRatio

logger = get_logger(__name__)


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings, each bound to an environment variable."""

    data_root: str = env_field("/srv/pixelprobe", "PIXELPROBE_DATA_ROOT")
    public_base_url: str = env_field(
        "http://localhost:8000/blobs",
        "PUBLIC_BASE_URL",
        description="Prefix used to build public URLs for stored objects",
    )
    max_upload_bytes: int = env_field(
        10 * 1024 * 1024,
        "MAX_UPLOAD_BYTES",
        gt=0,
        description="Largest accepted upload body in bytes",
    )
    default_page_size: int = env_field(20, "DEFAULT_PAGE_SIZE", gt=0)
    max_page_size: int = env_field(100, "MAX_PAGE_SIZE", gt=0)
    default_aspect_ratio: AspectRatio = env_field(
        AspectRatio.SQUARE,
        "DEFAULT_ASPECT_RATIO",
        description="Label stored when an image's dimensions cannot be read",
    )
    cors_allow_origins: list[str] = env_field([], "CORS_ALLOW_ORIGINS")

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator("default_aspect_ratio", mode="before")
    @classmethod
    def _validate_aspect_ratio(cls, value: Any) -> AspectRatio:
        if isinstance(value, AspectRatio):
            return value
        return AspectRatio.parse(str(value))

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return list(value)

    @field_validator("public_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _check_page_sizes(self) -> "Settings":
        if self.default_page_size > self.max_page_size:
            logger.warning(
                "default_page_size_clamped",
                default_page_size=self.default_page_size,
                max_page_size=self.max_page_size,
            )
            self.default_page_size = self.max_page_size
        return self


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
