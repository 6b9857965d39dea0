"""Server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import CorsEnvSettingsSource, parse_cors_origins

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class ServerSettings(BaseSettings):
    model_config = {"env_prefix": "IMPOSTER_"}

    max_rooms: int = Field(default=200, ge=1)
    log_dir: str = Field(default="backend/logs/imposter", min_length=1)
    cors_origins: list[str] = ["http://localhost:3000"]
    # server-wide phase lengths; per-turn and voting lengths are room settings
    role_reveal_seconds: int = Field(default=10, ge=1, le=60)
    results_seconds: int = Field(default=5, ge=1, le=60)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_cors_origins(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, CorsEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
