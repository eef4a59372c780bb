"""Tracker server configuration via environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class TrackerServerSettings(BaseSettings):
    model_config = {"env_prefix": "HOOPS_"}

    string_list_fields: ClassVar[frozenset[str]] = frozenset({"cors_origins"})

    database_path: str = Field(default="backend/data/hoops.db", min_length=1)
    log_dir: str = Field(default="backend/logs/hoops", min_length=1)
    cors_origins: list[str] = ["http://localhost:5173"]
    max_request_body_size: int = Field(default=256 * 1024, ge=1024)
    rules_path: Path | None = None  # YAML file with a top-level "rules" mapping
    recent_sessions_limit: int = Field(default=20, ge=1, le=200)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings)
