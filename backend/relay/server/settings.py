"""Relay server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from relay.messaging.encoder import DEFAULT_MAX_MESSAGE_BYTES
from relay.session.models import DEFAULT_ROUNDS_TOTAL
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class RelayServerSettings(BaseSettings):
    model_config = {"env_prefix": "RELAY_"}

    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(default=3001, ge=1, le=65535)
    log_dir: str | None = None
    cors_origins: list[str] = ["*"]
    room_ttl_seconds: int = Field(default=3600, ge=0)  # 0 disables the reaper
    rounds_total: int = Field(default=DEFAULT_ROUNDS_TOTAL, ge=1)
    max_message_bytes: int = Field(default=DEFAULT_MAX_MESSAGE_BYTES, ge=1024)
    max_decode_errors: int = Field(default=5, ge=1)
    outbound_queue_size: int = Field(default=256, ge=1)

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
