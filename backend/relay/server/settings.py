"""Relay server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class RelayServerSettings(BaseSettings):
    model_config = {"env_prefix": "RELAY_", "populate_by_name": True}

    host: str = "0.0.0.0"  # noqa: S104
    # Hosting platforms hand out the port as plain PORT.
    port: int = Field(default=3000, ge=1, le=65535, validation_alias=AliasChoices("RELAY_PORT", "PORT"))
    log_dir: str | None = None
    cors_origins: list[str] = ["*"]
    max_rooms: int = Field(default=1000, ge=1)

    # Occupancy-keyed room expiry: 8 min empty, 2 h with one player, 12 h paired.
    idle_room_timeout_seconds: float = Field(default=480, gt=0)
    one_player_timeout_seconds: float = Field(default=7200, gt=0)
    two_player_timeout_seconds: float = Field(default=43200, gt=0)

    # Message types dropped silently when the peer is away.
    best_effort_types: list[str] = ["cursor", "move-update"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @field_validator("best_effort_types", mode="before")
    @classmethod
    def validate_best_effort_types(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str) and not v.strip():
            return []
        return parse_string_list(v, allow_empty=True)

    @model_validator(mode="after")
    def _validate_timeout_tiers(self) -> Self:
        if not (
            self.idle_room_timeout_seconds <= self.one_player_timeout_seconds <= self.two_player_timeout_seconds
        ):
            raise ValueError("room timeouts must not decrease with occupancy (idle <= one player <= two players)")
        return self

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
