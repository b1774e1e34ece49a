"""spritefs configuration management.

Configuration sources (in priority order):
1. Environment variables (SPRITEFS_ prefix, ``__`` for nesting)
2. Config file (spritefs.yaml)
3. Defaults
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class ApiConfig(BaseModel):
    """Sprites HTTP API configuration."""

    endpoint_url: str = "https://api.sprites.dev"

    # None = not connected; the provider waits for a registry to be installed
    token: str | None = None

    # Request timeout in seconds
    timeout: float = 30.0

    # Exec endpoint; {name} is replaced by the sprite name
    exec_path: str = "/v1/sprites/{name}/exec"


class ExecConfig(BaseModel):
    """Remote command execution policy."""

    # Extra attempts after a transport failure (total attempts = retries + 1)
    retries: int = Field(default=2, ge=0)

    # Fixed delay between attempts, in seconds
    retry_delay: float = Field(default=0.5, ge=0)


class SessionConfig(BaseModel):
    """Session acquisition configuration."""

    # How long operations wait for a registry before failing as unavailable
    ready_timeout: float = Field(default=5.0, gt=0)


class Settings(BaseSettings):
    """spritefs settings."""

    model_config = SettingsConfigDict(
        env_prefix="SPRITEFS_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    api: ApiConfig = Field(default_factory=ApiConfig)
    exec: ExecConfig = Field(default_factory=ExecConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over values passed in from the config file
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    def resolved_token(self) -> str | None:
        """API token, falling back to the SPRITES_TOKEN env var."""
        return self.api.token or os.environ.get("SPRITES_TOKEN")


def _load_config_file() -> dict:
    """Load configuration from YAML file if exists.

    Looks for config file in order:
    1. SPRITEFS_CONFIG_FILE environment variable
    2. ./spritefs.yaml
    3. ~/.config/spritefs/config.yaml
    """
    config_paths = [
        os.environ.get("SPRITEFS_CONFIG_FILE"),
        Path("spritefs.yaml"),
        Path.home() / ".config" / "spritefs" / "config.yaml",
    ]

    for path in config_paths:
        if path is None:
            continue
        path = Path(path)
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}

    return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Configuration is loaded from:
    1. YAML config file (if exists)
    2. Environment variables (override)
    3. Defaults
    """
    file_config = _load_config_file()
    return Settings(**file_config)
