"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (REPOPULSE__GITHUB__TOKEN=ghp_...)
  2. repopulse.yaml         (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, SecretStr
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_CACHE_DIR = str(Path(platformdirs.user_cache_dir("repopulse")) / "repo-details")
DEFAULT_API_HOST = "https://api.github.com"


def _find_config_file() -> str | None:
    """Return the path of the first repopulse.yaml found, or None."""
    candidates = [
        Path("repopulse.yaml"),
        Path(platformdirs.user_config_dir("repopulse")) / "repopulse.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8080
    # Bearer key required from HTTP clients; unset means local origins only
    auth_key: SecretStr | None = None


class GitHubSettings(BaseModel):
    api_host: str = DEFAULT_API_HOST
    token: SecretStr | None = None
    user_agent: str = "repopulse/1.0"
    timeout_seconds: float = 30.0


class CacheSettings(BaseModel):
    dir: str = _DEFAULT_CACHE_DIR
    # Per-field TTLs, in seconds
    open_pulls_ttl: int = 5 * 60
    ci_ttl: int = 5 * 60
    activity_ttl: int = 15 * 60
    traffic_ttl: int = 60 * 60
    heatmap_ttl: int = 6 * 60 * 60
    release_ttl: int = 60 * 60


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: REPOPULSE__CACHE__CI_TTL=60
        env_prefix="REPOPULSE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    github: GitHubSettings = GitHubSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
