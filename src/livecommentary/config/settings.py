"""Configuration management for livecommentary.

Loads application settings from a YAML configuration file with environment
variable overrides for sensitive values (the endpoint API key). Supports
.env files.

These are process-level settings (capture mode, logging, storage, server).
The user-tunable commentary parameters live in
:class:`livecommentary.domain.models.CommentarySettings` and are persisted
by the settings store; ``commentary.defaults`` here only seeds them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/livecommentary.yaml")
DEFAULT_STORAGE_PATH = Path.home() / ".config" / "livecommentary" / "storage.json"


class CaptureConfig(BaseModel):
    mode: Literal["screen-capture", "external"] = Field(default="screen-capture")
    monitor: int = Field(default=1, ge=0, description="mss monitor index (0 = all screens)")
    max_dimension: int = Field(default=1024, gt=0)
    jpeg_quality: int = Field(default=60, ge=1, le=100)


class ProviderConfig(BaseModel):
    request_timeout: float | None = Field(default=60.0, gt=0)
    max_tokens: int = Field(default=256, gt=0)
    history_window: int = Field(default=8, ge=0)


class CommentaryConfig(BaseModel):
    display_interval_min: float = Field(default=2.5, gt=0)
    display_interval_max: float = Field(default=3.5, gt=0)
    usernames: list[str] = Field(default_factory=list)
    prompts: dict[str, str] = Field(default_factory=dict)
    defaults: dict[str, Any] = Field(
        default_factory=dict,
        description="Caller overrides for CommentarySettings (camelCase or snake_case keys)",
    )
    context_data: dict[str, Any] | None = Field(default=None)

    @model_validator(mode="after")
    def _check_display_interval(self) -> CommentaryConfig:
        if self.display_interval_max < self.display_interval_min:
            raise ValueError("display_interval_max must be >= display_interval_min")
        return self

    @property
    def display_interval(self) -> tuple[float, float]:
        return (self.display_interval_min, self.display_interval_max)


class StorageConfig(BaseModel):
    path: Path = Field(default=DEFAULT_STORAGE_PATH)
    key: str = Field(default="live-commentary-settings")


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8765, ge=1, le=65535)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class AppSettings(BaseSettings):
    """Root configuration for the livecommentary application.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "LIVECOMMENTARY_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    commentary: CommentaryConfig = Field(default_factory=CommentaryConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> AppSettings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return AppSettings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


# Non-prefixed env var -> CommentarySettings field
_ENV_DEFAULTS = {
    "VLM_REMOTE_URL": ("remoteUrl", "remote_url"),
    "VLM_API_KEY": ("apiKey", "api_key"),
    "VISION_MODEL": ("modelName", "model_name"),
}


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars.

    Values already present in the YAML ``commentary.defaults`` win.
    """
    commentary = yaml_data.setdefault("commentary", {}) or {}
    yaml_data["commentary"] = commentary
    defaults = commentary.setdefault("defaults", {}) or {}
    commentary["defaults"] = defaults

    for env_name, (alias, name) in _ENV_DEFAULTS.items():
        value = os.environ.get(env_name, "")
        if value and not (defaults.get(alias) or defaults.get(name)):
            defaults[alias] = value
