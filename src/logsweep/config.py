"""Configuration for logsweep runs.

Three layers feed a run, highest precedence first:

1. command-line flags,
2. an optional YAML defaults file (``--config``),
3. ``LOGSWEEP_*`` environment variables / ``.env`` (``Settings``).

The merged values are validated once into a ``RotationConfig`` before any
filesystem mutation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .archive_formats import ARCHIVE_FORMATS, DEFAULT_ARCHIVE_FORMAT
from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Environment settings."""

    model_config = SettingsConfigDict(
        env_prefix="LOGSWEEP_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    archive_format: str = DEFAULT_ARCHIVE_FORMAT

    # Notification defaults; flags override these
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    proxy_url: Optional[str] = None
    http_timeout_seconds: float = 10.0
    include_host_ip: bool = True

    log_level: str = "INFO"
    log_dir: Optional[Path] = None


def get_settings() -> Settings:
    """Load settings from the current environment.

    Raises:
        ConfigurationError: if a LOGSWEEP_* variable has an invalid value
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid environment settings: {_describe(e)}") from e


# Keys accepted in the YAML defaults file, mapped to RotationConfig fields.
YAML_KEYS = {
    "archive": "archive_days",
    "delete": "delete_days",
    "format": "archive_format",
    "proxy_url": "proxy_url",
    "token": "bot_token",
    "chat_id": "chat_id",
}


def load_yaml_defaults(config_path: Path) -> Dict[str, Any]:
    """Load a YAML defaults file into RotationConfig field names.

    Raises:
        ConfigurationError: if the file is unreadable, not a mapping, or has unknown keys
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot load config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    unknown = sorted(set(data) - set(YAML_KEYS))
    if unknown:
        raise ConfigurationError(f"Unknown keys in {config_path}: {', '.join(unknown)}")

    return {YAML_KEYS[key]: value for key, value in data.items()}


class RotationConfig(BaseModel):
    """Validated configuration of one rotation run."""

    model_config = ConfigDict(frozen=True)

    directory: Path
    archive_days: int
    delete_days: int
    archive_format: str = DEFAULT_ARCHIVE_FORMAT
    dry_run: bool = False

    proxy_url: Optional[str] = None
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    http_timeout_seconds: float = 10.0
    include_host_ip: bool = True

    @field_validator("archive_days", "delete_days")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("archive_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ARCHIVE_FORMATS:
            raise ValueError(f"expected one of: {', '.join(sorted(ARCHIVE_FORMATS))}")
        return value

    @model_validator(mode="after")
    def _delete_after_archive(self) -> "RotationConfig":
        if self.delete_days < self.archive_days:
            raise ValueError(
                "Amount of days for archivation should be less than amount of days for deletion"
            )
        return self

    @classmethod
    def build(
        cls,
        settings: Optional[Settings] = None,
        config_file: Optional[Path] = None,
        **overrides: Any,
    ) -> "RotationConfig":
        """Merge settings, YAML defaults and explicit overrides, then validate.

        ``None`` overrides are ignored so that unset CLI flags fall through to
        lower layers.

        Raises:
            ConfigurationError: if the merged configuration is invalid
        """
        settings = settings or get_settings()
        values: Dict[str, Any] = {
            "archive_format": settings.archive_format,
            "proxy_url": settings.proxy_url,
            "bot_token": settings.telegram_bot_token,
            "chat_id": settings.telegram_chat_id,
            "http_timeout_seconds": settings.http_timeout_seconds,
            "include_host_ip": settings.include_host_ip,
        }
        if config_file is not None:
            values.update(load_yaml_defaults(config_file))
        values.update({key: value for key, value in overrides.items() if value is not None})

        missing = [name for name in ("directory", "archive_days", "delete_days") if name not in values]
        if missing:
            raise ConfigurationError(f"Missing required setting(s): {', '.join(missing)}")

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(_describe(e)) from e


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        message = item.get("msg", "invalid value").removeprefix("Value error, ")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)
