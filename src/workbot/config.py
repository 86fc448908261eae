"""Configuration management for WorkBot."""

from __future__ import annotations

import json
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

SNOWFLAKE_PATTERN = re.compile(r"^\d{17,20}$")
MIN_MEMBER_CHECK_INTERVAL = 30

_LOG_LEVELS = {
    "error": "ERROR",
    "warn": "WARNING",
    "warning": "WARNING",
    "info": "INFO",
    "debug": "DEBUG",
}


def is_snowflake(value: str) -> bool:
    """Return True when ``value`` looks like a Discord user or channel id."""

    return bool(SNOWFLAKE_PATTERN.match(value))


class WorkbotSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    discord_token: SecretStr = Field(validation_alias="DISCORD_TOKEN")
    channel_id: str = Field(validation_alias="CHANNEL_ID")
    gemini_api_key: SecretStr = Field(validation_alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
    worker_mapping: Annotated[dict[str, str], NoDecode] = Field(
        default_factory=dict, validation_alias="WORKER_MAPPING"
    )
    role_label_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(), validation_alias="ROLE_LABELS_PATH"
    )
    activity_name: str = Field(default="Satisfactory", validation_alias="ACTIVITY_NAME")
    polling_interval: int = Field(default=10, validation_alias="POLLING_INTERVAL")
    member_check_interval: int = Field(default=300, validation_alias="MEMBER_CHECK_INTERVAL")
    metrics_interval: int = Field(default=60, validation_alias="METRICS_INTERVAL")
    max_cached_quotes: int = Field(default=10, validation_alias="MAX_CACHED_QUOTES")
    preload_quotes: int = Field(default=5, validation_alias="PRELOAD_QUOTES")
    roster_timeout: float = Field(default=30.0, validation_alias="ROSTER_TIMEOUT")
    delivery_timeout: float = Field(default=30.0, validation_alias="DELIVERY_TIMEOUT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("discord_token", "gemini_api_key")
    @classmethod
    def _require_secret(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("secret must not be empty")
        return value

    @field_validator("channel_id", mode="before")
    @classmethod
    def _validate_channel_id(cls, value: Any) -> str:
        normalized = str(value).strip()
        if not is_snowflake(normalized):
            raise ValueError("CHANNEL_ID must be a 17-20 digit Discord channel id")
        return normalized

    @field_validator("gemini_model", "activity_name")
    @classmethod
    def _require_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("value must not be empty")
        return normalized

    @field_validator("worker_mapping", mode="before")
    @classmethod
    def _parse_worker_mapping(cls, value: Any) -> dict[str, str]:
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError(f"WORKER_MAPPING is not valid JSON: {exc.msg}") from exc
        if not isinstance(value, dict):
            raise ValueError("WORKER_MAPPING must be a JSON object")
        mapping: dict[str, str] = {}
        for key, label in value.items():
            if not isinstance(key, str) or not isinstance(label, str):
                raise ValueError("WORKER_MAPPING keys and values must be strings")
            mapping[key.strip()] = label
        return mapping

    @field_validator("role_label_paths", mode="before")
    @classmethod
    def _parse_role_label_paths(cls, value: Any):
        if value is None or value == "":
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts)
        raise TypeError("ROLE_LABELS_PATH must be a list of paths or a path-separated string")

    @field_validator("polling_interval")
    @classmethod
    def _validate_polling_interval(cls, value: int) -> int:
        if value < 1:
            raise ValueError("POLLING_INTERVAL must be a positive number")
        return value

    @field_validator("member_check_interval")
    @classmethod
    def _floor_member_check_interval(cls, value: int) -> int:
        if value < 1:
            raise ValueError("MEMBER_CHECK_INTERVAL must be a positive number")
        return max(value, MIN_MEMBER_CHECK_INTERVAL)

    @field_validator("metrics_interval")
    @classmethod
    def _validate_metrics_interval(cls, value: int) -> int:
        if value < 10:
            raise ValueError("METRICS_INTERVAL must be >= 10")
        return value

    @field_validator("max_cached_quotes")
    @classmethod
    def _validate_max_cached_quotes(cls, value: int) -> int:
        if value < 1:
            raise ValueError("MAX_CACHED_QUOTES must be a positive number")
        return value

    @field_validator("preload_quotes")
    @classmethod
    def _validate_preload_quotes(cls, value: int) -> int:
        if value < 0:
            raise ValueError("PRELOAD_QUOTES must be >= 0")
        return value

    @field_validator("roster_timeout", "delivery_timeout")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized in _LOG_LEVELS:
            return _LOG_LEVELS[normalized]
        if normalized.upper() in _LOG_LEVELS.values():
            return normalized.upper()
        raise ValueError("LOG_LEVEL must be one of: error, warn, info, debug")

    def redacted(self) -> dict[str, Any]:
        """Return settings as plain data with secrets masked."""

        payload = self.model_dump(mode="json")
        payload["discord_token"] = "**********"
        payload["gemini_api_key"] = "**********"
        return payload


@lru_cache(maxsize=1)
def get_settings() -> WorkbotSettings:
    """Return cached settings instance."""

    settings = WorkbotSettings()
    settings.role_label_paths = tuple(
        path.expanduser().resolve() for path in settings.role_label_paths
    )
    return settings


__all__ = ["WorkbotSettings", "get_settings", "is_snowflake"]
