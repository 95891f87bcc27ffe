"""
debug-bridge Configuration
==========================

PURPOSE:
    Pydantic-Settings based configuration for the debug bridge.
    Values are merged defaults < <storage_path>/config.json < environment
    variables (DEBUG_MCP_ prefix) < explicit keyword overrides.

    Settings are built once at startup by load_settings() and passed into
    create_app() / build_services(); components never read a global.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, Type

from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_PREFIX = "DEBUG_MCP_"
CONFIG_FILE_NAME = "config.json"
DEFAULT_STORAGE_PATH = Path.home() / ".debug-mcp"

# config.json is written with camelCase keys by the browser widget tooling
_FILE_KEY_ALIASES = {
    "storagePath": "storage_path",
    "retentionDays": "retention_days",
    "maxReportSize": "max_report_size",
    "maxScreenshotSize": "max_screenshot_size",
    "logLevel": "log_level",
    "questionTimeoutMs": "question_timeout_ms",
    "autoQuestions": "auto_questions",
    "autoQuestionTimeoutMs": "auto_question_timeout_ms",
}


def _resolve_storage_path() -> Path:
    raw = os.environ.get(f"{ENV_PREFIX}STORAGE_PATH")
    return Path(raw).expanduser() if raw else DEFAULT_STORAGE_PATH


def read_config_file(storage_path: Path) -> Dict[str, Any]:
    """Read <storage_path>/config.json; missing or malformed files yield {}."""
    path = Path(storage_path) / CONFIG_FILE_NAME
    if not path.is_file():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}
    if not isinstance(raw, dict):
        logger.warning("Ignoring config file %s: top level is not an object", path)
        return {}

    known = set(Settings.model_fields)
    values = {}
    for key, value in raw.items():
        name = _FILE_KEY_ALIASES.get(key, key)
        if name in known:
            values[name] = value
    return values


class ConfigFileSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by <storage_path>/config.json.

    The storage path itself comes from an explicit override when one is given,
    else from DEBUG_MCP_STORAGE_PATH, else the default.
    """

    def __init__(self, settings_cls: Type[BaseSettings], storage_path: Any = None) -> None:
        super().__init__(settings_cls)
        self._storage_path = storage_path

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        if self._storage_path:
            return read_config_file(Path(self._storage_path).expanduser())
        return read_config_file(_resolve_storage_path())


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, env_file=".env", extra="ignore")

    app_name: str = "debug-bridge"

    # HTTP + WebSocket listener. Loopback only.
    host: str = "127.0.0.1"
    port: int = 4000

    storage_path: Path = DEFAULT_STORAGE_PATH
    retention_days: int = 7

    max_report_size: int = 10 * 1024 * 1024      # 10MB request body cap
    max_screenshot_size: int = 5 * 1024 * 1024   # 5MB decoded image cap

    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_dir: Optional[Path] = None               # defaults to <storage_path>/logs

    # Q&A sessions
    question_timeout_ms: int = 120_000
    auto_questions: bool = True                  # ask clarifying questions on every report
    auto_question_timeout_ms: int = 300_000
    session_cleanup_interval_s: int = 3600
    session_max_age_ms: int = 3_600_000

    # Run the MCP stdio transport alongside the HTTP server
    mcp_stdio: bool = True

    @field_validator("storage_path", "log_dir", mode="before")
    @classmethod
    def _expand_user(cls, value):
        if isinstance(value, str):
            return Path(value).expanduser()
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, value):
        if isinstance(value, str):
            value = value.lower()
            if value == "warning":
                return "warn"
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            ConfigFileSettingsSource(settings_cls, getattr(init_settings, "init_kwargs", {}).get("storage_path")),
            file_secret_settings,
        )

    @property
    def resolved_log_dir(self) -> Path:
        return self.log_dir or (self.storage_path / "logs")


def load_settings(**overrides: Any) -> Settings:
    """Build Settings from all sources. Keyword overrides win over everything."""
    settings = Settings(**overrides)
    logger.debug("Loaded settings: storage=%s port=%d", settings.storage_path, settings.port)
    return settings
