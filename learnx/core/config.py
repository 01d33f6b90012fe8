from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

DEFAULT_GEMINI_MODEL = "gemini-3-flash-preview"
DEFAULT_GEMINI_TTS_MODEL = "gemini-2.5-flash-preview-tts"


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("", "0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    gemini_api_key: str | None = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_tts_model: str = DEFAULT_GEMINI_TTS_MODEL
    content_timeout_seconds: float = 30.0
    session_idle_seconds: float = 1800.0

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def content_backend(self) -> str:
        return "gemini" if self.gemini_api_key else "template"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")
    timeout_raw = _getenv("CONTENT_TIMEOUT_SECONDS", "30")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        content_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"CONTENT_TIMEOUT_SECONDS must be a number (got {timeout_raw!r})"
        ) from None
    if content_timeout <= 0:
        raise ValueError(
            f"CONTENT_TIMEOUT_SECONDS must be positive (got {timeout_raw!r})"
        )

    idle_raw = _getenv("SESSION_IDLE_SECONDS", "1800")
    try:
        session_idle = float(idle_raw)
    except ValueError:
        raise ValueError(
            f"SESSION_IDLE_SECONDS must be a number (got {idle_raw!r})"
        ) from None
    if session_idle <= 0:
        raise ValueError(f"SESSION_IDLE_SECONDS must be positive (got {idle_raw!r})")

    log_json = _parse_bool("LOG_JSON", _getenv("LOG_JSON", "false"))

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json,
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        gemini_api_key=_getenv("GEMINI_API_KEY", "") or None,
        gemini_model=_getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
        gemini_tts_model=_getenv("GEMINI_TTS_MODEL", DEFAULT_GEMINI_TTS_MODEL),
        content_timeout_seconds=content_timeout,
        session_idle_seconds=session_idle,
    )


SETTINGS = load_settings()
