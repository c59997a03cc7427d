"""Application settings for the enhancement service and the overlay controller."""

import json
import os
from functools import lru_cache
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env"), env_file_encoding="utf-8")

    # App
    APP_NAME: str = "PromptEnhance Backend"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | production | test
    PORT: int = 3000

    # CORS
    # Extension origins (chrome-extension://...) are always allowed; this adds
    # one more exact origin. Accepts a CSV or JSON array string as well.
    ALLOWED_ORIGIN: list[str] | str = []

    # AI / LLM provider configuration
    LLM_PROVIDER: Literal["gemini", "azure_openai"] = "gemini"
    GEMINI_API_KEY: str | None = None
    MODEL: str = "gemini-2.0-flash-exp"
    AZURE_OPENAI_ENDPOINT: str | None = None
    AZURE_OPENAI_API_KEY: str | None = None
    AZURE_OPENAI_API_VERSION: str | None = None

    # Provider call behaviour
    REQUEST_TIMEOUT_MS: int = 30_000
    MAX_RETRIES: int = 3
    RETRY_DELAY_MS: int = 1_000

    # Input limits
    MAX_BODY_SIZE: int = 5 * 1024  # bytes
    MAX_PROMPT_LENGTH: int = 100_000  # characters, after trimming

    # Upstash Rate Limiting
    # REST URL and token for Upstash Redis; optional, an in-process limiter is
    # used when they are missing
    UPSTASH_REDIS_REST_URL: str | None = None
    UPSTASH_REDIS_REST_TOKEN: str | None = None

    # Rate limit settings (requests per window)
    RATE_LIMIT_REQUESTS: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    GLOBAL_RATE_LIMIT_REQUESTS: int = 30

    @field_validator("ALLOWED_ORIGIN", mode="before")
    @classmethod
    def assemble_allowed_origins(cls, v: object) -> list[str]:
        """Allow list, CSV string, or JSON array string for allowed origins."""
        if isinstance(v, list):
            return [str(i).strip() for i in v]
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    parsed = json.loads(s)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        "ALLOWED_ORIGIN must be a CSV list or JSON array string"
                    ) from e
                if not isinstance(parsed, list):
                    raise ValueError("ALLOWED_ORIGIN JSON must be a list")
                return [str(i).strip() for i in parsed]
            # CSV fallback
            return [i.strip() for i in s.split(",") if i.strip()]
        raise ValueError("Invalid ALLOWED_ORIGIN type; expected str or list[str]")

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        """Reject limits that would make the service unusable."""
        if isinstance(self.ALLOWED_ORIGIN, str):
            self.ALLOWED_ORIGIN = self.assemble_allowed_origins(self.ALLOWED_ORIGIN)
        if any(o.strip() == "*" for o in self.ALLOWED_ORIGIN or []):
            raise ValueError(
                "ALLOWED_ORIGIN must list explicit origins; '*' is not accepted."
            )
        if self.MAX_RETRIES < 1:
            raise ValueError("MAX_RETRIES must be at least 1")
        if self.MAX_BODY_SIZE <= 0 or self.MAX_PROMPT_LENGTH <= 0:
            raise ValueError("MAX_BODY_SIZE and MAX_PROMPT_LENGTH must be positive")
        return self

    @property
    def allowed_origins(self) -> list[str]:
        if isinstance(self.ALLOWED_ORIGIN, str):
            return self.assemble_allowed_origins(self.ALLOWED_ORIGIN)
        return list(self.ALLOWED_ORIGIN)


class OverlaySettings(BaseSettings):
    """Settings for the in-page enhancement controller.

    Read from ``ENHANCER_``-prefixed environment variables so the controller
    can be configured independently of the service it talks to.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENHANCER_", env_file=(".env"), env_file_encoding="utf-8"
    )

    SERVICE_URL: str = "http://localhost:3000"
    RELAY_TIMEOUT_SECONDS: float = 45.0

    QUIET_PERIOD_MS: int = 700
    MIN_TEXT_LENGTH: int = 3

    MAX_ATTEMPTS: int = 3
    BASE_DELAY_MS: int = 500
    BACKOFF_MULTIPLIER: float = 2.0

    @model_validator(mode="after")
    def _validate_policy(self) -> "OverlaySettings":
        if self.MAX_ATTEMPTS < 1:
            raise ValueError("ENHANCER_MAX_ATTEMPTS must be at least 1")
        if self.BACKOFF_MULTIPLIER < 1:
            raise ValueError("ENHANCER_BACKOFF_MULTIPLIER must be >= 1")
        if self.QUIET_PERIOD_MS < 0 or self.BASE_DELAY_MS < 0:
            raise ValueError("Delays must not be negative")
        return self


def _resolve_env_file() -> str:
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in {"development", "production", "test"}:
        raise ValueError("ENVIRONMENT must be 'development', 'production', or 'test'")

    if env == "production":
        return ".env.prod"
    if env == "development":
        return ".env.dev"
    # test environment - no env file needed, use defaults
    return ""


@lru_cache
def get_settings() -> Settings:
    env_file = _resolve_env_file()
    # The Settings initializer accepts a runtime-only `_env_file` kwarg used by
    # pydantic-settings; mypy's stub doesn't allow this call argument.
    return Settings(_env_file=env_file or None)  # type: ignore[call-arg]


@lru_cache
def get_overlay_settings() -> OverlaySettings:
    env_file = _resolve_env_file()
    return OverlaySettings(_env_file=env_file or None)  # type: ignore[call-arg]
