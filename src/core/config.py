"""Application settings for the draft engine and its HTTP collaborators."""

import json
import os
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env"), env_file_encoding="utf-8")

    # App
    APP_NAME: str = "ApplyPilot Drafts"
    ENVIRONMENT: str = "development"  # development | production | test

    # Collaborators
    # Generation backend (atomic JSON endpoints and line-streamed endpoints)
    GENERATION_BASE_URL: str = "http://localhost:3000"
    # Entity store receiving accepted drafts
    STORE_BASE_URL: str = "http://localhost:3000"

    # Timeouts (seconds). None of these apply to user think-time.
    ATOMIC_TIMEOUT_SECONDS: float = 60.0
    STREAM_MAX_SECONDS: float = 180.0
    STREAM_IDLE_TIMEOUT_SECONDS: float = 45.0

    # CORS
    # Accept list or CSV/JSON string from env; normalized to list[str] by validators
    CORS_ORIGINS: list[str] | str = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    ALLOW_CREDENTIALS: bool = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: object) -> list[str]:
        """Allow list, CSV string, or JSON array string for CORS origins."""
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
                        "CORS_ORIGINS must be a CSV list or JSON array string"
                    ) from e
                if not isinstance(parsed, list):
                    raise ValueError("CORS_ORIGINS JSON must be a list")
                return [str(i).strip() for i in parsed]
            # CSV fallback
            return [i.strip() for i in s.split(",") if i.strip()]
        raise ValueError("Invalid CORS_ORIGINS type; expected str or list[str]")

    @field_validator(
        "ATOMIC_TIMEOUT_SECONDS", "STREAM_MAX_SECONDS", "STREAM_IDLE_TIMEOUT_SECONDS"
    )
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @model_validator(mode="after")
    def _validate_cors_credentials(self) -> "Settings":
        """Ensure wildcard origins are not used when credentials are allowed."""
        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = self.assemble_cors_origins(self.CORS_ORIGINS)
        if self.ALLOW_CREDENTIALS and any(
            o.strip() == "*" for o in (self.CORS_ORIGINS or [])
        ):
            raise ValueError(
                "CORS configuration error: ALLOW_CREDENTIALS=True but "
                "CORS_ORIGINS contains '*'. Use explicit origins when credentials "
                "are allowed."
            )
        return self

    @model_validator(mode="after")
    def _validate_stream_timeouts(self) -> "Settings":
        if self.STREAM_IDLE_TIMEOUT_SECONDS > self.STREAM_MAX_SECONDS:
            raise ValueError(
                "STREAM_IDLE_TIMEOUT_SECONDS cannot exceed STREAM_MAX_SECONDS"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in {"development", "production", "test"}:
        raise ValueError("ENVIRONMENT must be 'development', 'production', or 'test'")

    if env == "production":
        env_file = ".env.prod"
    elif env == "development":
        env_file = ".env.dev"
    else:
        # test environment - no env file needed, use defaults
        env_file = ""

    # The Settings initializer accepts a runtime-only `_env_file` kwarg used by
    # pydantic-settings; mypy's stub doesn't allow this call argument.
    return Settings(_env_file=env_file or None)  # type: ignore[call-arg]
