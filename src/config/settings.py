"""
Centralized settings management using pydantic-settings.

All environment variables and configuration values are defined here.
Use get_settings() to access the singleton settings instance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


STORAGE_BACKENDS = ("auto", "memory", "file", "redis")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Optional environment variables:
        - ENVIRONMENT: Environment name (development, staging, production)
        - LOG_LEVEL: Minimum log level (default: INFO)
        - STORAGE_BACKEND: auto, memory, file or redis (default: auto)
        - STORAGE_PATH: JSON file used by the file backend
        - REDIS_URL: Redis connection URL for the redis backend
        - AGGREGATE_WORKER_ENABLED: Compute aggregates on a background thread
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: str = Field(default="INFO", description="Minimum log level")
    json_logs: Optional[bool] = Field(
        default=None,
        description="Force JSON log output (defaults to on in production)"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper() or "INFO"
        return v

    @property
    def use_json_logs(self) -> bool:
        if self.json_logs is not None:
            return self.json_logs
        return self.is_production

    # ==========================================================================
    # Server Configuration
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ==========================================================================
    # Persistence
    # ==========================================================================
    storage_backend: str = Field(
        default="auto",
        description="Key-value backend for browsing/attention state"
    )
    storage_path: Path = Field(
        default=Path(".marketplace_state.json"),
        description="JSON file used by the file storage backend"
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL (enables redis in auto mode)"
    )

    @field_validator("storage_backend", mode="before")
    @classmethod
    def parse_storage_backend(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in STORAGE_BACKENDS:
                raise ValueError(
                    f"storage_backend must be one of {', '.join(STORAGE_BACKENDS)}"
                )
        return v

    @field_validator("storage_path", mode="before")
    @classmethod
    def parse_storage_path(cls, v):
        if isinstance(v, str):
            return Path(v)
        return v

    browsing_storage_key: str = Field(
        default="automation-browsing-signals",
        description="Storage key for browsing exposure buckets"
    )
    attention_storage_key: str = Field(
        default="automation-attention-scores",
        description="Storage key for dwell attention scores"
    )
    search_history_key: str = Field(
        default="automation-search-history",
        description="Storage key for recent search queries"
    )

    # ==========================================================================
    # Ranking Runtime
    # ==========================================================================
    aggregate_worker_enabled: bool = Field(
        default=True,
        description="Compute aggregate metrics on a background thread "
        "(falls back to synchronous computation if unavailable)"
    )
    search_debounce_seconds: float = Field(
        default=0.3,
        ge=0.0,
        description="Trailing-edge debounce applied to free-text search"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.

    Returns:
        Settings: The application settings instance
    """
    # Try to find .env file in project root
    env_file = Path(__file__).parent.parent.parent / ".env"
    if env_file.exists():
        os.environ.setdefault("ENV_FILE", str(env_file))

    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "environment": "testing",
        "debug": True,
        "storage_backend": "memory",
        "aggregate_worker_enabled": False,
    }
    test_defaults.update(overrides)

    return Settings(_env_file=None, **test_defaults)
