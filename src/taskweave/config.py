"""Configuration management for taskweave."""

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TASKWEAVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server configuration
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Runtime environment (development, staging, production)",
    )
    server_name: str = Field(default="taskweave", description="Service name")
    server_host: str = Field(default="localhost", description="Server bind host")
    server_port: int = Field(default=3340, description="Server bind port")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Database configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./taskweave.db",
        description="SQLAlchemy async database URL",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")
    database_pool_size: int = Field(
        default=10, ge=1, le=100, description="Connection pool size (non-sqlite only)"
    )
    database_max_overflow: int = Field(
        default=20, ge=0, le=200, description="Max overflow connections (non-sqlite only)"
    )

    # Escalation sweep
    notify_on_escalation: bool = Field(
        default=True,
        description="Create a notification for the assignee when a rule escalates a task",
    )
    sweep_interval_seconds: int = Field(
        default=0,
        ge=0,
        description="Run an escalation sweep this often while serving (0 disables)",
    )

    @model_validator(mode="after")
    def normalize_database_url(self) -> "Settings":
        """Route bare postgres URLs through the asyncpg driver."""
        url = self.database_url
        for prefix in ("postgres://", "postgresql://"):
            if url.startswith(prefix):
                object.__setattr__(
                    self, "database_url", "postgresql+asyncpg://" + url[len(prefix) :]
                )
                break
        return self

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Prevent unsafe settings in production."""
        if self.environment == "production" and self.database_echo:
            raise ValueError(
                "CRITICAL: database_echo=True is forbidden in production environment. "
                "SQL echo logs statement parameters."
            )
        return self

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite."""
        return self.database_url.startswith("sqlite")


# Global settings instance
settings = Settings()
