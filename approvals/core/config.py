"""Configuration management for the Ledger Approvals service.

Configuration is loaded from environment variables, one settings section
per concern with its own prefix.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Constants for database URL construction
POSTGRESQL_PREFIX = "postgresql://"
ASYNCPG_DRIVER = "+asyncpg"


class AppEnvironment(str, Enum):
    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EmailBackend(str, Enum):
    SMTP = "smtp"
    FILE = "file"


class AppConfig(BaseSettings):
    name: str = Field(default="ledger-approvals")
    env: AppEnvironment = Field(default=AppEnvironment.LOCAL)
    version: str = Field(default="0.1.0")
    debug: bool = Field(default=False)
    log_level: LogLevel = Field(default=LogLevel.INFO)

    model_config = SettingsConfigDict(env_prefix="APP_")

    @field_validator("env", mode="before")
    @classmethod
    def validate_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        if isinstance(v, AppEnvironment):
            return v
        return AppEnvironment(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        if isinstance(v, LogLevel):
            return v
        return LogLevel(v.upper())


class ServerConfig(BaseSettings):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    workers: int = Field(default=4)

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class DatabaseConfig(BaseSettings):
    # Primary: Full connection URL
    url_app: str = Field(default="", alias="database_url_app")

    # Fallback: Individual components
    host: str = Field(default="localhost")
    port: int = Field(default=5432)
    name: str = Field(default="ledger")
    user: str = Field(default="postgres")
    password: SecretStr = Field(default=SecretStr(""))
    pool_size: int = Field(default=10)
    max_overflow: int = Field(default=20)
    pool_timeout: int = Field(default=30)
    pool_recycle: int = Field(default=1800)
    echo: bool = Field(default=False)
    auto_create_schema: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        populate_by_name=True,  # Allow alias to work
    )

    @property
    def async_url(self) -> str:
        """Build async database URL."""
        if self.url_app:
            # Convert postgresql:// to postgresql+asyncpg:// if needed
            url = self.url_app
            if url.startswith(POSTGRESQL_PREFIX) and ASYNCPG_DRIVER not in url:
                new_prefix = POSTGRESQL_PREFIX.removesuffix("://") + ASYNCPG_DRIVER + "://"
                url = url.replace(POSTGRESQL_PREFIX, new_prefix, 1)
            return url
        password = self.password.get_secret_value()
        return f"postgresql{ASYNCPG_DRIVER}://{self.user}:{password}@{self.host}:{self.port}/{self.name}"


class EmailConfig(BaseSettings):
    backend: EmailBackend = Field(default=EmailBackend.SMTP)
    smtp_host: str = Field(default="")
    smtp_port: int = Field(default=587)
    smtp_secure: bool = Field(default=False)
    smtp_user: str = Field(default="")
    smtp_password: SecretStr = Field(default=SecretStr(""))
    smtp_timeout: float = Field(default=10.0)
    notify_from: str = Field(default="")
    file_dir: Path = Field(default=Path("tmp_emails"))

    # Dispatch queue
    queue_max_size: int = Field(default=1000)
    max_attempts: int = Field(default=3)
    base_delay_seconds: float = Field(default=2.0)
    max_delay_seconds: float = Field(default=60.0)

    model_config = SettingsConfigDict(env_prefix="EMAIL_")

    @field_validator("backend", mode="before")
    @classmethod
    def validate_backend(cls, v: str | EmailBackend) -> EmailBackend:
        if isinstance(v, EmailBackend):
            return v
        return EmailBackend(v.lower())

    @property
    def from_address(self) -> str:
        """Sender address, falling back to the SMTP login."""
        return self.notify_from or self.smtp_user or "no-reply@example.com"


class MembershipConfig(BaseSettings):
    deposit_threshold: Decimal = Field(default=Decimal("1000"))
    deposit_keyword: str = Field(default="membership")
    qualifying_statuses: str = Field(default="completed,confirmed,complete")

    model_config = SettingsConfigDict(env_prefix="MEMBERSHIP_")

    @property
    def qualifying_statuses_set(self) -> frozenset[str]:
        """Parse the comma-separated status list into a lowercase set."""
        return frozenset(
            status.strip().lower() for status in self.qualifying_statuses.split(",") if status.strip()
        )


class ObservabilityConfig(BaseSettings):
    service_name: str = Field(default="ledger-approvals")
    otlp_endpoint: str | None = Field(default=None)
    otlp_insecure: bool = Field(default=True)  # Use HTTPS in production, HTTP only for local dev
    log_record_format: str = Field(default="json")

    model_config = SettingsConfigDict(env_prefix="OTEL_")


class SecurityConfig(BaseSettings):
    cors_allowed_origins: str = Field(default="http://localhost:3000,http://localhost:8000")
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: list[str] = Field(default=["GET", "POST"])
    cors_allow_headers: list[str] = Field(default=["Authorization", "Content-Type", "X-Request-ID"])

    model_config = SettingsConfigDict(env_prefix="SECURITY_")

    @field_validator("cors_allowed_origins", mode="after")
    @classmethod
    def validate_cors_allowed_origins(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated string into list of origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


class Settings(BaseSettings):
    app: AppConfig = Field(default_factory=AppConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    membership: MembershipConfig = Field(default_factory=MembershipConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings (useful for testing)."""
    get_settings.cache_clear()
    return get_settings()
