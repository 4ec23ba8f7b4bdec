from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    app_name: str = "LGSTech Backend"
    app_version: str = "0.1.0"
    environment: str = "local"
    site_name: str = "LGSTech"
    port: int = 5000
    log_json: bool = False

    cors_origins: list[str] = ["*"]
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    client_url: str = Field(default="http://localhost:3000", validation_alias=AliasChoices("CLIENT_URL", "SITE_URL"))
    admin_api_key: str | None = Field(default=None, validation_alias=AliasChoices("ADMIN_KEY", "ADMIN_API_KEY"))

    smtp_host: str | None = "smtp.office365.com"
    smtp_port: int = 587
    smtp_use_tls: bool = True
    smtp_timeout_seconds: float = 10.0
    smtp_username: str | None = Field(default=None, validation_alias=AliasChoices("MY_EMAIL", "SMTP_USERNAME"))
    smtp_password: str | None = Field(default=None, validation_alias=AliasChoices("MY_PASSWORD", "SMTP_PASSWORD"))
    smtp_from_email: str | None = None
    contact_recipient: str = "support@lgsbc.com.au"
    contact_from_name: str = "LGSTech Contact"
    newsletter_from_name: str = "LGSTech.ai"
    subscribe_require_confirmation: bool = False

    subscriber_backend: Literal["database", "file"] = "database"
    data_dir: str | None = None
    subscribers_file: str = "subscribers.json"

    database_url: str | None = None
    db_driver: str = "mssql+aioodbc"
    db_server: str | None = None
    db_port: int | None = None
    db_user: str | None = None
    db_password: str | None = None
    db_name: str | None = None
    db_encrypt: bool = True
    db_odbc_driver: str = "ODBC Driver 18 for SQL Server"
    db_pool_size: int = 10
    db_pool_recycle_seconds: int = 30
    db_create_tables: bool = True

    sentry_dsn: str | None = None
    sentry_traces_sample_rate: float = 0.0

    @property
    def smtp_enabled(self) -> bool:
        return bool((self.smtp_host or "").strip())

    @property
    def sender_address(self) -> str:
        return self.smtp_from_email or self.smtp_username or "no-reply@lgstech.local"

    @property
    def subscribers_path(self) -> Path:
        path = Path(self.subscribers_file)
        if self.data_dir and not path.is_absolute():
            return Path(self.data_dir) / path
        return path

    def sqlalchemy_url(self) -> str | URL:
        if self.database_url:
            return self.database_url
        if not self.db_server:
            return "sqlite+aiosqlite:///./subscribers.db"

        query: dict[str, str] = {}
        if self.db_driver.startswith("mssql"):
            query["driver"] = self.db_odbc_driver
            query["Encrypt"] = "yes" if self.db_encrypt else "no"
        elif self.db_driver.endswith("asyncpg") and self.db_encrypt:
            query["ssl"] = "require"
        return URL.create(
            self.db_driver,
            username=self.db_user,
            password=self.db_password,
            host=self.db_server,
            port=self.db_port,
            database=self.db_name,
            query=query,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
