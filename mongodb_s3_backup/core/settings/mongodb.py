"""MongoDB source connection settings."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ._sanitizers import sanitize_inline_numeric, split_comma_list
from .yaml_sources import create_mongodb_yaml_source


class MongoDBSettings(BaseSettings):
    """Connection parameters for the database being backed up.

    Environment variables use MONGODB_ prefix.
    Example: MONGODB_DB="orders"
             MONGODB_EXCLUDE_COLLECTIONS="sessions,audit_log"
    """

    host: str = Field(default="localhost", description="MongoDB host")
    port: int = Field(default=27017, ge=1, le=65535, description="MongoDB port")
    db: str | None = Field(default=None, description="Name of the database to back up")

    username: str | None = Field(default=None, description="Username for authentication")
    password: SecretStr | None = Field(default=None, description="Password for authentication")
    authentication_database: str | None = Field(
        default=None,
        description="Database holding the user's credentials (mongodump --authenticationDatabase)",
    )

    exclude_collections: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Collections to leave out of the dump, in order",
    )

    mongodump_path: str = Field(default="mongodump", description="Path to mongodump binary")

    model_config = SettingsConfigDict(
        env_prefix="MONGODB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_mongodb_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @field_validator("port", mode="before")
    @classmethod
    def _normalize_numeric(cls, value: Any) -> Any:
        return sanitize_inline_numeric(value)

    @field_validator("exclude_collections", mode="before")
    @classmethod
    def _normalize_exclude_collections(cls, value: Any) -> Any:
        """Parse comma-separated list from env var."""
        return split_comma_list(value)

    @property
    def is_configured(self) -> bool:
        """Check if a database to back up has been named."""
        return bool(self.db)

    @property
    def address(self) -> str:
        """``host:port`` as mongodump expects it."""
        return f"{self.host}:{self.port}"

    @property
    def has_credentials(self) -> bool:
        """Credentials are only sent when both username and password are set."""
        return bool(self.username) and self.password is not None and bool(
            self.password.get_secret_value()
        )
