"""Configuration management for the Swimlane integration.

Process-level settings (logging, TLS, concurrency) come from environment
variables via pydantic-settings. Per-lookup integration options (target
instance, credentials, application allow-list) are an explicit pydantic
model validated once when they enter the system.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> Path | None:
    """Search for .env file in the working directory and its parents."""
    check_dir = Path.cwd()
    for _ in range(5):
        if (check_dir / ".env").exists():
            return check_dir / ".env"
        parent = check_dir.parent
        if parent == check_dir:
            break
        check_dir = parent

    return None


_env_file = _find_env_file()


class Settings(BaseSettings):
    """Process settings loaded from SWIMLANE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SWIMLANE_",
        env_file=str(_env_file) if _env_file else ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================
    # Environment
    # =========================
    environment: Literal["development", "staging", "production"] = "development"

    # =========================
    # Logging
    # =========================
    log_level: str = "INFO"
    # Unset means text in development and JSON elsewhere
    log_format: Literal["json", "text"] | None = None

    # =========================
    # HTTP / TLS
    # =========================
    request_timeout: float = 30.0
    # Paths to PEM files; empty string means unset
    request_cert: str = ""
    request_key: str = ""
    request_passphrase: str = Field(default="", repr=False)
    request_ca: str = ""
    # Proxy URL, basic auth may be embedded in the URL
    request_proxy: str = ""
    # Setting this to False ignores TLS certificate errors. Not for production.
    request_reject_unauthorized: bool = True

    # =========================
    # Lookup batching
    # =========================
    max_concurrent_groups: int = Field(default=5, ge=1)
    entity_group_size: int = Field(default=10, ge=1)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class IntegrationOptions(BaseModel):
    """User options for a lookup against one Swimlane instance.

    Accepts both snake_case and the camelCase keys used by the
    integration's option schema (``numTags``, ``highlightEnabled``, ...).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    url: str
    username: str
    password: str = Field(repr=False)
    applications: str

    detail_fields: str = Field(
        default="", validation_alias=AliasChoices("detail_fields", "detailFields")
    )
    highlight_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("highlight_enabled", "highlightEnabled"),
    )
    num_tags: int = Field(
        default=5, ge=0, validation_alias=AliasChoices("num_tags", "numTags")
    )
    max_results: int = Field(
        default=10, ge=1, le=100, validation_alias=AliasChoices("max_results", "maxResults")
    )

    # Elasticsearch mirror (optional)
    search_elasticsearch: bool = Field(
        default=False,
        validation_alias=AliasChoices("search_elasticsearch", "searchElasticsearch"),
    )
    elasticsearch_url: str = Field(
        default="", validation_alias=AliasChoices("elasticsearch_url", "elasticsearchUrl")
    )
    elasticsearch_index: str = Field(
        default="records",
        validation_alias=AliasChoices("elasticsearch_index", "elasticsearchIndex"),
    )
    elasticsearch_username: str = Field(
        default="",
        validation_alias=AliasChoices("elasticsearch_username", "elasticsearchUsername"),
    )
    elasticsearch_password: str = Field(
        default="",
        repr=False,
        validation_alias=AliasChoices("elasticsearch_password", "elasticsearchPassword"),
    )

    @field_validator("url", "elasticsearch_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @property
    def application_names(self) -> list[str]:
        """Configured application names, trimmed, blanks dropped."""
        return [name.strip() for name in self.applications.split(",") if name.strip()]

    @property
    def detail_field_names(self) -> set[str]:
        """Lowercased detail-field allow-list; empty means every field."""
        return {
            name.strip().lower() for name in self.detail_fields.split(",") if name.strip()
        }
