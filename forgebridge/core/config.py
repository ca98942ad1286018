"""Configuration management using Pydantic Settings."""

from typing import ClassVar

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from forgebridge.shared.exceptions import ConfigError

# Singleton instance
_settings: "Settings | None" = None


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Forgejo values also accept the ``INPUT_*`` names a workflow action
    exposes its inputs under.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        populate_by_name=True,
    )

    # GitHub configuration
    github_api_url: str = "https://api.github.com"
    github_server_url: str = "https://github.com"
    github_token: str | None = None
    override_github_token: str | None = None

    # Forgejo configuration
    use_forgejo: bool = Field(
        default=False,
        validation_alias=AliasChoices("use_forgejo", "input_use_forgejo"),
    )
    forgejo_api_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("forgejo_api_url", "input_forgejo_url"),
    )
    forgejo_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("forgejo_token", "input_forgejo_token"),
    )
    forgejo_external_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("forgejo_external_url", "input_forgejo_external_url"),
    )
    forgejo_extracted_url: str | None = None

    # Event being handled (set by the workflow runner)
    github_repository: str | None = None
    github_actor: str | None = None
    entity_number: int | None = None
    is_pr: bool = False
    github_event_name: str | None = None
    github_event_path: str | None = None
    github_run_id: str | None = None
    branch_name: str | None = None

    # Image handling
    image_download_dir: str = "/tmp/github-images"

    # Application settings
    log_level: str = "INFO"

    # Valid log levels
    VALID_LOG_LEVELS: ClassVar[set[str]] = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        v_upper = v.upper()
        if v_upper not in cls.VALID_LOG_LEVELS:
            raise ConfigError(
                f"Invalid log level: {v}. Must be one of {', '.join(cls.VALID_LOG_LEVELS)}"
            )
        return v_upper

    @field_validator(
        "github_token",
        "override_github_token",
        "forgejo_token",
        "forgejo_api_url",
        "forgejo_external_url",
        "forgejo_extracted_url",
        "github_event_name",
        "github_event_path",
        "github_run_id",
        "branch_name",
    )
    @classmethod
    def empty_as_unset(cls, v: str | None) -> str | None:
        """Treat empty strings from the environment as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()


def get_settings() -> Settings:
    """Get or create the global Settings instance (cached singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
