"""Configuration for the Linear bookkeeper.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

The settings are read once by the CLI and passed down explicitly; the services
never read the environment themselves.
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from linear_bookkeeper.reconciler.linear.client import DEFAULT_API_URL


class BookkeeperSettings(BaseSettings):
    """Settings for the bookkeeper CLI.

    Environment variables:
    - LINEAR_API_KEY
    - LINEAR_API_URL                  (optional)
    - LINEAR_TEAM_ID                  (optional)
    - LINEAR_DEFAULT_INITIATIVE_ID    (optional)
    - LINEAR_PROJECT_FILTER           (optional)
    - LINEAR_REQUEST_TIMEOUT_SECONDS  (optional)
    - VERIFY_MIN_DESCRIPTION_LENGTH   (optional)
    - LOG_LEVEL                       (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `BookkeeperSettings(_env_file=path_to_env)`.
    """

    linear_api_key: str = Field(
        default="",
        validation_alias="LINEAR_API_KEY",
        description="Linear personal API key",
    )
    linear_api_url: str = Field(
        default=DEFAULT_API_URL,
        validation_alias="LINEAR_API_URL",
        description="Linear GraphQL endpoint",
    )
    team_id: str | None = Field(
        default=None,
        validation_alias="LINEAR_TEAM_ID",
        description="Default team scope for label operations",
    )
    default_initiative_id: str | None = Field(
        default=None,
        validation_alias="LINEAR_DEFAULT_INITIATIVE_ID",
        description="Initiative used for linking and verification when none is given",
    )
    project_filter: str = Field(
        default="",
        validation_alias="LINEAR_PROJECT_FILTER",
        description="Default project name filter for bulk link/verify commands",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        validation_alias="LINEAR_REQUEST_TIMEOUT_SECONDS",
        description="Timeout for each Linear API request",
    )
    min_description_length: int = Field(
        default=10,
        ge=0,
        validation_alias="VERIFY_MIN_DESCRIPTION_LENGTH",
        description="A project description must be longer than this to count as present",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_api_key(self) -> BookkeeperSettings:
        if not self.linear_api_key.strip():
            raise ValueError("LINEAR_API_KEY is required")
        return self
