"""Settings for the ClubHub client core."""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
    if env_names:
        alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
        return Field(default=default, validation_alias=alias)
    return Field(default=default)


class Settings(BaseSettings):
    # Remote relational data service (Supabase-style: GoTrue + PostgREST)
    remote_url: str = _env_field("http://127.0.0.1:54321", "CLUBHUB_REMOTE_URL", "SUPABASE_URL")
    remote_anon_key: str = _env_field("", "CLUBHUB_REMOTE_ANON_KEY", "SUPABASE_ANON_KEY")
    remote_timeout_seconds: float = _env_field(10.0, "CLUBHUB_REMOTE_TIMEOUT_SECONDS")

    environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
    service_name: str = _env_field("clubhub-client", "SERVICE_NAME")
    obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
    obs_log_json: bool = _env_field(True, "LOG_JSON")
    git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")

    # Cross-club "upcoming" listing shown on the home screen
    upcoming_events_limit: int = _env_field(20, "CLUBHUB_UPCOMING_EVENTS_LIMIT")

    # Deep link the password reset mail points back to
    password_reset_redirect_url: str = _env_field("clubhub://reset-password", "CLUBHUB_PASSWORD_RESET_REDIRECT_URL")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("obs_log_level", mode="before")
    def _normalise_level(cls, value):  # type: ignore[override]
        if value in (None, ""):
            return "INFO"
        return str(value).upper()

    @field_validator("remote_url", mode="before")
    def _strip_trailing_slash(cls, value):  # type: ignore[override]
        if isinstance(value, str):
            return value.rstrip("/")
        return value


settings = Settings()

