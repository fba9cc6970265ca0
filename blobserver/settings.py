"""Error-reporting settings powered by Pydantic.

Environment matrix:

| Section | Environment Variable        | Default | Purpose                            |
|---------|-----------------------------|---------|------------------------------------|
| Sentry  | `SENTRY_DSN`                | `None`  | Sentry ingest DSN                  |
| Sentry  | `SENTRY_TRACES_SAMPLE_RATE` | `0.0`   | Fraction of transactions to trace  |
| Sentry  | `SENTRY_ENVIRONMENT`        | `None`  | Deployment environment label       |

Storage options (bucket, credentials, retry budget) live in
``blobserver.utils.env`` and ``blobserver.config``; this module only covers
what the package needs at import time.
"""

from __future__ import annotations

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class _SettingsBase(BaseSettings):
    """Common configuration for BaseSettings subclasses."""

    model_config = SettingsConfigDict(
        env_prefix="",
        populate_by_name=True,
        extra="ignore",
        case_sensitive=True,
        frozen=True,
    )


class SentrySettings(_SettingsBase):
    """Sentry SDK configuration."""

    dsn: str | None = Field(default=None, alias="SENTRY_DSN")
    traces_sample_rate: float = Field(default=0.0, alias="SENTRY_TRACES_SAMPLE_RATE")
    environment: str | None = Field(default=None, alias="SENTRY_ENVIRONMENT")

    @computed_field
    @property
    def enabled(self) -> bool:
        return bool(self.dsn)


def get_sentry_settings() -> SentrySettings:
    """Instantiate Sentry settings from the current environment."""
    return SentrySettings()


__all__ = ["SentrySettings", "get_sentry_settings"]
