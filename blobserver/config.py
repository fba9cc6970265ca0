from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from blobserver import __version__
from blobserver.core.exceptions import ConfigError
from blobserver.core.keys import Namespace
from blobserver.utils.env import ENV

_TOP_LEVEL_KEYS = {"bucket", "auth", "put_attempts", "retry_backoff", "remove_concurrency", "max_blob_size"}
_AUTH_KEYS = {"client_id", "client_secret", "refresh_token"}


@dataclass(frozen=True)
class Settings:
    """
    A data class for process-wide settings.

    Attributes:
        VERSION (str): The package version.
        bucket (str): Bucket name, optionally suffixed with a virtual directory.
        client_id (str): OAuth2 client id.
        client_secret (str): OAuth2 client secret.
        refresh_token (str): OAuth2 refresh token.
        api_base (str): Root URL of the storage JSON API.
        token_url (str): OAuth2 token endpoint.
        http_timeout (int): Per-request timeout in seconds.
        put_attempts (int): Total write attempts per Put.
        retry_backoff (float): Base jittered backoff between write attempts.
        remove_concurrency (int): Parallel deletions per RemoveBlobs call.
        max_blob_size (int): Largest accepted blob in bytes.
    """

    VERSION: str = __version__
    bucket: str = ENV.GCS_BUCKET
    client_id: str = ENV.GCS_CLIENT_ID
    client_secret: str = ENV.GCS_CLIENT_SECRET
    refresh_token: str = ENV.GCS_REFRESH_TOKEN
    api_base: str = ENV.GCS_API_BASE
    token_url: str = ENV.GCS_TOKEN_URL
    http_timeout: int = ENV.HTTP_TIMEOUT
    put_attempts: int = ENV.GCS_PUT_ATTEMPTS
    retry_backoff: float = ENV.GCS_RETRY_BACKOFF_SEC
    remove_concurrency: int = ENV.GCS_REMOVE_CONCURRENCY
    max_blob_size: int = ENV.GCS_MAX_BLOB_SIZE


settings = Settings()


@dataclass(frozen=True)
class AuthConfig:
    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)


@dataclass(frozen=True)
class StorageConfig:
    """Everything one storage adapter instance needs, passed to its constructor."""

    namespace: Namespace
    auth: AuthConfig = field(default_factory=AuthConfig)
    put_attempts: int = 2
    retry_backoff: float = 0.0
    remove_concurrency: int = 8
    max_blob_size: int = 16 << 20

    def __post_init__(self) -> None:
        if self.put_attempts < 1:
            raise ConfigError("put_attempts must be >= 1")
        if self.retry_backoff < 0:
            raise ConfigError("retry_backoff must be >= 0")
        if self.remove_concurrency < 1:
            raise ConfigError("remove_concurrency must be >= 1")
        if self.max_blob_size < 1:
            raise ConfigError("max_blob_size must be >= 1")

    @classmethod
    def from_obj(cls, obj: Mapping[str, Any], *, defaults: Optional[Settings] = None) -> "StorageConfig":
        """Build from a JSON-style config object.

        Recognized keys: ``bucket`` (required), ``auth`` with ``client_id``,
        ``client_secret`` and ``refresh_token``, plus optional tuning knobs.
        Unknown keys are rejected so typos do not go unnoticed.
        """
        defaults = defaults or settings
        if not isinstance(obj, Mapping):
            raise ConfigError("storage config must be an object")
        unknown = set(obj) - _TOP_LEVEL_KEYS
        if unknown:
            raise ConfigError(f"unknown config key(s): {', '.join(sorted(unknown))}")

        bucket = obj.get("bucket")
        if not bucket:
            raise ConfigError("missing required config key 'bucket'")

        auth_obj = obj.get("auth") or {}
        if not isinstance(auth_obj, Mapping):
            raise ConfigError("'auth' must be an object")
        unknown = set(auth_obj) - _AUTH_KEYS
        if unknown:
            raise ConfigError(f"unknown auth key(s): {', '.join(sorted(unknown))}")

        try:
            return cls(
                namespace=Namespace.parse(bucket),
                auth=AuthConfig(
                    client_id=str(auth_obj.get("client_id", "")),
                    client_secret=str(auth_obj.get("client_secret", "")),
                    refresh_token=str(auth_obj.get("refresh_token", "")),
                ),
                put_attempts=int(obj.get("put_attempts", defaults.put_attempts)),
                retry_backoff=float(obj.get("retry_backoff", defaults.retry_backoff)),
                remove_concurrency=int(
                    obj.get("remove_concurrency", defaults.remove_concurrency)
                ),
                max_blob_size=int(obj.get("max_blob_size", defaults.max_blob_size)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid storage config: {e}") from e

    @classmethod
    def from_settings(cls, s: Optional[Settings] = None) -> "StorageConfig":
        s = s or settings
        return cls.from_obj(
            {
                "bucket": s.bucket,
                "auth": {
                    "client_id": s.client_id,
                    "client_secret": s.client_secret,
                    "refresh_token": s.refresh_token,
                },
            },
            defaults=s,
        )


__all__ = ["settings", "Settings", "AuthConfig", "StorageConfig"]
