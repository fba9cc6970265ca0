from __future__ import annotations

import pytest

from blobserver import __version__
from blobserver.config import Settings, StorageConfig, settings
from blobserver.core.exceptions import ConfigError


def test_settings_carry_package_version():
    assert settings.VERSION == __version__
    assert settings.put_attempts >= 1


def test_from_obj_parses_bucket_dir_and_auth():
    cfg = StorageConfig.from_obj(
        {
            "bucket": "camlistore-x-test/bl/obs/",
            "auth": {"client_id": "id", "client_secret": "secret", "refresh_token": "rt"},
        }
    )
    assert cfg.namespace.bucket == "camlistore-x-test"
    assert cfg.namespace.dir_prefix == "bl/obs/"
    assert cfg.auth.complete
    assert cfg.put_attempts == settings.put_attempts


def test_from_obj_tuning_knobs():
    cfg = StorageConfig.from_obj(
        {"bucket": "b", "put_attempts": 3, "retry_backoff": 0.5, "remove_concurrency": 2}
    )
    assert (cfg.put_attempts, cfg.retry_backoff, cfg.remove_concurrency) == (3, 0.5, 2)
    assert not cfg.auth.complete


@pytest.mark.parametrize(
    "obj",
    [
        {},
        {"bucket": ""},
        {"bucket": "b", "bukket": "typo"},
        {"bucket": "b", "auth": {"client_id": "x", "token_cache": ".tokencache"}},
        {"bucket": "b", "auth": "not-an-object"},
        {"bucket": "b", "put_attempts": 0},
        {"bucket": "b", "put_attempts": "many"},
        {"bucket": "b/../etc"},
        "bucket=b",
    ],
)
def test_from_obj_rejects_bad_config(obj):
    with pytest.raises(ConfigError):
        StorageConfig.from_obj(obj)


def test_from_settings_uses_environment_values():
    s = Settings(
        bucket="camlistore-env-test/dir",
        client_id="id",
        client_secret="secret",
        refresh_token="rt",
        put_attempts=5,
    )
    cfg = StorageConfig.from_settings(s)
    assert str(cfg.namespace) == "camlistore-env-test/dir/"
    assert cfg.put_attempts == 5
    assert cfg.auth.refresh_token == "rt"
