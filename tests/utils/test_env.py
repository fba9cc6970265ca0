from __future__ import annotations

import importlib

import pytest


def reload_env():
    import blobserver.utils.env as env_module

    return importlib.reload(env_module)


@pytest.fixture(autouse=True)
def _reset_env_module():
    import blobserver.utils.env as env_module

    yield
    importlib.reload(env_module)


def test_env_defaults_when_missing(monkeypatch):
    for key in [
        "GCS_BUCKET",
        "GCS_PUT_ATTEMPTS",
        "GCS_RETRY_BACKOFF_SEC",
        "GCS_REMOVE_CONCURRENCY",
        "GCS_MAX_BLOB_SIZE",
        "HTTP_TIMEOUT",
        "HTTP_TIMEOUT_SECS",
    ]:
        monkeypatch.delenv(key, raising=False)

    env_module = reload_env()

    assert env_module.GCS_BUCKET == ""
    assert env_module.GCS_PUT_ATTEMPTS == 2
    assert env_module.GCS_RETRY_BACKOFF_SEC == 0.0
    assert env_module.GCS_REMOVE_CONCURRENCY == 8
    assert env_module.GCS_MAX_BLOB_SIZE == 16 << 20
    assert env_module.HTTP_TIMEOUT == 30
    assert env_module.GCS_API_BASE == "https://storage.googleapis.com"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("GCS_BUCKET", "camlistore-x-test/bl/obs")
    monkeypatch.setenv("GCS_PUT_ATTEMPTS", "3")
    monkeypatch.setenv("GCS_RETRY_BACKOFF_SEC", "0.25")
    monkeypatch.setenv("HTTP_TIMEOUT_SECS", "12")

    env_module = reload_env()

    assert env_module.GCS_BUCKET == "camlistore-x-test/bl/obs"
    assert env_module.GCS_PUT_ATTEMPTS == 3
    assert env_module.GCS_RETRY_BACKOFF_SEC == 0.25
    assert env_module.HTTP_TIMEOUT_SECS == 12


def test_bad_numbers_fall_back(monkeypatch):
    monkeypatch.setenv("GCS_PUT_ATTEMPTS", "lots")
    monkeypatch.setenv("GCS_RETRY_BACKOFF_SEC", "soon")
    env_module = reload_env()
    assert env_module.GCS_PUT_ATTEMPTS == 2
    assert env_module.GCS_RETRY_BACKOFF_SEC == 0.0
