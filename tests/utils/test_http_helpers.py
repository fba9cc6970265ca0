from __future__ import annotations

from blobserver.utils import http


def test_backoff_respects_retry_after():
    assert http.compute_backoff_delay(0, 1.0, "3") == 3.0


def test_backoff_is_jittered_and_linear(monkeypatch):
    monkeypatch.setattr(http.random, "uniform", lambda *_: 1.0)
    assert http.compute_backoff_delay(0, 1.5) == 1.5
    assert http.compute_backoff_delay(2, 1.5) == 4.5


def test_zero_backoff_means_immediate_retry():
    assert http.compute_backoff_delay(3, 0.0) == 0.0
    assert http.compute_backoff_delay(0, 0.0, "bogus") == 0.0


def test_bearer_headers_include_user_agent():
    headers = http.bearer("abc", {"Accept": "application/json"})
    assert headers["Authorization"] == "Bearer abc"
    assert headers["Accept"] == "application/json"
    assert "User-Agent" in headers


def test_new_session_sets_user_agent():
    session = http.new_session()
    assert session.headers["User-Agent"] == http.ENV.HTTP_USER_AGENT
