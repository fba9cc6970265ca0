# blobserver/adapters/storage/gcs_client.py
from __future__ import annotations
"""
Thin client for the Google Cloud Storage JSON API.

Public API:
- GCSClient.put_object(bucket, key, data)            -> PutResult
- GCSClient.get_object(bucket, key)                  -> (BlobReader, size)
- GCSClient.stat_object(bucket, key)                 -> int | None
- GCSClient.delete_object(bucket, key)               -> None
- GCSClient.list_objects(bucket, prefix, ...)        -> ListPage

Status mapping:
- 404                   -> NotFoundError
- 401/403               -> AuthError (401 is retried once after dropping the cached token)
- 408/429/5xx, network  -> TransientError
- 412 on insert         -> PutResult(exists=True); inserts use ifGenerationMatch=0
- other non-2xx         -> FatalError
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Tuple
from urllib.parse import quote

import requests
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from blobserver.adapters.storage.oauth import TokenSource
from blobserver.core.context import Context
from blobserver.core.exceptions import (
    AuthError,
    FatalError,
    NotFoundError,
    OperationCancelled,
    TransientError,
)
from blobserver.utils import env as ENV
from blobserver.utils.http import bearer, log_http_event, new_session

_RETRYABLE = {408, 429, 500, 502, 503, 504}
_READ_CHUNK = 64 * 1024
_STREAM_ERRORS = (Urllib3HTTPError, requests.RequestException, OSError)


@dataclass(frozen=True)
class PutResult:
    exists: bool = False


@dataclass(frozen=True)
class ObjectEntry:
    key: str
    size: int


@dataclass(frozen=True)
class ListPage:
    entries: List[ObjectEntry] = field(default_factory=list)
    next_page_token: Optional[str] = None


class BlobReader:
    """Closeable binary reader over a streamed response body.

    Transport failures while reading surface as TransientError. Once ``ctx`` is
    cancelled every read raises OperationCancelled, including reads that fail
    because the cancellation closed the stream underneath them.
    """

    def __init__(
        self,
        raw: Any,
        closer: Any = None,
        *,
        key: str = "",
        ctx: Optional[Context] = None,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        self._raw = raw
        self._closer = closer
        self._ctx = ctx
        self._on_close = on_close
        self.key = key
        self.closed = False

    def _read(self, n: int) -> bytes:
        what = f"read {self.key}"
        if self._ctx is not None:
            self._ctx.check(what)
        try:
            chunk = self._raw.read(n)
        except Exception as e:
            if self._ctx is not None and self._ctx.cancelled:
                raise OperationCancelled(f"{what} cancelled", key=self.key, cause=e) from e
            if isinstance(e, _STREAM_ERRORS):
                raise TransientError(f"{what} failed", key=self.key, cause=e) from e
            raise
        if self._ctx is not None:
            # A stream closed by cancellation may report a clean EOF.
            self._ctx.check(what)
        return chunk or b""

    def read(self, n: int = -1) -> bytes:
        if n is None or n < 0:
            return b"".join(self)
        return self._read(n)

    def readall(self) -> bytes:
        return self.read()

    def __iter__(self) -> Iterator[bytes]:
        return iter(lambda: self._read(_READ_CHUNK), b"")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close()
        target = self._closer if self._closer is not None else self._raw
        close = getattr(target, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "BlobReader":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()


class ObjectClient(Protocol):
    """What the storage adapter needs from an object store."""

    def put_object(
        self, bucket: str, key: str, data: bytes, *, ctx: Optional[Context] = None
    ) -> PutResult:
        ...

    def get_object(
        self, bucket: str, key: str, *, ctx: Optional[Context] = None
    ) -> Tuple[BlobReader, int]:
        ...

    def stat_object(
        self, bucket: str, key: str, *, ctx: Optional[Context] = None
    ) -> Optional[int]:
        ...

    def delete_object(
        self, bucket: str, key: str, *, ctx: Optional[Context] = None
    ) -> None:
        ...

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        *,
        page_token: Optional[str] = None,
        start_offset: Optional[str] = None,
        max_results: int = 1000,
        ctx: Optional[Context] = None,
    ) -> ListPage:
        ...


class GCSClient:
    """requests-based ObjectClient talking to storage.googleapis.com (or an emulator)."""

    def __init__(
        self,
        tokens: TokenSource,
        *,
        api_base: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        base = (api_base or ENV.GCS_API_BASE).rstrip("/")
        self.api_url = f"{base}/storage/v1"
        self.upload_url = f"{base}/upload/storage/v1"
        self.tokens = tokens
        self.timeout = timeout if timeout is not None else ENV.HTTP_TIMEOUT
        self.session = session or new_session()

    # --------------------------
    # Internal helpers
    # --------------------------

    def _object_url(self, bucket: str, key: str) -> str:
        return f"{self.api_url}/b/{quote(bucket, safe='')}/o/{quote(key, safe='')}"

    def _send(
        self,
        method: str,
        url: str,
        *,
        key: str,
        ctx: Optional[Context],
        ok_statuses: Tuple[int, ...] = (200,),
        passthrough: Tuple[int, ...] = (),
        **kwargs: Any,
    ) -> requests.Response:
        """Issue one request; maps failures onto the blob server error taxonomy.

        Statuses in ``passthrough`` are returned to the caller untouched. The
        request timeout is capped by the deadline of ``ctx``.
        """
        timeout = ctx.timeout(self.timeout) if ctx is not None else self.timeout
        for auth_attempt in range(2):
            if ctx is not None:
                ctx.check(f"{method} {key}")
            headers = bearer(self.tokens.token(), kwargs.pop("headers", None))
            start = time.perf_counter()
            try:
                resp = self.session.request(
                    method, url, headers=headers, timeout=timeout, **kwargs
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                log_http_event(
                    level="WARNING", method=method, url=url, status=599,
                    start_time=start, note=f"error={e}",
                )
                if ctx is not None and ctx.cancelled:
                    raise OperationCancelled(f"{method} cancelled", key=key, cause=e) from e
                raise TransientError(f"{method} failed", key=key, cause=e) from e
            except requests.RequestException as e:
                raise FatalError(f"{method} failed", key=key, cause=e) from e

            if ctx is not None and ctx.cancelled:
                resp.close()
                raise OperationCancelled(f"{method} cancelled", key=key)

            status = resp.status_code
            if status in ok_statuses or status in passthrough:
                log_http_event(
                    level="DEBUG", method=method, url=url, status=status,
                    start_time=start, note="ok",
                )
                return resp

            log_http_event(
                level="WARNING" if status in _RETRYABLE else "INFO",
                method=method, url=url, status=status, start_time=start,
                note="non-2xx",
            )
            detail = _error_detail(resp)
            resp.close()
            if status == 401 and auth_attempt == 0:
                self.tokens.invalidate()
                kwargs["headers"] = {
                    k: v for k, v in headers.items() if k != "Authorization"
                }
                continue
            if status == 404:
                raise NotFoundError("object not found", key=key)
            if status in (401, 403):
                raise AuthError(f"{method} rejected with {status}: {detail}", key=key)
            if status in _RETRYABLE:
                raise TransientError(f"{method} returned {status}: {detail}", key=key)
            raise FatalError(f"{method} returned {status}: {detail}", key=key)
        raise AuthError(f"{method} rejected with 401", key=key)  # pragma: no cover

    # --------------------------
    # Public API
    # --------------------------

    def put_object(
        self, bucket: str, key: str, data: bytes, *, ctx: Optional[Context] = None
    ) -> PutResult:
        url = f"{self.upload_url}/b/{quote(bucket, safe='')}/o"
        resp = self._send(
            "POST",
            url,
            key=key,
            ctx=ctx,
            passthrough=(412,),
            params={"uploadType": "media", "name": key, "ifGenerationMatch": "0"},
            data=data,
            headers={"Content-Type": "application/octet-stream"},
        )
        resp.close()
        return PutResult(exists=resp.status_code == 412)

    def get_object(
        self, bucket: str, key: str, *, ctx: Optional[Context] = None
    ) -> Tuple[BlobReader, int]:
        resp = self._send(
            "GET",
            self._object_url(bucket, key),
            key=key,
            ctx=ctx,
            params={"alt": "media"},
            stream=True,
        )
        size = _content_length(resp.headers)
        resp.raw.decode_content = True
        unregister = ctx.on_cancel(resp.close) if ctx is not None else None
        reader = BlobReader(resp.raw, closer=resp, key=key, ctx=ctx, on_close=unregister)
        return reader, size

    def stat_object(
        self, bucket: str, key: str, *, ctx: Optional[Context] = None
    ) -> Optional[int]:
        try:
            resp = self._send(
                "GET",
                self._object_url(bucket, key),
                key=key,
                ctx=ctx,
                params={"fields": "size"},
            )
        except NotFoundError:
            return None
        return int(_json(resp, key).get("size", 0))

    def delete_object(
        self, bucket: str, key: str, *, ctx: Optional[Context] = None
    ) -> None:
        resp = self._send(
            "DELETE",
            self._object_url(bucket, key),
            key=key,
            ctx=ctx,
            ok_statuses=(200, 204),
        )
        resp.close()

    def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        *,
        page_token: Optional[str] = None,
        start_offset: Optional[str] = None,
        max_results: int = 1000,
        ctx: Optional[Context] = None,
    ) -> ListPage:
        params: Dict[str, Any] = {
            "prefix": prefix,
            "delimiter": "/",
            "maxResults": max_results,
            "fields": "items(name,size),nextPageToken",
        }
        if page_token:
            params["pageToken"] = page_token
        if start_offset:
            params["startOffset"] = start_offset
        resp = self._send(
            "GET",
            f"{self.api_url}/b/{quote(bucket, safe='')}/o",
            key=prefix,
            ctx=ctx,
            params=params,
        )
        payload = _json(resp, prefix)
        entries = [
            ObjectEntry(key=item["name"], size=int(item.get("size", 0)))
            for item in payload.get("items", [])
        ]
        return ListPage(entries=entries, next_page_token=payload.get("nextPageToken"))


def _json(resp: requests.Response, key: str) -> Dict[str, Any]:
    try:
        return resp.json()
    except ValueError as e:
        raise FatalError("malformed JSON response", key=key, cause=e) from e


def _content_length(headers: Any) -> int:
    for name in ("x-goog-stored-content-length", "Content-Length"):
        raw = headers.get(name)
        if raw:
            try:
                return int(raw)
            except ValueError:
                continue
    return -1


def _error_detail(resp: requests.Response) -> str:
    try:
        return str(resp.json().get("error", {}).get("message", ""))[:200]
    except (ValueError, AttributeError):
        return (resp.text or "")[:200]


__all__ = [
    "ObjectClient",
    "GCSClient",
    "BlobReader",
    "PutResult",
    "ObjectEntry",
    "ListPage",
]
