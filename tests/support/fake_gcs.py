from __future__ import annotations

import io
import threading
from typing import Callable, Dict, List, Optional, Tuple

from blobserver.adapters.storage.gcs_client import BlobReader, ListPage, ObjectEntry, PutResult
from blobserver.core.context import Context
from blobserver.core.exceptions import NotFoundError, TransientError


class FakeObjectClient:
    """
    In-memory ObjectClient with failure injection.

    Buckets are plain dicts of key -> bytes. Listing honours prefix, "/" as a
    delimiter, startOffset and page size the way the JSON API does.
    """

    def __init__(self, page_size: Optional[int] = None) -> None:
        self.buckets: Dict[str, Dict[str, bytes]] = {}
        self.page_size = page_size
        self.calls: List[Tuple[str, str, str]] = []
        self.put_count = 0
        self._fail: Dict[str, List[BaseException]] = {}
        self._hooks: Dict[str, Callable[[str, str], None]] = {}
        self._lock = threading.Lock()

    # --------------------------
    # Failure injection
    # --------------------------

    def fail_next(self, op: str, *errors: BaseException) -> None:
        """Queue errors raised by the next calls to ``op`` (put/get/stat/delete/list)."""
        self._fail.setdefault(op, []).extend(errors)

    def fail_transient(self, op: str, times: int = 1) -> None:
        self.fail_next(op, *[TransientError(f"injected {op} failure") for _ in range(times)])

    def on(self, op: str, hook: Callable[[str, str], None]) -> None:
        """Run ``hook(bucket, key)`` before every ``op`` call."""
        self._hooks[op] = hook

    def _enter(self, op: str, bucket: str, key: str) -> None:
        with self._lock:
            self.calls.append((op, bucket, key))
            queued = self._fail.get(op)
            err = queued.pop(0) if queued else None
        hook = self._hooks.get(op)
        if hook is not None:
            hook(bucket, key)
        if err is not None:
            raise err

    def objects(self, bucket: str) -> Dict[str, bytes]:
        return self.buckets.setdefault(bucket, {})

    # --------------------------
    # ObjectClient
    # --------------------------

    def put_object(self, bucket: str, key: str, data: bytes, *, ctx: Optional[Context] = None) -> PutResult:
        self._enter("put", bucket, key)
        with self._lock:
            store = self.objects(bucket)
            if key in store:
                return PutResult(exists=True)
            store[key] = bytes(data)
            self.put_count += 1
        return PutResult(exists=False)

    def get_object(self, bucket: str, key: str, *, ctx: Optional[Context] = None) -> Tuple[BlobReader, int]:
        self._enter("get", bucket, key)
        store = self.objects(bucket)
        if key not in store:
            raise NotFoundError("object not found", key=key)
        data = store[key]
        return BlobReader(io.BytesIO(data), key=key, ctx=ctx), len(data)

    def stat_object(self, bucket: str, key: str, *, ctx: Optional[Context] = None) -> Optional[int]:
        self._enter("stat", bucket, key)
        data = self.objects(bucket).get(key)
        return None if data is None else len(data)

    def delete_object(self, bucket: str, key: str, *, ctx: Optional[Context] = None) -> None:
        self._enter("delete", bucket, key)
        with self._lock:
            store = self.objects(bucket)
            if key not in store:
                raise NotFoundError("object not found", key=key)
            del store[key]

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
        self._enter("list", bucket, prefix)
        keys = sorted(
            k
            for k in self.objects(bucket)
            if k.startswith(prefix)
            and "/" not in k[len(prefix):]
            and (not start_offset or k >= start_offset)
        )
        start = int(page_token) if page_token else 0
        size = min(self.page_size or max_results, max_results)
        chunk = keys[start:start + size]
        nxt = str(start + size) if start + size < len(keys) else None
        store = self.objects(bucket)
        return ListPage(
            entries=[ObjectEntry(key=k, size=len(store[k])) for k in chunk],
            next_page_token=nxt,
        )
