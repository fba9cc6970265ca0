# blobserver/adapters/storage/cloudstorage.py
from __future__ import annotations
"""
Blob storage on top of a Google Cloud Storage bucket.

Blobs are stored one object per blob, keyed by their reference, optionally
inside a virtual directory of the bucket ("bucket/some/dir/"). Objects outside
that directory are never listed, read or deleted through the blob contract.

Public API:
- CloudStorage.receive_blob(ref, source, size=None, ctx=None) -> SizedRef
- CloudStorage.fetch(ref, ctx=None)                           -> (BlobReader, size)
- CloudStorage.stat_blobs(refs, ctx=None)                     -> list[SizedRef]
- CloudStorage.enumerate_blobs(after="", limit=None, ctx=None)-> Iterator[SizedRef]
- CloudStorage.remove_blobs(refs, ctx=None)                   -> None
- CloudStorage.bucket_access()                                -> BucketAccess (test support)
- enumerate_all(storage, ctx=None)                            -> Iterator[SizedRef]
- new_from_config(obj, ...)                                   -> CloudStorage

Design notes:
- Put trusts content addressing: an existing object at the key is a no-op
  success and its bytes are not compared.
- Remote calls are retried per the injected RetryPolicy (2 attempts by default);
  a transient failure that exhausts the budget surfaces as FatalError.
- Deletion is not transactional: successful deletions are kept when others fail.
"""

import io
from concurrent.futures import ThreadPoolExecutor
from typing import Any, BinaryIO, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from loguru import logger

from blobserver.adapters.storage.gcs_client import BlobReader, GCSClient, ObjectClient
from blobserver.adapters.storage.oauth import RefreshTokenSource, TokenSource
from blobserver.config import Settings, StorageConfig, settings
from blobserver.core.blob import BlobRef, SizedRef
from blobserver.core.context import Context
from blobserver.core.exceptions import (
    BlobServerError,
    FatalError,
    NotFoundError,
    OperationCancelled,
    PartialFailureError,
)
from blobserver.core.keys import Namespace, from_key, to_key
from blobserver.core.retry import RetryPolicy
from blobserver.logging_utils import logging_context

Source = Union[bytes, bytearray, memoryview, BinaryIO]

# Page size for bucket listings.
LIST_PAGE_SIZE = 1000


def _read_source(source: Source, limit: int) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    read = getattr(source, "read", None)
    if not callable(read):
        raise TypeError(f"unsupported blob source {type(source).__name__}")
    buf = io.BytesIO()
    while buf.tell() <= limit:
        chunk = read(min(64 * 1024, limit + 1 - buf.tell()))
        if not chunk:
            break
        buf.write(chunk)
    return buf.getvalue()


class BucketAccess:
    """Raw access to bucket-root keys, bypassing the blob namespace.

    Only meant for tests and maintenance tooling that must seed or inspect
    objects the blob contract deliberately cannot see.
    """

    def __init__(self, client: ObjectClient, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    def put(self, key: str, data: bytes, retry: Optional[RetryPolicy] = None) -> None:
        policy = retry or RetryPolicy()
        policy.run(
            lambda: self.client.put_object(self.bucket, key, data),
            what=f"raw put {key}",
            key=key,
        )

    def get(self, key: str) -> bytes:
        reader, _ = self.client.get_object(self.bucket, key)
        with reader:
            return reader.read()

    def exists(self, key: str) -> bool:
        return self.client.stat_object(self.bucket, key) is not None

    def delete(self, key: str) -> None:
        self.client.delete_object(self.bucket, key)


class CloudStorage:
    """Blob storage adapter for one bucket namespace."""

    def __init__(
        self,
        config: StorageConfig,
        client: ObjectClient,
        *,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.config = config
        self.namespace: Namespace = config.namespace
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=config.put_attempts, backoff=config.retry_backoff
        )

    def __repr__(self) -> str:
        return f"CloudStorage(namespace={str(self.namespace)!r})"

    @property
    def bucket(self) -> str:
        return self.namespace.bucket

    def key_for(self, ref: BlobRef) -> str:
        return to_key(self.namespace, ref)

    def bucket_access(self) -> BucketAccess:
        return BucketAccess(self.client, self.namespace.bucket)

    # --------------------------
    # Blob contract
    # --------------------------

    def receive_blob(
        self,
        ref: BlobRef,
        source: Source,
        size: Optional[int] = None,
        ctx: Optional[Context] = None,
    ) -> SizedRef:
        """Store ``source`` under ``ref``; an existing object is left as-is."""
        ctx = ctx or Context.background()
        key = self.key_for(ref)
        mapped = from_key(self.namespace, key)
        if mapped is None or str(mapped) != str(ref):
            raise FatalError("blob ref does not map to a blob key", ref=ref, key=key)
        max_size = self.config.max_blob_size
        data = _read_source(source, max_size)
        if len(data) > max_size:
            raise FatalError(f"blob exceeds max size of {max_size} bytes", ref=ref, key=key)
        if size is not None and size != len(data):
            raise FatalError(
                f"declared size {size} does not match {len(data)} bytes read",
                ref=ref,
                key=key,
            )

        with logging_context(operation="put", namespace=str(self.namespace)):
            result = self.retry_policy.run(
                lambda: self.client.put_object(
                    self.bucket, key, data, ctx=ctx
                ),
                ctx=ctx,
                what=f"put {ref}",
                ref=ref,
                key=key,
            )
            if result.exists:
                logger.debug("put {}: already present at {}", ref, key)
            else:
                logger.debug("put {}: stored {} bytes at {}", ref, len(data), key)
        return SizedRef(ref, len(data))

    def fetch(self, ref: BlobRef, ctx: Optional[Context] = None) -> Tuple[BlobReader, int]:
        ctx = ctx or Context.background()
        key = self.key_for(ref)
        try:
            return self.retry_policy.run(
                lambda: self.client.get_object(
                    self.bucket, key, ctx=ctx
                ),
                ctx=ctx,
                what=f"fetch {ref}",
                ref=ref,
                key=key,
            )
        except NotFoundError as e:
            raise NotFoundError("blob not found", ref=ref, key=key, cause=e) from e

    def stat_blobs(
        self, refs: Iterable[BlobRef], ctx: Optional[Context] = None
    ) -> List[SizedRef]:
        """Sizes of the given blobs that exist; missing ones are omitted."""
        ctx = ctx or Context.background()
        out: List[SizedRef] = []
        for ref in dict.fromkeys(refs):
            key = self.key_for(ref)
            size = self.retry_policy.run(
                lambda: self.client.stat_object(
                    self.bucket, key, ctx=ctx
                ),
                ctx=ctx,
                what=f"stat {ref}",
                ref=ref,
                key=key,
            )
            if size is not None:
                out.append(SizedRef(ref, size))
        return out

    def enumerate_blobs(
        self,
        after: str = "",
        limit: Optional[int] = None,
        ctx: Optional[Context] = None,
    ) -> Iterator[SizedRef]:
        """Lazily yield blobs in key order, strictly after ``after``.

        Restart an interrupted walk by passing the last ref seen as ``after``.
        Objects whose key does not map back to a ref are skipped.
        """
        ctx = ctx or Context.background()
        if limit is not None and limit <= 0:
            return
        prefix = self.namespace.dir_prefix
        after_key = prefix + after if after else None
        page_token: Optional[str] = None
        yielded = 0
        while True:
            page = self.retry_policy.run(
                lambda: self.client.list_objects(
                    self.bucket,
                    prefix,
                    page_token=page_token,
                    start_offset=after_key,
                    max_results=LIST_PAGE_SIZE,
                    ctx=ctx,
                ),
                ctx=ctx,
                what=f"list {self.namespace}",
                key=prefix,
            )
            for entry in page.entries:
                if after_key is not None and entry.key <= after_key:
                    continue
                ref = from_key(self.namespace, entry.key)
                if ref is None:
                    logger.debug("enumerate: skipping non-blob key {}", entry.key)
                    continue
                yield SizedRef(ref, entry.size)
                yielded += 1
                if limit is not None and yielded >= limit:
                    return
            page_token = page.next_page_token
            if not page_token:
                return

    def remove_blobs(
        self, refs: Iterable[BlobRef], ctx: Optional[Context] = None
    ) -> None:
        """Delete blobs; absent ones count as removed.

        Raises:
            PartialFailureError: If any deletion failed. Successful deletions stay.
            OperationCancelled: If ``ctx`` was cancelled before all deletions ran.
        """
        ctx = ctx or Context.background()
        unique = list(dict.fromkeys(refs))
        if not unique:
            return

        def _remove(ref: BlobRef) -> Optional[BaseException]:
            key = self.key_for(ref)
            try:
                self.retry_policy.run(
                    lambda: self.client.delete_object(
                        self.bucket, key, ctx=ctx
                    ),
                    ctx=ctx,
                    what=f"remove {ref}",
                    ref=ref,
                    key=key,
                )
            except NotFoundError:
                logger.debug("remove {}: already absent", ref)
            except OperationCancelled:
                raise
            except BlobServerError as e:
                return e
            return None

        workers = min(self.config.remove_concurrency, len(unique))
        with logging_context(operation="remove", namespace=str(self.namespace)):
            with ThreadPoolExecutor(max_workers=workers) as executor:
                results = list(executor.map(_remove, unique))

            failed: Dict[BlobRef, BaseException] = {
                ref: err for ref, err in zip(unique, results) if err is not None
            }
            if failed:
                logger.error("remove: {} of {} deletion(s) failed", len(failed), len(unique))
                raise PartialFailureError(
                    failed, removed=[r for r in unique if r not in failed]
                )
            logger.debug("remove: deleted {} blob(s)", len(unique))


def enumerate_all(storage: CloudStorage, ctx: Optional[Context] = None) -> Iterator[SizedRef]:
    """Walk every blob in the namespace, resuming after each batch."""
    after = ""
    while True:
        batch = list(storage.enumerate_blobs(after=after, limit=LIST_PAGE_SIZE, ctx=ctx))
        yield from batch
        if len(batch) < LIST_PAGE_SIZE:
            return
        after = str(batch[-1].ref)


def new_from_config(
    obj: Mapping[str, Any],
    *,
    client: Optional[ObjectClient] = None,
    token_source: Optional[TokenSource] = None,
    retry_policy: Optional[RetryPolicy] = None,
    defaults: Optional[Settings] = None,
) -> CloudStorage:
    """Build a CloudStorage from a JSON-style config object.

    When no client is supplied, a GCSClient is created using ``token_source``
    or, failing that, a RefreshTokenSource from the ``auth`` section. Endpoints,
    timeouts and unset tuning knobs come from ``defaults`` (process settings
    when omitted).
    """
    s = defaults or settings
    config = StorageConfig.from_obj(obj, defaults=s)
    if client is None:
        if token_source is None:
            auth = config.auth
            token_source = RefreshTokenSource(
                auth.client_id,
                auth.client_secret,
                auth.refresh_token,
                token_url=s.token_url,
                timeout=s.http_timeout,
            )
        client = GCSClient(token_source, api_base=s.api_base, timeout=s.http_timeout)
    logger.info("cloudstorage: serving blobs from {}", config.namespace)
    return CloudStorage(config, client, retry_policy=retry_policy)


__all__ = [
    "CloudStorage",
    "BucketAccess",
    "enumerate_all",
    "new_from_config",
    "LIST_PAGE_SIZE",
]
