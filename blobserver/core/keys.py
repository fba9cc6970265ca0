"""Mapping between blob references and qualified object keys.

A qualified key is ``<dir prefix><ref>``, for example ``bl/obs/sha224-...``.
Because the prefix is shared by every key in a namespace, the lexicographic
order of keys matches the canonical (string) order of blob references, so
listings come back already sorted and can be resumed from any reference.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from blobserver.core.blob import BlobRef
from blobserver.core.exceptions import ConfigError


@dataclass(frozen=True)
class Namespace:
    """A bucket plus an optional virtual directory inside it."""

    bucket: str
    dir_prefix: str = ""

    @classmethod
    def parse(cls, value: str) -> "Namespace":
        """Split ``"bucket/some/dir/"`` into bucket and ``"some/dir/"``.

        Raises:
            ConfigError: If the bucket is empty or the directory has empty,
                ``.`` or ``..`` segments.
        """
        if not isinstance(value, str):
            raise ConfigError(f"bucket must be a string, got {type(value).__name__}")
        bucket, _, rest = value.strip().partition("/")
        if not bucket:
            raise ConfigError(f"missing bucket name in {value!r}")
        rest = rest.strip("/")
        if not rest:
            return cls(bucket)
        segments = rest.split("/")
        if any(seg in ("", ".", "..") for seg in segments):
            raise ConfigError(f"invalid bucket directory {rest!r}")
        return cls(bucket, "/".join(segments) + "/")

    @property
    def has_dir(self) -> bool:
        return bool(self.dir_prefix)

    def __str__(self) -> str:
        return f"{self.bucket}/{self.dir_prefix}" if self.dir_prefix else self.bucket


def to_key(ns: Namespace, ref: BlobRef) -> str:
    return ns.dir_prefix + str(ref)


def from_key(ns: Namespace, key: str) -> Optional[BlobRef]:
    """Return the blob ref stored at ``key``, or ``None`` if it is not a blob key.

    Keys outside the namespace, keys in nested directories and keys that do not
    parse as a blob ref are all "not a blob key"; callers skip them.
    """
    if not key.startswith(ns.dir_prefix):
        return None
    rest = key[len(ns.dir_prefix):]
    if "/" in rest:
        return None
    return BlobRef.parse_ok(rest)


__all__ = ["Namespace", "to_key", "from_key"]
