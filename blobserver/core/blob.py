"""Content-addressed blob references."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from functools import total_ordering
from typing import NamedTuple, Optional

# Digest lengths (hex chars) of the hash functions we know about. Other names are
# accepted as long as the digest looks like hex so newer clients keep working.
KNOWN_DIGESTS = {
    "sha1": 40,
    "sha224": 56,
    "sha256": 64,
}

_HASHNAME_RE = re.compile(r"^[a-z][a-z0-9]*$")
_HEX_RE = re.compile(r"^[0-9a-f]+$")


def _valid(hashname: object, digest: object) -> bool:
    if not isinstance(hashname, str) or not isinstance(digest, str):
        return False
    if not _HASHNAME_RE.match(hashname) or not _HEX_RE.match(digest):
        return False
    want = KNOWN_DIGESTS.get(hashname)
    if want is not None:
        return len(digest) == want
    return len(digest) % 2 == 0


@total_ordering
@dataclass(frozen=True)
class BlobRef:
    """Immutable reference to a blob: hash function name plus lowercase hex digest.

    Construction validates both parts, so every ``BlobRef`` maps to exactly one
    object key and back.
    """

    hashname: str
    digest: str

    def __post_init__(self) -> None:
        if not _valid(self.hashname, self.digest):
            raise ValueError(f"invalid blob ref {self.hashname!r}-{self.digest!r}")

    @classmethod
    def parse(cls, value: str) -> "BlobRef":
        ref = cls.parse_ok(value)
        if ref is None:
            raise ValueError(f"invalid blob ref {value!r}")
        return ref

    @classmethod
    def parse_ok(cls, value: str) -> Optional["BlobRef"]:
        """Like :meth:`parse` but returns ``None`` for malformed input."""
        if not isinstance(value, str):
            return None
        hashname, sep, digest = value.partition("-")
        if not sep or not _valid(hashname, digest):
            return None
        return cls(hashname, digest)

    @classmethod
    def from_bytes(cls, data: bytes, hashname: str = "sha224") -> "BlobRef":
        h = hashlib.new(hashname)
        h.update(data)
        return cls(hashname, h.hexdigest())

    def __str__(self) -> str:
        return f"{self.hashname}-{self.digest}"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BlobRef):
            return NotImplemented
        return str(self) < str(other)


class SizedRef(NamedTuple):
    ref: BlobRef
    size: int

    def __str__(self) -> str:
        return f"[{self.ref}; {self.size} bytes]"


__all__ = ["BlobRef", "SizedRef", "KNOWN_DIGESTS"]
