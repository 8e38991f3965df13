"""Content digest helpers."""

from __future__ import annotations

import hashlib
from pathlib import Path

DIGEST_PREFIX_LENGTH = 12


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str:
    hasher = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def digest_prefix(digest: str, length: int = DIGEST_PREFIX_LENGTH) -> str:
    if length <= 0 or length > len(digest):
        raise ValueError(f"prefix length must be between 1 and {len(digest)}")
    return digest[:length]
