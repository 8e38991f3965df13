"""Exceptions raised by the attachment store."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class AttachmentStoreError(Exception):
    """Base class for failures that abort an operation."""


class InventoryError(AttachmentStoreError):
    """A managed directory exists but could not be listed."""


class ImageDecodeError(AttachmentStoreError):
    """Inserted bytes could not be decoded as an image."""


class CleanupLockedError(AttachmentStoreError):
    """Another maintenance run holds the cleanup lock."""


@dataclass(frozen=True)
class FileError:
    """A per-file failure that was skipped during a run."""

    path: Path
    stage: str
    message: str

    @classmethod
    def from_exception(cls, path: Path, stage: str, exc: BaseException) -> "FileError":
        return cls(path=path, stage=stage, message=f"{type(exc).__name__}: {exc}")
