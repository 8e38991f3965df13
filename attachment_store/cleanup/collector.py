"""Mark-and-sweep removal of unreferenced attachments."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import AbstractSet, Sequence
import logging
import os

from attachment_store.errors import FileError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Removal:
    path: Path
    removed: bool
    size_bytes: int | None = None
    error: FileError | None = None

    @property
    def bytes_freed(self) -> int:
        if not self.removed or self.size_bytes is None:
            return 0
        return self.size_bytes


def remove_attachment(path: Path, stage: str, dry_run: bool = False) -> Removal:
    """Stat then delete one attachment. Failures are reported, never raised."""
    size: int | None
    try:
        size = path.stat().st_size
    except OSError as exc:
        logger.debug("Could not stat %s: %s", path, exc)
        size = None
    if dry_run:
        return Removal(path=path, removed=True, size_bytes=size)
    try:
        os.remove(path)
    except OSError as exc:
        logger.warning("Failed to delete %s: %s", path, exc)
        return Removal(path=path, removed=False, size_bytes=size, error=FileError.from_exception(path, stage, exc))
    logger.info("Deleted %s attachment %s", stage, path)
    return Removal(path=path, removed=True, size_bytes=size)


@dataclass(frozen=True)
class CollectionResult:
    removals: tuple[Removal, ...]

    @property
    def deleted(self) -> tuple[Path, ...]:
        return tuple(r.path for r in self.removals if r.removed)

    @property
    def deleted_count(self) -> int:
        return sum(1 for r in self.removals if r.removed)

    @property
    def bytes_freed(self) -> int:
        return sum(r.bytes_freed for r in self.removals)

    @property
    def errors(self) -> tuple[FileError, ...]:
        return tuple(r.error for r in self.removals if r.error is not None)


def find_orphans(inventory: Sequence[Path], reference_set: AbstractSet[Path]) -> tuple[Path, ...]:
    """Inventory minus the reference set, in inventory order."""
    return tuple(path for path in inventory if path not in reference_set)


class GarbageCollector:
    def __init__(self, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    def collect(self, inventory: Sequence[Path], reference_set: AbstractSet[Path]) -> CollectionResult:
        orphans = find_orphans(inventory, reference_set)
        logger.info("Found %s unreferenced attachments out of %s", len(orphans), len(inventory))
        removals = tuple(remove_attachment(path, "unused", dry_run=self.dry_run) for path in orphans)
        return CollectionResult(removals=removals)
