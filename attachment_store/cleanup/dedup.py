"""Content-digest grouping of attachments."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence
import logging

from attachment_store.errors import FileError
from attachment_store.util.hashing import sha256_file


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DigestGroup:
    digest: str
    members: tuple[Path, ...]

    @property
    def canonical(self) -> Path:
        return self.members[0]

    @property
    def duplicates(self) -> tuple[Path, ...]:
        return self.members[1:]


@dataclass(frozen=True)
class DuplicatePair:
    duplicate: Path
    canonical: Path
    digest: str


@dataclass(frozen=True)
class DedupPlan:
    groups: tuple[DigestGroup, ...]
    errors: tuple[FileError, ...] = ()

    @property
    def pairs(self) -> tuple[DuplicatePair, ...]:
        return tuple(
            DuplicatePair(duplicate=dup, canonical=group.canonical, digest=group.digest)
            for group in self.groups
            for dup in group.duplicates
        )

    def as_mapping(self) -> dict[Path, Path]:
        return {pair.duplicate: pair.canonical for pair in self.pairs}


class Deduplicator:
    """Plans duplicate removal; never touches the filesystem beyond reading.

    The first file of each digest group in inventory order is canonical.
    """

    def __init__(self, hasher: Callable[[Path], str] = sha256_file) -> None:
        self.hasher = hasher

    def plan(self, inventory: Sequence[Path]) -> DedupPlan:
        members: dict[str, list[Path]] = {}
        errors: list[FileError] = []
        for path in inventory:
            try:
                digest = self.hasher(path)
            except OSError as exc:
                logger.warning("Could not hash %s: %s", path, exc)
                errors.append(FileError.from_exception(path, "hash", exc))
                continue
            members.setdefault(digest, []).append(path)

        groups = tuple(
            DigestGroup(digest=digest, members=tuple(paths))
            for digest, paths in members.items()
            if len(paths) > 1
        )
        logger.info(
            "Found %s duplicate attachments in %s groups",
            sum(len(group.duplicates) for group in groups),
            len(groups),
        )
        return DedupPlan(groups=groups, errors=tuple(errors))
