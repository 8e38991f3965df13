"""Attachment maintenance run: collect orphans, then deduplicate."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable
import logging

from attachment_store.cleanup.collector import CollectionResult, GarbageCollector, Removal, remove_attachment
from attachment_store.cleanup.dedup import DedupPlan, Deduplicator
from attachment_store.cleanup.rewriter import ReferenceRewriter, RewriteResult
from attachment_store.config import ATTACHMENTS_DIR_NAME
from attachment_store.errors import FileError
from attachment_store.scan.inventory import AttachmentInventory
from attachment_store.scan.references import ReferenceScanner


logger = logging.getLogger(__name__)


class Stage(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    COLLECTING = "collecting"
    RESCANNING = "rescanning"
    DEDUPLICATING = "deduplicating"
    REWRITING = "rewriting"
    DELETING = "deleting"


@dataclass(frozen=True)
class CleanupStats:
    bytes_freed: int = 0
    unused_deleted: int = 0
    duplicates_deleted: int = 0
    references_updated: int = 0
    errors: tuple[FileError, ...] = ()
    dry_run: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.bytes_freed or self.unused_deleted or self.duplicates_deleted or self.references_updated)


@dataclass(frozen=True)
class CleanupReport:
    stats: CleanupStats
    collection: CollectionResult
    plan: DedupPlan
    rewrites: tuple[RewriteResult, ...] = ()
    duplicate_removals: tuple[Removal, ...] = ()
    retained_duplicates: tuple[Path, ...] = field(default=())


class CleanupService:
    """Runs one maintenance pass over the managed trees.

    Stages always run in the same order. Orphans are collected before the
    inventory is re-read for deduplication, and a duplicate is only deleted
    after every document referencing it has been rewritten to the canonical
    file. If any document cannot be read the reference set is incomplete, so
    nothing is deleted in that run.
    """

    def __init__(
        self,
        tree_roots: Iterable[Path],
        dry_run: bool = False,
        attachments_dir_name: str = ATTACHMENTS_DIR_NAME,
        on_stage: Callable[[Stage], None] | None = None,
    ) -> None:
        self.tree_roots = tuple(tree_roots)
        self.dry_run = dry_run
        self.inventory = AttachmentInventory(self.tree_roots, attachments_dir_name)
        self.scanner = ReferenceScanner(self.tree_roots, attachments_dir_name)
        self.collector = GarbageCollector(dry_run=dry_run)
        self.deduplicator = Deduplicator()
        self.rewriter = ReferenceRewriter(self.scanner, dry_run=dry_run)
        self.on_stage = on_stage
        self.stage = Stage.IDLE

    def _enter(self, stage: Stage) -> None:
        self.stage = stage
        logger.debug("Cleanup stage: %s", stage.value)
        if self.on_stage is not None:
            self.on_stage(stage)

    def run(self) -> CleanupReport:
        try:
            return self._run()
        finally:
            self._enter(Stage.IDLE)

    def _run(self) -> CleanupReport:
        self._enter(Stage.SCANNING)
        inventory = self.inventory.collect()
        snapshot = self.scanner.snapshot()
        safe_to_delete = snapshot.complete
        if not safe_to_delete:
            logger.warning(
                "%s document(s) could not be read; no attachments will be deleted",
                len(snapshot.unreadable),
            )

        self._enter(Stage.COLLECTING)
        if safe_to_delete:
            collection = self.collector.collect(inventory, snapshot.reference_set)
        else:
            collection = CollectionResult(removals=())

        self._enter(Stage.RESCANNING)
        if self.dry_run:
            removed = set(collection.deleted)
            remaining = tuple(path for path in inventory if path not in removed)
        else:
            remaining = self.inventory.collect()

        self._enter(Stage.DEDUPLICATING)
        plan = self.deduplicator.plan(remaining)

        self._enter(Stage.REWRITING)
        rewrites = tuple(self.rewriter.rewrite(pair.duplicate, pair.canonical) for pair in plan.pairs)

        self._enter(Stage.DELETING)
        removals: list[Removal] = []
        retained: list[Path] = []
        for rewrite in rewrites:
            if not safe_to_delete or not rewrite.complete:
                logger.warning("Keeping duplicate %s: not every reference was updated", rewrite.duplicate)
                retained.append(rewrite.duplicate)
                continue
            if not rewrite.canonical.exists():
                logger.warning("Keeping duplicate %s: canonical %s is missing", rewrite.duplicate, rewrite.canonical)
                retained.append(rewrite.duplicate)
                continue
            removals.append(remove_attachment(rewrite.duplicate, "duplicate", dry_run=self.dry_run))

        errors: list[FileError] = list(snapshot.unreadable)
        errors.extend(collection.errors)
        errors.extend(plan.errors)
        for rewrite in rewrites:
            errors.extend(rewrite.errors)
        errors.extend(r.error for r in removals if r.error is not None)

        stats = CleanupStats(
            bytes_freed=collection.bytes_freed + sum(r.bytes_freed for r in removals),
            unused_deleted=collection.deleted_count,
            duplicates_deleted=sum(1 for r in removals if r.removed),
            references_updated=sum(rewrite.references_updated for rewrite in rewrites),
            errors=tuple(dict.fromkeys(errors)),
            dry_run=self.dry_run,
        )
        logger.info(
            "Cleanup finished: %s unused, %s duplicates deleted, %s references updated, %s bytes freed",
            stats.unused_deleted,
            stats.duplicates_deleted,
            stats.references_updated,
            stats.bytes_freed,
        )
        return CleanupReport(
            stats=stats,
            collection=collection,
            plan=plan,
            rewrites=rewrites,
            duplicate_removals=tuple(removals),
            retained_duplicates=tuple(retained),
        )
