"""Main orchestration logic for maintenance runs and insertion."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator
import fcntl
import logging

from attachment_store.cleanup.service import CleanupReport, CleanupService, CleanupStats, Stage
from attachment_store.config import AppConfig
from attachment_store.db.repo import Repository
from attachment_store.db.session import init_db, make_engine, make_session_factory
from attachment_store.errors import CleanupLockedError
from attachment_store.storage.cas import ContentAddressedStorage
from attachment_store.util.json import make_json_safe


logger = logging.getLogger(__name__)

TREES = ("notes", "journal")


@contextmanager
def cleanup_lock(lock_path: Path) -> Iterator[None]:
    """Advisory exclusive lock held for the duration of a run."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    handle = lock_path.open("w")
    try:
        try:
            fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            raise CleanupLockedError(f"Another attachment maintenance run holds {lock_path}") from exc
        try:
            yield
        finally:
            fcntl.flock(handle, fcntl.LOCK_UN)
    finally:
        handle.close()


def tree_root(config: AppConfig, tree: str) -> Path:
    if tree == "notes":
        return config.notes_dir
    if tree == "journal":
        return config.journal_dir
    raise ValueError(f"Unknown tree {tree!r}, expected one of {', '.join(TREES)}")


def run_cleanup(
    config: AppConfig,
    dry_run: bool = False,
    on_stage: Callable[[Stage], None] | None = None,
) -> CleanupStats:
    with cleanup_lock(config.lock_path):
        engine = make_engine(config.db_url)
        init_db(engine)
        session_factory = make_session_factory(engine=engine)

        with session_factory() as session:
            repo = Repository(session)
            run = repo.start_run(dry_run=dry_run)
            service = CleanupService(config.tree_roots, dry_run=dry_run, on_stage=on_stage)
            try:
                report = service.run()
            except Exception as exc:
                logger.exception("Cleanup run %s failed", run.run_id)
                repo.finish_run(run.run_id, status="failed", stats={"error": str(exc)})
                raise

            repo.add_events(run.run_id, _events_from_report(report))
            repo.finish_run(run.run_id, status="completed", stats=_stats_payload(report.stats))
            return report.stats


def insert_attachment(
    config: AppConfig,
    data: bytes,
    tree: str = "notes",
    base_name: str = "image",
) -> str | None:
    storage = ContentAddressedStorage.for_tree(tree_root(config, tree))
    with cleanup_lock(config.lock_path):
        return storage.insert(data, base_name)


def _stats_payload(stats: CleanupStats) -> dict:
    return {
        "bytes_freed": stats.bytes_freed,
        "unused_deleted": stats.unused_deleted,
        "duplicates_deleted": stats.duplicates_deleted,
        "references_updated": stats.references_updated,
        "errors": len(stats.errors),
    }


def _events_from_report(report: CleanupReport) -> list[dict]:
    deleted_status = "planned" if report.stats.dry_run else "deleted"
    events: list[dict] = []

    for removal in report.collection.removals:
        events.append(
            {
                "stage": "unused",
                "path": str(removal.path),
                "status": deleted_status if removal.removed else "error",
                "size_bytes": removal.size_bytes,
                "error_message": removal.error.message if removal.error else None,
            }
        )

    for rewrite in report.rewrites:
        for doc in rewrite.documents:
            events.append(
                {
                    "stage": "rewrite",
                    "path": str(doc.document),
                    "target_path": str(rewrite.canonical),
                    "status": "updated" if doc.ok else "error",
                    "error_message": doc.error.message if doc.error else None,
                }
            )

    canonical_for = report.plan.as_mapping()
    for removal in report.duplicate_removals:
        events.append(
            {
                "stage": "duplicate",
                "path": str(removal.path),
                "target_path": str(canonical_for.get(removal.path, "")) or None,
                "status": deleted_status if removal.removed else "error",
                "size_bytes": removal.size_bytes,
                "error_message": removal.error.message if removal.error else None,
            }
        )
    for path in report.retained_duplicates:
        events.append(
            {
                "stage": "duplicate",
                "path": str(path),
                "target_path": str(canonical_for.get(path, "")) or None,
                "status": "retained",
            }
        )

    logged = {(e["stage"], e["path"]) for e in events if e["status"] == "error"}
    for error in make_json_safe(list(report.stats.errors)):
        if (error["stage"], error["path"]) in logged:
            continue
        events.append(
            {
                "stage": error["stage"],
                "path": error["path"],
                "status": "error",
                "error_message": error["message"],
            }
        )
    return events
