import pytest

from conftest import make_image_bytes, write_file

from attachment_store.cleanup.service import CleanupService
from attachment_store.config import AppConfig, default_db_url
from attachment_store.db.repo import Repository
from attachment_store.db.session import make_session_factory
from attachment_store.errors import CleanupLockedError
from attachment_store.pipeline.orchestrator import cleanup_lock, insert_attachment, run_cleanup


def _config(tmp_path):
    data_dir = tmp_path / "data"
    return AppConfig(
        data_dir=data_dir,
        notes_dir=tmp_path / "notes",
        journal_dir=tmp_path / "journal",
        db_url=default_db_url(data_dir),
    )


def test_run_cleanup_records_run_and_events(tmp_path):
    config = _config(tmp_path)
    write_file(config.notes_dir / ".attachments" / "orphan.png", b"1234")
    write_file(config.notes_dir / ".attachments" / "a.png", b"same")
    write_file(config.notes_dir / ".attachments" / "b.png", b"same")
    write_file(config.notes_dir / "n.md", "![a](.attachments/a.png) ![b](.attachments/b.png)\n")

    stats = run_cleanup(config)

    assert stats.unused_deleted == 1
    assert stats.duplicates_deleted == 1
    assert stats.references_updated == 1

    with make_session_factory(config.db_url)() as session:
        repo = Repository(session)
        (run,) = repo.recent_runs()
        assert run.status == "completed"
        assert run.stats["bytes_freed"] == stats.bytes_freed
        events = repo.events_for_run(run.run_id)
        assert sorted((e.stage, e.status) for e in events) == [
            ("duplicate", "deleted"),
            ("rewrite", "updated"),
            ("unused", "deleted"),
        ]


def test_dry_run_is_recorded_as_planned(tmp_path):
    config = _config(tmp_path)
    orphan = write_file(config.notes_dir / ".attachments" / "orphan.png", b"1234")

    stats = run_cleanup(config, dry_run=True)

    assert stats.unused_deleted == 1
    assert orphan.exists()
    with make_session_factory(config.db_url)() as session:
        repo = Repository(session)
        (run,) = repo.recent_runs()
        assert run.dry_run
        assert [e.status for e in repo.events_for_run(run.run_id)] == ["planned"]


def test_concurrent_run_is_rejected(tmp_path):
    config = _config(tmp_path)
    with cleanup_lock(config.lock_path):
        with pytest.raises(CleanupLockedError):
            run_cleanup(config)
    assert run_cleanup(config).is_empty


def test_insert_attachment_into_tree(tmp_path):
    config = _config(tmp_path)
    first = insert_attachment(config, make_image_bytes(), tree="journal")
    second = insert_attachment(config, make_image_bytes(), tree="journal")
    assert first == second
    assert (config.journal_dir / ".attachments" / "imgs" / first).exists()


def test_insert_attachment_unknown_tree(tmp_path):
    with pytest.raises(ValueError):
        insert_attachment(_config(tmp_path), make_image_bytes(), tree="archive")


def test_unexpected_failure_marks_run_failed(tmp_path, monkeypatch):
    config = _config(tmp_path)

    def explode(self):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(CleanupService, "run", explode)
    with pytest.raises(RuntimeError):
        run_cleanup(config)

    with make_session_factory(config.db_url)() as session:
        (run,) = Repository(session).recent_runs()
        assert run.status == "failed"
        assert run.stats == {"error": "disk on fire"}
        assert run.finished_at is not None
