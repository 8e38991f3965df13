import os

from conftest import write_file

from attachment_store.cleanup.collector import GarbageCollector, find_orphans


def test_find_orphans_preserves_inventory_order(tmp_path):
    a, b, c = tmp_path / "a.png", tmp_path / "b.png", tmp_path / "c.png"
    assert find_orphans([a, b, c], {b}) == (a, c)


def test_collect_deletes_orphans_and_counts_bytes(tmp_path):
    kept = write_file(tmp_path / ".attachments" / "kept.png", b"12345")
    orphan = write_file(tmp_path / ".attachments" / "orphan.png", b"1234567")
    result = GarbageCollector().collect([kept, orphan], {kept})
    assert result.deleted == (orphan,)
    assert result.deleted_count == 1
    assert result.bytes_freed == 7
    assert kept.exists()
    assert not orphan.exists()


def test_collect_is_idempotent(tmp_path):
    kept = write_file(tmp_path / "kept.png", b"1")
    orphan = write_file(tmp_path / "orphan.png", b"2")
    collector = GarbageCollector()
    collector.collect([kept, orphan], {kept})
    second = collector.collect([kept], {kept})
    assert second.deleted_count == 0
    assert second.bytes_freed == 0


def test_failed_delete_is_skipped(tmp_path, monkeypatch):
    stuck = write_file(tmp_path / "stuck.png", b"123")
    gone = write_file(tmp_path / "gone.png", b"12")
    real_remove = os.remove

    def fake_remove(path):
        if os.fspath(path) == os.fspath(stuck):
            raise PermissionError("denied")
        real_remove(path)

    monkeypatch.setattr(os, "remove", fake_remove)
    result = GarbageCollector().collect([stuck, gone], set())
    assert result.deleted == (gone,)
    assert result.bytes_freed == 2
    assert [err.path for err in result.errors] == [stuck]
    assert stuck.exists()


def test_missing_file_is_not_counted(tmp_path):
    missing = tmp_path / "missing.png"
    result = GarbageCollector().collect([missing], set())
    assert result.deleted_count == 0
    assert result.bytes_freed == 0
    assert len(result.errors) == 1


def test_dry_run_keeps_files(tmp_path):
    orphan = write_file(tmp_path / "orphan.png", b"1234")
    result = GarbageCollector(dry_run=True).collect([orphan], set())
    assert result.deleted_count == 1
    assert result.bytes_freed == 4
    assert orphan.exists()
