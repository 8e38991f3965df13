from conftest import write_file

from attachment_store.cleanup.dedup import Deduplicator
from attachment_store.util.hashing import sha256_bytes


def test_plan_groups_by_content(tmp_path):
    a = write_file(tmp_path / "a.png", b"same")
    b = write_file(tmp_path / "b.png", b"other")
    c = write_file(tmp_path / "c.png", b"same")
    d = write_file(tmp_path / "d.png", b"same")
    plan = Deduplicator().plan([a, b, c, d])
    assert len(plan.groups) == 1
    group = plan.groups[0]
    assert group.digest == sha256_bytes(b"same")
    assert group.canonical == a
    assert plan.as_mapping() == {c: a, d: a}


def test_canonical_follows_inventory_order(tmp_path):
    a = write_file(tmp_path / "a.png", b"same")
    b = write_file(tmp_path / "b.png", b"same")
    assert Deduplicator().plan([b, a]).as_mapping() == {a: b}


def test_plan_without_duplicates(tmp_path):
    a = write_file(tmp_path / "a.png", b"1")
    b = write_file(tmp_path / "b.png", b"2")
    plan = Deduplicator().plan([a, b])
    assert plan.groups == ()
    assert plan.pairs == ()


def test_unreadable_files_are_reported(tmp_path):
    a = write_file(tmp_path / "a.png", b"1")
    plan = Deduplicator().plan([a, tmp_path / "missing.png"])
    assert plan.groups == ()
    assert [err.stage for err in plan.errors] == ["hash"]


def test_plan_does_not_touch_files(tmp_path):
    a = write_file(tmp_path / "a.png", b"same")
    b = write_file(tmp_path / "b.png", b"same")
    Deduplicator().plan([a, b])
    assert a.exists() and b.exists()
