from pathlib import Path

from conftest import write_file

from attachment_store.cleanup.rewriter import ReferenceRewriter, rewrite_text
from attachment_store.scan.references import Reference, ReferenceScanner


def _ref(line, raw):
    return Reference(document=Path("/doc.md"), line=line, raw_path=raw, resolved_path=Path("/x"))


def test_rewrite_text_only_touches_matching_line():
    text = "see ![dup](.attachments/b.png) here\n![dup](.attachments/b.png)\n"
    updated, count = rewrite_text(text, [_ref(1, ".attachments/b.png")], ".attachments/a.png")
    assert count == 1
    assert updated == "see ![dup](.attachments/a.png) here\n![dup](.attachments/b.png)\n"


def test_rewrite_text_leaves_plain_text_occurrences():
    text = "path .attachments/b.png ![alt text](.attachments/b.png) [l](.attachments/b.png)"
    updated, count = rewrite_text(text, [_ref(1, ".attachments/b.png")], "new.png")
    assert count == 1
    assert updated == "path .attachments/b.png ![alt text](new.png) [l](.attachments/b.png)"


def test_rewrite_text_keeps_angle_brackets_and_crlf():
    text = "![p](<.attachments/my pic.png>) tail\r\nnext\r\n"
    updated, count = rewrite_text(text, [_ref(1, ".attachments/my pic.png")], ".attachments/a.png")
    assert count == 1
    assert updated == "![p](<.attachments/a.png>) tail\r\nnext\r\n"


def test_rewrite_text_wraps_paths_with_spaces():
    updated, _ = rewrite_text("![p](.attachments/b.png)", [_ref(1, ".attachments/b.png")], "my dir/a.png")
    assert updated == "![p](<my dir/a.png>)"


def test_rewriter_uses_relative_path_per_document(trees):
    notes, _ = trees
    canonical = write_file(notes / ".attachments" / "imgs" / "a.png", b"same")
    duplicate = write_file(notes / ".attachments" / "imgs" / "b.png", b"same")
    top = write_file(notes / "top.md", "![x](.attachments/imgs/b.png)\n")
    nested = write_file(notes / "sub" / "nested.md", "line\n![y](../.attachments/imgs/b.png) after\n")

    result = ReferenceRewriter(ReferenceScanner(trees)).rewrite(duplicate, canonical)

    assert result.complete
    assert result.references_updated == 2
    assert top.read_text() == "![x](.attachments/imgs/a.png)\n"
    assert nested.read_text() == "line\n![y](../.attachments/imgs/a.png) after\n"


def test_failed_write_is_reported(trees):
    notes, _ = trees
    canonical = write_file(notes / ".attachments" / "a.png", b"same")
    duplicate = write_file(notes / ".attachments" / "b.png", b"same")
    doc = write_file(notes / "a.md", "![x](.attachments/b.png)\n")

    def failing_writer(path, text):
        raise PermissionError("read-only")

    result = ReferenceRewriter(ReferenceScanner(trees), writer=failing_writer).rewrite(duplicate, canonical)

    assert not result.complete
    assert result.references_updated == 0
    assert [err.path for err in result.errors] == [doc]
    assert doc.read_text() == "![x](.attachments/b.png)\n"


def test_dry_run_does_not_write(trees):
    notes, _ = trees
    canonical = write_file(notes / ".attachments" / "a.png", b"same")
    duplicate = write_file(notes / ".attachments" / "b.png", b"same")
    doc = write_file(notes / "a.md", "![x](.attachments/b.png)\n")

    result = ReferenceRewriter(ReferenceScanner(trees), dry_run=True).rewrite(duplicate, canonical)

    assert result.references_updated == 1
    assert doc.read_text() == "![x](.attachments/b.png)\n"
