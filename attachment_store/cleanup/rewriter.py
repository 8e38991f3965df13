"""Rewrites document references from a duplicate to its canonical file."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable
import logging

from attachment_store.errors import FileError
from attachment_store.scan.references import Reference, ReferenceScanner, find_markers, split_lines
from attachment_store.storage.documents import read_document, write_document
from attachment_store.util.paths import absolute_path, relative_markdown_path


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentRewrite:
    document: Path
    references_updated: int
    error: FileError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RewriteResult:
    duplicate: Path
    canonical: Path
    documents: tuple[DocumentRewrite, ...]
    scan_errors: tuple[FileError, ...] = ()

    @property
    def references_updated(self) -> int:
        return sum(doc.references_updated for doc in self.documents if doc.ok)

    @property
    def errors(self) -> tuple[FileError, ...]:
        return self.scan_errors + tuple(doc.error for doc in self.documents if doc.error is not None)

    @property
    def complete(self) -> bool:
        """True when every document referencing the duplicate was rewritten."""
        return not self.errors


def rewrite_text(text: str, references: Iterable[Reference], new_path: str) -> tuple[str, int]:
    """Replace the path token of each reference on its own line.

    Only markers whose raw path equals a reference's literal raw path are
    touched; every other byte of the text is preserved.
    """
    wanted: dict[int, set[str]] = {}
    for ref in references:
        wanted.setdefault(ref.line, set()).add(ref.raw_path)

    lines = split_lines(text)
    replaced = 0
    for line_no, raw_paths in wanted.items():
        if line_no < 1 or line_no > len(lines):
            continue
        line = lines[line_no - 1]
        spans = [m for m in find_markers(line) if m.raw_path in raw_paths]
        for marker in reversed(spans):
            token = new_path
            if not marker.angled and any(ch.isspace() for ch in new_path):
                token = f"<{new_path}>"
            line = line[: marker.start] + token + line[marker.end :]
            replaced += 1
        lines[line_no - 1] = line
    return "\n".join(lines), replaced


class ReferenceRewriter:
    def __init__(
        self,
        scanner: ReferenceScanner,
        dry_run: bool = False,
        reader: Callable[[Path], str] = read_document,
        writer: Callable[[Path, str], None] = write_document,
    ) -> None:
        self.scanner = scanner
        self.dry_run = dry_run
        self.reader = reader
        self.writer = writer

    def rewrite(self, duplicate: Path, canonical: Path) -> RewriteResult:
        duplicate = absolute_path(duplicate)
        canonical = absolute_path(canonical)
        snapshot = self.scanner.snapshot()

        grouped: dict[Path, list[Reference]] = {}
        for ref in snapshot.references:
            if ref.resolved_path == duplicate:
                grouped.setdefault(ref.document, []).append(ref)

        documents = tuple(
            self._rewrite_document(document, refs, canonical) for document, refs in grouped.items()
        )
        return RewriteResult(
            duplicate=duplicate,
            canonical=canonical,
            documents=documents,
            scan_errors=snapshot.unreadable,
        )

    def _rewrite_document(self, document: Path, refs: list[Reference], canonical: Path) -> DocumentRewrite:
        new_path = relative_markdown_path(canonical, document.parent)
        try:
            text = self.reader(document)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s for rewrite: %s", document, exc)
            return DocumentRewrite(document, 0, FileError.from_exception(document, "rewrite", exc))

        updated, count = rewrite_text(text, refs, new_path)
        if count < len(refs):
            logger.warning("%s changed during rewrite, leaving it untouched", document)
            return DocumentRewrite(
                document,
                0,
                FileError(path=document, stage="rewrite", message="references changed since scan"),
            )
        if not self.dry_run:
            try:
                self.writer(document, updated)
            except OSError as exc:
                logger.warning("Could not write %s: %s", document, exc)
                return DocumentRewrite(document, 0, FileError.from_exception(document, "rewrite", exc))
        logger.info("Updated %s reference(s) in %s -> %s", count, document, new_path)
        return DocumentRewrite(document, count)
