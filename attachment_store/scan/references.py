"""Reference scanning over markdown documents."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator
import logging
import re

from attachment_store.config import ATTACHMENTS_DIR_NAME
from attachment_store.errors import FileError
from attachment_store.storage.documents import Document, iter_documents
from attachment_store.util.paths import absolute_path, has_segment, resolve_reference_path


logger = logging.getLogger(__name__)

# ![alt](path) or ![alt](<path with spaces>)
IMAGE_MARKER = re.compile(
    r"!\[(?P<alt>[^\]\n]*)\]\((?:<(?P<angled>[^>\n]+)>|(?P<bare>[^)\n]+))\)"
)


@dataclass(frozen=True)
class Reference:
    document: Path
    line: int
    raw_path: str
    resolved_path: Path


@dataclass(frozen=True)
class MarkerMatch:
    raw_path: str
    start: int
    end: int
    angled: bool


@dataclass(frozen=True)
class ReferenceSnapshot:
    references: tuple[Reference, ...]
    unreadable: tuple[FileError, ...]

    @property
    def reference_set(self) -> frozenset[Path]:
        return frozenset(ref.resolved_path for ref in self.references)

    @property
    def complete(self) -> bool:
        return not self.unreadable


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only so ``"\\n".join`` restores the text exactly."""
    return text.split("\n")


def find_markers(line: str) -> Iterator[MarkerMatch]:
    """Yield the path token span of every image marker on ``line``."""
    for match in IMAGE_MARKER.finditer(line):
        group = "angled" if match.group("angled") is not None else "bare"
        yield MarkerMatch(
            raw_path=match.group(group),
            start=match.start(group),
            end=match.end(group),
            angled=group == "angled",
        )


def references_in(
    document: Document,
    attachments_dir_name: str = ATTACHMENTS_DIR_NAME,
) -> Iterator[Reference]:
    base_dir = document.path.parent
    for line_no, line in enumerate(split_lines(document.text), start=1):
        for marker in find_markers(line):
            if not has_segment(marker.raw_path, attachments_dir_name):
                continue
            yield Reference(
                document=document.path,
                line=line_no,
                raw_path=marker.raw_path,
                resolved_path=resolve_reference_path(marker.raw_path, base_dir),
            )


class ReferenceScanner:
    """Scans the managed trees for embedded attachment references.

    Every call to :meth:`scan` walks the trees again, so the scanner can be
    re-run after documents change.
    """

    def __init__(
        self,
        tree_roots: Iterable[Path],
        attachments_dir_name: str = ATTACHMENTS_DIR_NAME,
    ) -> None:
        self.tree_roots = tuple(dict.fromkeys(absolute_path(root) for root in tree_roots))
        self.attachments_dir_name = attachments_dir_name

    def iter_documents(self) -> Iterator[Document | FileError]:
        for root in self.tree_roots:
            yield from iter_documents(root)

    def scan(self) -> Iterator[Reference]:
        for item in self.iter_documents():
            if isinstance(item, FileError):
                logger.warning("Skipping unreadable document %s: %s", item.path, item.message)
                continue
            yield from references_in(item, self.attachments_dir_name)

    def __iter__(self) -> Iterator[Reference]:
        return self.scan()

    def snapshot(self) -> ReferenceSnapshot:
        references: list[Reference] = []
        unreadable: list[FileError] = []
        for item in self.iter_documents():
            if isinstance(item, FileError):
                logger.warning("Skipping unreadable document %s: %s", item.path, item.message)
                unreadable.append(item)
                continue
            references.extend(references_in(item, self.attachments_dir_name))
        return ReferenceSnapshot(references=tuple(references), unreadable=tuple(unreadable))
