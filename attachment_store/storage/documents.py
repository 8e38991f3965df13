"""Plain file document store for the notes and journal trees."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator
import logging
import os
import shutil
import tempfile

from attachment_store.config import ATTACHMENTS_DIR_NAME, DOCUMENT_EXTENSIONS
from attachment_store.errors import FileError
from attachment_store.util.paths import absolute_path


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Document:
    path: Path
    text: str


def is_document(path: Path) -> bool:
    return path.suffix.lower() in DOCUMENT_EXTENSIONS


def _walk_errors(pending: list[OSError]) -> Iterator[FileError]:
    while pending:
        exc = pending.pop(0)
        path = absolute_path(exc.filename) if exc.filename is not None else Path()
        yield FileError.from_exception(path, "scan", exc)


def iter_documents(tree_root: Path) -> Iterator[Document | FileError]:
    """Yield every document under ``tree_root`` in sorted walk order.

    Directories that cannot be listed and documents that cannot be read are
    yielded as :class:`FileError` so callers know the walk was incomplete.
    Attachment directories are pruned. A missing tree yields nothing.
    """
    root = Path(tree_root)
    if not root.is_dir():
        return

    pending: list[OSError] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=pending.append):
        yield from _walk_errors(pending)
        dirnames[:] = sorted(d for d in dirnames if d != ATTACHMENTS_DIR_NAME)
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if not is_document(path):
                continue
            path = absolute_path(path)
            try:
                text = read_document(path)
            except (OSError, UnicodeDecodeError) as exc:
                yield FileError.from_exception(path, "scan", exc)
                continue
            yield Document(path=path, text=text)
    yield from _walk_errors(pending)


def read_document(path: Path) -> str:
    # newline="" keeps CRLF line endings intact so rewrites are byte-exact.
    with Path(path).open("r", encoding="utf-8", newline="") as handle:
        return handle.read()


def write_document(path: Path, text: str) -> None:
    """Replace ``path`` atomically; the original stays intact if writing fails."""
    path = Path(path)
    handle = tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        newline="",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    tmp_path = Path(handle.name)
    try:
        with handle:
            handle.write(text)
        if path.exists():
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def list_documents(tree_root: Path) -> Iterator[Document]:
    for item in iter_documents(tree_root):
        if isinstance(item, FileError):
            logger.warning("Skipping unreadable %s: %s", item.path, item.message)
            continue
        yield item
