"""Enumeration of attachment files under the managed trees."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator
import logging
import os

from attachment_store.config import ATTACHMENTS_DIR_NAME, IMAGE_EXTENSIONS
from attachment_store.errors import InventoryError
from attachment_store.util.paths import absolute_path


logger = logging.getLogger(__name__)


def is_image(path: Path, extensions: frozenset[str] = IMAGE_EXTENSIONS) -> bool:
    return path.suffix.lower() in extensions


class AttachmentInventory:
    """Lists image files stored in attachment directories.

    Trees are visited in the order given; paths within a tree are sorted by
    their components so the first-seen file of a duplicate group is the same
    on every filesystem.
    """

    def __init__(
        self,
        tree_roots: Iterable[Path],
        attachments_dir_name: str = ATTACHMENTS_DIR_NAME,
        image_extensions: frozenset[str] = IMAGE_EXTENSIONS,
    ) -> None:
        self.tree_roots = tuple(dict.fromkeys(absolute_path(root) for root in tree_roots))
        self.attachments_dir_name = attachments_dir_name
        self.image_extensions = frozenset(ext.lower() for ext in image_extensions)

    def _walk_tree(self, root: Path) -> Iterator[Path]:
        def _on_error(exc: OSError) -> None:
            if exc.filename is not None and absolute_path(exc.filename) == root:
                raise InventoryError(f"Cannot list attachment tree {root}: {exc.strerror}") from exc
            logger.warning("Skipping unreadable directory %s: %s", exc.filename, exc.strerror)

        for dirpath, _dirnames, filenames in os.walk(root, onerror=_on_error):
            current = Path(dirpath)
            if self.attachments_dir_name not in current.relative_to(root).parts:
                continue
            for filename in filenames:
                path = current / filename
                if is_image(path, self.image_extensions):
                    yield absolute_path(path)

    def collect(self) -> tuple[Path, ...]:
        paths: list[Path] = []
        for root in self.tree_roots:
            if not root.exists():
                logger.debug("Attachment tree %s does not exist", root)
                continue
            paths.extend(sorted(self._walk_tree(root), key=lambda p: p.parts))
        logger.info("Found %s attachments", len(paths))
        return tuple(dict.fromkeys(paths))
