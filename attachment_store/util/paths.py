"""Path normalization shared by the scanner, inventory and rewriter."""

from __future__ import annotations

from pathlib import Path
import os


def absolute_path(path: str | os.PathLike) -> Path:
    """Absolute, lexically normalized path. Symlinks are not followed."""
    return Path(os.path.abspath(path))


def resolve_reference_path(raw_path: str, base_dir: Path) -> Path:
    if os.path.isabs(raw_path):
        return absolute_path(raw_path)
    return absolute_path(os.path.join(base_dir, raw_path))


def relative_markdown_path(target: Path, from_dir: Path) -> str:
    """Relative path from ``from_dir`` to ``target`` using forward slashes."""
    return os.path.relpath(target, from_dir).replace(os.sep, "/")


def has_segment(raw_path: str, segment: str) -> bool:
    return segment in raw_path.replace("\\", "/").split("/")
