"""Content-addressed storage for pasted images."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import io
import logging
import os
import tempfile

from PIL import Image, UnidentifiedImageError

from attachment_store.config import ATTACHMENTS_DIR_NAME, IMAGES_SUBDIR_NAME
from attachment_store.errors import ImageDecodeError
from attachment_store.util.hashing import digest_prefix, sha256_bytes


logger = logging.getLogger(__name__)

STORED_FORMAT = "PNG"
STORED_EXTENSION = "png"


@dataclass(frozen=True)
class StoredFile:
    sha256: str
    path: Path
    size_bytes: int
    created: bool

    @property
    def filename(self) -> str:
        return self.path.name


def normalize_image(data: bytes) -> bytes:
    """Decode ``data`` and re-encode it as a metadata-free PNG.

    The same pixels always produce the same bytes, whatever format the
    clipboard delivered.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode not in ("1", "L", "LA", "RGB", "RGBA"):
                img = img.convert("RGBA" if "A" in img.getbands() or "transparency" in img.info else "RGB")
            pixels = Image.frombytes(img.mode, img.size, img.tobytes())
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"Failed to decode image: {exc}") from exc
    buffer = io.BytesIO()
    pixels.save(buffer, format=STORED_FORMAT)
    return buffer.getvalue()


class ContentAddressedStorage:
    """Centralized image directory of one managed tree.

    Files are named ``<base>-<digest prefix>.png``. An existing file with the
    computed name is trusted to hold the same content and is not re-read.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    @classmethod
    def for_tree(cls, tree_root: str | Path) -> "ContentAddressedStorage":
        return cls(Path(tree_root) / ATTACHMENTS_DIR_NAME / IMAGES_SUBDIR_NAME)

    def _path_for(self, sha256: str, base_name: str) -> Path:
        if not base_name or "/" in base_name or "\\" in base_name or base_name in (".", ".."):
            raise ValueError(f"Invalid attachment base name: {base_name!r}")
        return self.root / f"{base_name}-{digest_prefix(sha256)}.{STORED_EXTENSION}"

    def store_bytes(self, data: bytes, base_name: str = "image") -> StoredFile | None:
        if not data:
            logger.info("No image data to store")
            return None
        encoded = normalize_image(data)
        digest = sha256_bytes(encoded)
        path = self._path_for(digest, base_name)
        if path.exists():
            logger.info("Reusing existing attachment %s", path.name)
            return StoredFile(sha256=digest, path=path, size_bytes=path.stat().st_size, created=False)
        path.parent.mkdir(parents=True, exist_ok=True)
        _write_atomic(path, encoded)
        logger.info("Stored new attachment %s (%s bytes)", path.name, len(encoded))
        return StoredFile(sha256=digest, path=path, size_bytes=len(encoded), created=True)

    def insert(self, data: bytes, base_name: str = "image") -> str | None:
        """Store ``data`` and return the attachment filename, or None if empty."""
        stored = self.store_bytes(data, base_name)
        return stored.filename if stored else None


def relative_reference(filename: str) -> str:
    return f"{ATTACHMENTS_DIR_NAME}/{IMAGES_SUBDIR_NAME}/{filename}"


def embed_markup(filename: str, alt: str = "Pasted image") -> str:
    # Angle brackets keep paths with spaces intact.
    return f"![{alt}](<{relative_reference(filename)}>)"


def _write_atomic(path: Path, data: bytes) -> None:
    # A partial write must never appear under the digest name, which is trusted on reuse.
    handle = tempfile.NamedTemporaryFile(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False)
    tmp_path = Path(handle.name)
    try:
        with handle:
            handle.write(data)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
