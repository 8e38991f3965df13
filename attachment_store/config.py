"""Configuration loading for the attachment store."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os

ATTACHMENTS_DIR_NAME = ".attachments"
IMAGES_SUBDIR_NAME = "imgs"
DOCUMENT_EXTENSIONS = frozenset({".md", ".markdown"})
IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp"})


@dataclass(frozen=True)
class AppConfig:
    data_dir: Path
    notes_dir: Path
    journal_dir: Path
    db_url: str
    log_level: str = "INFO"
    log_file: str | None = None

    @property
    def tree_roots(self) -> tuple[Path, Path]:
        return (self.notes_dir, self.journal_dir)

    @property
    def lock_path(self) -> Path:
        return self.data_dir / "cleanup.lock"


def default_db_url(data_dir: Path) -> str:
    return f"sqlite:///{data_dir / 'attachment_store.db'}"


def load_config() -> AppConfig:
    data_dir = Path(
        os.getenv("ATTACHMENT_STORE_DATA_DIR", str(Path.home() / ".notetkr"))
    ).expanduser()
    notes_dir = Path(os.getenv("ATTACHMENT_STORE_NOTES_DIR", str(data_dir / "notes"))).expanduser()
    journal_dir = Path(os.getenv("ATTACHMENT_STORE_JOURNAL_DIR", str(data_dir / "journal"))).expanduser()
    db_url = os.getenv("ATTACHMENT_STORE_DB_URL", default_db_url(data_dir))
    log_level = os.getenv("ATTACHMENT_STORE_LOG_LEVEL", "INFO")
    log_file = os.getenv("ATTACHMENT_STORE_LOG_FILE") or None
    return AppConfig(
        data_dir=data_dir,
        notes_dir=notes_dir,
        journal_dir=journal_dir,
        db_url=db_url,
        log_level=log_level,
        log_file=log_file,
    )
