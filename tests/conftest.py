import io
from pathlib import Path

import pytest
from PIL import Image


def make_image_bytes(color=(255, 0, 0), size=(4, 4), fmt="PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


def write_file(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, bytes):
        path.write_bytes(data)
    else:
        path.write_text(data, encoding="utf-8", newline="")
    return path


@pytest.fixture
def trees(tmp_path):
    notes = tmp_path / "notes"
    journal = tmp_path / "journal"
    notes.mkdir()
    journal.mkdir()
    return notes, journal
