import hashlib

import pytest

from attachment_store.util.hashing import digest_prefix, sha256_bytes, sha256_file


def test_sha256_bytes_matches_hashlib():
    assert sha256_bytes(b"abc") == hashlib.sha256(b"abc").hexdigest()


def test_sha256_file_matches_bytes(tmp_path):
    data = b"x" * (3 * 1024 * 1024 + 17)
    path = tmp_path / "blob.bin"
    path.write_bytes(data)
    assert sha256_file(path) == sha256_bytes(data)


def test_digest_prefix():
    digest = sha256_bytes(b"abc")
    assert digest_prefix(digest) == digest[:12]
    with pytest.raises(ValueError):
        digest_prefix(digest, 0)
