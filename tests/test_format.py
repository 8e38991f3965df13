from attachment_store.util.format import format_bytes


def test_format_bytes_small():
    assert format_bytes(0) == "0 B"
    assert format_bytes(1023) == "1023 B"


def test_format_bytes_units():
    assert format_bytes(1024) == "1.0 KB"
    assert format_bytes(1536) == "1.5 KB"
    assert format_bytes(5 * 1024 * 1024) == "5.0 MB"
