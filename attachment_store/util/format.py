"""Human readable formatting."""

from __future__ import annotations


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for suffix in "KMGTPE":
        value /= 1024
        if value < 1024 or suffix == "E":
            break
    return f"{value:.1f} {suffix}B"
