"""Whitespace normalization shared by the parsers."""

from __future__ import annotations

from typing import Optional


def normalize_text(value: Optional[str]) -> str:
    if not value:
        return ""
    return " ".join(value.replace("\u200b", " ").split())
