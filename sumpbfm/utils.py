"""Utility helpers shared by the register model and the result reports."""

from __future__ import annotations

import json
from typing import Any, Iterable, Optional


def dword_to_ascii(word: int) -> str:
    """Four characters packed most-significant byte first."""
    return "".join(chr((word >> shift) & 0xFF) for shift in (24, 16, 8, 0))


def ascii_to_dwords(text: str, count: int = 3) -> list[int]:
    raw = text.encode("ascii")[: 4 * count].ljust(4 * count, b" ")
    return [int.from_bytes(raw[i : i + 4], "big") for i in range(0, len(raw), 4)]


def words_to_name(words: Iterable[Optional[int]]) -> str:
    return "".join(dword_to_ascii(word) for word in words if word is not None)


def hex32(value: Optional[int]) -> Optional[str]:
    return None if value is None else f"0x{value:08X}"


def to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, sort_keys=True)
