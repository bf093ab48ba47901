"""Shared parsing helpers for tolerant numeric/string coercion."""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    """Parse number-like input into a finite float, returning None when invalid."""
    if isinstance(value, bool):
        return None
    parsed: float | None = None
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
    if parsed is None or not math.isfinite(parsed):
        return None
    return parsed


def safe_int(value: Any) -> int | None:
    """Parse number-like input into int, returning None when invalid."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.startswith("+"):
            raw = raw[1:]
        try:
            return int(raw)
        except ValueError:
            return None
    return None


def to_price(value: Any) -> int | None:
    """Parse American-odds integer price."""
    return safe_int(value)


def float_or_zero(value: Any) -> float:
    """Parse number-like input, treating anything missing or invalid as 0.0."""
    parsed = safe_float(value)
    return parsed if parsed is not None else 0.0


def as_mapping(value: Any) -> dict[str, Any]:
    """Return dict payloads as-is and anything else as an empty dict."""
    return value if isinstance(value, dict) else {}


def parse_csv(raw_value: str | None) -> list[str]:
    """Parse comma-separated values."""
    if not raw_value:
        return []
    return [item.strip() for item in raw_value.split(",") if item.strip()]
