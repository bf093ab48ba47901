"""Shared American-odds helpers."""

from __future__ import annotations

CHALK_PRICE = -200


def is_chalk(price: int | None) -> bool:
    """True for favorites priced shorter than -200."""
    return price is not None and price < CHALK_PRICE


def chalk_depth(price: int | None) -> float:
    """Return how many cents shorter than -200 a price is (0.0 when not chalk)."""
    if price is None or price >= CHALK_PRICE:
        return 0.0
    return float(CHALK_PRICE - price)


def format_american(price: int | None) -> str:
    """Format an American price with an explicit sign."""
    if price is None:
        return "n/a"
    return f"+{price}" if price > 0 else str(price)
