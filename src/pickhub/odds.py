"""Per-game odds records used to price emitted picks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pickhub.util.parsing import as_mapping, safe_float, to_price

MARKETS: tuple[str, ...] = ("spread", "total", "moneyline")
MARKET_SELECTIONS: dict[str, tuple[str, str]] = {
    "spread": ("away", "home"),
    "total": ("over", "under"),
    "moneyline": ("away", "home"),
}


@dataclass(frozen=True)
class Quote:
    line: float | None
    price: int | None


@dataclass(frozen=True)
class GameOdds:
    game_id: str
    quotes: dict[tuple[str, str], Quote]

    def quote(self, market: str, selection: str) -> Quote:
        validate_market_selection(market, selection)
        return self.quotes.get((market, selection), Quote(line=None, price=None))


def validate_market_selection(market: str, selection: str) -> None:
    """Raise ValueError for market/selection pairs outside the enumeration."""
    allowed = MARKET_SELECTIONS.get(market)
    if allowed is None:
        raise ValueError(f"invalid market: {market}")
    if selection not in allowed:
        raise ValueError(f"invalid selection for {market}: {selection}")


def _quote(payload: Any, *, with_line: bool) -> Quote:
    row = as_mapping(payload)
    return Quote(
        line=safe_float(row.get("line")) if with_line else None,
        price=to_price(row.get("odds")),
    )


def game_odds_from_payload(game_id: str, payload: Any) -> GameOdds:
    """Parse the `odds` object of one games.json row."""
    odds = as_mapping(payload)
    spread = as_mapping(odds.get("spread"))
    total = as_mapping(odds.get("total"))
    moneyline = as_mapping(odds.get("moneyline"))
    quotes = {
        ("spread", "away"): _quote(spread.get("away"), with_line=True),
        ("spread", "home"): _quote(spread.get("home"), with_line=True),
        ("total", "over"): _quote(total.get("over"), with_line=True),
        ("total", "under"): _quote(total.get("under"), with_line=True),
        ("moneyline", "away"): _quote(moneyline.get("away"), with_line=False),
        ("moneyline", "home"): _quote(moneyline.get("home"), with_line=False),
    }
    return GameOdds(game_id=game_id, quotes=quotes)
