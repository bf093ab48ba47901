"""Scored pick candidates (three per game) and the slate they are drawn from."""

from __future__ import annotations

from dataclasses import dataclass, replace

from pickhub.factbook import NEUTRAL_PUBLIC_PCT, GameSnapshot, split_for_market
from pickhub.factbook import public_pct as selection_public_pct
from pickhub.market_scoring import MarketScore, score_game
from pickhub.odds import MARKET_SELECTIONS, MARKETS, GameOdds, validate_market_selection

MARKET_ORDER: dict[str, int] = {market: index for index, market in enumerate(MARKETS)}


@dataclass(frozen=True)
class SlateGame:
    snapshot: GameSnapshot
    odds: GameOdds | None = None

    @property
    def game_id(self) -> str:
        return self.snapshot.game_id


@dataclass(frozen=True)
class Candidate:
    """One market/selection for one game, scored for one persona.

    ``adjusted_score`` is derived from the base score and the bias bonus; a
    candidate is never updated in place.
    """

    game_id: str
    market: str
    selection: str
    base_score: float
    reasons: tuple[str, ...] = ()
    edge: float = 0.0
    line: float | None = None
    price: int | None = None
    teams: tuple[str, ...] = ()
    public_pct: float = NEUTRAL_PUBLIC_PCT
    bias_bonus: float = 0.0
    bias_parts: tuple[tuple[str, float], ...] = ()

    def __post_init__(self) -> None:
        if not self.game_id:
            raise ValueError("candidate requires game_id")
        validate_market_selection(self.market, self.selection)

    @property
    def adjusted_score(self) -> float:
        return self.base_score + self.bias_bonus

    @property
    def pick_key(self) -> str:
        return f"{self.game_id}|{self.market}|{self.selection}"

    @property
    def opposite_selection(self) -> str:
        first, second = MARKET_SELECTIONS[self.market]
        return second if self.selection == first else first

    def with_bias(self, bonus: float, parts: tuple[tuple[str, float], ...]) -> Candidate:
        return replace(self, bias_bonus=bonus, bias_parts=parts)


def _moneyline_fallback_price(snapshot: GameSnapshot, selection: str) -> int | None:
    move = snapshot.moneyline_move("away" if selection == "away" else "home")
    if move is None or not move.current:
        return None
    return int(round(move.current))


def candidate_from_score(game: SlateGame, score: MarketScore) -> Candidate:
    """Attach quoted line/price to one market score."""
    line: float | None = None
    price: int | None = None
    if game.odds is not None:
        quote = game.odds.quote(score.market, score.selection)
        line, price = quote.line, quote.price
    if price is None and score.market == "moneyline":
        price = _moneyline_fallback_price(game.snapshot, score.selection)
    return Candidate(
        game_id=game.game_id,
        market=score.market,
        selection=score.selection,
        base_score=score.score,
        reasons=score.reasons,
        edge=score.edge,
        line=line,
        price=price,
        teams=game.snapshot.teams,
        public_pct=selection_public_pct(
            split_for_market(game.snapshot, score.market), score.selection
        ),
    )


def candidates_for_game(game: SlateGame) -> list[Candidate]:
    """Score one game and return its spread, total, and moneyline candidates."""
    return [candidate_from_score(game, score) for score in score_game(game.snapshot)]
