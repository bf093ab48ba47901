"""Game Snapshot ("factbook") model consumed by market scoring.

Snapshots are produced by an external ingestion step and are read-only for a
run.  Parsing is tolerant: any absent or non-numeric statistic is read as 0,
and an absent public-split object is kept as ``None`` so scoring can treat it
as a neutral 50/50 split.  Only structural fields (``gameId``) are required.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pickhub.util.parsing import as_mapping, float_or_zero, to_price

Side = Literal["away", "home"]
TotalDirection = Literal["over", "under"]

NEUTRAL_PUBLIC_PCT = 50.0


class FactbookError(ValueError):
    """Raised when a snapshot payload is missing required structural fields."""


@dataclass(frozen=True)
class OffenseStats:
    points_per_game: float = 0.0
    turnovers: float = 0.0
    rushing_yards: float = 0.0
    passing_yards: float = 0.0


@dataclass(frozen=True)
class DefenseStats:
    points_allowed: float = 0.0
    sacks: float = 0.0
    interceptions: float = 0.0
    forced_fumbles: float = 0.0
    total_tackles: float = 0.0

    @property
    def disruption(self) -> float:
        """Sacks plus interceptions."""
        return self.sacks + self.interceptions


@dataclass(frozen=True)
class TeamSnapshot:
    abbreviation: str
    win_percentage: float = 0.0
    offense: OffenseStats = field(default_factory=OffenseStats)
    defense: DefenseStats = field(default_factory=DefenseStats)
    coach_experience: float = 0.0


@dataclass(frozen=True)
class PublicSplit:
    """Percent of public wagers on each side of one market.

    Spread and moneyline splits use ``first=home``/``second=away``; totals use
    ``first=over``/``second=under``.
    """

    first: float = NEUTRAL_PUBLIC_PCT
    second: float = NEUTRAL_PUBLIC_PCT

    @property
    def imbalance(self) -> float:
        return abs(self.first - self.second)


@dataclass(frozen=True)
class LineMove:
    opening: float = 0.0
    current: float = 0.0
    movement: float = 0.0
    direction: str = "stable"


@dataclass(frozen=True)
class PriceMove:
    opening: float = 0.0
    current: float = 0.0
    movement: float = 0.0

    @property
    def steam(self) -> float:
        return abs(self.current - self.opening)


@dataclass(frozen=True)
class BettingContext:
    spread_line: float = 0.0
    total_line: float = 0.0
    spread_split: PublicSplit | None = None
    total_split: PublicSplit | None = None
    moneyline_split: PublicSplit | None = None
    spread_move: LineMove | None = None
    total_move: LineMove | None = None
    moneyline_home_move: PriceMove | None = None
    moneyline_away_move: PriceMove | None = None
    sharp_money: str = ""


@dataclass(frozen=True)
class GameSnapshot:
    game_id: str
    away: TeamSnapshot
    home: TeamSnapshot
    betting: BettingContext = field(default_factory=BettingContext)
    week: int = 0
    kickoff_iso: str = ""

    def team(self, side: Side) -> TeamSnapshot:
        return self.away if side == "away" else self.home

    def opponent(self, side: Side) -> TeamSnapshot:
        return self.home if side == "away" else self.away

    @property
    def teams(self) -> tuple[str, str]:
        return (self.away.abbreviation, self.home.abbreviation)

    def moneyline_move(self, side: Side) -> PriceMove | None:
        if side == "away":
            return self.betting.moneyline_away_move
        return self.betting.moneyline_home_move


def _offense_from_payload(payload: dict[str, Any]) -> OffenseStats:
    return OffenseStats(
        points_per_game=float_or_zero(payload.get("pointsPerGame")),
        turnovers=float_or_zero(payload.get("turnovers")),
        rushing_yards=float_or_zero(payload.get("rushingYards")),
        passing_yards=float_or_zero(payload.get("passingYards")),
    )


def _defense_from_payload(payload: dict[str, Any]) -> DefenseStats:
    return DefenseStats(
        points_allowed=float_or_zero(payload.get("pointsAllowed")),
        sacks=float_or_zero(payload.get("sacks")),
        interceptions=float_or_zero(payload.get("interceptions")),
        forced_fumbles=float_or_zero(payload.get("forcedFumbles")),
        total_tackles=float_or_zero(payload.get("totalTackles")),
    )


def _team_from_payload(payload: Any, *, fallback_abbr: str) -> TeamSnapshot:
    team = as_mapping(payload)
    statistics = as_mapping(team.get("statistics"))
    abbreviation = str(team.get("abbreviation", "") or "").strip().upper() or fallback_abbr
    return TeamSnapshot(
        abbreviation=abbreviation,
        win_percentage=float_or_zero(as_mapping(team.get("record")).get("winPercentage")),
        offense=_offense_from_payload(as_mapping(statistics.get("offense"))),
        defense=_defense_from_payload(as_mapping(statistics.get("defense"))),
        coach_experience=float_or_zero(as_mapping(team.get("coaching")).get("experience")),
    )


def _split_from_payload(payload: Any, first_key: str, second_key: str) -> PublicSplit | None:
    if not isinstance(payload, dict):
        return None
    first = payload.get(first_key)
    second = payload.get(second_key)
    return PublicSplit(
        first=NEUTRAL_PUBLIC_PCT if first is None else float_or_zero(first),
        second=NEUTRAL_PUBLIC_PCT if second is None else float_or_zero(second),
    )


def _line_move_from_payload(payload: Any) -> LineMove | None:
    if not isinstance(payload, dict):
        return None
    return LineMove(
        opening=float_or_zero(payload.get("opening")),
        current=float_or_zero(payload.get("current")),
        movement=float_or_zero(payload.get("movement")),
        direction=str(payload.get("direction", "") or "stable").strip().lower(),
    )


def _price_move_from_payload(payload: Any) -> PriceMove | None:
    if not isinstance(payload, dict):
        return None
    return PriceMove(
        opening=float_or_zero(payload.get("opening")),
        current=float_or_zero(payload.get("current")),
        movement=float_or_zero(payload.get("movement")),
    )


def _betting_from_payload(payload: Any) -> BettingContext:
    context = as_mapping(payload)
    current = as_mapping(context.get("currentLine"))
    trends = as_mapping(context.get("bettingTrends"))
    movement = as_mapping(context.get("lineMovement"))
    moneyline = as_mapping(movement.get("moneyline"))
    return BettingContext(
        spread_line=float_or_zero(current.get("spread")),
        total_line=float_or_zero(current.get("total")),
        spread_split=_split_from_payload(trends.get("spread"), "home", "away"),
        total_split=_split_from_payload(trends.get("total"), "over", "under"),
        moneyline_split=_split_from_payload(trends.get("moneyline"), "home", "away"),
        spread_move=_line_move_from_payload(movement.get("spread")),
        total_move=_line_move_from_payload(movement.get("total")),
        moneyline_home_move=_price_move_from_payload(moneyline.get("home")),
        moneyline_away_move=_price_move_from_payload(moneyline.get("away")),
        sharp_money=str(movement.get("sharpMoney", "") or "").strip().lower(),
    )


def game_snapshot_from_payload(payload: dict[str, Any]) -> GameSnapshot:
    """Build a snapshot from a camelCase factbook JSON payload."""
    if not isinstance(payload, dict):
        raise FactbookError("factbook payload must be an object")
    game_id = str(payload.get("gameId", "") or "").strip()
    if not game_id:
        raise FactbookError("factbook payload is missing gameId")
    teams = as_mapping(payload.get("teams"))
    week = to_price(payload.get("week"))
    return GameSnapshot(
        game_id=game_id,
        away=_team_from_payload(teams.get("away"), fallback_abbr="AWAY"),
        home=_team_from_payload(teams.get("home"), fallback_abbr="HOME"),
        betting=_betting_from_payload(payload.get("bettingContext")),
        week=week if week is not None else 0,
        kickoff_iso=str(payload.get("kickoffISO", "") or "").strip(),
    )


def public_pct(split: PublicSplit | None, selection: str) -> float:
    """Return the public percentage backing one selection (neutral when absent)."""
    if split is None:
        return NEUTRAL_PUBLIC_PCT
    if selection in {"home", "over"}:
        return split.first
    if selection in {"away", "under"}:
        return split.second
    raise ValueError(f"invalid selection: {selection}")


def split_for_market(snapshot: GameSnapshot, market: str) -> PublicSplit | None:
    """Return the public split that applies to one market."""
    if market == "spread":
        return snapshot.betting.spread_split
    if market == "total":
        return snapshot.betting.total_split
    if market == "moneyline":
        return snapshot.betting.moneyline_split
    raise ValueError(f"invalid market: {market}")


def market_favorite(snapshot: GameSnapshot) -> Side | None:
    """Favorite from the sign of the current spread line (negative => home)."""
    line = snapshot.betting.spread_line
    if line < 0:
        return "home"
    if line > 0:
        return "away"
    return None
