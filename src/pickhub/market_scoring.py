"""Persona-independent market scoring for spread, total, and moneyline.

Each scorer turns one game snapshot into a 0-100 base score, the side or
direction it favors, an edge magnitude, and human-readable reasons that are
later surfaced as rationale cues.  Every formula is a weighted sum of
components normalized against a cap; the weights of each formula sum to 100.
"""

from __future__ import annotations

from dataclasses import dataclass

from pickhub.factbook import GameSnapshot, PublicSplit, Side

SPREAD_WEIGHTS: dict[str, float] = {
    "margin": 40.0,
    "discipline": 10.0,
    "disruption": 10.0,
    "coaching": 10.0,
    "movement": 15.0,
    "public_skew": 15.0,
}
TOTAL_WEIGHTS: dict[str, float] = {
    "edge": 40.0,
    "movement": 20.0,
    "public_skew": 20.0,
    "disruption": 10.0,
    "pace": 10.0,
}
MONEYLINE_WEIGHTS: dict[str, float] = {
    "stat": 35.0,
    "form": 20.0,
    "steam": 25.0,
    "public_skew": 20.0,
}

OFFENSE_WEIGHT = 0.65
DEFENSE_WEIGHT = 0.35
# Asymmetric total components: full weight when they agree with the direction.
ALIGNED_FACTOR = 1.0
OPPOSED_FACTOR = 0.3


@dataclass(frozen=True)
class ScoreComponent:
    name: str
    value: float
    normalized: float
    weight: float
    contribution: float
    description: str


@dataclass(frozen=True)
class MarketScore:
    market: str
    selection: str
    score: float
    edge: float
    reasons: tuple[str, ...]
    components: tuple[ScoreComponent, ...] = ()
    formula: str = ""


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def normalize(value: float, cap: float) -> float:
    """Map |value| onto 0..1 against a cap."""
    if cap <= 0:
        return 0.0
    return min(abs(value) / cap, 1.0)


def _component(
    name: str,
    value: float,
    *,
    cap: float,
    weight: float,
    description: str,
    factor: float = 1.0,
) -> ScoreComponent:
    normalized = normalize(value, cap)
    return ScoreComponent(
        name=name,
        value=round(value, 3),
        normalized=round(normalized, 3),
        weight=weight,
        contribution=normalized * weight * factor,
        description=description,
    )


def _total_score(components: list[ScoreComponent]) -> float:
    return clamp(round(sum(item.contribution for item in components), 2))


def _signed(value: float, digits: int = 2) -> str:
    sign = "+" if value >= 0 else "-"
    return f"{sign}{abs(value):.{digits}f}"


def _split_text(split: PublicSplit | None, first: str, second: str) -> str:
    if split is None:
        return "n/a"
    return f"{split.first:g}% {first} / {split.second:g}% {second}"


def stat_margin(snapshot: GameSnapshot) -> float:
    """Away margin minus home margin, each as own PPG minus opposing points allowed."""
    away_margin = snapshot.away.offense.points_per_game - snapshot.home.defense.points_allowed
    home_margin = snapshot.home.offense.points_per_game - snapshot.away.defense.points_allowed
    return away_margin - home_margin


def expected_total(snapshot: GameSnapshot) -> float:
    offense = snapshot.away.offense.points_per_game + snapshot.home.offense.points_per_game
    defense = snapshot.away.defense.points_allowed + snapshot.home.defense.points_allowed
    return (offense * OFFENSE_WEIGHT) + (defense * DEFENSE_WEIGHT)


def compute_spread_score(snapshot: GameSnapshot) -> MarketScore:
    """Score the spread market and pick the statistically favored side."""
    margin = stat_margin(snapshot)
    side: Side = "away" if margin >= 0 else "home"
    chosen = snapshot.team(side)
    opponent = snapshot.opponent(side)

    discipline_delta = opponent.offense.turnovers - chosen.offense.turnovers
    disruption_delta = chosen.defense.disruption - opponent.defense.disruption
    coaching_delta = chosen.coach_experience - opponent.coach_experience
    move = snapshot.betting.spread_move
    movement = abs(move.movement) if move is not None else 0.0
    split = snapshot.betting.spread_split
    imbalance = split.imbalance if split is not None else 0.0

    weights = SPREAD_WEIGHTS
    components = [
        _component(
            "margin",
            margin,
            cap=10.0,
            weight=weights["margin"],
            description="Stat margin (PPG vs opp PA)",
        ),
        _component(
            "discipline",
            max(0.0, discipline_delta),
            cap=10.0,
            weight=weights["discipline"],
            description="Turnovers delta (opp - chosen)",
        ),
        _component(
            "disruption",
            max(0.0, disruption_delta),
            cap=4.0,
            weight=weights["disruption"],
            description="Defensive disruption delta (sacks+INTs)",
        ),
        _component(
            "coaching",
            max(0.0, coaching_delta),
            cap=10.0,
            weight=weights["coaching"],
            description="Coaching experience delta (years)",
        ),
        _component(
            "movement",
            movement,
            cap=3.0,
            weight=weights["movement"],
            description="Spread movement magnitude",
        ),
        _component(
            "public_skew",
            imbalance,
            cap=50.0,
            weight=weights["public_skew"],
            description="Public split magnitude",
        ),
    ]

    movement_text = (
        f"Spread movement: {move.opening:.2f}->{move.current:.2f} ({move.direction})"
        if move is not None
        else "Spread movement: n/a"
    )
    reasons = (
        f"Stat margin (PPG vs opp PA): {side.upper()} {_signed(abs(margin))} pts",
        f"Turnovers delta (opp - chosen): {_signed(discipline_delta)}",
        f"Defensive disruption delta (sacks+INTs): {_signed(disruption_delta)}",
        f"Coaching experience delta (years): {_signed(coaching_delta)}",
        movement_text,
        f"Public split (spread): {_split_text(split, 'home', 'away')}",
    )
    return MarketScore(
        market="spread",
        selection=side,
        score=_total_score(components),
        edge=round(abs(margin), 2),
        reasons=reasons,
        components=tuple(components),
        formula=(
            "40*norm(statMargin/10) + 10*norm(disciplineDelta/10) + "
            "10*norm(disruptionDelta/4) + 10*norm(coachingDelta/10) + "
            "15*norm(spreadMove/3) + 15*norm(publicImbalance/50)"
        ),
    )


def compute_total_score(snapshot: GameSnapshot) -> MarketScore:
    """Score the total market against a blended offense/defense expectation."""
    expected = expected_total(snapshot)
    market_total = snapshot.betting.total_line
    diff = expected - market_total
    direction = "over" if diff >= 0 else "under"

    move = snapshot.betting.total_move
    confirming = 0.0
    if move is not None and move.direction == direction:
        confirming = abs(move.movement)
    split = snapshot.betting.total_split
    imbalance = split.imbalance if split is not None else 0.0
    disruption = snapshot.away.defense.disruption + snapshot.home.defense.disruption
    passing = snapshot.away.offense.passing_yards + snapshot.home.offense.passing_yards

    weights = TOTAL_WEIGHTS
    components = [
        _component(
            "edge",
            diff,
            cap=10.0,
            weight=weights["edge"],
            description="Expected vs market (points)",
        ),
        _component(
            "movement",
            confirming,
            cap=3.0,
            weight=weights["movement"],
            description="Movement aligned with direction",
        ),
        _component(
            "public_skew",
            imbalance,
            cap=50.0,
            weight=weights["public_skew"],
            description="Public O/U split magnitude",
        ),
        _component(
            "disruption",
            disruption,
            cap=8.0,
            weight=weights["disruption"],
            description="Defensive disruption (sacks+INTs)",
            factor=ALIGNED_FACTOR if direction == "under" else OPPOSED_FACTOR,
        ),
        _component(
            "pace",
            passing,
            cap=600.0,
            weight=weights["pace"],
            description="Passing volume proxy",
            factor=ALIGNED_FACTOR if direction == "over" else OPPOSED_FACTOR,
        ),
    ]

    movement_text = (
        f"Total movement: {move.opening:.2f}->{move.current:.2f} ({move.direction})"
        if move is not None
        else "Total movement: n/a"
    )
    reasons = (
        f"Expected total {expected:.2f} vs market {market_total:g}",
        movement_text,
        f"Public split (total): {_split_text(split, 'over', 'under')}",
        f"Defensive disruption (combined sacks+INTs): {disruption:.2f}",
        f"Passing volume proxy (combined pass yards): {passing:.2f}",
    )
    return MarketScore(
        market="total",
        selection=direction,
        score=_total_score(components),
        edge=round(abs(diff), 2),
        reasons=reasons,
        components=tuple(components),
        formula=(
            "40*norm(diff/10) + 20*norm(moveConfirm/3) + 20*norm(publicImbalance/50) + "
            "10*norm(disruption/8)*(1.0 under|0.3 over) + "
            "10*norm(passingYards/600)*(1.0 over|0.3 under)"
        ),
    )


def compute_moneyline_score(snapshot: GameSnapshot) -> MarketScore:
    """Score the moneyline from stat margin, form, and price steam."""
    margin = stat_margin(snapshot)
    form_delta = snapshot.away.win_percentage - snapshot.home.win_percentage
    strength = margin + form_delta
    side: Side = "away" if strength >= 0 else "home"

    move = snapshot.moneyline_move(side)
    steam = move.steam if move is not None else 0.0
    split = snapshot.betting.moneyline_split
    imbalance = split.imbalance if split is not None else 0.0

    weights = MONEYLINE_WEIGHTS
    components = [
        _component(
            "stat",
            margin,
            cap=10.0,
            weight=weights["stat"],
            description="Stat margin (PPG vs opp PA)",
        ),
        _component(
            "form",
            form_delta,
            cap=0.5,
            weight=weights["form"],
            description="Record delta (win%)",
        ),
        _component(
            "steam",
            steam,
            cap=60.0,
            weight=weights["steam"],
            description="Moneyline movement (cents)",
        ),
        _component(
            "public_skew",
            imbalance,
            cap=50.0,
            weight=weights["public_skew"],
            description="Public ML split magnitude",
        ),
    ]

    movement_text = (
        f"Moneyline movement ({side}): {move.opening:.0f}->{move.current:.0f} "
        f"({steam:.2f} cents)"
        if move is not None
        else "Moneyline movement: n/a"
    )
    margin_side = "AWAY" if margin >= 0 else "HOME"
    reasons = (
        f"Stat margin (PPG vs opp PA): {margin_side} {_signed(abs(margin))}",
        f"Form delta (win%): {_signed(form_delta, 3)}",
        movement_text,
        f"Public split (moneyline): {_split_text(split, 'home', 'away')}",
    )
    return MarketScore(
        market="moneyline",
        selection=side,
        score=_total_score(components),
        edge=round(abs(strength), 2),
        reasons=reasons,
        components=tuple(components),
        formula=(
            "35*norm(statMargin/10) + 20*norm(formDelta/0.5) + "
            "25*norm(steam/60) + 20*norm(publicImbalance/50)"
        ),
    )


def score_game(snapshot: GameSnapshot) -> tuple[MarketScore, MarketScore, MarketScore]:
    """Score all three markets for one game in market order."""
    return (
        compute_spread_score(snapshot),
        compute_total_score(snapshot),
        compute_moneyline_score(snapshot),
    )
