"""Persona bias adjustments layered on top of market base scores."""

from __future__ import annotations

from dataclasses import dataclass

from pickhub.candidates import Candidate
from pickhub.factbook import GameSnapshot, market_favorite, public_pct, split_for_market
from pickhub.odds_math import chalk_depth
from pickhub.personas import Persona

CONTRARIAN_FACTOR = 0.1
CONTRARIAN_CAP_SIDE = 8.0
CONTRARIAN_CAP_TOTAL = 6.0
LEAN_BONUS = 8.0
LEAN_PENALTY = 3.0
LINE_SPREAD_BONUS = 6.0
LINE_MONEYLINE_PENALTY = 2.0
FAVORITE_BONUS = 4.0
UNDERDOG_BONUS = 4.0
CHALK_MAX_PENALTY = 8.0
CHALK_CENTS_PER_POINT = 25.0
MONEYLINE_BASELINE_PENALTY = 2.0


@dataclass(frozen=True)
class BiasAdjustment:
    bonus: float
    parts: tuple[tuple[str, float], ...] = ()


def _contrarian(candidate: Candidate, snapshot: GameSnapshot) -> float:
    split = split_for_market(snapshot, candidate.market)
    own = public_pct(split, candidate.selection)
    opposing = public_pct(split, candidate.opposite_selection)
    if own >= opposing:
        return 0.0
    cap = CONTRARIAN_CAP_TOTAL if candidate.market == "total" else CONTRARIAN_CAP_SIDE
    return min(cap, (opposing - own) * CONTRARIAN_FACTOR)


def _chalk_guard(candidate: Candidate) -> float:
    depth = chalk_depth(candidate.price)
    chalk = min(CHALK_MAX_PENALTY, depth / CHALK_CENTS_PER_POINT)
    return -(chalk + MONEYLINE_BASELINE_PENALTY)


def bias_adjustment(
    candidate: Candidate, persona: Persona, snapshot: GameSnapshot
) -> BiasAdjustment:
    """Return the stacked bias bonus for one candidate and the rules that fired."""
    prefs = persona.preferences
    parts: list[tuple[str, float]] = []

    if prefs.fade_public:
        value = _contrarian(candidate, snapshot)
        if value:
            parts.append(("fade_public", value))

    if candidate.market == "total":
        if prefs.over_lean:
            parts.append(
                ("over_lean", LEAN_BONUS if candidate.selection == "over" else -LEAN_PENALTY)
            )
        if prefs.under_lean:
            parts.append(
                ("under_lean", LEAN_BONUS if candidate.selection == "under" else -LEAN_PENALTY)
            )

    if prefs.line_lean:
        if candidate.market == "spread":
            parts.append(("line_lean", LINE_SPREAD_BONUS))
        elif candidate.market == "moneyline":
            parts.append(("line_lean", -LINE_MONEYLINE_PENALTY))

    if candidate.market == "moneyline":
        favorite = market_favorite(snapshot)
        if prefs.favorite_lean and favorite is not None and candidate.selection == favorite:
            parts.append(("favorite_lean", FAVORITE_BONUS))
        if prefs.underdog_lean and favorite is not None and candidate.selection != favorite:
            parts.append(("underdog_lean", UNDERDOG_BONUS))
        if prefs.chalk_guard:
            parts.append(("chalk_guard", _chalk_guard(candidate)))

    bonus = round(sum(value for _, value in parts), 4)
    return BiasAdjustment(bonus=bonus, parts=tuple(parts))


def bias_bonus(candidate: Candidate, persona: Persona, snapshot: GameSnapshot) -> float:
    return bias_adjustment(candidate, persona, snapshot).bonus
