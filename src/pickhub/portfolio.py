"""Deterministic two-phase portfolio selection for one persona."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from pickhub.candidates import MARKET_ORDER, Candidate
from pickhub.exposure import ExposureLedger, Penalty

PORTFOLIO_REASON_DAILY_CAP = "portfolio_cap_daily"
PORTFOLIO_REASON_GAME_CAP = "portfolio_cap_game"
PORTFOLIO_REASON_MARKET_COMBO = "portfolio_market_combo"
PORTFOLIO_REASON_BELOW_THRESHOLD = "portfolio_below_threshold"
PORTFOLIO_REASON_DUPLICATE = "portfolio_duplicate_pick"

PHASE_PRIMARY = "primary"
PHASE_FILL = "fill"


@dataclass(frozen=True)
class PortfolioConstraints:
    """Hard constraints and acceptance thresholds for one weekly portfolio."""

    max_picks: int = 5
    max_per_game: int = 2
    primary_threshold: float = 55.0
    fill_threshold: float = 45.0


@dataclass(frozen=True)
class Evaluation:
    candidate: Candidate
    penalty: Penalty
    selected: bool
    phase: str = ""
    rank: int = 0
    reason: str = ""

    @property
    def effective_score(self) -> float:
        return self.candidate.adjusted_score - self.penalty.total


@dataclass(frozen=True)
class PortfolioSelection:
    selected: tuple[Evaluation, ...]
    excluded: tuple[Evaluation, ...]
    ledger: ExposureLedger


def selection_sort_key(
    candidate: Candidate, penalty: Penalty
) -> tuple[float, float, str, int, str]:
    """Effective score desc, adjusted score desc, then game id, market, selection."""
    return (
        -(candidate.adjusted_score - penalty.total),
        -candidate.adjusted_score,
        candidate.game_id,
        MARKET_ORDER.get(candidate.market, len(MARKET_ORDER)),
        candidate.selection,
    )


def market_combo_allowed(existing: Sequence[Candidate], candidate: Candidate) -> bool:
    """Two picks from one game must be one total plus one spread or moneyline."""
    if not existing:
        return True
    markets = [row.market for row in existing] + [candidate.market]
    if len(set(markets)) != len(markets):
        return False
    return markets.count("total") == 1 and len(markets) == 2


def _blocking_reason(
    candidate: Candidate,
    *,
    chosen: list[Candidate],
    constraints: PortfolioConstraints,
) -> str:
    in_game = [row for row in chosen if row.game_id == candidate.game_id]
    if constraints.max_per_game > 0 and len(in_game) >= constraints.max_per_game:
        return PORTFOLIO_REASON_GAME_CAP
    if not market_combo_allowed(in_game, candidate):
        return PORTFOLIO_REASON_MARKET_COMBO
    return ""


def select_portfolio_candidates(
    *,
    candidates: Sequence[Candidate],
    ledger: ExposureLedger,
    constraints: PortfolioConstraints,
) -> PortfolioSelection:
    """Select one deterministic portfolio and track excluded candidates.

    The first pass accepts candidates whose adjusted score minus the
    decorrelation penalty clears ``primary_threshold``; a second pass fills
    remaining slots at ``fill_threshold``.  Penalties are read from the ledger
    as it stands when each candidate is evaluated, and the ledger is updated
    right after each acceptance.  The visit order of a pass is fixed when the
    pass starts, sorted on the penalties of the ledger at that moment; later
    acceptances can reject a candidate but never reorder the pass.
    """
    max_picks = max(0, int(constraints.max_picks))
    current = ledger
    chosen: list[Candidate] = []
    accepted: list[Evaluation] = []
    excluded: list[Evaluation] = []

    unique: list[Candidate] = []
    seen: set[str] = set()
    for candidate in candidates:
        if candidate.pick_key in seen:
            excluded.append(
                Evaluation(
                    candidate=candidate,
                    penalty=Penalty(),
                    selected=False,
                    reason=PORTFOLIO_REASON_DUPLICATE,
                )
            )
            continue
        seen.add(candidate.pick_key)
        unique.append(candidate)

    phases = (
        (PHASE_PRIMARY, constraints.primary_threshold),
        (PHASE_FILL, constraints.fill_threshold),
    )
    for phase, threshold in phases:
        if len(chosen) >= max_picks:
            break
        taken = {row.pick_key for row in chosen}
        ordered = sorted(
            (row for row in unique if row.pick_key not in taken),
            key=lambda row: selection_sort_key(row, current.penalty(row)),
        )
        for candidate in ordered:
            if len(chosen) >= max_picks:
                break
            penalty = current.penalty(candidate)
            if candidate.adjusted_score - penalty.total < threshold:
                continue
            if _blocking_reason(candidate, chosen=chosen, constraints=constraints):
                continue
            chosen.append(candidate)
            accepted.append(
                Evaluation(
                    candidate=candidate,
                    penalty=penalty,
                    selected=True,
                    phase=phase,
                    rank=len(chosen),
                )
            )
            current = current.record(candidate)

    taken = {row.pick_key for row in chosen}
    for candidate in unique:
        if candidate.pick_key in taken:
            continue
        penalty = current.penalty(candidate)
        reason = ""
        if candidate.adjusted_score - penalty.total < constraints.fill_threshold:
            reason = PORTFOLIO_REASON_BELOW_THRESHOLD
        if not reason:
            reason = _blocking_reason(candidate, chosen=chosen, constraints=constraints)
        if not reason:
            reason = PORTFOLIO_REASON_DAILY_CAP
        excluded.append(
            Evaluation(candidate=candidate, penalty=penalty, selected=False, reason=reason)
        )

    excluded.sort(key=lambda row: selection_sort_key(row.candidate, row.penalty))
    return PortfolioSelection(selected=tuple(accepted), excluded=tuple(excluded), ledger=current)
