"""Slate validation and the per-persona selection fold.

A run scores every game once, then folds over personas in their given order:
each step reads the exposure ledger left by the previous personas, selects a
portfolio, and hands the updated ledger to the next persona.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pickhub.bias import bias_adjustment
from pickhub.candidates import Candidate, SlateGame, candidates_for_game
from pickhub.exposure import ExposureLedger
from pickhub.factbook import GameSnapshot
from pickhub.odds import GameOdds
from pickhub.personas import Persona
from pickhub.portfolio import (
    PortfolioConstraints,
    PortfolioSelection,
    select_portfolio_candidates,
)


class SlateError(ValueError):
    """Raised when a slate references games that were not supplied."""


@dataclass(frozen=True)
class Pick:
    game_id: str
    market: str
    selection: str
    line: float | None
    odds: int | None
    rationale_cues: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "gameId": self.game_id,
            "market": self.market,
            "selection": self.selection,
            "line": self.line,
            "odds": self.odds,
            "rationaleCues": list(self.rationale_cues),
        }


@dataclass(frozen=True)
class PersonaPortfolio:
    persona_id: str
    picks: tuple[Pick, ...]
    selection: PortfolioSelection


@dataclass(frozen=True)
class SlateRun:
    portfolios: tuple[PersonaPortfolio, ...]
    ledger: ExposureLedger = field(default_factory=ExposureLedger)

    def portfolio(self, persona_id: str) -> PersonaPortfolio:
        for row in self.portfolios:
            if row.persona_id == persona_id:
                return row
        raise KeyError(persona_id)


def build_slate(
    game_ids: Iterable[str],
    snapshots: Mapping[str, GameSnapshot],
    odds: Mapping[str, GameOdds] | None = None,
    *,
    require_odds: bool = True,
) -> tuple[SlateGame, ...]:
    """Pair each slate game with its snapshot and odds, failing fast on gaps."""
    odds_by_game = odds or {}
    games: list[SlateGame] = []
    seen: set[str] = set()
    missing_snapshots: list[str] = []
    missing_odds: list[str] = []
    for raw in game_ids:
        game_id = str(raw).strip()
        if not game_id:
            raise SlateError("slate contains an empty game id")
        if game_id in seen:
            raise SlateError(f"duplicate game id in slate: {game_id}")
        seen.add(game_id)
        snapshot = snapshots.get(game_id)
        if snapshot is None:
            missing_snapshots.append(game_id)
            continue
        if snapshot.game_id != game_id:
            raise SlateError(f"snapshot keyed {game_id} carries gameId {snapshot.game_id}")
        game_odds = odds_by_game.get(game_id)
        if game_odds is None and require_odds:
            missing_odds.append(game_id)
        games.append(SlateGame(snapshot=snapshot, odds=game_odds))
    if missing_snapshots:
        raise SlateError(f"missing game snapshots: {','.join(missing_snapshots)}")
    if missing_odds:
        raise SlateError(f"missing odds: {','.join(missing_odds)}")
    return tuple(games)


def score_slate(slate: Sequence[SlateGame]) -> list[Candidate]:
    """Score every game once; the result does not depend on any persona."""
    candidates: list[Candidate] = []
    for game in slate:
        candidates.extend(candidates_for_game(game))
    return candidates


def apply_persona_bias(
    candidates: Sequence[Candidate], persona: Persona, slate: Sequence[SlateGame]
) -> list[Candidate]:
    snapshots = {game.game_id: game.snapshot for game in slate}
    out: list[Candidate] = []
    for candidate in candidates:
        adjustment = bias_adjustment(candidate, persona, snapshots[candidate.game_id])
        out.append(candidate.with_bias(adjustment.bonus, adjustment.parts))
    return out


def rationale_cues(candidate: Candidate) -> tuple[str, ...]:
    cues = list(candidate.reasons)
    for name, value in candidate.bias_parts:
        cues.append(f"Persona lean ({name}): {value:+.2f}")
    return tuple(cues)


def pick_from_candidate(candidate: Candidate) -> Pick:
    return Pick(
        game_id=candidate.game_id,
        market=candidate.market,
        selection=candidate.selection,
        line=candidate.line,
        odds=candidate.price,
        rationale_cues=rationale_cues(candidate),
    )


def select_for_persona(
    ledger: ExposureLedger,
    persona: Persona,
    slate: Sequence[SlateGame],
    *,
    constraints: PortfolioConstraints | None = None,
    scored: Sequence[Candidate] | None = None,
) -> tuple[ExposureLedger, PersonaPortfolio]:
    """One fold step: (ledger, persona) -> (updated ledger, portfolio)."""
    base = list(scored) if scored is not None else score_slate(slate)
    candidates = apply_persona_bias(base, persona, slate)
    selection = select_portfolio_candidates(
        candidates=candidates,
        ledger=ledger,
        constraints=constraints or PortfolioConstraints(),
    )
    picks = tuple(pick_from_candidate(row.candidate) for row in selection.selected)
    portfolio = PersonaPortfolio(persona_id=persona.id, picks=picks, selection=selection)
    return selection.ledger, portfolio


def run_slate(
    slate: Sequence[SlateGame],
    personas: Sequence[Persona],
    *,
    constraints: PortfolioConstraints | None = None,
    ledger: ExposureLedger | None = None,
) -> SlateRun:
    """Select portfolios for personas strictly in the given order."""
    scored = score_slate(slate)
    current = ledger or ExposureLedger()
    portfolios: list[PersonaPortfolio] = []
    for persona in personas:
        current, portfolio = select_for_persona(
            current, persona, slate, constraints=constraints, scored=scored
        )
        portfolios.append(portfolio)
    return SlateRun(portfolios=tuple(portfolios), ledger=current)
