"""Cross-persona exposure ledger used to decorrelate portfolios within one run.

The ledger is an immutable accumulator: ``record`` returns a new ledger, so a
run is a left fold over personas in a fixed order.  Penalties read the ledger
and are subtracted at selection time only; they never change a candidate's
adjusted score.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pickhub.candidates import Candidate
from pickhub.odds_math import is_chalk

EXACT_REPEAT_LIMIT = 2
EXACT_REPEAT_PENALTY = 12.0
SAME_GAME_LIMIT = 2
SAME_GAME_PENALTY = 3.0
TEAM_LIMIT = 4
TEAM_PENALTY = 5.0
ML_CHALK_LIMIT = 3
ML_CHALK_PENALTY = 6.0
PUBLIC_ALIGNED_PCT = 65.0
PUBLIC_ALIGNED_LIMIT = 6
PUBLIC_ALIGNED_PENALTY = 6.0


@dataclass(frozen=True)
class Penalty:
    total: float = 0.0
    parts: tuple[tuple[str, float], ...] = ()


def is_moneyline_chalk(candidate: Candidate) -> bool:
    return candidate.market == "moneyline" and is_chalk(candidate.price)


def is_public_aligned(candidate: Candidate) -> bool:
    return candidate.public_pct >= PUBLIC_ALIGNED_PCT


@dataclass(frozen=True)
class ExposureLedger:
    exact_pick_count: dict[str, int] = field(default_factory=dict)
    game_pick_count: dict[str, int] = field(default_factory=dict)
    team_count: dict[str, int] = field(default_factory=dict)
    ml_chalk_count: int = 0
    public_aligned_count: int = 0
    total_picks: int = 0

    def penalty(self, candidate: Candidate) -> Penalty:
        """Decorrelation penalty for one candidate against the current exposure."""
        parts: list[tuple[str, float]] = []
        if self.exact_pick_count.get(candidate.pick_key, 0) >= EXACT_REPEAT_LIMIT:
            parts.append(("exact_repeat", EXACT_REPEAT_PENALTY))
        if self.game_pick_count.get(candidate.game_id, 0) >= SAME_GAME_LIMIT:
            parts.append(("same_game", SAME_GAME_PENALTY))
        if any(self.team_count.get(team, 0) >= TEAM_LIMIT for team in candidate.teams):
            parts.append(("team_exposure", TEAM_PENALTY))
        if is_moneyline_chalk(candidate) and self.ml_chalk_count >= ML_CHALK_LIMIT:
            parts.append(("moneyline_chalk", ML_CHALK_PENALTY))
        if is_public_aligned(candidate) and self.public_aligned_count >= PUBLIC_ALIGNED_LIMIT:
            parts.append(("public_aligned", PUBLIC_ALIGNED_PENALTY))
        return Penalty(total=sum(value for _, value in parts), parts=tuple(parts))

    def record(self, candidate: Candidate) -> ExposureLedger:
        """Return a new ledger with one accepted pick counted."""
        exact = dict(self.exact_pick_count)
        exact[candidate.pick_key] = exact.get(candidate.pick_key, 0) + 1
        games = dict(self.game_pick_count)
        games[candidate.game_id] = games.get(candidate.game_id, 0) + 1
        teams = dict(self.team_count)
        for team in candidate.teams:
            teams[team] = teams.get(team, 0) + 1
        return ExposureLedger(
            exact_pick_count=exact,
            game_pick_count=games,
            team_count=teams,
            ml_chalk_count=self.ml_chalk_count + int(is_moneyline_chalk(candidate)),
            public_aligned_count=self.public_aligned_count + int(is_public_aligned(candidate)),
            total_picks=self.total_picks + 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "exactPickCount": dict(sorted(self.exact_pick_count.items())),
            "gamePickCount": dict(sorted(self.game_pick_count.items())),
            "teamCount": dict(sorted(self.team_count.items())),
            "mlChalkCount": self.ml_chalk_count,
            "publicAlignedCount": self.public_aligned_count,
            "totalPicks": self.total_picks,
        }
