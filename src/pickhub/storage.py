"""On-disk week layout for slates, factbooks, picks, and rationale prompts.

Inputs live under ``<data_dir>/season-YYYY/week-WW/``::

    games.json             [{"gameId": ..., "odds": {...}}, ...]
    factbooks/<gameId>.json

Outputs land under ``<reports_dir>/season-YYYY/week-WW/`` in ``picks/`` and
``prompts/``, one file per persona.
"""

from __future__ import annotations

import json
import os
import uuid
from contextlib import suppress
from pathlib import Path
from typing import Any

from pickhub.candidates import SlateGame
from pickhub.engine import SlateError, build_slate
from pickhub.factbook import FactbookError, GameSnapshot, game_snapshot_from_payload
from pickhub.odds import GameOdds, game_odds_from_payload


def _atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".tmp-{path.name}-{uuid.uuid4().hex}")
    try:
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError:
        with suppress(FileNotFoundError):
            tmp_path.unlink()
        raise


def _atomic_write_json(path: Path, value: Any) -> None:
    payload = json.dumps(value, ensure_ascii=True, indent=2) + "\n"
    _atomic_write_text(path, payload)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise FactbookError(f"invalid JSON in {path}: {exc}") from exc


def week_label(week: int) -> str:
    return f"week-{int(week):02d}"


def season_label(season: int) -> str:
    return f"season-{int(season)}"


def _row_game_id(row: dict[str, Any]) -> str:
    return str(row.get("gameId", row.get("id", "")) or "").strip()


class WeekStore:
    """Read one week's inputs and write its per-persona outputs."""

    def __init__(
        self,
        *,
        data_root: Path | str,
        reports_root: Path | str,
        season: int,
        week: int,
    ) -> None:
        if int(week) <= 0:
            raise ValueError(f"week must be positive: {week}")
        self.season = int(season)
        self.week = int(week)
        self.week_dir = Path(data_root) / season_label(season) / week_label(week)
        self.reports_dir = Path(reports_root) / season_label(season) / week_label(week)
        self.games_path = self.week_dir / "games.json"
        self.factbooks_dir = self.week_dir / "factbooks"
        self.picks_dir = self.reports_dir / "picks"
        self.prompts_dir = self.reports_dir / "prompts"

    def factbook_path(self, game_id: str) -> Path:
        return self.factbooks_dir / f"{game_id}.json"

    def picks_path(self, persona_id: str) -> Path:
        return self.picks_dir / f"{persona_id}.json"

    def prompt_path(self, persona_id: str) -> Path:
        return self.prompts_dir / f"{persona_id}.txt"

    def load_games(self) -> list[dict[str, Any]]:
        if not self.games_path.exists():
            raise FileNotFoundError(f"games file not found: {self.games_path}")
        payload = _read_json(self.games_path)
        if isinstance(payload, dict):
            payload = payload.get("games", [])
        if not isinstance(payload, list):
            raise SlateError(f"games file must hold a list of games: {self.games_path}")
        rows = [row for row in payload if isinstance(row, dict)]
        for row in rows:
            if not _row_game_id(row):
                raise SlateError(f"games file row is missing gameId: {self.games_path}")
        return rows

    def load_snapshot(self, game_id: str) -> GameSnapshot | None:
        path = self.factbook_path(game_id)
        if not path.exists():
            return None
        return game_snapshot_from_payload(_read_json(path))

    def load_slate(self, *, require_odds: bool = True) -> tuple[SlateGame, ...]:
        """Load games.json plus factbooks and validate them as one slate."""
        rows = self.load_games()
        game_ids = [_row_game_id(row) for row in rows]
        snapshots: dict[str, GameSnapshot] = {}
        odds: dict[str, GameOdds] = {}
        for game_id, row in zip(game_ids, rows, strict=True):
            snapshot = self.load_snapshot(game_id)
            if snapshot is not None:
                snapshots[game_id] = snapshot
            if isinstance(row.get("odds"), dict):
                odds[game_id] = game_odds_from_payload(game_id, row["odds"])
        return build_slate(game_ids, snapshots, odds, require_odds=require_odds)

    def write_picks(self, envelope: dict[str, Any]) -> Path:
        persona_id = str(envelope.get("analystId", "")).strip()
        if not persona_id:
            raise ValueError("picks envelope is missing analystId")
        path = self.picks_path(persona_id)
        _atomic_write_json(path, envelope)
        return path

    def read_picks(self, persona_id: str) -> dict[str, Any]:
        path = self.picks_path(persona_id)
        if not path.exists():
            raise FileNotFoundError(f"picks file not found: {path}")
        payload = _read_json(path)
        if not isinstance(payload, dict):
            raise ValueError(f"picks file must hold an object: {path}")
        return payload

    def write_prompt(self, persona_id: str, prompt: str) -> Path:
        path = self.prompt_path(persona_id)
        _atomic_write_text(path, prompt)
        return path
