"""Command-line interface for pickhub."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from pickhub.budget import llm_budget_status
from pickhub.engine import PersonaPortfolio, SlateError, run_slate
from pickhub.factbook import FactbookError
from pickhub.llm_client import LLMClient, LLMClientError
from pickhub.market_scoring import score_game
from pickhub.odds_math import format_american
from pickhub.personas import Persona, load_personas
from pickhub.portfolio import Evaluation
from pickhub.rationale import build_picks_envelope, build_rationale_prompt, write_rationales
from pickhub.runtime_config import (
    RuntimeConfig,
    current_runtime_config,
    load_runtime_config,
    set_current_runtime_config,
)
from pickhub.settings import Settings
from pickhub.storage import WeekStore
from pickhub.time_utils import current_month_utc


class CLIError(RuntimeError):
    """User-facing CLI error."""


def _week_store(runtime: RuntimeConfig, week: int, season: int | None = None) -> WeekStore:
    return WeekStore(
        data_root=runtime.data_dir,
        reports_root=runtime.reports_dir,
        season=season if season else runtime.season,
        week=week,
    )


def _load_personas(runtime: RuntimeConfig, ids: list[str] | None = None) -> list[Persona]:
    if not runtime.personas_path.exists():
        raise FileNotFoundError(f"personas file not found: {runtime.personas_path}")
    personas = load_personas(runtime.personas_path)
    if not ids:
        return personas
    by_id = {persona.id: persona for persona in personas}
    unknown = [persona_id for persona_id in ids if persona_id not in by_id]
    if unknown:
        raise CLIError(f"unknown persona id(s): {','.join(unknown)}")
    if len(set(ids)) != len(ids):
        raise CLIError("persona ids must be unique")
    return [by_id[persona_id] for persona_id in ids]


def _penalty_text(row: Evaluation) -> str:
    if not row.penalty.parts:
        return "0"
    return ",".join(f"{name}:{value:g}" for name, value in row.penalty.parts)


def _evaluation_payload(row: Evaluation) -> dict[str, Any]:
    candidate = row.candidate
    return {
        "pickKey": candidate.pick_key,
        "baseScore": candidate.base_score,
        "biasBonus": candidate.bias_bonus,
        "adjustedScore": round(candidate.adjusted_score, 4),
        "penalty": row.penalty.total,
        "penaltyParts": dict(row.penalty.parts),
        "effectiveScore": round(row.effective_score, 4),
        "phase": row.phase,
        "reason": row.reason,
    }


def _cmd_personas_ls(args: argparse.Namespace) -> int:
    runtime = current_runtime_config()
    for persona in _load_personas(runtime):
        prefs = ",".join(persona.preferences.active()) or "none"
        chalk = "on" if persona.preferences.chalk_guard else "off"
        print(f"{persona.id} name={persona.name} prefs={prefs} chalk_guard={chalk}")
    return 0


def _cmd_score(args: argparse.Namespace) -> int:
    runtime = current_runtime_config()
    store = _week_store(runtime, args.week, args.season)
    slate = store.load_slate(require_odds=False)
    rows: list[dict[str, Any]] = []
    for game in slate:
        for score in score_game(game.snapshot):
            rows.append(
                {
                    "gameId": game.game_id,
                    "market": score.market,
                    "selection": score.selection,
                    "score": score.score,
                    "edge": score.edge,
                    "formula": score.formula,
                    "reasons": list(score.reasons),
                    "components": [
                        {
                            "name": item.name,
                            "value": item.value,
                            "normalized": item.normalized,
                            "weight": item.weight,
                            "contribution": round(item.contribution, 4),
                            "description": item.description,
                        }
                        for item in score.components
                    ],
                }
            )
    if args.json:
        print(json.dumps(rows, indent=2))
        return 0
    for row in rows:
        print(
            f"game={row['gameId']} market={row['market']} selection={row['selection']} "
            f"score={row['score']:.2f} edge={row['edge']:.2f}"
        )
        for item in row["components"]:
            print(
                f"  {item['name']} value={item['value']:g} norm={item['normalized']:.3f} "
                f"weight={item['weight']:g} contrib={item['contribution']:.2f}"
            )
    return 0


def _portfolio_payload(
    portfolio: PersonaPortfolio, envelope: dict[str, Any], path: Path | None
) -> dict[str, Any]:
    return {
        "personaId": portfolio.persona_id,
        "path": str(path) if path is not None else "",
        "envelope": envelope,
        "selected": [_evaluation_payload(row) for row in portfolio.selection.selected],
        "excluded": [_evaluation_payload(row) for row in portfolio.selection.excluded],
    }


def _cmd_picks_run(args: argparse.Namespace) -> int:
    runtime = current_runtime_config()
    store = _week_store(runtime, args.week, args.season)
    slate = store.load_slate()
    personas = _load_personas(runtime, args.persona)
    run = run_slate(slate, personas, constraints=runtime.portfolio_constraints())

    payloads: list[dict[str, Any]] = []
    for portfolio in run.portfolios:
        envelope = build_picks_envelope(portfolio, week=store.week, season=store.season)
        path = None if args.dry_run else store.write_picks(envelope)
        payloads.append(_portfolio_payload(portfolio, envelope, path))

    if args.json:
        print(json.dumps({"portfolios": payloads, "ledger": run.ledger.to_dict()}, indent=2))
        return 0

    print(f"games={len(slate)} personas={len(personas)}")
    for portfolio, payload in zip(run.portfolios, payloads, strict=True):
        short = " short=true" if len(portfolio.picks) < runtime.max_picks else ""
        print(f"persona={portfolio.persona_id} picks={len(portfolio.picks)}{short}")
        for row in portfolio.selection.selected:
            candidate = row.candidate
            print(
                f"  {candidate.pick_key} price={format_american(candidate.price)} "
                f"phase={row.phase} "
                f"adjusted={candidate.adjusted_score:.2f} penalty={_penalty_text(row)} "
                f"effective={row.effective_score:.2f}"
            )
        if payload["path"]:
            print(f"  path={payload['path']}")
    print(f"ledger_total_picks={run.ledger.total_picks}")
    return 0


def _cmd_rationale_prompts(args: argparse.Namespace) -> int:
    runtime = current_runtime_config()
    store = _week_store(runtime, args.week, args.season)
    generated = 0
    for persona in _load_personas(runtime, args.persona):
        if not store.picks_path(persona.id).exists():
            print(f"skip persona={persona.id} reason=missing_picks", file=sys.stderr)
            continue
        prompt = build_rationale_prompt(persona, week=store.week, season=store.season)
        path = store.write_prompt(persona.id, prompt)
        print(f"persona={persona.id} prompt={path}")
        generated += 1
    print(f"prompts={generated} dir={store.prompts_dir}")
    return 0


def _cmd_rationale_write(args: argparse.Namespace) -> int:
    runtime = current_runtime_config()
    store = _week_store(runtime, args.week, args.season)
    settings = Settings.from_runtime()
    client = LLMClient(settings=settings, runtime_root=runtime.runtime_dir)
    model = args.model or settings.openai_model
    written = 0
    for persona in _load_personas(runtime, args.persona):
        if not store.picks_path(persona.id).exists():
            print(f"skip persona={persona.id} reason=missing_picks", file=sys.stderr)
            continue
        envelope = store.read_picks(persona.id)
        updated = write_rationales(
            client,
            persona,
            envelope,
            model=model,
            refresh=args.refresh,
            offline=args.offline,
        )
        path = store.write_picks(updated)
        print(f"persona={persona.id} picks={len(updated.get('picks', []))} path={path}")
        written += 1
    print(f"rationales={written}")
    return 0


def _cmd_budget(args: argparse.Namespace) -> int:
    runtime = current_runtime_config()
    month = args.month or current_month_utc()
    payload = llm_budget_status(runtime.runtime_dir, month, runtime.llm_monthly_cap_usd)
    print(json.dumps(payload, sort_keys=True, indent=2))
    return 0


def _add_week_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--week", type=int, required=True, help="NFL week number.")
    parser.add_argument(
        "--season", type=int, default=0, help="Season year (default: runtime config)."
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pickhub")
    parser.add_argument(
        "--config",
        default="",
        help="Path to runtime config TOML (default: config/runtime.toml).",
    )
    parser.add_argument("--data-dir", default="", help="Override data dir for this invocation.")
    parser.add_argument(
        "--reports-dir", default="", help="Override reports dir for this invocation."
    )
    parser.add_argument(
        "--runtime-dir", default="", help="Override runtime dir for this invocation."
    )
    subparsers = parser.add_subparsers(dest="command")

    personas = subparsers.add_parser("personas", help="Persona commands")
    personas_sub = personas.add_subparsers(dest="personas_command")
    personas_ls = personas_sub.add_parser("ls", help="List personas in processing order")
    personas_ls.set_defaults(func=_cmd_personas_ls)

    score = subparsers.add_parser("score", help="Print the market scoring log for a week")
    _add_week_args(score)
    score.add_argument("--json", action="store_true", help="Emit JSON.")
    score.set_defaults(func=_cmd_score)

    picks = subparsers.add_parser("picks", help="Pick selection commands")
    picks_sub = picks.add_subparsers(dest="picks_command")
    picks_run = picks_sub.add_parser("run", help="Select decorrelated portfolios for a week")
    _add_week_args(picks_run)
    picks_run.add_argument(
        "--persona",
        action="append",
        default=None,
        help="Persona id to run (repeatable, keeps the given order).",
    )
    picks_run.add_argument("--json", action="store_true", help="Emit JSON.")
    picks_run.add_argument("--dry-run", action="store_true", help="Do not write picks files.")
    picks_run.set_defaults(func=_cmd_picks_run)

    rationale = subparsers.add_parser("rationale", help="Rationale commands")
    rationale_sub = rationale.add_subparsers(dest="rationale_command")
    prompts = rationale_sub.add_parser("prompts", help="Write rationale prompt files")
    _add_week_args(prompts)
    prompts.add_argument("--persona", action="append", default=None)
    prompts.set_defaults(func=_cmd_rationale_prompts)

    write = rationale_sub.add_parser("write", help="Fill pick rationales through the LLM")
    _add_week_args(write)
    write.add_argument("--persona", action="append", default=None)
    write.add_argument("--model", default="", help="Override the configured model.")
    write.add_argument("--offline", action="store_true", help="Use cached responses only.")
    write.add_argument("--refresh", action="store_true", help="Ignore cached responses.")
    write.set_defaults(func=_cmd_rationale_write)

    budget = subparsers.add_parser("budget", help="Show monthly LLM spend")
    budget.add_argument("--month", default="", help="YYYY-MM (default: current month).")
    budget.set_defaults(func=_cmd_budget)
    return parser


def _path_override(raw: str) -> Path | None:
    return Path(raw).expanduser().resolve() if raw else None


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 0
    config_path = Path(args.config).expanduser() if args.config else None
    try:
        runtime_config = load_runtime_config(config_path)
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    runtime_config = runtime_config.with_path_overrides(
        data_dir=_path_override(args.data_dir),
        reports_dir=_path_override(args.reports_dir),
        runtime_dir=_path_override(args.runtime_dir),
    )
    try:
        set_current_runtime_config(runtime_config)
        try:
            return int(func(args))
        except (
            CLIError,
            SlateError,
            FactbookError,
            LLMClientError,
            FileNotFoundError,
            ValueError,
        ) as exc:
            print(str(exc), file=sys.stderr)
            return 2
    finally:
        set_current_runtime_config(None)


if __name__ == "__main__":
    raise SystemExit(main())
