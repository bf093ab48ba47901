"""Picks envelopes and persona-voiced rationale generation.

Selection emits numeric rationale cues only.  This module packages them into
the per-persona picks envelope, renders the narrative prompt, and swaps model
text into each pick's ``rationale`` without touching any other field.
"""

from __future__ import annotations

import copy
import json
import re
from typing import Any

from pickhub.engine import PersonaPortfolio
from pickhub.llm_client import CompletionRequest, LLMClient, LLMResponseFormatError
from pickhub.personas import Persona
from pickhub.time_utils import utc_now_str

PROMPT_VERSION = "rationale-v1"
DEFAULT_UNITS = 1.0
PICK_IDENTITY_FIELDS = ("gameId", "market", "selection", "line", "odds")

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n(.*?)```", re.DOTALL | re.IGNORECASE)

RATIONALE_INSTRUCTIONS = """You will be given a JSON picks envelope:
{ "analystId", "week", "season", "generatedAt", "picks": [ ... ], "weekSummary" }.

Task:
- For EACH item in picks[], write a concise, personality-driven rationale that matches
  the analyst's bias and voice.
- Use rationaleCues to work in at least 2-3 concrete numeric details (stat margin,
  public split %, line movement, coaching experience delta). Weave them in; do not list them.
- Keep each rationale to about 2 sentences (max 3) in a natural tone.

Strict requirements:
- DO NOT change the JSON shape or any field other than rationale.
- Keep gameId, market, selection, line, odds, units, and rationaleCues exactly as given.
- Return the FULL JSON with only rationale filled in for each pick.
- Return the JSON inside a single fenced code block with the language set to json.
  Use standard ASCII quotes. No commentary outside the code block.

Notes:
- If a pick looks low-confidence, keep the rationale neutral but consistent with the bias.
- Do not invent stats the cues do not imply."""


def build_picks_envelope(
    portfolio: PersonaPortfolio,
    *,
    week: int,
    season: int,
    generated_at: str | None = None,
) -> dict[str, Any]:
    """Package one persona's picks with empty rationales for the narrative step."""
    picks: list[dict[str, Any]] = []
    for pick in portfolio.picks:
        row = pick.to_dict()
        row["units"] = DEFAULT_UNITS
        row["rationale"] = ""
        picks.append(row)
    return {
        "analystId": portfolio.persona_id,
        "week": int(week),
        "season": int(season),
        "generatedAt": generated_at or utc_now_str(),
        "picks": picks,
        "weekSummary": {
            "totalPicks": len(picks),
            "totalUnits": round(sum(float(row["units"]) for row in picks), 2),
        },
    }


def persona_profile(persona: Persona) -> str:
    return "\n".join(
        [
            f"- Persona: {persona.persona}",
            f"- Tagline: {persona.tagline}",
            f"- Bias: {persona.bias}",
            f"- Voice Style: {persona.voice_style}",
        ]
    )


def build_rationale_prompt(persona: Persona, *, week: int, season: int) -> str:
    """Prompt text that accompanies one persona's picks file."""
    header = f"Persona: {persona.name} ({persona.id})\nWeek {week}, Season {season}"
    return "\n".join(
        [
            header,
            "",
            "Analyst Profile:",
            persona_profile(persona),
            "",
            RATIONALE_INSTRUCTIONS,
            "",
            f"Attached file: picks JSON for {persona.name}.",
        ]
    )


def _request_prompt(persona: Persona, envelope: dict[str, Any]) -> str:
    prompt = build_rationale_prompt(
        persona, week=int(envelope.get("week", 0)), season=int(envelope.get("season", 0))
    )
    body = json.dumps(envelope, indent=2, ensure_ascii=True)
    return f"{prompt}\n\n```json\n{body}\n```\n"


def extract_json_block(text: str) -> dict[str, Any]:
    """Parse the first fenced JSON block, or the whole text when unfenced."""
    match = _FENCED_JSON.search(text)
    raw = match.group(1) if match else text
    try:
        payload = json.loads(raw.strip())
    except json.JSONDecodeError as exc:
        raise LLMResponseFormatError(f"rationale response is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise LLMResponseFormatError("rationale response must be a JSON object")
    return payload


def apply_rationales(envelope: dict[str, Any], response: dict[str, Any]) -> dict[str, Any]:
    """Copy only ``rationale`` strings from a response onto the envelope's picks."""
    picks = envelope.get("picks", [])
    returned = response.get("picks")
    if not isinstance(returned, list) or len(returned) != len(picks):
        raise LLMResponseFormatError(
            f"rationale response pick count mismatch: expected={len(picks)} "
            f"got={len(returned) if isinstance(returned, list) else 'none'}"
        )
    updated = copy.deepcopy(envelope)
    for index, (original, row) in enumerate(zip(picks, returned, strict=True)):
        if not isinstance(row, dict):
            raise LLMResponseFormatError(f"rationale response pick {index} is not an object")
        for key in PICK_IDENTITY_FIELDS:
            if row.get(key) != original.get(key):
                raise LLMResponseFormatError(
                    f"rationale response changed pick {index} field {key}: "
                    f"{original.get(key)!r} -> {row.get(key)!r}"
                )
        rationale = row.get("rationale")
        if not isinstance(rationale, str) or not rationale.strip():
            raise LLMResponseFormatError(f"rationale response pick {index} has no rationale")
        updated["picks"][index]["rationale"] = rationale.strip()
    return updated


def write_rationales(
    client: LLMClient,
    persona: Persona,
    envelope: dict[str, Any],
    *,
    model: str,
    refresh: bool = False,
    offline: bool = False,
    max_output_tokens: int = 2400,
    temperature: float = 0.7,
) -> dict[str, Any]:
    """Voice one persona's picks through the LLM and return the updated envelope."""
    if not envelope.get("picks"):
        return copy.deepcopy(envelope)
    request = CompletionRequest(
        task="rationale",
        prompt_version=PROMPT_VERSION,
        prompt=_request_prompt(persona, envelope),
        model=model,
        payload={"persona": persona.id, "envelope": envelope},
        max_output_tokens=max_output_tokens,
        temperature=temperature,
    )
    completion = client.complete(
        request,
        run_id=f"{envelope.get('season')}-w{envelope.get('week')}-{persona.id}",
        refresh=refresh,
        offline=offline,
    )
    return apply_rationales(envelope, extract_json_block(completion.text))
