"""Analyst persona descriptors and their typed betting preferences."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pickhub.util.parsing import as_mapping

FADE_KEYWORDS: tuple[str, ...] = ("contrarian", "fade")
OVER_KEYWORDS: tuple[str, ...] = ("over", "high-scoring")
UNDER_KEYWORDS: tuple[str, ...] = ("under", "defense")
LINE_KEYWORDS: tuple[str, ...] = ("line", "trenches", "discipline")
FAVORITE_KEYWORDS: tuple[str, ...] = ("favorite",)
UNDERDOG_KEYWORDS: tuple[str, ...] = ("underdog", "dogs")

PREFERENCE_KEYS: dict[str, str] = {
    "fade_public": "fadePublic",
    "over_lean": "overLean",
    "under_lean": "underLean",
    "line_lean": "lineLean",
    "favorite_lean": "favoriteLean",
    "underdog_lean": "underdogLean",
}


@dataclass(frozen=True)
class PersonaPreferences:
    """Betting philosophy flags resolved once when personas are loaded."""

    fade_public: bool = False
    over_lean: bool = False
    under_lean: bool = False
    line_lean: bool = False
    favorite_lean: bool = False
    underdog_lean: bool = False

    @property
    def chalk_guard(self) -> bool:
        return not self.favorite_lean

    def active(self) -> list[str]:
        return [name for name in PREFERENCE_KEYS if getattr(self, name)]


@dataclass(frozen=True)
class Persona:
    """Analyst descriptor; preferences default to the flags derived from ``bias``."""

    id: str
    name: str
    bias: str = ""
    tagline: str = ""
    voice_style: str = ""
    persona: str = ""
    preferences: PersonaPreferences | None = None

    def __post_init__(self) -> None:
        if self.preferences is None:
            object.__setattr__(self, "preferences", preferences_from_bias(self.bias))


def _matches(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def preferences_from_bias(bias: str) -> PersonaPreferences:
    """Derive preference flags from free-text bias (case-insensitive substrings)."""
    text = bias.lower()
    return PersonaPreferences(
        fade_public=_matches(text, FADE_KEYWORDS),
        over_lean=_matches(text, OVER_KEYWORDS),
        under_lean=_matches(text, UNDER_KEYWORDS),
        line_lean=_matches(text, LINE_KEYWORDS),
        favorite_lean=_matches(text, FAVORITE_KEYWORDS),
        underdog_lean=_matches(text, UNDERDOG_KEYWORDS),
    )


def _preferences_from_payload(payload: dict[str, Any], bias: str) -> PersonaPreferences:
    derived = preferences_from_bias(bias)
    explicit = payload.get("preferences")
    if not isinstance(explicit, dict):
        return derived
    values: dict[str, bool] = {}
    for attr, key in PREFERENCE_KEYS.items():
        raw = explicit.get(key, explicit.get(attr))
        values[attr] = raw if isinstance(raw, bool) else getattr(derived, attr)
    return PersonaPreferences(**values)


def persona_from_payload(payload: dict[str, Any]) -> Persona:
    """Build a persona from a personas.json row."""
    row = as_mapping(payload)
    persona_id = str(row.get("id", "") or "").strip()
    if not persona_id:
        raise ValueError("persona is missing id")
    bias = str(row.get("bias", "") or "")
    return Persona(
        id=persona_id,
        name=str(row.get("name", "") or persona_id),
        bias=bias,
        tagline=str(row.get("tagline", "") or ""),
        voice_style=str(row.get("voiceStyle", "") or ""),
        persona=str(row.get("persona", "") or ""),
        preferences=_preferences_from_payload(row, bias),
    )


def load_personas(path: Path) -> list[Persona]:
    """Load personas in file order; the order is the processing order of a run."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"personas file must contain a list: {path}")
    personas = [persona_from_payload(row) for row in payload]
    seen: set[str] = set()
    for persona in personas:
        if persona.id in seen:
            raise ValueError(f"duplicate persona id: {persona.id}")
        seen.add(persona.id)
    return personas
