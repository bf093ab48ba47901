"""Runtime configuration: ``config/runtime.toml`` first, CLI flags on top.

An optional ``config/runtime.local.toml`` next to the default file is merged
over it table by table.  Relative paths resolve against the directory of the
config file that named them.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from pickhub.portfolio import PortfolioConstraints
from pickhub.util.parsing import parse_csv, safe_float, safe_int

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "runtime.toml"
DEFAULT_LOCAL_OVERRIDE_PATH = CONFIG_DIR / "runtime.local.toml"
DEFAULT_KEY_FILES = ("OPENAI_KEY.ignore", "OPENAI_KEY")


@dataclass(frozen=True)
class RuntimeConfig:
    """Materialized runtime configuration."""

    config_path: Path
    data_dir: Path
    reports_dir: Path
    runtime_dir: Path
    personas_path: Path
    season: int
    openai_model: str
    openai_timeout_s: float
    openai_key_files: tuple[str, ...]
    llm_monthly_cap_usd: float
    max_picks: int
    max_per_game: int
    primary_threshold: float
    fill_threshold: float

    def with_path_overrides(
        self,
        *,
        data_dir: Path | None = None,
        reports_dir: Path | None = None,
        runtime_dir: Path | None = None,
    ) -> RuntimeConfig:
        """Return copy with explicit CLI path overrides applied."""
        resolved_data = data_dir or self.data_dir
        resolved_reports = reports_dir or self.reports_dir
        resolved_runtime = runtime_dir or self.runtime_dir
        resolved_personas = self.personas_path
        if data_dir is not None:
            home = resolved_data.resolve().parent
            if reports_dir is None:
                resolved_reports = home / "reports"
            if runtime_dir is None:
                resolved_runtime = home / "runtime"
            if self.personas_path.parent == self.data_dir:
                resolved_personas = resolved_data / self.personas_path.name
        return replace(
            self,
            data_dir=resolved_data,
            reports_dir=resolved_reports,
            runtime_dir=resolved_runtime,
            personas_path=resolved_personas,
        )

    def portfolio_constraints(self) -> PortfolioConstraints:
        return PortfolioConstraints(
            max_picks=self.max_picks,
            max_per_game=self.max_per_game,
            primary_threshold=self.primary_threshold,
            fill_threshold=self.fill_threshold,
        )


_CURRENT_RUNTIME_CONFIG: RuntimeConfig | None = None


def set_current_runtime_config(config: RuntimeConfig | None) -> None:
    global _CURRENT_RUNTIME_CONFIG
    _CURRENT_RUNTIME_CONFIG = config


def current_runtime_config() -> RuntimeConfig:
    config = _CURRENT_RUNTIME_CONFIG
    if config is not None:
        return config
    loaded = load_runtime_config()
    set_current_runtime_config(loaded)
    return loaded


def _merge_tables(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        merged[key] = (
            _merge_tables(current, value)
            if isinstance(current, dict) and isinstance(value, dict)
            else value
        )
    return merged


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        payload = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RuntimeError(f"failed reading runtime config: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise RuntimeError(f"invalid runtime config TOML: {path}") from exc
    return payload


def _section(payload: dict[str, Any], name: str) -> dict[str, Any]:
    value = payload.get(name) or {}
    if not isinstance(value, dict):
        raise RuntimeError(f"runtime config section [{name}] must be a table")
    return value


def _text(value: Any, default: str) -> str:
    return value.strip() if isinstance(value, str) and value.strip() else default


def _int(value: Any, default: int) -> int:
    parsed = safe_int(value)
    return parsed if parsed is not None else default


def _float(value: Any, default: float) -> float:
    parsed = safe_float(value)
    return parsed if parsed is not None else default


def _names(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    if isinstance(value, list):
        names = [str(item).strip() for item in value if str(item).strip()]
    elif isinstance(value, str):
        names = parse_csv(value)
    else:
        names = []
    return tuple(names) or default


def _path(value: Any, default: str, base_dir: Path) -> Path:
    path = Path(_text(value, default)).expanduser()
    return path if path.is_absolute() else (base_dir / path).resolve()


def load_runtime_config(config_path: Path | None = None) -> RuntimeConfig:
    """Load ``config_path`` (default ``config/runtime.toml``) into a frozen config."""
    source = (config_path or DEFAULT_CONFIG_PATH).expanduser().resolve()
    if not source.exists():
        raise RuntimeError(f"runtime config file not found: {source}")
    payload = _read_toml(source)
    if source == DEFAULT_CONFIG_PATH and DEFAULT_LOCAL_OVERRIDE_PATH.exists():
        payload = _merge_tables(payload, _read_toml(DEFAULT_LOCAL_OVERRIDE_PATH))

    paths = _section(payload, "paths")
    season = _section(payload, "season")
    selection = _section(payload, "selection")
    openai = _section(payload, "openai")
    base_dir = source.parent
    defaults = PortfolioConstraints()
    return RuntimeConfig(
        config_path=source,
        data_dir=_path(paths.get("data_dir"), "data", base_dir),
        reports_dir=_path(paths.get("reports_dir"), "reports", base_dir),
        runtime_dir=_path(paths.get("runtime_dir"), "runtime", base_dir),
        personas_path=_path(paths.get("personas_path"), "personas.json", base_dir),
        season=_int(season.get("season"), 2025),
        openai_model=_text(openai.get("model"), "gpt-5-mini"),
        openai_timeout_s=_float(openai.get("timeout_s"), 60.0),
        openai_key_files=_names(openai.get("key_files"), DEFAULT_KEY_FILES),
        llm_monthly_cap_usd=_float(openai.get("monthly_cap_usd"), 5.0),
        max_picks=_int(selection.get("max_picks"), defaults.max_picks),
        max_per_game=_int(selection.get("max_per_game"), defaults.max_per_game),
        primary_threshold=_float(selection.get("primary_threshold"), defaults.primary_threshold),
        fill_threshold=_float(selection.get("fill_threshold"), defaults.fill_threshold),
    )
