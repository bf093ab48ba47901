from __future__ import annotations

from pathlib import Path

import pytest

from pickhub.runtime_config import DEFAULT_CONFIG_PATH, load_runtime_config


def _write_config(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_load_runtime_config_resolves_relative_paths(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "runtime.toml",
        [
            "[paths]",
            'data_dir = "data"',
            'reports_dir = "out/reports"',
            'runtime_dir = "runtime"',
            'personas_path = "cast.json"',
            "",
            "[openai]",
            'key_files = ["OPENAI_KEY.ignore"]',
        ],
    )

    config = load_runtime_config(config_path)

    assert config.data_dir == (tmp_path / "data").resolve()
    assert config.reports_dir == (tmp_path / "out" / "reports").resolve()
    assert config.runtime_dir == (tmp_path / "runtime").resolve()
    assert config.personas_path == (tmp_path / "cast.json").resolve()
    assert config.openai_key_files == ("OPENAI_KEY.ignore",)


def test_selection_section_builds_constraints(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "runtime.toml",
        [
            "[season]",
            "season = 2026",
            "",
            "[selection]",
            "max_picks = 4",
            "max_per_game = 1",
            "primary_threshold = 60",
            'fill_threshold = "50.5"',
        ],
    )

    config = load_runtime_config(config_path)
    constraints = config.portfolio_constraints()

    assert config.season == 2026
    assert constraints.max_picks == 4
    assert constraints.max_per_game == 1
    assert constraints.primary_threshold == 60.0
    assert constraints.fill_threshold == 50.5


def test_missing_sections_fall_back_to_defaults(tmp_path: Path) -> None:
    config = load_runtime_config(_write_config(tmp_path / "runtime.toml", ["# empty"]))

    assert config.season == 2025
    assert config.openai_model == "gpt-5-mini"
    assert config.llm_monthly_cap_usd == 5.0
    assert (config.max_picks, config.max_per_game) == (5, 2)
    assert (config.primary_threshold, config.fill_threshold) == (55.0, 45.0)


def test_invalid_toml_and_non_table_sections_raise(tmp_path: Path) -> None:
    broken = _write_config(tmp_path / "broken.toml", ["[paths", "data_dir = 1"])
    with pytest.raises(RuntimeError, match="invalid runtime config TOML"):
        load_runtime_config(broken)

    flat = _write_config(tmp_path / "flat.toml", ['selection = "fast"'])
    with pytest.raises(RuntimeError, match=r"\[selection\] must be a table"):
        load_runtime_config(flat)

    with pytest.raises(RuntimeError, match="not found"):
        load_runtime_config(tmp_path / "missing.toml")


def test_local_override_merges_over_default_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    base = _write_config(
        tmp_path / "runtime.toml",
        [
            "[selection]",
            "max_picks = 5",
            "max_per_game = 2",
            "",
            "[openai]",
            'model = "gpt-4.1-mini"',
        ],
    )
    local = _write_config(tmp_path / "runtime.local.toml", ["[selection]", "max_picks = 3"])
    monkeypatch.setattr("pickhub.runtime_config.DEFAULT_CONFIG_PATH", base.resolve())
    monkeypatch.setattr("pickhub.runtime_config.DEFAULT_LOCAL_OVERRIDE_PATH", local)

    config = load_runtime_config()

    assert config.max_picks == 3
    assert config.max_per_game == 2
    assert config.openai_model == "gpt-4.1-mini"


def test_path_overrides_move_reports_and_runtime_next_to_data(tmp_path: Path) -> None:
    config = load_runtime_config(_write_config(tmp_path / "runtime.toml", ["# empty"]))

    moved = config.with_path_overrides(data_dir=tmp_path / "elsewhere" / "data")

    assert moved.data_dir == tmp_path / "elsewhere" / "data"
    assert moved.reports_dir == (tmp_path / "elsewhere" / "reports").resolve()
    assert moved.runtime_dir == (tmp_path / "elsewhere" / "runtime").resolve()
    assert moved.personas_path == config.personas_path


def test_default_runtime_config_points_at_repo_personas() -> None:
    config = load_runtime_config(DEFAULT_CONFIG_PATH)

    assert config.personas_path == (DEFAULT_CONFIG_PATH.parent / "personas.json").resolve()
    assert config.data_dir == (DEFAULT_CONFIG_PATH.parent.parent / "data").resolve()
