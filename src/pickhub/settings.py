"""Application settings for pickhub."""

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pickhub.runtime_config import current_runtime_config

KEY_FILE_NAMES = frozenset({"OPENAI_API_KEY", "OPENAI_KEY", "PICKHUB_OPENAI_API_KEY"})


def read_key_file(path: Path) -> str:
    """First line of a key file, either a bare key or ``NAME=value``."""
    try:
        raw = path.read_text(encoding="utf-8").strip()
    except OSError:
        return ""
    first_line = raw.splitlines()[0].strip() if raw else ""
    if "=" in first_line:
        name, first_line = first_line.split("=", 1)
        if name.strip().upper() not in KEY_FILE_NAMES:
            return ""
    return first_line.strip().strip('"').strip("'")


def find_key_in_files(candidates: list[str] | tuple[str, ...], base: Path) -> str:
    for candidate in candidates:
        path = Path(candidate).expanduser()
        if not path.is_absolute():
            path = base / path
        if path.is_file():
            key = read_key_file(path)
            if key:
                return key
    return ""


class Settings(BaseSettings):
    """Runtime settings for the OpenAI client and selection defaults."""

    model_config = SettingsConfigDict(
        env_prefix="PICKHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("OPENAI_API_KEY", "PICKHUB_OPENAI_API_KEY"),
    )
    openai_model: str = "gpt-5-mini"
    openai_timeout_s: float = 60.0
    llm_monthly_cap_usd: float = 5.0
    openai_key_file_candidates: str = "OPENAI_KEY,OPENAI_KEY.ignore"
    season: int = 2025
    max_picks: int = 5
    max_per_game: int = 2
    primary_threshold: float = 55.0
    fill_threshold: float = 45.0
    data_dir: str = "data"
    reports_dir: str = "reports"
    runtime_dir: str = "runtime"
    personas_path: str = "config/personas.json"

    @classmethod
    def from_runtime(cls) -> "Settings":
        """Settings mirroring the active runtime config, with the key resolved up front.

        Key files listed in the config resolve against the config file's directory.
        """
        runtime = current_runtime_config()
        api_key = (
            os.environ.get("OPENAI_API_KEY", "").strip()
            or os.environ.get("PICKHUB_OPENAI_API_KEY", "").strip()
            or find_key_in_files(runtime.openai_key_files, runtime.config_path.parent.resolve())
        )
        return cls(
            openai_api_key=api_key,
            openai_model=runtime.openai_model,
            openai_timeout_s=runtime.openai_timeout_s,
            llm_monthly_cap_usd=runtime.llm_monthly_cap_usd,
            openai_key_file_candidates=",".join(runtime.openai_key_files),
            season=runtime.season,
            max_picks=runtime.max_picks,
            max_per_game=runtime.max_per_game,
            primary_threshold=runtime.primary_threshold,
            fill_threshold=runtime.fill_threshold,
            data_dir=str(runtime.data_dir),
            reports_dir=str(runtime.reports_dir),
            runtime_dir=str(runtime.runtime_dir),
            personas_path=str(runtime.personas_path),
        )
