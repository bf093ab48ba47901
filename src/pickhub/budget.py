"""Monthly LLM usage ledger and the spend cap check for rationale runs.

Each model call (live or served from cache) appends one JSON line to
``<runtime_dir>/llm_usage/usage-YYYY-MM.jsonl``.  Cached rows carry zero cost,
so the cap only counts live spend.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pickhub.util.parsing import float_or_zero, safe_int


def _int_or_zero(value: Any) -> int:
    parsed = safe_int(value)
    return parsed if parsed is not None else 0


def llm_usage_path(runtime_root: Path, month: str) -> Path:
    return Path(runtime_root) / "llm_usage" / f"usage-{month}.jsonl"


def load_usage_rows(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    lines = path.read_text(encoding="utf-8").splitlines()
    rows = (json.loads(line) for line in lines if line.strip())
    return [row for row in rows if isinstance(row, dict)]


def append_llm_usage(runtime_root: Path, month: str, row: dict[str, Any]) -> Path:
    path = llm_usage_path(runtime_root, month)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(row, sort_keys=True, ensure_ascii=True) + "\n")
    return path


def read_llm_usage(runtime_root: Path, month: str) -> dict[str, Any]:
    """Totals for one month of the usage ledger."""
    path = llm_usage_path(runtime_root, month)
    rows = load_usage_rows(path)
    input_tokens = sum(_int_or_zero(row.get("input_tokens")) for row in rows)
    output_tokens = sum(_int_or_zero(row.get("output_tokens")) for row in rows)
    return {
        "month": month,
        "path": str(path),
        "request_count": len(rows),
        "cached_count": sum(1 for row in rows if row.get("cached") is True),
        "total_cost_usd": round(sum(float_or_zero(row.get("cost_usd")) for row in rows), 6),
        "total_input_tokens": input_tokens,
        "total_output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
    }


def llm_budget_status(runtime_root: Path, month: str, cap_usd: float) -> dict[str, Any]:
    """Spend against the monthly cap; a zero cap blocks every live call."""
    usage = read_llm_usage(runtime_root, month)
    used = float(usage["total_cost_usd"])
    cap = max(0.0, float(cap_usd))
    return {
        "month": month,
        "used_usd": round(used, 6),
        "cap_usd": round(cap, 6),
        "remaining_usd": round(max(0.0, cap - used), 6),
        "cap_reached": used >= cap,
        "usage_path": usage["path"],
        "request_count": usage["request_count"],
        "cached_count": usage["cached_count"],
        "total_input_tokens": usage["total_input_tokens"],
        "total_output_tokens": usage["total_output_tokens"],
    }
