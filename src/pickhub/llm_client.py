"""Cache-first OpenAI Responses client used to voice persona rationales.

A request is identified by its task, prompt version, model and payload; the
same identity is served from ``<runtime_dir>/llm_cache`` without a network
call.  Every call, cached or live, is written to the monthly usage ledger and
live calls are refused once the monthly cap is spent.
"""

from __future__ import annotations

import hashlib
import json
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from pickhub.budget import append_llm_usage, llm_budget_status
from pickhub.settings import Settings, find_key_in_files
from pickhub.time_utils import current_month_utc, utc_now_str
from pickhub.util.parsing import as_mapping, parse_csv, safe_int

OPENAI_RESPONSES_URL = "https://api.openai.com/v1/responses"
INPUT_RATE_PER_1M_USD = 0.25
OUTPUT_RATE_PER_1M_USD = 1.0
RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})
MAX_ATTEMPTS = 3
RETRY_BACKOFF_S = 0.7
MIN_TIMEOUT_S = 20.0
CACHE_SCHEMA_VERSION = 1


class LLMClientError(RuntimeError):
    """Base error for LLM workflow failures."""


class MissingOpenAIKeyError(LLMClientError):
    """Raised when no OpenAI key is available."""


class LLMBudgetExceededError(LLMClientError):
    """Raised when the monthly LLM budget cap is exceeded."""


class LLMOfflineCacheMissError(LLMClientError):
    """Raised when an offline run has no cached result."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the model response text cannot be parsed as expected."""


PostFn = Callable[[str, dict[str, str], dict[str, Any], float], dict[str, Any]]


def _count(value: Any) -> int:
    parsed = safe_int(value)
    return max(0, parsed) if parsed is not None else 0


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def cost_usd(self) -> float:
        cost = (
            self.input_tokens * INPUT_RATE_PER_1M_USD
            + self.output_tokens * OUTPUT_RATE_PER_1M_USD
        ) / 1_000_000.0
        return round(cost, 6)

    @classmethod
    def from_response(cls, payload: dict[str, Any]) -> TokenUsage:
        usage = as_mapping(payload.get("usage"))
        return cls(
            input_tokens=_count(usage.get("input_tokens")),
            output_tokens=_count(usage.get("output_tokens")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "cost_usd": self.cost_usd,
        }


@dataclass(frozen=True)
class CompletionRequest:
    """One prompt plus the identity that keys its cache entry."""

    task: str
    prompt_version: str
    prompt: str
    model: str
    payload: dict[str, Any] = field(default_factory=dict)
    max_output_tokens: int = 2400
    temperature: float = 0.7

    @property
    def cache_key(self) -> str:
        identity = {
            "task": self.task,
            "prompt_version": self.prompt_version,
            "model": self.model,
            "payload": self.payload,
        }
        serialized = json.dumps(identity, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()

    def body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "input": self.prompt,
            "max_output_tokens": self.max_output_tokens,
        }
        if self.model.strip().lower().startswith("gpt-5"):
            # gpt-5 rejects temperature; minimal reasoning keeps output from being cut off.
            body["reasoning"] = {"effort": "minimal"}
        else:
            body["temperature"] = self.temperature
        return body


@dataclass(frozen=True)
class Completion:
    cache_key: str
    model: str
    text: str
    cached: bool
    usage: TokenUsage = field(default_factory=TokenUsage)

    @property
    def source(self) -> str:
        return "cache" if self.cached else "live"


def response_text(payload: dict[str, Any]) -> str:
    """Text of a Responses API payload: ``output_text`` or the joined content parts."""
    direct = payload.get("output_text")
    if isinstance(direct, str) and direct.strip():
        return direct.strip()
    pieces: list[str] = []
    output = payload.get("output")
    for item in output if isinstance(output, list) else []:
        content = as_mapping(item).get("content")
        for part in content if isinstance(content, list) else []:
            text = as_mapping(part).get("text")
            if isinstance(text, str) and text.strip():
                pieces.append(text.strip())
    return "\n".join(pieces)


def _default_post(
    url: str, headers: dict[str, str], payload: dict[str, Any], timeout: float
) -> dict[str, Any]:
    error = LLMClientError("openai request failed after retries")
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            response = httpx.post(url, headers=headers, json=payload, timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            detail = exc.response.text.strip()[-400:]
            error = LLMClientError(f"openai request failed: status={status} detail={detail}")
            if status not in RETRYABLE_STATUS:
                raise error from exc
        except httpx.TransportError as exc:
            error = LLMClientError(f"openai request transport error: {exc}")
        else:
            data = response.json()
            if not isinstance(data, dict):
                raise LLMClientError("unexpected OpenAI response payload")
            return data
        if attempt < MAX_ATTEMPTS:
            time.sleep(RETRY_BACKOFF_S * attempt)
    raise error


def resolve_openai_api_key(settings: Settings, root: Path | None = None) -> str:
    """Resolve the key from env first, then settings, then key files under ``root``."""
    candidates = parse_csv(settings.openai_key_file_candidates)
    key = (
        os.environ.get("OPENAI_API_KEY", "").strip()
        or settings.openai_api_key.strip()
        or find_key_in_files(candidates, root or Path.cwd())
    )
    if not key:
        raise MissingOpenAIKeyError(
            f"missing OpenAI API key; set OPENAI_API_KEY or provide one of {candidates}"
        )
    return key


class LLMClient:
    """Cache-first wrapper around the OpenAI Responses API."""

    def __init__(
        self,
        *,
        settings: Settings,
        runtime_root: Path,
        post_fn: PostFn | None = None,
        key_root: Path | None = None,
    ) -> None:
        self.settings = settings
        self.runtime_root = runtime_root.resolve()
        self.post_fn = post_fn or _default_post
        self.key_root = key_root or Path.cwd()
        self.cache_dir = self.runtime_root / "llm_cache"
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _cache_path(self, cache_key: str) -> Path:
        return self.cache_dir / f"{cache_key}.json"

    def _read_cache(self, request: CompletionRequest) -> Completion | None:
        path = self._cache_path(request.cache_key)
        if not path.exists():
            return None
        row = json.loads(path.read_text(encoding="utf-8"))
        usage = as_mapping(row.get("usage"))
        return Completion(
            cache_key=request.cache_key,
            model=request.model,
            text=str(row.get("response_text", "")),
            cached=True,
            usage=TokenUsage(
                input_tokens=_count(usage.get("input_tokens")),
                output_tokens=_count(usage.get("output_tokens")),
            ),
        )

    def _write_cache(self, request: CompletionRequest, completion: Completion) -> None:
        row = {
            "schema_version": CACHE_SCHEMA_VERSION,
            "cache_key": completion.cache_key,
            "created_at_utc": utc_now_str(),
            "task": request.task,
            "prompt_version": request.prompt_version,
            "model": request.model,
            "payload": request.payload,
            "response_text": completion.text,
            "usage": completion.usage.to_dict(),
        }
        self._cache_path(completion.cache_key).write_text(
            json.dumps(row, sort_keys=True, indent=2) + "\n", encoding="utf-8"
        )

    def _record_usage(
        self, month: str, request: CompletionRequest, completion: Completion, run_id: str
    ) -> None:
        # Cache hits are logged at zero cost so the ledger still counts them.
        usage = TokenUsage() if completion.cached else completion.usage
        append_llm_usage(
            self.runtime_root,
            month,
            {
                "timestamp_utc": utc_now_str(),
                "task": request.task,
                "prompt_version": request.prompt_version,
                "model": request.model,
                "cache_key": completion.cache_key,
                "run_id": run_id,
                "cached": completion.cached,
                **usage.to_dict(),
            },
        )

    def _call_live(self, request: CompletionRequest) -> Completion:
        headers = {
            "Authorization": f"Bearer {resolve_openai_api_key(self.settings, self.key_root)}",
            "Content-Type": "application/json",
        }
        timeout = max(MIN_TIMEOUT_S, float(self.settings.openai_timeout_s))
        raw = self.post_fn(OPENAI_RESPONSES_URL, headers, request.body(), timeout)
        text = response_text(raw)
        if not text:
            status = str(raw.get("status", "")).strip().lower()
            suffix = f" (status={status})" if status else ""
            raise LLMResponseFormatError(f"empty response text for task={request.task}{suffix}")
        return Completion(
            cache_key=request.cache_key,
            model=request.model,
            text=text,
            cached=False,
            usage=TokenUsage.from_response(raw),
        )

    def complete(
        self,
        request: CompletionRequest,
        *,
        run_id: str,
        refresh: bool = False,
        offline: bool = False,
    ) -> Completion:
        """Serve ``request`` from cache, or call the API within the monthly cap."""
        month = current_month_utc()
        completion = None if refresh else self._read_cache(request)
        if completion is None:
            if offline:
                raise LLMOfflineCacheMissError(f"offline cache miss for task={request.task}")
            budget = llm_budget_status(
                self.runtime_root, month, self.settings.llm_monthly_cap_usd
            )
            if budget["cap_reached"]:
                raise LLMBudgetExceededError(
                    f"llm monthly cap reached: used={budget['used_usd']} cap={budget['cap_usd']}"
                )
            completion = self._call_live(request)
            self._write_cache(request, completion)
        self._record_usage(month, request, completion, run_id)
        return completion
