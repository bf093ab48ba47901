import json
from pathlib import Path

import httpx
import pytest

from pickhub.budget import llm_budget_status, read_llm_usage
from pickhub.llm_client import (
    Completion,
    CompletionRequest,
    LLMBudgetExceededError,
    LLMClient,
    LLMClientError,
    LLMOfflineCacheMissError,
    LLMResponseFormatError,
    MissingOpenAIKeyError,
    _default_post,
    resolve_openai_api_key,
)
from pickhub.settings import Settings
from pickhub.time_utils import current_month_utc


def _complete(
    client: LLMClient,
    *,
    model: str = "gpt-5-mini",
    refresh: bool = False,
    offline: bool = False,
) -> Completion:
    request = CompletionRequest(
        task="rationale",
        prompt_version="v1",
        prompt="hello",
        model=model,
        payload={"x": 1},
        max_output_tokens=200,
        temperature=0.7,
    )
    return client.complete(request, run_id="2025-w1-joe", refresh=refresh, offline=offline)


def test_llm_cache_hit_prevents_repeat_call(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "openai-test")
    settings = Settings(_env_file=None)

    calls = {"count": 0}

    def fake_post(url: str, headers: dict[str, str], payload: dict, timeout: float) -> dict:
        calls["count"] += 1
        assert url.endswith("/v1/responses")
        assert headers["Authorization"] == "Bearer openai-test"
        return {
            "output_text": '{"picks": []}',
            "usage": {"input_tokens": 50, "output_tokens": 20, "total_tokens": 70},
        }

    client = LLMClient(settings=settings, runtime_root=tmp_path / "runtime", post_fn=fake_post)
    first = _complete(client)
    second = _complete(client)

    assert calls["count"] == 1
    assert first.cached is False
    assert second.cached is True
    assert second.text == '{"picks": []}'

    usage_files = sorted((tmp_path / "runtime" / "llm_usage").glob("usage-*.jsonl"))
    assert usage_files
    rows = [json.loads(line) for line in usage_files[0].read_text(encoding="utf-8").splitlines()]
    assert [row["cached"] for row in rows] == [False, True]
    assert rows[0]["run_id"] == "2025-w1-joe"

    usage = read_llm_usage(tmp_path / "runtime", current_month_utc())
    assert usage["request_count"] == 2
    assert usage["cached_count"] == 1
    assert usage["total_tokens"] == 70


def test_offline_cache_miss_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "openai-test")
    settings = Settings(_env_file=None)

    def fake_post(url: str, headers: dict[str, str], payload: dict, timeout: float) -> dict:
        raise AssertionError("offline runs must not call the API")

    client = LLMClient(settings=settings, runtime_root=tmp_path / "runtime", post_fn=fake_post)
    with pytest.raises(LLMOfflineCacheMissError, match="task=rationale"):
        _complete(client, offline=True)


def test_llm_budget_cap_blocks_live_calls(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "openai-test")
    monkeypatch.setenv("PICKHUB_LLM_MONTHLY_CAP_USD", "0")
    settings = Settings(_env_file=None)

    called = {"value": False}

    def fake_post(url: str, headers: dict[str, str], payload: dict, timeout: float) -> dict:
        called["value"] = True
        return {"output_text": "x", "usage": {}}

    client = LLMClient(settings=settings, runtime_root=tmp_path / "runtime", post_fn=fake_post)
    with pytest.raises(LLMBudgetExceededError):
        _complete(client)
    assert called["value"] is False


def test_budget_status_sums_usage_ledger(tmp_path: Path) -> None:
    month = "2025-09"
    path = tmp_path / "llm_usage" / f"usage-{month}.jsonl"
    path.parent.mkdir(parents=True)
    path.write_text(
        "\n".join(
            [
                json.dumps({"cost_usd": 1.25, "input_tokens": 10, "output_tokens": 5}),
                "",
                json.dumps({"cost_usd": "0.75", "cached": True}),
            ]
        )
        + "\n",
        encoding="utf-8",
    )

    status = llm_budget_status(tmp_path, month, 2.0)

    assert status["used_usd"] == 2.0
    assert status["remaining_usd"] == 0.0
    assert status["cap_reached"] is True
    assert status["request_count"] == 2


def test_gpt5_payload_omits_temperature(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "openai-test")
    settings = Settings(_env_file=None)

    captured: dict[str, dict] = {}

    def fake_post(url: str, headers: dict[str, str], payload: dict, timeout: float) -> dict:
        del url, headers, timeout
        captured["payload"] = payload
        return {"output_text": "ok", "usage": {"input_tokens": 1, "output_tokens": 1}}

    client = LLMClient(settings=settings, runtime_root=tmp_path / "runtime", post_fn=fake_post)
    _complete(client, refresh=True)
    assert "temperature" not in captured["payload"]
    assert captured["payload"]["reasoning"] == {"effort": "minimal"}

    _complete(client, refresh=True, model="gpt-4.1-mini")
    assert captured["payload"]["temperature"] == 0.7
    assert "reasoning" not in captured["payload"]


def test_incomplete_response_raises_clear_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "openai-test")
    settings = Settings(_env_file=None)

    def fake_post(url: str, headers: dict[str, str], payload: dict, timeout: float) -> dict:
        del url, headers, payload, timeout
        return {
            "id": "resp_test",
            "status": "incomplete",
            "output": [{"type": "reasoning", "summary": []}],
            "usage": {"input_tokens": 1, "output_tokens": 1},
        }

    client = LLMClient(settings=settings, runtime_root=tmp_path / "runtime", post_fn=fake_post)
    with pytest.raises(LLMResponseFormatError, match="status=incomplete"):
        _complete(client, refresh=True)


def test_output_content_text_is_joined(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "openai-test")
    settings = Settings(_env_file=None)

    def fake_post(url: str, headers: dict[str, str], payload: dict, timeout: float) -> dict:
        del url, headers, payload, timeout
        return {
            "output": [
                {"type": "message", "content": [{"type": "output_text", "text": "line one"}]},
                {"type": "message", "content": [{"type": "output_text", "text": "line two"}]},
            ],
        }

    client = LLMClient(settings=settings, runtime_root=tmp_path / "runtime", post_fn=fake_post)
    assert _complete(client).text == "line one\nline two"


def test_default_post_wraps_http_status_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    request = httpx.Request("POST", "https://api.openai.com/v1/responses")
    response = httpx.Response(status_code=400, request=request, text='{"error":"bad request"}')

    def fake_post(url: str, headers: dict[str, str], json: dict, timeout: float) -> httpx.Response:
        del url, headers, json, timeout
        raise httpx.HTTPStatusError("bad request", request=request, response=response)

    monkeypatch.setattr("pickhub.llm_client.httpx.post", fake_post)
    with pytest.raises(LLMClientError, match="status=400"):
        _default_post(
            "https://api.openai.com/v1/responses",
            {"Authorization": "Bearer x"},
            {"model": "gpt-5-mini"},
            30.0,
        )


def test_openai_key_missing_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("PICKHUB_OPENAI_API_KEY", raising=False)
    settings = Settings(_env_file=None)

    with pytest.raises(MissingOpenAIKeyError):
        resolve_openai_api_key(settings, root=tmp_path)


def test_openai_key_file_fallback(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("PICKHUB_OPENAI_API_KEY", raising=False)
    (tmp_path / "OPENAI_KEY.ignore").write_text("test-file-key\n", encoding="utf-8")
    settings = Settings(_env_file=None)

    assert resolve_openai_api_key(settings, root=tmp_path) == "test-file-key"
