"""Tests for the Ollama backend, React scoring and the Ollama benchmark runner."""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock, patch

import db
import job_handlers
import ollama
import ollama_benchmark
from react_cases import DIFFICULTIES, REACT_TEST_CASES, generate_react_test_cases

BASIC_COMPONENT = """import React from 'react';

export default function Greeting() {
  return <h1>Hello, World!</h1>;
}
"""


def _mock_client(monkeypatch, handler):
    monkeypatch.setattr(
        ollama, "_client",
        lambda: httpx.AsyncClient(base_url="http://ollama.test", transport=httpx.MockTransport(handler)),
    )


# ── Helpers ──────────────────────────────────────────────────────────────


class TestFormatSize:
    @pytest.mark.parametrize("size,expected", [
        (0, "0 B"),
        (512, "512.0 B"),
        (1536, "1.5 KB"),
        (4 * 1024 ** 3, "4.0 GB"),
    ])
    def test_format(self, size, expected):
        assert ollama.format_size(size) == expected


class TestReactCases:
    def test_seven_cases_per_difficulty(self):
        assert set(REACT_TEST_CASES) == set(DIFFICULTIES)
        assert all(len(cases) == 7 for cases in REACT_TEST_CASES.values())

    def test_count_and_fresh_ids(self):
        cases = generate_react_test_cases(["basic", "expert"], 3)
        assert len(cases) == 6
        assert [c["difficulty"] for c in cases] == ["basic"] * 3 + ["expert"] * 3
        assert len({c["id"] for c in cases}) == 6

    def test_count_above_available(self):
        assert len(generate_react_test_cases(["advanced"], 50)) == 7

    def test_unknown_difficulty_is_empty(self):
        assert generate_react_test_cases(["legendary"], 5) == []


# ── React evaluation ─────────────────────────────────────────────────────


class TestEvaluateReactResponse:
    def test_basic_component(self):
        result = ollama.evaluate_react_response(BASIC_COMPONENT, None, "basic")
        assert result["category_scores"]["accuracy"] == pytest.approx(0.8)
        assert result["category_scores"]["correctness"] == pytest.approx(1.0)
        assert result["category_scores"]["efficiency"] == pytest.approx(0.25)
        assert result["overall_score"] == pytest.approx(0.77)
        assert result["accuracy_score"] == result["overall_score"]

    @pytest.mark.parametrize("output", ["", "   \n"])
    def test_empty_output_scores_zero(self, output):
        result = ollama.evaluate_react_response(output, None, "basic")
        assert result["overall_score"] == 0.0
        assert result["category_scores"] == {"accuracy": 0.0, "correctness": 0.0, "efficiency": 0.0}

    def test_intermediate_features_count(self):
        code = BASIC_COMPONENT.replace("return", "const [n, setN] = useState(0);\n  return")
        basic = ollama.evaluate_react_response(BASIC_COMPONENT, None, "intermediate")
        with_state = ollama.evaluate_react_response(code, None, "intermediate")
        assert with_state["category_scores"]["accuracy"] > basic["category_scores"]["accuracy"]

    def test_scores_are_capped(self):
        code = BASIC_COMPONENT + "useContext useReducer useMemo useCallback createContext Provider"
        result = ollama.evaluate_react_response(code * 3, None, "advanced")
        assert all(0 <= v <= 1 for v in result["category_scores"].values())


# ── HTTP client ──────────────────────────────────────────────────────────


class TestOllamaClient:
    @pytest.mark.asyncio
    async def test_get_models(self, monkeypatch):
        def handler(request):
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"name": "llama3", "size": 1536, "modified_at": "2024-01-01"}]})

        _mock_client(monkeypatch, handler)
        models = await ollama.get_models()
        assert models == [{
            "id": "llama3",
            "name": "llama3",
            "description": "llama3 (1.5 KB)",
            "size": 1536,
            "modified": "2024-01-01",
            "parameters": ollama.DEFAULT_PARAMETERS,
        }]

    @pytest.mark.asyncio
    async def test_get_models_error(self, monkeypatch):
        _mock_client(monkeypatch, lambda request: httpx.Response(500, text="down"))
        with pytest.raises(ollama.OllamaError, match="Failed to fetch Ollama models"):
            await ollama.get_models()

    @pytest.mark.asyncio
    async def test_run_prompt(self, monkeypatch):
        seen = {}

        def handler(request):
            import json
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"response": "hi", "eval_count": 7, "prompt_eval_count": 3})

        _mock_client(monkeypatch, handler)
        result = await ollama.run_prompt("llama3", "Say hi", {"temperature": 0.2, "max_tokens": 64})
        assert seen["stream"] is False
        assert seen["options"] == {"temperature": 0.2, "top_p": 1, "num_predict": 64}
        assert result["output"] == "hi"
        assert result["token_count"] == 7
        assert result["prompt_token_count"] == 3
        assert result["total_token_count"] == 10
        assert result["latency"] >= 0

    @pytest.mark.asyncio
    async def test_run_prompt_error(self, monkeypatch):
        _mock_client(monkeypatch, lambda request: httpx.Response(404, json={"error": "model not found"}))
        with pytest.raises(ollama.OllamaError, match="Failed to run prompt against Ollama model ghost"):
            await ollama.run_prompt("ghost", "hi")

    @pytest.mark.asyncio
    async def test_check_server(self, monkeypatch):
        _mock_client(monkeypatch, lambda request: httpx.Response(200, json={"models": []}))
        assert await ollama.check_server() is True
        _mock_client(monkeypatch, lambda request: httpx.Response(503))
        assert await ollama.check_server() is False


# ── Benchmark runner ─────────────────────────────────────────────────────


async def _fake_run_prompt(model_id, prompt, parameters=None):
    if model_id == "mistral":
        raise ollama.OllamaError("Failed to run prompt against Ollama model mistral: boom")
    return {"output": BASIC_COMPONENT, "latency": 100.0, "token_count": 42}


class TestOllamaBenchmark:
    @pytest.mark.asyncio
    async def test_create(self, temp_db):
        created = await ollama_benchmark.create_benchmark({
            "models": ["llama3", "mistral"], "difficulties": ["basic", "expert"], "count": 2,
        })
        assert created["result"]["status"] == "created"
        assert created["result"]["status_details"]["totalTests"] == 8
        assert created["config"]["description"] == ollama_benchmark.DEFAULT_DESCRIPTION
        assert created["config"]["parameters"] == ollama.DEFAULT_PARAMETERS
        assert len(created["config"]["test_cases"]) == 4

    @pytest.mark.asyncio
    async def test_run_scores_and_ranks(self, temp_db):
        created = await ollama_benchmark.create_benchmark({
            "models": ["llama3", {"id": "mistral"}], "difficulties": ["basic"], "count": 2,
        })
        result_id = created["result"]["id"]
        progress = AsyncMock()

        with patch("ollama.run_prompt", side_effect=_fake_run_prompt):
            final = await ollama_benchmark.run_benchmark(result_id, asyncio.Event(), progress)

        assert final["status"] == "completed"
        assert final["status_details"]["progress"] == 4
        assert progress.await_args_list[-1].args[0] == 100

        results = await ollama_benchmark.get_benchmark_results(result_id)
        rows = results["test_case_results"]
        assert len(rows) == 4
        failed = [r for r in rows if r["model_id"] == "mistral"]
        assert all(r["output"].startswith("Error: ") and r["accuracy_score"] == 0 for r in failed)
        good = [r for r in rows if r["model_id"] == "llama3"]
        assert all(r["accuracy_score"] == pytest.approx(0.77) for r in good)

        ranked = results["model_rankings"]
        assert [r["model_id"] for r in ranked] == ["llama3", "mistral"]
        assert ranked[0]["basic_rank"] == 1
        assert ranked[0]["expert_rank"] is None

    @pytest.mark.asyncio
    async def test_cancelled_before_first_case(self, temp_db):
        created = await ollama_benchmark.create_benchmark({"models": ["llama3"], "difficulties": ["basic"], "count": 1})
        cancel = asyncio.Event()
        cancel.set()
        with patch("ollama.run_prompt", side_effect=_fake_run_prompt) as mock_run:
            final = await ollama_benchmark.run_benchmark(created["result"]["id"], cancel)
        assert final["status"] == "failed"
        assert final["error"] == ollama_benchmark.CANCELLED_ERROR
        mock_run.assert_not_called()

    @pytest.mark.asyncio
    async def test_unexpected_case_error_recorded_per_case(self, temp_db):
        created = await ollama_benchmark.create_benchmark({"models": ["llama3"], "difficulties": ["basic"], "count": 2})
        result_id = created["result"]["id"]
        calls = []

        async def flaky(model_id, prompt, parameters=None):
            calls.append(prompt)
            if len(calls) == 1:
                raise RuntimeError("gpu exploded")
            return await _fake_run_prompt(model_id, prompt, parameters)

        with patch("ollama.run_prompt", side_effect=flaky):
            final = await ollama_benchmark.run_benchmark(result_id)

        assert final["status"] == "completed"
        rows = (await ollama_benchmark.get_benchmark_results(result_id))["test_case_results"]
        assert rows[0]["output"] == "Error: gpu exploded"
        assert rows[1]["accuracy_score"] > 0

    @pytest.mark.asyncio
    async def test_run_level_error_recorded(self, temp_db):
        created = await ollama_benchmark.create_benchmark({"models": ["llama3"], "difficulties": ["basic"], "count": 1})
        with patch("ollama.run_prompt", side_effect=_fake_run_prompt), \
             patch("rankings.calculate_ollama_rankings", side_effect=RuntimeError("ranking broke")):
            final = await ollama_benchmark.run_benchmark(created["result"]["id"])
        assert final["status"] == "failed"
        assert final["error"] == "ranking broke"

    @pytest.mark.asyncio
    async def test_unknown_result(self, temp_db):
        with pytest.raises(ValueError):
            await ollama_benchmark.run_benchmark("missing")
        assert await ollama_benchmark.get_benchmark_results("missing") is None


class TestOllamaJobHandler:
    @pytest.mark.asyncio
    async def test_returns_result_id(self, temp_db):
        created = await ollama_benchmark.create_benchmark({"models": ["llama3"], "difficulties": ["basic"], "count": 1})
        result_id = created["result"]["id"]
        with patch("ollama.run_prompt", side_effect=_fake_run_prompt):
            ref = await job_handlers.ollama_benchmark_handler(
                "job-1", {"result_id": result_id}, {}, asyncio.Event(), AsyncMock(),
            )
        assert ref == result_id
        assert (await db.get_ollama_result(result_id))["status"] == "completed"

    @pytest.mark.asyncio
    async def test_failed_run_raises(self, temp_db):
        created = await ollama_benchmark.create_benchmark({"models": ["llama3"], "difficulties": ["basic"], "count": 1})
        with patch("ollama.run_prompt", side_effect=_fake_run_prompt), \
             patch("rankings.calculate_ollama_rankings", side_effect=RuntimeError("ranking broke")):
            with pytest.raises(RuntimeError, match="ranking broke"):
                await job_handlers.ollama_benchmark_handler(
                    "job-1", {"result_id": created["result"]["id"]}, {}, asyncio.Event(), AsyncMock(),
                )

    @pytest.mark.asyncio
    async def test_cancelled_run_does_not_raise(self, temp_db):
        created = await ollama_benchmark.create_benchmark({"models": ["llama3"], "difficulties": ["basic"], "count": 1})
        cancel = asyncio.Event()
        cancel.set()
        ref = await job_handlers.ollama_benchmark_handler(
            "job-1", {"result_id": created["result"]["id"]}, {}, cancel, AsyncMock(),
        )
        assert ref == created["result"]["id"]
