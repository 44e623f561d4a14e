"""Tests for advanced.py -- generation parsing, model selection and analysis.

LLM calls are patched at ``openrouter._complete`` / ``openrouter.get_models``;
analysis runs against a temporary database.
"""

import json

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, patch

import advanced
import db
from openrouter import OpenRouterError


def _reply(content):
    if not isinstance(content, str):
        content = json.dumps(content)
    return {"content": content, "usage": {}, "raw": {}}


CATALOGUE = {"data": [
    {"id": "openai/gpt-4", "description": "GPT-4"},
    {"id": "anthropic/claude-3-haiku", "description": "Claude 3 Haiku"},
]}


# ===========================================================================
# Parsing
# ===========================================================================


class TestExtractJsonArray:
    def test_plain_array(self):
        assert advanced.extract_json_array('[{"prompt": "a"}]') == [{"prompt": "a"}]

    def test_array_inside_prose(self):
        text = 'Sure! Here you go:\n[{"prompt": "x"}]\nLet me know.'
        assert advanced.extract_json_array(text) == [{"prompt": "x"}]

    def test_wrapper_object(self):
        assert advanced.extract_json_array('{"test_cases": [{"prompt": "y"}]}') == [{"prompt": "y"}]

    @pytest.mark.parametrize("text", ["nothing useful", '{"a": 1}', "42"])
    def test_no_array(self, text):
        with pytest.raises(ValueError):
            advanced.extract_json_array(text)


class TestParseTestCases:
    def test_json_cases_get_ids(self):
        text = json.dumps([
            {"id": "keep-me", "name": "A", "prompt": "What is ML?"},
            {"name": "B", "prompt": "Define overfitting."},
            {"name": "No prompt"},
        ])
        cases = advanced.parse_test_cases(text)
        assert [c["name"] for c in cases] == ["A", "B"]
        assert cases[0]["id"] == "keep-me"
        assert cases[1]["id"]

    def test_line_fallback(self):
        text = "Here are some ideas\n1. Explain gradient descent\nWhat is a tensor?\nthanks"
        cases = advanced.parse_test_cases(text)
        assert [c["prompt"] for c in cases] == ["1. Explain gradient descent", "What is a tensor?"]
        assert cases[1]["name"] == "Test case 2"
        assert all(c["category"] == "general" and c["id"] for c in cases)

    def test_line_fallback_respects_count(self):
        text = "\n".join(f"Question {i}?" for i in range(10))
        assert len(advanced.parse_test_cases(text, count=3)) == 3

    def test_unparseable(self):
        with pytest.raises(advanced.TestCaseGenerationError):
            advanced.parse_test_cases("I cannot help with that")


class TestModelsForPrompt:
    def test_small_catalogue_unchanged(self):
        models = [{"id": "a/x"}, {"id": "b/y"}]
        assert advanced.models_for_prompt(models) == models

    def test_even_slice_per_provider_then_popular(self):
        models = [{"id": f"{p}/m{i}"} for p in ("openai", "anthropic", "google", "meta") for i in range(10)]
        models[9] = {"id": "openai/gpt-4-turbo"}
        picked = advanced.models_for_prompt(models)
        ids = [m["id"] for m in picked]
        assert len(ids) == 29
        assert sum(i.startswith("google/") for i in ids) == 7
        assert ids[-1] == "openai/gpt-4-turbo"


# ===========================================================================
# Generation
# ===========================================================================


class TestSelectModels:
    @pytest.mark.asyncio
    async def test_filters_to_catalogue(self):
        reply = [
            {"modelId": "openai/gpt-4", "reason": "Strong reasoning", "parameters": {"temperature": 0.2}},
            {"modelId": "made/up-model", "reason": "Hallucinated"},
        ]
        with patch("openrouter.get_models", new_callable=AsyncMock, return_value=CATALOGUE), \
             patch("openrouter._complete", new_callable=AsyncMock, return_value=_reply(reply)) as mock_complete:
            selected = await advanced.select_models("physics", max_models=5, prioritize_cost=True, api_key="k")
        assert selected == [{**reply[0], "enabled": True}]
        prompt = mock_complete.call_args[0][1][0]["content"]
        assert "openai/gpt-4 (GPT-4)" in prompt
        assert "cost-effective" in prompt
        assert "Select up to 5 models" in prompt

    @pytest.mark.asyncio
    async def test_unparseable_reply_falls_back(self):
        with patch("openrouter.get_models", new_callable=AsyncMock, return_value=CATALOGUE), \
             patch("openrouter._complete", new_callable=AsyncMock, return_value=_reply("no idea")):
            selected = await advanced.select_models("physics", max_models=1, api_key="k")
        assert selected == [{
            "modelId": "openai/gpt-4",
            "reason": "Automatically selected as fallback",
            "parameters": advanced.DEFAULT_SELECTION_PARAMETERS,
            "enabled": True,
        }]

    @pytest.mark.asyncio
    async def test_catalogue_unavailable(self):
        reply = [{"modelId": "anthropic/claude-3-haiku", "reason": "Cheap"}]
        with patch("openrouter.get_models", new_callable=AsyncMock, side_effect=OpenRouterError("down", 503)), \
             patch("openrouter._complete", new_callable=AsyncMock, return_value=_reply(reply)):
            selected = await advanced.select_models("physics", api_key="k")
        assert [m["modelId"] for m in selected] == ["anthropic/claude-3-haiku"]


class TestGenerateAdvancedBenchmark:
    @pytest.mark.asyncio
    async def test_builds_config(self):
        cases = [{"name": "Q1", "category": "factual-knowledge", "prompt": "What is entropy?", "expectedOutput": "Disorder"}]
        models = [{"modelId": "openai/gpt-4", "reason": "Good"}]
        with patch("openrouter.get_models", new_callable=AsyncMock, return_value=CATALOGUE), \
             patch("openrouter._complete", new_callable=AsyncMock,
                   side_effect=[_reply(cases), _reply(models)]) as mock_complete:
            config = await advanced.generate_advanced_benchmark("physics", {"testCaseCount": 1, "maxModels": 2}, "k")

        assert config["name"] == "Advanced Benchmark: physics"
        assert config["benchmark_type"] == "advanced"
        assert config["topic"] == "physics"
        assert config["advanced_options"] == {"testCaseCount": 1, "maxModels": 2}
        assert config["test_cases"][0]["prompt"] == "What is entropy?"
        assert config["test_cases"][0]["id"]
        assert config["model_configs"][0]["enabled"] is True
        first_prompt = mock_complete.call_args_list[0][0][1][0]["content"]
        assert 'Create 1 diverse test cases' in first_prompt
        assert mock_complete.call_args_list[0][0][0] == advanced.GENERATOR_MODEL


# ===========================================================================
# Analysis
# ===========================================================================


def _row(model_id, case_id, latency, cost, domain, accuracy, output="The answer is 42. However, it depends."):
    return {
        "model_id": model_id,
        "test_case_id": case_id,
        "latency": latency,
        "token_count": 100,
        "cost": cost,
        "domain_expertise_score": domain,
        "accuracy_score": accuracy,
        "output": output,
        "metrics": {},
    }


@pytest_asyncio.fixture
async def analysed_result(temp_db, advanced_config):
    config = await db.create_config(advanced_config)
    result = await db.create_result({"config_id": config["id"], "status": "completed"})
    rows = [
        _row("fast/model", "ml-1", 1000, 0.001, 0.9, 0.9),
        _row("fast/model", "ml-2", 1000, 0.001, 0.5, 0.9),
        _row("slow/model", "ml-1", 9000, 0.05, 0.2, 0.3, output=""),
        _row("slow/model", "ml-2", 9000, 0.05, 0.2, 0.3, output=""),
    ]
    for r in rows:
        await db.save_test_case_result({**r, "benchmark_result_id": result["id"]})
    return await db.get_result(result["id"], with_test_cases=True, with_config=True)


class TestTestCaseCategories:
    def test_from_config(self, advanced_config):
        assert advanced.test_case_categories(advanced_config, []) == {
            "ml-1": "factual-knowledge", "ml-2": "reasoning",
        }

    def test_json_string_cases(self, advanced_config):
        config = {"test_cases": json.dumps(advanced_config["test_cases"])}
        assert advanced.test_case_categories(config, [])["ml-2"] == "reasoning"

    def test_placeholders(self):
        rows = [{"test_case_id": "b"}, {"test_case_id": "a"}, {"test_case_id": "b"}]
        assert advanced.test_case_categories(None, rows) == {"b": "Category 1", "a": "Category 2"}


class TestAnalyzeResults:
    @pytest.mark.asyncio
    async def test_general_persists_rankings(self, analysed_result):
        analysis = await advanced.analyze_results(analysed_result)
        summary = analysis["summary"]
        assert summary["topic"] == "machine learning"
        assert summary["totalModels"] == 2
        assert summary["topModels"][0]["model_id"] == "fast/model"
        assert summary["mostCostEffective"]["model_id"] == "fast/model"
        assert summary["bestDomainExpert"]["model_id"] == "fast/model"
        assert len(await db.get_model_rankings(analysed_result["id"])) == 2

    @pytest.mark.asyncio
    async def test_stored_rankings_reused(self, analysed_result):
        stored = [
            {"model_id": "slow/model", "overall_rank": 1, "performance_rank": 1, "cost_efficiency_rank": 1,
             "domain_expertise_rank": 1, "score": 0.9, "speed_level": 3, "cost_level": 3},
        ]
        await db.save_model_rankings(analysed_result["id"], stored)
        analysis = await advanced.analyze_results(analysed_result)
        assert [r["model_id"] for r in analysis["rankings"]] == ["slow/model"]

    @pytest.mark.asyncio
    async def test_cost(self, analysed_result):
        analysis = await advanced.analyze_results(analysed_result, analysis_type="cost")
        first = analysis["costBreakdown"][0]
        assert first["model_id"] == "fast/model"
        assert first["totalCost"] == pytest.approx(0.002)
        assert first["costPerTestCase"] == pytest.approx(0.001)
        assert first["costEfficiencyRank"] == 1

    @pytest.mark.asyncio
    async def test_domain(self, analysed_result):
        analysis = await advanced.analyze_results(analysed_result, analysis_type="domain")
        fast = analysis["domainInsights"][0]
        assert fast["model_id"] == "fast/model"
        assert fast["strengths"][0] == {"category": "factual-knowledge", "score": pytest.approx(0.9)}
        assert fast["weaknesses"][0]["category"] == "reasoning"

    @pytest.mark.asyncio
    async def test_capabilities_skip_models_without_output(self, analysed_result):
        analysis = await advanced.analyze_results(analysed_result, analysis_type="capabilities")
        profiles = analysis["capabilityProfiles"]
        assert [p["model_id"] for p in profiles] == ["fast/model"]
        assert 0 <= profiles[0]["overallScore"] <= 1
        assert profiles[0]["summary"]

    @pytest.mark.asyncio
    async def test_empty_result(self, temp_db):
        analysis = await advanced.analyze_results({"id": "r1", "test_case_results": []}, {"topic": "chemistry"})
        assert analysis["error"] == "Benchmark result does not contain any test case results"
        assert analysis["rankings"] == []
        assert analysis["summary"]["topic"] == "chemistry"
        assert analysis["summary"]["totalModels"] == 0


class TestGenerateRankings:
    @pytest.mark.asyncio
    async def test_fallback_on_bad_rows(self, temp_db):
        result = {"id": "r1", "test_case_results": [
            {"model_id": "a/x", "test_case_id": "t", "latency": "slow"},
            {"model_id": "b/y", "test_case_id": "t", "latency": "slow"},
        ]}
        ranked = await advanced.generate_rankings(result)
        assert [(r["model_id"], r["overall_rank"], r["score"]) for r in ranked] == [
            ("a/x", 1, 0.5), ("b/y", 2, 0.5),
        ]
