"""Tests for Pydantic request schemas."""
import json

import pytest
from pydantic import ValidationError
from schemas import (
    AdvancedGenerateRequest, BatchEvaluationRequest, BenchmarkConfig, BenchmarkConfigUpdate,
    BenchmarkRunRequest, ChatCompletionRequest, CompletionRequest, ModelConfig,
    OllamaBenchmarkCreate, OpenRouterBenchmarkRequest, TaskEvaluationRequest, TestCase,
    format_validation_error,
)


def _message(schema, data):
    with pytest.raises(ValidationError) as exc:
        schema.model_validate(data)
    return format_validation_error(exc.value)


# ──────────── BenchmarkConfig ────────────

class TestBenchmarkConfig:
    def test_valid_from_wire(self, sample_config):
        cfg = BenchmarkConfig.model_validate(sample_config)
        assert cfg.benchmark_type == "basic"
        assert cfg.test_cases[0].expected_output == "Paris"
        assert cfg.model_configs[2].enabled is False

    def test_wire_dump_uses_camel_case(self, sample_config):
        wire = BenchmarkConfig.model_validate(sample_config).to_wire()
        assert wire["test_cases"][0]["expectedOutput"] == "Paris"
        assert wire["model_configs"][0]["modelId"] == "openai/gpt-3.5-turbo"

    def test_test_cases_as_json_string(self, sample_config):
        sample_config["test_cases"] = json.dumps(sample_config["test_cases"])
        cfg = BenchmarkConfig.model_validate(sample_config)
        assert len(cfg.test_cases) == 2

    def test_empty_test_cases_rejected(self, sample_config):
        sample_config["test_cases"] = []
        assert _message(BenchmarkConfig, sample_config) == "Test cases are required"

    def test_empty_json_array_rejected(self, sample_config):
        sample_config["test_cases"] = "[]"
        assert _message(BenchmarkConfig, sample_config) == "At least one test case is required"

    def test_bad_json_test_cases_rejected(self, sample_config):
        sample_config["test_cases"] = "[not json"
        assert _message(BenchmarkConfig, sample_config) == "Test cases must be a JSON array"

    def test_empty_models_rejected(self, sample_config):
        sample_config["model_configs"] = []
        assert _message(BenchmarkConfig, sample_config) == "Model configurations are required"

    def test_blank_name_rejected(self, sample_config):
        sample_config["name"] = "   "
        assert _message(BenchmarkConfig, sample_config) == "Configuration name is required"

    def test_unknown_benchmark_type_rejected(self, sample_config):
        sample_config["benchmark_type"] = "extreme"
        with pytest.raises(ValidationError):
            BenchmarkConfig.model_validate(sample_config)

    def test_metric_config_needs_id(self, sample_config):
        sample_config["metric_configs"] = [{"name": "Latency"}]
        assert _message(BenchmarkConfig, sample_config) == "metric_configs.0.id: Field required"

    def test_extra_keys_kept(self, sample_config):
        sample_config["uiState"] = {"collapsed": True}
        assert BenchmarkConfig.model_validate(sample_config).to_wire()["uiState"] == {"collapsed": True}


class TestBenchmarkConfigUpdate:
    def test_only_sent_fields_dumped(self):
        update = BenchmarkConfigUpdate.model_validate({"name": "Renamed", "description": None})
        assert update.to_updates() == {"name": "Renamed", "description": None}

    def test_test_cases_validated(self):
        assert _message(BenchmarkConfigUpdate, {"test_cases": [{"name": "x", "prompt": ""}]}) == "Prompt is required"


# ──────────── Run requests ────────────

class TestRunRequests:
    def test_name_and_ids_optional(self):
        run = BenchmarkRunRequest.model_validate({
            "test_cases": [{"name": "No id", "prompt": "hi"}],
            "model_configs": [{"modelId": "a/b"}],
        })
        assert run.test_cases[0].id is None
        assert "id" not in run.to_wire()["test_cases"][0]

    def test_test_cases_checked_first(self):
        assert _message(BenchmarkRunRequest, {}) == "Test cases are required"

    def test_openrouter_route_checks_models_first(self):
        assert _message(OpenRouterBenchmarkRequest, {"test_cases": []}) == "Model configurations are required"

    def test_model_config_must_be_object(self):
        message = _message(BenchmarkRunRequest, {
            "test_cases": [{"name": "x", "prompt": "p"}],
            "model_configs": ["openai/gpt-4"],
        })
        assert message.startswith("model_configs.0: ")

    def test_test_case_needs_prompt(self):
        message = _message(BenchmarkRunRequest, {
            "test_cases": [{"name": "x"}],
            "model_configs": [{"modelId": "a/b"}],
        })
        assert message == "test_cases.0.prompt: Field required"


# ──────────── Test cases / model configs ────────────

class TestTestCase:
    def test_prompt_required(self):
        with pytest.raises(ValidationError) as exc:
            TestCase(name="x", prompt=" ")
        assert format_validation_error(exc.value) == "Prompt is required"

    def test_snake_case_population(self):
        tc = TestCase(name="x", prompt="p", expected_output="y")
        assert tc.to_wire()["expectedOutput"] == "y"


class TestModelConfig:
    def test_model_id_required(self):
        with pytest.raises(ValidationError):
            ModelConfig(modelId="")

    def test_parameter_bounds(self):
        with pytest.raises(ValidationError):
            ModelConfig(modelId="openai/gpt-4", parameters={"temperature": 2.5})
        with pytest.raises(ValidationError):
            ModelConfig(modelId="openai/gpt-4", parameters={"max_tokens": 0})


# ──────────── OpenRouter passthrough ────────────

class TestPassthroughRequests:
    def test_chat_requires_messages(self):
        assert _message(ChatCompletionRequest, {"model": "openai/gpt-4", "messages": []}) == "Messages array is required"

    def test_chat_role_checked(self):
        with pytest.raises(ValidationError):
            ChatCompletionRequest(model="openai/gpt-4", messages=[{"role": "robot", "content": "hi"}])

    def test_completion_model_checked_first(self):
        assert _message(CompletionRequest, {}) == "Model is required"

    def test_sampling_options_keep_extras(self):
        r = CompletionRequest.model_validate({"model": "openai/gpt-4", "prompt": "Hello", "top_p": 0.9, "seed": 7})
        assert r.sampling_options() == {"top_p": 0.9, "seed": 7}


# ──────────── Advanced / evaluation ────────────

class TestAdvancedGenerateRequest:
    def test_topic_required(self):
        assert _message(AdvancedGenerateRequest, {"topic": "  "}) == "Topic is required"

    def test_options_by_alias(self):
        r = AdvancedGenerateRequest.model_validate({"topic": "physics", "options": {"maxModels": 3}})
        assert r.options.to_wire() == {"maxModels": 3}

    def test_options_bounds(self):
        assert _message(AdvancedGenerateRequest, {"topic": "physics", "options": {"maxModels": 0}}).startswith("options.")


class TestEvaluationRequests:
    def test_camel_case_binding(self):
        r = TaskEvaluationRequest.model_validate({
            "taskType": "reasoning", "prompt": "Q", "actualOutput": "A", "evaluatorModel": "openai/gpt-4",
        })
        assert (r.task_type, r.actual_output, r.expected_output, r.evaluator_model) == (
            "reasoning", "A", None, "openai/gpt-4",
        )

    def test_task_type_checked_first(self):
        assert _message(TaskEvaluationRequest, {"prompt": "Q", "actualOutput": "A"}) == "Task type is required"

    def test_batch_must_be_a_list(self):
        assert _message(BatchEvaluationRequest, {"evaluations": []}) == "Evaluations array is required"
        assert _message(BatchEvaluationRequest, {"evaluations": "x"}).startswith("evaluations: ")


# ──────────── Ollama ────────────

class TestOllamaBenchmarkCreate:
    def test_valid(self):
        r = OllamaBenchmarkCreate(models=["llama3", {"name": "mistral"}], difficulties=["basic", "expert"])
        assert r.count == 5

    def test_models_required(self):
        with pytest.raises(ValidationError) as exc:
            OllamaBenchmarkCreate(models=[], difficulties=["basic"])
        assert format_validation_error(exc.value) == "At least one model is required"

    def test_difficulties_required(self):
        with pytest.raises(ValidationError) as exc:
            OllamaBenchmarkCreate(models=["llama3"], difficulties=[])
        assert format_validation_error(exc.value) == "At least one difficulty level is required"

    def test_unknown_difficulty(self):
        with pytest.raises(ValidationError) as exc:
            OllamaBenchmarkCreate(models=["llama3"], difficulties=["basic", "legendary"])
        assert format_validation_error(exc.value) == "Unknown difficulty level: legendary"

    def test_count_bounds(self):
        with pytest.raises(ValidationError) as exc:
            OllamaBenchmarkCreate(models=["llama3"], difficulties=["basic"], count=0)
        assert format_validation_error(exc.value).startswith("count: ")
