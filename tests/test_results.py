"""Tests for results.py -- result shape probing, CSV export and Ollama views."""

import json

import pytest

from results import (
    count_models,
    count_test_cases,
    filter_ollama_results,
    ollama_difficulties,
    ollama_difficulty_averages,
    prompt_for_test_case,
    result_to_csv,
)


class TestCounts:
    def test_status_details_first(self):
        assert count_test_cases({"status_details": {"totalTests": 4}, "summary": {"models": {"a": {"testCount": 9}}}}) == 4

    def test_summary_models(self):
        result = {"summary": json.dumps({"models": {"a": {"testCount": 3}, "b": {"testCount": 2}}})}
        assert count_test_cases(result) == 3
        assert count_models(result) == 2

    def test_flat_summary(self):
        result = {"summary": {"overall": {"x": 1}, "m1": {"testCount": 5}}}
        assert count_test_cases(result) == 5
        assert count_models(result) == 1

    def test_model_results_shapes(self):
        result = {"model_results": {"a": [{}, {}], "b": {"testResults": {"t1": {}, "t2": {}, "t3": {}}}}}
        assert count_test_cases(result) == 3
        assert count_models(result) == 2

    def test_test_case_rows(self):
        rows = [{"test_case_id": "t1"}, {"test_case_id": "t1"}, {"test_case_id": "t2"}]
        assert count_test_cases({"test_case_results": rows}) == 2

    def test_nothing(self):
        assert count_test_cases({}) == 0
        assert count_models({}) == 0

    def test_bad_json_is_ignored(self):
        assert count_test_cases({"summary": "{not json", "status_details": "nope"}) == 0


class TestPromptForTestCase:
    def test_found_in_json_string(self):
        config = {"test_cases": json.dumps([{"id": "tc-1", "prompt": "Hello?"}])}
        assert prompt_for_test_case(config, "tc-1")["prompt"] == "Hello?"

    def test_missing(self):
        case = prompt_for_test_case({"test_cases": []}, "tc-9")
        assert case == {"id": "tc-9", "name": "tc-9", "prompt": "Prompt not available"}
        assert prompt_for_test_case(None, "tc-9")["prompt"] == "Prompt not available"


class TestCsv:
    def test_no_rows(self):
        assert result_to_csv({"test_case_results": []}) == "No data"

    def test_rows_and_missing_cells(self):
        rows = [
            {"model_id": "m1", "test_case_id": "tc-1", "latency": 120.5, "token_count": 10, "cost": 0.001},
            {"model_id": "m2", "test_case_id": "tc-1", "latency": 300, "token_count": 20, "cost": 0.002},
            {"model_id": "m1", "test_case_id": "tc-2", "latency": 99, "token_count": 5, "cost": 0.0},
        ]
        lines = result_to_csv({"test_case_results": rows}).splitlines()
        assert lines[0] == (
            "Test Case ID,m1 Latency (ms),m1 Tokens,m1 Cost,m2 Latency (ms),m2 Tokens,m2 Cost"
        )
        assert lines[1] == "tc-1,120.5,10,0.001,300,20,0.002"
        assert lines[2] == "tc-2,99,5,0.0,,,"


@pytest.fixture
def ollama_rows():
    return [
        {"model_id": "llama3", "difficulty": "basic", "accuracy_score": 0.8, "latency": 100},
        {"model_id": "llama3", "difficulty": "basic", "accuracy_score": 0.6, "latency": 300},
        {"model_id": "llama3", "difficulty": "expert", "accuracy_score": 0.2, "latency": 900},
        {"model_id": "mistral", "difficulty": "basic", "accuracy_score": 0.4, "latency": 200},
    ]


class TestOllamaViews:
    def test_difficulties_in_order(self, ollama_rows):
        assert ollama_difficulties(ollama_rows) == ["basic", "expert"]

    def test_filter(self, ollama_rows):
        assert len(filter_ollama_results(ollama_rows, "llama3")) == 3
        assert len(filter_ollama_results(ollama_rows, difficulty="basic")) == 3
        assert len(filter_ollama_results(ollama_rows, "llama3", "expert")) == 1
        assert filter_ollama_results(ollama_rows) == ollama_rows

    def test_averages(self, ollama_rows):
        averages = ollama_difficulty_averages(ollama_rows)
        assert averages["llama3"]["basic"] == {"avgAccuracy": pytest.approx(0.7), "avgLatency": 200, "count": 2}
        assert averages["llama3"]["expert"]["count"] == 1
        assert "expert" not in averages["mistral"]
