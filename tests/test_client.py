"""Tests for client.py -- BenchmarkClient against an httpx.MockTransport."""

import json
import threading

import httpx
import pytest

from client import ApiError, BenchmarkClient, BenchmarkFailed, PollCancelled, PollTimeout


def _client(handler, **kwargs) -> BenchmarkClient:
    return BenchmarkClient("http://testserver", transport=httpx.MockTransport(handler), **kwargs)


class TestRequests:
    def test_headers_sent(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, json=[])

        with _client(handler, api_key="sk-or-v1-key", credit_limit=5) as client:
            assert client.list_benchmarks() == []
        assert seen["x-api-key"] == "sk-or-v1-key"
        assert seen["x-credit-limit"] == "5"

    def test_run_benchmark_posts_config(self, sample_config):
        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/api/benchmarks/run"
            assert json.loads(request.content)["name"] == "Smoke config"
            return httpx.Response(200, json={"id": "res-1", "status": "running", "job_id": "job-1"})

        with _client(handler) as client:
            assert client.run_benchmark(sample_config)["id"] == "res-1"

    @pytest.mark.parametrize("body,message", [
        ({"error": "Result not found"}, "Result not found"),
        ({"message": "Ollama benchmark not found"}, "Ollama benchmark not found"),
        ({"error": {"message": "Internal Server Error", "status": 500}}, "Internal Server Error"),
    ])
    def test_error_bodies(self, body, message):
        with _client(lambda r: httpx.Response(404, json=body)) as client:
            with pytest.raises(ApiError) as exc:
                client.get_result("missing")
        assert str(exc.value) == message
        assert exc.value.status_code == 404
        assert exc.value.body == body

    def test_non_json_error(self):
        with _client(lambda r: httpx.Response(502, text="Bad Gateway")) as client:
            with pytest.raises(ApiError) as exc:
                client.list_configs()
        assert str(exc.value) == "Bad Gateway"

    def test_delete_has_no_body(self):
        with _client(lambda r: httpx.Response(204)) as client:
            assert client.delete_config("cfg-1") is None

    def test_export_passes_format(self):
        def handler(request):
            assert request.url.params["format"] == "csv"
            return httpx.Response(200, text="Test Case ID\n")

        with _client(handler) as client:
            assert client.export_result("res-1", format="csv") == "Test Case ID\n"

    def test_api_key_status_not_raised(self):
        body = {"valid": False, "message": "Invalid API key"}
        with _client(lambda r: httpx.Response(401, json=body)) as client:
            assert client.test_api_key() == body


class TestPolling:
    def _sequence(self, *responses):
        queue = list(responses)

        def handler(request):
            item = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(item, Exception):
                raise item
            return item

        return handler

    def test_completes_and_reports_progress(self):
        handler = self._sequence(
            httpx.Response(200, json={"status": "running", "status_details": {"completedTests": 1}}),
            httpx.Response(503, json={"error": "busy"}),
            httpx.ConnectError("refused"),
            httpx.Response(200, json={"status": "completed"}),
        )
        progress = []
        with _client(handler) as client:
            status = client.poll_until_complete("res-1", interval=0.001, max_interval=0.002, on_progress=progress.append)
        assert status == {"status": "completed"}
        assert progress == [{"completedTests": 1}]

    def test_failed_run(self):
        handler = self._sequence(httpx.Response(200, json={"status": "failed", "error": "Benchmark cancelled"}))
        with _client(handler) as client:
            with pytest.raises(BenchmarkFailed) as exc:
                client.poll_until_complete("res-1", interval=0.001)
        assert "Benchmark cancelled" in str(exc.value)
        assert exc.value.result["status"] == "failed"

    def test_not_found_is_raised(self):
        handler = self._sequence(httpx.Response(404, json={"error": "Result not found"}))
        with _client(handler) as client:
            with pytest.raises(ApiError):
                client.poll_until_complete("res-1", interval=0.001)

    def test_timeout(self):
        handler = self._sequence(httpx.Response(200, json={"status": "running"}))
        with _client(handler) as client:
            with pytest.raises(PollTimeout):
                client.poll_until_complete("res-1", interval=0.001, timeout=0.01)

    def test_cancel_event(self):
        event = threading.Event()
        event.set()
        with _client(self._sequence(httpx.Response(200, json={"status": "running"}))) as client:
            with pytest.raises(PollCancelled):
                client.poll_until_complete("res-1", cancel_event=event)
