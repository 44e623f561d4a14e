"""Python client for the LLM Benchmark REST API.

Usage:
    from client import BenchmarkClient

    with BenchmarkClient("http://localhost:3001", api_key) as client:
        started = client.run_benchmark(config)
        result = client.poll_until_complete(started["id"], timeout=600)
"""

import logging
import threading
import time
from typing import Callable, Optional

import httpx

from constants import endpoint

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=60.0)

# Worth retrying while polling; anything else is a caller error
_TRANSIENT_STATUS = {408, 429, 500, 502, 503, 504}


class BenchmarkError(Exception):
    pass


class ApiError(BenchmarkError):
    """Non-2xx response from the server."""

    def __init__(self, message: str, status_code: int, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class BenchmarkFailed(BenchmarkError):
    def __init__(self, message: str, result: Optional[dict] = None):
        super().__init__(message)
        self.result = result


class PollTimeout(BenchmarkError):
    pass


class PollCancelled(BenchmarkError):
    pass


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        err = body.get("error") or body.get("message")
        if isinstance(err, dict):
            err = err.get("message")
        if err:
            return str(err)
    return f"HTTP {resp.status_code}"


class BenchmarkClient:

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        credit_limit: Optional[float] = None,
        timeout: httpx.Timeout | float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-API-Key"] = api_key
        if credit_limit is not None:
            headers["X-Credit-Limit"] = str(credit_limit)
        self._http = httpx.Client(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        self._http.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        resp = self._http.request(method, path, **kwargs)
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text
            raise ApiError(_error_message(resp), resp.status_code, body)
        return resp

    def _json(self, method: str, path: str, **kwargs):
        resp = self._request(method, path, **kwargs)
        return resp.json() if resp.content else None

    # --- Benchmarks ---

    def run_benchmark(self, config: dict) -> dict:
        return self._json("POST", endpoint("benchmarks", "run"), json=config)

    def get_status(self, benchmark_id: str) -> dict:
        return self._json("GET", endpoint("benchmarks", "status", id=benchmark_id))

    def get_results(self, benchmark_id: str) -> dict:
        return self._json("GET", endpoint("benchmarks", "results", id=benchmark_id))

    def list_benchmarks(self) -> list[dict]:
        return self._json("GET", endpoint("benchmarks", "list"))

    def test_api_key(self) -> dict:
        """Key status. 401/402 answers carry the reason and are returned, not raised."""
        resp = self._http.get(endpoint("openrouter", "test_api_key"))
        if resp.status_code not in (200, 401, 402):
            raise ApiError(_error_message(resp), resp.status_code)
        return resp.json()

    # --- Configs ---

    def list_configs(self) -> list[dict]:
        return self._json("GET", endpoint("configs", "list"))

    def get_config(self, config_id: str) -> dict:
        return self._json("GET", endpoint("configs", "get", id=config_id))

    def get_config_by_public_id(self, public_id: str) -> dict:
        return self._json("GET", endpoint("configs", "get_by_public_id", public_id=public_id))

    def create_config(self, config: dict) -> dict:
        return self._json("POST", endpoint("configs", "create"), json=config)

    def update_config(self, config_id: str, config: dict) -> dict:
        return self._json("PUT", endpoint("configs", "update", id=config_id), json=config)

    def delete_config(self, config_id: str) -> None:
        self._request("DELETE", endpoint("configs", "delete", id=config_id))

    # --- Results ---

    def list_results(self) -> list[dict]:
        return self._json("GET", endpoint("results", "list"))

    def get_result(self, result_id: str) -> dict:
        return self._json("GET", endpoint("results", "get", id=result_id))

    def get_result_by_public_id(self, public_id: str) -> dict:
        return self._json("GET", endpoint("results", "get_by_public_id", public_id=public_id))

    def delete_result(self, result_id: str) -> None:
        self._request("DELETE", endpoint("results", "delete", id=result_id))

    def export_result(self, result_id: str, format: str = "json") -> str:
        """Exported result as text (CSV or JSON)."""
        resp = self._request("GET", endpoint("results", "export", id=result_id), params={"format": format})
        return resp.text

    # --- Polling ---

    def poll_until_complete(
        self,
        benchmark_id: str,
        interval: float = 2.0,
        max_interval: float = 30.0,
        backoff: float = 1.5,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        on_progress: Optional[Callable[[dict], None]] = None,
    ) -> dict:
        """Poll a benchmark's status until it completes.

        Returns the completed status row. The delay starts at ``interval``
        and grows by ``backoff`` (capped at ``max_interval``) while progress
        is unchanged or the server is unreachable; new progress resets it.

        Raises BenchmarkFailed when the run fails, PollTimeout after
        ``timeout`` seconds, PollCancelled once ``cancel_event`` is set, and
        ApiError for non-transient HTTP errors (e.g. 404).
        """
        deadline = time.monotonic() + timeout if timeout is not None else None
        delay = interval
        last_details = None

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise PollCancelled(f"Polling cancelled for benchmark {benchmark_id}")

            try:
                status = self.get_status(benchmark_id)
            except httpx.TransportError as e:
                logger.warning("Status poll failed for %s: %s", benchmark_id, e)
                delay = min(delay * backoff, max_interval)
            except ApiError as e:
                if e.status_code not in _TRANSIENT_STATUS:
                    raise
                logger.warning("Status poll got HTTP %d for %s", e.status_code, benchmark_id)
                delay = min(delay * backoff, max_interval)
            else:
                state = (status or {}).get("status")
                if state == "completed":
                    return status
                if state == "failed":
                    raise BenchmarkFailed(
                        f"Benchmark failed: {status.get('error') or 'Unknown error'}", result=status,
                    )
                details = status.get("status_details")
                if details and details != last_details:
                    last_details = details
                    delay = interval
                    if on_progress is not None:
                        on_progress(details)
                else:
                    delay = min(delay * backoff, max_interval)

            wait = delay
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise PollTimeout(f"Benchmark {benchmark_id} did not finish within {timeout}s")
                wait = min(wait, remaining)

            if cancel_event is not None:
                if cancel_event.wait(wait):
                    raise PollCancelled(f"Polling cancelled for benchmark {benchmark_id}")
            else:
                time.sleep(wait)
