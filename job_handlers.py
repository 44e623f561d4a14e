"""Job handler functions for the job registry.

Keeps the run logic out of the routers: routes validate and create the
result row, then submit a job whose handler drives the runner.

Each handler follows the job_registry handler signature:
    async def handler(job_id, params, secrets, cancel_event, progress_cb) -> str | None

API keys arrive through ``secrets`` and are never part of ``params``,
which is persisted in the jobs table.
"""

import logging
from datetime import datetime, timezone

import benchmark
import db
import ollama_benchmark
from job_registry import registry as job_registry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# OpenRouter benchmark
# ---------------------------------------------------------------------------

async def benchmark_handler(job_id: str, params: dict, secrets: dict, cancel_event, progress_cb) -> str | None:
    """Run an OpenRouter benchmark into the result row the route created."""
    result_id = params["result_id"]
    config = params.get("config")
    if not config:
        # Fail the row too, so status polling does not wait on a dead job
        error = "Benchmark configuration not found"
        await db.update_result(
            result_id, status="failed", error=error,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        raise ValueError(error)

    logger.info("Benchmark job started", extra={"job_id": job_id, "benchmark_id": result_id})
    result = await benchmark.run_benchmark(
        config,
        secrets.get("api_key"),
        result_id=result_id,
        cancel_event=cancel_event,
        progress_cb=progress_cb,
    )
    if result and result["status"] == "failed" and not cancel_event.is_set():
        raise RuntimeError(result.get("error") or "Benchmark failed")
    return result_id


# ---------------------------------------------------------------------------
# Ollama React benchmark
# ---------------------------------------------------------------------------

async def ollama_benchmark_handler(job_id: str, params: dict, secrets: dict, cancel_event, progress_cb) -> str | None:
    result_id = params["result_id"]
    logger.info("Ollama benchmark job started", extra={"job_id": job_id, "benchmark_id": result_id})
    result = await ollama_benchmark.run_benchmark(result_id, cancel_event=cancel_event, progress_cb=progress_cb)
    if result and result["status"] == "failed" and not cancel_event.is_set():
        raise RuntimeError(result.get("error") or "Ollama benchmark failed")
    return result_id


# ---------------------------------------------------------------------------
# Register all handlers with the job registry
# ---------------------------------------------------------------------------

def register_all_handlers():
    """Register all job handlers with the job registry singleton."""
    job_registry.register_handler("benchmark", benchmark_handler)
    job_registry.register_handler("ollama_benchmark", ollama_benchmark_handler)


register_all_handlers()
