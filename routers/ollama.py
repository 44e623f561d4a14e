"""Local Ollama server routes and React coding benchmarks.

Errors here use ``{"message": ...}`` bodies, which is what the Ollama pages
of the browser client read.
"""

import logging

from fastapi import APIRouter, Request

import auth
import db
import ollama
import ollama_benchmark
import rankings
from job_registry import registry as job_registry
from react_cases import DIFFICULTIES, generate_react_test_cases
from results import filter_ollama_results, ollama_difficulties, ollama_difficulty_averages
from routers.helpers import error_response, read_json, validate_body
from schemas import OllamaBenchmarkCreate, OllamaGenerateRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ollama"])


def _message(text: str, status_code: int):
    return error_response(text, status_code, key="message")


@router.get("/api/ollama/status")
async def server_status():
    running = await ollama.check_server()
    return {
        "status": "running" if running else "not_running",
        "message": "Ollama server is running" if running else "Ollama server is not running",
    }


@router.get("/api/ollama/models")
async def list_models():
    try:
        return {"models": await ollama.get_models()}
    except ollama.OllamaError as e:
        return _message(str(e), 500)


@router.post("/api/ollama/generate")
async def generate(request: Request):
    data, error = validate_body(OllamaGenerateRequest, await read_json(request), key="message")
    if error:
        return error
    try:
        return await ollama.run_prompt(data.model, data.prompt, data.parameters)
    except ollama.OllamaError as e:
        return _message(f"Failed to run Ollama prompt: {e}", 500)


@router.get("/api/ollama/test-cases")
async def test_cases(difficulties: str | None = None, count: int = 5):
    """Preview generated React test cases. ``difficulties`` is comma-separated."""
    levels = [d for d in difficulties.split(",") if d] if difficulties else list(DIFFICULTIES)
    return {"testCases": generate_react_test_cases(levels, count)}


# ---------------------------------------------------------------------------
# Benchmarks
# ---------------------------------------------------------------------------

@router.post("/api/ollama/benchmarks", status_code=201)
async def create_benchmark(request: Request):
    """Create an Ollama benchmark and queue its run.

    Accepts ``count`` or the browser client's ``testCasesPerDifficulty``.
    """
    body = await read_json(request) or {}
    if "testCasesPerDifficulty" in body and "count" not in body:
        body["count"] = body.pop("testCasesPerDifficulty")
    data, error = validate_body(OllamaBenchmarkCreate, body, key="message")
    if error:
        return error

    created = await ollama_benchmark.create_benchmark(data.model_dump(exclude_none=True))
    result = created["result"]
    model_count = len(data.models)
    job_id = await job_registry.submit(
        job_type="ollama_benchmark",
        owner_id=auth.LOCAL_OWNER,
        params={"result_id": result["id"]},
        progress_detail=f"Ollama benchmark: {model_count} model{'s' if model_count != 1 else ''}",
        result_ref=result["id"],
    )
    logger.info("Ollama benchmark submitted", extra={"benchmark_id": result["id"], "job_id": job_id})
    return {**result, "benchmark_config": created["config"], "job_id": job_id}


@router.get("/api/ollama/benchmarks")
async def list_benchmarks():
    return {"benchmarks": await db.list_ollama_results()}


@router.get("/api/ollama/benchmarks/{benchmark_id}")
async def get_benchmark(benchmark_id: str):
    result = await db.get_ollama_result(benchmark_id)
    if not result:
        return _message("Ollama benchmark not found", 404)
    return result


@router.get("/api/ollama/benchmarks/{benchmark_id}/status")
async def benchmark_status(benchmark_id: str):
    result = await db.get_ollama_result(benchmark_id)
    if not result:
        return _message("Ollama benchmark not found", 404)
    result.pop("benchmark_config", None)
    job = await db.get_job_by_result_ref(benchmark_id)
    if job:
        result["job_id"] = job["id"]
    return result


@router.get("/api/ollama/benchmarks/{benchmark_id}/results")
async def benchmark_results(
    benchmark_id: str,
    model: str | None = None,
    difficulty: str | None = None,
    sort: str = "overall",
):
    """Results, rankings and per-difficulty averages.

    ``model`` and ``difficulty`` narrow ``test_case_results``; ``sort``
    (overall, accuracy, correctness, efficiency) orders the rankings. The averages
    always cover the whole run.
    """
    results = await ollama_benchmark.get_benchmark_results(benchmark_id)
    if results is None:
        return _message("Ollama benchmark not found", 404)
    rows = results["test_case_results"]
    results["difficulties"] = ollama_difficulties(rows)
    results["difficulty_averages"] = ollama_difficulty_averages(rows)
    results["test_case_results"] = filter_ollama_results(rows, model, difficulty)
    results["model_rankings"] = rankings.sort_rankings(results["model_rankings"], sort)
    return results
