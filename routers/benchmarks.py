"""Benchmark execution and status routes."""

import logging

from fastapi import APIRouter, Depends, Request

import auth
import benchmark
import db
from routers.helpers import error_response, run_from_body
from schemas import BenchmarkRunRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["benchmarks"])


@router.post("/api/benchmarks/run")
async def run_benchmark(request: Request, api_key: str = Depends(auth.require_api_key)):
    """Start a benchmark in the background. Returns the running result row and its job_id."""
    return await run_from_body(request, BenchmarkRunRequest, api_key)


@router.get("/api/benchmarks/{benchmark_id}/status")
async def benchmark_status(benchmark_id: str):
    result = await benchmark.get_benchmark_status(benchmark_id)
    if result is None:
        return error_response("Result not found", 404)
    job = await db.get_job_by_result_ref(benchmark_id)
    if job:
        result["job_id"] = job["id"]
    return result


@router.get("/api/benchmarks/{benchmark_id}/results")
async def benchmark_results(benchmark_id: str):
    result = await db.get_result(benchmark_id, with_test_cases=True)
    if result is None:
        return error_response("Result not found", 404)
    return result


@router.get("/api/benchmarks")
async def list_benchmarks():
    return await db.list_results()
