"""Shared helpers used across multiple routers.

This module centralizes:
- JSON body parsing, schema binding and flat error responses
- Benchmark submission (result row + background job)
"""

import logging
from datetime import datetime, timezone

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

import auth
import benchmark
import db
from job_registry import registry as job_registry
from schemas import BenchmarkRunRequest, format_validation_error

logger = logging.getLogger(__name__)


async def read_json(request: Request) -> dict | None:
    """Request body as a dict, or None when it is empty or not a JSON object."""
    try:
        body = await request.json()
    except ValueError:
        logger.debug("Request with empty or invalid JSON body: %s", request.url.path)
        return None
    return body if isinstance(body, dict) else None


def error_response(message: str, status_code: int = 400, key: str = "error", **extra) -> JSONResponse:
    """Flat error body: ``{"error": msg}`` (or ``{"message": msg}``)."""
    return JSONResponse({key: message, **extra}, status_code=status_code)


def validate_body(schema: type[BaseModel], body: dict | None, key: str = "error"):
    """Bind a JSON body to a request schema.

    Returns ``(model, None)``, or ``(None, response)`` carrying the first
    validation message as a 400.
    """
    try:
        return schema.model_validate(body or {}), None
    except ValidationError as e:
        return None, error_response(format_validation_error(e), key=key)


async def run_from_body(request: Request, schema: type[BenchmarkRunRequest], api_key: str):
    """Validate a run request body and start the benchmark."""
    body = await read_json(request)
    if not body:
        return error_response("Benchmark configuration is required")
    data, error = validate_body(schema, body)
    if error:
        return error
    return await start_benchmark(data.to_wire(), api_key)


async def start_benchmark(config: dict, api_key: str) -> dict:
    """Create a running result row and submit the run as a background job.

    Returns the result row with the ``job_id`` added.
    """
    config_id = config.get("id")
    if config_id and not await db.get_config(config_id):
        config_id = None

    test_cases = config["test_cases"]
    models = benchmark.enabled_models(config)
    result = await db.create_result({
        "config_id": config_id,
        "status": "running",
        "executed_at": datetime.now(timezone.utc).isoformat(),
        "summary": {},
        "model_results": {},
        "status_details": {
            "currentModel": "",
            "currentTest": "",
            "progress": 0,
            "totalTests": len(test_cases),
        },
    })

    model_count = len(models)
    job_id = await job_registry.submit(
        job_type="benchmark",
        owner_id=auth.owner_id(api_key),
        params={"config": config, "result_id": result["id"]},
        secrets={"api_key": api_key},
        progress_detail=(
            f"Benchmark: {model_count} model{'s' if model_count != 1 else ''}, "
            f"{len(test_cases)} test case{'s' if len(test_cases) != 1 else ''}"
        ),
        result_ref=result["id"],
    )
    logger.info("Benchmark submitted", extra={"benchmark_id": result["id"], "job_id": job_id})
    return {**result, "job_id": job_id}
