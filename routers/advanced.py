"""Advanced (topic-generated) benchmark routes and result analysis."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

import advanced
import auth
import db
import openrouter
from routers.helpers import error_response, read_json, validate_body
from schemas import AdvancedGenerateRequest, BenchmarkConfigUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["advanced-benchmark"])

ADVANCED = "advanced"


def _message(text: str, status_code: int, **extra):
    return error_response(text, status_code, key="message", **extra)


async def _advanced_config(config_id: str) -> dict | None:
    config = await db.get_config(config_id)
    if not config or config.get("benchmark_type") != ADVANCED:
        return None
    return config


@router.post("/api/advanced-benchmark/generate", status_code=201)
async def generate(request: Request, api_key: str = Depends(auth.require_api_key)):
    """Generate test cases and a model selection for a topic, then store the config."""
    data, error = validate_body(AdvancedGenerateRequest, await read_json(request), key="message")
    if error:
        return error
    topic = data.topic
    options = data.options.to_wire() if data.options else None

    try:
        config = await advanced.generate_advanced_benchmark(topic, options, api_key)
    except (openrouter.OpenRouterError, advanced.TestCaseGenerationError) as e:
        if "credits" in str(e):
            return _message(
                "Insufficient OpenRouter API credits", 402,
                error=str(e),
                details="Please add more credits to your OpenRouter account to continue.",
            )
        logger.warning("Advanced benchmark generation failed: %s", e, extra={"detail": topic})
        return _message("Failed to generate benchmark", 500, error=str(e))

    saved = await db.create_config(config)
    logger.info("Advanced benchmark generated", extra={"detail": topic, "action": "generate"})
    return saved


@router.get("/api/advanced-benchmark/analyze/{result_id}")
async def analyze(result_id: str, type: str = Query("general")):
    """Rankings plus a ``general``, ``cost``, ``domain`` or ``capabilities`` analysis of a finished run."""
    result = await db.get_result(result_id, with_test_cases=True, with_config=True)
    if not result:
        return _message("Benchmark result not found", 404)
    config = result.get("benchmark_configs")
    if not config or config.get("benchmark_type") != ADVANCED:
        return _message("This is not an advanced benchmark", 400)
    return await advanced.analyze_results(result, config, type)


@router.get("/api/advanced-benchmark")
async def list_advanced():
    return await db.list_configs(ADVANCED)


@router.get("/api/advanced-benchmark/{config_id}")
async def get_advanced(config_id: str):
    config = await _advanced_config(config_id)
    if not config:
        return _message("Advanced benchmark not found", 404)
    return config


@router.put("/api/advanced-benchmark/{config_id}")
async def update_advanced(config_id: str, request: Request):
    if not await _advanced_config(config_id):
        return _message("Advanced benchmark not found", 404)
    body = await read_json(request) or {}
    body.pop("public_id", None)
    data, error = validate_body(BenchmarkConfigUpdate, body, key="message")
    if error:
        return error
    return await db.update_config(config_id, {**data.to_updates(), "benchmark_type": ADVANCED})


@router.delete("/api/advanced-benchmark/{config_id}", status_code=204)
async def delete_advanced(config_id: str):
    if await _advanced_config(config_id):
        await db.delete_config(config_id)
    return Response(status_code=204)
