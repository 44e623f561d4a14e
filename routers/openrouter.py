"""OpenRouter passthrough, single-model tests and key checks.

Served under both ``/api/openrouter`` and ``/api/langchain``.
"""

import logging

from fastapi import APIRouter, Depends, Request

import auth
import benchmark
import openrouter
from routers.helpers import error_response, read_json, run_from_body, validate_body
from schemas import ChatCompletionRequest, CompletionRequest, ModelTestRequest, OpenRouterBenchmarkRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["openrouter"])

PREFIXES = ("/api/openrouter", "/api/langchain")

CREDITS_URL = "https://openrouter.ai/credits"


async def get_models(api_key: str = Depends(auth.require_api_key)):
    try:
        return await openrouter.get_models(api_key)
    except openrouter.OpenRouterError as e:
        if e.status_code == 401:
            return error_response("Invalid API key. Please check your OpenRouter API key.", 401)
        raise


async def completions(request: Request, api_key: str = Depends(auth.require_api_key)):
    data, error = validate_body(CompletionRequest, await read_json(request))
    if error:
        return error
    try:
        return await openrouter.generate_completion(data.model, data.prompt, data.sampling_options(), api_key)
    except openrouter.OpenRouterError as e:
        return error_response(str(e), e.status_code or 500)


async def chat_completions(request: Request, api_key: str = Depends(auth.require_api_key)):
    data, error = validate_body(ChatCompletionRequest, await read_json(request))
    if error:
        return error
    messages = [m.model_dump(exclude_none=True) for m in data.messages]
    try:
        return await openrouter.generate_chat_completion(data.model, messages, data.sampling_options(), api_key)
    except openrouter.OpenRouterError as e:
        return error_response(str(e), e.status_code or 500)


async def test_model(request: Request, api_key: str = Depends(auth.require_api_key)):
    data, error = validate_body(ModelTestRequest, await read_json(request))
    if error:
        return error
    return await openrouter.run_model_test(data.model, data.prompt, data.options or {}, api_key)


async def run_benchmark(request: Request, api_key: str = Depends(auth.require_api_key)):
    return await run_from_body(request, OpenRouterBenchmarkRequest, api_key)


async def test_api_key(request: Request, api_key: str = Depends(auth.require_api_key)):
    """Validate the key and report whether its credits cover a benchmark.

    ``X-Credit-Limit`` overrides the recommended minimum.
    """
    logger.info("Testing API key %s", auth.mask_key(api_key))
    status = await openrouter.validate_api_key(api_key)
    if not status["valid"]:
        return error_response(
            status.get("error") or "Invalid API key", 401,
            key="message", valid=False, error=status.get("error"),
        )

    credits = status.get("credits")
    minimum = request.state.credit_limit
    if minimum is None:
        minimum = status.get("minimum_recommended_credits") or openrouter.MINIMUM_RECOMMENDED_CREDITS

    if credits is not None and credits < minimum:
        return error_response(
            f"Insufficient OpenRouter credits. You have {credits} credits available, but we "
            f"recommend at least {minimum} credits to run benchmarks. Each benchmark test "
            f"consumes credits based on the models used and the length of prompts. You can add "
            f"more credits at {CREDITS_URL}",
            402,
            key="message",
            valid=True,
            hasCredits=False,
            credits=credits,
            minimumRecommendedCredits=minimum,
            error="insufficient_credits",
        )

    if credits is not None:
        message = (
            f"API key is valid. You have {credits} OpenRouter credits available (recommended "
            f"minimum: {minimum}). These credits are consumed when running benchmarks, with each "
            f"model call using a different amount based on the model and prompt length."
        )
    else:
        message = "API key is valid. OpenRouter credits are used when running benchmarks."
    return {
        "valid": True,
        "hasCredits": True,
        "credits": credits,
        "minimumRecommendedCredits": minimum,
        "message": message,
    }


async def benchmark_status(benchmark_id: str, api_key: str = Depends(auth.require_api_key)):
    result = await benchmark.get_benchmark_status(benchmark_id)
    if result is None:
        return error_response("Result not found", 404)
    return result


for _prefix in PREFIXES:
    router.add_api_route(f"{_prefix}/models", get_models, methods=["GET"])
    router.add_api_route(f"{_prefix}/completions", completions, methods=["POST"])
    router.add_api_route(f"{_prefix}/chat/completions", chat_completions, methods=["POST"])
    router.add_api_route(f"{_prefix}/test", test_model, methods=["POST"])
    router.add_api_route(f"{_prefix}/benchmark", run_benchmark, methods=["POST"])
    router.add_api_route(f"{_prefix}/test-api-key", test_api_key, methods=["GET"])
    router.add_api_route(f"{_prefix}/benchmark/{{benchmark_id}}/status", benchmark_status, methods=["GET"])
