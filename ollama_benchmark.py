"""React coding benchmarks against a local Ollama server."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

import db
import ollama
import rankings
from react_cases import generate_react_test_cases

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Benchmark for React coding tasks"
CANCELLED_ERROR = "Benchmark cancelled"

ProgressCallback = Callable[[int, str], Awaitable[None]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _model_id(model) -> str:
    return model["id"] if isinstance(model, dict) else model


async def create_benchmark(data: dict) -> dict:
    """Store a config with generated test cases and a ``created`` result row.

    ``data`` carries ``models``, ``difficulties`` and optionally ``name``,
    ``description``, ``count`` and ``parameters``.
    """
    test_cases = generate_react_test_cases(data["difficulties"], data.get("count") or 5)
    models = data["models"]

    config = await db.create_ollama_config({
        "name": data.get("name") or f"Ollama React Benchmark {_now()}",
        "description": data.get("description") or DEFAULT_DESCRIPTION,
        "models": models,
        "test_cases": test_cases,
        "parameters": data.get("parameters") or dict(ollama.DEFAULT_PARAMETERS),
    })
    result = await db.create_ollama_result({
        "config_id": config["id"],
        "status": "created",
        "status_details": {
            "progress": 0,
            "totalTests": len(test_cases) * len(models),
            "currentModel": "",
            "currentTest": "",
        },
    })
    logger.info("Ollama benchmark created", extra={"benchmark_id": result["id"]})
    return {"config": config, "result": result}


def _failed_case(error: Exception) -> dict:
    return {
        "output": f"Error: {error}",
        "latency": 0,
        "token_count": 0,
        "accuracy_score": 0,
        "category_scores": {"accuracy": 0, "correctness": 0, "efficiency": 0},
    }


async def _run_case(result_id: str, model_id: str, case: dict, parameters: dict) -> dict:
    """Run and score one case. A failure becomes this case's result."""
    try:
        response = await ollama.run_prompt(model_id, case["prompt"], parameters)
        evaluation = ollama.evaluate_react_response(
            response["output"], case.get("expectedOutput"), case.get("difficulty"),
        )
    except ollama.OllamaError as e:
        logger.warning("Ollama test case failed", extra={
            "benchmark_id": result_id, "model": model_id, "detail": str(e),
        })
        return _failed_case(e)
    except Exception as e:
        logger.exception("Unexpected error in Ollama test case", extra={
            "benchmark_id": result_id, "model": model_id,
        })
        return _failed_case(e)

    return {
        "output": response["output"],
        "latency": response["latency"],
        "token_count": response["token_count"],
        "accuracy_score": evaluation["overall_score"],
        "category_scores": evaluation["category_scores"],
    }


async def run_benchmark(
    result_id: str,
    cancel_event: asyncio.Event | None = None,
    progress_cb: ProgressCallback | None = None,
) -> dict | None:
    """Execute every model against every test case, then rank the models.

    Returns the final result row. A failed run is recorded on the row
    (``status="failed"``, ``error``) rather than raised.
    """
    result = await db.get_ollama_result(result_id)
    if result is None:
        raise ValueError(f"Ollama benchmark {result_id} not found")
    config = result["benchmark_config"]
    models = [_model_id(m) for m in config.get("models") or []]
    test_cases = config.get("test_cases") or []
    parameters = config.get("parameters") or {}
    total = len(models) * len(test_cases)
    progress = 0

    def details(model_id: str, test_name: str) -> dict:
        return {
            "progress": progress,
            "totalTests": total,
            "currentModel": model_id,
            "currentTest": test_name,
        }

    try:
        await db.update_ollama_result(result_id, status="running", status_details=details("", ""))

        for model_id in models:
            for case in test_cases:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Ollama benchmark cancelled", extra={"benchmark_id": result_id})
                    return await db.update_ollama_result(
                        result_id, status="failed", error=CANCELLED_ERROR, completed_at=_now(),
                    )
                await db.update_ollama_result(result_id, status_details=details(model_id, case.get("name", "")))

                outcome = await _run_case(result_id, model_id, case, parameters)
                await db.save_ollama_test_case_result({
                    "benchmark_result_id": result_id,
                    "model_id": model_id,
                    "test_case_id": case.get("id"),
                    "difficulty": case.get("difficulty"),
                    "category": case.get("category"),
                    "prompt": case.get("prompt"),
                    **outcome,
                })

                progress += 1
                if progress_cb is not None:
                    await progress_cb(
                        int(progress / total * 100) if total else 100,
                        f"{model_id}: {case.get('name', '')}",
                    )

        rows = await db.get_ollama_test_case_results(result_id)
        await db.save_ollama_model_rankings(result_id, rankings.calculate_ollama_rankings(rows))

        logger.info("Ollama benchmark completed", extra={"benchmark_id": result_id})
        return await db.update_ollama_result(
            result_id,
            status="completed",
            status_details={**details("", ""), "progress": total},
            completed_at=_now(),
        )
    except Exception as e:
        logger.exception("Ollama benchmark failed", extra={"benchmark_id": result_id})
        return await db.update_ollama_result(
            result_id, status="failed", error=str(e), completed_at=_now(),
        )


async def get_benchmark_results(result_id: str) -> dict | None:
    result = await db.get_ollama_result(result_id)
    if result is None:
        return None
    return {
        "benchmark_result": result,
        "test_case_results": await db.get_ollama_test_case_results(result_id),
        "model_rankings": await db.get_ollama_model_rankings(result_id),
    }
