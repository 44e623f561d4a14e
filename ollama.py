"""Local Ollama backend and the heuristic React code evaluator."""

import logging
import math
import os
import time

import httpx

logger = logging.getLogger(__name__)

OLLAMA_API_URL = os.environ.get("OLLAMA_API_URL", "http://localhost:11434")

DEFAULT_PARAMETERS = {"temperature": 0.7, "top_p": 1, "max_tokens": 2048}

# Long generations on CPU-only hosts take minutes
_TIMEOUT = httpx.Timeout(10.0, read=300.0)


class OllamaError(Exception):
    pass


def format_size(size: int) -> str:
    """Human-readable byte count, e.g. ``format_size(1536) == '1.5 KB'``."""
    if not size:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    return f"{size / 1024 ** i:.1f} {units[i]}"


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=OLLAMA_API_URL,
        headers={"Content-Type": "application/json"},
        timeout=_TIMEOUT,
    )


async def get_models() -> list[dict]:
    """Installed models from ``/api/tags`` with default run parameters."""
    try:
        async with _client() as client:
            resp = await client.get("/api/tags")
            resp.raise_for_status()
            data = resp.json()
    except httpx.HTTPError as e:
        raise OllamaError(f"Failed to fetch Ollama models: {e}") from e

    models = []
    for m in (data or {}).get("models") or []:
        models.append({
            "id": m["name"],
            "name": m["name"],
            "description": f"{m['name']} ({format_size(m.get('size', 0))})",
            "size": m.get("size", 0),
            "modified": m.get("modified_at") or m.get("modified"),
            "parameters": dict(DEFAULT_PARAMETERS),
        })
    return models


async def run_prompt(model_id: str, prompt: str, parameters: dict | None = None) -> dict:
    """Run a non-streaming generation and time it (latency in ms)."""
    parameters = parameters or {}
    body = {
        "model": model_id,
        "prompt": prompt,
        "stream": False,
        "options": {
            "temperature": parameters.get("temperature") or 0.7,
            "top_p": parameters.get("top_p") or 1,
            "num_predict": parameters.get("max_tokens") or 2048,
        },
    }
    start = time.perf_counter()
    try:
        async with _client() as client:
            resp = await client.post("/api/generate", json=body)
            resp.raise_for_status()
            data = resp.json()
        if not data:
            raise OllamaError("Empty response from Ollama API")
    except (httpx.HTTPError, OllamaError) as e:
        logger.warning("Ollama generate failed", extra={"model": model_id, "detail": str(e)})
        raise OllamaError(f"Failed to run prompt against Ollama model {model_id}: {e}") from e
    latency = (time.perf_counter() - start) * 1000

    output_tokens = data.get("eval_count") or 0
    prompt_tokens = data.get("prompt_eval_count") or 0
    return {
        "output": data.get("response") or "",
        "latency": latency,
        "token_count": output_tokens,
        "prompt_token_count": prompt_tokens,
        "total_token_count": output_tokens + prompt_tokens,
        "raw_response": data,
    }


async def check_server() -> bool:
    try:
        async with _client() as client:
            resp = await client.get("/api/tags")
            resp.raise_for_status()
        return True
    except httpx.HTTPError:
        return False


# ---------------------------------------------------------------------------
# React response evaluation
# ---------------------------------------------------------------------------

_DIFFICULTY_FEATURES = {
    "intermediate": ((("useState",), 0.1), (("useEffect",), 0.1), (("onChange", "onClick"), 0.1)),
    "advanced": (
        (("useContext",), 0.05), (("useReducer",), 0.05), (("useMemo",), 0.05),
        (("useCallback",), 0.05), (("createContext",), 0.05), (("Provider",), 0.05),
    ),
    "expert": (
        (("custom hook", "function use"), 0.05), (("React.memo", "memo("), 0.05),
        (("forwardRef",), 0.05), (("useImperativeHandle",), 0.05), (("createPortal",), 0.05),
    ),
}


def _has_any(text: str, needles) -> bool:
    return any(n in text for n in needles)


def evaluate_react_response(output: str, expected_output: str | None, difficulty: str | None) -> dict:
    """Score React code on accuracy, correctness and efficiency.

    ``overall_score`` weights them 0.4/0.4/0.2; ``accuracy_score`` is the
    overall score, which is what the test case row stores.
    """
    if not output or not output.strip():
        zero = {"accuracy": 0.0, "correctness": 0.0, "efficiency": 0.0}
        return {"accuracy_score": 0.0, "overall_score": 0.0, "category_scores": zero}

    has_import = _has_any(output, ("import React", 'from "react"', "from 'react'"))
    has_component = (
        "function" in output and "return" in output
        and all(c in output for c in ("(", ")", "{", "}"))
    )
    has_jsx = "<" in output and ">" in output and "</" in output

    accuracy = 0.0
    if has_import:
        accuracy += 0.1
    if has_component:
        accuracy += 0.2
    if has_jsx:
        accuracy += 0.2
    if difficulty == "basic":
        if has_import and has_component and has_jsx:
            accuracy += 0.3
    else:
        for needles, weight in _DIFFICULTY_FEATURES.get(difficulty or "", ()):
            if _has_any(output, needles):
                accuracy += weight

    correctness = 0.0
    if not _has_any(output, ("undefined variable", "is not defined", "unexpected token")):
        correctness += 0.3
    if _has_any(output, ("export default", "export function", "export const")):
        correctness += 0.3
    if not _has_any(output, ("</div", "<div>", "<<", ">>")):
        correctness += 0.2
    # Hooks inside conditionals break the rules of hooks
    if not ("if (" in output and "useState(" in output):
        correctness += 0.2

    efficiency = 0.0
    unnecessary_renders = (
        "useState" in output and "useCallback" not in output
        and "map(" in output and "onClick" in output
    )
    if not unnecessary_renders:
        efficiency += 0.25
    if "useEffect(" in output and "[]" in output:
        efficiency += 0.25
    if _has_any(output, ("useMemo", "useCallback", "memo(")):
        efficiency += 0.25
    if "useState" in output and "this.state" not in output and "set" in output:
        efficiency += 0.25

    accuracy = min(1.0, accuracy)
    correctness = min(1.0, correctness)
    efficiency = min(1.0, efficiency)
    overall = accuracy * 0.4 + correctness * 0.4 + efficiency * 0.2

    return {
        "accuracy_score": overall,
        "overall_score": overall,
        "category_scores": {"accuracy": accuracy, "correctness": correctness, "efficiency": efficiency},
    }
