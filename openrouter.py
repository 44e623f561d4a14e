"""OpenRouter backend.

Raw REST passthrough (models, completions, key info) goes through httpx;
benchmark and generation calls go through LiteLLM's ``openrouter/`` provider.
"""

import logging
import os
import re
import time
from typing import Optional

import httpx
import litellm
import tiktoken

import prompt_templates

logger = logging.getLogger(__name__)

# LiteLLM retries would skew latency measurements
litellm.num_retries = 0
os.environ.setdefault("OPENAI_MAX_RETRIES", "0")
litellm.suppress_debug_info = True

OPENROUTER_API_URL = os.environ.get("OPENROUTER_API_URL", "https://openrouter.ai/api/v1")
APP_TITLE = "LLM Benchmark"
MINIMUM_RECOMMENDED_CREDITS = 500

_TIMEOUT = httpx.Timeout(10.0, read=300.0)

_API_KEY_ERROR_MARKERS = (
    "API key", "authentication", "insufficient_quota", "insufficient credits",
    "OpenRouter API insufficient credits", "credit", "capacity", "quota",
    "rate limit", "data policy",
)
_CREDIT_ERROR_MARKERS = (
    "OpenRouter API insufficient credits", "More credits are required",
    "capacity required", "402",
)


class OpenRouterError(Exception):
    """An OpenRouter call failed. ``status_code`` is set for HTTP errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, data=None):
        super().__init__(f"OpenRouter API error: {message}")
        self.status_code = status_code
        self.data = data


# ---------------------------------------------------------------------------
# Error helpers
# ---------------------------------------------------------------------------

def sanitize_error(error_msg: str, api_key: Optional[str] = None) -> str:
    """Mask API keys and bearer tokens in an error message."""
    msg = error_msg
    if api_key and len(api_key) > 8:
        msg = msg.replace(api_key, "***")
    msg = re.sub(r"(sk-[a-zA-Z0-9]{8})[a-zA-Z0-9-]+", r"\1***", msg)
    msg = re.sub(r"(key-[a-zA-Z0-9]{4})[a-zA-Z0-9-]+", r"\1***", msg)
    msg = re.sub(r"(gsk_[a-zA-Z0-9]{4})[a-zA-Z0-9-]+", r"\1***", msg)
    msg = re.sub(r"(AIza[a-zA-Z0-9]{4})[a-zA-Z0-9-]+", r"\1***", msg)
    msg = re.sub(r"Bearer\s+[a-zA-Z0-9._-]+", "Bearer ***", msg)
    return msg


def is_api_key_error(message: Optional[str]) -> bool:
    """True for errors caused by the key itself: auth, quota, credits, policy."""
    return bool(message) and any(m in message for m in _API_KEY_ERROR_MARKERS)


def is_credit_error(message: Optional[str]) -> bool:
    return bool(message) and any(m in message for m in _CREDIT_ERROR_MARKERS)


def _error_detail(resp: httpx.Response):
    """Pull the upstream error text out of a failed response."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200], None
    err = data.get("error") if isinstance(data, dict) else None
    if isinstance(err, dict):
        err = err.get("message") or str(err)
    return err or resp.text[:200], data


# ---------------------------------------------------------------------------
# REST passthrough
# ---------------------------------------------------------------------------

def build_headers(api_key: Optional[str] = None) -> dict:
    headers = {
        "Content-Type": "application/json",
        "HTTP-Referer": os.environ.get("CLIENT_URL", "http://localhost:5173"),
        "X-Title": APP_TITLE,
    }
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


async def _request(method: str, path: str, api_key: Optional[str], payload: Optional[dict] = None) -> dict:
    url = f"{OPENROUTER_API_URL.rstrip('/')}{path}"
    try:
        async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
            resp = await client.request(method, url, headers=build_headers(api_key), json=payload)
            resp.raise_for_status()
            return resp.json()
    except httpx.HTTPStatusError as e:
        detail, data = _error_detail(e.response)
        logger.warning("OpenRouter %s %s failed: %d", method, path, e.response.status_code)
        raise OpenRouterError(sanitize_error(str(detail), api_key), e.response.status_code, data) from e
    except httpx.HTTPError as e:
        raise OpenRouterError(sanitize_error(str(e) or type(e).__name__, api_key)) from e


async def get_models(api_key: Optional[str] = None) -> dict:
    """Raw ``/models`` listing (``{"data": [...]}``)."""
    return await _request("GET", "/models", api_key)


async def create_completion(api_key: str, model: str, prompt: str, **options) -> dict:
    return await _request("POST", "/completions", api_key, {"model": model, "prompt": prompt, **options})


async def create_chat_completion(api_key: str, model: str, messages: list, **options) -> dict:
    return await _request("POST", "/chat/completions", api_key, {"model": model, "messages": messages, **options})


async def validate_api_key(api_key: Optional[str]) -> dict:
    """Check a key against ``/auth/key`` and estimate remaining credits.

    Returns ``{valid, credits, limit, has_credits, data}`` or
    ``{valid: False, error, details}``. Never raises.
    """
    if not api_key:
        return {"valid": False, "error": "API key is required"}

    try:
        data = await _request("GET", "/auth/key", api_key)
    except OpenRouterError as e:
        if e.status_code in (401, 403):
            error = "Invalid API key"
        elif isinstance(e.data, dict) and e.data.get("error"):
            err = e.data["error"]
            error = err.get("message", str(err)) if isinstance(err, dict) else str(err)
        else:
            error = "API key validation failed"
        return {"valid": False, "error": error, "details": e.data or str(e)}

    inner = data.get("data") or {}
    credits = None
    if data.get("credits") is not None:
        credits = data["credits"]
    elif inner.get("usage") is not None:
        # /auth/key reports usage, not a balance
        credits = 1000 - inner["usage"] * 1000

    limit = data.get("limit") if data.get("limit") is not None else inner.get("limit")
    has_credits = credits is None or credits >= MINIMUM_RECOMMENDED_CREDITS

    return {
        "valid": True,
        "credits": credits,
        "limit": limit,
        "has_credits": has_credits,
        "minimum_recommended_credits": MINIMUM_RECOMMENDED_CREDITS,
        "data": data,
    }


# ---------------------------------------------------------------------------
# LiteLLM completions
# ---------------------------------------------------------------------------

async def _complete(model: str, messages: list, api_key: str, temperature: float, max_tokens: int) -> dict:
    """One chat completion through LiteLLM. Returns content, usage and the raw response."""
    try:
        response = await litellm.acompletion(
            model=f"openrouter/{model}",
            messages=messages,
            api_key=api_key,
            api_base=OPENROUTER_API_URL,
            temperature=temperature,
            max_tokens=max_tokens,
            extra_headers={
                "HTTP-Referer": os.environ.get("CLIENT_URL", "http://localhost:5173"),
                "X-Title": APP_TITLE,
            },
        )
    except litellm.exceptions.RateLimitError as e:
        raise OpenRouterError(f"[rate_limited] {sanitize_error(str(e)[:180], api_key)}", 429) from e
    except litellm.exceptions.AuthenticationError as e:
        raise OpenRouterError(f"[auth_failed] {sanitize_error(str(e)[:180], api_key)}", 401) from e
    except litellm.exceptions.Timeout as e:
        raise OpenRouterError(f"[timeout] {sanitize_error(str(e)[:180], api_key)}", 408) from e
    except Exception as e:
        raise OpenRouterError(sanitize_error(str(e)[:200], api_key), getattr(e, "status_code", None)) from e

    usage = getattr(response, "usage", None)
    return {
        "content": response.choices[0].message.content or "",
        "usage": {
            "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
            "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
            "total_tokens": getattr(usage, "total_tokens", 0) or 0,
        },
        "raw": response.model_dump(),
    }


def _sampling(options: dict) -> tuple[float, int]:
    return options.get("temperature") or 0.7, options.get("max_tokens") or 1000


def estimate_tokens(text: str) -> int:
    """Token count for providers that omit usage. cl100k_base, ~4 chars/token fallback."""
    if not text:
        return 0
    try:
        enc = tiktoken.get_encoding("cl100k_base")
    except Exception:
        # Encoding files are fetched on first use; offline hosts fall back
        logger.debug("tiktoken encoding unavailable, estimating from length")
        return max(1, len(text) // 4)
    return len(enc.encode(text))


async def run_model_test(model: str, prompt: str, options: Optional[dict], api_key: Optional[str]) -> dict:
    """Run one prompt against one model and time it.

    Returns ``{model, output, latency, tokenCount, raw}`` on success and
    ``{model, error, latency}`` on failure; latency is in milliseconds.
    """
    options = options or {}
    start = time.perf_counter()
    try:
        if not api_key:
            raise ValueError("API key is required for model testing")

        category = options.get("category") or prompt_templates.DEFAULT_CATEGORY
        formatted = prompt_templates.format_prompt(category, prompt, options.get("template_variables"))
        temperature, max_tokens = _sampling(options)
        result = await _complete(model, [{"role": "user", "content": formatted}], api_key, temperature, max_tokens)
    except (OpenRouterError, ValueError) as e:
        latency = (time.perf_counter() - start) * 1000
        logger.warning("Model test failed", extra={"model": model, "detail": str(e)})
        return {"model": model, "error": str(e), "latency": latency}

    latency = (time.perf_counter() - start) * 1000
    usage = result["usage"]
    if not usage["total_tokens"]:
        usage = {
            "prompt_tokens": estimate_tokens(formatted),
            "completion_tokens": estimate_tokens(result["content"]),
        }
        usage["total_tokens"] = usage["prompt_tokens"] + usage["completion_tokens"]
    return {
        "model": model,
        "output": result["content"],
        "latency": latency,
        "tokenCount": {
            "input": usage["prompt_tokens"],
            "output": usage["completion_tokens"],
            "total": usage["total_tokens"],
        },
        "raw": result["raw"],
    }


async def generate_completion(model: str, prompt: str, options: Optional[dict], api_key: str) -> dict:
    """Text completion in the OpenAI ``completion`` response shape."""
    temperature, max_tokens = _sampling(options or {})
    result = await _complete(model, [{"role": "user", "content": prompt}], api_key, temperature, max_tokens)
    now = time.time()
    return {
        "id": f"langchain-{int(now * 1000)}",
        "object": "completion",
        "created": int(now),
        "model": model,
        "choices": [{"text": result["content"], "index": 0, "logprobs": None, "finish_reason": "stop"}],
        "usage": result["usage"],
    }


async def generate_chat_completion(model: str, messages: list, options: Optional[dict], api_key: str) -> dict:
    """Chat completion in the OpenAI ``chat.completion`` response shape."""
    temperature, max_tokens = _sampling(options or {})
    formatted = [{"role": m["role"], "content": m["content"]} for m in messages]
    result = await _complete(model, formatted, api_key, temperature, max_tokens)
    now = time.time()
    return {
        "id": f"langchain-{int(now * 1000)}",
        "object": "chat.completion",
        "created": int(now),
        "model": model,
        "choices": [{
            "message": {"role": "assistant", "content": result["content"]},
            "index": 0,
            "finish_reason": "stop",
        }],
        "usage": result["usage"],
    }
