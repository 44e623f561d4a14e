"""Request authentication for the LLM Benchmark API.

There are no user accounts: callers identify themselves with their
OpenRouter key in the ``X-API-Key`` header. The key is forwarded to
OpenRouter and hashed into an owner id that scopes jobs and WebSockets;
it is never stored.
"""

import hashlib
import logging
import os
import time
from collections import defaultdict
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
CREDIT_LIMIT_HEADER = "X-Credit-Limit"
MISSING_KEY_MESSAGE = "API key is required. Please provide it in the X-API-Key header."
RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again after 15 minutes"

# Owner of jobs that need no API key (local Ollama runs)
LOCAL_OWNER = "local"


# --- Rate limiter ---

class RateLimiter:
    """Sliding-window request counter per client IP.

    IPs with no hits inside the window are dropped once per window.
    """

    def __init__(self, max_requests: int = 100, window_seconds: int = 900):
        self.max_requests = max_requests
        self.window = window_seconds
        self._hits: dict[str, list[float]] = defaultdict(list)
        self._last_prune = time.time()

    def _prune(self, now: float):
        cutoff = now - self.window
        for ip in [ip for ip, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[ip]
        self._last_prune = now

    def check(self, ip: str) -> tuple[bool, int]:
        """Record a request. Returns (allowed, retry_after_seconds)."""
        now = time.time()
        if now - self._last_prune >= self.window:
            self._prune(now)
        cutoff = now - self.window
        hits = [t for t in self._hits[ip] if t > cutoff]
        if len(hits) >= self.max_requests:
            self._hits[ip] = hits
            return False, int(hits[0] + self.window - now) + 1
        hits.append(now)
        self._hits[ip] = hits
        return True, 0

    def reset(self):
        self._hits.clear()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


api_limiter = RateLimiter(
    max_requests=_env_int("RATE_LIMIT_MAX", 100),
    window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 900),
)


# --- Key helpers ---

def owner_id(api_key: str) -> str:
    """Stable, non-reversible owner id for an API key."""
    return hashlib.sha256(api_key.encode()).hexdigest()[:16]


def mask_key(api_key: Optional[str]) -> str:
    if not api_key:
        return "No API key"
    if len(api_key) <= 8:
        return "****"
    return f"{api_key[:4]}...{api_key[-4:]}"


def credit_limit(request: Request) -> Optional[float]:
    """Optional client-side credit ceiling from the X-Credit-Limit header."""
    raw = request.headers.get(CREDIT_LIMIT_HEADER)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.debug("Ignoring malformed %s header", CREDIT_LIMIT_HEADER)
        return None


# --- FastAPI dependencies ---

async def require_api_key(request: Request) -> str:
    """FastAPI dependency returning the caller's API key.

    Raises HTTPException 401 when the X-API-Key header is missing.
    """
    api_key = request.headers.get(API_KEY_HEADER, "").strip()
    if not api_key:
        raise HTTPException(status_code=401, detail=MISSING_KEY_MESSAGE)
    request.state.credit_limit = credit_limit(request)
    return api_key


async def optional_api_key(request: Request) -> Optional[str]:
    return request.headers.get(API_KEY_HEADER, "").strip() or None
