#!/usr/bin/env python3
"""LLM Benchmark - API server for benchmarking OpenRouter and Ollama models.

Usage:
    python app.py                  # Start on port 3001 (or $PORT)
    python app.py --port 3333      # Custom port
"""

import argparse
import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

# Load .env before importing the backends (they read env at import)
_dir = Path(__file__).parent
load_dotenv(_dir / ".env", override=True)

APP_VERSION = os.getenv("APP_VERSION", "dev")
DEFAULT_PORT = 3001

import auth  # noqa: E402
import db  # noqa: E402
import job_handlers  # noqa: E402,F401  (registers job handlers)
from job_registry import registry as job_registry  # noqa: E402
from routers import all_routers  # noqa: E402
from routers import websocket as websocket_router  # noqa: E402
from ws_manager import ConnectionManager  # noqa: E402


# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

_LOG_EXTRA_KEYS = (
    "benchmark_id", "job_id", "method", "path", "status", "duration_ms",
    "model", "action", "ip", "detail",
)


class _JSONFormatter(logging.Formatter):
    """One JSON object per line on stdout."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in _LOG_EXTRA_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        return json.dumps(log_entry, default=str)


def configure_logging() -> None:
    """Set up application-wide logging from LOG_LEVEL (default: 'warning')."""
    level_name = os.environ.get("LOG_LEVEL", "warning").upper()
    level = getattr(logging, level_name, logging.WARNING)

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any existing handlers to avoid duplicates on reload
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(_JSONFormatter())
    root.addHandler(handler)

    for uv_logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(uv_logger_name).setLevel(level)

    if level > logging.DEBUG:
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("litellm").setLevel(logging.WARNING)


configure_logging()

logger = logging.getLogger(__name__)

# WebSocket connection manager (singleton)
ws_manager = ConnectionManager()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app_instance):
    """Initialize the database and the job registry."""
    logger.info("LLM Benchmark starting (version=%s)", APP_VERSION)
    await db.init_db()
    orphaned = await db.fail_orphaned_results()
    if orphaned:
        logger.info("Failed %d benchmark result(s) left running by a previous process", orphaned)
    websocket_router.ws_manager = ws_manager
    job_registry.set_ws_manager(ws_manager)
    await job_registry.startup()
    yield
    await job_registry.shutdown()


app = FastAPI(title="LLM Benchmark", version=APP_VERSION, lifespan=lifespan)


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP request limit on /api routes."""

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith("/api/"):
            return await call_next(request)
        ip = request.client.host if request.client else "unknown"
        allowed, retry_after = auth.api_limiter.check(ip)
        if not allowed:
            logger.warning("Rate limit exceeded", extra={"ip": ip, "path": request.url.path})
            return JSONResponse(
                {"error": auth.RATE_LIMIT_MESSAGE},
                status_code=429,
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)


app.add_middleware(RateLimitMiddleware)


# ---------------------------------------------------------------------------
# Request Logging Middleware
# ---------------------------------------------------------------------------

# Paths to skip logging (noisy/health endpoints)
_SKIP_LOG_PATHS = frozenset({"/healthz", "/health", "/favicon.ico"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests with method, path, status and duration."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in _SKIP_LOG_PATHS:
            return await call_next(request)

        request_id = uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        method = request.method
        logger.info("REQ %s %s %s", request_id, method, path, extra={"method": method, "path": path})

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000)

        status = response.status_code
        log_level = logging.INFO
        if 400 <= status < 500:
            log_level = logging.WARNING
        elif status >= 500:
            log_level = logging.ERROR

        logger.log(
            log_level,
            "RES %s %d %dms",
            request_id, status, duration_ms,
            extra={"method": method, "path": path, "status": status, "duration_ms": duration_ms},
        )

        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestLoggingMiddleware)

# The browser client origin is always allowed; CORS_ORIGINS adds more
_cors_origins = [os.getenv("CLIENT_URL", "http://localhost:5173")]
_cors_origins += [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", auth.API_KEY_HEADER, auth.CREDIT_LIMIT_HEADER],
)


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path,
                     extra={"path": request.url.path})
    status = getattr(exc, "status_code", None) or 500
    return JSONResponse(
        {"error": {"message": str(exc) or "Internal Server Error", "status": status}},
        status_code=status,
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "version": APP_VERSION}


for _router in all_routers:
    app.include_router(_router)


def main():
    import uvicorn

    parser = argparse.ArgumentParser(description="LLM Benchmark API server")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", DEFAULT_PORT)),
                        help=f"Port (default: $PORT or {DEFAULT_PORT})")
    parser.add_argument("--host", default=os.environ.get("HOST", "0.0.0.0"),
                        help="Host (default: $HOST or 0.0.0.0)")
    args = parser.parse_args()

    logger.info("LLM Benchmark starting on http://localhost:%d", args.port)
    log_level = os.environ.get("LOG_LEVEL", "warning").lower()
    uvicorn.run(app, host=args.host, port=args.port, log_level=log_level)


if __name__ == "__main__":
    main()
