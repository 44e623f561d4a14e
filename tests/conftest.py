"""Shared fixtures for the LLM Benchmark test suite.

Provides:
- Temporary SQLite database per test session (isolated from production)
- FastAPI async test client via httpx.AsyncClient
- API key headers and a rate limiter reset between tests
- Sample benchmark configurations
"""

import tempfile
from pathlib import Path

import pytest
import pytest_asyncio


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_config():
    """A basic benchmark configuration as the browser client sends it."""
    return {
        "name": "Smoke config",
        "description": "Two models, two prompts",
        "benchmark_type": "basic",
        "test_cases": [
            {"id": "tc-1", "name": "Capital", "category": "question-answering",
             "prompt": "What is the capital of France?", "expectedOutput": "Paris"},
            {"id": "tc-2", "name": "Sum", "category": "reasoning",
             "prompt": "What is 2 + 2?", "expectedOutput": "4"},
        ],
        "model_configs": [
            {"modelId": "openai/gpt-3.5-turbo", "enabled": True},
            {"modelId": "anthropic/claude-3-haiku", "enabled": True},
            {"modelId": "google/gemini-pro", "enabled": False},
        ],
        "metric_configs": [{"id": "latency", "name": "Latency", "enabled": True}],
    }


@pytest.fixture
def advanced_config(sample_config):
    return {
        **sample_config,
        "name": "Advanced: machine learning",
        "benchmark_type": "advanced",
        "topic": "machine learning",
        "test_cases": [
            {"id": "ml-1", "name": "Overfitting", "category": "factual-knowledge",
             "prompt": "Explain overfitting in machine learning models.",
             "expectedOutput": "Overfitting happens when a model memorizes the training dataset and fails validation."},
            {"id": "ml-2", "name": "Regression", "category": "reasoning",
             "prompt": "Compare regression and classification algorithms."},
        ],
    }


# ---------------------------------------------------------------------------
# Per-test database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def temp_db(tmp_path, monkeypatch):
    """Fresh SQLite database for one test; db.DB_PATH is restored afterwards."""
    import db as db_module
    monkeypatch.setattr(db_module, "DB_PATH", tmp_path / "test.db")
    await db_module.init_db()
    return db_module.DB_PATH


# ---------------------------------------------------------------------------
# API / Integration test fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def _temp_db_dir():
    """Create a temporary directory for the test database."""
    with tempfile.TemporaryDirectory(prefix="llm_bench_test_") as tmpdir:
        yield tmpdir


@pytest.fixture(scope="session")
def _patch_db_path(_temp_db_dir):
    """Point db.DB_PATH at a temporary database for the whole session."""
    import db as db_module
    original = db_module.DB_PATH
    db_module.DB_PATH = Path(_temp_db_dir) / "test_llm_benchmark.db"
    yield db_module.DB_PATH
    db_module.DB_PATH = original


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def _init_test_db(_patch_db_path):
    """Initialize the test database schema once per session."""
    import db as db_module
    await db_module.init_db()
    yield


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def app_client(_init_test_db):
    """httpx.AsyncClient wired to the FastAPI app through ASGITransport.

    The lifespan runs so the job registry is started (watchdog, ws manager).
    """
    import httpx
    from app import app, lifespan

    async with lifespan(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(
            transport=transport,
            base_url="http://testserver",
            timeout=30.0,
        ) as client:
            yield client


@pytest.fixture
def api_key():
    return "sk-or-v1-test-0123456789abcdef"


@pytest.fixture
def key_headers(api_key):
    return {"X-API-Key": api_key}


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Each test starts with an empty per-IP request window."""
    import auth
    auth.api_limiter.reset()
    yield
    auth.api_limiter.reset()
