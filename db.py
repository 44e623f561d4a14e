"""Database layer for the LLM Benchmark service.

Uses aiosqlite for async SQLite with WAL mode.
All tables are created on first startup via init_db().

JSON-valued columns are stored as TEXT and decoded on read, so callers
always see plain dicts/lists.
"""

import json
import logging
import os
import secrets
import string
import aiosqlite
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

DB_PATH = Path(os.environ.get(
    "BENCHMARK_DB_PATH", str(Path(__file__).parent / "data" / "benchmarks.db"),
))

PUBLIC_ID_LENGTH = 10
_PUBLIC_ID_ALPHABET = string.ascii_letters + string.digits


class DatabaseManager:
    """Centralized database connection management.

    Uses the module-level DB_PATH so that monkeypatching DB_PATH in tests
    automatically applies to all queries.
    """

    def _path(self) -> str:
        return str(DB_PATH)

    async def fetch_one(self, query: str, params: tuple = ()) -> dict | None:
        """Execute query and return one row as dict, or None."""
        async with aiosqlite.connect(self._path()) as conn:
            await conn.execute("PRAGMA busy_timeout=5000")
            conn.row_factory = aiosqlite.Row
            cursor = await conn.execute(query, params)
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def fetch_all(self, query: str, params: tuple = ()) -> list[dict]:
        """Execute query and return all rows as list of dicts."""
        async with aiosqlite.connect(self._path()) as conn:
            await conn.execute("PRAGMA busy_timeout=5000")
            conn.row_factory = aiosqlite.Row
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return [dict(r) for r in rows]

    async def execute(self, query: str, params: tuple = ()) -> None:
        """Execute a write query (INSERT/UPDATE/DELETE) with auto-commit."""
        async with aiosqlite.connect(self._path()) as conn:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA busy_timeout=5000")
            await conn.execute("PRAGMA foreign_keys=ON")
            await conn.execute(query, params)
            await conn.commit()

    async def execute_many(self, queries: list[tuple[str, tuple]]) -> None:
        """Execute several write queries in one transaction."""
        async with aiosqlite.connect(self._path()) as conn:
            await conn.execute("PRAGMA busy_timeout=5000")
            await conn.execute("PRAGMA foreign_keys=ON")
            for query, params in queries:
                await conn.execute(query, params)
            await conn.commit()

    async def execute_returning_row(self, queries: list[tuple[str, tuple]], fetch_query: str, fetch_params: tuple) -> dict | None:
        """Execute write queries then fetch a row in the same connection."""
        async with aiosqlite.connect(self._path()) as conn:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA busy_timeout=5000")
            await conn.execute("PRAGMA foreign_keys=ON")
            for query, params in queries:
                await conn.execute(query, params)
            await conn.commit()
            cursor = await conn.execute(fetch_query, fetch_params)
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def execute_returning_rowcount(self, query: str, params: tuple = ()) -> int:
        """Execute a write query and return cursor.rowcount."""
        async with aiosqlite.connect(self._path()) as conn:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA busy_timeout=5000")
            await conn.execute("PRAGMA foreign_keys=ON")
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.rowcount


# Module-level singleton
_db = DatabaseManager()


async def init_db():
    """Create all tables if they don't exist. Called once at app startup."""
    logger.info("Initializing database at %s", DB_PATH)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(str(DB_PATH)) as db:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA busy_timeout=5000")
        await db.execute("PRAGMA foreign_keys=ON")

        # --- Benchmark configurations ---
        await db.execute("""
            CREATE TABLE IF NOT EXISTS benchmark_configs (
                id TEXT PRIMARY KEY DEFAULT (lower(hex(randomblob(16)))),
                name TEXT NOT NULL,
                description TEXT DEFAULT '',
                benchmark_type TEXT NOT NULL DEFAULT 'basic'
                    CHECK(benchmark_type IN ('basic', 'advanced')),
                topic TEXT,
                advanced_options TEXT,
                test_cases TEXT NOT NULL DEFAULT '[]',
                model_configs TEXT NOT NULL DEFAULT '[]',
                metric_configs TEXT NOT NULL DEFAULT '[]',
                public_id TEXT UNIQUE,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)

        # --- Benchmark results (one row per execution) ---
        await db.execute("""
            CREATE TABLE IF NOT EXISTS benchmark_results (
                id TEXT PRIMARY KEY DEFAULT (lower(hex(randomblob(16)))),
                config_id TEXT REFERENCES benchmark_configs(id) ON DELETE CASCADE,
                executed_at TEXT NOT NULL DEFAULT (datetime('now')),
                status TEXT NOT NULL DEFAULT 'running'
                    CHECK(status IN ('running', 'completed', 'failed')),
                status_details TEXT,
                model_results TEXT NOT NULL DEFAULT '{}',
                summary TEXT NOT NULL DEFAULT '{}',
                error TEXT,
                public_id TEXT UNIQUE,
                api_key_valid INTEGER,
                api_key_credits REAL,
                api_key_limit REAL,
                api_key_error TEXT,
                completed_at TEXT
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_results_config ON benchmark_results(config_id)"
        )

        await db.execute("""
            CREATE TABLE IF NOT EXISTS test_case_results (
                id TEXT PRIMARY KEY DEFAULT (lower(hex(randomblob(16)))),
                benchmark_result_id TEXT NOT NULL
                    REFERENCES benchmark_results(id) ON DELETE CASCADE,
                model_id TEXT NOT NULL,
                test_case_id TEXT NOT NULL,
                output TEXT,
                latency REAL NOT NULL DEFAULT 0,
                token_count INTEGER NOT NULL DEFAULT 0,
                cost REAL NOT NULL DEFAULT 0,
                prompt TEXT,
                domain_expertise_score REAL,
                accuracy_score REAL,
                metrics TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_tcr_result ON test_case_results(benchmark_result_id)"
        )

        # --- Advanced benchmark rankings ---
        await db.execute("""
            CREATE TABLE IF NOT EXISTS model_rankings (
                id TEXT PRIMARY KEY DEFAULT (lower(hex(randomblob(16)))),
                benchmark_result_id TEXT NOT NULL
                    REFERENCES benchmark_results(id) ON DELETE CASCADE,
                model_id TEXT NOT NULL,
                overall_rank INTEGER NOT NULL,
                performance_rank INTEGER NOT NULL,
                cost_efficiency_rank INTEGER NOT NULL,
                domain_expertise_rank INTEGER NOT NULL,
                score REAL NOT NULL DEFAULT 0,
                speed_level INTEGER NOT NULL DEFAULT 3 CHECK(speed_level BETWEEN 1 AND 5),
                cost_level INTEGER NOT NULL DEFAULT 3 CHECK(cost_level BETWEEN 1 AND 5),
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)

        # --- Ollama React benchmarks ---
        await db.execute("""
            CREATE TABLE IF NOT EXISTS ollama_benchmark_configs (
                id TEXT PRIMARY KEY DEFAULT (lower(hex(randomblob(16)))),
                name TEXT NOT NULL,
                description TEXT DEFAULT '',
                models TEXT NOT NULL DEFAULT '[]',
                test_cases TEXT NOT NULL DEFAULT '[]',
                parameters TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS ollama_benchmark_results (
                id TEXT PRIMARY KEY DEFAULT (lower(hex(randomblob(16)))),
                config_id TEXT NOT NULL
                    REFERENCES ollama_benchmark_configs(id) ON DELETE CASCADE,
                status TEXT NOT NULL DEFAULT 'created'
                    CHECK(status IN ('created', 'running', 'completed', 'failed')),
                status_details TEXT NOT NULL DEFAULT '{}',
                error TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                completed_at TEXT
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS ollama_test_case_results (
                id TEXT PRIMARY KEY DEFAULT (lower(hex(randomblob(16)))),
                benchmark_result_id TEXT NOT NULL
                    REFERENCES ollama_benchmark_results(id) ON DELETE CASCADE,
                model_id TEXT NOT NULL,
                test_case_id TEXT NOT NULL,
                difficulty TEXT,
                category TEXT,
                prompt TEXT,
                output TEXT,
                latency REAL NOT NULL DEFAULT 0,
                token_count INTEGER NOT NULL DEFAULT 0,
                accuracy_score REAL NOT NULL DEFAULT 0,
                category_scores TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS ollama_model_rankings (
                id TEXT PRIMARY KEY DEFAULT (lower(hex(randomblob(16)))),
                benchmark_result_id TEXT NOT NULL
                    REFERENCES ollama_benchmark_results(id) ON DELETE CASCADE,
                model_id TEXT NOT NULL,
                overall_rank INTEGER NOT NULL,
                basic_rank INTEGER,
                intermediate_rank INTEGER,
                advanced_rank INTEGER,
                expert_rank INTEGER,
                accuracy_rank INTEGER,
                correctness_rank INTEGER,
                efficiency_rank INTEGER,
                accuracy_score REAL NOT NULL DEFAULT 0,
                accuracy_category_score REAL NOT NULL DEFAULT 0,
                correctness_category_score REAL NOT NULL DEFAULT 0,
                efficiency_category_score REAL NOT NULL DEFAULT 0,
                latency_score REAL NOT NULL DEFAULT 0,
                overall_score REAL NOT NULL DEFAULT 0,
                avg_latency REAL NOT NULL DEFAULT 0,
                total_tokens INTEGER NOT NULL DEFAULT 0,
                difficulty_metrics TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)

        # --- Jobs (Process Tracker) ---
        await db.execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                id TEXT PRIMARY KEY DEFAULT (lower(hex(randomblob(16)))),
                owner_id TEXT NOT NULL,

                job_type TEXT NOT NULL CHECK(job_type IN (
                    'benchmark', 'ollama_benchmark'
                )),

                -- Lifecycle
                status TEXT NOT NULL DEFAULT 'pending' CHECK(status IN (
                    'pending', 'queued', 'running',
                    'done', 'failed', 'cancelled', 'interrupted'
                )),

                -- Progress tracking
                progress_pct INTEGER DEFAULT 0 CHECK(progress_pct BETWEEN 0 AND 100),
                progress_detail TEXT DEFAULT '',

                -- Input parameters (never contains API keys)
                params_json TEXT NOT NULL DEFAULT '{}',

                -- Benchmark result id this job writes to
                result_ref TEXT,
                error_msg TEXT,

                -- Timeout
                timeout_seconds INTEGER NOT NULL DEFAULT 7200,
                timeout_at TEXT,

                started_at TEXT,
                completed_at TEXT,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_jobs_owner_status ON jobs(owner_id, status)"
        )
        await db.commit()


# --- Helpers ---

def generate_public_id() -> str:
    """Random 10-character alphanumeric id for shareable links."""
    return "".join(secrets.choice(_PUBLIC_ID_ALPHABET) for _ in range(PUBLIC_ID_LENGTH))


def _new_id() -> str:
    return uuid.uuid4().hex


_JSON_COLUMNS = {
    "benchmark_configs": ("advanced_options", "test_cases", "model_configs", "metric_configs"),
    "benchmark_results": ("status_details", "model_results", "summary"),
    "test_case_results": ("metrics",),
    "model_rankings": (),
    "ollama_benchmark_configs": ("models", "test_cases", "parameters"),
    "ollama_benchmark_results": ("status_details",),
    "ollama_test_case_results": ("category_scores",),
    "ollama_model_rankings": ("difficulty_metrics",),
}

# Columns callers may write through the generic insert/update helpers
_WRITABLE = {
    "benchmark_configs": (
        "name", "description", "benchmark_type", "topic", "advanced_options",
        "test_cases", "model_configs", "metric_configs", "public_id",
    ),
    "benchmark_results": (
        "config_id", "executed_at", "status", "status_details", "model_results",
        "summary", "error", "public_id", "api_key_valid", "api_key_credits",
        "api_key_limit", "api_key_error", "completed_at",
    ),
    "test_case_results": (
        "benchmark_result_id", "model_id", "test_case_id", "output", "latency",
        "token_count", "cost", "prompt", "domain_expertise_score",
        "accuracy_score", "metrics",
    ),
    "model_rankings": (
        "benchmark_result_id", "model_id", "overall_rank", "performance_rank",
        "cost_efficiency_rank", "domain_expertise_rank", "score", "speed_level",
        "cost_level",
    ),
    "ollama_benchmark_configs": ("name", "description", "models", "test_cases", "parameters"),
    "ollama_benchmark_results": ("config_id", "status", "status_details", "error", "completed_at"),
    "ollama_test_case_results": (
        "benchmark_result_id", "model_id", "test_case_id", "difficulty", "category",
        "prompt", "output", "latency", "token_count", "accuracy_score", "category_scores",
    ),
    "ollama_model_rankings": (
        "benchmark_result_id", "model_id", "overall_rank", "basic_rank",
        "intermediate_rank", "advanced_rank", "expert_rank", "accuracy_rank",
        "correctness_rank", "efficiency_rank", "accuracy_score",
        "accuracy_category_score", "correctness_category_score",
        "efficiency_category_score", "latency_score", "overall_score",
        "avg_latency", "total_tokens", "difficulty_metrics",
    ),
}


def _encode(table: str, fields: dict) -> dict:
    """Keep writable columns only and JSON-encode structured values."""
    allowed = _WRITABLE[table]
    json_cols = _JSON_COLUMNS[table]
    out = {}
    for key, value in fields.items():
        if key not in allowed:
            continue
        if key in json_cols and value is not None and not isinstance(value, str):
            value = json.dumps(value)
        elif isinstance(value, bool):
            value = int(value)
        out[key] = value
    return out


def _decode(table: str, row: dict | None) -> dict | None:
    if row is None:
        return None
    for col in _JSON_COLUMNS[table]:
        raw = row.get(col)
        if isinstance(raw, str):
            try:
                row[col] = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Undecodable JSON in %s.%s (id=%s)", table, col, row.get("id"))
    if table == "benchmark_results" and row.get("api_key_valid") is not None:
        row["api_key_valid"] = bool(row["api_key_valid"])
    return row


def _decode_all(table: str, rows: list[dict]) -> list[dict]:
    return [_decode(table, r) for r in rows]


async def _insert(table: str, fields: dict) -> dict:
    row_id = fields.get("id") or _new_id()
    values = _encode(table, fields)
    cols = ["id", *values.keys()]
    placeholders = ", ".join("?" for _ in cols)
    row = await _db.execute_returning_row(
        [(f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({placeholders})",
          (row_id, *values.values()))],
        f"SELECT * FROM {table} WHERE id = ?",
        (row_id,),
    )
    return _decode(table, row)


async def _update(table: str, row_id: str, fields: dict, touch: bool = False) -> dict | None:
    values = _encode(table, fields)
    sets = [f"{col} = ?" for col in values]
    if touch:
        sets.append("updated_at = datetime('now')")
    if not sets:
        return _decode(table, await _db.fetch_one(f"SELECT * FROM {table} WHERE id = ?", (row_id,)))
    row = await _db.execute_returning_row(
        [(f"UPDATE {table} SET {', '.join(sets)} WHERE id = ?", (*values.values(), row_id))],
        f"SELECT * FROM {table} WHERE id = ?",
        (row_id,),
    )
    return _decode(table, row)


# --- Benchmark configs CRUD ---

async def create_config(data: dict) -> dict:
    """Insert a benchmark configuration. Assigns a public_id when missing."""
    fields = dict(data)
    fields.setdefault("public_id", generate_public_id())
    return await _insert("benchmark_configs", fields)


async def get_config(config_id: str) -> dict | None:
    return _decode("benchmark_configs", await _db.fetch_one(
        "SELECT * FROM benchmark_configs WHERE id = ?", (config_id,),
    ))


async def get_config_by_public_id(public_id: str) -> dict | None:
    return _decode("benchmark_configs", await _db.fetch_one(
        "SELECT * FROM benchmark_configs WHERE public_id = ?", (public_id,),
    ))


async def list_configs(benchmark_type: str | None = None) -> list[dict]:
    """List configs, newest first. Optionally filter by benchmark_type."""
    if benchmark_type:
        rows = await _db.fetch_all(
            "SELECT * FROM benchmark_configs WHERE benchmark_type = ? ORDER BY created_at DESC, rowid DESC",
            (benchmark_type,),
        )
    else:
        rows = await _db.fetch_all(
            "SELECT * FROM benchmark_configs ORDER BY created_at DESC, rowid DESC"
        )
    return _decode_all("benchmark_configs", rows)


async def update_config(config_id: str, data: dict) -> dict | None:
    """Update a config. Returns the updated row, or None if it does not exist."""
    if not await get_config(config_id):
        return None
    return await _update("benchmark_configs", config_id, data, touch=True)


async def delete_config(config_id: str) -> bool:
    count = await _db.execute_returning_rowcount(
        "DELETE FROM benchmark_configs WHERE id = ?", (config_id,),
    )
    return count > 0


# --- Benchmark results CRUD ---

async def create_result(data: dict) -> dict:
    fields = dict(data)
    fields.setdefault("public_id", generate_public_id())
    return await _insert("benchmark_results", fields)


async def update_result(result_id: str, **fields) -> dict | None:
    return await _update("benchmark_results", result_id, fields)


async def get_result(
    result_id: str,
    with_test_cases: bool = False,
    with_config: bool = False,
) -> dict | None:
    """Get a result row, optionally joined with its test cases and config."""
    row = _decode("benchmark_results", await _db.fetch_one(
        "SELECT * FROM benchmark_results WHERE id = ?", (result_id,),
    ))
    if row is None:
        return None
    if with_test_cases:
        row["test_case_results"] = await get_test_case_results(result_id)
    if with_config:
        row["benchmark_configs"] = await get_config(row["config_id"]) if row.get("config_id") else None
    return row


async def get_result_by_public_id(public_id: str) -> dict | None:
    row = await _db.fetch_one(
        "SELECT id FROM benchmark_results WHERE public_id = ?", (public_id,),
    )
    if not row:
        return None
    return await get_result(row["id"], with_test_cases=True, with_config=True)


async def list_results() -> list[dict]:
    """All results, most recently executed first."""
    rows = await _db.fetch_all(
        "SELECT * FROM benchmark_results ORDER BY executed_at DESC, rowid DESC"
    )
    return _decode_all("benchmark_results", rows)


async def list_results_with_configs() -> list[dict]:
    results = await list_results()
    for r in results:
        r["benchmark_configs"] = await get_config(r["config_id"]) if r.get("config_id") else None
    return results


async def delete_result(result_id: str) -> bool:
    """Delete a result and its test case results and rankings."""
    exists = await _db.fetch_one("SELECT id FROM benchmark_results WHERE id = ?", (result_id,))
    if not exists:
        return False
    await _db.execute_many([
        ("DELETE FROM test_case_results WHERE benchmark_result_id = ?", (result_id,)),
        ("DELETE FROM model_rankings WHERE benchmark_result_id = ?", (result_id,)),
        ("DELETE FROM benchmark_results WHERE id = ?", (result_id,)),
    ])
    return True


# --- Test case results ---

async def save_test_case_result(data: dict) -> dict:
    return await _insert("test_case_results", data)


async def get_test_case_results(result_id: str) -> list[dict]:
    rows = await _db.fetch_all(
        "SELECT * FROM test_case_results WHERE benchmark_result_id = ? ORDER BY rowid ASC",
        (result_id,),
    )
    return _decode_all("test_case_results", rows)


# --- Model rankings ---

async def get_model_rankings(result_id: str) -> list[dict]:
    return await _db.fetch_all(
        "SELECT * FROM model_rankings WHERE benchmark_result_id = ? ORDER BY overall_rank ASC",
        (result_id,),
    )


async def save_model_rankings(result_id: str, rankings: list[dict]) -> list[dict]:
    """Replace stored rankings for a result."""
    queries = [("DELETE FROM model_rankings WHERE benchmark_result_id = ?", (result_id,))]
    for ranking in rankings:
        values = _encode("model_rankings", {**ranking, "benchmark_result_id": result_id})
        cols = ["id", *values.keys()]
        queries.append((
            f"INSERT INTO model_rankings ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
            (ranking.get("id") or _new_id(), *values.values()),
        ))
    await _db.execute_many(queries)
    return await get_model_rankings(result_id)


# --- Ollama benchmarks CRUD ---

async def create_ollama_config(data: dict) -> dict:
    return await _insert("ollama_benchmark_configs", data)


async def get_ollama_config(config_id: str) -> dict | None:
    return _decode("ollama_benchmark_configs", await _db.fetch_one(
        "SELECT * FROM ollama_benchmark_configs WHERE id = ?", (config_id,),
    ))


async def create_ollama_result(data: dict) -> dict:
    return await _insert("ollama_benchmark_results", data)


async def update_ollama_result(result_id: str, **fields) -> dict | None:
    return await _update("ollama_benchmark_results", result_id, fields)


async def get_ollama_result(result_id: str) -> dict | None:
    """Get an Ollama result joined with its config as benchmark_config."""
    row = _decode("ollama_benchmark_results", await _db.fetch_one(
        "SELECT * FROM ollama_benchmark_results WHERE id = ?", (result_id,),
    ))
    if row is None:
        return None
    row["benchmark_config"] = await get_ollama_config(row["config_id"])
    return row


async def list_ollama_results() -> list[dict]:
    rows = _decode_all("ollama_benchmark_results", await _db.fetch_all(
        "SELECT * FROM ollama_benchmark_results ORDER BY created_at DESC, rowid DESC"
    ))
    for row in rows:
        row["benchmark_config"] = await get_ollama_config(row["config_id"])
    return rows


async def save_ollama_test_case_result(data: dict) -> dict:
    return await _insert("ollama_test_case_results", data)


async def get_ollama_test_case_results(result_id: str) -> list[dict]:
    rows = await _db.fetch_all(
        "SELECT * FROM ollama_test_case_results WHERE benchmark_result_id = ? ORDER BY rowid ASC",
        (result_id,),
    )
    return _decode_all("ollama_test_case_results", rows)


async def save_ollama_model_rankings(result_id: str, rankings: list[dict]) -> None:
    queries = [("DELETE FROM ollama_model_rankings WHERE benchmark_result_id = ?", (result_id,))]
    for ranking in rankings:
        values = _encode("ollama_model_rankings", {**ranking, "benchmark_result_id": result_id})
        cols = ["id", *values.keys()]
        queries.append((
            f"INSERT INTO ollama_model_rankings ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
            (_new_id(), *values.values()),
        ))
    await _db.execute_many(queries)


async def get_ollama_model_rankings(result_id: str) -> list[dict]:
    rows = await _db.fetch_all(
        "SELECT * FROM ollama_model_rankings WHERE benchmark_result_id = ? ORDER BY overall_rank ASC",
        (result_id,),
    )
    return _decode_all("ollama_model_rankings", rows)


# --- Jobs (Process Tracker) CRUD ---


async def create_job(
    job_id: str,
    owner_id: str,
    job_type: str,
    status: str,
    params_json: str,
    timeout_seconds: int = 7200,
    progress_detail: str = "",
    result_ref: str | None = None,
) -> dict:
    """Create a new job record. Returns the job dict."""
    row = await _db.execute_returning_row(
        [("INSERT INTO jobs (id, owner_id, job_type, status, params_json, timeout_seconds, progress_detail, result_ref) "
          "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
          (job_id, owner_id, job_type, status, params_json, timeout_seconds, progress_detail, result_ref))],
        "SELECT * FROM jobs WHERE id = ?",
        (job_id,),
    )
    return row


async def get_job(job_id: str) -> dict | None:
    """Get a single job by ID."""
    return await _db.fetch_one("SELECT * FROM jobs WHERE id = ?", (job_id,))


async def get_job_by_result_ref(result_ref: str) -> dict | None:
    """Most recent job writing to a given benchmark result."""
    return await _db.fetch_one(
        "SELECT * FROM jobs WHERE result_ref = ? ORDER BY created_at DESC, rowid DESC LIMIT 1",
        (result_ref,),
    )


async def update_job_started(job_id: str, started_at: str, timeout_at: str):
    """Mark a job as running with start time and timeout deadline."""
    await _db.execute(
        "UPDATE jobs SET status = 'running', started_at = ?, timeout_at = ? WHERE id = ?",
        (started_at, timeout_at, job_id),
    )


async def update_job_progress(job_id: str, progress_pct: int, progress_detail: str = ""):
    """Update progress fields for a running job."""
    await _db.execute(
        "UPDATE jobs SET progress_pct = ?, progress_detail = ? WHERE id = ?",
        (max(0, min(100, int(progress_pct))), progress_detail, job_id),
    )


async def update_job_status(
    job_id: str,
    status: str,
    completed_at: str | None = None,
    result_ref: str | None = None,
    error_msg: str | None = None,
):
    """Update job status and optional terminal fields (completed_at, result_ref, error_msg)."""
    fields = ["status = ?"]
    values: list = [status]
    if completed_at is not None:
        fields.append("completed_at = ?")
        values.append(completed_at)
    if result_ref is not None:
        fields.append("result_ref = ?")
        values.append(result_ref)
    if error_msg is not None:
        fields.append("error_msg = ?")
        values.append(error_msg)
    values.append(job_id)
    await _db.execute(f"UPDATE jobs SET {', '.join(fields)} WHERE id = ?", tuple(values))


async def get_owner_active_jobs(owner_id: str) -> list[dict]:
    """Jobs in pending/queued/running for an owner, oldest first."""
    return await _db.fetch_all(
        "SELECT * FROM jobs WHERE owner_id = ? AND status IN ('pending', 'queued', 'running') "
        "ORDER BY created_at ASC, rowid ASC",
        (owner_id,),
    )


async def get_owner_recent_jobs(owner_id: str, limit: int = 10) -> list[dict]:
    """Recent terminal jobs for an owner, newest first."""
    return await _db.fetch_all(
        "SELECT * FROM jobs WHERE owner_id = ? AND status IN ('done', 'failed', 'cancelled', 'interrupted') "
        "ORDER BY completed_at DESC LIMIT ?",
        (owner_id, limit),
    )


async def get_owner_jobs(owner_id: str, status: str | None = None, limit: int = 20) -> list[dict]:
    """List jobs for an owner with optional status filter. Newest first."""
    query = "SELECT * FROM jobs WHERE owner_id = ?"
    params: list = [owner_id]
    if status:
        # Support comma-separated status values
        statuses = [s.strip() for s in status.split(",") if s.strip()]
        placeholders = ", ".join("?" for _ in statuses)
        query += f" AND status IN ({placeholders})"
        params.extend(statuses)
    query += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
    params.append(limit)
    return await _db.fetch_all(query, tuple(params))


async def get_next_queued_job(owner_id: str) -> dict | None:
    """Get the oldest queued job for an owner (FIFO)."""
    return await _db.fetch_one(
        "SELECT * FROM jobs WHERE owner_id = ? AND status = 'queued' "
        "ORDER BY created_at ASC, rowid ASC LIMIT 1",
        (owner_id,),
    )


async def mark_interrupted_jobs() -> int:
    """On startup, mark all running/pending/queued jobs as interrupted. Returns count."""
    return await _db.execute_returning_rowcount(
        "UPDATE jobs SET status = 'interrupted', completed_at = datetime('now') "
        "WHERE status IN ('running', 'pending', 'queued')"
    )


async def fail_orphaned_results() -> int:
    """On startup, fail result rows left 'running' by a previous process."""
    count = await _db.execute_returning_rowcount(
        "UPDATE benchmark_results SET status = 'failed', error = 'Interrupted by server restart', "
        "completed_at = datetime('now') WHERE status = 'running'"
    )
    count += await _db.execute_returning_rowcount(
        "UPDATE ollama_benchmark_results SET status = 'failed', error = 'Interrupted by server restart', "
        "completed_at = datetime('now') WHERE status IN ('created', 'running')"
    )
    return count


async def get_timed_out_jobs() -> list[dict]:
    """Get jobs where status='running' and timeout_at < now."""
    return await _db.fetch_all(
        "SELECT * FROM jobs WHERE status = 'running' AND timeout_at IS NOT NULL "
        "AND timeout_at < datetime('now')"
    )
