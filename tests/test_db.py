"""Tests for db.py -- CRUD operations using a temporary SQLite database."""

import pytest
import pytest_asyncio

import db


# ===========================================================================
# Fixtures -- temp DB per test
# ===========================================================================


@pytest_asyncio.fixture
async def test_db(tmp_path, monkeypatch):
    """Patch db.DB_PATH to a temp file and initialise all tables."""
    temp_db = tmp_path / "test.db"
    monkeypatch.setattr(db, "DB_PATH", temp_db)
    await db.init_db()
    return temp_db


@pytest_asyncio.fixture
async def config(test_db, sample_config):
    return await db.create_config(sample_config)


# ===========================================================================
# init_db
# ===========================================================================


class TestInitDb:
    @pytest.mark.asyncio
    async def test_creates_tables(self, test_db):
        """init_db should create all expected tables."""
        import aiosqlite
        async with aiosqlite.connect(str(test_db)) as conn:
            cursor = await conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            )
            tables = {row[0] for row in await cursor.fetchall()}

        expected = {
            "benchmark_configs", "benchmark_results", "test_case_results",
            "model_rankings", "ollama_benchmark_configs", "ollama_benchmark_results",
            "ollama_test_case_results", "ollama_model_rankings", "jobs",
        }
        assert expected.issubset(tables)

    @pytest.mark.asyncio
    async def test_idempotent(self, test_db):
        await db.init_db()


# ===========================================================================
# Configs
# ===========================================================================


class TestConfigs:
    def test_public_id_shape(self):
        pid = db.generate_public_id()
        assert len(pid) == db.PUBLIC_ID_LENGTH
        assert pid.isalnum()

    @pytest.mark.asyncio
    async def test_create_decodes_json(self, config):
        assert config["name"] == "Smoke config"
        assert config["test_cases"][0]["expectedOutput"] == "Paris"
        assert config["model_configs"][2]["enabled"] is False
        assert len(config["public_id"]) == db.PUBLIC_ID_LENGTH

    @pytest.mark.asyncio
    async def test_unknown_fields_dropped(self, test_db, sample_config):
        created = await db.create_config({**sample_config, "owner": "someone"})
        assert "owner" not in created

    @pytest.mark.asyncio
    async def test_get_and_public_lookup(self, config):
        assert (await db.get_config(config["id"]))["id"] == config["id"]
        assert (await db.get_config_by_public_id(config["public_id"]))["id"] == config["id"]
        assert await db.get_config("missing") is None

    @pytest.mark.asyncio
    async def test_list_filters_by_type(self, config, advanced_config):
        adv = await db.create_config(advanced_config)
        assert [c["id"] for c in await db.list_configs("advanced")] == [adv["id"]]
        ids = [c["id"] for c in await db.list_configs()]
        assert ids == [adv["id"], config["id"]]

    @pytest.mark.asyncio
    async def test_update(self, config):
        updated = await db.update_config(config["id"], {"name": "Renamed", "test_cases": [{"id": "x", "name": "x", "prompt": "p"}]})
        assert updated["name"] == "Renamed"
        assert updated["test_cases"] == [{"id": "x", "name": "x", "prompt": "p"}]
        assert await db.update_config("missing", {"name": "x"}) is None

    @pytest.mark.asyncio
    async def test_delete_cascades_results(self, config):
        result = await db.create_result({"config_id": config["id"], "status": "running"})
        assert await db.delete_config(config["id"]) is True
        assert await db.get_result(result["id"]) is None
        assert await db.delete_config(config["id"]) is False


# ===========================================================================
# Results
# ===========================================================================


class TestResults:
    @pytest.mark.asyncio
    async def test_create_and_update(self, config):
        result = await db.create_result({
            "config_id": config["id"],
            "status": "running",
            "status_details": {"totalTests": 4, "completedTests": 0},
            "api_key_valid": True,
        })
        assert result["status_details"]["totalTests"] == 4
        assert result["api_key_valid"] is True
        assert result["model_results"] == {}

        updated = await db.update_result(result["id"], status="completed", summary={"models": {}})
        assert updated["status"] == "completed"
        assert updated["summary"] == {"models": {}}

    @pytest.mark.asyncio
    async def test_invalid_status_rejected(self, config):
        import sqlite3
        with pytest.raises(sqlite3.IntegrityError):
            await db.create_result({"config_id": config["id"], "status": "paused"})

    @pytest.mark.asyncio
    async def test_get_with_test_cases_and_config(self, config):
        result = await db.create_result({"config_id": config["id"], "status": "running"})
        await db.save_test_case_result({
            "benchmark_result_id": result["id"], "model_id": "openai/gpt-4",
            "test_case_id": "tc-1", "output": "Paris", "latency": 120.0,
            "token_count": 12, "cost": 0.001, "metrics": {"tokensPerSecond": 100},
        })
        full = await db.get_result(result["id"], with_test_cases=True, with_config=True)
        assert full["test_case_results"][0]["metrics"] == {"tokensPerSecond": 100}
        assert full["benchmark_configs"]["id"] == config["id"]

        public = await db.get_result_by_public_id(result["public_id"])
        assert public["id"] == result["id"]
        assert len(public["test_case_results"]) == 1

    @pytest.mark.asyncio
    async def test_list_with_configs(self, config):
        await db.create_result({"config_id": config["id"], "status": "running"})
        rows = await db.list_results_with_configs()
        assert rows[0]["benchmark_configs"]["name"] == "Smoke config"

    @pytest.mark.asyncio
    async def test_delete_removes_children(self, config):
        result = await db.create_result({"config_id": config["id"], "status": "completed"})
        await db.save_test_case_result({
            "benchmark_result_id": result["id"], "model_id": "m", "test_case_id": "tc-1",
        })
        await db.save_model_rankings(result["id"], [{
            "model_id": "m", "overall_rank": 1, "performance_rank": 1,
            "cost_efficiency_rank": 1, "domain_expertise_rank": 1,
            "score": 0.5, "speed_level": 3, "cost_level": 3,
        }])
        assert await db.delete_result(result["id"]) is True
        assert await db.get_test_case_results(result["id"]) == []
        assert await db.get_model_rankings(result["id"]) == []
        assert await db.delete_result(result["id"]) is False

    @pytest.mark.asyncio
    async def test_save_rankings_replaces(self, config):
        result = await db.create_result({"config_id": config["id"], "status": "completed"})
        ranking = {
            "model_id": "m", "overall_rank": 1, "performance_rank": 1,
            "cost_efficiency_rank": 1, "domain_expertise_rank": 1,
            "score": 0.5, "speed_level": 3, "cost_level": 3,
        }
        await db.save_model_rankings(result["id"], [ranking])
        stored = await db.save_model_rankings(result["id"], [ranking, {**ranking, "model_id": "n", "overall_rank": 2}])
        assert [r["model_id"] for r in stored] == ["m", "n"]


# ===========================================================================
# Ollama
# ===========================================================================


class TestOllama:
    @pytest.mark.asyncio
    async def test_result_joins_config(self, test_db):
        cfg = await db.create_ollama_config({
            "name": "React run", "models": ["llama3"], "test_cases": [{"id": "t1"}],
            "parameters": {"temperature": 0.2},
        })
        result = await db.create_ollama_result({"config_id": cfg["id"], "status": "created"})
        assert result["status_details"] == {}

        fetched = await db.get_ollama_result(result["id"])
        assert fetched["benchmark_config"]["models"] == ["llama3"]
        assert (await db.list_ollama_results())[0]["benchmark_config"]["id"] == cfg["id"]

    @pytest.mark.asyncio
    async def test_test_cases_and_rankings(self, test_db):
        cfg = await db.create_ollama_config({"name": "React run"})
        result = await db.create_ollama_result({"config_id": cfg["id"]})
        await db.save_ollama_test_case_result({
            "benchmark_result_id": result["id"], "model_id": "llama3", "test_case_id": "t1",
            "difficulty": "basic", "accuracy_score": 0.8,
            "category_scores": {"accuracy": 0.8, "correctness": 0.7, "efficiency": 0.6},
        })
        rows = await db.get_ollama_test_case_results(result["id"])
        assert rows[0]["category_scores"]["correctness"] == 0.7

        await db.save_ollama_model_rankings(result["id"], [{
            "model_id": "llama3", "overall_rank": 1, "basic_rank": 1,
            "difficulty_metrics": {"basic": {"avgAccuracy": 0.8, "count": 1}},
            "latency": 5,
        }])
        rankings = await db.get_ollama_model_rankings(result["id"])
        assert rankings[0]["difficulty_metrics"]["basic"]["count"] == 1
        assert rankings[0]["intermediate_rank"] is None


# ===========================================================================
# Jobs
# ===========================================================================


class TestJobs:
    @pytest.mark.asyncio
    async def test_create_and_lookup_by_result_ref(self, test_db):
        job = await db.create_job("job-1", "owner-a", "benchmark", "pending", "{}", result_ref="res-1")
        assert job["status"] == "pending"
        assert (await db.get_job_by_result_ref("res-1"))["id"] == "job-1"
        assert await db.get_job_by_result_ref("res-2") is None

    @pytest.mark.asyncio
    async def test_progress_is_clamped(self, test_db):
        await db.create_job("job-1", "owner-a", "benchmark", "running", "{}")
        await db.update_job_progress("job-1", 150, "almost")
        job = await db.get_job("job-1")
        assert job["progress_pct"] == 100
        assert job["progress_detail"] == "almost"

    @pytest.mark.asyncio
    async def test_owner_queries(self, test_db):
        await db.create_job("j1", "owner-a", "benchmark", "running", "{}")
        await db.create_job("j2", "owner-a", "benchmark", "queued", "{}")
        await db.create_job("j3", "owner-b", "ollama_benchmark", "queued", "{}")
        await db.update_job_status("j1", "done", completed_at="2026-01-01T00:00:00")

        assert [j["id"] for j in await db.get_owner_active_jobs("owner-a")] == ["j2"]
        assert [j["id"] for j in await db.get_owner_recent_jobs("owner-a")] == ["j1"]
        assert (await db.get_next_queued_job("owner-a"))["id"] == "j2"
        assert [j["id"] for j in await db.get_owner_jobs("owner-a", status="done,queued")] == ["j2", "j1"]

    @pytest.mark.asyncio
    async def test_startup_recovery(self, config):
        await db.create_job("j1", "owner-a", "benchmark", "running", "{}")
        await db.create_job("j2", "owner-a", "benchmark", "done", "{}")
        assert await db.mark_interrupted_jobs() == 1
        assert (await db.get_job("j1"))["status"] == "interrupted"

        running = await db.create_result({"config_id": config["id"], "status": "running"})
        cfg = await db.create_ollama_config({"name": "React run"})
        created = await db.create_ollama_result({"config_id": cfg["id"], "status": "created"})
        assert await db.fail_orphaned_results() == 2
        assert (await db.get_result(running["id"]))["error"] == "Interrupted by server restart"
        assert (await db.get_ollama_result(created["id"]))["status"] == "failed"

    @pytest.mark.asyncio
    async def test_timed_out_jobs(self, test_db):
        await db.create_job("j1", "owner-a", "benchmark", "running", "{}")
        await db.update_job_started("j1", "2020-01-01 00:00:00", "2020-01-01 01:00:00")
        await db.create_job("j2", "owner-a", "benchmark", "running", "{}")
        await db.update_job_started("j2", "2020-01-01 00:00:00", "2999-01-01 00:00:00")
        assert [j["id"] for j in await db.get_timed_out_jobs()] == ["j1"]
