#!/usr/bin/env python3
"""LLM Benchmark - Run benchmark configurations against OpenRouter models.

Usage:
    python benchmark.py config.yaml                       # Run locally
    python benchmark.py config.yaml --output out.json     # Also save JSON
    python benchmark.py config.yaml --server http://localhost:3001
                                                          # Submit to a server and poll
"""

import argparse
import asyncio
import json
import logging
import os
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

import db
import openrouter
from results import count_models, count_test_cases
from schemas import BenchmarkConfig
from scoring import calculate_cost, score_test_case

logger = logging.getLogger(__name__)

console = Console()

CANCELLED_ERROR = "Benchmark cancelled"

ProgressCallback = Callable[[int, str], Awaitable[None]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Config helpers
# ---------------------------------------------------------------------------

def _decode_list(value) -> list:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    return value if isinstance(value, list) else []


def enabled_models(config: dict) -> list[dict]:
    return [
        m for m in _decode_list(config.get("model_configs"))
        if isinstance(m, dict) and m.get("enabled", True)
    ]


def config_test_cases(config: dict) -> list[dict]:
    """Test cases of a config; a case without an ``id`` gets a generated one."""
    return [
        case if case.get("id") else {**case, "id": str(uuid.uuid4())}
        for case in _decode_list(config.get("test_cases"))
        if isinstance(case, dict)
    ]


# ---------------------------------------------------------------------------
# Scoring and persistence
# ---------------------------------------------------------------------------

async def save_test_case_result(
    result_id: str,
    model_id: str,
    test_case: dict,
    test_result: dict,
    config: dict,
) -> dict:
    """Score one test result and store it as a test_case_results row.

    Only advanced configs with a topic are scored; the scores are also
    written into ``test_result["metrics"]`` for the summary.
    """
    output = test_result.get("output") or ""
    token_count = test_result.get("tokenCount")

    if config.get("benchmark_type") == "advanced":
        scores = score_test_case(
            output, test_case.get("prompt") or "", config.get("topic"), test_case.get("expectedOutput"),
        )
    else:
        scores = {"domain_expertise_score": None, "accuracy_score": None}

    metrics = {
        "error": test_result.get("error"),
        "tokenCounts": token_count,
        "domainExpertiseScore": scores["domain_expertise_score"],
        "accuracyScore": scores["accuracy_score"],
    }
    test_result["metrics"] = metrics

    return await db.save_test_case_result({
        "benchmark_result_id": result_id,
        "model_id": model_id,
        "test_case_id": test_case.get("id"),
        "output": output,
        "latency": test_result.get("latency") or 0,
        "token_count": (token_count or {}).get("total") or 0,
        "cost": calculate_cost(model_id, token_count),
        "prompt": test_case.get("prompt"),
        "domain_expertise_score": scores["domain_expertise_score"],
        "accuracy_score": scores["accuracy_score"],
        "metrics": metrics,
    })


async def _record_test_case(
    result_id: str,
    model_id: str,
    test_case: dict,
    test_result: dict,
    config: dict,
    model_results: dict,
) -> None:
    """Add a test result to ``model_results`` and store it.

    A failed write is recorded as this test case's error; the run goes on.
    """
    model_results[model_id]["testResults"][test_case["id"]] = test_result
    try:
        await save_test_case_result(result_id, model_id, test_case, test_result, config)
    except sqlite3.Error as e:
        logger.exception("Saving test case result failed", extra={"benchmark_id": result_id, "model": model_id})
        if not test_result.get("error"):
            test_result["error"] = f"Failed to save test case result: {e}"


def calculate_summary_metrics(model_results: dict) -> dict:
    """Per-model aggregates: ``{"models": {model_id: {...}}, "overall": {}}``."""
    summary = {"models": {}, "overall": {}}
    for model_id, model_result in model_results.items():
        tests = list((model_result.get("testResults") or {}).values())
        count = len(tests)

        domain_scores = [
            t["metrics"]["domainExpertiseScore"] for t in tests
            if (t.get("metrics") or {}).get("domainExpertiseScore") is not None
        ]
        accuracy_scores = [
            t["metrics"]["accuracyScore"] for t in tests
            if (t.get("metrics") or {}).get("accuracyScore") is not None
        ]

        summary["models"][model_id] = {
            "avgLatency": sum(t.get("latency") or 0 for t in tests) / count if count else 0,
            "totalTokens": sum((t.get("tokenCount") or {}).get("total") or 0 for t in tests),
            "totalCost": sum(calculate_cost(model_id, t.get("tokenCount")) for t in tests),
            "successRate": sum(1 for t in tests if not t.get("error")) / count if count else 0,
            "testCount": count,
            "avgDomainExpertiseScore": sum(domain_scores) / len(domain_scores) if domain_scores else None,
            "avgAccuracyScore": sum(accuracy_scores) / len(accuracy_scores) if accuracy_scores else None,
            "domainExpertiseScoreCount": len(domain_scores),
            "accuracyScoreCount": len(accuracy_scores),
        }
    return summary


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class _StopBenchmark(Exception):
    """Raised inside the test loop when an API key or credit error ends the run."""

    def __init__(self, error: str, key_error: str):
        super().__init__(error)
        self.error = error
        self.key_error = key_error


async def _check_key_error(error: str, api_key: str) -> None:
    """Stop the run on credit errors, or on key errors the key check confirms."""
    if not openrouter.is_api_key_error(error):
        return
    if openrouter.is_credit_error(error):
        raise _StopBenchmark(f"Insufficient credits: {error}", error)
    status = await openrouter.validate_api_key(api_key)
    credits = status.get("credits")
    if not status["valid"] or (credits is not None and credits <= 0):
        raise _StopBenchmark(f"API key error: {error}", error)


async def run_benchmark(
    config: dict,
    api_key: str,
    result_id: Optional[str] = None,
    cancel_event: Optional[asyncio.Event] = None,
    progress_cb: Optional[ProgressCallback] = None,
) -> dict:
    """Validate the key, run every enabled model on every test case, store the summary.

    Writes to ``result_id`` when given, otherwise creates a result row.
    Returns the final result row. Failures are recorded on the row
    (``status="failed"``, ``error``) rather than raised.
    """
    key_status = await openrouter.validate_api_key(api_key)
    fields = {
        "status": "running" if key_status["valid"] else "failed",
        "executed_at": _now(),
        "summary": {},
        "model_results": {},
        "api_key_valid": key_status["valid"],
        "api_key_credits": key_status.get("credits"),
        "api_key_limit": key_status.get("limit"),
    }
    if not key_status["valid"]:
        fields["api_key_error"] = key_status.get("error")

    if result_id:
        await db.update_result(result_id, **fields)
    else:
        result_id = (await db.create_result({**fields, "config_id": config.get("id")}))["id"]

    if not key_status["valid"]:
        logger.warning("API key validation failed", extra={"benchmark_id": result_id})
        return await db.update_result(
            result_id, status="failed",
            error=f"API key validation failed: {key_status.get('error')}",
            completed_at=_now(),
        )

    credits = key_status.get("credits")
    if credits is not None and credits <= 0:
        error = "Insufficient API credits to run benchmark"
        return await db.update_result(
            result_id, status="failed", error=error, api_key_error=error, completed_at=_now(),
        )

    test_cases = config_test_cases(config)
    models = enabled_models(config)
    total = len(models) * len(test_cases)
    done = 0
    model_results: dict[str, dict] = {}

    try:
        for model_config in models:
            model_id = model_config["modelId"]
            model_results[model_id] = {"testResults": {}}
            options = dict(model_config.get("parameters") or {})

            for i, test_case in enumerate(test_cases):
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Benchmark cancelled", extra={"benchmark_id": result_id})
                    return await db.update_result(
                        result_id, status="failed", error=CANCELLED_ERROR,
                        model_results=model_results, completed_at=_now(),
                    )

                await db.update_result(result_id, status="running", status_details={
                    "currentModel": model_id,
                    "currentTest": test_case.get("name", ""),
                    "progress": i,
                    "totalTests": len(test_cases),
                })

                try:
                    test_result = await openrouter.run_model_test(
                        model_id,
                        test_case["prompt"],
                        {**options, "category": test_case.get("category")},
                        api_key,
                    )
                    if test_result.get("error"):
                        await _check_key_error(test_result["error"], api_key)
                except _StopBenchmark:
                    raise
                except Exception as e:
                    logger.exception("Test case failed", extra={"benchmark_id": result_id, "model": model_id})
                    test_result = {"error": str(e), "latency": 0, "output": f"Error: {e}"}
                    await _record_test_case(result_id, model_id, test_case, test_result, config, model_results)
                    if openrouter.is_api_key_error(str(e)):
                        prefix = "Insufficient credits" if openrouter.is_credit_error(str(e)) else "API key error"
                        raise _StopBenchmark(f"{prefix}: {e}", str(e))
                else:
                    await _record_test_case(result_id, model_id, test_case, test_result, config, model_results)

                done += 1
                if progress_cb is not None:
                    await progress_cb(
                        int(done / total * 100) if total else 100,
                        f"{model_id}: {test_case.get('name', '')}",
                    )
    except _StopBenchmark as stop:
        logger.warning("Benchmark stopped on key error", extra={
            "benchmark_id": result_id, "detail": openrouter.sanitize_error(stop.error, api_key),
        })
        return await db.update_result(
            result_id, status="failed", error=stop.error, api_key_error=stop.key_error,
            api_key_valid=False, model_results=model_results, completed_at=_now(),
        )
    except Exception as e:
        logger.exception("Benchmark failed", extra={"benchmark_id": result_id})
        error = openrouter.sanitize_error(str(e), api_key)
        return await db.update_result(result_id, status="failed", error=error, completed_at=_now())

    logger.info("Benchmark completed", extra={"benchmark_id": result_id})
    return await db.update_result(
        result_id,
        status="completed",
        model_results=model_results,
        summary=calculate_summary_metrics(model_results),
        completed_at=_now(),
    )


async def get_benchmark_status(result_id: str) -> Optional[dict]:
    """Fetch a result; a run still marked running after a key error is failed here."""
    result = await db.get_result(result_id)
    if result and result.get("api_key_error") and result["status"] == "running":
        logger.info("Failing benchmark with API key error", extra={"benchmark_id": result_id})
        result = await db.update_result(result_id, status="failed", error=result["api_key_error"])
    return result


# ---------------------------------------------------------------------------
# Config loading
# ---------------------------------------------------------------------------

def load_config(config_path: str) -> dict:
    """Load a benchmark configuration from YAML and validate it."""
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}
    try:
        config = BenchmarkConfig.model_validate(raw)
    except ValidationError as e:
        console.print(f"[red]Config validation error in {config_path}:[/red]")
        for err in e.errors():
            loc = " -> ".join(str(x) for x in err["loc"])
            console.print(f"  [yellow]{loc}[/yellow]: {err['msg']}")
        raise SystemExit(1)

    data = config.to_wire()
    for i, case in enumerate(data["test_cases"], 1):
        case.setdefault("id", f"test-{i}")
    return data


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------

MEDALS = {1: "\U0001f947", 2: "\U0001f948", 3: "\U0001f949"}  # gold, silver, bronze


def rank_models(summary: dict) -> list[tuple[str, dict]]:
    """Summary models ordered by success rate, then latency."""
    models = (summary or {}).get("models") or {}
    return sorted(
        models.items(),
        key=lambda item: (-(item[1].get("successRate") or 0), item[1].get("avgLatency") or float("inf")),
    )


def _score(value) -> str:
    return f"{value:.2f}" if value is not None else "-"


def display_results(result: dict) -> None:
    """Render a Rich table of per-model summary metrics."""
    ranked = rank_models(result.get("summary"))
    show_scores = any(m.get("domainExpertiseScoreCount") for _, m in ranked)

    table = Table(
        title="\U0001f4ca  LLM Benchmark Results",
        box=box.ROUNDED,
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Rank", style="bold", width=5, justify="center")
    table.add_column("Model", style="cyan", min_width=22)
    table.add_column("Avg latency (ms)", justify="right", min_width=10)
    table.add_column("Tokens", justify="right", min_width=7)
    table.add_column("Cost ($)", justify="right", min_width=9)
    if show_scores:
        table.add_column("Domain", justify="right", min_width=6)
        table.add_column("Accuracy", justify="right", min_width=8)
    table.add_column("Status", justify="center", min_width=8)

    for i, (model_id, m) in enumerate(ranked, 1):
        count = m.get("testCount") or 0
        ok = round((m.get("successRate") or 0) * count)
        if ok == count:
            status = f"[green]{ok}/{count} OK[/green]"
        elif ok:
            status = f"[yellow]{ok}/{count} OK[/yellow]"
        else:
            status = "[red]FAIL[/red]"

        row = [
            MEDALS.get(i, str(i)) if ok else str(i),
            model_id,
            f"{m.get('avgLatency') or 0:.0f}",
            str(m.get("totalTokens") or 0),
            f"{m.get('totalCost') or 0:.6f}",
        ]
        if show_scores:
            row += [_score(m.get("avgDomainExpertiseScore")), _score(m.get("avgAccuracyScore"))]
        row.append(status)
        table.add_row(*row)

    console.print()
    console.print(table)
    console.print(
        f"  [dim]{count_models(result)} models x {count_test_cases(result)} test cases, "
        f"status: {result.get('status', 'unknown')}[/dim]"
    )

    if ranked and ranked[0][1].get("successRate"):
        model_id, m = ranked[0]
        console.print(
            f"\n  \U0001f3c6 [bold]Winner:[/bold] {model_id} at "
            f"[bold green]{m.get('avgLatency') or 0:.0f} ms[/bold green] average latency\n"
        )


def save_results(result: dict, output_path: str) -> Path:
    """Write the result (summary and per-model outputs) as JSON."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(result, f, indent=2, default=str)
    console.print(f"  \U0001f4be Results saved to [bold]{path}[/bold]")
    return path


# ---------------------------------------------------------------------------
# Local and remote execution
# ---------------------------------------------------------------------------

async def run_local(config: dict, api_key: str) -> dict:
    """Store the config in the local database and run it in-process."""
    await db.init_db()
    stored = await db.create_config(config)

    async def progress(pct: int, detail: str):
        console.print(f"  [dim][{pct:3d}%][/dim] {detail}")

    result = await run_benchmark(stored, api_key, progress_cb=progress)
    result["test_case_results"] = await db.get_test_case_results(result["id"])
    return result


def run_remote(config: dict, server_url: str, api_key: str, timeout: Optional[float]) -> dict:
    """Submit the config to a running server and poll until it finishes."""
    from client import BenchmarkClient

    def on_progress(details: dict):
        console.print(
            f"  [dim]{details.get('progress', 0)}/{details.get('totalTests', '?')}[/dim] "
            f"{details.get('currentModel', '')} / {details.get('currentTest', '')}"
        )

    with BenchmarkClient(server_url, api_key) as client:
        started = client.run_benchmark(config)
        console.print(f"  [dim]Submitted benchmark {started['id']}[/dim]")
        return client.poll_until_complete(started["id"], timeout=timeout, on_progress=on_progress)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="LLM Benchmark - Run benchmark configurations against OpenRouter models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  llm-benchmark config.yaml                                # Run locally
  llm-benchmark config.yaml --output results/run.json      # Save JSON
  llm-benchmark config.yaml --server http://localhost:3001 # Run on a server
        """,
    )
    parser.add_argument("config", help="Benchmark configuration YAML file")
    parser.add_argument("--api-key", help="OpenRouter API key (default: $OPENROUTER_API_KEY)")
    parser.add_argument("--server", help="Server URL; submit the benchmark remotely instead of running locally")
    parser.add_argument("--timeout", type=float, help="Give up polling after this many seconds (remote mode)")
    parser.add_argument("--output", help="Save the result as JSON to this path")
    parser.add_argument("--verbose", action="store_true", help="Show debug logging")
    args = parser.parse_args()

    script_dir = Path(__file__).parent
    load_dotenv(script_dir / ".env", override=True)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    api_key = args.api_key or os.environ.get("OPENROUTER_API_KEY")
    if not api_key:
        console.print("[red]An OpenRouter API key is required (--api-key or OPENROUTER_API_KEY).[/red]")
        raise SystemExit(1)

    config_path = Path(args.config)
    if not config_path.exists():
        console.print(f"[red]Config not found: {args.config}[/red]")
        raise SystemExit(1)
    config = load_config(str(config_path))

    models = enabled_models(config)
    console.print(
        Panel(
            f"[bold]Benchmark:[/bold] {config['name']}  |  "
            f"[bold]Models:[/bold] {len(models)}  |  "
            f"[bold]Test cases:[/bold] {len(config['test_cases'])}  |  "
            f"[bold]Mode:[/bold] {'remote' if args.server else 'local'}",
            title="\U0001f680 LLM Benchmark",
            border_style="cyan",
        )
    )

    if args.server:
        from client import BenchmarkError

        try:
            result = run_remote(config, args.server.rstrip("/"), api_key, args.timeout)
        except BenchmarkError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)
    else:
        result = asyncio.run(run_local(config, api_key))

    if result.get("status") == "failed":
        console.print(f"[red]Benchmark failed: {result.get('error') or 'Unknown error'}[/red]")
    display_results(result)

    if args.output:
        save_results(result, args.output)


if __name__ == "__main__":
    main()
