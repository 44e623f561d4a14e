"""Result-shape normalization and export helpers.

Stored results come in several shapes depending on which runner wrote them
and how far they got; these helpers read counts and per-model data without
caring which shape they were given.
"""

import csv
import io
import json
from statistics import mean


def _as_dict(value) -> dict:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return {}
    return value if isinstance(value, dict) else {}


def _summary_models(result: dict) -> dict:
    summary = _as_dict(result.get("summary"))
    models = summary.get("models")
    if isinstance(models, dict):
        return models
    return {k: v for k, v in summary.items() if k != "overall" and isinstance(v, dict)}


def count_test_cases(result: dict) -> int:
    """Best-effort number of test cases in a result.

    Probes, in order: the live status details, per-model summary counts,
    per-model stored results, then the test case result rows.
    """
    details = _as_dict(result.get("status_details"))
    if details.get("totalTests"):
        return int(details["totalTests"])

    counts = [m.get("testCount") or 0 for m in _summary_models(result).values()]
    if any(counts):
        return max(counts)

    model_results = _as_dict(result.get("model_results"))
    lengths = []
    for value in model_results.values():
        if isinstance(value, list):
            lengths.append(len(value))
        elif isinstance(value, dict):
            lengths.append(len(value.get("testResults") or {}))
    if any(lengths):
        return max(lengths)

    rows = result.get("test_case_results") or []
    if rows:
        return len({r.get("test_case_id") for r in rows})
    return 0


def count_models(result: dict) -> int:
    model_results = _as_dict(result.get("model_results"))
    if model_results:
        return len(model_results)
    return len(_summary_models(result))


def _config_test_cases(config: dict | None) -> list[dict]:
    if not config:
        return []
    cases = config.get("test_cases") or []
    if isinstance(cases, str):
        try:
            cases = json.loads(cases)
        except json.JSONDecodeError:
            return []
    return cases if isinstance(cases, list) else []


def prompt_for_test_case(config: dict | None, test_case_id: str) -> dict:
    """The test case definition behind a result row, or a placeholder."""
    for case in _config_test_cases(config):
        if isinstance(case, dict) and case.get("id") == test_case_id:
            return case
    return {"id": test_case_id, "name": test_case_id, "prompt": "Prompt not available"}


def result_to_csv(result: dict) -> str:
    """One row per test case, three columns (latency, tokens, cost) per model."""
    rows = result.get("test_case_results") or []
    if not rows:
        return "No data"

    model_ids = list(dict.fromkeys(r["model_id"] for r in rows))
    by_case: dict[str, dict[str, dict]] = {}
    for r in rows:
        by_case.setdefault(r["test_case_id"], {})[r["model_id"]] = r

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    header = ["Test Case ID"]
    for m in model_ids:
        header += [f"{m} Latency (ms)", f"{m} Tokens", f"{m} Cost"]
    writer.writerow(header)

    for case_id, per_model in by_case.items():
        line = [case_id]
        for m in model_ids:
            r = per_model.get(m)
            line += [r["latency"], r["token_count"], r["cost"]] if r else ["", "", ""]
        writer.writerow(line)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Ollama result views
# ---------------------------------------------------------------------------

def ollama_difficulties(rows: list[dict]) -> list[str]:
    return list(dict.fromkeys(r.get("difficulty") for r in rows if r.get("difficulty")))


def filter_ollama_results(rows: list[dict], model_id: str | None = None, difficulty: str | None = None) -> list[dict]:
    out = rows
    if model_id:
        out = [r for r in out if r.get("model_id") == model_id]
    if difficulty:
        out = [r for r in out if r.get("difficulty") == difficulty]
    return out


def ollama_difficulty_averages(rows: list[dict]) -> dict[str, dict[str, dict]]:
    """``{model_id: {difficulty: {avgAccuracy, avgLatency, count}}}``."""
    difficulties = ollama_difficulties(rows)
    out: dict[str, dict[str, dict]] = {}
    for model_id in dict.fromkeys(r["model_id"] for r in rows):
        per_difficulty = {}
        for difficulty in difficulties:
            subset = filter_ollama_results(rows, model_id, difficulty)
            if not subset:
                continue
            per_difficulty[difficulty] = {
                "avgAccuracy": mean(r.get("accuracy_score") or 0 for r in subset),
                "avgLatency": mean(r.get("latency") or 0 for r in subset),
                "count": len(subset),
            }
        out[model_id] = per_difficulty
    return out
