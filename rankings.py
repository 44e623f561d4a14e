"""Model ranking computations for advanced and Ollama benchmarks.

All functions here are pure: they take test case result rows and return
ranking rows ready for ``db.save_model_rankings`` /
``db.save_ollama_model_rankings``.
"""

import math
import uuid
from statistics import mean

REACT_DIFFICULTIES = ("basic", "intermediate", "advanced", "expert")

SORT_KEYS = {
    "accuracy": "accuracy_rank",
    "correctness": "correctness_rank",
    "efficiency": "efficiency_rank",
}


def _model_ids(rows: list[dict]) -> list[str]:
    """Distinct model ids in first-seen order."""
    return list(dict.fromkeys(r["model_id"] for r in rows))


def _rank_by(items: list[dict], key) -> dict[str, int]:
    """1-based rank per model_id, highest value first. Ties keep input order."""
    ordered = sorted(items, key=key, reverse=True)
    return {item["model_id"]: i + 1 for i, item in enumerate(ordered)}


def _clamp_level(value: float) -> int:
    return min(5, max(1, math.floor(value)))


# ---------------------------------------------------------------------------
# Advanced benchmarks
# ---------------------------------------------------------------------------

def model_scores(test_case_results: list[dict]) -> list[dict]:
    """Per-model aggregates behind the advanced rankings."""
    scores = []
    for model_id in _model_ids(test_case_results):
        rows = [r for r in test_case_results if r["model_id"] == model_id]
        avg_latency = mean(r.get("latency") or 0 for r in rows)
        total_tokens = sum(r.get("token_count") or 0 for r in rows)
        total_cost = sum(r.get("cost") or 0 for r in rows)
        domain = mean(r.get("domain_expertise_score") or 0 for r in rows)
        accuracy = mean(r.get("accuracy_score") or 0 for r in rows)

        overall = (
            accuracy * 0.4
            + domain * 0.3
            + max(0.0, 1 - avg_latency / 10000) * 0.1
            + max(0.0, 1 - total_cost / 0.1) * 0.2
        )
        scores.append({
            "model_id": model_id,
            "avg_latency": avg_latency,
            "total_tokens": total_tokens,
            "total_cost": total_cost,
            "domain_expertise_score": domain,
            "accuracy_score": accuracy,
            "overall_score": overall,
            "cost_efficiency": accuracy / (total_cost if total_cost > 0 else 0.001),
            "speed_level": _clamp_level(6 - avg_latency / 2000),
            "cost_level": _clamp_level(6 - total_cost * 100),
        })
    return scores


def calculate_model_rankings(test_case_results: list[dict], benchmark_result_id: str | None = None) -> list[dict]:
    """Rank models by overall score, cost efficiency and domain expertise.

    Performance rank mirrors the overall rank. Raises ``ValueError`` when
    there are no test case results.
    """
    if not test_case_results:
        raise ValueError("Benchmark result does not contain any test case results")

    scores = model_scores(test_case_results)
    overall = _rank_by(scores, lambda s: s["overall_score"])
    cost = _rank_by(scores, lambda s: s["cost_efficiency"])
    domain = _rank_by(scores, lambda s: s["domain_expertise_score"])

    return [
        {
            "id": str(uuid.uuid4()),
            "benchmark_result_id": benchmark_result_id,
            "model_id": s["model_id"],
            "overall_rank": overall[s["model_id"]],
            "performance_rank": overall[s["model_id"]],
            "cost_efficiency_rank": cost[s["model_id"]],
            "domain_expertise_rank": domain[s["model_id"]],
            "score": s["overall_score"],
            "speed_level": s["speed_level"],
            "cost_level": s["cost_level"],
        }
        for s in scores
    ]


def fallback_rankings(model_ids: list[str], benchmark_result_id: str | None = None) -> list[dict]:
    """Neutral rankings in input order, used when scoring fails."""
    return [
        {
            "id": str(uuid.uuid4()),
            "benchmark_result_id": benchmark_result_id,
            "model_id": model_id,
            "overall_rank": i + 1,
            "performance_rank": i + 1,
            "cost_efficiency_rank": i + 1,
            "domain_expertise_rank": i + 1,
            "score": 0.5,
            "speed_level": 3,
            "cost_level": 3,
        }
        for i, model_id in enumerate(model_ids)
    ]


# ---------------------------------------------------------------------------
# Ollama benchmarks
# ---------------------------------------------------------------------------

def _category_avg(rows: list[dict], category: str) -> float:
    return mean((r.get("category_scores") or {}).get(category) or 0 for r in rows)


def calculate_ollama_rankings(test_case_results: list[dict]) -> list[dict]:
    """Rank Ollama models.

    Overall score is 70% accuracy and 30% a log-scaled latency score
    (30 s counts as worst). Difficulty ranks only cover models that ran at
    least one case of that difficulty.
    """
    if not test_case_results:
        return []

    metrics = []
    for model_id in _model_ids(test_case_results):
        rows = [r for r in test_case_results if r["model_id"] == model_id]
        avg_accuracy = mean(r.get("accuracy_score") or 0 for r in rows)
        avg_latency = mean(r.get("latency") or 0 for r in rows)
        latency_score = max(0.0, 1 - math.log(avg_latency + 1) / math.log(30000))

        difficulty_metrics = {}
        for difficulty in dict.fromkeys(r.get("difficulty") for r in rows):
            d_rows = [r for r in rows if r.get("difficulty") == difficulty]
            difficulty_metrics[difficulty] = {
                "avgAccuracy": mean(r.get("accuracy_score") or 0 for r in d_rows),
                "avgLatency": mean(r.get("latency") or 0 for r in d_rows),
                "count": len(d_rows),
            }

        metrics.append({
            "model_id": model_id,
            "accuracy_score": avg_accuracy,
            "avg_latency": avg_latency,
            "latency_score": latency_score,
            "total_tokens": sum(r.get("token_count") or 0 for r in rows),
            "overall_score": avg_accuracy * 0.7 + latency_score * 0.3,
            "accuracy_category_score": _category_avg(rows, "accuracy"),
            "correctness_category_score": _category_avg(rows, "correctness"),
            "efficiency_category_score": _category_avg(rows, "efficiency"),
            "difficulty_metrics": difficulty_metrics,
        })

    overall = _rank_by(metrics, lambda m: m["overall_score"])
    accuracy = _rank_by(metrics, lambda m: m["accuracy_category_score"])
    correctness = _rank_by(metrics, lambda m: m["correctness_category_score"])
    efficiency = _rank_by(metrics, lambda m: m["efficiency_category_score"])

    for difficulty in REACT_DIFFICULTIES:
        ran = [m for m in metrics if m["difficulty_metrics"].get(difficulty, {}).get("count")]
        ranks = _rank_by(ran, lambda m: m["difficulty_metrics"][difficulty]["avgAccuracy"])
        for m in ran:
            m["difficulty_metrics"][difficulty]["rank"] = ranks[m["model_id"]]

    rankings = []
    for m in metrics:
        mid = m["model_id"]
        ranking = {
            **m,
            "overall_rank": overall[mid],
            "accuracy_rank": accuracy[mid],
            "correctness_rank": correctness[mid],
            "efficiency_rank": efficiency[mid],
        }
        for difficulty in REACT_DIFFICULTIES:
            ranking[f"{difficulty}_rank"] = m["difficulty_metrics"].get(difficulty, {}).get("rank")
        rankings.append(ranking)

    return sort_rankings(rankings)


def sort_rankings(rankings: list[dict], key: str = "overall") -> list[dict]:
    """Order Ollama rankings by overall rank or one of the category ranks."""
    column = SORT_KEYS.get(key, "overall_rank")
    return sorted(rankings, key=lambda r: r.get(column) or float("inf"))
