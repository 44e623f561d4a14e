"""Advanced benchmarks: LLM-generated test cases and model selection from a
topic, plus post-run analysis (rankings, cost, domain expertise, capabilities)."""

import json
import logging
import re
import uuid
from statistics import mean
from textwrap import dedent

import capabilities
import db
import openrouter
import rankings as rankings_mod
from results import prompt_for_test_case

logger = logging.getLogger(__name__)

GENERATOR_MODEL = "openai/gpt-3.5-turbo"
MAX_MODELS_IN_PROMPT = 30

FALLBACK_MODELS = [
    {"id": "openai/gpt-3.5-turbo", "description": "GPT-3.5 Turbo"},
    {"id": "anthropic/claude-3-haiku", "description": "Claude 3 Haiku"},
    {"id": "google/gemini-pro", "description": "Gemini Pro"},
    {"id": "meta-llama/llama-3-8b-instruct", "description": "Llama 3 8B"},
    {"id": "mistralai/mistral-7b-instruct", "description": "Mistral 7B"},
]

POPULAR_MODEL_IDS = [
    "openai/gpt-4-turbo",
    "openai/gpt-3.5-turbo",
    "anthropic/claude-3-opus",
    "anthropic/claude-3-sonnet",
    "anthropic/claude-3-haiku",
    "google/gemini-pro",
    "meta-llama/llama-3-70b-instruct",
    "meta-llama/llama-3-8b-instruct",
    "mistralai/mistral-7b-instruct",
]

DEFAULT_SELECTION_PARAMETERS = {"temperature": 0.7, "top_p": 1, "max_tokens": 1000}

_ARRAY_RE = re.compile(r"\[\s*\{.*\}\s*\]", re.DOTALL)
_OBJECT_RE = re.compile(r"\{\s*\".*\"\s*:.*\}", re.DOTALL)
_NUMBERED_RE = re.compile(r"^\d+\.\s+")


class TestCaseGenerationError(Exception):
    __test__ = False


# ---------------------------------------------------------------------------
# LLM output parsing
# ---------------------------------------------------------------------------

def extract_json_array(text: str) -> list:
    """Find a JSON array in LLM output.

    Tries the whole text, then the first ``[{...}]`` span, then the first
    object whose values include a list. Raises ``ValueError`` if none works.
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        match = _ARRAY_RE.search(text)
        if match:
            parsed = json.loads(match.group(0))
        else:
            match = _OBJECT_RE.search(text)
            if not match:
                raise ValueError("No valid JSON found in response")
            obj = json.loads(match.group(0))
            parsed = next((v for v in obj.values() if isinstance(v, list)), None)
            if parsed is None:
                raise ValueError("No valid JSON array found in response object")
    if isinstance(parsed, dict):
        parsed = next((v for v in parsed.values() if isinstance(v, list)), None)
    if not isinstance(parsed, list):
        raise ValueError("Parsed result is not an array")
    return parsed


def parse_test_cases(text: str, count: int = 20) -> list[dict]:
    """Turn generator output into test cases, every one with an id.

    Falls back to questions and numbered lines when no usable JSON is found.
    """
    try:
        cases = [
            c for c in extract_json_array(text)
            if isinstance(c, dict) and isinstance(c.get("prompt"), str) and c["prompt"].strip()
        ]
        if not cases:
            raise ValueError("No valid test cases found in response")
    except ValueError as e:
        logger.warning("Test case JSON unusable, falling back to line parsing: %s", e)
        cases = []
        for line in (ln.strip() for ln in text.splitlines()):
            if not line:
                continue
            if line.endswith("?") or _NUMBERED_RE.match(line):
                cases.append({
                    "id": str(uuid.uuid4()),
                    "name": f"Test case {len(cases) + 1}",
                    "category": "general",
                    "prompt": line,
                    "expectedOutput": "",
                })
                if len(cases) >= count:
                    break
        if not cases:
            raise TestCaseGenerationError(
                "Failed to parse generated test cases and could not create fallback test cases"
            )

    return [{**c, "id": c.get("id") or str(uuid.uuid4())} for c in cases]


async def _generate_text(prompt: str, api_key: str) -> str:
    result = await openrouter._complete(
        GENERATOR_MODEL, [{"role": "user", "content": prompt}], api_key,
        temperature=0.7, max_tokens=2000,
    )
    return result["content"]


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def _test_case_prompt(topic: str, count: int) -> str:
    return dedent(f"""\
        You are an expert in creating benchmark test cases for evaluating AI language models.
        Create {count} diverse test cases for evaluating language models on the topic: "{topic}".

        For each test case, include:
        1. A clear, specific prompt that tests knowledge or capabilities related to {topic}
        2. The expected output or key points that should be included in a good response
        3. A category for the test case (e.g., factual-knowledge, problem-solving, creative-writing, etc.)

        Format your response as a JSON array of objects with the following structure:
        [
          {{
            "id": "unique-id",
            "name": "Brief descriptive name",
            "category": "category-name",
            "prompt": "The actual prompt text",
            "expectedOutput": "Expected output or key points"
          }}
        ]

        Ensure the test cases:
        - Cover different aspects and difficulty levels related to {topic}
        - Include both factual and reasoning questions
        - Test both general knowledge and specialized expertise
        - Avoid ambiguous questions with multiple valid answers
        - Are challenging but fair

        Return only the JSON array with no additional text.
        """)


async def generate_test_cases(topic: str, count: int = 20, api_key: str | None = None) -> list[dict]:
    text = await _generate_text(_test_case_prompt(topic, count), api_key)
    cases = parse_test_cases(text, count)
    logger.info("Generated %d test cases", len(cases), extra={"action": "generate_test_cases"})
    return cases


def models_for_prompt(available: list[dict], limit: int = MAX_MODELS_IN_PROMPT) -> list[dict]:
    """Trim the model catalogue for the selection prompt.

    Takes an even slice per provider, then tops up from the popular list.
    """
    if len(available) <= limit:
        return list(available)

    by_provider: dict[str, list[dict]] = {}
    for model in available:
        by_provider.setdefault(model["id"].split("/")[0], []).append(model)

    per_provider = max(1, limit // len(by_provider))
    picked = [m for models in by_provider.values() for m in models[:per_provider]]

    if len(picked) < limit:
        known = {m["id"]: m for m in available}
        for model_id in POPULAR_MODEL_IDS:
            if len(picked) >= limit:
                break
            if model_id in known and all(m["id"] != model_id for m in picked):
                picked.append(known[model_id])
    return picked[:limit]


def _selection_prompt(topic: str, models: list[dict], max_models: int, prioritize_cost: bool) -> str:
    listing = "\n".join(f"{m['id']} ({m.get('description') or 'No description'})" for m in models)
    cost_line = "Prioritize cost-effective models that provide good value for money." if prioritize_cost else ""
    return (
        "You are an expert in AI model selection for benchmarking.\n"
        f'Select the most appropriate models for benchmarking on the topic: "{topic}".\n\n'
        f"Here are the available models:\n{listing}\n\n"
        f"{cost_line}\n\n"
        "For each selected model, provide:\n"
        "1. The model ID exactly as shown above\n"
        "2. A brief explanation of why this model is suitable for this topic\n"
        "3. Recommended parameters (temperature, top_p, etc.)\n\n"
        "Format your response as a JSON array of objects with the following structure:\n"
        "[\n"
        "  {\n"
        '    "modelId": "exact-model-id",\n'
        '    "reason": "Brief explanation of selection",\n'
        '    "parameters": {\n'
        '      "temperature": 0.7,\n'
        '      "top_p": 1,\n'
        '      "max_tokens": 1000\n'
        "    }\n"
        "  }\n"
        "]\n\n"
        f"Select up to {max_models} models, focusing on diversity and coverage of different capabilities.\n"
        "Include both specialized models that might excel at this topic and general-purpose models for comparison.\n"
        "Return only the JSON array with no additional text.\n"
    )


async def _available_models(api_key: str | None) -> list[dict]:
    try:
        listing = await openrouter.get_models(api_key)
    except openrouter.OpenRouterError as e:
        logger.warning("Model catalogue unavailable, using fallback list: %s", e)
        return list(FALLBACK_MODELS)
    data = listing.get("data") if isinstance(listing, dict) else None
    if isinstance(data, dict):
        data = data.get("data")
    return data if isinstance(data, list) and data else list(FALLBACK_MODELS)


async def select_models(
    topic: str,
    max_models: int = 50,
    prioritize_cost: bool = False,
    api_key: str | None = None,
) -> list[dict]:
    """Ask the LLM which catalogue models suit the topic.

    Returns model configs (``modelId``, ``reason``, ``parameters``,
    ``enabled``) restricted to ids that exist in the catalogue.
    """
    available = await _available_models(api_key)
    prompt = _selection_prompt(topic, models_for_prompt(available), max_models, prioritize_cost)
    text = await _generate_text(prompt, api_key)

    try:
        selected = [
            m for m in extract_json_array(text)
            if isinstance(m, dict) and isinstance(m.get("modelId"), str) and m["modelId"].strip()
        ]
        if not selected:
            raise ValueError("No valid models found in response")
    except ValueError as e:
        logger.warning("Model selection unparseable, using fallback: %s", e)
        selected = [
            {
                "modelId": m["id"],
                "reason": "Automatically selected as fallback",
                "parameters": dict(DEFAULT_SELECTION_PARAMETERS),
            }
            for m in available[:max_models]
        ]

    valid_ids = {m["id"] for m in available}
    selected = [m for m in selected if m["modelId"] in valid_ids][:max_models]
    return [{**m, "enabled": True} for m in selected]


async def generate_advanced_benchmark(topic: str, options: dict | None, api_key: str) -> dict:
    """Build (but do not store) an advanced benchmark config for a topic."""
    options = options or {}
    test_cases = await generate_test_cases(topic, options.get("testCaseCount") or 20, api_key)
    model_configs = await select_models(
        topic,
        options.get("maxModels") or 50,
        bool(options.get("prioritizeCost")),
        api_key,
    )
    return {
        "name": f"Advanced Benchmark: {topic}",
        "description": f"Automatically generated benchmark for topic: {topic}",
        "benchmark_type": "advanced",
        "topic": topic,
        "advanced_options": options,
        "test_cases": test_cases,
        "model_configs": model_configs,
    }


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

def _topic(config: dict | None) -> str:
    return (config or {}).get("topic") or "Unknown"


async def generate_rankings(result: dict) -> list[dict]:
    """Stored rankings for a result, computing and saving them when missing.

    Falls back to neutral rankings when scoring fails.
    """
    existing = await db.get_model_rankings(result["id"])
    if existing:
        return existing

    rows = result.get("test_case_results") or []
    try:
        computed = rankings_mod.calculate_model_rankings(rows, result["id"])
        return await db.save_model_rankings(result["id"], computed)
    except (ValueError, TypeError, KeyError) as e:
        logger.warning("Ranking computation failed, using fallback: %s", e,
                       extra={"benchmark_id": result["id"]})
        model_ids = list(dict.fromkeys(r["model_id"] for r in rows))
        if not model_ids:
            raise ValueError(f"Failed to generate rankings: {e}") from e
        return rankings_mod.fallback_rankings(model_ids, result["id"])


def summarize(config: dict | None, rankings: list[dict]) -> dict:
    if not rankings:
        return {
            "error": "Invalid rankings",
            "topic": _topic(config),
            "totalModels": 0,
            "topModels": [],
            "mostCostEffective": None,
            "bestDomainExpert": None,
        }
    by_overall = sorted(rankings, key=lambda r: r["overall_rank"])
    cheapest = min(rankings, key=lambda r: r["cost_efficiency_rank"])
    expert = min(rankings, key=lambda r: r["domain_expertise_rank"])
    return {
        "topic": _topic(config),
        "totalModels": len(rankings),
        "topModels": [
            {"model_id": r["model_id"], "rank": r["overall_rank"], "score": r["score"]}
            for r in by_overall[:3]
        ],
        "mostCostEffective": {
            "model_id": cheapest["model_id"], "rank": cheapest["cost_efficiency_rank"], "score": cheapest["score"],
        },
        "bestDomainExpert": {
            "model_id": expert["model_id"], "rank": expert["domain_expertise_rank"], "score": expert["score"],
        },
    }


def analyze_cost(test_case_results: list[dict], rankings: list[dict]) -> dict:
    breakdown = []
    for ranking in rankings:
        rows = [r for r in test_case_results if r["model_id"] == ranking["model_id"]]
        if not rows:
            continue
        total = sum(r.get("cost") or 0 for r in rows)
        breakdown.append({
            "model_id": ranking["model_id"],
            "totalCost": total,
            "costPerTestCase": total / len(rows),
            "costEfficiencyRank": ranking["cost_efficiency_rank"],
            "overallRank": ranking["overall_rank"],
        })
    if not breakdown:
        return {
            "error": "No valid cost breakdown data could be generated",
            "rankings": rankings,
            "costBreakdown": [],
        }
    return {
        "rankings": sorted(rankings, key=lambda r: r["cost_efficiency_rank"]),
        "costBreakdown": sorted(breakdown, key=lambda b: b["costEfficiencyRank"]),
    }


def test_case_categories(config: dict | None, test_case_results: list[dict]) -> dict[str, str]:
    """Map test case id to category; numbered placeholders when unknown."""
    cases = (config or {}).get("test_cases") or []
    if isinstance(cases, str):
        try:
            cases = json.loads(cases)
        except json.JSONDecodeError:
            cases = []
    categories = {
        c["id"]: c["category"]
        for c in cases if isinstance(c, dict) and c.get("id") and c.get("category")
    }
    if categories:
        return categories
    ids = dict.fromkeys(r["test_case_id"] for r in test_case_results)
    return {tc_id: f"Category {i + 1}" for i, tc_id in enumerate(ids)}


def analyze_domain(config: dict | None, test_case_results: list[dict], rankings: list[dict]) -> dict:
    categories = test_case_categories(config, test_case_results)
    insights = []
    for ranking in rankings:
        rows = [r for r in test_case_results if r["model_id"] == ranking["model_id"]]
        if not rows:
            continue
        grouped: dict[str, list[dict]] = {}
        for r in rows:
            grouped.setdefault(categories.get(r["test_case_id"], "unknown"), []).append(r)
        scores = [
            {"category": cat, "score": mean(r.get("domain_expertise_score") or 0 for r in items)}
            for cat, items in grouped.items()
        ]
        insights.append({
            "model_id": ranking["model_id"],
            "domainExpertiseRank": ranking["domain_expertise_rank"],
            "overallRank": ranking["overall_rank"],
            "strengths": sorted(scores, key=lambda s: s["score"], reverse=True)[:3],
            "weaknesses": sorted(scores, key=lambda s: s["score"])[:3],
        })
    if not insights:
        return {
            "error": "No valid domain insights could be generated",
            "rankings": rankings,
            "domainInsights": [],
        }
    return {
        "rankings": sorted(rankings, key=lambda r: r["domain_expertise_rank"]),
        "domainInsights": sorted(insights, key=lambda d: d["domainExpertiseRank"]),
    }


def analyze_capabilities(config: dict | None, test_case_results: list[dict], rankings: list[dict]) -> dict:
    """Specialized capability scores per model, averaged over its successful outputs."""
    profiles = []
    for ranking in rankings:
        rows = [
            r for r in test_case_results
            if r["model_id"] == ranking["model_id"] and r.get("output") and not (r.get("metrics") or {}).get("error")
        ]
        if not rows:
            continue
        per_case = []
        for r in rows:
            case = prompt_for_test_case(config, r["test_case_id"])
            prompt = r.get("prompt") or case.get("prompt") or ""
            per_case.append(capabilities.evaluate_specialized_capabilities(r["output"], prompt, case.get("category")))

        averaged = {key: mean(c[key] for c in per_case) for key in capabilities.CAPABILITY_LABELS}
        primaries = [c["primary_capability"] for c in per_case]
        averaged["primary_capability"] = max(set(primaries), key=primaries.count)
        profiles.append({
            "model_id": ranking["model_id"],
            "overallRank": ranking["overall_rank"],
            "capabilities": averaged,
            "overallScore": capabilities.calculate_overall_capability_score(averaged),
            "summary": capabilities.generate_capability_summary(averaged, ranking["model_id"]),
        })
    if not profiles:
        return {
            "error": "No successful outputs to evaluate capabilities",
            "rankings": rankings,
            "capabilityProfiles": [],
        }
    return {
        "rankings": rankings,
        "capabilityProfiles": sorted(profiles, key=lambda p: p["overallScore"], reverse=True),
    }


async def analyze_results(result: dict, config: dict | None = None, analysis_type: str = "general") -> dict:
    """Analysis payload for an advanced benchmark result.

    ``analysis_type`` is ``general`` (default), ``cost``, ``domain`` or
    ``capabilities``.
    Never raises: failures come back as an ``error`` payload.
    """
    config = config if config is not None else result.get("benchmark_configs")
    rankings: list[dict] = []
    try:
        rows = result.get("test_case_results") or []
        if not rows:
            raise ValueError("Benchmark result does not contain any test case results")
        rankings = await generate_rankings(result)
        if not rankings:
            raise ValueError("Failed to generate rankings")
    except ValueError as e:
        logger.warning("Analysis failed: %s", e, extra={"benchmark_id": result.get("id")})
        return {
            "error": str(e),
            "rankings": rankings,
            "summary": {
                "error": "Analysis failed",
                "message": str(e),
                "topic": _topic(config),
                "totalModels": len(rankings),
            },
        }

    if analysis_type == "cost":
        return analyze_cost(rows, rankings)
    if analysis_type == "domain":
        return analyze_domain(config, rows, rankings)
    if analysis_type == "capabilities":
        return analyze_capabilities(config, rows, rankings)
    return {"rankings": rankings, "summary": summarize(config, rankings)}
