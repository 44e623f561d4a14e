"""Specialized capability scoring (code, math, creative, analytical).

Each evaluator returns a score in [0, 1] that starts at a neutral 0.5 and
moves with surface features of the response. A prompt outside an
evaluator's area gets the neutral score.
"""

import logging
import re

logger = logging.getLogger(__name__)

NEUTRAL = 0.5

CAPABILITY_LABELS = {
    "code_quality": "Code Generation",
    "mathematical_accuracy": "Mathematical Accuracy",
    "creative_quality": "Creative Writing",
    "analytical_depth": "Analytical Thinking",
}

_CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```|`[\s\S]*?`")
_CODE_FENCE_RE = re.compile(r"```\w*\n|```|`")
_PUNCT_RE = re.compile(r"[^\w\s]", re.ASCII)

_SYNTAX_ERROR_HINTS = (
    "undefined variable", "unexpected token", "syntax error",
    "missing", "expected", "unterminated",
)

_MATH_KEYWORDS = (
    "calculate", "compute", "solve", "equation", "formula",
    "math", "arithmetic", "algebra", "calculus", "number",
)
_NUMBER_RE = re.compile(r"\d+(\.\d+)?")
_NUMBERED_STEP_RE = re.compile(r"\d+\s*\.\s*[\w\s]")
_SEQUENCE_RE = re.compile(r"first|second|third|next|then|finally", re.IGNORECASE)

_CREATIVE_KEYWORDS = (
    "write", "create", "story", "poem", "creative",
    "imagine", "fiction", "narrative", "describe",
)
_DESCRIPTIVE_WORDS = (
    "beautiful", "stunning", "amazing", "wonderful", "magnificent",
    "brilliant", "fantastic", "incredible", "elegant", "graceful",
    "vibrant", "vivid", "lush",
)
_SENTENCE_END_RE = re.compile(r"[.!?]+")
_NARRATIVE_RE = re.compile(r"beginning|middle|end|finally|conclusion", re.IGNORECASE)

_ANALYTICAL_KEYWORDS = (
    "analyze", "analysis", "evaluate", "assessment", "examine",
    "investigate", "review", "critique", "compare", "contrast", "pros and cons",
)
_STRUCTURE_RE = re.compile(r"first|second|third|next|then|finally|in conclusion", re.IGNORECASE)
_COMPARISON_RE = re.compile(
    r"however|although|while|whereas|on the other hand|in contrast|similarly|likewise",
    re.IGNORECASE,
)
_EVIDENCE_RE = re.compile(
    r"for example|for instance|evidence|data|research|study|according to|demonstrates|shows",
    re.IGNORECASE,
)
_PERSPECTIVES_RE = re.compile(
    r"different perspectives|various viewpoints|some argue|others believe|alternative view",
    re.IGNORECASE,
)
_DEPTH_WORDS = (
    "deeper", "underlying", "fundamental", "core", "essential", "critical",
    "significant", "important", "implications", "consequences", "impact",
)


def _clamp(score: float) -> float:
    return max(0.0, min(1.0, score))


# ---------------------------------------------------------------------------
# Individual evaluators
# ---------------------------------------------------------------------------

def evaluate_code_quality(response: str, prompt: str) -> float:
    if not response:
        return 0.0
    blocks = _CODE_BLOCK_RE.findall(response)
    if not blocks:
        lower_prompt = prompt.lower()
        if "code" in lower_prompt or "function" in lower_prompt or "program" in lower_prompt:
            return 0.1
        return NEUTRAL
    code = "\n".join(_CODE_FENCE_RE.sub("", block) for block in blocks)
    return _code_quality_score(code, prompt)


def _code_quality_score(code: str, prompt: str) -> float:
    score = NEUTRAL
    lower_code = code.lower()

    if any(hint in lower_code for hint in _SYNTAX_ERROR_HINTS):
        score -= 0.2
    if "//" in code or "/*" in code:
        score += 0.1
    if any(marker in code for marker in ("function ", "def ", "class ", "method")):
        score += 0.1
    if any(marker in code for marker in ("try", "catch", "except", "error")):
        score += 0.1

    keywords = [w for w in _PUNCT_RE.sub("", prompt.lower()).split(" ") if len(w) > 3]
    if any(kw in lower_code for kw in keywords):
        score += 0.2
    return _clamp(score)


def evaluate_mathematical_accuracy(response: str, prompt: str) -> float:
    if not response:
        return 0.0
    lower_prompt = prompt.lower()
    if not any(kw in lower_prompt for kw in _MATH_KEYWORDS):
        return NEUTRAL
    if not _NUMBER_RE.search(response):
        return 0.2

    score = NEUTRAL + 0.2
    if any(op in response for op in ("=", "+", "-", "*", "/")):
        score += 0.2
    if "step" in response or _NUMBERED_STEP_RE.search(response) or _SEQUENCE_RE.search(response):
        score += 0.1
    return _clamp(score)


def evaluate_creative_quality(response: str, prompt: str) -> float:
    if not response:
        return 0.0
    lower_prompt = prompt.lower()
    if not any(kw in lower_prompt for kw in _CREATIVE_KEYWORDS):
        return NEUTRAL

    length = len(response)
    sentences = len(_SENTENCE_END_RE.findall(response))
    avg_sentence = length / (sentences or 1)
    lower = response.lower()
    descriptive = sum(1 for w in _DESCRIPTIVE_WORDS if w in lower)
    has_dialogue = any(q in response for q in ('"', "“", "”", "'", "‘", "’"))

    score = NEUTRAL
    if length > 500:
        score += 0.1
    if 10 < avg_sentence < 30:
        score += 0.1
    score += min(0.2, descriptive * 0.02)
    if has_dialogue:
        score += 0.1
    if _NARRATIVE_RE.search(response):
        score += 0.1
    return _clamp(score)


def evaluate_analytical_depth(response: str, prompt: str) -> float:
    if not response:
        return 0.0
    lower_prompt = prompt.lower()
    if not any(kw in lower_prompt for kw in _ANALYTICAL_KEYWORDS):
        return NEUTRAL

    score = NEUTRAL
    for pattern in (_STRUCTURE_RE, _COMPARISON_RE, _EVIDENCE_RE, _PERSPECTIVES_RE):
        if pattern.search(response):
            score += 0.1
    lower = response.lower()
    depth = sum(1 for w in _DEPTH_WORDS if w in lower)
    score += min(0.1, depth * 0.02)
    return _clamp(score)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def _neutral_capabilities(primary: str = "analytical_depth") -> dict:
    return {
        "code_quality": NEUTRAL,
        "mathematical_accuracy": NEUTRAL,
        "creative_quality": NEUTRAL,
        "analytical_depth": NEUTRAL,
        "primary_capability": primary,
    }


def evaluate_specialized_capabilities(response: str, prompt: str, category: str | None) -> dict:
    """Score the capabilities relevant to a test case category.

    Capabilities outside the category's group stay neutral; an unrecognised
    category is scored on all four.
    """
    if not response or not prompt:
        logger.warning("Missing response or prompt in capability evaluation")
        return _neutral_capabilities()

    cat = (category or "").lower()

    if "code" in cat or "programming" in cat or cat in ("technical-knowledge", "procedural-knowledge"):
        caps = _neutral_capabilities("code_quality")
        caps["code_quality"] = evaluate_code_quality(response, prompt)
        caps["analytical_depth"] = evaluate_analytical_depth(response, prompt)
        return caps

    if "math" in cat or "calculation" in cat or cat == "problem-solving":
        caps = _neutral_capabilities("mathematical_accuracy")
        caps["mathematical_accuracy"] = evaluate_mathematical_accuracy(response, prompt)
        caps["analytical_depth"] = evaluate_analytical_depth(response, prompt)
        return caps

    if "creative" in cat or "writing" in cat:
        caps = _neutral_capabilities("creative_quality")
        caps["creative_quality"] = evaluate_creative_quality(response, prompt)
        return caps

    if "analysis" in cat or "analytical" in cat or cat in ("analytical-thinking", "reasoning"):
        caps = _neutral_capabilities("analytical_depth")
        caps["analytical_depth"] = evaluate_analytical_depth(response, prompt)
        return caps

    return {
        "code_quality": evaluate_code_quality(response, prompt),
        "mathematical_accuracy": evaluate_mathematical_accuracy(response, prompt),
        "creative_quality": evaluate_creative_quality(response, prompt),
        "analytical_depth": evaluate_analytical_depth(response, prompt),
        "primary_capability": "analytical_depth",
    }


def _score_or_neutral(value) -> float:
    return value if isinstance(value, (int, float)) and not isinstance(value, bool) else NEUTRAL


def calculate_overall_capability_score(capabilities: dict | None) -> float:
    """Weighted score: 70% primary capability, 30% mean of the others."""
    if not capabilities:
        return NEUTRAL

    primary = capabilities.get("primary_capability")
    if primary and capabilities.get(primary) is not None:
        primary_score = capabilities[primary] or NEUTRAL
        others = [
            _score_or_neutral(v) for k, v in capabilities.items()
            if k not in ("primary_capability", primary)
        ]
        if not others:
            return primary_score
        return primary_score * 0.7 + (sum(others) / len(others)) * 0.3

    scores = [_score_or_neutral(capabilities.get(k)) for k in CAPABILITY_LABELS]
    return sum(scores) / len(scores)


def performance_level(score: float) -> str:
    if score >= 0.8:
        return "excellent"
    if score >= 0.6:
        return "good"
    if score >= 0.4:
        return "average"
    if score >= 0.2:
        return "below average"
    return "poor"


def display_model_name(model_id: str) -> str:
    """'anthropic/claude-3-haiku' -> 'Claude 3 Haiku'."""
    name = model_id.split("/")[-1].replace("-", " ")
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), name)


def generate_capability_summary(capabilities: dict | None, model_id: str) -> str:
    model_name = display_model_name(model_id)
    if not capabilities:
        return f"{model_name} has not been evaluated for specialized capabilities."

    scores = {label: _score_or_neutral(capabilities.get(key)) for key, label in CAPABILITY_LABELS.items()}
    ordered = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
    strongest, weakest = ordered[0][0], ordered[-1][0]
    overall = calculate_overall_capability_score(capabilities)

    return (
        f"{model_name} demonstrates {performance_level(overall)} specialized capabilities "
        f"with an overall score of {overall * 100:.0f}%.\n"
        f"The model excels in {strongest} ({scores[strongest] * 100:.0f}%)\n"
        f"but shows room for improvement in {weakest} ({scores[weakest] * 100:.0f}%)."
    )
