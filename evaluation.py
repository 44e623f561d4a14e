"""LLM-as-judge evaluation of model responses."""

import asyncio
import json
import logging
import os
import re

import openrouter

logger = logging.getLogger(__name__)

DEFAULT_EVALUATOR_MODEL = os.environ.get("EVALUATION_MODEL", "anthropic/claude-3-haiku")

_GENERAL_PROMPT = """You are evaluating a language model's response to a given prompt.

Prompt: {prompt}
{expected_block}
Actual output: {actual_output}

Evaluate the response on the following criteria:
1. Relevance (1-10): How relevant is the response to the prompt?
2. Accuracy (1-10): How accurate is the information provided?
3. Completeness (1-10): How complete is the response?
4. Coherence (1-10): How coherent and well-structured is the response?
5. Creativity (1-10): How creative or innovative is the response?

For each criterion, provide a score from 1-10 and a brief explanation.
Then provide an overall score (1-10) and a summary of the evaluation.

Return your evaluation as a JSON object with the following structure:
{{
  "relevance": {{"score": <number>, "explanation": "<explanation>"}},
  "accuracy": {{"score": <number>, "explanation": "<explanation>"}},
  "completeness": {{"score": <number>, "explanation": "<explanation>"}},
  "coherence": {{"score": <number>, "explanation": "<explanation>"}},
  "creativity": {{"score": <number>, "explanation": "<explanation>"}},
  "overall": {{"score": <number>, "summary": "<summary>"}}
}}
"""

_TASK_PROMPT = """You are evaluating a language model's response to a {task_type} task.

Prompt: {prompt}
{expected_block}
Actual output: {actual_output}
{criteria}
For each criterion, provide a score from 1-10 and a brief explanation.
Then provide an overall score (1-10) and a summary of the evaluation.

Return your evaluation as a JSON object.
"""

TASK_CRITERIA = {
    "summarization": """
Evaluate the summary on:
1. Conciseness (1-10): How concise is the summary?
2. Information Retention (1-10): How well does it retain the key information?
3. Redundancy (1-10): How well does it avoid redundant information? (10 = no redundancy)
""",
    "question-answering": """
Evaluate the answer on:
1. Directness (1-10): How directly does it answer the question?
2. Factual Correctness (1-10): How factually correct is the answer?
3. Comprehensiveness (1-10): How comprehensive is the answer?
""",
    "code-generation": """
Evaluate the code on:
1. Correctness (1-10): Does the code correctly solve the problem?
2. Efficiency (1-10): How efficient is the code?
3. Readability (1-10): How readable and well-documented is the code?
4. Best Practices (1-10): How well does it follow best practices?
""",
    "creative-writing": """
Evaluate the writing on:
1. Originality (1-10): How original is the content?
2. Engagement (1-10): How engaging is the writing?
3. Style (1-10): How effective is the writing style?
4. Coherence (1-10): How coherent is the narrative?
""",
    "reasoning": """
Evaluate the reasoning on:
1. Logical Flow (1-10): How logical is the reasoning process?
2. Depth (1-10): How deep is the analysis?
3. Consideration of Alternatives (1-10): How well does it consider alternative viewpoints?
4. Conclusion Quality (1-10): How well-supported is the conclusion?
""",
    "classification": """
Evaluate the classification on:
1. Correctness (1-10): Is the classification correct?
2. Confidence (1-10): How confident and decisive is the classification?
3. Explanation (1-10): How well is the classification explained or justified?
""",
}

DEFAULT_CRITERIA = """
Evaluate the response on:
1. Quality (1-10): Overall quality of the response
2. Relevance (1-10): Relevance to the prompt
3. Usefulness (1-10): Usefulness of the information provided
"""

GENERAL_FAILURE = "Evaluation failed due to an error."
TASK_FAILURE = "Task-specific evaluation failed due to an error."


def parse_evaluation(text: str) -> dict:
    """Parse the judge's JSON object. Raises ``ValueError`` when there is none."""
    text = text.strip()
    stripped = re.sub(r"```(?:json)?\s*", "", text).strip()
    for candidate in (text, stripped):
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    match = re.search(r"\{[\s\S]*\}", stripped)
    if match:
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            return data
    raise ValueError("Evaluator did not return a JSON object")


def _failure(error: Exception, summary: str) -> dict:
    return {"error": str(error), "overall": {"score": 0, "summary": summary}}


def _expected_block(expected_output: str | None) -> str:
    return f"Expected output: {expected_output}\n" if expected_output else ""


async def _judge(prompt: str, model: str | None, api_key: str) -> dict:
    result = await openrouter._complete(
        model or DEFAULT_EVALUATOR_MODEL,
        [{"role": "user", "content": prompt}],
        api_key,
        temperature=0.2,
        max_tokens=2000,
    )
    return parse_evaluation(result["content"])


async def evaluate_response(
    prompt: str,
    actual_output: str,
    expected_output: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
) -> dict:
    """Score a response on relevance, accuracy, completeness, coherence and creativity."""
    judge_prompt = _GENERAL_PROMPT.format(
        prompt=prompt,
        expected_block=_expected_block(expected_output),
        actual_output=actual_output,
    )
    try:
        return await _judge(judge_prompt, model, api_key)
    except (openrouter.OpenRouterError, ValueError) as e:
        logger.warning("Evaluation failed: %s", e, extra={"model": model or DEFAULT_EVALUATOR_MODEL})
        return _failure(e, GENERAL_FAILURE)


async def evaluate_task_response(
    task_type: str,
    prompt: str,
    actual_output: str,
    expected_output: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
) -> dict:
    """Score a response against the criteria for its task category."""
    judge_prompt = _TASK_PROMPT.format(
        task_type=task_type,
        prompt=prompt,
        expected_block=_expected_block(expected_output),
        actual_output=actual_output,
        criteria=TASK_CRITERIA.get(task_type, DEFAULT_CRITERIA),
    )
    try:
        return await _judge(judge_prompt, model, api_key)
    except (openrouter.OpenRouterError, ValueError) as e:
        logger.warning("Task evaluation failed: %s", e, extra={"model": model or DEFAULT_EVALUATOR_MODEL})
        return _failure(e, TASK_FAILURE)


async def _evaluate_item(item: dict, model: str | None, api_key: str) -> dict:
    item_id = item.get("id")
    prompt = item.get("prompt")
    actual = item.get("actualOutput")
    if not prompt or not actual:
        return {"id": item_id, "error": "Prompt and actual output are required for each evaluation"}
    if item.get("taskType"):
        result = await evaluate_task_response(
            item["taskType"], prompt, actual, item.get("expectedOutput"), model, api_key,
        )
    else:
        result = await evaluate_response(prompt, actual, item.get("expectedOutput"), model, api_key)
    return {"id": item_id, "result": result}


async def evaluate_batch(items: list[dict], model: str | None = None, api_key: str | None = None) -> list[dict]:
    """Evaluate many items concurrently; order matches the input."""
    return await asyncio.gather(*(_evaluate_item(item, model, api_key) for item in items))
