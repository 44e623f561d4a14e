"""LLM-as-judge evaluation routes."""

import logging

from fastapi import APIRouter, Depends, Request

import auth
import evaluation
from routers.helpers import read_json, validate_body
from schemas import BatchEvaluationRequest, EvaluationRequest, TaskEvaluationRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["evaluation"])


@router.post("/api/evaluation/evaluate")
async def evaluate(request: Request, api_key: str = Depends(auth.require_api_key)):
    data, error = validate_body(EvaluationRequest, await read_json(request))
    if error:
        return error
    return await evaluation.evaluate_response(
        data.prompt,
        data.actual_output,
        data.expected_output,
        data.evaluator_model,
        api_key,
    )


@router.post("/api/evaluation/evaluate-task")
async def evaluate_task(request: Request, api_key: str = Depends(auth.require_api_key)):
    data, error = validate_body(TaskEvaluationRequest, await read_json(request))
    if error:
        return error
    return await evaluation.evaluate_task_response(
        data.task_type,
        data.prompt,
        data.actual_output,
        data.expected_output,
        data.evaluator_model,
        api_key,
    )


@router.post("/api/evaluation/evaluate-batch")
async def evaluate_batch(request: Request, api_key: str = Depends(auth.require_api_key)):
    """Evaluate several responses concurrently. Item failures are reported per item."""
    data, error = validate_body(BatchEvaluationRequest, await read_json(request))
    if error:
        return error
    logger.info("Batch evaluation of %d items", len(data.evaluations), extra={"action": "evaluate_batch"})
    return await evaluation.evaluate_batch(data.evaluations, data.evaluator_model, api_key)
