"""Benchmark result routes: browse, share, export, delete."""

import json
import logging

from fastapi import APIRouter, Query
from fastapi.responses import Response

import db
from results import result_to_csv
from routers.helpers import error_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["results"])


@router.get("/api/results")
async def list_results():
    return await db.list_results_with_configs()


@router.get("/api/results/public/{public_id}")
async def get_result_by_public_id(public_id: str):
    result = await db.get_result_by_public_id(public_id)
    if not result:
        return error_response("Result not found", 404)
    return result


@router.get("/api/results/{result_id}/export")
async def export_result(result_id: str, format: str = Query("json")):
    """Download a result as CSV (one row per test case) or pretty-printed JSON."""
    result = await db.get_result(result_id, with_test_cases=True, with_config=True)
    if not result:
        return error_response("Result not found", 404)

    if format == "csv":
        return Response(
            content=result_to_csv(result),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="benchmark-result-{result_id}.csv"'},
        )
    return Response(
        content=json.dumps(result, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="benchmark-result-{result_id}.json"'},
    )


@router.get("/api/results/{result_id}")
async def get_result(result_id: str):
    result = await db.get_result(result_id, with_test_cases=True, with_config=True)
    if not result:
        return error_response("Result not found", 404)
    return result


@router.delete("/api/results/{result_id}", status_code=204)
async def delete_result(result_id: str):
    if not await db.delete_result(result_id):
        return error_response("Result not found", 404)
    logger.info("Result deleted", extra={"benchmark_id": result_id})
    return Response(status_code=204)
