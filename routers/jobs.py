"""Job tracking REST endpoints, scoped to the caller's API key."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

import auth
import db
from job_registry import registry as job_registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["jobs"])

TERMINAL = ("done", "failed", "cancelled", "interrupted")


async def _owned_job(job_id: str, api_key: str) -> dict | None:
    job = await db.get_job(job_id)
    if not job or job["owner_id"] not in (auth.owner_id(api_key), auth.LOCAL_OWNER):
        return None
    return job


@router.get("/api/jobs")
async def list_jobs(request: Request, api_key: str = Depends(auth.require_api_key)):
    """List the caller's jobs. Optional query params: ?status=running,queued&limit=20"""
    status_filter = request.query_params.get("status")
    try:
        limit = int(request.query_params.get("limit", "20"))
    except ValueError:
        return JSONResponse({"error": "limit must be an integer"}, status_code=400)
    jobs = await db.get_owner_jobs(auth.owner_id(api_key), status=status_filter, limit=limit)
    return {"jobs": jobs}


@router.get("/api/jobs/{job_id}")
async def get_job(job_id: str, api_key: str = Depends(auth.require_api_key)):
    job = await _owned_job(job_id, api_key)
    if not job:
        return JSONResponse({"error": "Job not found"}, status_code=404)
    return job


@router.post("/api/jobs/{job_id}/cancel")
async def cancel_job(job_id: str, api_key: str = Depends(auth.require_api_key)):
    job = await _owned_job(job_id, api_key)
    if not job:
        return JSONResponse({"error": "Job not found"}, status_code=404)
    if job["status"] in TERMINAL:
        return JSONResponse({"error": "Job already finished"}, status_code=400)

    cancelled = await job_registry.cancel(job_id, job["owner_id"])
    if not cancelled:
        return JSONResponse({"error": "Job could not be cancelled"}, status_code=409)
    logger.info("Job cancel requested via API", extra={"job_id": job_id})
    return {"status": "ok", "message": "Cancellation requested"}
