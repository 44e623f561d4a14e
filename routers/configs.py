"""Benchmark configuration CRUD routes."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response

import db
from routers.helpers import error_response, read_json, validate_body
from schemas import BenchmarkConfig, BenchmarkConfigUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["configs"])


@router.get("/api/configs")
async def list_configs():
    return await db.list_configs()


@router.get("/api/configs/public/{public_id}")
async def get_config_by_public_id(public_id: str):
    config = await db.get_config_by_public_id(public_id)
    if not config:
        return error_response("Configuration not found", 404)
    return config


@router.get("/api/configs/{config_id}")
async def get_config(config_id: str):
    config = await db.get_config(config_id)
    if not config:
        return error_response("Configuration not found", 404)
    return config


@router.post("/api/configs", status_code=201)
async def create_config(request: Request):
    body = await read_json(request)
    if not body:
        return error_response("Configuration data is required")
    # Shareable ids are always server-assigned
    body.pop("public_id", None)
    data, error = validate_body(BenchmarkConfig, body)
    if error:
        return error

    config = await db.create_config(data.to_wire())
    logger.info("Config created", extra={"detail": config["id"]})
    return config


@router.put("/api/configs/{config_id}")
async def update_config(config_id: str, request: Request):
    body = await read_json(request)
    if not body:
        return error_response("Update data is required")
    body.pop("public_id", None)
    data, error = validate_body(BenchmarkConfigUpdate, body)
    if error:
        return error
    config = await db.update_config(config_id, data.to_updates())
    if not config:
        return error_response("Configuration not found", 404)
    return config


@router.delete("/api/configs/{config_id}", status_code=204)
async def delete_config(config_id: str):
    if not await db.delete_config(config_id):
        return error_response("Configuration not found", 404)
    return Response(status_code=204)
