"""WebSocket endpoint for real-time job status updates."""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

import auth
import db
from job_registry import registry as job_registry

logger = logging.getLogger(__name__)

router = APIRouter()

# Set by app.py after import
ws_manager = None

RECEIVE_TIMEOUT = 90


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    """Job event stream for one API key.

    Auth: the OpenRouter key passed as ``?api_key=...``.
    On connect: sends a ``sync`` message with active and recent jobs.
    Client messages: ``ping`` (keep-alive) and ``cancel`` (cancel a job).
    """
    api_key = ws.query_params.get("api_key")
    if not api_key:
        await ws.close(code=4001, reason="Missing API key")
        return
    owner = auth.owner_id(api_key)

    connected = await ws_manager.connect(owner, ws)
    if not connected:
        return

    try:
        await ws.send_json({
            "type": "sync",
            "active_jobs": await db.get_owner_active_jobs(owner),
            "recent_jobs": await db.get_owner_recent_jobs(owner, limit=10),
        })
    except Exception:
        logger.exception("WebSocket initial sync failed")
        await ws_manager.disconnect(owner, ws)
        return

    # Clients ping at least every 60s; silence past the timeout means a dead proxy connection
    try:
        while True:
            try:
                data = await asyncio.wait_for(ws.receive_json(), timeout=RECEIVE_TIMEOUT)
            except asyncio.TimeoutError:
                try:
                    await ws.close(code=4002, reason="Receive timeout")
                except RuntimeError:
                    logger.debug("WebSocket close failed during timeout disconnect")
                break

            msg_type = data.get("type")
            if msg_type == "ping":
                await ws.send_json({"type": "pong"})
            elif msg_type == "cancel" and data.get("job_id"):
                await job_registry.cancel(data["job_id"], owner)

    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected")
    except Exception:
        logger.exception("WebSocket unexpected error")
    finally:
        await ws_manager.disconnect(owner, ws)
