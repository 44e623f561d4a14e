"""Background execution of benchmark runs.

Runs are jobs: asyncio tasks whose lifecycle is persisted in the ``jobs``
table, limited per owner (a hash of the caller's API key, or ``"local"``)
and reported over WebSocket.

Usage:
    from job_registry import registry

    registry.register_handler("benchmark", benchmark_handler)
    job_id = await registry.submit("benchmark", owner_id, params,
                                   secrets={"api_key": key}, result_ref=result_id)
    await registry.cancel(job_id, owner_id)
"""

import asyncio
import json
import logging
import os
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable

import db

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 2
DEFAULT_TIMEOUT_SECONDS = 7200
WATCHDOG_INTERVAL = 60

# Same format as SQLite datetime('now') so timeout_at compares as text
_DB_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class JobStatus(str, Enum):
    PENDING = "pending"
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"
    INTERRUPTED = "interrupted"


TERMINAL_STATUSES = {JobStatus.DONE, JobStatus.FAILED, JobStatus.CANCELLED, JobStatus.INTERRUPTED}

VALID_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.QUEUED, JobStatus.RUNNING, JobStatus.CANCELLED},
    JobStatus.QUEUED: {JobStatus.RUNNING, JobStatus.CANCELLED},
    JobStatus.RUNNING: {JobStatus.DONE, JobStatus.FAILED, JobStatus.CANCELLED, JobStatus.INTERRUPTED},
    JobStatus.DONE: set(),
    JobStatus.FAILED: set(),
    JobStatus.CANCELLED: set(),
    JobStatus.INTERRUPTED: set(),
}


def validate_transition(current: str, new: str) -> bool:
    try:
        current_status = JobStatus(current)
        new_status = JobStatus(new)
    except ValueError:
        return False
    return new_status in VALID_TRANSITIONS.get(current_status, set())


def max_concurrent() -> int:
    try:
        return max(1, int(os.environ.get("MAX_CONCURRENT_BENCHMARKS", DEFAULT_MAX_CONCURRENT)))
    except ValueError:
        return DEFAULT_MAX_CONCURRENT


def default_timeout() -> int:
    try:
        return int(os.environ.get("BENCHMARK_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS


class JobRegistry:
    """Runs jobs as asyncio tasks with per-owner concurrency limits and FIFO queuing."""

    def __init__(self):
        self._running: dict[str, asyncio.Task] = {}           # job_id -> Task
        self._cancel_events: dict[str, asyncio.Event] = {}    # job_id -> Event
        self._secrets: dict[str, dict] = {}                   # job_id -> api keys, never persisted
        self._owner_slots: dict[str, int] = {}                # owner_id -> active count
        self._handlers: dict[str, Callable] = {}              # job_type -> handler
        self._ws_manager = None
        self._watchdog_task: asyncio.Task | None = None
        self._slot_lock = asyncio.Lock()

    def set_ws_manager(self, manager):
        self._ws_manager = manager

    def register_handler(self, job_type: str, handler: Callable):
        """Register a handler function for a job type.

        Handler signature:
            async def handler(
                job_id: str,
                params: dict,
                secrets: dict,
                cancel_event: asyncio.Event,
                progress_cb: Callable[[int, str], Awaitable[None]],
            ) -> str | None:
                # Returns the result row id on success, or None.
        """
        self._handlers[job_type] = handler

    async def startup(self):
        logger.info("Job registry starting up")
        count = await db.mark_interrupted_jobs()
        if count > 0:
            logger.warning("Marked %d orphaned jobs as interrupted on startup", count)
        self._watchdog_task = asyncio.create_task(self._watchdog())

    async def shutdown(self):
        if self._watchdog_task:
            self._watchdog_task.cancel()
            try:
                await self._watchdog_task
            except asyncio.CancelledError:
                logger.debug("Watchdog task cancelled during shutdown")
        running = list(self._running.values())
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)

    async def submit(
        self,
        job_type: str,
        owner_id: str,
        params: dict,
        secrets: dict | None = None,
        timeout_seconds: int | None = None,
        progress_detail: str = "",
        result_ref: str | None = None,
    ) -> str:
        """Submit a new job. Returns job_id.

        Starts immediately when the owner has a free slot, otherwise the
        job is queued. ``secrets`` stay in memory for the job's lifetime.
        """
        job_id = uuid.uuid4().hex
        timeout_seconds = timeout_seconds or default_timeout()

        async with self._slot_lock:
            active_count = self._owner_slots.get(owner_id, 0)
            initial_status = "queued" if active_count >= max_concurrent() else "pending"

        await db.create_job(
            job_id=job_id,
            owner_id=owner_id,
            job_type=job_type,
            status=initial_status,
            params_json=json.dumps(params),
            timeout_seconds=timeout_seconds,
            progress_detail=progress_detail,
            result_ref=result_ref,
        )
        self._secrets[job_id] = dict(secrets or {})

        logger.info("Job created", extra={"job_id": job_id, "action": job_type, "status": initial_status})

        await self._broadcast(owner_id, {
            "type": "job_created",
            "job_id": job_id,
            "job_type": job_type,
            "status": initial_status,
            "progress_detail": progress_detail,
            "result_ref": result_ref,
            "created_at": datetime.now(timezone.utc).isoformat(),
        })

        if initial_status != "queued":
            await self._start_job(job_id, owner_id, job_type, params, timeout_seconds)

        return job_id

    async def cancel(self, job_id: str, owner_id: str) -> bool:
        """Cancel a job the owner submitted. Returns True if cancellation was initiated."""
        job = await db.get_job(job_id)
        if not job or job["owner_id"] != owner_id:
            return False

        if job["status"] in ("pending", "queued"):
            logger.info("Job cancelled before start", extra={"job_id": job_id})
            await self._update_status(job_id, "cancelled")
            self._secrets.pop(job_id, None)
            await self._broadcast(owner_id, {"type": "job_cancelled", "job_id": job_id})
            return True

        if job["status"] == "running":
            cancel_event = self._cancel_events.get(job_id)
            if cancel_event:
                logger.info("Job cancel requested", extra={"job_id": job_id})
                cancel_event.set()
                return True
            # DB says running but this process has no task for it
            logger.warning("Ghost job detected, marking interrupted", extra={"job_id": job_id})
            await self._update_status(job_id, "interrupted")
            await self._broadcast(owner_id, {"type": "job_cancelled", "job_id": job_id})
            return True

        return False

    # --- Internal methods ---

    async def _start_job(self, job_id, owner_id, job_type, params, timeout_seconds):
        handler = self._handlers.get(job_type)
        if not handler:
            error = f"No handler for {job_type}"
            await self._update_status(job_id, "failed", error_msg=error)
            self._secrets.pop(job_id, None)
            await self._broadcast(owner_id, {"type": "job_failed", "job_id": job_id, "error": error})
            return

        cancel_event = asyncio.Event()
        self._cancel_events[job_id] = cancel_event

        now = datetime.now(timezone.utc)
        timeout_at = now + timedelta(seconds=timeout_seconds)
        await db.update_job_started(
            job_id, now.strftime(_DB_TIME_FORMAT), timeout_at.strftime(_DB_TIME_FORMAT),
        )

        async with self._slot_lock:
            self._owner_slots[owner_id] = self._owner_slots.get(owner_id, 0) + 1

        await self._broadcast(owner_id, {"type": "job_started", "job_id": job_id, "job_type": job_type})

        async def progress_cb(pct: int, detail: str = ""):
            await db.update_job_progress(job_id, pct, detail)
            await self._broadcast(owner_id, {
                "type": "job_progress",
                "job_id": job_id,
                "progress_pct": pct,
                "progress_detail": detail,
            })

        async def _run():
            try:
                secrets = self._secrets.get(job_id, {})
                result_ref = await handler(job_id, params, secrets, cancel_event, progress_cb)

                if cancel_event.is_set():
                    await self._update_status(job_id, "cancelled", result_ref=result_ref)
                    await self._broadcast(owner_id, {"type": "job_cancelled", "job_id": job_id})
                else:
                    await self._update_status(job_id, "done", result_ref=result_ref)
                    await self._broadcast(owner_id, {
                        "type": "job_completed", "job_id": job_id, "result_ref": result_ref,
                    })
            except asyncio.CancelledError:
                logger.debug("Job %s interrupted", job_id)
                await self._update_status(job_id, "interrupted")
                await self._broadcast(owner_id, {"type": "job_failed", "job_id": job_id, "error": "Interrupted"})
            except Exception as e:
                logger.exception("Job failed", extra={"job_id": job_id})
                await self._update_status(job_id, "failed", error_msg=str(e)[:500])
                await self._broadcast(owner_id, {"type": "job_failed", "job_id": job_id, "error": str(e)[:500]})
            finally:
                self._running.pop(job_id, None)
                self._cancel_events.pop(job_id, None)
                self._secrets.pop(job_id, None)
                async with self._slot_lock:
                    self._owner_slots[owner_id] = max(0, self._owner_slots.get(owner_id, 1) - 1)
                await self._process_queue(owner_id)

        self._running[job_id] = asyncio.create_task(_run())

    async def _process_queue(self, owner_id: str):
        """Start queued jobs for this owner while slots are free."""
        while True:
            async with self._slot_lock:
                if self._owner_slots.get(owner_id, 0) >= max_concurrent():
                    break
            job = await db.get_next_queued_job(owner_id)
            if not job:
                break
            await self._start_job(
                job["id"], owner_id, job["job_type"],
                json.loads(job["params_json"]), job["timeout_seconds"],
            )

    async def _watchdog(self):
        """Fail jobs that ran past their timeout."""
        while True:
            try:
                await asyncio.sleep(WATCHDOG_INTERVAL)
                await self.check_timeouts()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Watchdog error")

    async def check_timeouts(self) -> int:
        timed_out = await db.get_timed_out_jobs()
        for job in timed_out:
            job_id = job["id"]
            task = self._running.get(job_id)
            if task:
                task.cancel()
            await self._update_status(job_id, "failed", error_msg="Timeout exceeded")
            await self._broadcast(job["owner_id"], {
                "type": "job_failed", "job_id": job_id, "error": "Timeout exceeded",
            })
        return len(timed_out)

    async def _update_status(
        self,
        job_id: str,
        status: str,
        result_ref: str | None = None,
        error_msg: str | None = None,
    ):
        job = await db.get_job(job_id)
        if job and not validate_transition(job["status"], status):
            logger.warning("Invalid job transition for %s: %s -> %s", job_id, job["status"], status)
            if JobStatus(job["status"]) in TERMINAL_STATUSES:
                return
        completed_at = (
            datetime.now(timezone.utc).strftime(_DB_TIME_FORMAT)
            if JobStatus(status) in TERMINAL_STATUSES
            else None
        )
        logger.info("Job state transition", extra={"job_id": job_id, "status": status})
        await db.update_job_status(job_id, status, completed_at, result_ref, error_msg)

    async def _broadcast(self, owner_id: str, message: dict):
        if self._ws_manager:
            await self._ws_manager.send_to_owner(owner_id, message)


# Module-level singleton
registry = JobRegistry()
