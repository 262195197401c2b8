"""
Health endpoints served next to the scheduler.

- ``/health``: scheduler state, overdue jobs and the referral income backlog
- ``/readiness``: scheduler running and database reachable
- ``/liveness``: process answers
"""

import asyncio
from datetime import timedelta

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from mlm_engine.config.database import async_session_maker
from mlm_engine.repositories.activation_repository import ActivationRepository
from mlm_engine.utils.datetime_utils import utc_now

# A job whose next run is this far in the past is reported as overdue
OVERDUE_AFTER = timedelta(minutes=5)

_scheduler: AsyncIOScheduler | None = None


def set_scheduler(scheduler: AsyncIOScheduler) -> None:
    global _scheduler
    _scheduler = scheduler


def _job_states() -> tuple[list[dict], list[str]]:
    now = utc_now()
    jobs, overdue = [], []
    for job in _scheduler.get_jobs():
        next_run = job.next_run_time
        jobs.append({"id": job.id, "nextRun": next_run.isoformat() if next_run else None})
        if next_run is not None and now - next_run > OVERDUE_AFTER:
            overdue.append(job.id)
    return jobs, overdue


async def _referral_backlog() -> int:
    async with async_session_maker() as session:
        return await ActivationRepository(session).count_pending_referral()


async def health(request: web.Request) -> web.Response:
    if _scheduler is None or not _scheduler.running:
        return web.json_response({"status": "stopped"}, status=503)

    jobs, overdue = _job_states()
    body = {"status": "healthy", "jobs": jobs, "overdueJobs": overdue}
    if overdue:
        body["status"] = "degraded"

    try:
        body["pendingReferralActivations"] = await _referral_backlog()
    except SQLAlchemyError as e:
        logger.error(f"Health check could not count pending activations: {e}")
        body["status"] = "degraded"
        body["databaseError"] = str(e)

    return web.json_response(body, status=200 if body["status"] == "healthy" else 503)


async def readiness(request: web.Request) -> web.Response:
    if _scheduler is None or not _scheduler.running:
        return web.json_response({"ready": False, "reason": "scheduler"}, status=503)
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Readiness: database unavailable: {e}")
        return web.json_response({"ready": False, "reason": "database"}, status=503)
    return web.json_response({"ready": True})


async def liveness(request: web.Request) -> web.Response:
    return web.json_response({"alive": True})


async def start_health_server(host: str = "0.0.0.0", port: int = 8080) -> web.AppRunner:
    """Serve the health endpoints; returns the runner for shutdown."""
    app = web.Application()
    app.router.add_get("/health", health)
    app.router.add_get("/readiness", readiness)
    app.router.add_get("/liveness", liveness)

    runner = web.AppRunner(app)
    await runner.setup()
    await web.TCPSite(runner, host, port).start()
    logger.info(f"Health endpoints listening on {host}:{port}")
    return runner


async def stop_health_server(runner: web.AppRunner, timeout: float = 5) -> None:
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
    except TimeoutError:
        logger.warning(f"Health server cleanup took longer than {timeout}s")
