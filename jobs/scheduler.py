"""
Job scheduler.

Enqueues the dramatiq actors on their schedules and serves the health
endpoints. Workers run separately:

    dramatiq jobs.broker jobs.tasks.referral_income jobs.tasks.wallet_sync \
        jobs.tasks.auto_block jobs.tasks.daily_roi jobs.tasks.weekly_payouts

Scheduler:

    python -m jobs.scheduler
"""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from jobs import broker  # noqa: F401  (sets the Redis broker before actors load)
from jobs.health import set_scheduler, start_health_server, stop_health_server
from jobs.tasks.auto_block import auto_block_expired_users
from jobs.tasks.daily_roi import distribute_daily_roi
from jobs.tasks.referral_income import process_pending_referral_income
from jobs.tasks.wallet_sync import sync_wallet_balances
from jobs.tasks.weekly_payouts import process_weekly_payouts
from mlm_engine.config.settings import settings
from mlm_engine.utils.logging import setup_logging


def create_scheduler() -> AsyncIOScheduler:
    """Build the scheduler with every periodic job registered."""
    scheduler = AsyncIOScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 300,
        },
    )
    poll = settings.referral_poll_interval_seconds

    scheduler.add_job(
        process_pending_referral_income.send,
        trigger=IntervalTrigger(seconds=poll),
        id="referral_income",
        name="Pending referral income",
        replace_existing=True,
    )
    scheduler.add_job(
        sync_wallet_balances.send,
        trigger=IntervalTrigger(seconds=poll),
        id="wallet_sync",
        name="Wallet balance sync",
        replace_existing=True,
    )
    scheduler.add_job(
        auto_block_expired_users.send,
        trigger=IntervalTrigger(hours=1),
        id="auto_block",
        name="Auto-block expired activations",
        replace_existing=True,
    )
    scheduler.add_job(
        distribute_daily_roi.send,
        trigger=CronTrigger(day_of_week="mon-fri", hour=9, minute=0),
        id="daily_roi",
        name="Daily ROI (Mon-Fri 09:00 UTC)",
        replace_existing=True,
    )
    scheduler.add_job(
        process_weekly_payouts.send,
        trigger=CronTrigger(day_of_week="mon", hour=9, minute=0),
        id="weekly_payouts",
        name="Weekly payouts (Mon 09:00 UTC)",
        replace_existing=True,
    )
    return scheduler


async def main() -> None:
    setup_logging("scheduler")

    scheduler = create_scheduler()
    scheduler.start()
    set_scheduler(scheduler)
    runner = await start_health_server(port=settings.health_check_port)
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
    finally:
        logger.info("Stopping scheduler...")
        scheduler.shutdown(wait=False)
        await stop_health_server(runner)


if __name__ == "__main__":
    asyncio.run(main())
