"""APScheduler integration for FastAPI.

Runs the periodic harvest job: fetch new fills for every tracked trader,
then rebuild their completed trades.
"""

import asyncio
import logging
import threading

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from harvester.config import settings

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

HARVEST_JOB_ID = "fills_harvest"

# Shared by the scheduled job and the manual trigger; one harvest at a time
_harvest_lock = threading.Lock()


class HarvestAlreadyRunning(Exception):
    pass


def run_harvest_cycle() -> dict:
    """One blocking harvest + rebuild pass over all tracked traders.

    Raises HarvestAlreadyRunning instead of starting a second pass alongside one
    that is still going.
    """
    from harvester.database import engine
    from harvester.engine.fills_worker import run_fills_harvest
    from harvester.engine.trades import rebuild_all_completed_trades
    from harvester.services.fill_store import FillStore

    if not _harvest_lock.acquire(blocking=False):
        raise HarvestAlreadyRunning("Harvest already running")
    try:
        harvest = run_fills_harvest()
        rebuild = rebuild_all_completed_trades(FillStore(engine))
    finally:
        _harvest_lock.release()
    return {
        "processed": harvest.processed,
        "fills_saved": harvest.fills_saved,
        "failed": harvest.failed,
        "skipped": harvest.skipped,
        "trades_rebuilt": rebuild["trades"],
        "rebuild_errors": len(rebuild["errors"]),
    }


async def harvest_job():
    """Scheduler entry point; the worker pool blocks, so it runs off the event loop."""
    try:
        summary = await asyncio.to_thread(run_harvest_cycle)
        logger.info(f"Harvest cycle finished: {summary}")
    except HarvestAlreadyRunning:
        logger.warning("Harvest cycle skipped: previous one still running")
    except Exception as e:
        logger.error(f"Harvest cycle error: {e}", exc_info=True)


def add_harvest_job(interval_minutes: int):
    """Add or replace the periodic harvest job."""
    if scheduler.get_job(HARVEST_JOB_ID):
        scheduler.remove_job(HARVEST_JOB_ID)

    scheduler.add_job(
        harvest_job,
        trigger=IntervalTrigger(minutes=interval_minutes),
        id=HARVEST_JOB_ID,
        name="Fills harvest",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=60,
    )
    logger.info(f"Scheduled fills harvest every {interval_minutes}m")


def start_scheduler():
    """Start the scheduler; the harvest job only exists when an interval is configured."""
    if settings.harvest_interval_minutes > 0:
        add_harvest_job(settings.harvest_interval_minutes)
    scheduler.start()
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")


def stop_scheduler():
    """Shut down the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def get_scheduler_status() -> dict:
    """Return current scheduler state for the API."""
    jobs = scheduler.get_jobs()
    return {
        "running": scheduler.running,
        "job_count": len(jobs),
        "jobs": [
            {
                "id": j.id,
                "name": j.name,
                "next_run": str(j.next_run_time) if j.next_run_time else None,
                "trigger": str(j.trigger),
            }
            for j in jobs
        ],
    }
