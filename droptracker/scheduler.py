"""
APScheduler setup for the two batch passes.

- Price check: every ``price_check_interval_hours`` (12h by default)
- Ecredit processing: every ``ecredit_processing_interval_minutes`` (hourly)

Both entry points are plain coroutines so they can also be triggered over
HTTP or from tests. Overlapping runs are tolerated; the request table's
constraints keep them from double-submitting.
"""

import logging
import os
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.memory import MemoryJobStore
from sqlalchemy.orm import Session

from droptracker.config import get_settings
from droptracker.database import SessionLocal
from droptracker.services.airline_submission import AirlineSubmissionProtocol
from droptracker.services.ecredit_processor import EcreditProcessor
from droptracker.services.events import RequestEventBus
from droptracker.services.fare_lookup import FareLookupClient
from droptracker.services.notification import NotificationDispatcher
from droptracker.services.price_monitor import PriceMonitor

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the global scheduler instance."""
    global scheduler
    if scheduler is None:
        tz = os.environ.get('TZ', 'UTC')
        logger.info(f"Scheduler using timezone: {tz}")

        scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            timezone=tz
        )
        _setup_scheduled_jobs()

    return scheduler


def _setup_scheduled_jobs():
    settings = get_settings()

    scheduler.add_job(
        check_prices,
        trigger=IntervalTrigger(hours=settings.price_check_interval_hours),
        id='price_check',
        name='Check Flight Prices',
        replace_existing=True,
        max_instances=1,
    )

    scheduler.add_job(
        process_ecredit_requests,
        trigger=IntervalTrigger(minutes=settings.ecredit_processing_interval_minutes),
        id='ecredit_processing',
        name='Process Pending Ecredit Requests',
        replace_existing=True,
        max_instances=1,
    )

    logger.info("Scheduled jobs configured:")
    logger.info(f"  - Price check: every {settings.price_check_interval_hours}h")
    logger.info(f"  - Ecredit processing: every {settings.ecredit_processing_interval_minutes}m")


async def check_prices(db: Optional[Session] = None) -> dict:
    """Price check pass over all active flights. Returns the pass summary."""
    settings = get_settings()
    logger.info("Starting scheduled price check")

    owns_session = db is None
    if owns_session:
        db = SessionLocal()
    events = RequestEventBus()
    dispatcher = NotificationDispatcher(db, settings=settings)
    events.subscribe(dispatcher.handle_event)
    fare_client = FareLookupClient.from_settings(settings)

    try:
        summary = await PriceMonitor(db, fare_client, events=events).check_all()
        logger.info(f"✅ Price check: {summary['checked']} checked, {summary['drops']} drops")
        return summary
    except Exception as e:
        logger.error(f"❌ Error in price check: {e}")
        return {"checked": 0, "unavailable": 0, "drops": 0, "requests_created": 0, "backfilled": 0, "errors": 1}
    finally:
        await fare_client.close()
        await dispatcher.close()
        if owns_session:
            db.close()


async def process_ecredit_requests(db: Optional[Session] = None) -> dict:
    """Reconciliation pass over pending ecredit requests. Returns the pass summary."""
    settings = get_settings()
    logger.info("Starting scheduled ecredit processing")

    owns_session = db is None
    if owns_session:
        db = SessionLocal()
    events = RequestEventBus()
    dispatcher = NotificationDispatcher(db, settings=settings)
    events.subscribe(dispatcher.handle_event)
    protocol = AirlineSubmissionProtocol.from_settings(settings)

    try:
        summary = await EcreditProcessor(db, protocol, events=events, settings=settings).process_pending()
        logger.info(f"✅ Ecredit processing: {summary['completed']} completed, {summary['failed']} failed")
        return summary
    except Exception as e:
        logger.error(f"❌ Error in ecredit processing: {e}")
        return {"processed": 0, "completed": 0, "failed": 0, "skipped": 0, "stale_failed": 0, "errors": 1}
    finally:
        await dispatcher.close()
        if owns_session:
            db.close()


def start_scheduler():
    """Start the scheduler (call this from FastAPI startup)."""
    scheduler_instance = get_scheduler()

    if not scheduler_instance.running:
        scheduler_instance.start()
        logger.info("APScheduler started successfully")

        for job in scheduler_instance.get_jobs():
            logger.info(f"Next '{job.name}': {job.next_run_time}")
    else:
        logger.warning("Scheduler already running")


def stop_scheduler():
    """Stop the scheduler (call this from FastAPI shutdown)."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")
    scheduler = None


def get_scheduler_status() -> dict:
    if scheduler is None or not scheduler.running:
        return {
            "running": False,
            "jobs": [],
            "next_run": None
        }

    jobs = []
    next_run = None

    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        })
        if job.next_run_time and (next_run is None or job.next_run_time < next_run):
            next_run = job.next_run_time

    return {
        "running": True,
        "jobs": jobs,
        "next_run": next_run.isoformat() if next_run else None
    }
