"""
services/background_jobs.py

Scheduled background jobs for Helix.

Jobs:
  1. scheduled_incremental_sync
     - Incremental reconciliation of every active data source.
     - Runs every SYNC_INTERVAL_MINUTES when SYNC_SCHEDULE_ENABLED.

  2. purge_idempotency_records
     - Deletes expired idempotency rows.
     - Runs every 60 minutes.

Started and stopped by the FastAPI lifespan in ``helix.main``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from helix.core.config import settings
from helix.db import database
from helix.db.models import SyncMode
from helix.services.idempotency_service import delete_expired_idempotency_records
from helix.services.record_store import RecordStore
from helix.services.sync_orchestrator import sync_orchestrator

logger = logging.getLogger(__name__)

# ── Scheduler singleton ───────────────────────────────────────────────────────
_scheduler: AsyncIOScheduler | None = None


def start_scheduler() -> AsyncIOScheduler:
    """
    Starts the APScheduler background job scheduler.
    Call this from FastAPI lifespan startup.
    """
    global _scheduler

    _scheduler = AsyncIOScheduler(timezone="UTC")

    if settings.SYNC_SCHEDULE_ENABLED:
        _scheduler.add_job(
            scheduled_incremental_sync,
            trigger=IntervalTrigger(minutes=max(1, settings.SYNC_INTERVAL_MINUTES)),
            id="incremental_sync",
            name="Incremental sync of active data sources",
            replace_existing=True,
            max_instances=1,          # never run two at once
            misfire_grace_time=300,
        )
    else:
        logger.info("Scheduled sync disabled")

    _scheduler.add_job(
        purge_idempotency_records,
        trigger=IntervalTrigger(minutes=60),
        id="idempotency_cleanup",
        name="Purge expired idempotency records",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=300,
    )

    _scheduler.start()
    logger.info("Background scheduler started, %d jobs registered", len(_scheduler.get_jobs()))
    return _scheduler


def shutdown_scheduler() -> None:
    """Gracefully shuts down the scheduler. Call from FastAPI lifespan shutdown."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Background scheduler shut down")
    _scheduler = None


# ============================================================================
# Job 1: Incremental sync
# ============================================================================

def run_incremental_sync() -> Dict[str, Any]:
    db = database.SessionLocal()
    try:
        summary = sync_orchestrator.run(RecordStore(db), mode=SyncMode.incremental)
        return summary.to_dict()
    finally:
        db.close()


async def scheduled_incremental_sync() -> None:
    """
    Reconciles all active sources off the event loop. Failures are logged
    and the next interval runs as normal.
    """
    logger.info("Job: scheduled_incremental_sync starting")
    try:
        summary = await asyncio.to_thread(run_incremental_sync)
    except Exception:
        logger.exception("Job: scheduled_incremental_sync crashed")
        return
    logger.info(
        "Job: scheduled_incremental_sync done, %s/%s sources ok, %s failed, %s skipped",
        summary["successCount"], summary["totalSources"],
        summary["failureCount"], summary["skippedCount"],
    )


# ============================================================================
# Job 2: Idempotency cleanup
# ============================================================================

async def purge_idempotency_records() -> None:
    """Delete expired idempotency rows."""
    db = database.SessionLocal()
    try:
        deleted = delete_expired_idempotency_records(db)
        if deleted:
            logger.info("idempotency_cleanup: deleted %d expired rows", deleted)
    except Exception:
        db.rollback()
        logger.exception("idempotency_cleanup failed")
    finally:
        db.close()
