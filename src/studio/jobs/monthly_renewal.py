"""Background scheduler for the monthly reposition credit renewal."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from ..core.config import get_settings
from ..core.database import SessionLocal
from ..services.renewal_service import run_monthly_renewal

logger = logging.getLogger(__name__)

_scheduler = AsyncIOScheduler(timezone="UTC")


def run_renewal_once(current_time: datetime | None = None) -> dict[str, int]:
    """Run the renewal in its own session and commit it."""

    session = SessionLocal()
    try:
        summary = run_monthly_renewal(session, current_time=current_time)
        session.commit()
        return summary
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


async def _execute_monthly_renewal() -> None:
    try:
        summary = run_renewal_once(datetime.now(timezone.utc))
    except Exception:  # pragma: no cover - background job
        logger.exception("monthly renewal job failed")
        raise
    logger.info("monthly renewal completed", extra=summary)


@_scheduler.scheduled_job("cron", day="1", hour=0, minute=5, id="monthly_renewal", misfire_grace_time=3600)
async def _scheduled_job() -> None:
    await _execute_monthly_renewal()


def register_scheduler(app: FastAPI) -> None:
    """Attach APScheduler lifecycle hooks to the FastAPI app."""

    if not get_settings().scheduler_enabled:
        logger.info("monthly renewal scheduler disabled")
        return

    @app.on_event("startup")
    async def start_scheduler() -> None:
        if not _scheduler.running:
            _scheduler.start()
            logger.info("monthly renewal scheduler started")

    @app.on_event("shutdown")
    async def shutdown_scheduler() -> None:
        if _scheduler.running:
            _scheduler.shutdown(wait=False)
            logger.info("monthly renewal scheduler stopped")
