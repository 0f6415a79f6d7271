"""
Scrape job store.

Jobs move linearly: pending -> running -> completed | failed, or
pending -> failed when dispatch fails. Every transition is a conditional
UPDATE on the current status, so a terminal job is never written again and
two instances racing on the same job cannot both win.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.models import (
    NON_TERMINAL_STATUSES,
    Brand,
    ScrapeJob,
    ScrapeJobStatus,
)

logger = logging.getLogger(__name__)


async def create_job(session: AsyncSession, brand_id: str, *, scraper_type: str = "competitor") -> ScrapeJob:
    """Insert a pending job. The partial unique index rejects a second active job."""
    job = ScrapeJob(
        brand_id=brand_id,
        scraper_type=scraper_type,
        status=ScrapeJobStatus.pending.value,
        started_at=datetime.now(timezone.utc),
        accounts_processed=0,
        videos_found=0,
    )
    session.add(job)
    await session.flush()
    return job


async def get_job(session: AsyncSession, job_id: str) -> ScrapeJob | None:
    return await session.get(ScrapeJob, job_id, populate_existing=True)


async def find_active_job(session: AsyncSession, brand_id: str) -> ScrapeJob | None:
    return await session.scalar(
        select(ScrapeJob)
        .where(ScrapeJob.brand_id == brand_id, ScrapeJob.status.in_(NON_TERMINAL_STATUSES))
        .order_by(ScrapeJob.started_at.desc())
        .limit(1)
    )


async def _transition(
    session: AsyncSession,
    job_id: str,
    *,
    from_statuses: tuple[str, ...],
    values: dict[str, Any],
) -> bool:
    result = await session.execute(
        update(ScrapeJob)
        .where(ScrapeJob.id == job_id, ScrapeJob.status.in_(from_statuses))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    applied = result.rowcount == 1
    if not applied:
        logger.info(f"[jobs] Transition of {job_id} to {values.get('status')} not applied")
    return applied


async def mark_running(session: AsyncSession, job_id: str, *, provider_run_id: str | None = None) -> bool:
    values: dict[str, Any] = {"status": ScrapeJobStatus.running.value}
    if provider_run_id:
        values["provider_run_id"] = provider_run_id
    return await _transition(session, job_id, from_statuses=(ScrapeJobStatus.pending.value,), values=values)


async def mark_completed(session: AsyncSession, job_id: str) -> bool:
    return await _transition(
        session,
        job_id,
        from_statuses=NON_TERMINAL_STATUSES,
        values={"status": ScrapeJobStatus.completed.value, "completed_at": datetime.now(timezone.utc)},
    )


async def mark_failed(session: AsyncSession, job_id: str, error_message: str) -> bool:
    return await _transition(
        session,
        job_id,
        from_statuses=NON_TERMINAL_STATUSES,
        values={
            "status": ScrapeJobStatus.failed.value,
            "completed_at": datetime.now(timezone.utc),
            "error_message": error_message or "unknown error",
        },
    )


async def record_counts(session: AsyncSession, job_id: str, *, accounts_processed: int, videos_found: int) -> None:
    await session.execute(
        update(ScrapeJob)
        .where(ScrapeJob.id == job_id)
        .values(accounts_processed=accounts_processed, videos_found=videos_found)
        .execution_options(synchronize_session=False)
    )


async def touch_brand_scraped(session: AsyncSession, brand_id: str) -> None:
    await session.execute(
        update(Brand)
        .where(Brand.id == brand_id)
        .values(last_scraped_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )


async def list_stale_jobs(session: AsyncSession, older_than: timedelta) -> list[ScrapeJob]:
    """Non-terminal jobs started before now - older_than."""
    cutoff = datetime.now(timezone.utc) - older_than
    result = await session.execute(
        select(ScrapeJob)
        .where(ScrapeJob.status.in_(NON_TERMINAL_STATUSES), ScrapeJob.started_at < cutoff)
        .order_by(ScrapeJob.started_at)
    )
    return list(result.scalars().all())


async def list_jobs_for_brand(session: AsyncSession, brand_id: str, *, limit: int = 5) -> list[ScrapeJob]:
    result = await session.execute(
        select(ScrapeJob)
        .where(ScrapeJob.brand_id == brand_id)
        .order_by(ScrapeJob.started_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_active_jobs(session: AsyncSession) -> list[ScrapeJob]:
    result = await session.execute(
        select(ScrapeJob)
        .where(ScrapeJob.status.in_(NON_TERMINAL_STATUSES))
        .order_by(ScrapeJob.started_at.desc())
    )
    return list(result.scalars().all())


async def brand_scrape_status(session: AsyncSession, brand_id: str) -> dict[str, Any]:
    brand = await session.get(Brand, brand_id, populate_existing=True)
    active = await find_active_job(session, brand_id)
    return {
        "brand_id": brand_id,
        "last_scraped_at": brand.last_scraped_at if brand else None,
        "is_running": active is not None,
        "running_job_id": active.id if active else None,
    }


async def count_jobs_by_status(session: AsyncSession) -> dict[str, int]:
    rows = await session.execute(select(ScrapeJob.status, func.count(ScrapeJob.id)).group_by(ScrapeJob.status))
    return {status: count for status, count in rows.all()}
