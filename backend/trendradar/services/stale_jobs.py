"""
Stale job sweep: fails scrape jobs whose provider never called back.

Stale criteria:
- status in (pending, running) and started_at < now - SCRAPE_JOB_TIMEOUT_MINUTES
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.services import job_store
from trendradar.services.notify import notify_warn
from trendradar.settings import get_settings

logger = logging.getLogger(__name__)


def _age_minutes(started_at: datetime, now: datetime) -> float:
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    return (now - started_at).total_seconds() / 60


async def run_sweep(session: AsyncSession, *, dry_run: bool = False) -> dict[str, Any]:
    """Mark stale jobs as failed.

    Returns a report dict.
    """
    settings = get_settings()
    timeout = settings.scrape_job_timeout_minutes
    now = datetime.now(timezone.utc)

    stale = await job_store.list_stale_jobs(session, timedelta(minutes=timeout))

    report_items: list[dict] = []
    for job in stale:
        age_minutes = _age_minutes(job.started_at, now)
        item = {
            "job_id": job.id,
            "brand_id": job.brand_id,
            "old_status": job.status,
            "age_minutes": round(age_minutes),
            "error_message": f"timeout: no callback within {timeout} minutes",
        }
        if dry_run:
            item["action"] = "would_mark_failed"
        elif await job_store.mark_failed(session, job.id, item["error_message"]):
            item["action"] = "marked_failed"
        else:
            # finished by a callback between the select and the update
            item["action"] = "skipped"
        report_items.append(item)

    failed = [it for it in report_items if it["action"] == "marked_failed"]
    if not dry_run:
        await session.commit()
        if failed:
            summary = ", ".join(f"{it['job_id']}({it['old_status']} {it['age_minutes']}m)" for it in failed[:10])
            await notify_warn(f"Sweep: {len(failed)} stale scrape jobs failed", summary)

    logger.info(f"[sweep] Found {len(report_items)} stale jobs (dry_run={dry_run})")

    return {
        "stale_count": len(report_items),
        "failed_count": len(failed),
        "items": report_items,
        "dry_run": dry_run,
        "run_at": now.isoformat(),
        "timeout_minutes": timeout,
    }


async def get_health(session: AsyncSession) -> dict[str, Any]:
    """Return job pipeline health overview."""
    settings = get_settings()
    counts = await job_store.count_jobs_by_status(session)
    stale = await job_store.list_stale_jobs(session, timedelta(minutes=settings.scrape_job_timeout_minutes))
    return {
        "counts": counts,
        "stale": len(stale),
        "scheduler_enabled": settings.scheduler_enabled,
        "celery_enabled": settings.celery_enabled,
        "webhook_signed": bool(settings.apify_webhook_secret),
        "webhook_url": settings.webhook_url,
    }
