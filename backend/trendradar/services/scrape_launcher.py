from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.integrations.apify_client import build_run_webhooks, start_actor_run
from trendradar.models import Brand, CompetitorAccount
from trendradar.services import job_store
from trendradar.services.common import api_error, validate_brand_id
from trendradar.services.notify import notify_error
from trendradar.settings import get_settings

logger = logging.getLogger(__name__)


@dataclass
class LaunchResult:
    job_id: str
    accounts_to_scrape: int


def _profile_url(handle: str) -> str:
    slug = handle.strip().lstrip("@")
    return f"https://www.tiktok.com/@{slug}"


def _describe(exc: HTTPException) -> str:
    detail = exc.detail
    if isinstance(detail, dict):
        parts = [str(detail.get("error") or "dispatch failed")]
        for key in ("status", "reason", "body"):
            if detail.get(key):
                parts.append(f"{key}={detail[key]}")
        return "; ".join(parts)
    return str(detail)


async def active_account_handles(session: AsyncSession, brand_id: str) -> list[str]:
    result = await session.execute(
        select(CompetitorAccount.handle)
        .where(CompetitorAccount.brand_id == brand_id, CompetitorAccount.is_active.is_(True))
        .order_by(CompetitorAccount.handle)
    )
    return [row[0] for row in result.all()]


async def dispatch_scrape(handles: list[str], *, job_id: str, brand_id: str) -> dict:
    """Start the provider run. Returns the provider run object."""
    settings = get_settings()
    payload = {
        "profiles": [_profile_url(h) for h in handles],
        "resultsPerPage": settings.scrape_results_per_page,
        "shouldDownloadVideos": False,
        "shouldDownloadCovers": False,
    }
    webhooks = None
    if settings.webhook_url:
        webhooks = build_run_webhooks(settings.webhook_url, job_id=job_id, brand_id=brand_id)
    else:
        logger.warning("[launcher] PUBLIC_BASE_URL not set; run will not call back and relies on the sweep")
    return await start_actor_run(settings.apify_actor_id, payload, webhooks=webhooks)


async def launch_scrape(session: AsyncSession, brand_id: str) -> LaunchResult:
    """Validate, guard against a concurrent job, create the job and dispatch.

    Returns as soon as the provider has accepted the run; completion arrives
    later through the webhook.
    """
    brand_id = validate_brand_id(brand_id)

    brand = await session.get(Brand, brand_id)
    if not brand:
        raise api_error(status.HTTP_404_NOT_FOUND, "brand_not_found", "Brand not found")

    handles = await active_account_handles(session, brand_id)
    if not handles:
        raise api_error(status.HTTP_400_BAD_REQUEST, "no_active_accounts", "No active accounts to scrape")

    existing = await job_store.find_active_job(session, brand_id)
    if existing:
        raise api_error(
            status.HTTP_409_CONFLICT,
            "job_already_running",
            "A scrape job is already running for this brand",
            job_id=existing.id,
        )

    try:
        job = await job_store.create_job(session, brand_id)
        job_id = job.id
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        logger.info(f"[launcher] Lost race creating job for brand {brand_id}")
        raise api_error(
            status.HTTP_409_CONFLICT,
            "job_already_running",
            "A scrape job is already running for this brand",
        ) from exc

    try:
        run = await dispatch_scrape(handles, job_id=job_id, brand_id=brand_id)
    except (HTTPException, ValueError) as exc:
        message = _describe(exc) if isinstance(exc, HTTPException) else f"Invalid provider response: {exc}"
        await job_store.mark_failed(session, job_id, message)
        await session.commit()
        logger.error(f"[launcher] Dispatch failed for job {job_id}: {message}")
        await notify_error("Scrape dispatch failed", message, job_id=job_id, brand_id=brand_id)
        raise api_error(
            status.HTTP_502_BAD_GATEWAY,
            "dispatch_failed",
            "Failed to start scraper",
            job_id=job_id,
            reason=message,
        ) from exc

    # A very fast callback may already have finished the job; mark_running then no-ops.
    await job_store.mark_running(session, job_id, provider_run_id=run.get("id"))
    await session.commit()

    logger.info(f"[launcher] Started job {job_id} for brand {brand_id} ({len(handles)} accounts, run {run.get('id')})")
    return LaunchResult(job_id=job_id, accounts_to_scrape=len(handles))
