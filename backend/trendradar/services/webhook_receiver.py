"""
Provider callback handling.

The provider calls back once a run reaches a terminal state. The callback
carries the run status, the dataset id and, when the run was started by the
launcher, the {jobId, brandId} pair. Everything needed to finish the job is
read from the database, so any instance can take the callback.

Duplicate deliveries are harmless: the job transition is conditional on the
job still being active, and only the delivery that wins it imports data.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.integrations.apify_client import fetch_dataset_items
from trendradar.models import ScrapeJobStatus
from trendradar.services import job_store
from trendradar.services.common import api_error, brand_accounts
from trendradar.services.ingestion import import_items, pick
from trendradar.services.notify import notify_error, notify_warn
from trendradar.settings import get_settings

logger = logging.getLogger(__name__)

PROVIDER_SUCCESS_STATUSES = frozenset({"SUCCEEDED"})
PROVIDER_FAILURE_STATUSES = frozenset({"FAILED", "ABORTED", "TIMED-OUT", "TIMED_OUT"})

CALLBACK_SOURCES = {
    "run_id": (("resource", "id"), ("eventData", "actorRunId")),
    "status": (("resource", "status"), ("eventData", "status")),
    "dataset_id": (("resource", "defaultDatasetId"),),
    "job_id": (("jobId",),),
    "brand_id": (("brandId",),),
    "event_type": (("eventType",),),
}


@dataclass
class ProviderCallback:
    run_id: str | None = None
    status: str | None = None
    dataset_id: str | None = None
    job_id: str | None = None
    brand_id: str | None = None
    event_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    if not signature:
        return False
    expected = compute_signature(body, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().lower().encode("utf-8"))


async def authenticate(body: bytes, signature: str | None) -> None:
    """Reject unsigned or mis-signed callbacks when a secret is configured.

    Without a secret every callback is trusted (network-level trust only).
    """
    secret = get_settings().apify_webhook_secret
    if not secret:
        logger.debug("[webhook] No APIFY_WEBHOOK_SECRET configured, skipping signature check")
        return
    if not signature:
        logger.warning("[webhook] rejected: missing signature header")
        await notify_warn("Webhook rejected: missing signature")
        raise api_error(status.HTTP_401_UNAUTHORIZED, "unauthorized", "Missing webhook signature")
    if not verify_signature(body, signature, secret):
        logger.warning("[webhook] rejected: signature mismatch")
        await notify_warn("Webhook rejected: invalid signature")
        raise api_error(status.HTTP_401_UNAUTHORIZED, "unauthorized", "Invalid webhook signature")


def parse_callback(body: bytes) -> ProviderCallback:
    try:
        payload = json.loads(body or b"null")
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("payload must be a JSON object")

    def _text(key: str) -> str | None:
        value = pick(payload, CALLBACK_SOURCES[key])
        return str(value) if value is not None else None

    return ProviderCallback(
        run_id=_text("run_id"),
        status=_text("status"),
        dataset_id=_text("dataset_id"),
        job_id=_text("job_id"),
        brand_id=_text("brand_id"),
        event_type=_text("event_type"),
    )


def map_provider_status(provider_status: str | None) -> ScrapeJobStatus:
    normalized = (provider_status or "").upper()
    if normalized in PROVIDER_SUCCESS_STATUSES:
        return ScrapeJobStatus.completed
    if normalized in PROVIDER_FAILURE_STATUSES:
        return ScrapeJobStatus.failed
    return ScrapeJobStatus.running


def _ack(message: str, **extra: Any) -> dict[str, Any]:
    return {"success": True, "message": message, **extra}


async def process_callback(session: AsyncSession, callback: ProviderCallback) -> dict[str, Any]:
    """Drive the job state machine from one provider callback."""
    if not callback.job_id:
        logger.info(f"[webhook] Callback without job id (run={callback.run_id}, status={callback.status})")
        return _ack(
            "Webhook received",
            received={"run_id": callback.run_id, "status": callback.status, "dataset_id": callback.dataset_id},
        )

    job = await job_store.get_job(session, callback.job_id)
    if not job:
        logger.warning(f"[webhook] Unknown job {callback.job_id} (run={callback.run_id})")
        return _ack("Job not found", job_id=callback.job_id)

    job_id = job.id
    brand_id = job.brand_id
    if callback.brand_id and callback.brand_id.lower() != brand_id.lower():
        logger.warning(f"[webhook] Brand mismatch for job {job_id}: callback={callback.brand_id} stored={brand_id}")
        return _ack("Brand mismatch, ignored", job_id=job_id)

    if job.is_terminal:
        logger.info(f"[webhook] Duplicate callback for finished job {job_id} ({job.status})")
        return _ack("Job already finished", job_id=job_id, status=job.status, duplicate=True)

    target = map_provider_status(callback.status)

    if target is ScrapeJobStatus.failed:
        message = f"Apify run {callback.status}"
        applied = await job_store.mark_failed(session, job_id, message)
        await session.commit()
        if not applied:
            return _ack("Job already finished", job_id=job_id, duplicate=True)
        logger.warning(f"[webhook] Job {job_id} failed: {message}")
        await notify_error("Scrape job failed", message, job_id=job_id, brand_id=brand_id)
        return _ack("Job updated", job_id=job_id, status=ScrapeJobStatus.failed.value)

    if target is ScrapeJobStatus.running:
        await job_store.mark_running(session, job_id, provider_run_id=callback.run_id)
        await session.commit()
        return _ack("Job still running", job_id=job_id, status=ScrapeJobStatus.running.value)

    settings = get_settings()
    items: list[dict] = []
    if callback.dataset_id:
        try:
            items = await fetch_dataset_items(callback.dataset_id, limit=settings.scrape_dataset_limit)
        except HTTPException as exc:
            message = f"Dataset fetch failed: {exc.detail}"
            applied = await job_store.mark_failed(session, job_id, message)
            await session.commit()
            if applied:
                logger.error(f"[webhook] Job {job_id}: {message}")
                await notify_error("Scrape dataset fetch failed", message, job_id=job_id, brand_id=brand_id)
            return _ack("Dataset fetch failed", job_id=job_id, status=ScrapeJobStatus.failed.value)
        logger.info(f"[webhook] Fetched {len(items)} items from dataset {callback.dataset_id}")

    applied = await job_store.mark_completed(session, job_id)
    if not applied:
        await session.rollback()
        return _ack("Job already finished", job_id=job_id, duplicate=True)
    await job_store.touch_brand_scraped(session, brand_id)
    await session.commit()

    accounts = await brand_accounts(session, brand_id)
    result = await import_items(session, items, accounts)
    await job_store.record_counts(
        session, job_id, accounts_processed=len(accounts), videos_found=result.accepted
    )
    await session.commit()

    logger.info(f"[webhook] Job {job_id} completed: {result.accepted} videos imported")
    return _ack(
        "Job updated",
        job_id=job_id,
        status=ScrapeJobStatus.completed.value,
        videos_found=result.accepted,
        dropped=result.dropped,
        failed=result.failed,
    )
