from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.db import get_session
from trendradar.services.common import api_error
from trendradar.services.webhook_receiver import authenticate, parse_callback, process_callback
from trendradar.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

SessionDep = Depends(get_session)


@router.post("/apify")
async def apify_webhook(request: Request, session: AsyncSession = SessionDep):
    """Provider run callback. The signature is checked over the raw body."""
    settings = get_settings()
    body = await request.body()
    await authenticate(body, request.headers.get(settings.webhook_signature_header))

    try:
        callback = parse_callback(body)
    except ValueError as exc:
        logger.warning(f"[webhook] Bad payload: {exc}")
        raise api_error(status.HTTP_400_BAD_REQUEST, "invalid_request", "Invalid webhook payload", reason=str(exc))

    logger.info(
        f"[webhook] Received run={callback.run_id} status={callback.status} "
        f"dataset={callback.dataset_id} job={callback.job_id}"
    )

    if settings.celery_enabled and callback.job_id:
        from trendradar.worker.tasks import process_scrape_callback

        async_result = process_scrape_callback.delay(callback.to_dict())
        return {"success": True, "message": "Webhook queued", "job_id": callback.job_id, "celery_id": async_result.id}

    return await process_callback(session, callback)


@router.get("/apify")
async def apify_webhook_info():
    return {
        "endpoint": "/api/webhooks/apify",
        "method": "POST",
        "signature_header": get_settings().webhook_signature_header,
        "payload": {
            "eventType": "ACTOR.RUN.SUCCEEDED | ACTOR.RUN.FAILED | ACTOR.RUN.ABORTED | ACTOR.RUN.TIMED_OUT",
            "resource": {"id": "run id", "status": "SUCCEEDED", "defaultDatasetId": "dataset id"},
            "jobId": "optional scrape job id",
            "brandId": "optional brand id",
        },
    }
