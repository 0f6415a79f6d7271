"""
Celery tasks for scrape callbacks.

Main task: scrape.process_callback. Runs the webhook state machine in a
synchronous Celery worker context using asyncio.run().
"""
from __future__ import annotations

import asyncio
import logging

from trendradar.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


def _get_async_db_url() -> str:
    from trendradar.settings import get_settings
    return get_settings().async_database_url


async def _process_callback_async(payload: dict) -> dict:
    """Run process_callback with a fresh engine bound to this event loop."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from trendradar.services.webhook_receiver import ProviderCallback, process_callback

    engine = create_async_engine(_get_async_db_url(), echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_factory() as session:
            return await process_callback(session, ProviderCallback(**payload))
    finally:
        await engine.dispose()


@celery_app.task(
    bind=True,
    name="scrape.process_callback",
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
    queue="scrape",
)
def process_scrape_callback(self, payload: dict) -> dict:
    """Celery task: apply one verified provider callback.

    Retries are safe, job transitions only apply to active jobs.
    """
    job_id = payload.get("job_id")
    logger.info(f"[worker] Callback for job {job_id} (celery_id={self.request.id}, attempt={self.request.retries + 1})")
    try:
        result = asyncio.run(_process_callback_async(payload))
    except Exception as e:
        logger.error(f"[worker] Callback for job {job_id} error (attempt {self.request.retries + 1}): {e}")
        raise
    logger.info(f"[worker] Callback for job {job_id} done: {result.get('message')}")
    return result
