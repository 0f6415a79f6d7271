"""
Celery application for provider callback processing.

Broker/backend: Redis (REDIS_URL env).
Tasks named scrape.* go to the "scrape" queue; run a worker with
  celery -A trendradar.worker.celery_app worker -Q scrape
"""
from celery import Celery

from trendradar.settings import get_settings

settings = get_settings()

celery_app = Celery(
    "trendradar",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["trendradar.worker.tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_time_limit=15 * 60,
    task_soft_time_limit=12 * 60,
    task_default_queue="scrape",
    task_routes={"scrape.*": {"queue": "scrape"}},
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    result_expires=24 * 60 * 60,
    timezone="UTC",
    enable_utc=True,
    # visibility_timeout must stay above task_time_limit or long imports get redelivered
    broker_transport_options={"visibility_timeout": 30 * 60},
)
