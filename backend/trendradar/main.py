from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .routes_analyze import router as analyze_router
from .routes_ops import router as ops_router
from .routes_scrape import router as scrape_router
from .routes_videos import router as videos_router
from .routes_webhooks import router as webhooks_router
from .settings import get_settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("trendradar")

app = FastAPI(title="TrendRadar")
settings = get_settings()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url)
    return PlainTextResponse("Internal Server Error", status_code=500)


@app.get("/ping")
async def ping():
    return {"status": "ok"}


app.include_router(scrape_router)
app.include_router(webhooks_router)
app.include_router(analyze_router)
app.include_router(videos_router)
app.include_router(ops_router)


@app.on_event("startup")
async def startup_event():
    """Start the stale job sweep scheduler."""
    from trendradar.services.scheduler import scheduler_service
    if settings.scheduler_enabled:
        scheduler_service.configure(settings.async_database_url)
    scheduler_service.start()


@app.on_event("shutdown")
async def shutdown_event():
    from trendradar.services.scheduler import scheduler_service
    scheduler_service.stop()
