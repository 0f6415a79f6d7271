"""
Operations endpoints: stale job sweep, health, scheduler jobs.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.db import get_session
from trendradar.services.scheduler import scheduler_service
from trendradar.services.stale_jobs import get_health, run_sweep

router = APIRouter(prefix="/api/ops", tags=["ops"])

SessionDep = Depends(get_session)


@router.post("/sweep")
async def sweep_endpoint(
    dry_run: bool = Query(default=True),
    session: AsyncSession = SessionDep,
):
    """Fail scrape jobs that never got a provider callback."""
    return await run_sweep(session, dry_run=dry_run)


@router.get("/health")
async def health_endpoint(session: AsyncSession = SessionDep):
    health = await get_health(session)
    health["scheduler_running"] = scheduler_service.is_running()
    health["scheduler_jobs"] = scheduler_service.get_jobs()
    return health
