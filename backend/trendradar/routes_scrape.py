from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.db import get_session
from trendradar.schemas import (
    LaunchRequest,
    LaunchResponse,
    RunningJobRead,
    RunningJobsRead,
    ScrapeJobRead,
    ScrapeStatusRead,
)
from trendradar.services import job_store
from trendradar.services.common import validate_brand_id
from trendradar.services.scrape_launcher import launch_scrape

router = APIRouter(prefix="/api/scrape", tags=["scrape"])

SessionDep = Depends(get_session)


@router.post("/run", response_model=LaunchResponse, status_code=status.HTTP_201_CREATED)
async def run_scrape(data: LaunchRequest, session: AsyncSession = SessionDep):
    """Start a competitor scrape for a brand. Completion arrives via webhook."""
    result = await launch_scrape(session, data.brand_id)
    return LaunchResponse(job_id=result.job_id, accounts_to_scrape=result.accounts_to_scrape)


@router.get("/status", response_model=ScrapeStatusRead | RunningJobsRead)
async def scrape_status(
    brand_id: str | None = Query(default=None),
    session: AsyncSession = SessionDep,
):
    if brand_id is None:
        jobs = await job_store.list_active_jobs(session)
        return RunningJobsRead(running_jobs=[RunningJobRead.model_validate(j) for j in jobs])
    brand_id = validate_brand_id(brand_id)
    return ScrapeStatusRead(**await job_store.brand_scrape_status(session, brand_id))


@router.get("/jobs", response_model=list[ScrapeJobRead])
async def scrape_jobs(
    brand_id: str | None = Query(default=None),
    limit: int = Query(default=5, ge=1, le=100),
    session: AsyncSession = SessionDep,
):
    brand_id = validate_brand_id(brand_id)
    jobs = await job_store.list_jobs_for_brand(session, brand_id, limit=limit)
    return [ScrapeJobRead.model_validate(j) for j in jobs]
