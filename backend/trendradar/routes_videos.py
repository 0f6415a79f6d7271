from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.db import get_session
from trendradar.models import CompetitorAccount, CompetitorVideo
from trendradar.schemas import VideoPage, VideoRead
from trendradar.services.common import validate_brand_id

router = APIRouter(prefix="/api/videos", tags=["videos"])

SessionDep = Depends(get_session)


@router.get("", response_model=VideoPage)
async def list_videos(
    brand_id: str | None = Query(default=None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = SessionDep,
):
    """Brand's competitor videos, most viral first."""
    brand_id = validate_brand_id(brand_id)
    brand_videos = (
        select(CompetitorVideo)
        .join(CompetitorAccount, CompetitorVideo.account_id == CompetitorAccount.id)
        .where(CompetitorAccount.brand_id == brand_id)
    )

    result = await session.execute(
        brand_videos
        .order_by(CompetitorVideo.virality_score.desc(), CompetitorVideo.id)
        .offset(offset)
        .limit(limit)
    )
    items = [VideoRead.model_validate(v) for v in result.scalars().all()]

    total = await session.scalar(select(func.count()).select_from(brand_videos.subquery()))

    return VideoPage(items=items, total=total or 0, limit=limit, offset=offset)
