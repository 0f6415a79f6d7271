from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.db import get_session
from trendradar.schemas import (
    AutoTagRequest,
    AutoTagResult,
    AutoTagStatus,
    HashtagPattern,
    PatternSynthesis,
    SuggestionsRead,
)
from trendradar.services.auto_tag import auto_tag_status, retag_brand_videos
from trendradar.services.common import validate_brand_id
from trendradar.services.patterns import hashtag_stats, load_brand_videos, synthesize_for_brand
from trendradar.services.suggestions import suggestions_for_brand

router = APIRouter(prefix="/api/analyze", tags=["analyze"])

SessionDep = Depends(get_session)


@router.get("/patterns", response_model=PatternSynthesis)
async def brand_patterns(
    brand_id: str | None = Query(default=None),
    session: AsyncSession = SessionDep,
):
    """Cross-video pattern synthesis for a brand, computed on request."""
    return await synthesize_for_brand(session, validate_brand_id(brand_id))


@router.get("/hashtags", response_model=list[HashtagPattern])
async def brand_hashtags(
    brand_id: str | None = Query(default=None),
    session: AsyncSession = SessionDep,
):
    videos = await load_brand_videos(session, validate_brand_id(brand_id))
    return hashtag_stats(videos)


@router.post("/auto-tag", response_model=AutoTagResult)
async def auto_tag(data: AutoTagRequest, session: AsyncSession = SessionDep):
    return await retag_brand_videos(session, validate_brand_id(data.brand_id), force=data.force)


@router.get("/auto-tag", response_model=AutoTagStatus)
async def auto_tag_progress(
    brand_id: str | None = Query(default=None),
    session: AsyncSession = SessionDep,
):
    return await auto_tag_status(session, validate_brand_id(brand_id))


@router.get("/suggestions", response_model=SuggestionsRead)
async def brand_suggestions(
    brand_id: str | None = Query(default=None),
    session: AsyncSession = SessionDep,
):
    """Template-based content suggestions from the brand's competitor videos."""
    return await suggestions_for_brand(session, validate_brand_id(brand_id))
