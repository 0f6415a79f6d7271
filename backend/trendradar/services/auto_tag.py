from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.models import CompetitorAccount, CompetitorVideo
from trendradar.schemas import AutoTagResult, AutoTagSample, AutoTagStatus, AutoTagVariety
from trendradar.services.classifier import (
    DEFAULT_CONFIG,
    ClassifierConfig,
    detect_emotion,
    detect_format,
    detect_hook_type,
)
from trendradar.services.common import brand_accounts

logger = logging.getLogger(__name__)

MAX_SAMPLES = 5

_untagged = or_(
    CompetitorVideo.hook_type.is_(None),
    CompetitorVideo.content_format.is_(None),
    CompetitorVideo.emotional_trigger.is_(None),
)


def _brand_videos(brand_id: str):
    return (
        select(CompetitorVideo)
        .join(CompetitorAccount, CompetitorVideo.account_id == CompetitorAccount.id)
        .where(CompetitorAccount.brand_id == brand_id)
    )


def _unique(values) -> list[str]:
    return list(dict.fromkeys(values))


async def retag_brand_videos(
    session: AsyncSession,
    brand_id: str,
    *,
    force: bool = False,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> AutoTagResult:
    """Re-run the classifier over a brand's videos.

    Without ``force`` only videos with a missing label are touched, and labels
    already present on them are kept.
    """
    if not await brand_accounts(session, brand_id):
        return AutoTagResult(videos_tagged=0, message="No accounts found for this brand")

    stmt = _brand_videos(brand_id).order_by(CompetitorVideo.id)
    if not force:
        stmt = stmt.where(_untagged)
    videos = list((await session.execute(stmt)).scalars().all())
    if not videos:
        return AutoTagResult(videos_tagged=0, message="All videos already tagged")

    now = datetime.now(timezone.utc)
    samples: list[AutoTagSample] = []
    for video in videos:
        caption = video.caption or ""
        labels = AutoTagSample(
            id=video.id,
            hook_type=detect_hook_type(caption, config) if force or not video.hook_type else video.hook_type,
            content_format=detect_format(caption, config) if force or not video.content_format else video.content_format,
            emotional_trigger=(
                detect_emotion(caption, config) if force or not video.emotional_trigger else video.emotional_trigger
            ),
        )
        await session.execute(
            update(CompetitorVideo)
            .where(CompetitorVideo.id == video.id)
            .values(
                hook_type=labels.hook_type,
                content_format=labels.content_format,
                emotional_trigger=labels.emotional_trigger,
                metrics_updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        samples.append(labels)
    await session.commit()

    logger.info(f"[autotag] Brand {brand_id}: tagged {len(samples)} videos (force={force})")
    return AutoTagResult(
        videos_tagged=len(samples),
        variety=AutoTagVariety(
            hook_types=_unique(s.hook_type for s in samples),
            formats=_unique(s.content_format for s in samples),
            emotions=_unique(s.emotional_trigger for s in samples),
        ),
        samples=samples[:MAX_SAMPLES],
    )


async def auto_tag_status(session: AsyncSession, brand_id: str) -> AutoTagStatus:
    base = (
        select(func.count(CompetitorVideo.id))
        .join(CompetitorAccount, CompetitorVideo.account_id == CompetitorAccount.id)
        .where(CompetitorAccount.brand_id == brand_id)
    )
    total = await session.scalar(base) or 0
    untagged = await session.scalar(base.where(_untagged)) or 0
    return AutoTagStatus(total_videos=total, tagged_videos=total - untagged, untagged_videos=untagged)
