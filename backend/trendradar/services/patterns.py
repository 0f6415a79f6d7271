"""
Pattern synthesis

Cross-video analytics for one brand, recomputed from the current video rows
on every request:
- per-dimension insights (hook / format / emotion) with a rising/stable/declining trend
- hashtag insights (tags used by at least two videos)
- top hook+format+emotion combinations
- best posting days/hours and a posting-frequency suggestion
- templated recommendations and a one-line summary

Trend: a group's videos are split by discovered_at into the most recent half
and the rest. Recent average >= 1.2x older is rising, <= 0.8x is declining.
These are heuristics, not forecasts.
"""
from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Iterable, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.models import CompetitorAccount, CompetitorVideo
from trendradar.schemas import (
    BestExample,
    Combination,
    CrossVideoPatterns,
    DayInsight,
    EmergingTrends,
    HashtagPattern,
    HourInsight,
    PatternInsight,
    PatternSynthesis,
    PostingInsights,
    TrendItem,
    WhatsWorkingNow,
)
from trendradar.services.classifier import extract_hashtags
from trendradar.services.virality import calculate_engagement_rate

logger = logging.getLogger(__name__)

RISING_RATIO = 1.2
DECLINING_RATIO = 0.8
MIN_HASHTAG_VIDEOS = 2
MAX_HASHTAGS = 20
MIN_COMBINATION_VIDEOS = 2
MAX_COMBINATIONS = 5
MAX_TREND_ITEMS = 5
MAX_BEST_HOURS = 5
MAX_RECOMMENDATIONS = 5
EMPTY_SUMMARY = "No videos to analyze yet"
NO_FREQUENCY = "N/A"

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

DIMENSIONS = {
    "hook": "hook_type",
    "format": "content_format",
    "emotion": "emotional_trigger",
}


class VideoRecord(Protocol):
    external_id: str
    caption: str | None
    views: int | None
    likes: int | None
    comments: int | None
    shares: int | None
    virality_score: float | None
    hook_type: str | None
    content_format: str | None
    emotional_trigger: str | None
    discovered_at: datetime


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _score(video: VideoRecord) -> float:
    return video.virality_score or 0.0


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _at_least(value: float, threshold: float) -> bool:
    return value > threshold or math.isclose(value, threshold, rel_tol=1e-9, abs_tol=1e-12)


def _at_most(value: float, threshold: float) -> bool:
    return value < threshold or math.isclose(value, threshold, rel_tol=1e-9, abs_tol=1e-12)


def split_recent(videos: Sequence[VideoRecord]) -> tuple[list[VideoRecord], list[VideoRecord]]:
    """Most recent half (at least one video) and the remaining older videos."""
    by_date = sorted(videos, key=lambda v: _utc(v.discovered_at), reverse=True)
    midpoint = len(by_date) // 2 or 1
    return by_date[:midpoint], by_date[midpoint:]


def classify_trend(recent_avg: float, older_avg: float) -> str:
    if math.isclose(recent_avg, older_avg, rel_tol=1e-9, abs_tol=1e-12):
        return "stable"
    if _at_least(recent_avg, older_avg * RISING_RATIO):
        return "rising"
    if _at_most(recent_avg, older_avg * DECLINING_RATIO):
        return "declining"
    return "stable"


def trend_for(videos: Sequence[VideoRecord]) -> tuple[str, float]:
    """Trend direction and measured percent change for one group."""
    recent, older = split_recent(videos)
    recent_avg = _mean([_score(v) for v in recent])
    older_avg = _mean([_score(v) for v in older]) if older else recent_avg
    if older_avg > 0:
        change = (recent_avg - older_avg) / older_avg * 100
    else:
        change = 100.0 if recent_avg > 0 else 0.0
    return classify_trend(recent_avg, older_avg), round(change, 1)


def group_by(videos: Iterable[VideoRecord], dimension: str) -> list[PatternInsight]:
    """One insight per distinct non-null value of ``dimension``, best first."""
    attribute = DIMENSIONS.get(dimension, dimension)
    groups: dict[str, list[VideoRecord]] = defaultdict(list)
    for video in videos:
        value = getattr(video, attribute)
        if value:
            groups[value].append(video)

    insights: list[PatternInsight] = []
    for name, members in groups.items():
        best = max(members, key=_score)
        trend, change = trend_for(members)
        insights.append(PatternInsight(
            name=name,
            count=len(members),
            avg_virality=round(_mean([_score(v) for v in members]), 2),
            avg_views=round(_mean([v.views or 0 for v in members])),
            avg_engagement=round(_mean([calculate_engagement_rate(v) for v in members]), 2),
            trend=trend,
            change_percent=change,
            best_example=BestExample(
                video_id=best.external_id,
                caption=(best.caption or "")[:100] or "No caption",
                virality_score=_score(best),
            ),
        ))
    insights.sort(key=lambda i: i.avg_virality, reverse=True)
    return insights


def hashtag_stats(videos: Iterable[VideoRecord]) -> list[HashtagPattern]:
    """All hashtags used by at least two videos, best average virality first."""
    buckets: dict[str, list[VideoRecord]] = defaultdict(list)
    for video in videos:
        for tag in extract_hashtags(video.caption):
            buckets[tag].append(video)

    patterns = [
        HashtagPattern(
            hashtag=tag,
            count=len(members),
            avg_virality=round(_mean([_score(v) for v in members]), 2),
            avg_views=round(_mean([v.views or 0 for v in members]), 2),
            avg_engagement=round(_mean([calculate_engagement_rate(v) for v in members]), 2),
            total_views=sum(v.views or 0 for v in members),
        )
        for tag, members in buckets.items()
        if len(members) >= MIN_HASHTAG_VIDEOS
    ]
    patterns.sort(key=lambda p: p.avg_virality, reverse=True)
    return patterns


def hashtag_insights(videos: Iterable[VideoRecord]) -> list[HashtagPattern]:
    return hashtag_stats(videos)[:MAX_HASHTAGS]


def emerging_trends(
    hook_patterns: Sequence[PatternInsight],
    format_patterns: Sequence[PatternInsight],
    emotion_patterns: Sequence[PatternInsight],
) -> EmergingTrends:
    buckets: dict[str, list[TrendItem]] = {"rising": [], "declining": [], "stable": []}
    for trend_type, patterns in (("hook", hook_patterns), ("format", format_patterns), ("emotion", emotion_patterns)):
        for pattern in patterns:
            buckets[pattern.trend].append(TrendItem(
                type=trend_type,
                name=pattern.name,
                change_percent=pattern.change_percent,
                current_avg_virality=pattern.avg_virality,
            ))

    return EmergingTrends(
        rising=sorted(buckets["rising"], key=lambda t: t.current_avg_virality, reverse=True)[:MAX_TREND_ITEMS],
        declining=sorted(buckets["declining"], key=lambda t: t.current_avg_virality)[:MAX_TREND_ITEMS],
        stable=sorted(buckets["stable"], key=lambda t: t.current_avg_virality, reverse=True)[:MAX_TREND_ITEMS],
    )


def top_combinations(videos: Iterable[VideoRecord]) -> list[Combination]:
    groups: dict[tuple[str, str, str], list[VideoRecord]] = defaultdict(list)
    for video in videos:
        if video.hook_type and video.content_format and video.emotional_trigger:
            groups[(video.hook_type, video.content_format, video.emotional_trigger)].append(video)

    combos = [
        Combination(
            hook=hook,
            format=fmt,
            emotion=emotion,
            avg_virality=round(_mean([_score(v) for v in members]), 2),
            video_count=len(members),
        )
        for (hook, fmt, emotion), members in groups.items()
        if len(members) >= MIN_COMBINATION_VIDEOS
    ]
    combos.sort(key=lambda c: c.avg_virality, reverse=True)
    return combos[:MAX_COMBINATIONS]


def optimal_frequency(videos: Sequence[VideoRecord]) -> str:
    if not videos:
        return NO_FREQUENCY
    dates = sorted(_utc(v.discovered_at) for v in videos)
    span_days = max(1, math.ceil((dates[-1] - dates[0]).total_seconds() / 86400))
    per_day = len(videos) / span_days
    if per_day < 0.5:
        return "3-4 per week"
    if per_day < 1:
        return "1 per day"
    if per_day < 2:
        return "1-2 per day"
    return "2-3 per day"


def _bucket(videos: Iterable[VideoRecord], key: Callable[[datetime], object]) -> dict[object, list[float]]:
    buckets: dict[object, list[float]] = defaultdict(list)
    for video in videos:
        buckets[key(_utc(video.discovered_at))].append(_score(video))
    return buckets


def posting_insights(videos: Sequence[VideoRecord]) -> PostingInsights:
    if not videos:
        return PostingInsights()
    days = [
        DayInsight(day=DAY_NAMES[day], avg_virality=round(_mean(scores), 2), video_count=len(scores))
        for day, scores in _bucket(videos, lambda dt: dt.weekday()).items()
    ]
    hours = [
        HourInsight(hour=hour, avg_virality=round(_mean(scores), 2), video_count=len(scores))
        for hour, scores in _bucket(videos, lambda dt: dt.hour).items()
    ]
    days.sort(key=lambda d: d.avg_virality, reverse=True)
    hours.sort(key=lambda h: h.avg_virality, reverse=True)
    return PostingInsights(
        best_days=days,
        best_hours=hours[:MAX_BEST_HOURS],
        optimal_frequency=optimal_frequency(videos),
    )


def recommendations(
    hook_patterns: Sequence[PatternInsight],
    format_patterns: Sequence[PatternInsight],
    emotion_patterns: Sequence[PatternInsight],
    trends: EmergingTrends,
) -> list[str]:
    """Fixed order: top hook, top format, top rising trend, top emotion, top declining trend."""
    out: list[str] = []
    if hook_patterns:
        top = hook_patterns[0]
        out.append(f'Focus on "{top.name}" hooks - they achieve {top.avg_virality:.1f}x average virality')
    if format_patterns:
        top = format_patterns[0]
        out.append(f'Use "{top.name}" format more - it generates {top.avg_views:,} average views')
    if trends.rising:
        top = trends.rising[0]
        out.append(f'Capitalize on rising trend: "{top.name}" ({top.type}) is gaining momentum')
    if emotion_patterns:
        top = emotion_patterns[0]
        out.append(f'Evoke "{top.name}" in your content - it drives {top.avg_engagement:.1f}% engagement')
    if trends.declining:
        top = trends.declining[0]
        out.append(f'Consider pivoting from "{top.name}" - performance is declining')
    return out[:MAX_RECOMMENDATIONS]


def summarize(
    videos: Sequence[VideoRecord],
    hook_patterns: Sequence[PatternInsight],
    format_patterns: Sequence[PatternInsight],
    trends: EmergingTrends,
) -> str:
    if not videos:
        return EMPTY_SUMMARY
    top_hook = hook_patterns[0].name if hook_patterns else "varied"
    top_format = format_patterns[0].name if format_patterns else "mixed"
    avg = _mean([_score(v) for v in videos])
    summary = (
        f"Analyzed {len(videos)} videos. Top performing pattern: {top_hook} hooks with {top_format} format. "
        f"Average virality: {avg:.1f}."
    )
    if trends.rising:
        summary += f" Rising trend: {trends.rising[0].name}."
    return summary


def empty_synthesis(brand_id: str) -> PatternSynthesis:
    return PatternSynthesis(
        brand_id=brand_id,
        total_videos_analyzed=0,
        generated_at=datetime.now(timezone.utc),
        cross_video_patterns=CrossVideoPatterns(),
        emerging_trends=EmergingTrends(),
        whats_working_now=WhatsWorkingNow(summary=EMPTY_SUMMARY),
        posting_insights=PostingInsights(optimal_frequency=NO_FREQUENCY),
    )


def synthesize(brand_id: str, videos: Sequence[VideoRecord]) -> PatternSynthesis:
    if not videos:
        return empty_synthesis(brand_id)

    hook_patterns = group_by(videos, "hook")
    format_patterns = group_by(videos, "format")
    emotion_patterns = group_by(videos, "emotion")
    trends = emerging_trends(hook_patterns, format_patterns, emotion_patterns)

    return PatternSynthesis(
        brand_id=brand_id,
        total_videos_analyzed=len(videos),
        generated_at=datetime.now(timezone.utc),
        cross_video_patterns=CrossVideoPatterns(
            hook_patterns=hook_patterns,
            format_patterns=format_patterns,
            emotion_patterns=emotion_patterns,
            hashtag_patterns=hashtag_insights(videos),
        ),
        emerging_trends=trends,
        whats_working_now=WhatsWorkingNow(
            summary=summarize(videos, hook_patterns, format_patterns, trends),
            top_performing_combinations=top_combinations(videos),
            recommendations=recommendations(hook_patterns, format_patterns, emotion_patterns, trends),
        ),
        posting_insights=posting_insights(videos),
    )


async def load_brand_videos(session: AsyncSession, brand_id: str) -> list[CompetitorVideo]:
    result = await session.execute(
        select(CompetitorVideo)
        .join(CompetitorAccount, CompetitorVideo.account_id == CompetitorAccount.id)
        .where(CompetitorAccount.brand_id == brand_id)
        .order_by(CompetitorVideo.discovered_at.desc())
    )
    return list(result.scalars().all())


async def synthesize_for_brand(session: AsyncSession, brand_id: str) -> PatternSynthesis:
    videos = await load_brand_videos(session, brand_id)
    synthesis = synthesize(brand_id, videos)
    logger.info(f"[patterns] Brand {brand_id}: analyzed {synthesis.total_videos_analyzed} videos")
    return synthesis
