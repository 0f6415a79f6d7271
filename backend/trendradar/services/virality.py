"""
Virality Score Calculator

Scores a video by weighted engagement per view:
- comments count once
- shares count double (a share puts the video in front of a new audience)
- saves count 1.5x

The ratio is scaled by 1000 so typical scores land in a readable 0-5 range.
A video with no views scores 0.
"""
from __future__ import annotations

from typing import Protocol

SHARE_WEIGHT = 2.0
SAVE_WEIGHT = 1.5
SCORE_SCALE = 1000


class VideoLike(Protocol):
    """Protocol for video-like objects with engagement counters."""
    views: int | None
    likes: int | None
    comments: int | None
    shares: int | None


def calculate_virality_score(
    views: int | None,
    comments: int | None,
    shares: int | None,
    saves: int | None = 0,
) -> float:
    if not views or views <= 0:
        return 0.0
    engagement = (comments or 0) + (shares or 0) * SHARE_WEIGHT + (saves or 0) * SAVE_WEIGHT
    return round(engagement / views * SCORE_SCALE, 2)


def calculate_engagement_rate(video: VideoLike) -> float:
    """(likes + comments + shares) / views as a percentage."""
    views = video.views or 0
    if views <= 0:
        return 0.0
    return ((video.likes or 0) + (video.comments or 0) + (video.shares or 0)) / views * 100
