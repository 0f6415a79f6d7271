"""
Content suggestions

Actionable, template-based suggestions built from a brand's competitor videos.
Generators run in a fixed order and each contributes zero or more items:
  1. content ideas (top performer, best repeated format)
  2. hook templates for the two best hook types
  3. hashtag strategy (tags used by at least two videos)
  4. posting schedule (best UTC hours and days)
  5. format recommendation (strong but rarely used format)

No model calls: every text is a fixed template filled with the brand's numbers.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.models import CompetitorVideo
from trendradar.schemas import ContentSuggestion, SuggestionBasis, SuggestionSummary, SuggestionsRead
from trendradar.services.classifier import extract_hashtags
from trendradar.services.common import brand_accounts
from trendradar.services.patterns import VideoRecord, posting_insights

logger = logging.getLogger(__name__)

MIN_FORMAT_VIDEOS = 2
MAX_HOOK_TEMPLATE_GROUPS = 2
MIN_STRATEGY_HASHTAG_VIDEOS = 2
MAX_STRATEGY_HASHTAGS = 10
MAX_POSTING_SLOTS = 3
HIGH_VIRALITY = 2.0
MAX_RARE_FORMAT_VIDEOS = 3
MAX_EXAMPLES = 3
MAX_QUICK_WINS = 3
EXAMPLE_CAPTION_CHARS = 50

NO_ACCOUNTS_OPPORTUNITY = "Add competitor accounts and run the scraper to get personalized suggestions"
NO_VIDEOS_OPPORTUNITY = "Run the scraper to collect competitor videos and get personalized suggestions"
DEFAULT_OPPORTUNITY = "Create content similar to top performers"
FALLBACK_HOOK = "Curiosity"

HOOK_DESCRIPTIONS = {
    "Question": "posing intriguing questions that viewers want answered",
    "Controversial": "presenting bold opinions or unexpected takes",
    "Story": "sharing personal experiences and narratives",
    "Tutorial": "teaching something valuable step-by-step",
    "Curiosity": "teasing something that makes viewers want to know more",
    "Shock": "surprising revelations or unexpected moments",
}
DEFAULT_HOOK_DESCRIPTION = "engaging content that captures attention"

HOOK_TEMPLATES: dict[str, tuple[str, ...]] = {
    "Question": (
        '"What if I told you... [surprising fact]?"',
        '"Did you know that [unexpected truth]?"',
        '"Why does no one talk about [hidden truth]?"',
        '"Can you guess what happens next?"',
    ),
    "Controversial": (
        '"Unpopular opinion: [bold statement]"',
        '"Everyone is wrong about [topic]"',
        '"This is going to upset some people, but..."',
        "\"[Industry] doesn't want you to know this\"",
    ),
    "Story": (
        '"So this happened to me today..."',
        "\"You won't believe what I just discovered\"",
        '"Let me tell you about the time..."',
        "\"I made a huge mistake and here's what I learned\"",
    ),
    "Tutorial": (
        "\"Here's how to [achieve result] in [time]\"",
        '"The secret to [desired outcome]..."',
        '"Stop doing [common mistake]. Do this instead."',
        '"3 steps to [achievement]"',
    ),
    "Curiosity": (
        '"Wait until the end..."',
        '"This changed everything for me"',
        "\"I've been doing this wrong my whole life\"",
        '"The thing about [topic] that nobody tells you"',
    ),
    "Shock": (
        "\"I can't believe this actually works\"",
        '"This blew my mind"',
        '"Wait for it..."',
        "\"[Number] out of [number] people don't know this\"",
    ),
}
DEFAULT_HOOK_TEMPLATES = (
    "Open with a strong statement",
    "Ask an engaging question",
    "Promise valuable information",
    "Create a curiosity gap",
)


def hook_description(hook_type: str | None) -> str:
    return HOOK_DESCRIPTIONS.get(hook_type or "", DEFAULT_HOOK_DESCRIPTION)


def hook_templates(hook_type: str | None) -> list[str]:
    return list(HOOK_TEMPLATES.get(hook_type or "", DEFAULT_HOOK_TEMPLATES))


def _score(video: VideoRecord) -> float:
    return video.virality_score or 0.0


def _avg(members: Sequence[VideoRecord]) -> float:
    return sum(_score(v) for v in members) / len(members)


def _example(video: VideoRecord) -> str:
    return (video.caption or "")[:EXAMPLE_CAPTION_CHARS] or "No caption"


def _slug(value: str) -> str:
    return value.lower().replace(" ", "-")


def _group(videos: Sequence[VideoRecord], attribute: str) -> dict[str, list[VideoRecord]]:
    """Videos per non-empty label, keeping first-seen label order and input order inside a group."""
    groups: dict[str, list[VideoRecord]] = defaultdict(list)
    for video in videos:
        value = getattr(video, attribute)
        if value:
            groups[value].append(video)
    return groups


def content_ideas(ranked: Sequence[VideoRecord]) -> list[ContentSuggestion]:
    """``ranked`` must be ordered by virality, best first."""
    if not ranked:
        return []
    top = ranked[0]
    hook = top.hook_type or FALLBACK_HOOK
    ideas = [ContentSuggestion(
        id="idea-top-performer",
        type="content_idea",
        title=f'Create a "{hook}" Style Video',
        description=(
            f"Your competitors' top-performing content uses {hook} hooks. "
            f"Create similar content focusing on {hook_description(hook)}. "
            f"The top performer achieved {_score(top):.1f}x virality."
        ),
        action_items=[
            f"Start with a {hook}-based opening line",
            f"Use {top.content_format or 'the same format'} as the top performer",
            f"Target the {top.emotional_trigger or 'same emotion'} emotional trigger",
            "Post during peak hours (see posting time suggestions)",
        ],
        based_on=SuggestionBasis(
            competitor_videos=len(ranked),
            top_performers=[_example(v) for v in ranked[:MAX_EXAMPLES]],
        ),
        expected_impact="high",
        difficulty="medium",
        tags=[top.hook_type or "hook", top.content_format or "format", top.emotional_trigger or "emotion"],
    )]

    best_format, best_avg = None, 0.0
    formats = _group(ranked, "content_format")
    for name, members in formats.items():
        avg = _avg(members)
        if len(members) >= MIN_FORMAT_VIDEOS and avg > best_avg:
            best_format, best_avg = name, avg

    if best_format:
        members = formats[best_format]
        ideas.append(ContentSuggestion(
            id=f"idea-format-{_slug(best_format)}",
            type="content_idea",
            title=f"Double Down on {best_format} Content",
            description=(
                f"{best_format} videos are performing {best_avg:.1f}x on average. "
                "This format resonates well with your target audience."
            ),
            action_items=[
                f"Create 2-3 {best_format} videos this week",
                "Test different hooks within this format",
                "Experiment with different emotional triggers",
                "Track performance to identify winning combinations",
            ],
            based_on=SuggestionBasis(
                competitor_videos=len(members),
                top_performers=[_example(v) for v in members[:MAX_EXAMPLES]],
            ),
            expected_impact="high",
            difficulty="easy",
            tags=[best_format, "format", "proven"],
        ))
    return ideas


def hook_template_suggestions(ranked: Sequence[VideoRecord]) -> list[ContentSuggestion]:
    groups = sorted(_group(ranked, "hook_type").items(), key=lambda kv: _avg(kv[1]), reverse=True)
    out = []
    for hook, members in groups[:MAX_HOOK_TEMPLATE_GROUPS]:
        avg = _avg(members)
        out.append(ContentSuggestion(
            id=f"hook-{_slug(hook)}",
            type="hook_template",
            title=f"{hook} Hook Templates",
            description=f"{hook} hooks achieve {avg:.1f}x average virality. Use these proven templates:",
            action_items=hook_templates(hook),
            based_on=SuggestionBasis(
                competitor_videos=len(members),
                top_performers=[_example(v) for v in members[:MAX_EXAMPLES]],
            ),
            expected_impact="high" if avg > HIGH_VIRALITY else "medium",
            difficulty="easy",
            tags=[hook, "hook", "template"],
        ))
    return out


def hashtag_strategy(ranked: Sequence[VideoRecord]) -> list[ContentSuggestion]:
    scores: dict[str, list[float]] = defaultdict(list)
    for video in ranked:
        for tag in extract_hashtags(video.caption):
            scores[tag].append(_score(video))

    top = sorted(
        ((tag, sum(values) / len(values)) for tag, values in scores.items()
         if len(values) >= MIN_STRATEGY_HASHTAG_VIDEOS),
        key=lambda pair: pair[1],
        reverse=True,
    )[:MAX_STRATEGY_HASHTAGS]
    if not top:
        return []

    tags = [tag for tag, _ in top]
    action_items = [f"Always include: {', '.join(tags[:3])}"]
    if tags[3:6]:
        action_items.append(f"Rotate between: {', '.join(tags[3:6])}")
    action_items += [
        "Use 3-5 hashtags per post for optimal reach",
        "Track which combinations work best for your content",
    ]
    return [ContentSuggestion(
        id="hashtag-strategy",
        type="hashtag_strategy",
        title="Optimized Hashtag Strategy",
        description=(
            "Based on competitor analysis, these hashtags drive the highest virality. "
            "Mix high-performing niche tags with broader reach tags."
        ),
        action_items=action_items,
        based_on=SuggestionBasis(
            competitor_videos=len(ranked),
            top_performers=[f"{tag} ({avg:.1f}x)" for tag, avg in top],
        ),
        expected_impact="medium",
        difficulty="easy",
        tags=["hashtags", "reach", "discovery"],
    )]


def posting_schedule(ranked: Sequence[VideoRecord]) -> list[ContentSuggestion]:
    if not ranked:
        return []
    insights = posting_insights(ranked)
    hours = insights.best_hours[:MAX_POSTING_SLOTS]
    days = insights.best_days[:MAX_POSTING_SLOTS]
    return [ContentSuggestion(
        id="posting-schedule",
        type="posting_time",
        title="Optimal Posting Schedule",
        description=(
            "Post during peak engagement times to maximize virality. "
            "These times are based on when competitor content performs best."
        ),
        action_items=[
            "Best hours: " + ", ".join(f"{h.hour}:00 UTC ({h.avg_virality:.1f}x)" for h in hours),
            "Best days: " + ", ".join(f"{d.day} ({d.avg_virality:.1f}x)" for d in days),
            "Schedule content for these time slots",
            "Test posting 30 minutes before peak for algorithm pickup",
        ],
        based_on=SuggestionBasis(competitor_videos=len(ranked)),
        expected_impact="medium",
        difficulty="easy",
        tags=["timing", "schedule", "optimization"],
    )]


def format_recommendations(ranked: Sequence[VideoRecord]) -> list[ContentSuggestion]:
    """The best format that beats ``HIGH_VIRALITY`` while used by few videos."""
    groups = sorted(_group(ranked, "content_format").items(), key=lambda kv: _avg(kv[1]), reverse=True)
    for name, members in groups:
        avg = _avg(members)
        if avg > HIGH_VIRALITY and len(members) <= MAX_RARE_FORMAT_VIDEOS:
            return [ContentSuggestion(
                id=f"format-{_slug(name)}",
                type="format_recommendation",
                title=f"Try More {name} Content",
                description=(
                    f"{name} content shows strong performance ({avg:.1f}x) but is underutilized. "
                    "This is an opportunity to stand out."
                ),
                action_items=[
                    f"Create 1-2 {name} videos this week",
                    "Study the high-performing examples below",
                    "Adapt the format to your unique style",
                    "Track performance to validate the approach",
                ],
                based_on=SuggestionBasis(
                    competitor_videos=len(members),
                    top_performers=[_example(v) for v in members[:MAX_EXAMPLES]],
                ),
                expected_impact="high",
                difficulty="medium",
                tags=[name, "opportunity", "format"],
            )]
    return []


def empty_suggestions(brand_id: str, opportunity: str) -> SuggestionsRead:
    return SuggestionsRead(
        brand_id=brand_id,
        generated_at=datetime.now(timezone.utc),
        total_suggestions=0,
        summary=SuggestionSummary(top_opportunity=opportunity),
    )


def build_suggestions(brand_id: str, videos: Sequence[VideoRecord]) -> SuggestionsRead:
    if not videos:
        return empty_suggestions(brand_id, NO_VIDEOS_OPPORTUNITY)

    ranked = sorted(videos, key=_score, reverse=True)
    ideas = content_ideas(ranked)
    suggestions = [
        *ideas,
        *hook_template_suggestions(ranked),
        *hashtag_strategy(ranked),
        *posting_schedule(ranked),
        *format_recommendations(ranked),
    ]

    top = ranked[0]
    quick_wins = [s.title for s in suggestions if s.difficulty == "easy" and s.expected_impact != "low"]
    return SuggestionsRead(
        brand_id=brand_id,
        generated_at=datetime.now(timezone.utc),
        total_suggestions=len(suggestions),
        suggestions=suggestions,
        summary=SuggestionSummary(
            top_opportunity=ideas[0].title if ideas else DEFAULT_OPPORTUNITY,
            quick_wins=quick_wins[:MAX_QUICK_WINS],
            focus_areas=[
                f"{top.hook_type} hooks" if top.hook_type else "Hook optimization",
                f"{top.content_format} format" if top.content_format else "Format testing",
                "Hashtag strategy",
            ],
        ),
    )


async def suggestions_for_brand(session: AsyncSession, brand_id: str) -> SuggestionsRead:
    accounts = await brand_accounts(session, brand_id)
    if not accounts:
        return empty_suggestions(brand_id, NO_ACCOUNTS_OPPORTUNITY)

    result = await session.execute(
        select(CompetitorVideo)
        .where(CompetitorVideo.account_id.in_([a.id for a in accounts]))
        .order_by(CompetitorVideo.virality_score.desc(), CompetitorVideo.id)
    )
    videos = list(result.scalars().all())
    suggestions = build_suggestions(brand_id, videos)
    logger.info(f"[suggestions] Brand {brand_id}: {suggestions.total_suggestions} suggestions from {len(videos)} videos")
    return suggestions
