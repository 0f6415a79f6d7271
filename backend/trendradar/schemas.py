from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TrendDirection = Literal["rising", "stable", "declining"]
TrendType = Literal["hook", "format", "emotion"]


class LaunchRequest(BaseModel):
    brand_id: str | None = None

    @field_validator("brand_id")
    @classmethod
    def normalize_brand_id(cls, value: str | None) -> str | None:
        return value.strip() if value else value


class LaunchResponse(BaseModel):
    job_id: str
    accounts_to_scrape: int


class ScrapeStatusRead(BaseModel):
    brand_id: str
    last_scraped_at: datetime | None = None
    is_running: bool
    running_job_id: str | None = None


class ScrapeJobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    brand_id: str
    scraper_type: str
    status: str
    provider_run_id: str | None = None
    started_at: datetime
    completed_at: datetime | None = None
    error_message: str | None = None
    accounts_processed: int
    videos_found: int


class RunningJobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    brand_id: str
    status: str
    started_at: datetime


class RunningJobsRead(BaseModel):
    running_jobs: list[RunningJobRead]


class BestExample(BaseModel):
    video_id: str
    caption: str
    virality_score: float


class PatternInsight(BaseModel):
    name: str
    count: int
    avg_virality: float
    avg_views: int
    avg_engagement: float
    trend: TrendDirection
    change_percent: float = 0.0
    best_example: BestExample | None = None


class HashtagPattern(BaseModel):
    hashtag: str
    count: int
    avg_virality: float
    avg_views: float = 0.0
    avg_engagement: float = 0.0
    total_views: int = 0


class TrendItem(BaseModel):
    type: TrendType
    name: str
    change_percent: float
    current_avg_virality: float


class Combination(BaseModel):
    hook: str
    format: str
    emotion: str
    avg_virality: float
    video_count: int


class DayInsight(BaseModel):
    day: str
    avg_virality: float
    video_count: int


class HourInsight(BaseModel):
    hour: int
    avg_virality: float
    video_count: int


class CrossVideoPatterns(BaseModel):
    hook_patterns: list[PatternInsight] = []
    format_patterns: list[PatternInsight] = []
    emotion_patterns: list[PatternInsight] = []
    hashtag_patterns: list[HashtagPattern] = []


class EmergingTrends(BaseModel):
    rising: list[TrendItem] = []
    declining: list[TrendItem] = []
    stable: list[TrendItem] = []


class WhatsWorkingNow(BaseModel):
    summary: str
    top_performing_combinations: list[Combination] = []
    recommendations: list[str] = []


class PostingInsights(BaseModel):
    best_days: list[DayInsight] = []
    best_hours: list[HourInsight] = []
    optimal_frequency: str = "N/A"


class PatternSynthesis(BaseModel):
    brand_id: str
    total_videos_analyzed: int
    generated_at: datetime
    cross_video_patterns: CrossVideoPatterns
    emerging_trends: EmergingTrends
    whats_working_now: WhatsWorkingNow
    posting_insights: PostingInsights


class AutoTagRequest(BaseModel):
    brand_id: str | None = None
    force: bool = False


class AutoTagSample(BaseModel):
    id: int
    hook_type: str
    content_format: str
    emotional_trigger: str


class AutoTagVariety(BaseModel):
    hook_types: list[str] = []
    formats: list[str] = []
    emotions: list[str] = []


class AutoTagResult(BaseModel):
    videos_tagged: int
    message: str | None = None
    variety: AutoTagVariety = Field(default_factory=AutoTagVariety)
    samples: list[AutoTagSample] = []


class AutoTagStatus(BaseModel):
    total_videos: int
    tagged_videos: int
    untagged_videos: int


SuggestionType = Literal["content_idea", "hook_template", "format_recommendation", "hashtag_strategy", "posting_time"]
Level = Literal["high", "medium", "low"]
Difficulty = Literal["easy", "medium", "hard"]


class SuggestionBasis(BaseModel):
    competitor_videos: int
    top_performers: list[str] = []


class ContentSuggestion(BaseModel):
    id: str
    type: SuggestionType
    title: str
    description: str
    action_items: list[str] = []
    based_on: SuggestionBasis
    expected_impact: Level
    difficulty: Difficulty
    tags: list[str] = []


class SuggestionSummary(BaseModel):
    top_opportunity: str
    quick_wins: list[str] = []
    focus_areas: list[str] = []


class SuggestionsRead(BaseModel):
    brand_id: str
    generated_at: datetime
    total_suggestions: int
    suggestions: list[ContentSuggestion] = []
    summary: SuggestionSummary


class VideoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    account_id: str
    external_id: str
    caption: str
    hashtags: list[str] = []
    views: int
    likes: int
    comments: int
    shares: int
    saves: int
    virality_score: float
    hook_type: str | None = None
    content_format: str | None = None
    emotional_trigger: str | None = None
    discovered_at: datetime
    metrics_updated_at: datetime | None = None


class VideoPage(BaseModel):
    items: list[VideoRead]
    total: int
    limit: int
    offset: int
