"""
Ingestion mapper: turns provider dataset items into CompetitorVideo rows.

The provider has emitted several field-naming schemes over time. Each logical
field is read through an ordered list of accessor paths; the first present
value wins. Supporting a new scheme means appending a path here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.models import CompetitorAccount, CompetitorVideo
from trendradar.services.classifier import DEFAULT_CONFIG, ClassifierConfig, classify, extract_hashtags
from trendradar.services.virality import calculate_virality_score

logger = logging.getLogger(__name__)

Path = tuple[str, ...]

FIELD_SOURCES: dict[str, tuple[Path, ...]] = {
    "external_id": (("id",), ("videoId",), ("video_id",)),
    "caption": (("caption",), ("desc",), ("description",), ("text",)),
    "views": (("plays",), ("views",), ("playCount",), ("stats", "playCount")),
    "likes": (("diggCount",), ("likes",), ("stats", "diggCount")),
    "comments": (("commentCount",), ("comments",), ("stats", "commentCount")),
    "shares": (("shareCount",), ("shares",), ("stats", "shareCount")),
    "saves": (("collectCount",), ("saves",), ("stats", "collectCount")),
    "author": (("author", "uniqueId"), ("authorMeta", "name"), ("author", "username"), ("authorMeta", "uniqueId")),
    "created_iso": (("createTimeISO",), ("createdAt",)),
    "created_epoch": (("createTime",), ("timestamp",)),
}


def pick(record: Mapping[str, Any], paths: Iterable[Path]) -> Any:
    """Return the value at the first path that resolves to something present."""
    for path in paths:
        value: Any = record
        for key in path:
            if not isinstance(value, Mapping):
                value = None
                break
            value = value.get(key)
        if value is not None and value != "":
            return value
    return None


def _parse_count(val: Any) -> int:
    try:
        return max(int(val), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def _parse_dt(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_unix(val: Any) -> datetime | None:
    try:
        ts = int(val)
    except (TypeError, ValueError, OverflowError):
        return None
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def normalize_handle(handle: str | None) -> str:
    return (handle or "").strip().removeprefix("@").lower()


@dataclass
class MappedVideo:
    external_id: str
    account_id: str
    author_handle: str
    caption: str
    hashtags: list[str]
    views: int
    likes: int
    comments: int
    shares: int
    saves: int
    hook_type: str
    content_format: str
    emotional_trigger: str
    virality_score: float
    discovered_at: datetime
    metrics_updated_at: datetime

    def as_row(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "account_id": self.account_id,
            "caption": self.caption,
            "hashtags": self.hashtags,
            "views": self.views,
            "likes": self.likes,
            "comments": self.comments,
            "shares": self.shares,
            "saves": self.saves,
            "hook_type": self.hook_type,
            "content_format": self.content_format,
            "emotional_trigger": self.emotional_trigger,
            "virality_score": self.virality_score,
            "discovered_at": self.discovered_at,
            "metrics_updated_at": self.metrics_updated_at,
        }


@dataclass
class IngestionResult:
    accepted: int = 0
    dropped: int = 0
    failed: int = 0
    dropped_handles: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.accepted + self.dropped + self.failed


def build_account_map(accounts: Sequence[CompetitorAccount]) -> dict[str, str]:
    return {normalize_handle(a.handle): a.id for a in accounts}


def map_item(
    item: Mapping[str, Any],
    account_map: Mapping[str, str],
    *,
    now: datetime | None = None,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> MappedVideo | None:
    """Map one provider record. Returns None when the author is not tracked.

    Raises ValueError when the record has no usable identifier.
    """
    now = now or datetime.now(timezone.utc)

    external_id = pick(item, FIELD_SOURCES["external_id"])
    if external_id is None:
        raise ValueError("record has no video id")

    author = normalize_handle(str(pick(item, FIELD_SOURCES["author"]) or ""))
    account_id = account_map.get(author)
    if not account_id:
        return None

    caption = str(pick(item, FIELD_SOURCES["caption"]) or "")
    views = _parse_count(pick(item, FIELD_SOURCES["views"]))
    likes = _parse_count(pick(item, FIELD_SOURCES["likes"]))
    comments = _parse_count(pick(item, FIELD_SOURCES["comments"]))
    shares = _parse_count(pick(item, FIELD_SOURCES["shares"]))
    saves = _parse_count(pick(item, FIELD_SOURCES["saves"]))
    labels = classify(caption, config)

    discovered_at = (
        _parse_dt(pick(item, FIELD_SOURCES["created_iso"]))
        or _parse_unix(pick(item, FIELD_SOURCES["created_epoch"]))
        or now
    )

    return MappedVideo(
        external_id=str(external_id),
        account_id=account_id,
        author_handle=author,
        caption=caption,
        hashtags=extract_hashtags(caption),
        views=views,
        likes=likes,
        comments=comments,
        shares=shares,
        saves=saves,
        hook_type=labels.hook_type,
        content_format=labels.content_format,
        emotional_trigger=labels.emotional_trigger,
        virality_score=calculate_virality_score(views, comments, shares, saves),
        discovered_at=discovered_at,
        metrics_updated_at=now,
    )


def _insert_for(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"upsert not supported for dialect {dialect!r}")


async def upsert_video(session: AsyncSession, video: MappedVideo) -> None:
    """Insert or refresh a video keyed on external_id. Ownership never changes."""
    insert = _insert_for(session)
    row = video.as_row()
    stmt = insert(CompetitorVideo).values(**row)
    mutable = {k: stmt.excluded[k] for k in row if k not in ("external_id", "account_id")}
    stmt = stmt.on_conflict_do_update(index_elements=[CompetitorVideo.external_id], set_=mutable)
    await session.execute(stmt)


async def import_items(
    session: AsyncSession,
    items: Iterable[Mapping[str, Any]],
    accounts: Sequence[CompetitorAccount],
    *,
    config: ClassifierConfig = DEFAULT_CONFIG,
) -> IngestionResult:
    """Map and upsert every item. One bad record never fails the batch.

    Each accepted record is committed on its own so a failing upsert only
    rolls back itself.
    """
    account_map = build_account_map(accounts)
    result = IngestionResult()

    for item in items:
        try:
            mapped = map_item(item, account_map, config=config)
        except Exception as exc:
            logger.warning(f"[ingest] Skipping malformed record: {exc}")
            result.failed += 1
            continue

        if mapped is None:
            handle = normalize_handle(str(pick(item, FIELD_SOURCES["author"]) or ""))
            logger.info(f"[ingest] Dropping record from untracked author {handle!r}")
            result.dropped += 1
            result.dropped_handles.append(handle)
            continue

        try:
            await upsert_video(session, mapped)
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.error(f"[ingest] Upsert failed for video {mapped.external_id}: {exc}")
            result.failed += 1
            continue
        result.accepted += 1

    logger.info(
        f"[ingest] Done: {result.accepted} accepted, {result.dropped} dropped, {result.failed} failed"
    )
    return result
