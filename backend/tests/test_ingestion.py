from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from trendradar.models import CompetitorAccount, CompetitorVideo
from trendradar.services import ingestion
from trendradar.services.ingestion import import_items, map_item, normalize_handle, pick

ACCOUNT_MAP = {"alice": "acc-alice", "carol": "acc-carol"}
NOW = datetime(2026, 2, 1, 9, 30, tzinfo=timezone.utc)


def _alice_item(**overrides):
    item = {
        "id": "7301",
        "text": "How to cook rice, step by step #food #dinner",
        "authorMeta": {"name": "Alice"},
        "playCount": 10000,
        "diggCount": 500,
        "commentCount": 100,
        "shareCount": 50,
        "createTimeISO": "2026-01-02T10:00:00.000Z",
    }
    item.update(overrides)
    return item


def test_pick_takes_first_present_value():
    record = {"caption": "", "desc": None, "description": "third", "stats": {"playCount": 7}}
    assert pick(record, (("caption",), ("desc",), ("description",))) == "third"
    assert pick(record, (("plays",), ("stats", "playCount"))) == 7
    assert pick(record, (("missing",), ("stats", "missing"))) is None


def test_normalize_handle():
    assert normalize_handle(" @Alice ") == "alice"
    assert normalize_handle(None) == ""


def test_map_current_schema():
    video = map_item(_alice_item(), ACCOUNT_MAP, now=NOW)

    assert video.external_id == "7301"
    assert video.account_id == "acc-alice"
    assert video.caption == "How to cook rice, step by step #food #dinner"
    assert video.hashtags == ["#food", "#dinner"]
    assert (video.views, video.likes, video.comments, video.shares, video.saves) == (10000, 500, 100, 50, 0)
    assert video.virality_score == 20.0
    assert video.hook_type == "Tutorial"
    assert video.discovered_at == datetime(2026, 1, 2, 10, 0, tzinfo=timezone.utc)
    assert video.metrics_updated_at == NOW


def test_map_legacy_schema():
    item = {
        "videoId": 42,
        "desc": "remember when?",
        "author": {"uniqueId": "@ALICE"},
        "plays": "250",
        "likes": 10,
        "createTime": 1767225600,
    }
    video = map_item(item, ACCOUNT_MAP, now=NOW)

    assert video.external_id == "42"
    assert video.account_id == "acc-alice"
    assert video.views == 250
    assert video.likes == 10
    assert video.comments == 0
    assert video.discovered_at == datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_map_nested_stats_and_defaults():
    item = {"id": "n1", "author": {"username": "carol"}, "stats": {"playCount": 900, "shareCount": 3}}
    video = map_item(item, ACCOUNT_MAP, now=NOW)

    assert video.account_id == "acc-carol"
    assert video.caption == ""
    assert video.views == 900
    assert video.shares == 3
    assert video.discovered_at == NOW
    assert (video.hook_type, video.content_format, video.emotional_trigger) == ("Curiosity", "Talking Head", "Curiosity")


def test_offset_timestamps_are_stored_in_utc():
    video = map_item(_alice_item(createTimeISO="2026-01-02T12:00:00+02:00"), ACCOUNT_MAP, now=NOW)
    assert video.discovered_at == datetime(2026, 1, 2, 10, 0, tzinfo=timezone.utc)
    assert video.discovered_at.tzinfo == timezone.utc


def test_negative_and_garbage_counts_become_zero():
    video = map_item(_alice_item(playCount=-5, diggCount="lots"), ACCOUNT_MAP, now=NOW)
    assert video.views == 0
    assert video.likes == 0
    assert video.virality_score == 0.0


def test_untracked_author_is_dropped():
    assert map_item(_alice_item(authorMeta={"name": "bob"}), ACCOUNT_MAP, now=NOW) is None


def test_record_without_id_is_rejected():
    item = _alice_item()
    del item["id"]
    with pytest.raises(ValueError):
        map_item(item, ACCOUNT_MAP, now=NOW)


async def _accounts(session):
    result = await session.execute(select(CompetitorAccount))
    return list(result.scalars().all())


async def _video(session, external_id):
    return await session.scalar(
        select(CompetitorVideo)
        .where(CompetitorVideo.external_id == external_id)
        .execution_options(populate_existing=True)
    )


@pytest.mark.asyncio
async def test_import_counts_accepted_dropped_and_failed(session, brand):
    items = [
        _alice_item(),
        _alice_item(id="7302", authorMeta={"name": "bob"}),
        {"text": "no id", "authorMeta": {"name": "alice"}},
    ]
    result = await import_items(session, items, await _accounts(session))

    assert result.accepted == 1
    assert result.dropped == 1
    assert result.failed == 1
    assert result.dropped_handles == ["bob"]
    assert await session.scalar(select(func.count(CompetitorVideo.id))) == 1


@pytest.mark.asyncio
async def test_reimport_refreshes_instead_of_duplicating(session, brand):
    accounts = await _accounts(session)
    await import_items(session, [_alice_item()], accounts)
    await import_items(
        session,
        [_alice_item(text="Unpopular opinion: hot take", playCount=20000, commentCount=400)],
        accounts,
    )

    assert await session.scalar(select(func.count(CompetitorVideo.id))) == 1
    video = await _video(session, "7301")
    assert video.views == 20000
    assert video.comments == 400
    assert video.caption == "Unpopular opinion: hot take"
    assert video.hook_type == "Controversial"
    assert video.virality_score == 25.0


@pytest.mark.asyncio
async def test_reimport_never_changes_owner(session, brand):
    accounts = await _accounts(session)
    await import_items(session, [_alice_item()], accounts)
    await import_items(session, [_alice_item(authorMeta={"name": "carol"}, playCount=5)], accounts)

    video = await _video(session, "7301")
    assert video.account_id == "acc-alice"
    assert video.views == 5


def test_overflowing_counts_become_zero():
    mapped = map_item(
        _alice_item(playCount=float("inf"), diggCount=float("-inf"), createTime=float("inf"), createTimeISO=None),
        ACCOUNT_MAP,
        now=NOW,
    )
    assert mapped.views == 0
    assert mapped.likes == 0
    assert mapped.virality_score == 0.0
    assert mapped.discovered_at == NOW


@pytest.mark.asyncio
async def test_infinite_count_does_not_stop_the_batch(session, brand):
    items = [_alice_item(id="inf-1", playCount=float("inf")), _alice_item(id="ok-1")]
    result = await import_items(session, items, await _accounts(session))

    assert result.accepted == 2
    assert result.failed == 0
    assert (await _video(session, "inf-1")).views == 0
    assert (await _video(session, "ok-1")).views == 10000


@pytest.mark.asyncio
async def test_unexpected_errors_skip_only_their_record(session, brand, monkeypatch):
    real_map_item = ingestion.map_item
    real_upsert = ingestion.upsert_video

    def map_or_explode(item, account_map, **kwargs):
        if item["id"] == "bad-map":
            raise KeyError("authorMeta")
        return real_map_item(item, account_map, **kwargs)

    async def upsert_or_explode(session, video):
        await real_upsert(session, video)
        if video.external_id == "bad-upsert":
            raise RuntimeError("connection reset")

    monkeypatch.setattr(ingestion, "map_item", map_or_explode)
    monkeypatch.setattr(ingestion, "upsert_video", upsert_or_explode)

    items = [_alice_item(id="bad-map"), _alice_item(id="bad-upsert"), _alice_item(id="good")]
    result = await import_items(session, items, await _accounts(session))

    assert result.accepted == 1
    assert result.failed == 2
    # the failed upsert was rolled back, the next record still committed
    assert await _video(session, "bad-upsert") is None
    assert await _video(session, "good") is not None
    assert await session.scalar(select(func.count(CompetitorVideo.id))) == 1
