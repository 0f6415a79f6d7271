import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["APIFY_TOKEN"] = "test-token"
os.environ["PUBLIC_BASE_URL"] = "http://test"
os.environ["CELERY_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ.pop("APIFY_WEBHOOK_SECRET", None)
os.environ.pop("TELEGRAM_BOT_TOKEN", None)

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from trendradar.db import Base, get_session
from trendradar.main import app
from trendradar.models import Brand, CompetitorAccount, CompetitorVideo
from trendradar.services import notify
from trendradar.settings import get_settings

BRAND_ID = "7d2f1c9e-3b4a-4c5d-8e6f-0a1b2c3d4e5f"
EMPTY_BRAND_ID = "11111111-2222-4333-8444-555555555555"


@pytest.fixture(autouse=True)
def reset_notify_throttle():
    notify._throttle.clear()
    yield
    notify._throttle.clear()


@pytest.fixture
def settings():
    return get_settings()


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "trendradar_test.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker

    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest_asyncio.fixture
async def client(session_maker):
    async def override_get_session():
        async with session_maker() as s:
            yield s

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.pop(get_session, None)


@pytest_asyncio.fixture
async def brand(session):
    """Brand with one active account ("alice") and one inactive account ("carol")."""
    b = Brand(id=BRAND_ID, name="Acme")
    session.add(b)
    session.add_all([
        CompetitorAccount(id="acc-alice", brand_id=BRAND_ID, handle="alice", is_active=True),
        CompetitorAccount(id="acc-carol", brand_id=BRAND_ID, handle="carol", is_active=False),
    ])
    await session.commit()
    return b


@pytest_asyncio.fixture
async def empty_brand(session):
    b = Brand(id=EMPTY_BRAND_ID, name="Newco")
    session.add(b)
    await session.commit()
    return b


def make_video(
    external_id: str,
    *,
    account_id: str = "acc-alice",
    caption: str = "",
    views: int = 1000,
    likes: int = 0,
    comments: int = 0,
    shares: int = 0,
    virality_score: float = 0.0,
    hook_type: str | None = None,
    content_format: str | None = None,
    emotional_trigger: str | None = None,
    discovered_at: datetime | None = None,
) -> CompetitorVideo:
    return CompetitorVideo(
        external_id=external_id,
        account_id=account_id,
        caption=caption,
        hashtags=[],
        views=views,
        likes=likes,
        comments=comments,
        shares=shares,
        saves=0,
        virality_score=virality_score,
        hook_type=hook_type,
        content_format=content_format,
        emotional_trigger=emotional_trigger,
        discovered_at=discovered_at or datetime(2026, 1, 5, 12, tzinfo=timezone.utc),
    )


def provider_http(response: httpx.Response) -> MagicMock:
    """Stand-in for ``httpx.AsyncClient`` whose get/post always return ``response``.

    Patch it over ``httpx.AsyncClient`` after the test client exists so only
    outbound provider calls see it.
    """
    provider = AsyncMock()
    provider.get.return_value = response
    provider.post.return_value = response
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = provider
    return factory
