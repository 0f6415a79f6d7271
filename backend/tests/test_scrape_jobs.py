import base64
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from conftest import BRAND_ID, EMPTY_BRAND_ID, provider_http
from trendradar.models import ScrapeJob
from trendradar.services import job_store

START_RUN = "trendradar.services.scrape_launcher.start_actor_run"


def _run_mock():
    return AsyncMock(return_value={"id": "run-1", "status": "READY", "defaultDatasetId": "ds-1"})


async def _job(session_maker, job_id):
    async with session_maker() as s:
        return await s.get(ScrapeJob, job_id)


@pytest.mark.asyncio
async def test_launch_dispatches_and_marks_running(client, session_maker, brand):
    with patch(START_RUN, _run_mock()) as start:
        r = await client.post("/api/scrape/run", json={"brand_id": BRAND_ID})

    assert r.status_code == 201
    body = r.json()
    assert body["accounts_to_scrape"] == 1

    start.assert_awaited_once()
    actor_id, payload = start.await_args.args
    assert actor_id == "clockworks/tiktok-scraper"
    assert payload["profiles"] == ["https://www.tiktok.com/@alice"]
    assert payload["resultsPerPage"] == 30

    webhooks = json.loads(base64.b64decode(start.await_args.kwargs["webhooks"]))
    assert webhooks[0]["requestUrl"] == "http://test/api/webhooks/apify"
    assert body["job_id"] in webhooks[0]["payloadTemplate"]

    job = await _job(session_maker, body["job_id"])
    assert job.status == "running"
    assert job.provider_run_id == "run-1"
    assert job.brand_id == BRAND_ID
    assert job.completed_at is None


@pytest.mark.asyncio
async def test_second_launch_is_rejected_while_first_is_active(client, session_maker, brand):
    with patch(START_RUN, _run_mock()) as start:
        first = await client.post("/api/scrape/run", json={"brand_id": BRAND_ID})
        second = await client.post("/api/scrape/run", json={"brand_id": BRAND_ID})

    assert first.status_code == 201
    assert second.status_code == 409
    detail = second.json()["detail"]
    assert detail["code"] == "job_already_running"
    assert detail["job_id"] == first.json()["job_id"]
    assert start.await_count == 1

    async with session_maker() as s:
        jobs = (await s.execute(select(ScrapeJob))).scalars().all()
    assert len(jobs) == 1


@pytest.mark.asyncio
async def test_storage_rejects_second_active_job(session, brand):
    await job_store.create_job(session, BRAND_ID)
    await session.commit()

    with pytest.raises(IntegrityError):
        await job_store.create_job(session, BRAND_ID)
    await session.rollback()


@pytest.mark.asyncio
async def test_finished_job_does_not_block_new_launch(session, brand):
    job = await job_store.create_job(session, BRAND_ID)
    await session.commit()
    assert await job_store.mark_failed(session, job.id, "boom")
    await session.commit()

    second = await job_store.create_job(session, BRAND_ID)
    await session.commit()
    assert second.id != job.id


@pytest.mark.asyncio
async def test_terminal_job_is_never_rewritten(session, brand):
    job = await job_store.create_job(session, BRAND_ID)
    await session.commit()
    assert await job_store.mark_running(session, job.id, provider_run_id="run-9")
    assert await job_store.mark_completed(session, job.id)
    await session.commit()

    assert not await job_store.mark_failed(session, job.id, "late failure")
    assert not await job_store.mark_running(session, job.id)
    assert not await job_store.mark_completed(session, job.id)
    await session.commit()

    stored = await job_store.get_job(session, job.id)
    assert stored.status == "completed"
    assert stored.error_message is None


@pytest.mark.asyncio
async def test_dispatch_failure_records_failed_job(client, session_maker, brand):
    error = HTTPException(status_code=502, detail={"error": "Apify run start failed", "status": 503})
    with patch(START_RUN, AsyncMock(side_effect=error)):
        r = await client.post("/api/scrape/run", json={"brand_id": BRAND_ID})

    assert r.status_code == 502
    detail = r.json()["detail"]
    assert detail["code"] == "dispatch_failed"

    job = await _job(session_maker, detail["job_id"])
    assert job.status == "failed"
    assert "Apify run start failed" in job.error_message
    assert job.completed_at is not None

    status = await client.get("/api/scrape/status", params={"brand_id": BRAND_ID})
    assert status.json()["is_running"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "provider_response",
    [
        httpx.Response(200, json=[]),
        httpx.Response(200, json={"data": ["run-1"]}),
        httpx.Response(201, text="<html>gateway</html>"),
    ],
    ids=["list-body", "data-not-object", "not-json"],
)
async def test_malformed_run_response_fails_job_and_frees_brand(client, session_maker, brand, provider_response):
    with patch("httpx.AsyncClient", provider_http(provider_response)), \
            patch("trendradar.services.scrape_launcher.notify_error", AsyncMock()) as alert:
        r = await client.post("/api/scrape/run", json={"brand_id": BRAND_ID})

    assert r.status_code == 502
    detail = r.json()["detail"]
    assert detail["code"] == "dispatch_failed"
    job = await _job(session_maker, detail["job_id"])
    assert job.status == "failed"
    assert job.error_message
    assert alert.await_args.kwargs == {"job_id": detail["job_id"], "brand_id": BRAND_ID}

    with patch(START_RUN, _run_mock()):
        retry = await client.post("/api/scrape/run", json={"brand_id": BRAND_ID})
    assert retry.status_code == 201


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, code",
    [
        ({}, "invalid_request"),
        ({"brand_id": "not-a-uuid"}, "invalid_request"),
    ],
)
async def test_launch_validation_errors(client, brand, payload, code):
    with patch(START_RUN, _run_mock()) as start:
        r = await client.post("/api/scrape/run", json=payload)
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == code
    start.assert_not_awaited()


@pytest.mark.asyncio
async def test_launch_unknown_brand(client, brand):
    with patch(START_RUN, _run_mock()):
        r = await client.post("/api/scrape/run", json={"brand_id": "99999999-9999-4999-8999-999999999999"})
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "brand_not_found"


@pytest.mark.asyncio
async def test_launch_without_active_accounts(client, session_maker, empty_brand):
    with patch(START_RUN, _run_mock()) as start:
        r = await client.post("/api/scrape/run", json={"brand_id": EMPTY_BRAND_ID})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "no_active_accounts"
    start.assert_not_awaited()

    async with session_maker() as s:
        assert (await s.execute(select(ScrapeJob))).first() is None


@pytest.mark.asyncio
async def test_status_and_history(client, brand):
    with patch(START_RUN, _run_mock()):
        launched = (await client.post("/api/scrape/run", json={"brand_id": BRAND_ID})).json()

    status = (await client.get("/api/scrape/status", params={"brand_id": BRAND_ID})).json()
    assert status == {
        "brand_id": BRAND_ID,
        "last_scraped_at": None,
        "is_running": True,
        "running_job_id": launched["job_id"],
    }

    running = (await client.get("/api/scrape/status")).json()
    assert [j["id"] for j in running["running_jobs"]] == [launched["job_id"]]

    jobs = (await client.get("/api/scrape/jobs", params={"brand_id": BRAND_ID, "limit": 5})).json()
    assert len(jobs) == 1
    assert jobs[0]["status"] == "running"

    r = await client.get("/api/scrape/jobs", params={"brand_id": BRAND_ID, "limit": 0})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_list_stale_jobs(session, brand):
    job = await job_store.create_job(session, BRAND_ID)
    job.started_at = datetime.now(timezone.utc) - timedelta(hours=2)
    await session.commit()

    assert [j.id for j in await job_store.list_stale_jobs(session, timedelta(hours=1))] == [job.id]
    assert await job_store.list_stale_jobs(session, timedelta(hours=3)) == []
