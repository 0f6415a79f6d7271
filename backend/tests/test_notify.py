from unittest.mock import AsyncMock, patch

import pytest

from trendradar.services.notify import format_alert, notify_error, notify_warn

SEND = "trendradar.services.notify._send_telegram"


def test_alert_carries_scrape_tags_and_escapes_payload():
    text = format_alert(
        "error",
        "Scrape dataset fetch failed",
        "Dataset fetch failed: <html>gateway</html>",
        job_id="job-1",
        brand_id="brand-1",
    )
    lines = text.split("\n")
    assert lines[0] == "🔴 <b>Scrape dataset fetch failed</b>"
    assert lines[1] == "brand <code>brand-1</code> | job <code>job-1</code>"
    assert lines[2] == "<pre>Dataset fetch failed: &lt;html&gt;gateway&lt;/html&gt;</pre>"


def test_alert_without_context_is_title_only():
    assert format_alert("warn", "Webhook rejected: missing signature") == (
        "🟡 <b>Webhook rejected: missing signature</b>"
    )


def test_long_payload_is_truncated():
    text = format_alert("error", "boom", "x" * 2000)
    assert text.endswith("x" * 500 + "</pre>")


@pytest.mark.asyncio
async def test_throttle_is_per_brand():
    with patch(SEND, AsyncMock(return_value=True)) as send:
        assert await notify_error("Scrape job failed", "Apify run FAILED", job_id="j1", brand_id="b1")
        assert not await notify_error("Scrape job failed", "Apify run FAILED", job_id="j2", brand_id="b1")
        assert await notify_error("Scrape job failed", "Apify run FAILED", job_id="j3", brand_id="b2")
        assert await notify_warn("Scrape job failed", brand_id="b1")

    assert send.await_count == 3
    assert "job <code>j3</code>" in send.await_args_list[1].args[0]


@pytest.mark.asyncio
async def test_unconfigured_bot_skips_quietly():
    assert await notify_error("Scrape dispatch failed", "no token", brand_id="b1") is False
