"""
Alerting: Telegram messages about scrape jobs, throttled per title and brand.

Env:
  TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID

An alert names the brand and job it concerns, so one failing brand does not
mute alerts for the others. The same (title, brand) pair is sent at most once
per 15 minutes. Alerting never raises into the caller; an unconfigured bot
simply skips.
"""
from __future__ import annotations

import html
import logging
import time
from typing import Any

import httpx

from trendradar.settings import get_settings

logger = logging.getLogger(__name__)

_throttle: dict[str, float] = {}
THROTTLE_SEC = 15 * 60
MAX_PAYLOAD_CHARS = 500

MARKERS = {"error": "🔴", "warn": "🟡"}


def _should_send(key: str) -> bool:
    now = time.monotonic()
    last = _throttle.get(key)
    if last is not None and now - last < THROTTLE_SEC:
        return False
    _throttle[key] = now
    return True


def format_alert(
    level: str,
    title: str,
    payload: Any = None,
    *,
    job_id: str | None = None,
    brand_id: str | None = None,
) -> str:
    """Telegram HTML body: marker and title, scrape tags, then the escaped payload."""
    lines = [f"{MARKERS.get(level, '⚪')} <b>{html.escape(title)}</b>"]
    tags = []
    if brand_id:
        tags.append(f"brand <code>{html.escape(brand_id)}</code>")
    if job_id:
        tags.append(f"job <code>{html.escape(job_id)}</code>")
    if tags:
        lines.append(" | ".join(tags))
    if payload:
        lines.append(f"<pre>{html.escape(str(payload)[:MAX_PAYLOAD_CHARS])}</pre>")
    return "\n".join(lines)


async def _send_telegram(text: str) -> bool:
    settings = get_settings()
    token, chat_id = settings.telegram_bot_token, settings.telegram_chat_id
    if not token or not chat_id:
        logger.debug("[notify] Telegram not configured, skipping")
        return False
    url = f"https://api.telegram.org/bot{token}/sendMessage"
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            r = await client.post(url, json={
                "chat_id": chat_id,
                "text": text[:4000],
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            })
            if r.status_code == 200:
                return True
            logger.warning(f"[notify] Telegram API {r.status_code}: {r.text[:200]}")
    except httpx.HTTPError as e:
        logger.warning(f"[notify] Telegram send failed: {e}")
    return False


async def _notify(
    level: str,
    title: str,
    payload: Any = None,
    *,
    job_id: str | None = None,
    brand_id: str | None = None,
) -> bool:
    if not _should_send(f"{level}:{title}:{brand_id or '-'}"):
        logger.debug(f"[notify] throttled {level}: {title} (brand={brand_id})")
        return False
    return await _send_telegram(format_alert(level, title, payload, job_id=job_id, brand_id=brand_id))


async def notify_error(
    title: str, payload: Any = None, *, job_id: str | None = None, brand_id: str | None = None
) -> bool:
    return await _notify("error", title, payload, job_id=job_id, brand_id=brand_id)


async def notify_warn(
    title: str, payload: Any = None, *, job_id: str | None = None, brand_id: str | None = None
) -> bool:
    return await _notify("warn", title, payload, job_id=job_id, brand_id=brand_id)
