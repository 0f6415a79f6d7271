from __future__ import annotations

import base64
import json
from typing import Any

import httpx
from fastapi import HTTPException, status

from trendradar.settings import get_settings

APIFY_ACTOR_RUN_URL = "https://api.apify.com/v2/acts/{actor_id}/runs"
APIFY_DATASET_ITEMS_URL = "https://api.apify.com/v2/datasets/{dataset_id}/items"

TERMINAL_EVENT_TYPES = (
    "ACTOR.RUN.SUCCEEDED",
    "ACTOR.RUN.FAILED",
    "ACTOR.RUN.ABORTED",
    "ACTOR.RUN.TIMED_OUT",
)


def _normalize_actor_id(actor_id: str) -> str:
    """Apify requires username~actor-name."""
    if "~" in actor_id:
        return actor_id
    if "/" in actor_id:
        return actor_id.replace("/", "~", 1)
    return actor_id


def _require_token() -> str:
    token = get_settings().apify_token
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="APIFY_TOKEN missing")
    return token


def build_run_webhooks(request_url: str, *, job_id: str, brand_id: str) -> str:
    """Encode an ad-hoc webhook definition for the ``webhooks`` run parameter.

    The payload template carries the job correlation pair so the callback can
    be matched to persisted state on whichever instance receives it.
    """
    payload_template = (
        '{"eventType": {{eventType}}, "eventData": {{eventData}}, "resource": {{resource}}, '
        f'"jobId": {json.dumps(job_id)}, "brandId": {json.dumps(brand_id)}}}'
    )
    webhooks = [
        {
            "eventTypes": list(TERMINAL_EVENT_TYPES),
            "requestUrl": request_url,
            "payloadTemplate": payload_template,
        }
    ]
    return base64.b64encode(json.dumps(webhooks).encode("utf-8")).decode("ascii")


async def start_actor_run(
    actor_id: str,
    payload: dict[str, Any],
    *,
    webhooks: str | None = None,
    timeout_s: int = 30,
) -> dict:
    """Start an actor run and return the run object without waiting for it."""
    token = _require_token()
    normalized_id = _normalize_actor_id(actor_id)
    params = {"token": token}
    if webhooks:
        params["webhooks"] = webhooks

    try:
        async with httpx.AsyncClient(timeout=timeout_s) as client:
            resp = await client.post(APIFY_ACTOR_RUN_URL.format(actor_id=normalized_id), params=params, json=payload)
    except httpx.HTTPError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Apify run start failed", "reason": str(exc), "actor": normalized_id},
        ) from exc

    if resp.status_code >= 400:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "Apify run start failed",
                "status": resp.status_code,
                "body": resp.text[:400],
                "actor": normalized_id,
                "input_keys": list(payload.keys()),
            },
        )

    try:
        body = resp.json()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Invalid run response", "actor": normalized_id, "body": resp.text[:400]},
        ) from exc
    run_data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(run_data, dict) or not run_data.get("id"):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Apify run id missing", "actor": normalized_id, "body": resp.text[:400]},
        )
    return run_data


async def fetch_dataset_items(
    dataset_id: str,
    *,
    limit: int = 1000,
    clean: bool = True,
    timeout_s: int = 60,
) -> list[dict]:
    """Read dataset items page by page, up to ``limit`` items."""
    token = _require_token()
    items: list[dict] = []
    page_size = min(limit, 1000)
    offset = 0

    async with httpx.AsyncClient(timeout=timeout_s) as client:
        while len(items) < limit:
            try:
                ds_resp = await client.get(
                    APIFY_DATASET_ITEMS_URL.format(dataset_id=dataset_id),
                    params={
                        "token": token,
                        "clean": "true" if clean else "false",
                        "limit": page_size,
                        "offset": offset,
                    },
                    headers={"Content-Type": "application/json"},
                )
            except httpx.HTTPError as exc:
                raise HTTPException(
                    status_code=status.HTTP_502_BAD_GATEWAY,
                    detail={"error": "Apify dataset fetch failed", "datasetId": dataset_id, "reason": str(exc)},
                ) from exc
            if ds_resp.status_code >= 400:
                raise HTTPException(
                    status_code=status.HTTP_502_BAD_GATEWAY,
                    detail={
                        "error": "Apify dataset fetch failed",
                        "datasetId": dataset_id,
                        "status": ds_resp.status_code,
                        "body": ds_resp.text[:400],
                    },
                )
            try:
                page_items = ds_resp.json()
            except ValueError:
                page_items = ds_resp.text
            if not isinstance(page_items, list):
                raise HTTPException(
                    status_code=status.HTTP_502_BAD_GATEWAY,
                    detail={
                        "error": "Invalid dataset response",
                        "datasetId": dataset_id,
                        "body": str(page_items)[:400],
                    },
                )
            items.extend(item for item in page_items if isinstance(item, dict))
            if len(page_items) < page_size:
                break
            offset += page_size

    return items[:limit]
