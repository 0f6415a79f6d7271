#!/usr/bin/env python3
"""
Send a signed sample provider callback to a running instance.

Env vars:
  BASE_URL               (default http://localhost:8000)
  APIFY_WEBHOOK_SECRET   (optional; signs the body when set)
  SIGNATURE_HEADER       (default x-apify-webhook-signature)

Usage:
  send_test_webhook.py JOB_ID BRAND_ID [DATASET_ID] [STATUS]
"""
from __future__ import annotations

import hashlib
import hmac
import json
import os
import sys
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

BASE_URL = os.environ.get("BASE_URL", "http://localhost:8000").rstrip("/")
SECRET = os.environ.get("APIFY_WEBHOOK_SECRET", "")
SIGNATURE_HEADER = os.environ.get("SIGNATURE_HEADER", "x-apify-webhook-signature")


def build_body(job_id: str, brand_id: str, dataset_id: str, status: str) -> bytes:
    payload = {
        "eventType": f"ACTOR.RUN.{status}",
        "resource": {"id": "test-run", "status": status, "defaultDatasetId": dataset_id},
        "jobId": job_id,
        "brandId": brand_id,
    }
    return json.dumps(payload).encode()


def main(argv: list[str]) -> int:
    if len(argv) < 3:
        print(__doc__)
        return 2
    job_id, brand_id = argv[1], argv[2]
    dataset_id = argv[3] if len(argv) > 3 else "test-dataset"
    status = argv[4] if len(argv) > 4 else "SUCCEEDED"

    body = build_body(job_id, brand_id, dataset_id, status)
    headers = {"Content-Type": "application/json"}
    if SECRET:
        headers[SIGNATURE_HEADER] = hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()

    req = Request(f"{BASE_URL}/api/webhooks/apify", data=body, headers=headers, method="POST")
    try:
        with urlopen(req, timeout=30) as resp:
            print(f"{resp.status} {resp.read().decode()}")
            return 0
    except HTTPError as e:
        print(f"{e.code} {e.read().decode()[:500]}")
    except URLError as e:
        print(f"URLError: {e}")
    return 1


if __name__ == "__main__":
    sys.exit(main(sys.argv))
