from __future__ import annotations

import re

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trendradar.models import CompetitorAccount

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def api_error(status_code: int, code: str, message: str, **extra) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "error": message, **extra})


def validate_brand_id(brand_id: str | None) -> str:
    if not brand_id:
        raise api_error(status.HTTP_400_BAD_REQUEST, "invalid_request", "Brand ID is required")
    if not _UUID_RE.match(brand_id):
        raise api_error(status.HTTP_400_BAD_REQUEST, "invalid_request", "Invalid brand ID format")
    return brand_id.lower()


async def brand_accounts(session: AsyncSession, brand_id: str) -> list[CompetitorAccount]:
    result = await session.execute(select(CompetitorAccount).where(CompetitorAccount.brand_id == brand_id))
    return list(result.scalars().all())
