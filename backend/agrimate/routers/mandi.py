"""
/mandi endpoint
"""
import random
from typing import Optional

import httpx
from fastapi import APIRouter, Depends

from agrimate.config import Settings, get_settings
from agrimate.di import get_rng
from agrimate.http import get_http_or_none
from agrimate.tools.mandi import DEFAULT_LIMIT, DEFAULT_OFFSET, fetch_mandi_prices, parse_paging

router = APIRouter(tags=["data"])


@router.get("/mandi")
async def mandi(
    commodity: Optional[str] = None,
    state: Optional[str] = None,
    market: Optional[str] = None,
    district: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    http: Optional[httpx.AsyncClient] = Depends(get_http_or_none),
    rng: random.Random = Depends(get_rng),
):
    """Live data.gov.in prices, or representative data; always 200."""
    return await fetch_mandi_prices(
        http,
        settings.DATA_GOV_API_KEY,
        commodity=commodity or None,
        state=state or None,
        market=market or None,
        district=district or None,
        limit=parse_paging(limit, DEFAULT_LIMIT),
        offset=parse_paging(offset, DEFAULT_OFFSET),
        timeout=settings.MANDI_TIMEOUT_SEC,
        rng=rng,
    )
