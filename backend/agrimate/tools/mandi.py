# backend/agrimate/tools/mandi.py
import asyncio
import datetime as dt
import logging
import random
import time
from typing import Any, Dict, List, Optional, Union

import httpx

from agrimate.errors import ConfigurationError, UpstreamUnavailable
from agrimate.tools.mandi_fallback import fallback_records

log = logging.getLogger("agrimate.mandi")

def t(): return time.perf_counter()

# -------------------------------
# Configuration
# -------------------------------
RESOURCE_ID = "9ef84268-d588-465a-a308-a864a43d0070"  # Current Daily Price of Various Commodities
API_BASE = "https://api.data.gov.in/resource"

DEFAULT_LIMIT = 50
DEFAULT_OFFSET = 0

LIVE_SOURCE = "Ministry of Agriculture & Farmers Welfare, Govt. of India"
FALLBACK_SOURCE = "Representative market data (Govt. source temporarily unavailable)"

# -------------------------------
# Helper Functions
# -------------------------------
def _to_number(x: Any) -> Optional[Union[int, float]]:
    """Portal prices arrive as strings; keep whole numbers as int."""
    try:
        f = float(x)
    except (ValueError, TypeError):
        return None
    if f != f:  # NaN
        return None
    return int(f) if f.is_integer() else f

def parse_paging(value: Optional[Any], default: int) -> int:
    """Non-numeric or negative query values fall back to the default."""
    try:
        i = int(value)
    except (ValueError, TypeError):
        return default
    return i if i >= 0 else default

def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()

def _normalize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Standardize the structure and types of a record from the API."""
    return {
        "state": item.get("state"),
        "district": item.get("district"),
        "market": item.get("market"),
        "commodity": item.get("commodity"),
        "variety": item.get("variety"),
        "grade": item.get("grade"),
        "arrivalDate": item.get("arrival_date"),
        "minPrice": _to_number(item.get("min_price")),
        "maxPrice": _to_number(item.get("max_price")),
        "modalPrice": _to_number(item.get("modal_price")),
    }

def distinct_filters(records: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Sorted distinct states/commodities/markets present in ``records``."""
    def _uniq(field: str) -> List[str]:
        return sorted({r[field] for r in records if r.get(field)})
    return {
        "states": _uniq("state"),
        "commodities": _uniq("commodity"),
        "markets": _uniq("market"),
    }

# -------------------------------
# Core API Interaction
# -------------------------------
async def fetch_live_records(
    client: httpx.AsyncClient,
    api_key: str,
    commodity: Optional[str] = None,
    state: Optional[str] = None,
    market: Optional[str] = None,
    district: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = DEFAULT_OFFSET,
    timeout: float = 5.0,
) -> Dict[str, Any]:
    """
    One page from data.gov.in, reshaped. Raises ConfigurationError without a key
    and UpstreamUnavailable on any failure, including an empty record list.
    """
    if not api_key:
        raise ConfigurationError("DATA_GOV_API_KEY not set")

    url = f"{API_BASE}/{RESOURCE_ID}"
    params = {
        "api-key": api_key,
        "format": "json",
        "limit": str(limit),
        "offset": str(offset),
    }
    # API-level filters
    if commodity:
        params["filters[commodity]"] = commodity
    if state:
        params["filters[state]"] = state
    if market:
        params["filters[market]"] = market
    if district:
        params["filters[district]"] = district

    try:
        r = await asyncio.wait_for(
            client.get(url, params=params, headers={"Accept": "application/json"}, timeout=timeout),
            timeout=timeout,
        )
        r.raise_for_status()
        raw = r.json()
    except asyncio.TimeoutError as e:
        raise UpstreamUnavailable(f"data.gov.in timed out after {timeout:g}s") from e
    except httpx.HTTPStatusError as e:
        raise UpstreamUnavailable(f"API error: {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamUnavailable(f"data.gov.in request failed: {e}") from e

    if not isinstance(raw, dict):
        raise UpstreamUnavailable("Unexpected response shape")
    records = [_normalize_item(item) for item in (raw.get("records") or []) if isinstance(item, dict)]
    if not records:
        raise UpstreamUnavailable("Empty response")

    return {
        "records": records,
        "total": raw.get("total") or len(records),
        "count": raw.get("count") or len(records),
        "filters": distinct_filters(records),
        "source": LIVE_SOURCE,
        "lastUpdated": raw.get("updated_date") or _now_iso(),
        "live": True,
    }


def fallback_prices(
    commodity: Optional[str] = None,
    state: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    records = fallback_records(commodity, state, rng=rng)
    return {
        "records": records,
        "total": len(records),
        "count": len(records),
        "filters": distinct_filters(records),
        "source": FALLBACK_SOURCE,
        "lastUpdated": _now_iso(),
        "live": False,
    }


async def fetch_mandi_prices(
    client: Optional[httpx.AsyncClient],
    api_key: str,
    commodity: Optional[str] = None,
    state: Optional[str] = None,
    market: Optional[str] = None,
    district: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = DEFAULT_OFFSET,
    timeout: float = 5.0,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """
    Live mandi prices when the portal answers with data, representative
    fallback prices otherwise. Never raises for upstream problems.
    """
    start = t()
    if api_key and client is not None:
        try:
            live = await fetch_live_records(
                client, api_key,
                commodity=commodity, state=state, market=market, district=district,
                limit=limit, offset=offset, timeout=timeout,
            )
            log.info("Mandi live lookup: %d records in %dms",
                     len(live["records"]), round((t() - start) * 1000))
            return live
        except (ConfigurationError, UpstreamUnavailable) as e:
            log.warning("Live API unavailable, using fallback data: %s", e)
    else:
        log.info("No data.gov.in key configured, using fallback data")

    return fallback_prices(commodity, state, rng=rng)
