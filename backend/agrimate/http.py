import logging
from typing import Optional

import httpx

from agrimate.config import Settings, get_settings

log = logging.getLogger("agrimate.http")

USER_AGENT = "AgriMate/1.0 (+https://agrimate.example.com)"
CONNECT_TIMEOUT_SEC = 5.0
POOL_TIMEOUT_SEC = 10.0

# Shared outbound client (WeatherAPI, data.gov.in, LLM providers)
client: Optional[httpx.AsyncClient] = None

def _timeouts(settings: Settings) -> httpx.Timeout:
    # callers wrap each request in their own deadline; the socket read limit
    # only has to outlast the slowest of them
    slowest = max(settings.WEATHER_TIMEOUT_SEC, settings.LLM_TIMEOUT_SEC, settings.MANDI_TIMEOUT_SEC)
    return httpx.Timeout(
        connect=CONNECT_TIMEOUT_SEC,
        read=slowest,
        write=CONNECT_TIMEOUT_SEC,
        pool=POOL_TIMEOUT_SEC,
    )

async def init_http(settings: Optional[Settings] = None):
    """Create the shared client; called once from the startup hook."""
    global client
    settings = settings or get_settings()
    client = httpx.AsyncClient(
        timeout=_timeouts(settings),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=50, keepalive_expiry=30),
        headers={"User-Agent": USER_AGENT},
    )
    log.info("HTTP client ready (read timeout %.0fs)", client.timeout.read)

async def close_http():
    global client
    if client:
        await client.aclose()
        client = None
        log.info("HTTP client closed")

def get_http_client() -> httpx.AsyncClient:
    if client is None:
        raise RuntimeError("HTTP client not initialized. Call init_http() first.")
    return client

def get_http() -> httpx.AsyncClient:
    """FastAPI dependency wrapper around the shared client."""
    return get_http_client()

def get_http_or_none() -> Optional[httpx.AsyncClient]:
    """For routes that can still answer without network access."""
    return client
