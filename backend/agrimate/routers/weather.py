"""
/weather endpoint
"""
import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from agrimate.config import Settings, get_settings
from agrimate.errors import ConfigurationError, UpstreamUnavailable
from agrimate.http import get_http
from agrimate.routers.responses import error_response
from agrimate.tools.weather import build_query, fetch_weather

log = logging.getLogger("agrimate.weather")

router = APIRouter(tags=["data"])

# hint for proxies/browsers only; the server does not cache
CACHE_CONTROL = "public, max-age=600"


@router.get("/weather")
async def weather(
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    city: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http),
):
    """Coordinates, then city name, then the default location."""
    query = build_query(lat, lon, city, default=settings.DEFAULT_WEATHER_LOCATION)
    try:
        data = await fetch_weather(http, settings.WEATHER_API_KEY, query, timeout=settings.WEATHER_TIMEOUT_SEC)
    except ConfigurationError as e:
        return error_response(500, str(e))
    except UpstreamUnavailable as e:
        log.error("Weather API error: %s", e)
        return error_response(500, "Failed to fetch weather data.")
    return JSONResponse(data, headers={"Cache-Control": CACHE_CONTROL})
