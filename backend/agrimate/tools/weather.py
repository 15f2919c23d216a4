# backend/agrimate/tools/weather.py
import asyncio
import datetime as dt
import logging
import time
from typing import Any, Dict, Optional

import httpx

from agrimate.errors import ConfigurationError, UpstreamUnavailable

log = logging.getLogger("agrimate.weather")

def t(): return time.perf_counter()

WEATHER_API_URL = "https://api.weatherapi.com/v1/forecast.json"
FORECAST_DAYS = 5
DEFAULT_LOCATION = "New Delhi"


def build_query(
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    city: Optional[str] = None,
    default: str = DEFAULT_LOCATION,
) -> str:
    """Coordinates win over a city name; with neither, use the default location."""
    if lat and lon:
        return f"{lat},{lon}"
    if city:
        return city
    return default


def _icon(url: Optional[str]) -> Optional[str]:
    """WeatherAPI hands out protocol-relative icon URLs ('//cdn.weatherapi.com/...')."""
    if url and url.startswith("//"):
        return f"https:{url}"
    return url


def _condition(c: Dict[str, Any], with_code: bool = True) -> Dict[str, Any]:
    out = {"text": c["text"], "icon": _icon(c["icon"])}
    if with_code:
        out["code"] = c["code"]
    return out


def _hour(h: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "time": h["time"],
        "temp": h["temp_c"],
        "condition": _condition(h["condition"], with_code=False),
        "rainChance": h["chance_of_rain"],
        "humidity": h["humidity"],
        "wind": h["wind_kph"],
        "feelsLike": h["feelslike_c"],
    }


def _day(fd: Dict[str, Any]) -> Dict[str, Any]:
    day, astro = fd["day"], fd["astro"]
    return {
        "date": fd["date"],
        "maxTemp": day["maxtemp_c"],
        "minTemp": day["mintemp_c"],
        "avgTemp": day["avgtemp_c"],
        "maxWind": day["maxwind_kph"],
        "totalPrecip": day["totalprecip_mm"],
        "avgHumidity": day["avghumidity"],
        "rainChance": day["daily_chance_of_rain"],
        "condition": _condition(day["condition"]),
        "uv": day["uv"],
        "astro": {
            "sunrise": astro["sunrise"],
            "sunset": astro["sunset"],
            "moonPhase": astro["moon_phase"],
        },
        "hourly": [_hour(h) for h in fd["hour"]],
    }


def normalize_forecast(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reshape a WeatherAPI.com forecast.json payload (units and names only).
    Raises KeyError/TypeError when a required field is missing.
    """
    loc, cur = raw["location"], raw["current"]
    return {
        "location": {
            "name": loc["name"],
            "region": loc["region"],
            "country": loc["country"],
            "lat": loc["lat"],
            "lon": loc["lon"],
            "localtime": loc["localtime"],
        },
        "current": {
            "temperature": cur["temp_c"],
            "feelsLike": cur["feelslike_c"],
            "humidity": cur["humidity"],
            "windSpeed": cur["wind_kph"],
            "windDir": cur["wind_dir"],
            "pressure": cur["pressure_mb"],
            "uv": cur["uv"],
            "cloud": cur["cloud"],
            "condition": _condition(cur["condition"]),
            "isDay": cur["is_day"] == 1,
        },
        "forecast": [_day(fd) for fd in raw["forecast"]["forecastday"]],
        "lastUpdated": dt.datetime.now(dt.timezone.utc).isoformat(),
    }


async def fetch_weather(
    client: httpx.AsyncClient,
    api_key: str,
    query: str,
    timeout: float = 10.0,
) -> Dict[str, Any]:
    """
    Current conditions + 5-day forecast with hourly breakdown for ``query``
    (``"lat,lon"``, a city name or a pin code). No fallback data exists.
    """
    if not api_key:
        raise ConfigurationError("Weather API key not configured.")

    start = t()
    params = {
        "key": api_key,
        "q": query,
        "days": FORECAST_DAYS,
        "aqi": "no",
        "alerts": "yes",
    }

    try:
        r = await asyncio.wait_for(client.get(WEATHER_API_URL, params=params), timeout=timeout)
        r.raise_for_status()
        data = r.json()
    except asyncio.TimeoutError as e:
        raise UpstreamUnavailable(f"WeatherAPI timed out after {timeout:g}s") from e
    except httpx.HTTPStatusError as e:
        raise UpstreamUnavailable(f"WeatherAPI error: {e.response.status_code}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamUnavailable(f"WeatherAPI request failed: {e}") from e
    api_ms = round((t() - start) * 1000)

    try:
        weather = normalize_forecast(data)
    except (KeyError, TypeError) as e:
        raise UpstreamUnavailable(f"WeatherAPI payload missing field: {e}") from e

    total_ms = round((t() - start) * 1000)
    log.info("Weather forecast for %r: %dms (API: %dms)", query, total_ms, api_ms)
    return weather
