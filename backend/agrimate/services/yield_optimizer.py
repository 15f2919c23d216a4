# backend/agrimate/services/yield_optimizer.py
import asyncio
import logging
import random
import time
from typing import Optional, Tuple

import httpx

from agrimate.config import Settings
from agrimate.errors import AgriMateError
from agrimate.llm.chain import ChatModelFactory, build_messages, chain_from_settings
from agrimate.llm.prompts import SYSTEM_INSTRUCTION, yield_prompt
from agrimate.schemas import FarmInput, MarketSnapshot, WeatherSnapshot, YieldAnalysis
from agrimate.services.recommendation import parse_recommendation
from agrimate.tools.mandi import fetch_mandi_prices
from agrimate.tools.weather import build_query, fetch_weather

log = logging.getLogger("agrimate.yield")

def t(): return time.perf_counter()

MARKET_SAMPLE = 50


class YieldOptimizer:
    """
    Weather + market fan-out, one LLM round-trip, lenient parse.

    Each snapshot degrades to None on its own; an LLM or parse failure degrades
    to the default recommendation. ``analyze`` does not raise for upstream trouble.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient],
        model_factory: ChatModelFactory,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings
        self.http = http_client
        self.model_factory = model_factory
        self.rng = rng

    async def weather_snapshot(self, farm: FarmInput) -> Optional[WeatherSnapshot]:
        query = build_query(farm.lat, farm.lon, farm.city, default=self.settings.DEFAULT_WEATHER_LOCATION)
        try:
            wx = await fetch_weather(
                self.http, self.settings.WEATHER_API_KEY, query,
                timeout=self.settings.WEATHER_TIMEOUT_SEC,
            )
            today = wx["forecast"][0] if wx.get("forecast") else {}
            return WeatherSnapshot(
                temperature=wx["current"]["temperature"],
                humidity=wx["current"]["humidity"],
                rain_chance=today.get("rainChance") or 0,
                wind_speed=wx["current"]["windSpeed"],
                condition=wx["current"]["condition"]["text"],
                location=f"{wx['location']['name']}, {wx['location']['region']}",
            )
        except Exception as e:
            log.warning("Weather snapshot unavailable: %s", e)
            return None

    async def market_snapshot(self, crop: str) -> Optional[MarketSnapshot]:
        try:
            data = await fetch_mandi_prices(
                self.http, self.settings.DATA_GOV_API_KEY,
                commodity=crop, limit=MARKET_SAMPLE,
                timeout=self.settings.MANDI_TIMEOUT_SEC, rng=self.rng,
            )
            records = [
                r for r in data["records"][:MARKET_SAMPLE]
                if all(isinstance(r.get(k), (int, float)) for k in ("modalPrice", "minPrice", "maxPrice"))
            ]
            if not records:
                return None
            return MarketSnapshot(
                avg_price=round(sum(r["modalPrice"] for r in records) / len(records)),
                min_price=min(r["minPrice"] for r in records),
                max_price=max(r["maxPrice"] for r in records),
                record_count=len(records),
            )
        except Exception as e:
            log.warning("Market snapshot unavailable: %s", e)
            return None

    async def ai_reply(self, prompt: str) -> Tuple[str, Optional[str]]:
        """Same request shape as /chat with no history; ('', None) on failure."""
        try:
            chain = chain_from_settings(self.settings, self.model_factory)
            out = await chain.complete(build_messages(SYSTEM_INSTRUCTION, [], prompt))
        except AgriMateError as e:
            log.warning("Yield analysis LLM call failed: %s", e)
            return "", None
        return out.reply, out.provider

    async def analyze(self, farm: FarmInput) -> YieldAnalysis:
        start = t()
        weather, market = await asyncio.gather(
            self.weather_snapshot(farm),
            self.market_snapshot(farm.crop),
        )
        snap_ms = round((t() - start) * 1000)

        prompt = yield_prompt(
            farm.crop, farm.area, farm.state, farm.soil_type,
            weather.model_dump(by_alias=True) if weather else None,
            market.model_dump(by_alias=True) if market else None,
        )
        raw, provider = await self.ai_reply(prompt)
        parsed = parse_recommendation(raw)

        total_ms = round((t() - start) * 1000)
        log.info(
            "Yield analysis for %s: %dms (snapshots: %dms, weather=%s, market=%s, provider=%s, action=%s)",
            farm.crop, total_ms, snap_ms, weather is not None, market is not None,
            provider, parsed.recommendation.action.value,
        )
        return YieldAnalysis(
            weather=weather,
            market=market,
            ai_analysis=raw,
            recommendation=parsed.recommendation,
            soil_moisture=parsed.soil_moisture,
            yield_projection=parsed.yield_projection,
            full_analysis=parsed.full_analysis,
            provider=provider,
        )
