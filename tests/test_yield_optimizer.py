import json
import random
import unittest

from fakes import ScriptedFactory, mock_client, weather_payload

import httpx
from fastapi.testclient import TestClient

from agrimate.config import Settings
from agrimate.di import get_yield_optimizer
from agrimate.llm.providers import GROQ_NAME
from agrimate.main import app
from agrimate.schemas import Action, FarmInput, RiskLevel
from agrimate.services.yield_optimizer import YieldOptimizer
from agrimate.tools.mandi_fallback import fallback_records

REPLY = json.dumps({
    "action": "IRRIGATE",
    "riskLevel": "warning",
    "headline": "Irrigate before the heat spell",
    "rationale": "Humidity is low and modal prices are firm at ₹2,650.",
    "projectedImpact": 3200,
    "confidence": 82,
    "soilMoistureEstimate": 34,
    "yieldProjection": 42,
    "fullAnalysis": "1) Conditions... 5) Returns...",
})

FARM = FarmInput(crop="Wheat", area=2.5, state="Punjab", soil_type="Alluvial")


class YieldOptimizerTests(unittest.IsolatedAsyncioTestCase):
    def optimizer(self, settings: Settings, factory: ScriptedFactory,
                  client: httpx.AsyncClient = None) -> YieldOptimizer:
        return YieldOptimizer(settings, client, factory, rng=random.Random(5))

    async def test_snapshots_and_parsed_recommendation(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=weather_payload(name="Ludhiana"))

        factory = ScriptedFactory({GROQ_NAME: {"reply": REPLY}})
        settings = Settings(GROQ_API_KEY="g", WEATHER_API_KEY="w")
        async with mock_client(handler) as client:
            result = await self.optimizer(settings, factory, client).analyze(FARM)

        self.assertEqual(result.weather.location, "Ludhiana, Delhi")
        self.assertEqual(result.weather.rain_chance, 20)

        records = fallback_records("Wheat", rng=random.Random(5))
        self.assertEqual(result.market.record_count, len(records))
        self.assertEqual(result.market.avg_price, round(sum(r["modalPrice"] for r in records) / len(records)))
        self.assertEqual(result.market.min_price, min(r["minPrice"] for r in records))
        self.assertEqual(result.market.max_price, max(r["maxPrice"] for r in records))

        self.assertEqual(result.provider, GROQ_NAME)
        self.assertEqual(result.recommendation.action, Action.IRRIGATE)
        self.assertEqual(result.recommendation.risk_level, RiskLevel.WARNING)
        self.assertEqual(result.recommendation.confidence, 82)
        self.assertEqual(result.soil_moisture, 34)
        self.assertEqual(result.yield_projection, 42)
        self.assertEqual(result.ai_analysis, REPLY)

        sent = factory.models[GROQ_NAME].seen[0]
        self.assertEqual([m.type for m in sent], ["system", "human"])
        self.assertIn("AgriMate", sent[0].content)
        prompt = sent[-1].content
        self.assertIn("Crop: Wheat", prompt)
        self.assertIn("Soil Type: Alluvial", prompt)
        self.assertIn("LIVE WEATHER (Ludhiana, Delhi)", prompt)
        self.assertIn(f"Data from {len(records)} mandis", prompt)

    async def test_missing_weather_still_analyzes(self) -> None:
        factory = ScriptedFactory({GROQ_NAME: {"reply": REPLY}})
        result = await self.optimizer(Settings(GROQ_API_KEY="g"), factory).analyze(FARM)
        self.assertIsNone(result.weather)
        self.assertIsNotNone(result.market)
        self.assertIn("WEATHER: Unavailable", factory.models[GROQ_NAME].seen[0][-1].content)

    async def test_unknown_crop_has_no_market(self) -> None:
        factory = ScriptedFactory({GROQ_NAME: {"reply": REPLY}})
        farm = FarmInput(crop="Saffron", area=1, state="Jammu and Kashmir", soil_type="Loam")
        result = await self.optimizer(Settings(GROQ_API_KEY="g"), factory).analyze(farm)
        self.assertIsNone(result.market)
        self.assertIn("MARKET DATA: Unavailable", factory.models[GROQ_NAME].seen[0][-1].content)

    async def test_llm_failure_gives_default_recommendation(self) -> None:
        factory = ScriptedFactory({GROQ_NAME: {"error": RuntimeError("Groq error 500")}})
        result = await self.optimizer(Settings(GROQ_API_KEY="g"), factory).analyze(FARM)
        self.assertIsNone(result.provider)
        self.assertEqual(result.ai_analysis, "")
        self.assertEqual(result.recommendation.action, Action.DELAY)
        self.assertEqual(result.recommendation.confidence, 70)

    async def test_no_llm_credentials_gives_default_recommendation(self) -> None:
        result = await self.optimizer(Settings(), ScriptedFactory({})).analyze(FARM)
        self.assertIsNone(result.provider)
        self.assertEqual(result.recommendation.risk_level, RiskLevel.NEUTRAL)


class YieldEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)
        factory = ScriptedFactory({GROQ_NAME: {"reply": "Prose only, no JSON."}})
        app.dependency_overrides[get_yield_optimizer] = lambda: YieldOptimizer(
            Settings(GROQ_API_KEY="g"), None, factory, rng=random.Random(1),
        )

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_camel_case_response(self) -> None:
        resp = self.client.post("/yield-analysis", json={
            "crop": "Rice", "area": 3, "state": "Punjab", "soilType": "Clay",
        })
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["recommendation"]["action"], "DELAY")
        self.assertEqual(body["recommendation"]["riskLevel"], "neutral")
        self.assertEqual(body["soilMoisture"], 50)
        self.assertEqual(body["fullAnalysis"], "Prose only, no JSON.")
        self.assertIsNone(body["weather"])
        self.assertGreater(body["market"]["recordCount"], 0)

    def test_invalid_farm_input(self) -> None:
        resp = self.client.post("/yield-analysis", json={"crop": "Rice", "area": 0, "state": "Punjab"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("error", resp.json())


if __name__ == "__main__":
    unittest.main()
