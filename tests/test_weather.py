import asyncio
import unittest

from fakes import mock_client, weather_payload

import httpx
from fastapi.testclient import TestClient

from agrimate import http
from agrimate.config import Settings, get_settings
from agrimate.errors import UpstreamUnavailable
from agrimate.http import get_http
from agrimate.main import app
from agrimate.tools.weather import build_query, fetch_weather, normalize_forecast


class BuildQueryTests(unittest.TestCase):
    def test_precedence(self) -> None:
        self.assertEqual(build_query("28.6", "77.2", "Pune"), "28.6,77.2")
        self.assertEqual(build_query("28.6", None, "Pune"), "Pune")
        self.assertEqual(build_query(None, None, None, default="Nagpur"), "Nagpur")


class NormalizeForecastTests(unittest.TestCase):
    def test_shape(self) -> None:
        data = normalize_forecast(weather_payload())
        self.assertEqual(data["location"]["name"], "New Delhi")
        self.assertEqual(data["current"]["temperature"], 29.0)
        self.assertTrue(data["current"]["isDay"])
        self.assertEqual(len(data["forecast"]), 5)
        day = data["forecast"][0]
        self.assertEqual(day["rainChance"], 20)
        self.assertEqual(day["astro"]["moonPhase"], "Waxing Gibbous")
        self.assertEqual(len(day["hourly"]), 24)
        self.assertNotIn("code", day["hourly"][0]["condition"])
        self.assertTrue(data["current"]["condition"]["icon"].startswith("https://"))
        self.assertTrue(day["hourly"][0]["condition"]["icon"].startswith("https://"))

    def test_missing_field_raises(self) -> None:
        raw = weather_payload()
        del raw["current"]
        with self.assertRaises(KeyError):
            normalize_forecast(raw)


class WeatherEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)
        self.requests = []
        self.upstream = httpx.Response(200, json=weather_payload())
        app.dependency_overrides[get_settings] = lambda: Settings(WEATHER_API_KEY="w")
        app.dependency_overrides[get_http] = lambda: mock_client(self._handler)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.upstream

    def test_default_location(self) -> None:
        resp = self.client.get("/weather")
        self.assertEqual(resp.status_code, 200)
        params = self.requests[0].url.params
        self.assertEqual(params["q"], "New Delhi")
        self.assertEqual(params["days"], "5")
        self.assertEqual(params["alerts"], "yes")
        body = resp.json()
        self.assertEqual(len(body["forecast"]), 5)
        self.assertTrue(all(d["hourly"] for d in body["forecast"]))
        self.assertEqual(resp.headers["cache-control"], "public, max-age=600")

    def test_coordinates_win(self) -> None:
        self.client.get("/weather", params={"lat": "18.52", "lon": "73.85", "city": "Mumbai"})
        self.assertEqual(self.requests[0].url.params["q"], "18.52,73.85")

    def test_missing_key(self) -> None:
        app.dependency_overrides[get_settings] = lambda: Settings()
        resp = self.client.get("/weather")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Weather API key not configured."})
        self.assertEqual(self.requests, [])

    def test_upstream_failure(self) -> None:
        self.upstream = httpx.Response(401, json={"error": {"message": "bad key"}})
        resp = self.client.get("/weather", params={"city": "Pune"})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Failed to fetch weather data."})

    def test_slow_upstream(self) -> None:
        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json=weather_payload())

        app.dependency_overrides[get_settings] = lambda: Settings(WEATHER_API_KEY="w", WEATHER_TIMEOUT_SEC=0.05)
        app.dependency_overrides[get_http] = lambda: mock_client(slow)
        resp = self.client.get("/weather")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Failed to fetch weather data."})

    def test_malformed_payload(self) -> None:
        self.upstream = httpx.Response(200, json={"location": {"name": "x"}})
        resp = self.client.get("/weather")
        self.assertEqual(resp.status_code, 500)


class FetchWeatherTests(unittest.IsolatedAsyncioTestCase):
    async def test_deadline(self) -> None:
        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json=weather_payload())

        async with mock_client(slow) as client:
            with self.assertRaises(UpstreamUnavailable) as ctx:
                await fetch_weather(client, "w", "Pune", timeout=0.05)
        self.assertIn("timed out", str(ctx.exception))


class HttpClientLifecycleTests(unittest.IsolatedAsyncioTestCase):
    async def test_init_and_close(self) -> None:
        with self.assertRaises(RuntimeError):
            http.get_http_client()
        await http.init_http(Settings(LLM_TIMEOUT_SEC=12))
        try:
            self.assertIs(http.get_http(), http.client)
            self.assertIn("AgriMate", http.client.headers["user-agent"])
            self.assertEqual(http.client.timeout.read, 12)
        finally:
            await http.close_http()
        self.assertIsNone(http.get_http_or_none())


if __name__ == "__main__":
    unittest.main()
