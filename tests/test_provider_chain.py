import asyncio
import unittest

from fakes import ScriptedFactory, completion, mock_client, provider

import httpx
from langchain_core.messages import AIMessage

from agrimate.config import Settings
from agrimate.errors import ConfigurationError, ProvidersExhausted
from agrimate.llm.chain import ChainReply, ProviderChain, build_messages, openai_model_factory, strip_reasoning
from agrimate.llm.providers import GROQ_NAME, NVIDIA_NAME, build_providers


class StripReasoningTests(unittest.TestCase):
    def test_removes_every_block(self) -> None:
        raw = "<think>plan A</think>Irrigate tonight.<think>\nmore\n</think> Then wait."
        self.assertEqual(strip_reasoning(raw), "Irrigate tonight. Then wait.")

    def test_idempotent_and_leaves_no_markers(self) -> None:
        samples = [
            "<think>x</think>Sell now.",
            "<thi<think>a</think>nk>b</think>Hold.",
            "early reasoning</think>Apply urea.",
            "Harvest Friday.<think>unfinished thoughts",
            "</think><think>",
            "Answer</think>",
            "</th</think>ink></think>",
            "No reasoning here.",
        ]
        for raw in samples:
            once = strip_reasoning(raw)
            self.assertEqual(strip_reasoning(once), once, raw)
            self.assertNotIn("<think>", once)
            self.assertNotIn("</think>", once)

    def test_unmatched_markers(self) -> None:
        self.assertEqual(strip_reasoning("thinking...</think>Answer"), "Answer")
        self.assertEqual(strip_reasoning("Answer<think>still thinking"), "Answer")

    def test_trailing_closer_keeps_answer(self) -> None:
        self.assertEqual(strip_reasoning("Answer</think>"), "Answer")
        self.assertEqual(strip_reasoning("Answer</think>  \n"), "Answer")
        self.assertEqual(strip_reasoning("plan</think>Answer</think>"), "Answer")


class BuildMessagesTests(unittest.TestCase):
    def test_keeps_last_twenty_turns(self) -> None:
        history = [{"role": "user" if i % 2 == 0 else "assistant", "content": str(i)} for i in range(30)]
        messages = build_messages("sys", history, "new")
        self.assertEqual(len(messages), 22)
        self.assertEqual(messages[0], {"role": "system", "content": "sys"})
        self.assertEqual(messages[1]["content"], "10")
        self.assertEqual(messages[-1], {"role": "user", "content": "new"})

    def test_history_is_not_mutated(self) -> None:
        history = [{"role": "user", "content": "hi"}]
        build_messages("sys", history, "new")
        self.assertEqual(history, [{"role": "user", "content": "hi"}])


class BuildProvidersTests(unittest.TestCase):
    def test_order_is_nvidia_then_groq(self) -> None:
        names = [p.name for p in build_providers(Settings(NVIDIA_API_KEY="n", GROQ_API_KEY="g"))]
        self.assertEqual(names, [NVIDIA_NAME, GROQ_NAME])

    def test_only_configured_providers(self) -> None:
        self.assertEqual([p.name for p in build_providers(Settings(GROQ_API_KEY="g"))], [GROQ_NAME])

    def test_no_keys_is_configuration_error(self) -> None:
        with self.assertRaises(ConfigurationError):
            build_providers(Settings())


class ProviderChainTests(unittest.IsolatedAsyncioTestCase):
    async def test_stops_at_first_success(self) -> None:
        factory = ScriptedFactory({
            "A": {"error": RuntimeError("A down")},
            "B": {"reply": "<think>hmm</think> Sow wheat now."},
            "C": {"reply": "never"},
        })
        chain = ProviderChain([provider("A"), provider("B"), provider("C")], factory)
        out = await chain.complete([{"role": "user", "content": "when to sow?"}])
        self.assertEqual(out.provider, "B")
        self.assertEqual(out.reply, "Sow wheat now.")
        self.assertEqual(factory.calls, ["A", "B"])

    async def test_empty_content_falls_through(self) -> None:
        factory = ScriptedFactory({"A": {"reply": "<think>only reasoning</think>"}, "B": {"reply": "ok"}})
        chain = ProviderChain([provider("A"), provider("B")], factory)
        out = await chain.complete([{"role": "user", "content": "x"}])
        self.assertEqual(out.provider, "B")

    async def test_exhaustion_reports_last_error(self) -> None:
        factory = ScriptedFactory({
            "A": {"error": RuntimeError("first failure")},
            "B": {"error": RuntimeError("second failure")},
        })
        chain = ProviderChain([provider("A"), provider("B")], factory)
        with self.assertRaises(ProvidersExhausted) as ctx:
            await chain.complete([{"role": "user", "content": "x"}])
        self.assertIn("second failure", str(ctx.exception))
        self.assertEqual(factory.calls, ["A", "B"])

    async def test_slow_provider_falls_through(self) -> None:
        calls = []

        class SlowModel:
            async def ainvoke(self, messages):
                calls.append("slow")
                await asyncio.sleep(5)
                return AIMessage(content="too late")

        factory = ScriptedFactory({"B": {"reply": "ok"}})
        chain = ProviderChain(
            [provider("A"), provider("B")],
            lambda p: SlowModel() if p.name == "A" else factory(p),
            timeout=0.1,
        )
        out = await chain.complete([{"role": "user", "content": "x"}])
        self.assertEqual(out, ChainReply(reply="ok", provider="B"))
        self.assertEqual(calls, ["slow"])
        self.assertEqual(factory.calls, ["B"])

    async def test_slow_only_provider_reports_timeout(self) -> None:
        class SlowModel:
            async def ainvoke(self, messages):
                await asyncio.sleep(5)

        chain = ProviderChain([provider("A")], lambda p: SlowModel(), timeout=0.05)
        with self.assertRaises(ProvidersExhausted) as ctx:
            await chain.complete([{"role": "user", "content": "x"}])
        self.assertIn("A timed out after 0.05s", str(ctx.exception))

    async def test_openai_compatible_endpoints_over_http(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.host)
            if request.url.host == "integrate.api.nvidia.com":
                return httpx.Response(503, json={"error": {"message": "overloaded"}})
            return httpx.Response(200, json=completion("<think>check prices</think>Hold your stock."))

        async with mock_client(handler) as client:
            chain = ProviderChain(
                build_providers(Settings(NVIDIA_API_KEY="n", GROQ_API_KEY="g")),
                openai_model_factory(client, timeout=5),
                timeout=5,
            )
            out = await chain.complete([{"role": "user", "content": "sell or hold?"}])

        self.assertEqual(out.provider, GROQ_NAME)
        self.assertEqual(out.reply, "Hold your stock.")
        self.assertEqual(seen, ["integrate.api.nvidia.com", "api.groq.com"])


if __name__ == "__main__":
    unittest.main()
