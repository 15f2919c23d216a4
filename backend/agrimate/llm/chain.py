# backend/agrimate/llm/chain.py
"""
Ordered fallback over OpenAI-compatible chat-completion providers.

Providers are tried one at a time in the configured order. The first provider
that returns non-empty content wins; the others are never called. There is no
retry within a provider and no racing between providers.
"""
import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
import openai
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from agrimate.config import Settings
from agrimate.errors import ProvidersExhausted, UpstreamUnavailable
from agrimate.llm.providers import ProviderDescriptor, build_providers

log = logging.getLogger("agrimate.llm")

def t() -> float:
    return time.perf_counter()

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"
_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL)

# provider -> object exposing ``async ainvoke(messages)``
ChatModelFactory = Callable[[ProviderDescriptor], Any]

_ROLE_TO_MESSAGE = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


@dataclass(frozen=True)
class ChainReply:
    reply: str
    provider: str


def strip_reasoning(text: str) -> str:
    """
    Remove ``<think>...</think>`` blocks and any leftover marker.

    Blocks are removed until none remain. A closing marker with no opener means
    the reasoning started before the visible text, so everything up to it goes,
    unless nothing but whitespace follows it: then only the marker goes. An
    opener with no closer means the reasoning ran to the end.
    """
    if not text:
        return ""
    previous = None
    while previous != text:
        previous = text
        text = _THINK_BLOCK.sub("", text)
    while THINK_CLOSE in text:
        head, _, tail = text.rpartition(THINK_CLOSE)
        text = tail if tail.strip() else head
    if THINK_OPEN in text:
        text = text[:text.find(THINK_OPEN)]
    return text.strip()


def build_messages(
    system: str,
    history: Sequence[Dict[str, str]],
    message: str,
    limit: int = 20,
) -> List[Dict[str, str]]:
    """System instruction + the last ``limit`` history turns + the new user turn."""
    recent = list(history)[-limit:] if limit > 0 else []
    return [
        {"role": "system", "content": system},
        *({"role": m["role"], "content": m["content"]} for m in recent),
        {"role": "user", "content": message},
    ]


def _to_langchain(messages: Sequence[Dict[str, str]]) -> List[BaseMessage]:
    return [_ROLE_TO_MESSAGE[m["role"]](content=m["content"]) for m in messages]


def _content_text(resp: Any) -> str:
    content = getattr(resp, "content", resp)
    if isinstance(content, list):
        # content blocks: keep only the text parts
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text") or "")
        content = "".join(parts)
    return content if isinstance(content, str) else ""


def openai_model_factory(
    http_client: Optional[httpx.AsyncClient] = None,
    timeout: float = 10.0,
) -> ChatModelFactory:
    """Build ChatOpenAI clients pointed at each provider's base URL."""
    def _factory(provider: ProviderDescriptor) -> ChatOpenAI:
        return ChatOpenAI(
            model=provider.model,
            base_url=provider.base_url,
            api_key=provider.api_key,
            timeout=timeout,
            max_retries=0,
            http_async_client=http_client,
            **provider.extra_params,
        )
    return _factory


class ProviderChain:
    def __init__(
        self,
        providers: Sequence[ProviderDescriptor],
        model_factory: ChatModelFactory,
        timeout: float = 10.0,
    ) -> None:
        self.providers = tuple(providers)
        self.model_factory = model_factory
        self.timeout = timeout

    async def _call(self, provider: ProviderDescriptor, messages: Sequence[Dict[str, str]]) -> str:
        model = self.model_factory(provider)
        try:
            resp = await asyncio.wait_for(model.ainvoke(_to_langchain(messages)), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailable(f"{provider.name} timed out after {self.timeout:g}s") from e
        except openai.APIStatusError as e:
            body = (e.response.text if e.response is not None else str(e))[:200]
            raise UpstreamUnavailable(f"{provider.name} error {e.status_code}: {body}") from e
        except (openai.APIError, httpx.HTTPError) as e:
            raise UpstreamUnavailable(f"{provider.name} request failed: {e}") from e

        reply = strip_reasoning(_content_text(resp))
        if not reply:
            raise UpstreamUnavailable(f"{provider.name} returned empty response")
        return reply

    async def complete(self, messages: Sequence[Dict[str, str]]) -> ChainReply:
        last_error = ""
        for provider in self.providers:
            start = t()
            log.info("Trying %s...", provider.name)
            try:
                reply = await self._call(provider, messages)
            except Exception as e:
                last_error = str(e)
                log.warning("%s failed in %dms: %s", provider.name, round((t() - start) * 1000), last_error)
                continue
            log.info("%s responded in %dms", provider.name, round((t() - start) * 1000))
            return ChainReply(reply=reply, provider=provider.name)

        raise ProvidersExhausted(last_error)


def chain_from_settings(settings: Settings, model_factory: ChatModelFactory) -> ProviderChain:
    """Raises ConfigurationError when no provider key is set."""
    return ProviderChain(build_providers(settings), model_factory, timeout=settings.LLM_TIMEOUT_SEC)
