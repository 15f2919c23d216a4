"""
Dependency injection container for the application.
Constructs singletons and provides them to routes/handlers; tests replace any
of these through ``app.dependency_overrides``.
"""
import random
from typing import Optional

import httpx
from fastapi import Depends

from agrimate.config import Settings, get_settings
from agrimate.http import get_http
from agrimate.llm.chain import ChatModelFactory, openai_model_factory
from agrimate.services.yield_optimizer import YieldOptimizer
from agrimate.stores.chat_store import ConversationStore, store_from_path

# Singletons - created once and reused
_conversation_store: Optional[ConversationStore] = None
_system_rng = random.Random()

def get_model_factory(
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http),
) -> ChatModelFactory:
    """ChatOpenAI per provider, sharing the global HTTP client."""
    return openai_model_factory(http, timeout=settings.LLM_TIMEOUT_SEC)

def get_rng(settings: Settings = Depends(get_settings)) -> random.Random:
    """Seeded (reproducible) jitter when MANDI_JITTER_SEED is set."""
    if settings.MANDI_JITTER_SEED is not None:
        return random.Random(settings.MANDI_JITTER_SEED)
    return _system_rng

def get_conversation_store(settings: Settings = Depends(get_settings)) -> ConversationStore:
    """Get singleton conversation store."""
    global _conversation_store
    if _conversation_store is None:
        _conversation_store = store_from_path(settings.CHAT_STORE_PATH)
    return _conversation_store

def get_yield_optimizer(
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http),
    model_factory: ChatModelFactory = Depends(get_model_factory),
    rng: random.Random = Depends(get_rng),
) -> YieldOptimizer:
    return YieldOptimizer(settings, http, model_factory, rng=rng)
