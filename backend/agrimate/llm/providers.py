# backend/agrimate/llm/providers.py
from dataclasses import dataclass, field
from typing import Any, Dict, List

from agrimate.config import Settings
from agrimate.errors import ConfigurationError


@dataclass(frozen=True)
class ProviderDescriptor:
    """One OpenAI-compatible chat-completion endpoint."""
    name: str
    base_url: str
    model: str
    api_key: str
    extra_params: Dict[str, Any] = field(default_factory=dict)


NVIDIA_NAME = "NVIDIA Nemotron Super 49B"
GROQ_NAME = "Groq Llama 3.3 70B"


def build_providers(settings: Settings) -> List[ProviderDescriptor]:
    """
    Ordered fallback list: NVIDIA NIM first, Groq second.
    A provider is only included when its key is configured.
    """
    providers: List[ProviderDescriptor] = []

    # Primary: NVIDIA NIM
    if settings.NVIDIA_API_KEY:
        providers.append(ProviderDescriptor(
            name=NVIDIA_NAME,
            base_url="https://integrate.api.nvidia.com/v1",
            model="nvidia/llama-3.3-nemotron-super-49b-v1.5",
            api_key=settings.NVIDIA_API_KEY,
            extra_params={
                "temperature": 0.6,
                "top_p": 0.95,
                "max_tokens": 4096,
                "frequency_penalty": 0,
                "presence_penalty": 0,
            },
        ))

    # Fallback: Groq
    if settings.GROQ_API_KEY:
        providers.append(ProviderDescriptor(
            name=GROQ_NAME,
            base_url="https://api.groq.com/openai/v1",
            model="llama-3.3-70b-versatile",
            api_key=settings.GROQ_API_KEY,
            extra_params={
                "temperature": 0.7,
                "max_tokens": 4096,
            },
        ))

    if not providers:
        raise ConfigurationError(
            "No AI API keys configured. Add NVIDIA_API_KEY or GROQ_API_KEY to .env"
        )
    return providers
