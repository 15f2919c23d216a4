# backend/agrimate/config.py
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

dotenv_path = Path(__file__).parents[2] / '.env'
load_dotenv(dotenv_path)


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # --- LLM providers (order: NVIDIA first, Groq as fallback) ---
    NVIDIA_API_KEY: str = ""
    GROQ_API_KEY: str = ""

    # --- WeatherAPI.com ---
    WEATHER_API_KEY: str = ""
    DEFAULT_WEATHER_LOCATION: str = "New Delhi"

    # --- Data.gov.in (mandi) ---
    DATA_GOV_API_KEY: str = ""

    # Per-call deadlines (seconds)
    WEATHER_TIMEOUT_SEC: float = 10.0
    LLM_TIMEOUT_SEC: float = 10.0
    MANDI_TIMEOUT_SEC: float = 5.0

    # Fallback price jitter; unset means wall-clock/system entropy
    MANDI_JITTER_SEED: Optional[int] = None

    # Chat
    HISTORY_LIMIT: int = 20
    CHAT_STORE_PATH: str = ""

    LOG_LEVEL: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            NVIDIA_API_KEY=os.getenv("NVIDIA_API_KEY", ""),
            GROQ_API_KEY=os.getenv("GROQ_API_KEY", ""),
            WEATHER_API_KEY=os.getenv("WEATHER_API_KEY", ""),
            DEFAULT_WEATHER_LOCATION=os.getenv("DEFAULT_WEATHER_LOCATION", "New Delhi"),
            # DATA_GOV_IN_API_KEY is the older name for the same portal key
            DATA_GOV_API_KEY=os.getenv("DATA_GOV_API_KEY") or os.getenv("DATA_GOV_IN_API_KEY", ""),
            WEATHER_TIMEOUT_SEC=_float_env("WEATHER_TIMEOUT_SEC", 10.0),
            LLM_TIMEOUT_SEC=_float_env("LLM_TIMEOUT_SEC", 10.0),
            MANDI_TIMEOUT_SEC=_float_env("MANDI_TIMEOUT_SEC", 5.0),
            MANDI_JITTER_SEED=_int_env("MANDI_JITTER_SEED", None),
            HISTORY_LIMIT=_int_env("HISTORY_LIMIT", 20),
            CHAT_STORE_PATH=os.getenv("CHAT_STORE_PATH", ""),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        )


settings = Settings.from_env()


def get_settings() -> Settings:
    """FastAPI dependency; tests override it with their own Settings."""
    return settings
