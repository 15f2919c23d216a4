# backend/agrimate/services/recommendation.py
"""
Lenient extraction of the yield recommendation from free-text model output.

Parsing is a fixed sequence of strategies; the first one that yields a JSON
object wins. If none does, every field takes its default, so callers always
get a usable recommendation.
"""
import json
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from agrimate.schemas import Action, Recommendation, RiskLevel

DEFAULT_HEADLINE = "Analysis complete — review recommendations below."
DEFAULT_RATIONALE = "Based on available data, a cautious approach is recommended."
DEFAULT_CONFIDENCE = 70
DEFAULT_SOIL_MOISTURE = 50
DEFAULT_YIELD_PROJECTION = 30

Strategy = Callable[[str], Optional[Dict[str, Any]]]


def parse_whole(raw: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(raw)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def parse_first_object(raw: str) -> Optional[Dict[str, Any]]:
    """First balanced ``{...}`` span in the text that decodes to an object."""
    decoder = json.JSONDecoder()
    idx = raw.find("{")
    while idx != -1:
        try:
            value, _ = decoder.raw_decode(raw, idx)
        except ValueError:
            value = None
        if isinstance(value, dict):
            return value
        idx = raw.find("{", idx + 1)
    return None


def first_of(*strategies: Strategy) -> Strategy:
    def _run(raw: str) -> Optional[Dict[str, Any]]:
        if not raw:
            return None
        for strategy in strategies:
            found = strategy(raw)
            if found is not None:
                return found
        return None
    return _run


extract_json_object = first_of(parse_whole, parse_first_object)


def _number(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    return default


def _clamp(value: float, lo: float = 0, hi: float = 100) -> float:
    return min(hi, max(lo, value))


def _text(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value.strip() else default


def _enum(enum_cls, value: Any, default, normalize: Callable[[str], str]):
    if isinstance(value, str):
        try:
            return enum_cls(normalize(value.strip()))
        except ValueError:
            pass
    return default


@dataclass(frozen=True)
class ParsedRecommendation:
    recommendation: Recommendation
    soil_moisture: float
    yield_projection: float
    full_analysis: str


def coerce_recommendation(data: Dict[str, Any], raw: str = "") -> ParsedRecommendation:
    """Map a (possibly partial or invalid) model JSON object onto valid fields."""
    recommendation = Recommendation(
        action=_enum(Action, data.get("action"), Action.DELAY, str.upper),
        risk_level=_enum(RiskLevel, data.get("riskLevel"), RiskLevel.NEUTRAL, str.lower),
        headline=_text(data.get("headline"), DEFAULT_HEADLINE),
        rationale=_text(data.get("rationale"), DEFAULT_RATIONALE),
        projected_impact=_number(data.get("projectedImpact"), 0),
        confidence=round(_clamp(_number(data.get("confidence"), DEFAULT_CONFIDENCE))),
    )
    return ParsedRecommendation(
        recommendation=recommendation,
        soil_moisture=_clamp(_number(data.get("soilMoistureEstimate"), DEFAULT_SOIL_MOISTURE)),
        yield_projection=_number(data.get("yieldProjection"), DEFAULT_YIELD_PROJECTION),
        full_analysis=_text(data.get("fullAnalysis"), raw),
    )


def parse_recommendation(raw: str) -> ParsedRecommendation:
    return coerce_recommendation(extract_json_object(raw or "") or {}, raw or "")
