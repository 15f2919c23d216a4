from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire (the dashboard's JSON shape)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------- Chat ----------

Role = Literal["user", "assistant", "system"]

class ChatTurn(BaseModel):
    role: Role
    content: str

class ChatReply(BaseModel):
    reply: str
    provider: str


# ---------- Yield analysis ----------

class Action(str, Enum):
    HOLD = "HOLD"
    APPLY = "APPLY"
    DELAY = "DELAY"
    HARVEST = "HARVEST"
    IRRIGATE = "IRRIGATE"

class RiskLevel(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    OPTIMAL = "optimal"
    NEUTRAL = "neutral"

class FarmInput(CamelModel):
    crop: str = Field(..., min_length=1, description="Commodity/crop name (e.g., 'Wheat')")
    area: float = Field(..., gt=0, description="Farm area in hectares")
    state: str = Field(..., description="Indian state of the farm")
    soil_type: str = Field(..., description="e.g., 'Alluvial', 'Black', 'Red'")

    # Optional weather location; default location otherwise
    lat: Optional[str] = None
    lon: Optional[str] = None
    city: Optional[str] = None

class WeatherSnapshot(CamelModel):
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    rain_chance: float = 0
    wind_speed: Optional[float] = None
    condition: str = ""
    location: str = ""

class MarketSnapshot(CamelModel):
    avg_price: int
    min_price: float
    max_price: float
    record_count: int

class Recommendation(CamelModel):
    action: Action = Action.DELAY
    risk_level: RiskLevel = RiskLevel.NEUTRAL
    headline: str
    rationale: str
    projected_impact: float = 0           # ₹/acre, positive = gain
    confidence: int = Field(70, ge=0, le=100)

class YieldAnalysis(CamelModel):
    weather: Optional[WeatherSnapshot] = None
    market: Optional[MarketSnapshot] = None
    ai_analysis: str = ""                 # raw model reply
    recommendation: Recommendation
    soil_moisture: float = 50
    yield_projection: float = 30          # quintals/hectare
    full_analysis: str = ""
    provider: Optional[str] = None


# ---------- Conversations ----------

class ConversationCreate(BaseModel):
    title: Optional[str] = None

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

class ConversationRename(BaseModel):
    title: NonBlank

class ActiveConversation(BaseModel):
    id: Optional[str] = None

class SendMessage(BaseModel):
    message: NonBlank

class ConversationList(CamelModel):
    conversations: List[Dict[str, Any]] = Field(default_factory=list)
    active_conversation_id: Optional[str] = None
