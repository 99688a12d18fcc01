"""
Risk schemas.

GET /risk                  → RiskAssessmentResponse
GET /risk/events/{id}      → EventRiskResponse
"""
from typing import Optional

from pydantic import BaseModel, Field


class RiskAssessmentResponse(BaseModel):
    risk_score: float = Field(description="0.0–1.0", examples=[0.42])
    risk_level: str = Field(description='"LOW" | "MEDIUM" | "HIGH"')
    factors: dict[str, float]
    recommendation: str
    strategy: str


class EventRiskResponse(BaseModel):
    event_id: int
    risk_score: float
    risk_level: str
    recommendation: str
    strategy: str = Field(description='"model" or "model_fallback"')
    used_fallback: bool
    fallback_reason: Optional[str] = None
