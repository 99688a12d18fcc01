"""
Risk Engine — how risky is it to unlock right now?

Rule strategy (always available)
--------------------------------
Six factors, each in [0, 1], evaluated in this fixed order:

  factor            weight   input
  bedtime_risk       0.25    local hour
  frequency_risk     0.20    launches (any package) in the last 30 min
  duration_risk      0.15    mean duration of the 10 most recent events
  recency_risk       0.20    minutes since the most recent event
  cumulative_risk    0.15    minutes of screen time since local midnight
  day_risk           0.05    weekend (Sun=1 / Sat=7) vs weekday

score = Σ factor × weight, clamped to [0, 1].
  score ≥ 0.7 → HIGH,  ≥ 0.4 → MEDIUM,  else LOW.

The snapshot is the 50 most recent events. When HIGH, the recommendation is
keyed by the largest factor; ties go to the earliest factor in the order
above.

Learned strategy
----------------
`RiskEngine.score_event` scores a single recorded event through a
GuardedRiskModel (see learned_model.py), which has its own simpler fallback
formula. The two rule formulas are intentionally distinct. `assess_event`
wraps that score as a RiskAssessment tagged "model" or "model_fallback".
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from locked.services import aggregator
from locked.services.event_store import (
    MS_PER_MINUTE,
    day_of_week,
    hour_of_day,
    local_day_start_ms,
    now_ms,
    recent_events,
)
from locked.services.learned_model import GuardedRiskModel, ModelInput, ModelPrediction


class RiskLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


HIGH_THRESHOLD = 0.7
MEDIUM_THRESHOLD = 0.4

RECENT_EVENT_WINDOW = 50
DURATION_WINDOW = 10
FREQUENCY_WINDOW_MS = 30 * MS_PER_MINUTE

FACTOR_WEIGHTS: dict[str, float] = {
    "bedtime_risk": 0.25,
    "frequency_risk": 0.20,
    "duration_risk": 0.15,
    "recency_risk": 0.20,
    "cumulative_risk": 0.15,
    "day_risk": 0.05,
}
FACTOR_ORDER: tuple[str, ...] = tuple(FACTOR_WEIGHTS)

_HIGH_MESSAGES = {
    "bedtime_risk": "It's late - better to avoid phone use before bed for better sleep quality.",
    "frequency_risk": "You've been using your phone frequently. Take a longer break.",
    "cumulative_risk": "You've had significant screen time today. Consider extending your break.",
}
_HIGH_DEFAULT = "High risk detected. Consider keeping apps locked for now."
_MEDIUM_MESSAGE = "Medium risk detected. Be mindful of your usage."
_LOW_MESSAGE = "Low risk - you're managing your usage well."


@dataclass
class RiskAssessment:
    risk_score: float
    risk_level: RiskLevel
    factors: dict[str, float] = field(default_factory=dict)
    recommendation: str = ""
    strategy: str = "rules"   # rules | model | model_fallback
    fallback_reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Factors
# ---------------------------------------------------------------------------

def bedtime_risk(hour: int) -> float:
    if hour in (22, 23, 0, 1):
        return 1.0
    if hour in (20, 21, 2, 3):
        return 0.6
    return 0.2


def frequency_risk(events: Sequence, now: int) -> float:
    launches = aggregator.launches_since(events, now - FREQUENCY_WINDOW_MS)
    if launches >= 10:
        return 1.0
    if launches >= 5:
        return 0.6
    if launches >= 2:
        return 0.3
    return 0.1


def duration_risk(events: Sequence) -> float:
    if not events:
        return 0.0
    minutes = aggregator.average_session_duration(events, take=DURATION_WINDOW) / MS_PER_MINUTE
    if minutes >= 20:
        return 1.0
    if minutes >= 10:
        return 0.7
    if minutes >= 5:
        return 0.4
    return 0.1


def recency_risk(events: Sequence, now: int) -> float:
    if not events:
        return 0.0
    minutes = aggregator.time_since_most_recent(events, None, now) // MS_PER_MINUTE
    if minutes < 5:
        return 1.0
    if minutes < 15:
        return 0.7
    if minutes < 30:
        return 0.4
    return 0.1


def cumulative_risk(events: Sequence, now: int) -> float:
    total = aggregator.total_screen_time_since(events, local_day_start_ms(now))
    minutes = total // MS_PER_MINUTE
    if minutes >= 180:
        return 1.0
    if minutes >= 120:
        return 0.7
    if minutes >= 60:
        return 0.4
    return 0.1


def day_risk(dow: int) -> float:
    return 0.6 if dow in (1, 7) else 0.4


# ---------------------------------------------------------------------------
# Combination
# ---------------------------------------------------------------------------

def compute_factors(events: Sequence, now: int) -> dict[str, float]:
    return {
        "bedtime_risk": bedtime_risk(hour_of_day(now)),
        "frequency_risk": frequency_risk(events, now),
        "duration_risk": duration_risk(events),
        "recency_risk": recency_risk(events, now),
        "cumulative_risk": cumulative_risk(events, now),
        "day_risk": day_risk(day_of_week(now)),
    }


def combine_factors(factors: dict[str, float]) -> float:
    total = sum(factors.get(name, 0.0) * weight for name, weight in FACTOR_WEIGHTS.items())
    return min(max(total, 0.0), 1.0)


def classify_risk(score: float) -> RiskLevel:
    if score >= HIGH_THRESHOLD:
        return RiskLevel.HIGH
    if score >= MEDIUM_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def top_factor(factors: dict[str, float]) -> Optional[str]:
    names = [n for n in FACTOR_ORDER if n in factors]
    if not names:
        return None
    # max() keeps the first of equal values, which gives the fixed-order tie-break.
    return max(names, key=lambda n: factors[n])


def recommend(score: float, factors: dict[str, float]) -> str:
    level = classify_risk(score)
    if level is RiskLevel.HIGH:
        return _HIGH_MESSAGES.get(top_factor(factors), _HIGH_DEFAULT)
    if level is RiskLevel.MEDIUM:
        return _MEDIUM_MESSAGE
    return _LOW_MESSAGE


def assess_events(events: Sequence, now: int) -> RiskAssessment:
    """Rule-based assessment of a snapshot ordered most recent first."""
    factors = compute_factors(events, now)
    score = combine_factors(factors)
    return RiskAssessment(
        risk_score=score,
        risk_level=classify_risk(score),
        factors=factors,
        recommendation=recommend(score, factors),
        strategy="rules",
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class RiskEngine:
    """Reads from the event store and applies the strategies above."""

    def __init__(self, model: Optional[GuardedRiskModel] = None):
        self.model = model or GuardedRiskModel()

    def assess(self, db: Session, now: Optional[int] = None) -> RiskAssessment:
        ts = now if now is not None else now_ms()
        events = recent_events(db, limit=RECENT_EVENT_WINDOW)
        return assess_events(events, ts)

    def score_event(self, event) -> ModelPrediction:
        """Learned-model score for one recorded event; never raises."""
        return self.model.predict(ModelInput.from_event(event))

    def assess_event(self, event) -> RiskAssessment:
        """Learned-model assessment of one recorded event. Has no factor breakdown."""
        prediction = self.score_event(event)
        return RiskAssessment(
            risk_score=prediction.score,
            risk_level=classify_risk(prediction.score),
            factors={},
            recommendation=recommend(prediction.score, {}),
            strategy="model_fallback" if prediction.used_fallback else "model",
            fallback_reason=prediction.reason,
        )

    def close(self) -> None:
        self.model.close()
