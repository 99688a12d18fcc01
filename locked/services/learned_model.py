"""
Learned-model risk strategy with a deterministic additive fallback.

The model itself is an injected collaborator: anything with a
`predict(features: Sequence[float]) -> float` method. It is treated as an
untrusted, possibly slow call: `GuardedRiskModel` runs it on a worker thread
with a timeout and falls back to `fallback_risk_score` on any failure.

Feature order (must match training):
  dayOfWeek, hourOfDay, sessionDuration_min, timeSinceLastUse_min,
  dailyAppLaunches, totalDailyScreenTime_min, cumulativeDailyScreenTime,
  appCategory_encoded, is_bedtime, is_morning, is_evening, is_weekend

cumulativeDailyScreenTime is fed in raw milliseconds, unlike the other two
durations; the trained model expects it that way.
"""
from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from locked.core.config import settings

logger = logging.getLogger(__name__)

FEATURE_COUNT = 12

CATEGORY_ENCODING = {
    "GAME": 0,
    "NEWS": 1,
    "OTHER": 2,
    "PRODUCTIVITY": 3,
    "SOCIAL": 4,
    "VIDEO": 5,
}
_DEFAULT_CATEGORY_CODE = CATEGORY_ENCODING["OTHER"]

_MS_PER_MINUTE = 60 * 1000


class RiskModel(Protocol):
    def predict(self, features: Sequence[float]) -> float: ...


def encode_category(category) -> int:
    value = category.value if hasattr(category, "value") else str(category)
    return CATEGORY_ENCODING.get(value.upper(), _DEFAULT_CATEGORY_CODE)


@dataclass(frozen=True)
class ModelInput:
    day_of_week: int
    hour_of_day: int
    session_duration_min: float
    time_since_last_use_min: float
    daily_app_launches: int
    total_daily_screen_time_min: float
    cumulative_daily_screen_time: int
    app_category_encoded: int

    @classmethod
    def from_event(cls, event) -> "ModelInput":
        return cls(
            day_of_week=event.day_of_week,
            hour_of_day=event.hour_of_day,
            session_duration_min=event.session_duration / _MS_PER_MINUTE,
            time_since_last_use_min=event.time_since_last_use / _MS_PER_MINUTE,
            daily_app_launches=event.daily_app_launches,
            total_daily_screen_time_min=event.total_daily_screen_time / _MS_PER_MINUTE,
            cumulative_daily_screen_time=event.cumulative_daily_screen_time,
            app_category_encoded=encode_category(event.app_category),
        )

    def features(self) -> list[float]:
        hour = self.hour_of_day
        is_bedtime = 1.0 if hour >= 22 or hour <= 2 else 0.0
        is_morning = 1.0 if 6 <= hour <= 9 else 0.0
        is_evening = 1.0 if 18 <= hour <= 22 else 0.0
        is_weekend = 1.0 if self.day_of_week in (1, 7) else 0.0
        return [
            float(self.day_of_week),
            float(hour),
            float(self.session_duration_min),
            float(self.time_since_last_use_min),
            float(self.daily_app_launches),
            float(self.total_daily_screen_time_min),
            float(self.cumulative_daily_screen_time),
            float(self.app_category_encoded),
            is_bedtime,
            is_morning,
            is_evening,
            is_weekend,
        ]


def fallback_risk_score(
    hour_of_day: int,
    session_duration_min: float,
    time_since_last_use_min: float,
    daily_app_launches: int,
    total_daily_screen_time_min: float,
) -> float:
    """Unweighted additive score used whenever the model cannot answer."""
    risk = 0.0

    if hour_of_day >= 22 or hour_of_day <= 2:
        risk += 0.3

    if daily_app_launches >= 10:
        risk += 0.2
    elif daily_app_launches >= 5:
        risk += 0.1

    if session_duration_min >= 20:
        risk += 0.2
    elif session_duration_min >= 10:
        risk += 0.1

    if time_since_last_use_min < 5:
        risk += 0.2
    elif time_since_last_use_min < 15:
        risk += 0.1

    if total_daily_screen_time_min >= 180:
        risk += 0.2
    elif total_daily_screen_time_min >= 120:
        risk += 0.1

    return min(max(risk, 0.0), 1.0)


@dataclass
class ModelPrediction:
    score: float
    used_fallback: bool
    reason: Optional[str] = None   # why the fallback ran: unavailable | timeout | error | invalid


class GuardedRiskModel:
    """
    Wraps an optional RiskModel so callers always get a score in [0, 1].

    A model call that exceeds `timeout_s` is abandoned (its thread finishes
    in the background) and the fallback answers instead.
    """

    def __init__(self, model: Optional[RiskModel] = None, timeout_s: Optional[float] = None):
        self.model = model
        self.timeout_s = timeout_s if timeout_s is not None else settings.MODEL_TIMEOUT_S
        self._executor: Optional[ThreadPoolExecutor] = None
        if model is not None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="risk-model")

    @property
    def available(self) -> bool:
        return self.model is not None

    def predict(self, inputs: ModelInput) -> ModelPrediction:
        if self.model is None or self._executor is None:
            return self._fallback(inputs, "unavailable")

        features = inputs.features()
        future = self._executor.submit(self.model.predict, features)
        try:
            raw = future.result(timeout=self.timeout_s)
        except FutureTimeout:
            future.cancel()
            logger.warning("Risk model exceeded %.2fs, using rule fallback", self.timeout_s)
            return self._fallback(inputs, "timeout")
        except Exception as e:
            logger.warning(f"Risk model failed, using rule fallback: {e}")
            return self._fallback(inputs, "error")

        try:
            score = float(raw)
        except (TypeError, ValueError):
            score = math.nan
        if not math.isfinite(score):
            logger.warning("Risk model returned non-finite output %r, using rule fallback", raw)
            return self._fallback(inputs, "invalid")

        return ModelPrediction(score=min(max(score, 0.0), 1.0), used_fallback=False)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    @staticmethod
    def _fallback(inputs: ModelInput, reason: str) -> ModelPrediction:
        score = fallback_risk_score(
            inputs.hour_of_day,
            inputs.session_duration_min,
            inputs.time_since_last_use_min,
            inputs.daily_app_launches,
            inputs.total_daily_screen_time_min,
        )
        return ModelPrediction(score=score, used_fallback=True, reason=reason)
