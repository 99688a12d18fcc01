"""
Tests for the learned-model strategy and its guard.
"""
import math
import time

import pytest

from locked.services.learned_model import (
    FEATURE_COUNT,
    GuardedRiskModel,
    ModelInput,
    encode_category,
    fallback_risk_score,
)
from locked.services.risk_engine import RiskEngine, RiskLevel

MIN = 60_000


class _Event:
    """Duck-typed recorded event."""
    def __init__(self, **kw):
        self.day_of_week = kw.get("day_of_week", 4)
        self.hour_of_day = kw.get("hour_of_day", 14)
        self.session_duration = kw.get("session_duration", 0)
        self.time_since_last_use = kw.get("time_since_last_use", 60 * MIN)
        self.daily_app_launches = kw.get("daily_app_launches", 1)
        self.total_daily_screen_time = kw.get("total_daily_screen_time", 0)
        self.cumulative_daily_screen_time = kw.get("cumulative_daily_screen_time", 0)
        self.app_category = kw.get("app_category", "SOCIAL")


class _ConstModel:
    def __init__(self, value):
        self.value = value
        self.seen = None

    def predict(self, features):
        self.seen = list(features)
        return self.value


class _BrokenModel:
    def predict(self, features):
        raise RuntimeError("interpreter crashed")


class _SlowModel:
    def predict(self, features):
        time.sleep(0.5)
        return 0.9


class TestEncoding:
    @pytest.mark.parametrize("category,code", [
        ("GAME", 0), ("NEWS", 1), ("OTHER", 2),
        ("PRODUCTIVITY", 3), ("SOCIAL", 4), ("VIDEO", 5),
    ])
    def test_known(self, category, code):
        assert encode_category(category) == code

    def test_unknown_and_blocked_map_to_other(self):
        assert encode_category("BLOCKED") == 2
        assert encode_category("nonsense") == 2


class TestFeatures:
    def test_vector_shape_and_units(self):
        e = _Event(
            day_of_week=1, hour_of_day=23,
            session_duration=30 * MIN, time_since_last_use=3 * MIN,
            daily_app_launches=7, total_daily_screen_time=90 * MIN,
            cumulative_daily_screen_time=120 * MIN, app_category="VIDEO",
        )
        f = ModelInput.from_event(e).features()

        assert len(f) == FEATURE_COUNT
        assert f[:8] == [1.0, 23.0, 30.0, 3.0, 7.0, 90.0, float(120 * MIN), 5.0]
        # bedtime, morning, evening, weekend
        assert f[8:] == [1.0, 0.0, 0.0, 1.0]

    @pytest.mark.parametrize("hour,flags", [
        (2, [1.0, 0.0, 0.0]),
        (3, [0.0, 0.0, 0.0]),
        (6, [0.0, 1.0, 0.0]),
        (9, [0.0, 1.0, 0.0]),
        (18, [0.0, 0.0, 1.0]),
        (22, [1.0, 0.0, 1.0]),
    ])
    def test_time_of_day_flags(self, hour, flags):
        f = ModelInput.from_event(_Event(hour_of_day=hour)).features()
        assert f[8:11] == flags

    def test_weekday_flag(self):
        assert ModelInput.from_event(_Event(day_of_week=4)).features()[11] == 0.0
        assert ModelInput.from_event(_Event(day_of_week=7)).features()[11] == 1.0


class TestFallback:
    def test_quiet_daytime_is_zero(self):
        assert fallback_risk_score(14, 1, 60, 1, 10) == 0.0

    def test_everything_high(self):
        assert fallback_risk_score(23, 25, 1, 12, 200) == pytest.approx(1.0)

    def test_middle_bands(self):
        # 0.1 + 0.1 + 0.1 + 0.1
        assert fallback_risk_score(14, 10, 10, 5, 120) == pytest.approx(0.4)

    def test_never_exceeds_one(self):
        assert fallback_risk_score(0, 1000, 0, 1000, 10_000) <= 1.0


class TestGuardedRiskModel:
    def test_no_model_uses_fallback(self):
        guard = GuardedRiskModel(None)
        p = guard.predict(ModelInput.from_event(_Event(hour_of_day=23)))
        assert guard.available is False
        assert p.used_fallback is True
        assert p.reason == "unavailable"
        assert p.score == pytest.approx(0.3)

    def test_model_score_is_used(self):
        model = _ConstModel(0.42)
        guard = GuardedRiskModel(model, timeout_s=1.0)
        try:
            p = guard.predict(ModelInput.from_event(_Event()))
        finally:
            guard.close()
        assert p.used_fallback is False
        assert p.score == pytest.approx(0.42)
        assert len(model.seen) == FEATURE_COUNT

    @pytest.mark.parametrize("raw,expected", [(1.7, 1.0), (-0.3, 0.0)])
    def test_model_output_clamped(self, raw, expected):
        guard = GuardedRiskModel(_ConstModel(raw), timeout_s=1.0)
        try:
            assert guard.predict(ModelInput.from_event(_Event())).score == expected
        finally:
            guard.close()

    @pytest.mark.parametrize("raw", [math.nan, math.inf, "abc", None])
    def test_invalid_output_falls_back(self, raw):
        guard = GuardedRiskModel(_ConstModel(raw), timeout_s=1.0)
        try:
            p = guard.predict(ModelInput.from_event(_Event()))
        finally:
            guard.close()
        assert p.used_fallback is True
        assert p.reason == "invalid"

    def test_exception_falls_back(self):
        guard = GuardedRiskModel(_BrokenModel(), timeout_s=1.0)
        try:
            p = guard.predict(ModelInput.from_event(_Event()))
        finally:
            guard.close()
        assert p.used_fallback is True
        assert p.reason == "error"

    def test_timeout_falls_back(self):
        guard = GuardedRiskModel(_SlowModel(), timeout_s=0.05)
        try:
            p = guard.predict(ModelInput.from_event(_Event()))
        finally:
            guard.close()
        assert p.used_fallback is True
        assert p.reason == "timeout"


def test_engine_score_event_never_raises():
    engine = RiskEngine(GuardedRiskModel(_BrokenModel(), timeout_s=1.0))
    try:
        p = engine.score_event(_Event(hour_of_day=1))
    finally:
        engine.close()
    assert 0.0 <= p.score <= 1.0
    assert p.used_fallback is True


class TestAssessEvent:
    def test_model_strategy(self):
        engine = RiskEngine(GuardedRiskModel(_ConstModel(0.8), timeout_s=1.0))
        try:
            a = engine.assess_event(_Event())
        finally:
            engine.close()
        assert a.strategy == "model"
        assert a.risk_score == pytest.approx(0.8)
        assert a.risk_level is RiskLevel.HIGH
        assert a.recommendation.startswith("High risk detected")
        assert a.factors == {}
        assert a.fallback_reason is None

    def test_fallback_strategy(self):
        engine = RiskEngine(GuardedRiskModel(None))
        a = engine.assess_event(_Event(hour_of_day=23, daily_app_launches=10))
        assert a.strategy == "model_fallback"
        assert a.fallback_reason == "unavailable"
        # 0.3 bedtime + 0.2 launches
        assert a.risk_score == pytest.approx(0.5)
        assert a.risk_level is RiskLevel.MEDIUM
