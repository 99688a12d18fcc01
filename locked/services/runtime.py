"""
Process-scoped runtime.

Owns the collaborators that hold state (token registry, lock state machine,
gate, risk engine, monitor). Created once at process start and closed at
shutdown; routers reach it through `get_runtime`.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import Request

from locked.core.config import settings
from locked.services.block_gate import BlockDecisionGate, Presenter
from locked.services.learned_model import GuardedRiskModel, RiskModel
from locked.services.lock_state import LockState, LockStateMachine
from locked.services.monitor import ForegroundMonitor, ForegroundSource
from locked.services.risk_engine import RiskEngine
from locked.services.token_registry import TokenRegistry

logger = logging.getLogger(__name__)


class LockedRuntime:

    def __init__(
        self,
        session_factory: Callable,
        token_path: Optional[str] = None,
        presenter: Optional[Presenter] = None,
        foreground_source: Optional[ForegroundSource] = None,
        risk_model: Optional[RiskModel] = None,
        initial_state: LockState = LockState.LOCKED,
    ) -> None:
        self.session_factory = session_factory
        self.tokens = TokenRegistry(token_path)
        self.lock = LockStateMachine(session_factory, self.tokens, initial_state=initial_state)
        self.gate = BlockDecisionGate(session_factory, self.lock, presenter=presenter)
        self.risk = RiskEngine(GuardedRiskModel(risk_model, timeout_s=settings.MODEL_TIMEOUT_S))
        self.monitor: Optional[ForegroundMonitor] = None
        if foreground_source is not None:
            self.monitor = ForegroundMonitor(foreground_source, self.gate, session_factory)

    def start(self) -> None:
        if self.monitor is not None:
            self.monitor.follow(self.lock)
        logger.info("Runtime started in state %s", self.lock.state.value)

    def close(self) -> None:
        if self.monitor is not None:
            self.monitor.stop()
        self.risk.close()
        logger.info("Runtime closed")


def get_runtime(request: Request) -> LockedRuntime:
    return request.app.state.runtime
