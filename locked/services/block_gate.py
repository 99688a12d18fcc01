"""
Block decision gate.

on_foreground_app(package_name, observed_at) → BlockDecision

  allow   lock is UNLOCKED, the package is this app, or the package is not
          configured as blocked. Nothing is recorded.
  block   record a blocked UsageEvent and send presenter.block().
  cooldown  observation within cooldown_ms of the package's last block, on
          either side: no event, no command.

A storage failure while recording is logged and reported on the decision;
the block command is still sent. record_before_block picks the order.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from locked.core.config import settings
from locked.core.errors import StorageError
from locked.models.usage_event import AppCategory
from locked.services import blocked_apps, event_store
from locked.services.lock_state import LockState, LockStateMachine

logger = logging.getLogger(__name__)


class Presenter(Protocol):
    def block(self, package_name: str, app_name: str) -> None: ...
    def unblock(self) -> None: ...


class LoggingPresenter:
    """Presenter used when no blocking surface is attached."""

    def block(self, package_name: str, app_name: str) -> None:
        logger.info("BLOCK %s (%s)", package_name, app_name)

    def unblock(self) -> None:
        logger.info("UNBLOCK")


class Decision:
    UNLOCKED    = "unlocked"
    OWN_PACKAGE = "own_package"
    NOT_BLOCKED = "not_blocked"
    BLOCKED     = "blocked"
    COOLDOWN    = "cooldown"


@dataclass
class BlockDecision:
    package_name: str
    blocked: bool
    reason: str
    app_name: Optional[str] = None
    recorded: bool = False
    event_id: Optional[int] = None
    error: Optional[str] = None


class BlockDecisionGate:

    def __init__(
        self,
        session_factory: Callable,
        lock: LockStateMachine,
        presenter: Optional[Presenter] = None,
        own_package: Optional[str] = None,
        cooldown_ms: Optional[int] = None,
        record_before_block: Optional[bool] = None,
        clock: Callable[[], int] = event_store.now_ms,
    ) -> None:
        self._session_factory = session_factory
        self.lock = lock
        self.presenter: Presenter = presenter or LoggingPresenter()
        self.own_package = own_package or settings.APP_PACKAGE_NAME
        self.cooldown_ms = cooldown_ms if cooldown_ms is not None else settings.BLOCK_COOLDOWN_MS
        self.record_before_block = (
            record_before_block if record_before_block is not None else settings.RECORD_BEFORE_BLOCK
        )
        self._clock = clock
        self._last_block: dict[str, int] = {}
        self._gate_lock = threading.Lock()
        lock.add_listener(self._on_lock_change)

    def on_foreground_app(self, package_name: str, observed_at: Optional[int] = None) -> BlockDecision:
        now = observed_at if observed_at is not None else self._clock()

        if not self.lock.is_locked:
            return BlockDecision(package_name, blocked=False, reason=Decision.UNLOCKED)
        if package_name == self.own_package:
            return BlockDecision(package_name, blocked=False, reason=Decision.OWN_PACKAGE)

        with self._gate_lock:
            db = self._session_factory()
            try:
                app = blocked_apps.get_blocked_app(db, package_name)
                if app is None or not app.is_blocked:
                    return BlockDecision(package_name, blocked=False, reason=Decision.NOT_BLOCKED)

                last = self._last_block.get(package_name)
                if last is not None and abs(now - last) < self.cooldown_ms:
                    return BlockDecision(
                        package_name, blocked=True, reason=Decision.COOLDOWN, app_name=app.app_name,
                    )
                self._last_block[package_name] = now

                decision = BlockDecision(
                    package_name, blocked=True, reason=Decision.BLOCKED, app_name=app.app_name,
                )
                category = app.category or AppCategory.BLOCKED.value
                if self.record_before_block:
                    self._record(db, decision, category, now)
                    self._block(decision)
                else:
                    self._block(decision)
                    self._record(db, decision, category, now)
                return decision
            finally:
                db.close()

    def reset_cooldowns(self) -> None:
        with self._gate_lock:
            self._last_block.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _record(self, db, decision: BlockDecision, category: str, now: int) -> None:
        try:
            event = event_store.record_event(
                db,
                package_name=decision.package_name,
                app_name=decision.app_name or decision.package_name,
                category=category,
                session_duration=0,
                was_blocked=True,
                unlock_attempted=True,
                unlock_succeeded=False,
                now=now,
            )
        except StorageError as exc:
            logger.error(f"Failed to record blocked launch of {decision.package_name}: {exc.details}")
            decision.error = exc.code
            return
        decision.recorded = True
        decision.event_id = event.id

    def _block(self, decision: BlockDecision) -> None:
        self.presenter.block(decision.package_name, decision.app_name or decision.package_name)

    def _on_lock_change(self, state: LockState) -> None:
        self.reset_cooldowns()
        if state is LockState.UNLOCKED:
            self.presenter.unblock()
