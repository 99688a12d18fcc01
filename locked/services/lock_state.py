"""
Session/Lock state machine.

States: LOCKED (initial) and UNLOCKED.

  UNLOCKED → LOCKED    verified token; opens a BlockingSession.
                       An already-open session raises SessionAlreadyOpenError.
  LOCKED   → UNLOCKED  verified token; closes the open BlockingSession.
                       No open session is logged and tolerated.

Verification: a token must be paired and the presented id must match it.
Otherwise the request is refused (TransitionResult.ok is False) and the
state does not change. Refusals are ordinary outcomes, not exceptions.

Every transition runs under one lock so interleaved toggles can never open
two sessions. Listeners are called outside that lock but in transition
order, so the last notification always matches the current state.
"""
from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from locked.core.errors import (
    InvalidTransitionError,
    TokenMismatchError,
    TokenNotPairedError,
)
from locked.models.blocking_session import BlockingSession
from locked.services import session_store
from locked.services.token_registry import TokenRegistry

logger = logging.getLogger(__name__)


class LockState(str, enum.Enum):
    LOCKED = "LOCKED"
    UNLOCKED = "UNLOCKED"


class RefusalReason:
    TOKEN_NOT_PAIRED = "token_not_paired"
    TOKEN_MISMATCH   = "token_mismatch"
    ALREADY_LOCKED   = "already_locked"
    ALREADY_UNLOCKED = "already_unlocked"


@dataclass
class TransitionResult:
    ok: bool
    state: LockState
    reason: Optional[str] = None
    session: Optional[BlockingSession] = None
    # True when an unlock found no open session to close.
    recovered: bool = False

    def raise_for_refusal(self) -> None:
        """Convert a refusal into the matching exception (HTTP boundary helper)."""
        if self.ok:
            return
        if self.reason == RefusalReason.TOKEN_NOT_PAIRED:
            raise TokenNotPairedError()
        if self.reason == RefusalReason.TOKEN_MISMATCH:
            raise TokenMismatchError()
        requested = LockState.LOCKED if self.reason == RefusalReason.ALREADY_LOCKED else LockState.UNLOCKED
        raise InvalidTransitionError(state=self.state.value, requested=requested.value)


class LockStateMachine:
    """Owns the lock flag and the open-session invariant."""

    def __init__(
        self,
        session_factory: Callable,
        tokens: TokenRegistry,
        initial_state: LockState = LockState.LOCKED,
    ) -> None:
        self._session_factory = session_factory
        self.tokens = tokens
        self._state = initial_state
        self._lock = threading.Lock()
        # Taken before _lock is released so listeners see transitions in order.
        self._notify_lock = threading.RLock()
        self._listeners: list[Callable[[LockState], None]] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> LockState:
        return self._state

    @property
    def is_locked(self) -> bool:
        return self._state is LockState.LOCKED

    def add_listener(self, callback: Callable[[LockState], None]) -> None:
        self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def lock(self, token_id: Optional[str], now: Optional[int] = None) -> TransitionResult:
        with self._lock:
            refusal = self._check_token(token_id)
            if refusal:
                return refusal
            if self._state is LockState.LOCKED:
                return TransitionResult(ok=False, state=self._state, reason=RefusalReason.ALREADY_LOCKED)

            db = self._session_factory()
            try:
                session = session_store.open_session(db, now=now)
            finally:
                db.close()

            self._state = LockState.LOCKED
            logger.info("Locked; blocking session %s opened", session.id)
            result = TransitionResult(ok=True, state=self._state, session=session)
            self._notify_lock.acquire()

        self._notify(result.state)
        return result

    def unlock(
        self,
        token_id: Optional[str],
        method: str = "nfc",
        now: Optional[int] = None,
    ) -> TransitionResult:
        with self._lock:
            refusal = self._check_token(token_id)
            if refusal:
                return refusal
            if self._state is LockState.UNLOCKED:
                return TransitionResult(ok=False, state=self._state, reason=RefusalReason.ALREADY_UNLOCKED)

            db = self._session_factory()
            try:
                session = session_store.close_open_session(db, method=method, now=now)
            finally:
                db.close()

            if session is None:
                logger.warning("Unlock with no open blocking session; continuing to UNLOCKED")
            else:
                logger.info("Unlocked; blocking session %s closed after %sms", session.id, session.duration)

            self._state = LockState.UNLOCKED
            result = TransitionResult(
                ok=True, state=self._state, session=session, recovered=session is None,
            )
            self._notify_lock.acquire()

        self._notify(result.state)
        return result

    def toggle(self, token_id: Optional[str], now: Optional[int] = None) -> TransitionResult:
        # Reading state outside the lock is fine: the chosen transition
        # re-checks it and refuses if another toggle won the race.
        if self.is_locked:
            return self.unlock(token_id, now=now)
        return self.lock(token_id, now=now)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_token(self, token_id: Optional[str]) -> Optional[TransitionResult]:
        if not self.tokens.is_paired():
            logger.info("Lock toggle refused: no token paired")
            return TransitionResult(ok=False, state=self._state, reason=RefusalReason.TOKEN_NOT_PAIRED)
        if not self.tokens.verify(token_id):
            logger.info("Lock toggle refused: token mismatch")
            return TransitionResult(ok=False, state=self._state, reason=RefusalReason.TOKEN_MISMATCH)
        return None

    def _notify(self, state: LockState) -> None:
        """Run listeners, then release the notify lock taken by the transition."""
        try:
            for callback in list(self._listeners):
                try:
                    callback(state)
                except Exception as e:
                    logger.error(f"Lock state listener failed: {e}")
        finally:
            self._notify_lock.release()
