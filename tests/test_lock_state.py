"""
Tests for the lock state machine.

Covered:
  - refusals (not paired, mismatch, already in state) leave state untouched
  - lock opens exactly one session, unlock closes it with a duration
  - unlock without an open session is tolerated and flagged
  - concurrent toggles never leave two open sessions
  - locking over an orphan open session raises and changes nothing
  - listeners are notified in transition order and a failing listener does
    not break transitions
"""
import threading
import time

import pytest
from conftest import TOKEN, TestingSessionLocal

from locked.core.errors import (
    InvalidTransitionError,
    SessionAlreadyOpenError,
    TokenMismatchError,
    TokenNotPairedError,
)
from locked.models.blocking_session import BlockingSession
from locked.services import session_store
from locked.services.block_gate import BlockDecisionGate
from locked.services.lock_state import (
    LockState,
    LockStateMachine,
    RefusalReason,
    TransitionResult,
)
from locked.services.monitor import ForegroundMonitor


def _open_sessions(db):
    return db.query(BlockingSession).filter(BlockingSession.end_time.is_(None)).count()


@pytest.fixture()
def unlocked_machine(paired_tokens):
    return LockStateMachine(TestingSessionLocal, paired_tokens, initial_state=LockState.UNLOCKED)


class TestRefusals:
    def test_not_paired(self, tokens):
        machine = LockStateMachine(TestingSessionLocal, tokens)
        result = machine.unlock(TOKEN)
        assert result.ok is False
        assert result.reason == RefusalReason.TOKEN_NOT_PAIRED
        assert machine.state is LockState.LOCKED

    def test_mismatch(self, lock_machine, db):
        result = lock_machine.unlock("DE:AD:BE:EF")
        assert result.ok is False
        assert result.reason == RefusalReason.TOKEN_MISMATCH
        assert lock_machine.is_locked

    def test_missing_token_is_mismatch(self, unlocked_machine, db):
        result = unlocked_machine.lock(None)
        assert result.reason == RefusalReason.TOKEN_MISMATCH
        assert unlocked_machine.state is LockState.UNLOCKED
        assert _open_sessions(db) == 0

    def test_lock_when_locked(self, lock_machine):
        result = lock_machine.lock(TOKEN)
        assert result.ok is False
        assert result.reason == RefusalReason.ALREADY_LOCKED

    def test_unlock_when_unlocked(self, unlocked_machine):
        result = unlocked_machine.unlock(TOKEN)
        assert result.reason == RefusalReason.ALREADY_UNLOCKED

    @pytest.mark.parametrize("reason,exc", [
        (RefusalReason.TOKEN_NOT_PAIRED, TokenNotPairedError),
        (RefusalReason.TOKEN_MISMATCH, TokenMismatchError),
        (RefusalReason.ALREADY_LOCKED, InvalidTransitionError),
        (RefusalReason.ALREADY_UNLOCKED, InvalidTransitionError),
    ])
    def test_raise_for_refusal(self, reason, exc):
        result = TransitionResult(ok=False, state=LockState.LOCKED, reason=reason)
        with pytest.raises(exc):
            result.raise_for_refusal()

    def test_raise_for_refusal_noop_on_success(self):
        TransitionResult(ok=True, state=LockState.LOCKED).raise_for_refusal()


class TestTransitions:
    def test_lock_opens_session(self, unlocked_machine, db):
        result = unlocked_machine.lock(TOKEN, now=1_000)
        assert result.ok is True
        assert result.state is LockState.LOCKED
        assert result.session.start_time == 1_000
        assert result.session.end_time is None
        assert _open_sessions(db) == 1

    def test_unlock_closes_session(self, unlocked_machine, db):
        unlocked_machine.lock(TOKEN, now=1_000)
        result = unlocked_machine.unlock(TOKEN, now=61_000)

        assert result.ok is True
        assert result.recovered is False
        assert result.session.end_time == 61_000
        assert result.session.duration == 60_000
        assert result.session.unlock_method == "nfc"
        assert _open_sessions(db) == 0

    def test_unlock_without_open_session_is_recovered(self, lock_machine, db):
        result = lock_machine.unlock(TOKEN)
        assert result.ok is True
        assert result.recovered is True
        assert result.session is None
        assert lock_machine.state is LockState.UNLOCKED

    def test_toggle_round_trip(self, unlocked_machine, db):
        assert unlocked_machine.toggle(TOKEN).state is LockState.LOCKED
        assert unlocked_machine.toggle(TOKEN).state is LockState.UNLOCKED
        assert db.query(BlockingSession).count() == 1
        assert _open_sessions(db) == 0

    def test_second_open_session_is_rejected(self, db):
        session_store.open_session(db, now=1)
        with pytest.raises(SessionAlreadyOpenError):
            session_store.open_session(db, now=2)

    def test_concurrent_toggles_keep_one_open_session(self, unlocked_machine, db):
        def worker():
            for _ in range(10):
                unlocked_machine.toggle(TOKEN)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        open_count = _open_sessions(db)
        assert open_count <= 1
        assert open_count == (1 if unlocked_machine.is_locked else 0)


class TestOrphanSession:
    def test_lock_with_orphan_open_session_raises(self, unlocked_machine, db):
        session_store.open_session(db, now=1)
        seen = []
        unlocked_machine.add_listener(seen.append)

        with pytest.raises(SessionAlreadyOpenError):
            unlocked_machine.lock(TOKEN, now=2)

        assert unlocked_machine.state is LockState.UNLOCKED
        assert seen == []
        assert _open_sessions(db) == 1


class TestListeners:
    def test_listener_sees_new_state(self, unlocked_machine):
        seen = []
        unlocked_machine.add_listener(seen.append)
        unlocked_machine.lock(TOKEN)
        unlocked_machine.unlock(TOKEN)
        assert seen == [LockState.LOCKED, LockState.UNLOCKED]

    def test_refusal_does_not_notify(self, lock_machine):
        seen = []
        lock_machine.add_listener(seen.append)
        lock_machine.unlock("wrong")
        assert seen == []

    def test_failing_listener_is_contained(self, unlocked_machine):
        def boom(state):
            raise RuntimeError("listener bug")

        unlocked_machine.add_listener(boom)
        result = unlocked_machine.lock(TOKEN)
        assert result.ok is True
        assert unlocked_machine.is_locked

    def test_notifications_follow_transition_order(self, lock_machine, presenter):

        entered = threading.Event()
        release = threading.Event()
        seen = []

        def slow_listener(state):
            seen.append(state)
            if state is LockState.UNLOCKED:
                entered.set()
                release.wait(timeout=5)

        lock_machine.add_listener(slow_listener)
        gate = BlockDecisionGate(TestingSessionLocal, lock_machine, presenter=presenter)
        monitor = ForegroundMonitor(_NoForeground(), gate, TestingSessionLocal, interval_s=0.01)
        monitor.follow(lock_machine)
        try:
            unlocker = threading.Thread(target=lock_machine.unlock, args=(TOKEN,))
            unlocker.start()
            assert entered.wait(timeout=5)

            locker = threading.Thread(target=lock_machine.lock, args=(TOKEN,))
            locker.start()
            time.sleep(0.05)
            release.set()
            unlocker.join(timeout=5)
            locker.join(timeout=5)

            assert seen == [LockState.UNLOCKED, LockState.LOCKED]
            assert lock_machine.is_locked
            assert monitor.is_running
            assert presenter.unblocks == 1
        finally:
            release.set()
            monitor.stop()


class _NoForeground:
    def current_foreground(self):
        return None
