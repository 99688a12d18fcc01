"""Background foreground-app polling loop."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

from locked.core.config import settings
from locked.services import event_store
from locked.services.block_gate import BlockDecisionGate
from locked.services.lock_state import LockState

logger = logging.getLogger(__name__)


class ForegroundSource(Protocol):
    """OS collaborator: the package currently in the foreground, if known."""

    def current_foreground(self) -> Optional[str]: ...


class ForegroundMonitor:
    """
    Polls a ForegroundSource while the lock is LOCKED and feeds the gate.

    Runs on a daemon thread. The stop flag is checked every iteration and
    the wait between polls is interruptible, so stop() returns within one
    poll plus the join timeout. Follows the lock: starts on LOCKED, stops on
    UNLOCKED. Also runs the retention purge once per local day.
    """

    def __init__(
        self,
        source: ForegroundSource,
        gate: BlockDecisionGate,
        session_factory: Callable,
        interval_s: Optional[float] = None,
        retention_days: Optional[int] = None,
        join_timeout_s: float = 2.0,
    ) -> None:
        self.source = source
        self.gate = gate
        self._session_factory = session_factory
        self.interval_s = interval_s if interval_s is not None else settings.POLL_INTERVAL_S
        self.retention_days = (
            retention_days if retention_days is not None else settings.EVENT_RETENTION_DAYS
        )
        self.join_timeout_s = join_timeout_s
        self.should_stop: threading.Event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_purge_day: Optional[int] = None
        self._start_stop_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def follow(self, lock) -> None:
        """Start/stop with the lock state, starting now if already LOCKED."""
        lock.add_listener(self._on_lock_change)
        if lock.is_locked:
            self.start()

    def start(self) -> None:
        with self._start_stop_lock:
            if self.is_running:
                return
            self.should_stop.clear()
            self._thread = threading.Thread(target=self._loop, name="foreground-monitor", daemon=True)
            self._thread.start()
            logger.info("Foreground monitor started (interval %.2fs)", self.interval_s)

    def stop(self) -> None:
        with self._start_stop_lock:
            self.should_stop.set()
            thread = self._thread
            if thread is None:
                return
            if thread is not threading.current_thread() and thread.is_alive():
                thread.join(timeout=self.join_timeout_s)
                if thread.is_alive():
                    logger.warning("Foreground monitor did not stop within timeout")
            self._thread = None
            logger.info("Foreground monitor stopped")

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _loop(self) -> None:
        while not self.should_stop.is_set():
            self.poll_once()
            self.should_stop.wait(self.interval_s)

    def poll_once(self) -> None:
        """One iteration: maintenance, then check the foreground app."""
        try:
            self._maybe_purge()
        except Exception as e:
            logger.error(f"Retention purge failed: {e}")

        if not self.gate.lock.is_locked:
            return
        try:
            package_name = self.source.current_foreground()
            if package_name:
                self.gate.on_foreground_app(package_name)
        except Exception as e:
            logger.error(f"Foreground check failed: {e}")

    def _maybe_purge(self) -> None:
        today = event_store.local_day_start_ms(event_store.now_ms())
        if self._last_purge_day == today:
            return
        db = self._session_factory()
        try:
            event_store.purge_expired(db, retention_days=self.retention_days)
        finally:
            db.close()
        self._last_purge_day = today

    def _on_lock_change(self, state: LockState) -> None:
        if state is LockState.LOCKED:
            self.start()
        else:
            self.stop()
