"""
Update coordinator: one background updater per host, serialized refreshes.

The first launcher to take the "updater" mutex becomes the leader and runs a
background loop that refreshes the published active-session list once the
last-update timestamp is older than a threshold.  There is no re-election:
a later launcher may become leader after the current one exits, but a running
follower never promotes itself.

Every reconciliation-and-publish cycle, whether from the loop or from a
launcher's own start/exit, runs under a second "update lock" so leader and
on-demand callers never interleave their writes.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Callable
from dataclasses import asdict
from datetime import UTC, datetime, timedelta

from .constants import (
    ACTIVE_SESSIONS_FILE,
    LAST_UPDATE_FILE,
    LOCK_DIR,
    MIN_BACKGROUND_UPDATE_INTERVAL,
    SESSION_STATE_DIR,
    UPDATE_LOCK_NAME,
    UPDATE_LOCK_TIMEOUT,
    UPDATER_CHECK_INTERVAL,
    UPDATER_MUTEX_NAME,
)
from .models import ActiveSession
from .named_mutex import NamedMutex, create_named_mutex
from .persistence import best_effort, write_text_atomic
from .reconciler import LivenessReconciler

logger = logging.getLogger(__name__)

Publisher = Callable[[list[ActiveSession]], None]


# ---------------------------------------------------------------------------
# Last-update timestamp
# ---------------------------------------------------------------------------


def read_last_update(path: str = LAST_UPDATE_FILE) -> datetime | None:
    """Parse the last-update timestamp; None when missing or unreadable."""
    try:
        with open(path, encoding="utf-8") as f:
            ts = datetime.fromisoformat(f.read().strip().replace("Z", "+00:00"))
    except (OSError, ValueError) as e:
        logger.debug("No usable last-update timestamp in %s: %s", path, e)
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


@best_effort()
def write_last_update(path: str = LAST_UPDATE_FILE, when: datetime | None = None) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    write_text_atomic(path, (when or datetime.now(UTC)).isoformat())


def should_background_update(
    min_interval: timedelta = timedelta(seconds=MIN_BACKGROUND_UPDATE_INTERVAL),
    path: str = LAST_UPDATE_FILE,
) -> bool:
    last = read_last_update(path)
    if last is None:
        return True
    return datetime.now(UTC) - last > min_interval


# ---------------------------------------------------------------------------
# Default publisher
# ---------------------------------------------------------------------------


def snapshot_publisher(path: str = ACTIVE_SESSIONS_FILE) -> Publisher:
    """Publisher writing the active list as JSON for shell integrations to read."""

    @best_effort()
    def publish(sessions: list[ActiveSession]) -> None:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        write_text_atomic(path, json.dumps([asdict(s) for s in sessions], indent=2))

    return publish


@best_effort(default=list)
def read_snapshot(path: str = ACTIVE_SESSIONS_FILE) -> list[ActiveSession]:
    """Last published active list, or an empty list when none is readable."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return [ActiveSession(**item) for item in data]


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class UpdateCoordinator:
    def __init__(
        self,
        reconciler: LivenessReconciler,
        session_state_dir: str = SESSION_STATE_DIR,
        publish: Publisher | None = None,
        last_update_path: str = LAST_UPDATE_FILE,
        lock_dir: str = LOCK_DIR,
        updater_mutex_name: str = UPDATER_MUTEX_NAME,
        update_lock_name: str = UPDATE_LOCK_NAME,
        update_lock_timeout: float = UPDATE_LOCK_TIMEOUT,
        check_interval: float = UPDATER_CHECK_INTERVAL,
        min_update_interval: float = MIN_BACKGROUND_UPDATE_INTERVAL,
        mutex_factory: Callable[[str, str], NamedMutex] = create_named_mutex,
    ):
        self.reconciler = reconciler
        self.session_state_dir = session_state_dir
        self.publish = publish or snapshot_publisher()
        self.last_update_path = last_update_path
        self.lock_dir = lock_dir
        self.update_lock_name = update_lock_name
        self.update_lock_timeout = update_lock_timeout
        self.check_interval = check_interval
        self.min_update_interval = timedelta(seconds=min_update_interval)
        self._mutex_factory = mutex_factory
        self._leader_mutex = mutex_factory(updater_mutex_name, lock_dir)
        self._cancel = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_leader(self) -> bool:
        return self._leader_mutex.held

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def try_become_leader(self) -> bool:
        """Non-blocking attempt to take the updater role for this process."""
        try:
            acquired = self._leader_mutex.acquire(timeout=0)
        except Exception as e:
            logger.warning("Updater mutex error: %s", e)
            return False
        logger.info("Is updater: %s", acquired)
        return acquired

    def should_background_update(self) -> bool:
        return should_background_update(self.min_update_interval, self.last_update_path)

    def refresh(self) -> list[ActiveSession] | None:
        """
        Run one reconciliation-and-publish cycle under the update lock.
        Returns the published sessions, or None when the lock could not be
        taken in time or the cycle failed.
        """
        lock = self._mutex_factory(self.update_lock_name, self.lock_dir)
        try:
            if not lock.acquire(timeout=self.update_lock_timeout):
                logger.debug("Update lock busy; skipping refresh")
                return None
        except Exception as e:
            logger.warning("Update lock error: %s", e)
            return None

        try:
            write_last_update(self.last_update_path)
            sessions = self.reconciler.compute_active_sessions(self.session_state_dir)
            self.publish(sessions)
            logger.info("Active sessions published: %d", len(sessions))
            return sessions
        except Exception as e:
            logger.warning("Refresh failed: %s", e)
            return None
        finally:
            lock.release()

    def _run_loop(self) -> None:
        while not self._cancel.is_set():
            if self.should_background_update():
                self.refresh()
            self._cancel.wait(self.check_interval)
        logger.debug("Updater loop stopped")

    def start_background_loop(self) -> threading.Thread | None:
        """Start the periodic refresh thread; only the leader may run it."""
        if not self.is_leader:
            return None
        if self._thread is None or not self._thread.is_alive():
            self._cancel.clear()
            self._thread = threading.Thread(target=self._run_loop, name="session-updater", daemon=True)
            self._thread.start()
        return self._thread

    def cancel(self) -> None:
        self._cancel.set()

    def shutdown(self, join_timeout: float | None = None) -> None:
        """Stop the background loop and give up the updater role."""
        self.cancel()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(join_timeout if join_timeout is not None else self.check_interval * 2 + 1)
        if self._leader_mutex.held:
            try:
                self._leader_mutex.release()
            except Exception as e:
                logger.debug("Updater mutex release failed: %s", e)
