"""
Terminal handle cache: ``session id -> pid of the terminal hosting it``.

Lets a resume request refocus the window that already runs a session instead
of spawning a duplicate.  Kept separate from the PID registry because the two
files serve different callers and each must heal itself on its own.

Every launcher on the host writes this file, so each read-modify-write runs
under a host-wide named mutex.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime

from .constants import TERMINAL_CACHE_FILE, TERMINAL_CACHE_LOCK_NAME, TERMINAL_CACHE_LOCK_TIMEOUT
from .models import TerminalCacheEntry
from .named_mutex import NamedMutex, create_named_mutex
from .persistence import JsonFileStore, MappingStore, best_effort
from .process_tracker import ProcessProbe

logger = logging.getLogger(__name__)


class TerminalHandleCache:
    def __init__(
        self,
        path: str = TERMINAL_CACHE_FILE,
        probe: ProcessProbe | None = None,
        store: MappingStore | None = None,
        lock_dir: str | None = None,
        lock_timeout: float = TERMINAL_CACHE_LOCK_TIMEOUT,
        mutex_factory: Callable[[str, str], NamedMutex] = create_named_mutex,
    ):
        self.path = path
        self.probe = probe or ProcessProbe()
        self.store = store if store is not None else JsonFileStore(path)
        # Defaults to <dir of the cache file>/locks, i.e. LOCK_DIR for the default path
        self.lock_dir = lock_dir or os.path.join(os.path.dirname(os.path.abspath(path)), "locks")
        self.lock_timeout = lock_timeout
        self._mutex_factory = mutex_factory

    @contextmanager
    def _locked(self):
        # A fresh mutex per call: flock and kernel mutexes both exclude
        # other threads of this process only through separate handles.
        lock = self._mutex_factory(TERMINAL_CACHE_LOCK_NAME, self.lock_dir)
        try:
            held = lock.acquire(timeout=self.lock_timeout)
        except Exception as e:
            logger.debug("Terminal cache lock unavailable: %s", e)
            held = False
        if not held:
            logger.debug("Terminal cache lock not acquired; updating %s unguarded", self.path)
        try:
            yield
        finally:
            if held:
                lock.release()

    @best_effort()
    def put(self, session_id: str, copilot_pid: int) -> None:
        entry = TerminalCacheEntry(
            session_id=session_id,
            copilot_pid=copilot_pid,
            started_at=datetime.now().astimezone().isoformat(),
        )
        with self._locked():
            cache = self.store.load() or {}
            cache[session_id] = entry.to_json()
            self.store.save(cache)

    @best_effort(default=set)
    def list_live_session_ids(self) -> set[str]:
        """Session ids whose terminal is still running; dead entries are dropped."""
        if not self.store.exists():
            return set()

        with self._locked():
            cache = self.store.load()
            if not cache:
                return set()

            alive: set[str] = set()
            dead: list[str] = []
            for session_id, raw in cache.items():
                entry = TerminalCacheEntry.from_json(session_id, raw)
                if entry is not None and self.probe.is_alive(entry.copilot_pid):
                    alive.add(session_id)
                else:
                    dead.append(session_id)

            if dead:
                for session_id in dead:
                    cache.pop(session_id, None)
                self.store.save(cache)
                logger.debug("Dropped %d dead terminal(s) from cache", len(dead))
        return alive

    @best_effort(default=None)
    def get_pid(self, session_id: str) -> int | None:
        entry = TerminalCacheEntry.from_json(session_id, (self.store.load() or {}).get(session_id))
        return entry.copilot_pid if entry else None

    @best_effort()
    def remove(self, session_id: str) -> None:
        if not self.store.exists():
            return
        with self._locked():
            cache = self.store.load() or {}
            if cache.pop(session_id, None) is not None:
                self.store.save(cache)
