"""
Shared PID registry: which launcher processes exist and which session each runs.

Every launcher process on the host reads and writes the same JSON file.
Mutations are read-modify-write without a lock; the design accepts
last-writer-wins here because the reconciler repairs lost updates on its
next pass.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any

from .constants import PID_REGISTRY_FILE
from .models import RegistryEntry
from .persistence import JsonFileStore, MappingStore, best_effort

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat()


class SessionRegistry:
    """Durable ``pid -> RegistryEntry`` mapping stored in a single file."""

    def __init__(self, path: str = PID_REGISTRY_FILE, store: MappingStore | None = None):
        self.path = path
        self.store = store if store is not None else JsonFileStore(path)

    # ── Repository interface ─────────────────────────────────────────────

    def exists(self) -> bool:
        return self.store.exists()

    def load(self) -> dict[str, Any] | None:
        """Raw mapping, or None when the file is absent or unparsable."""
        return self.store.load()

    def save(self, mapping: dict[str, Any]) -> bool:
        return self.store.save(mapping)

    def entries(self) -> dict[int, RegistryEntry]:
        """Typed view of the registry; non-numeric keys are left out."""
        result: dict[int, RegistryEntry] = {}
        for key, raw in (self.load() or {}).items():
            try:
                pid = int(key)
            except ValueError:
                continue
            result[pid] = RegistryEntry.from_json(pid, raw)
        return result

    # ── Mutations ────────────────────────────────────────────────────────

    @best_effort()
    def register(self, pid: int) -> None:
        """Track ``pid`` with no session yet, replacing any previous entry."""
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        registry = self.load() or {}
        registry[str(pid)] = RegistryEntry(pid=pid, started_at=_now_iso()).to_json()
        self.save(registry)
        logger.info("Registered PID: %d", pid)

    @best_effort()
    def update_session_id(self, pid: int, session_id: str, copilot_pid: int = 0) -> None:
        """Bind ``pid`` to ``session_id``. Does nothing if the registry file is absent."""
        if not self.exists():
            return
        registry = self.load() or {}
        registry[str(pid)] = RegistryEntry(
            pid=pid, started_at=_now_iso(), session_id=session_id, copilot_pid=copilot_pid
        ).to_json()
        self.save(registry)
        logger.info("Mapped PID %d to session %s", pid, session_id)

    @best_effort()
    def unregister(self, pid: int) -> None:
        if not self.exists():
            return
        registry = self.load() or {}
        registry.pop(str(pid), None)
        self.save(registry)
        logger.info("Unregistered PID: %d", pid)
