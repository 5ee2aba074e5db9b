"""
Liveness reconciliation of the PID registry.

Cross-references registry entries with the OS process table and the session
descriptors on disk, producing the active-session list and pruning entries
whose launcher process is gone.  Running it repeatedly converges: a launcher
that crashed shows up as active for at most one more pass.
"""

from __future__ import annotations

import logging
import os

from .constants import PID_REGISTRY_FILE, SESSION_STATE_DIR
from .models import ActiveSession, RegistryEntry
from .process_tracker import ProcessProbe
from .registry import SessionRegistry
from .workspace import parse_workspace, workspace_path

logger = logging.getLogger(__name__)


class LivenessReconciler:
    def __init__(self, registry: SessionRegistry, probe: ProcessProbe | None = None):
        self.registry = registry
        self.probe = probe or ProcessProbe()

    def compute_active_sessions(self, session_state_dir: str = SESSION_STATE_DIR) -> list[ActiveSession]:
        """Return live sessions in registry order, pruning dead launcher entries."""
        registry = self.registry.load()
        if registry is None:
            return []

        sessions: list[ActiveSession] = []
        to_remove: list[str] = []

        for pid_key, raw in registry.items():
            try:
                pid = int(pid_key)
            except ValueError:
                # Left in place: an unexpected key shape is not a dead process
                logger.debug("Skipping non-numeric registry key %r", pid_key)
                continue

            if not self.probe.is_launcher(pid):
                to_remove.append(pid_key)
                continue

            entry = RegistryEntry.from_json(pid, raw)
            if not entry.session_id:
                continue

            path = workspace_path(session_state_dir, entry.session_id)
            if not os.path.exists(path):
                continue

            descriptor = parse_workspace(path)
            if descriptor is None:
                continue

            sessions.append(ActiveSession.from_descriptor(descriptor, pid, entry.copilot_pid))

        if to_remove:
            for pid_key in to_remove:
                registry.pop(pid_key, None)
            self.registry.save(registry)
            logger.info("Pruned %d stale registry entries: %s", len(to_remove), ", ".join(to_remove))

        return sessions


def compute_active_sessions(
    registry_path: str = PID_REGISTRY_FILE,
    session_state_dir: str = SESSION_STATE_DIR,
    probe: ProcessProbe | None = None,
) -> list[ActiveSession]:
    """Reconcile the registry at ``registry_path`` against ``session_state_dir``."""
    return LivenessReconciler(SessionRegistry(registry_path), probe).compute_active_sessions(
        session_state_dir
    )
