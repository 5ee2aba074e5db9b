"""
Copilot launcher — local FastAPI application.

Exposes the shared launcher state over HTTP for shell integrations and
pickers:
  - Active sessions, reconciled on demand under the update lock
  - Named (resumable) sessions from the session-state directory
  - Live terminals from the terminal cache, with click-to-focus
  - Auto-generated OpenAPI docs at /docs
"""

import logging
import os
from dataclasses import asdict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .__version__ import __version__
from .constants import (
    ACTIVE_SESSIONS_FILE,
    LAST_UPDATE_FILE,
    LOCK_DIR,
    MAX_NAMED_SESSIONS,
    PID_REGISTRY_FILE,
    SESSION_STATE_DIR,
    TERMINAL_CACHE_FILE,
)
from .coordinator import UpdateCoordinator, read_snapshot, snapshot_publisher
from .process_tracker import focus_process_window
from .reconciler import LivenessReconciler
from .registry import SessionRegistry
from .schemas import (
    ActionResponse,
    ActiveSessionResponse,
    NamedSessionResponse,
    ServerInfoResponse,
    TerminalResponse,
)
from .terminal_cache import TerminalHandleCache
from .workspace import list_named_sessions

logger = logging.getLogger(__name__)

# ── App setup ────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Copilot Launcher",
    version=__version__,
    description="Active and resumable GitHub Copilot CLI sessions on this machine.",
)

# Module-level so tests can point the API at a temporary state directory
REGISTRY_PATH = PID_REGISTRY_FILE
CACHE_PATH = TERMINAL_CACHE_FILE
SNAPSHOT_PATH = ACTIVE_SESSIONS_FILE
LAST_UPDATE_PATH = LAST_UPDATE_FILE
STATE_DIR = SESSION_STATE_DIR
LOCKS_DIR = LOCK_DIR

# Set by the CLI when this process also won the updater role
_coordinator: UpdateCoordinator | None = None


def get_coordinator() -> UpdateCoordinator:
    if _coordinator is not None:
        return _coordinator
    return UpdateCoordinator(
        LivenessReconciler(SessionRegistry(REGISTRY_PATH)),
        STATE_DIR,
        publish=snapshot_publisher(SNAPSHOT_PATH),
        last_update_path=LAST_UPDATE_PATH,
        lock_dir=LOCKS_DIR,
    )


def set_coordinator(coordinator: UpdateCoordinator | None) -> None:
    global _coordinator  # pylint: disable=global-statement
    _coordinator = coordinator


def get_terminal_cache() -> TerminalHandleCache:
    return TerminalHandleCache(CACHE_PATH, lock_dir=LOCKS_DIR)


# ── API Routes ───────────────────────────────────────────────────────────────


@app.get("/api/active-sessions", response_model=list[ActiveSessionResponse])
def api_active_sessions():
    """Reconcile and return live sessions; falls back to the last snapshot when busy."""
    sessions = get_coordinator().refresh()
    if sessions is None:
        logger.debug("Refresh unavailable; serving snapshot from %s", SNAPSHOT_PATH)
        sessions = read_snapshot(SNAPSHOT_PATH)
    return [asdict(s) for s in sessions]


@app.get("/api/named-sessions", response_model=list[NamedSessionResponse])
def api_named_sessions(limit: int = MAX_NAMED_SESSIONS):
    """Sessions with a summary, most recently modified first."""
    return [
        {**asdict(s), "display_label": s.display_label}
        for s in list_named_sessions(STATE_DIR, limit)
    ]


@app.get("/api/terminals", response_model=list[TerminalResponse])
def api_terminals():
    """Sessions whose terminal window is still open."""
    cache = get_terminal_cache()
    result = []
    for session_id in sorted(cache.list_live_session_ids()):
        pid = cache.get_pid(session_id)
        if pid is not None:
            result.append({"session_id": session_id, "pid": pid})
    return result


@app.post("/api/focus/{session_id}", response_model=ActionResponse)
def api_focus(session_id: str):
    """Focus the terminal window for a running session."""
    cache = get_terminal_cache()
    if session_id not in cache.list_live_session_ids():
        return JSONResponse(
            {"success": False, "message": "No open terminal for this session"},
            status_code=404,
        )
    pid = cache.get_pid(session_id)
    if pid is None:
        return JSONResponse({"success": False, "message": "PID not available"}, status_code=404)
    success, message = focus_process_window(pid)
    return {"success": success, "message": message}


@app.get("/api/server-info", response_model=ServerInfoResponse)
def server_info(request: Request):
    """Return server metadata including PID."""
    host = request.headers.get("host", "localhost:5112")
    return {
        "pid": os.getpid(),
        "port": host.split(":")[-1],
        "version": __version__,
        "is_updater": _coordinator is not None and _coordinator.is_leader,
    }
