"""
Workspace descriptor reader.

Each Copilot CLI session writes ``session-state/<id>/workspace.yaml``.  Only
three flat ``key: value`` lines matter here, so the file is scanned line by
line instead of going through a YAML parser.
"""

from __future__ import annotations

import logging
import os

from .constants import MAX_NAMED_SESSIONS, SESSION_STATE_DIR, UNKNOWN_CWD, WORKSPACE_FILE_NAME
from .models import NamedSession, SessionDescriptor, folder_name

logger = logging.getLogger(__name__)

_PREFIXES = ("id:", "cwd:", "summary:")


def workspace_path(session_state_dir: str, session_id: str) -> str:
    return os.path.join(session_state_dir, session_id, WORKSPACE_FILE_NAME)


def _read_fields(path: str) -> dict[str, str] | None:
    """Scan ``path`` for the known prefixes; later lines overwrite earlier ones."""
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            lines = f.read().splitlines()
    except OSError as e:
        logger.debug("Error reading workspace %s: %s", path, e)
        return None

    fields: dict[str, str] = {}
    for line in lines:
        for prefix in _PREFIXES:
            if line.startswith(prefix):
                fields[prefix[:-1]] = line[len(prefix) :].strip()
                break
    return fields


def parse_workspace(path: str) -> SessionDescriptor | None:
    """Parse a workspace descriptor, returning None when it has no usable id."""
    fields = _read_fields(path)
    if not fields or not fields.get("id"):
        return None
    return SessionDescriptor(
        id=fields["id"],
        cwd=fields.get("cwd", UNKNOWN_CWD),
        raw_summary=fields.get("summary"),
    )


def list_named_sessions(
    session_state_dir: str = SESSION_STATE_DIR, limit: int = MAX_NAMED_SESSIONS
) -> list[NamedSession]:
    """
    List sessions that carry a summary, most recently modified first.
    Sessions without a summary are unnamed scratch sessions and are skipped.
    """
    if limit <= 0 or not os.path.isdir(session_state_dir):
        return []

    dirs = []
    for name in os.listdir(session_state_dir):
        path = os.path.join(session_state_dir, name)
        try:
            if os.path.isdir(path):
                dirs.append((os.path.getmtime(path), path))
        except OSError:
            continue
    dirs.sort(key=lambda d: d[0], reverse=True)

    sessions: list[NamedSession] = []
    for mtime, path in dirs:
        fields = _read_fields(os.path.join(path, WORKSPACE_FILE_NAME))
        if not fields or not fields.get("id") or not fields.get("summary"):
            continue
        cwd = fields.get("cwd", "")
        sessions.append(
            NamedSession(
                id=fields["id"],
                cwd=cwd,
                folder=folder_name(cwd),
                summary=fields["summary"],
                last_modified=mtime,
            )
        )
        if len(sessions) >= limit:
            break
    return sessions


def find_git_root(path: str) -> str | None:
    """Walk up from ``path`` to the nearest directory containing ``.git``."""
    current = os.path.abspath(path)
    while True:
        if os.path.exists(os.path.join(current, ".git")):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent
