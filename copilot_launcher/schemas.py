"""
Pydantic response models for the local launcher API.

These define the JSON shapes for all API endpoints and give us
automatic OpenAPI schema generation + Swagger UI.
"""

from __future__ import annotations

from pydantic import BaseModel

# ── Active sessions (/api/active-sessions) ──────────────────────────────────


class ActiveSessionResponse(BaseModel):
    """A live launcher and the session it runs."""

    id: str
    cwd: str
    display_label: str
    pid: int
    copilot_pid: int = 0


# ── Named sessions (/api/named-sessions) ────────────────────────────────────


class NamedSessionResponse(BaseModel):
    """A resumable session that carries a summary."""

    id: str
    cwd: str
    folder: str
    summary: str
    display_label: str
    last_modified: float = 0.0


# ── Terminal cache (/api/terminals) ─────────────────────────────────────────


class TerminalResponse(BaseModel):
    session_id: str
    pid: int


# ── Generic ─────────────────────────────────────────────────────────────────


class ActionResponse(BaseModel):
    """Generic success/failure response for POST actions."""

    success: bool
    message: str = ""


class ServerInfoResponse(BaseModel):
    pid: int
    port: str
    version: str
    is_updater: bool = False
