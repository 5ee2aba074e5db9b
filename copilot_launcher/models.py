"""Typed data models for the Copilot session launcher."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .constants import UNKNOWN_CWD


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def folder_name(cwd: str) -> str:
    """Last path component of ``cwd``, accepting both ``\\`` and ``/`` separators."""
    stripped = cwd.rstrip("\\/")
    return stripped.replace("\\", "/").split("/")[-1]


@dataclass
class RegistryEntry:
    """One launcher process tracked in the shared PID registry."""

    pid: int
    started_at: str = ""
    session_id: str | None = None
    copilot_pid: int = 0

    @classmethod
    def from_json(cls, pid: int, raw: Any) -> RegistryEntry:
        if not isinstance(raw, dict):
            return cls(pid=pid)
        session_id = raw.get("sessionId")
        return cls(
            pid=pid,
            started_at=str(raw.get("started") or ""),
            session_id=session_id if isinstance(session_id, str) else None,
            copilot_pid=_as_int(raw.get("copilotPid")),
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "started": self.started_at,
            "sessionId": self.session_id,
            "copilotPid": self.copilot_pid,
        }


@dataclass
class TerminalCacheEntry:
    """Pid of the terminal hosting a session, used to refocus instead of respawn."""

    session_id: str
    copilot_pid: int
    started_at: str = ""

    @classmethod
    def from_json(cls, session_id: str, raw: Any) -> TerminalCacheEntry | None:
        if not isinstance(raw, dict) or "copilotPid" not in raw:
            return None
        pid = _as_int(raw.get("copilotPid"), default=-1)
        if pid <= 0:
            return None
        return cls(session_id=session_id, copilot_pid=pid, started_at=str(raw.get("started") or ""))

    def to_json(self) -> dict[str, Any]:
        return {"copilotPid": self.copilot_pid, "started": self.started_at}


@dataclass(frozen=True)
class SessionDescriptor:
    """Identity, working directory and summary parsed from a workspace.yaml."""

    id: str
    cwd: str = UNKNOWN_CWD
    raw_summary: str | None = None

    @property
    def folder_name(self) -> str:
        return folder_name(self.cwd)

    @property
    def display_label(self) -> str:
        label = f"[{self.folder_name}]"
        if self.raw_summary and self.raw_summary.strip():
            label += f" {self.raw_summary.strip()}"
        return label


@dataclass
class ActiveSession:
    """A live launcher joined with its session descriptor, rebuilt every pass."""

    id: str
    cwd: str
    display_label: str
    pid: int
    copilot_pid: int = 0

    @classmethod
    def from_descriptor(
        cls, descriptor: SessionDescriptor, pid: int, copilot_pid: int = 0
    ) -> ActiveSession:
        return cls(
            id=descriptor.id,
            cwd=descriptor.cwd,
            display_label=descriptor.display_label,
            pid=pid,
            copilot_pid=copilot_pid,
        )


@dataclass
class NamedSession:
    """A session with a summary, offered by the "open existing session" listing."""

    id: str
    cwd: str
    folder: str
    summary: str
    last_modified: float = 0.0

    @property
    def display_label(self) -> str:
        return f"[{self.folder}] {self.summary}"
