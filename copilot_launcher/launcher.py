"""
Launcher lifecycle: spawn a terminal running Copilot and keep the registry
in sync with it until the terminal exits.

One ``LauncherSession`` per launcher process.  It registers its own pid,
competes for the background-updater role, spawns the terminal, discovers the
session id from the new ``session-state`` directory, and tears everything
down from a watcher thread once the terminal is gone.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import sys
import threading
import time
from collections.abc import Callable, Iterable
from typing import Protocol

from .constants import (
    COPILOT_CANDIDATE_PATHS,
    SESSION_DISCOVERY_INTERVAL,
    SESSION_DISCOVERY_TIMEOUT,
    SESSION_STATE_DIR,
)
from .coordinator import UpdateCoordinator
from .models import SessionDescriptor
from .process_tracker import focus_process_window
from .reconciler import LivenessReconciler
from .registry import SessionRegistry
from .settings import IdeEntry, LauncherSettings
from .terminal_cache import TerminalHandleCache
from .workspace import find_git_root, parse_workspace, workspace_path

logger = logging.getLogger(__name__)


class Terminal(Protocol):
    """The slice of ``subprocess.Popen`` the launcher relies on."""

    pid: int

    def poll(self) -> int | None: ...

    def wait(self, timeout: float | None = None) -> int: ...


Spawner = Callable[[str, str], "Terminal | None"]
Focuser = Callable[[int], tuple[bool, str]]


# ---------------------------------------------------------------------------
# Copilot / terminal discovery
# ---------------------------------------------------------------------------


def find_copilot_exe(candidates: Iterable[str] | None = None) -> str:
    """Known install locations first, then ``PATH``, then the bare command name."""
    for path in COPILOT_CANDIDATE_PATHS if candidates is None else candidates:
        if path and os.path.isfile(path):
            return path
    return shutil.which("copilot") or "copilot"


def detect_terminal() -> str:
    if sys.platform == "win32":
        return "pwsh" if shutil.which("pwsh") else "cmd"
    return os.environ.get("SHELL") or "/bin/sh"


def build_copilot_command(terminal: str, copilot_exe: str, copilot_args: str) -> str:
    """Command line that runs Copilot inside ``terminal``."""
    name = os.path.basename(terminal).lower()
    if name in ("pwsh", "pwsh.exe", "powershell", "powershell.exe"):
        cmd = f'& "{copilot_exe}"'
    elif name in ("cmd", "cmd.exe"):
        cmd = f'"{copilot_exe}"'
    else:
        cmd = shlex.quote(copilot_exe)
    return f"{cmd} {copilot_args}".rstrip()


def build_terminal_command(terminal: str, copilot_cmd: str) -> list[str]:
    name = os.path.basename(terminal).lower()
    if name in ("pwsh", "pwsh.exe", "powershell", "powershell.exe"):
        return [terminal, "-NoExit", "-Command", copilot_cmd]
    if name in ("cmd", "cmd.exe"):
        return [terminal, "/k", copilot_cmd]
    return [terminal, "-c", copilot_cmd]


def launch_terminal(
    work_dir: str,
    copilot_args: str,
    terminal: str | None = None,
    copilot_exe: str | None = None,
) -> subprocess.Popen | None:
    """Start a terminal in ``work_dir`` running Copilot; None if it cannot start."""
    if not os.path.isdir(work_dir):
        logger.warning("Working directory does not exist: %s", work_dir)
        return None
    terminal = terminal or detect_terminal()
    copilot_cmd = build_copilot_command(terminal, copilot_exe or find_copilot_exe(), copilot_args)
    cmd = build_terminal_command(terminal, copilot_cmd)
    logger.debug("Launching: %s", cmd)
    try:
        return subprocess.Popen(  # pylint: disable=consider-using-with
            cmd,
            cwd=work_dir,
            creationflags=subprocess.CREATE_NEW_CONSOLE if sys.platform == "win32" else 0,
        )
    except OSError as e:
        logger.warning("Could not launch %s: %s", terminal, e)
        return None


def list_session_dirs(session_state_dir: str = SESSION_STATE_DIR) -> set[str]:
    try:
        return {
            name
            for name in os.listdir(session_state_dir)
            if os.path.isdir(os.path.join(session_state_dir, name))
        }
    except OSError:
        return set()


# ---------------------------------------------------------------------------
# Open in IDE
# ---------------------------------------------------------------------------


def open_in_ide(session_id: str, ide: IdeEntry, session_state_dir: str = SESSION_STATE_DIR):
    """
    Open the repository (or working directory) of ``session_id`` in ``ide``.
    Returns (success: bool, message: str).
    """
    descriptor = parse_workspace(workspace_path(session_state_dir, session_id))
    if descriptor is None:
        return False, f"Session {session_id} not found."
    if not os.path.isdir(descriptor.cwd):
        return False, f"Working directory does not exist: {descriptor.cwd}"
    target = find_git_root(descriptor.cwd) or descriptor.cwd
    try:
        subprocess.Popen([ide.path, target])  # pylint: disable=consider-using-with
    except OSError as e:
        return False, f"Could not start {ide.path}: {e}"
    return True, f"Opened {target} in {ide.description or ide.path}"


# ---------------------------------------------------------------------------
# Launcher session
# ---------------------------------------------------------------------------


class LauncherSession:
    def __init__(
        self,
        work_dir: str,
        resume_session_id: str | None = None,
        *,
        settings: LauncherSettings | None = None,
        registry: SessionRegistry | None = None,
        terminal_cache: TerminalHandleCache | None = None,
        coordinator: UpdateCoordinator | None = None,
        session_state_dir: str = SESSION_STATE_DIR,
        spawn: Spawner | None = None,
        focus: Focuser = focus_process_window,
        pid: int | None = None,
        discovery_timeout: float = SESSION_DISCOVERY_TIMEOUT,
        discovery_interval: float = SESSION_DISCOVERY_INTERVAL,
    ):
        self.work_dir = work_dir
        self.resume_session_id = resume_session_id
        self.settings = settings or LauncherSettings()
        self.registry = registry or SessionRegistry()
        self.terminal_cache = terminal_cache or TerminalHandleCache()
        self.coordinator = coordinator or UpdateCoordinator(
            LivenessReconciler(self.registry), session_state_dir
        )
        self.session_state_dir = session_state_dir
        self.spawn = spawn or launch_terminal
        self.focus = focus
        self.pid = pid if pid is not None else os.getpid()
        self.discovery_timeout = discovery_timeout
        self.discovery_interval = discovery_interval

        self.terminal: Terminal | None = None
        self.refocused = False
        self.session_id: str | None = resume_session_id
        self._watcher: threading.Thread | None = None
        self._torn_down = threading.Event()
        self._teardown_lock = threading.Lock()

    def copilot_args(self) -> str:
        extra = ["--resume", self.resume_session_id] if self.resume_session_id else []
        return self.settings.build_copilot_args(extra)

    def run(self) -> bool:
        """
        Start the session. Returns True when a terminal was spawned and is
        being watched, False when an existing window was focused or the
        spawn failed (teardown has already run in both cases).
        """
        self.registry.register(self.pid)
        if self.coordinator.try_become_leader():
            self.coordinator.start_background_loop()

        if self.resume_session_id and self._focus_existing(self.resume_session_id):
            self.refocused = True
            self.teardown()
            return False

        existing = list_session_dirs(self.session_state_dir)
        self.terminal = self.spawn(self.work_dir, self.copilot_args())
        if self.terminal is None:
            logger.warning("Terminal did not start; nothing to track")
            self.teardown()
            return False
        logger.info("Terminal started: PID %d", self.terminal.pid)

        if not self.session_id:
            self.session_id = self._discover_session_id(existing)
        if self.session_id:
            self.registry.update_session_id(self.pid, self.session_id, self.terminal.pid)
            self.terminal_cache.put(self.session_id, self.terminal.pid)
        else:
            logger.warning("No new session directory appeared; session stays unmapped")

        self.coordinator.refresh()

        self._watcher = threading.Thread(
            target=self._watch_terminal, name="terminal-watcher", daemon=True
        )
        self._watcher.start()
        return True

    def _focus_existing(self, session_id: str) -> bool:
        if session_id not in self.terminal_cache.list_live_session_ids():
            return False
        terminal_pid = self.terminal_cache.get_pid(session_id)
        if terminal_pid is None:
            return False
        ok, message = self.focus(terminal_pid)
        logger.info("Focus existing terminal %d for %s: %s", terminal_pid, session_id, message)
        return ok

    def _discover_session_id(self, existing: set[str]) -> str | None:
        """First session-state directory not in ``existing``, polled until timeout."""
        deadline = time.monotonic() + self.discovery_timeout
        while True:
            new_dirs = list_session_dirs(self.session_state_dir) - existing
            if new_dirs:
                name = min(new_dirs)
                descriptor = parse_workspace(workspace_path(self.session_state_dir, name))
                session_id = descriptor.id if descriptor else name
                logger.info("Discovered session %s", session_id)
                return session_id
            if self.terminal is not None and self.terminal.poll() is not None:
                return None
            if time.monotonic() >= deadline:
                return None
            time.sleep(self.discovery_interval)

    def _watch_terminal(self) -> None:
        try:
            if self.terminal is not None:
                code = self.terminal.wait()
                logger.info("Terminal exited with code %s", code)
        except Exception as e:
            logger.warning("Terminal wait failed: %s", e)
        finally:
            self.teardown()

    def teardown(self) -> None:
        """Unregister, republish, and give up the updater role. Runs once."""
        with self._teardown_lock:
            if self._torn_down.is_set():
                return
            self._torn_down.set()
        self.registry.unregister(self.pid)
        if self.session_id and self.terminal is not None:
            self.terminal_cache.remove(self.session_id)
        self.coordinator.refresh()
        self.coordinator.shutdown()

    @property
    def finished(self) -> bool:
        return self._torn_down.is_set()

    def wait(self, timeout: float | None = None) -> None:
        if self._watcher is not None:
            self._watcher.join(timeout)

    def describe(self) -> SessionDescriptor | None:
        if not self.session_id:
            return None
        return parse_workspace(workspace_path(self.session_state_dir, self.session_id))
