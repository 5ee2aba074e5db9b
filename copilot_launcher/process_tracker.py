"""
Process tracker for launcher and Copilot terminal processes.
Answers liveness questions against the OS process table with psutil and
brings an existing terminal window back to the foreground (pywin32 on
Windows, osascript on macOS).
"""

import logging
import os
import subprocess
import sys

import psutil

from .constants import (
    LAUNCHER_CMDLINE_MARKERS,
    LAUNCHER_PROCESS_NAMES,
    MACOS_APP_NAMES,
    OSASCRIPT_TIMEOUT,
    PYTHON_PROCESS_PREFIXES,
)

logger = logging.getLogger(__name__)


def _arg_name(arg: str) -> str:
    return os.path.basename(arg.replace("\\", "/")).lower()


def is_launcher_process(name: str, cmdline: list[str]) -> bool:
    """Whether a process image name / command line belongs to this launcher.

    Linux truncates image names to 15 characters (``copilot-launche``), and a
    console script started through its shebang shows up as the interpreter, so
    the first two command-line arguments are checked as well.
    """
    lname = (name or "").lower()
    if lname in LAUNCHER_PROCESS_NAMES:
        return True
    argv = [_arg_name(arg) for arg in cmdline[:2]]
    if argv and argv[0] in LAUNCHER_PROCESS_NAMES:
        return True
    interpreted = lname.startswith(PYTHON_PROCESS_PREFIXES) or (
        bool(argv) and argv[0].startswith(PYTHON_PROCESS_PREFIXES)
    )
    if not interpreted:
        return False
    joined = " ".join(cmdline).lower()
    return any(marker in joined for marker in LAUNCHER_CMDLINE_MARKERS)


class ProcessProbe:
    """Process-table queries used by reconciliation and the terminal cache.

    Any failure to inspect a pid (gone, access denied, zombie, reused by an
    unrelated program) is reported as "not alive" / "not ours".
    """

    def is_alive(self, pid: int) -> bool:
        if pid <= 0 or not psutil.pid_exists(pid):
            return False
        try:
            return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
        except psutil.Error:
            # Exists but cannot be inspected (e.g. AccessDenied)
            return True

    def process_name(self, pid: int) -> str | None:
        try:
            return psutil.Process(pid).name()
        except psutil.Error:
            return None

    def is_launcher(self, pid: int) -> bool:
        if pid <= 0:
            return False
        if pid == os.getpid():
            return True
        try:
            proc = psutil.Process(pid)
            name = proc.name()
            cmdline = proc.cmdline() if name.lower() not in LAUNCHER_PROCESS_NAMES else []
        except psutil.Error as e:
            logger.debug("Cannot inspect PID %d: %s", pid, e)
            return False
        return is_launcher_process(name, cmdline)


def _focus_window_windows(pid: int):
    """Focus the top-level window owned by ``pid`` using pywin32."""
    try:
        import win32con
        import win32gui
        import win32process
    except ImportError:
        return False, "pywin32 not installed. Run: pip install pywin32"

    target_hwnd = None

    def enum_cb(hwnd, _):
        nonlocal target_hwnd
        if win32gui.IsWindowVisible(hwnd):
            _, window_pid = win32process.GetWindowThreadProcessId(hwnd)
            if window_pid == pid and win32gui.GetWindowText(hwnd):
                target_hwnd = hwnd
        return True

    win32gui.EnumWindows(enum_cb, None)
    if not target_hwnd:
        return False, f"No visible window found for PID {pid}."

    try:
        import ctypes

        placement = win32gui.GetWindowPlacement(target_hwnd)
        if placement[1] == win32con.SW_SHOWMINIMIZED:
            win32gui.ShowWindow(target_hwnd, win32con.SW_RESTORE)

        fg_hwnd = win32gui.GetForegroundWindow()
        fg_thread = win32process.GetWindowThreadProcessId(fg_hwnd)[0]
        my_thread = win32process.GetWindowThreadProcessId(target_hwnd)[0]
        # windll is Windows-only; type: ignore keeps mypy happy on Linux
        user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        if fg_thread != my_thread:
            user32.AttachThreadInput(fg_thread, my_thread, True)
            win32gui.SetForegroundWindow(target_hwnd)
            user32.AttachThreadInput(fg_thread, my_thread, False)
        else:
            win32gui.SetForegroundWindow(target_hwnd)
        return True, f"Focused: {win32gui.GetWindowText(target_hwnd)}"
    except Exception as e:
        return False, f"Could not focus window: {e}"


def _focus_window_macos(pid: int):
    """Activate the terminal application owning ``pid`` using osascript."""
    name = (ProcessProbe().process_name(pid) or "").lower()
    app_name = None
    for substring, candidate in MACOS_APP_NAMES.items():
        if substring in name:
            app_name = candidate
            break
    if not app_name:
        return False, f"Could not determine terminal application for PID {pid}."

    try:
        result = subprocess.run(
            ["osascript", "-e", f'tell application "{app_name}" to activate'],
            capture_output=True,
            text=True,
            timeout=OSASCRIPT_TIMEOUT,
            check=False,
        )
        if result.returncode == 0:
            return True, f"Focused: {app_name}"
        return False, f"osascript failed: {result.stderr.strip()}"
    except Exception as e:
        return False, f"Could not focus window: {e}"


def focus_process_window(pid: int):
    """
    Bring the window hosting ``pid`` to the foreground.
    Returns (success: bool, message: str).
    """
    if not ProcessProbe().is_alive(pid):
        return False, f"Process {pid} is not running."
    if sys.platform == "win32":
        return _focus_window_windows(pid)
    if sys.platform == "darwin":
        return _focus_window_macos(pid)
    return False, "Window focus not supported on this platform."
