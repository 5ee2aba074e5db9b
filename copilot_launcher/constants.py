"""
Centralised constants for the Copilot session launcher.

All magic numbers, timeouts, file-system paths, and hardcoded names live
here so they are easy to find, tune, and test.
"""

from __future__ import annotations

import os

# ── Network & server ──────────────────────────────────────────────────────────

DEFAULT_PORT = 5112
"""Default HTTP port for the local launcher API."""

LOCALHOST = "127.0.0.1"
"""Bind address — the API is local-only."""

# ── File-system paths ─────────────────────────────────────────────────────────

COPILOT_DIR = os.environ.get("COPILOT_LAUNCHER_HOME") or os.path.join(
    os.path.expanduser("~"), ".copilot"
)
SESSION_STATE_DIR = os.path.join(COPILOT_DIR, "session-state")
PID_REGISTRY_FILE = os.path.join(COPILOT_DIR, "active-pids.json")
TERMINAL_CACHE_FILE = os.path.join(COPILOT_DIR, "terminal-cache.json")
LAST_UPDATE_FILE = os.path.join(COPILOT_DIR, "launcher-lastupdate.txt")
ACTIVE_SESSIONS_FILE = os.path.join(COPILOT_DIR, "active-sessions.json")
SETTINGS_FILE = os.path.join(COPILOT_DIR, "launcher-settings.json")
LOG_FILE = os.path.join(COPILOT_DIR, "launcher.log")
LOCK_DIR = os.path.join(COPILOT_DIR, "locks")

WORKSPACE_FILE_NAME = "workspace.yaml"
"""Descriptor file written by the Copilot CLI into each session directory."""

WORK_DIR_ENV_VAR = "COPILOT_WORK_DIR"
"""Environment variable consulted when no working directory is given."""

# ── Named mutexes ─────────────────────────────────────────────────────────────

UPDATER_MUTEX_NAME = "Global\\CopilotLauncherUpdater"
"""Held for the whole session by the single background-updater process."""

UPDATE_LOCK_NAME = "Global\\CopilotLauncherUpdateLock"
"""Held around every reconciliation-and-publish cycle."""

TERMINAL_CACHE_LOCK_NAME = "Global\\CopilotLauncherTerminalCache"
"""Held around every read-modify-write of the terminal cache file."""

# ── Polling & cadence intervals (seconds) ────────────────────────────────────

UPDATER_CHECK_INTERVAL = 1.0
"""How often the background loop wakes up to check cancellation and cadence."""

MIN_BACKGROUND_UPDATE_INTERVAL = 60.0
"""Minimum age of the last-update timestamp before the loop reconciles again."""

UPDATE_LOCK_TIMEOUT = 5.0
"""Bounded wait for the update lock; the cycle is abandoned on timeout."""

TERMINAL_CACHE_LOCK_TIMEOUT = 2.0
"""Bounded wait for the terminal cache lock; the write goes ahead unguarded on timeout."""

LOCK_POLL_INTERVAL = 0.05
"""Retry delay while waiting on a contended file lock."""

SESSION_DISCOVERY_TIMEOUT = 30.0
"""How long to wait for a new session-state directory after spawning."""

SESSION_DISCOVERY_INTERVAL = 1.0
"""Polling interval while waiting for a new session-state directory."""

# ── Subprocess timeouts (seconds) ────────────────────────────────────────────

OSASCRIPT_TIMEOUT = 5
"""Timeout for macOS AppleScript focus commands."""


# ── Listing limits ────────────────────────────────────────────────────────────

MAX_NAMED_SESSIONS = 50
"""Max entries returned by the "open existing session" listing."""

UNKNOWN_CWD = "Unknown"
"""Placeholder cwd for descriptors that carry no ``cwd:`` line."""

# ── Process names ─────────────────────────────────────────────────────────────

LAUNCHER_PROCESS_NAMES: frozenset[str] = frozenset(
    {
        "copilot-launcher",
        "copilot-launcher.exe",
    }
)
"""Image names of a frozen / console-script launcher process."""

LAUNCHER_CMDLINE_MARKERS: tuple[str, ...] = (
    "copilot-launcher",
    "copilot_launcher",
)
"""Substrings identifying the launcher in a Python interpreter's command line."""

PYTHON_PROCESS_PREFIXES: tuple[str, ...] = ("python", "py")
"""Interpreter image-name prefixes whose command line is checked for markers."""

COPILOT_CANDIDATE_PATHS: list[str] = [
    os.path.join(
        os.environ.get("LOCALAPPDATA", ""),
        "Microsoft",
        "WinGet",
        "Packages",
        "GitHub.Copilot.Prerelease_Microsoft.Winget.Source_8wekyb3d8bbwe",
        "copilot.exe",
    ),
    os.path.join(
        os.environ.get("LOCALAPPDATA", ""),
        "Microsoft",
        "WinGet",
        "Packages",
        "GitHub.Copilot_Microsoft.Winget.Source_8wekyb3d8bbwe",
        "copilot.exe",
    ),
]
"""Known Copilot CLI install locations, checked before ``PATH``."""


# macOS: map process-name substrings → AppleScript application names
MACOS_APP_NAMES: dict[str, str] = {
    "iterm": "iTerm",
    "terminal": "Terminal",
    "alacritty": "Alacritty",
    "kitty": "kitty",
    "warp": "Warp",
    "wezterm": "WezTerm",
}
