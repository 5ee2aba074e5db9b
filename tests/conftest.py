"""Shared pytest fixtures for the test suite."""

import json
import os
import threading

import pytest


class FakeProbe:
    """Stands in for ProcessProbe with a fixed set of launcher / live pids."""

    def __init__(self, launchers=(), alive=()):
        self.launchers = set(launchers)
        self.alive = set(alive) | self.launchers
        self.calls = []

    def is_launcher(self, pid):
        self.calls.append(("is_launcher", pid))
        return pid in self.launchers

    def is_alive(self, pid):
        self.calls.append(("is_alive", pid))
        return pid in self.alive

    def process_name(self, pid):
        return "copilot-launcher" if pid in self.launchers else None


class FakeTerminal:
    """Minimal Popen stand-in: exits when ``finish()`` is called."""

    def __init__(self, pid=4242):
        self.pid = pid
        self.returncode = None
        self._done = threading.Event()

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        self._done.wait(timeout)
        return self.returncode

    def finish(self, code=0):
        self.returncode = code
        self._done.set()


@pytest.fixture
def fake_probe():
    return FakeProbe


@pytest.fixture
def copilot_home(tmp_path):
    """Temporary stand-in for ~/.copilot."""
    home = tmp_path / ".copilot"
    home.mkdir()
    return home


@pytest.fixture
def session_state_dir(copilot_home):
    path = copilot_home / "session-state"
    path.mkdir()
    return path


@pytest.fixture
def registry_path(copilot_home):
    return str(copilot_home / "active-pids.json")


def write_workspace(session_state_dir, dir_name, lines):
    """Write session-state/<dir_name>/workspace.yaml with the given lines."""
    session_dir = session_state_dir / dir_name
    session_dir.mkdir(parents=True, exist_ok=True)
    path = session_dir / "workspace.yaml"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(path)


@pytest.fixture
def make_workspace(session_state_dir):
    """Fixture that returns a helper to write workspace.yaml descriptors."""

    def _make(session_id, cwd=None, summary=None, dir_name=None, mtime=None):
        lines = [f"id: {session_id}"]
        if cwd is not None:
            lines.append(f"cwd: {cwd}")
        if summary is not None:
            lines.append(f"summary: {summary}")
        path = write_workspace(session_state_dir, dir_name or session_id, lines)
        if mtime is not None:
            os.utime(os.path.dirname(path), (mtime, mtime))
        return path

    return _make


@pytest.fixture
def write_registry(registry_path):
    """Fixture that returns a helper to write the raw registry JSON."""

    def _write(mapping):
        with open(registry_path, "w", encoding="utf-8") as f:
            json.dump(mapping, f)
        return registry_path

    return _write


@pytest.fixture
def fake_terminal():
    return FakeTerminal
