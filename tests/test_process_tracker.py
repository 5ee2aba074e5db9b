"""Tests for process_tracker.py — launcher recognition, liveness and window focus."""

import json
import os
import subprocess
import sys
import time
from unittest.mock import MagicMock, patch

import psutil
import pytest

from copilot_launcher.process_tracker import (
    ProcessProbe,
    _focus_window_macos,
    focus_process_window,
    is_launcher_process,
)
from copilot_launcher.reconciler import compute_active_sessions

# ---------------------------------------------------------------------------
# ProcessProbe / is_launcher_process
# ---------------------------------------------------------------------------


class TestIsLauncherProcess:
    def test_console_script_name(self):
        assert is_launcher_process("copilot-launcher.exe", [])

    def test_python_with_module_marker(self):
        assert is_launcher_process("python3.12", ["python3.12", "-m", "copilot_launcher.session_launcher"])

    def test_python_without_marker(self):
        assert not is_launcher_process("python", ["python", "manage.py", "runserver"])

    def test_unrelated_process_with_marker_in_args(self):
        assert not is_launcher_process("vim", ["vim", "copilot_launcher/launcher.py"])

    def test_truncated_name_of_shebang_script(self):
        cmdline = ["/venv/bin/python", "/venv/bin/copilot-launcher", "start"]
        assert is_launcher_process("copilot-launche", cmdline)

    def test_console_script_as_first_argument(self):
        assert is_launcher_process("copilot-launche", ["/usr/local/bin/copilot-launcher", "active"])

    def test_windows_interpreter_path(self):
        cmdline = ["C:\\Python312\\python.exe", "C:\\Python312\\Scripts\\copilot-launcher", "start"]
        assert is_launcher_process("python.exe", cmdline)

    def test_editor_opening_a_file_named_like_the_launcher(self):
        assert not is_launcher_process("vim", ["vim", "copilot-launcher"])


def _spawn_console_script(tmp_path):
    """Run a shebang script named like the installed console script."""
    script = tmp_path / "bin" / "copilot-launcher"
    script.parent.mkdir()
    script.write_text(f"#!{sys.executable}\nimport time\ntime.sleep(30)\n", encoding="utf-8")
    script.chmod(0o755)
    proc = subprocess.Popen([str(script), "start"])  # pylint: disable=consider-using-with
    deadline = time.monotonic() + 10
    while time.monotonic() < deadline:
        try:
            if str(script) in psutil.Process(proc.pid).cmdline():
                break
        except psutil.Error:
            pass
        time.sleep(0.05)
    return proc


@pytest.mark.skipif(sys.platform == "win32", reason="shebang scripts are POSIX-only")
class TestInstalledConsoleScript:
    def test_is_recognised_as_launcher(self, tmp_path):
        proc = _spawn_console_script(tmp_path)
        try:
            assert ProcessProbe().is_launcher(proc.pid)
        finally:
            proc.kill()
            proc.wait()

    def test_registry_entry_survives_reconciliation(self, tmp_path, registry_path, session_state_dir):
        proc = _spawn_console_script(tmp_path)
        try:
            with open(registry_path, "w", encoding="utf-8") as f:
                json.dump({str(proc.pid): {"started": "t", "sessionId": None, "copilotPid": 0}}, f)
            compute_active_sessions(registry_path, str(session_state_dir), ProcessProbe())
            with open(registry_path, encoding="utf-8") as f:
                assert list(json.load(f)) == [str(proc.pid)]
        finally:
            proc.kill()
            proc.wait()


class TestProcessProbe:
    def test_own_pid_is_launcher(self):
        assert ProcessProbe().is_launcher(os.getpid())

    def test_non_positive_pid(self):
        probe = ProcessProbe()
        assert not probe.is_launcher(0)
        assert not probe.is_alive(-1)

    def test_vanished_process_is_not_launcher(self):
        with patch(
            "copilot_launcher.process_tracker.psutil.Process",
            side_effect=psutil.NoSuchProcess(12345),
        ):
            assert not ProcessProbe().is_launcher(12345)

    def test_access_denied_is_not_launcher(self):
        with patch(
            "copilot_launcher.process_tracker.psutil.Process",
            side_effect=psutil.AccessDenied(12345),
        ):
            assert not ProcessProbe().is_launcher(12345)

    def test_recycled_pid_with_other_program(self):
        proc = MagicMock()
        proc.name.return_value = "notepad.exe"
        proc.cmdline.return_value = ["notepad.exe"]
        with patch("copilot_launcher.process_tracker.psutil.Process", return_value=proc):
            assert not ProcessProbe().is_launcher(12345)

    def test_zombie_is_not_alive(self):
        proc = MagicMock()
        proc.status.return_value = psutil.STATUS_ZOMBIE
        with (
            patch("copilot_launcher.process_tracker.psutil.pid_exists", return_value=True),
            patch("copilot_launcher.process_tracker.psutil.Process", return_value=proc),
        ):
            assert not ProcessProbe().is_alive(12345)

    def test_running_is_alive(self):
        assert ProcessProbe().is_alive(os.getpid())


# ---------------------------------------------------------------------------
# focus_process_window
# ---------------------------------------------------------------------------


class TestFocusProcessWindow:
    def test_dead_process(self):
        with patch.object(ProcessProbe, "is_alive", return_value=False):
            ok, message = focus_process_window(12345)
        assert not ok
        assert "not running" in message

    def test_unsupported_platform(self):
        with (
            patch.object(ProcessProbe, "is_alive", return_value=True),
            patch("copilot_launcher.process_tracker.sys.platform", "linux"),
        ):
            ok, message = focus_process_window(12345)
        assert not ok
        assert "not supported" in message

    def test_dispatches_to_macos(self):
        with (
            patch.object(ProcessProbe, "is_alive", return_value=True),
            patch("copilot_launcher.process_tracker.sys.platform", "darwin"),
            patch(
                "copilot_launcher.process_tracker._focus_window_macos",
                return_value=(True, "Focused: iTerm"),
            ) as mac,
        ):
            assert focus_process_window(12345) == (True, "Focused: iTerm")
        mac.assert_called_once_with(12345)

    def test_dispatches_to_windows(self):
        with (
            patch.object(ProcessProbe, "is_alive", return_value=True),
            patch("copilot_launcher.process_tracker.sys.platform", "win32"),
            patch(
                "copilot_launcher.process_tracker._focus_window_windows",
                return_value=(True, "Focused: pwsh"),
            ) as win,
        ):
            assert focus_process_window(12345) == (True, "Focused: pwsh")
        win.assert_called_once_with(12345)


class TestFocusWindowMacos:
    def test_known_terminal_activated(self):
        result = MagicMock(returncode=0, stderr="")
        with (
            patch.object(ProcessProbe, "process_name", return_value="iTerm2"),
            patch("copilot_launcher.process_tracker.subprocess.run", return_value=result) as run,
        ):
            assert _focus_window_macos(1) == (True, "Focused: iTerm")
        assert run.call_args.args[0] == ["osascript", "-e", 'tell application "iTerm" to activate']

    def test_unknown_terminal(self):
        with patch.object(ProcessProbe, "process_name", return_value="zsh"):
            ok, _ = _focus_window_macos(1)
        assert not ok

    def test_osascript_failure(self):
        result = MagicMock(returncode=1, stderr="not allowed\n")
        with (
            patch.object(ProcessProbe, "process_name", return_value="Terminal"),
            patch("copilot_launcher.process_tracker.subprocess.run", return_value=result),
        ):
            assert _focus_window_macos(1) == (False, "osascript failed: not allowed")
