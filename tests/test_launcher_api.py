"""Tests for launcher_api.py — FastAPI endpoints over a temporary ~/.copilot."""

import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from copilot_launcher import launcher_api
from copilot_launcher.launcher_api import app
from copilot_launcher.models import ActiveSession


@pytest.fixture
def api_home(copilot_home, session_state_dir):
    """Point every module-level path of the API at the temp directory."""
    with (
        patch.object(launcher_api, "REGISTRY_PATH", str(copilot_home / "active-pids.json")),
        patch.object(launcher_api, "CACHE_PATH", str(copilot_home / "terminal-cache.json")),
        patch.object(launcher_api, "SNAPSHOT_PATH", str(copilot_home / "active-sessions.json")),
        patch.object(launcher_api, "LAST_UPDATE_PATH", str(copilot_home / "lastupdate.txt")),
        patch.object(launcher_api, "STATE_DIR", str(session_state_dir)),
        patch.object(launcher_api, "LOCKS_DIR", str(copilot_home / "locks")),
    ):
        yield copilot_home


@pytest.fixture
def client(api_home):
    launcher_api.set_coordinator(None)
    yield TestClient(app)
    launcher_api.set_coordinator(None)


def _alive(pids):
    def is_alive(self, pid):
        return pid in pids

    return patch("copilot_launcher.terminal_cache.ProcessProbe.is_alive", is_alive)


# ---------------------------------------------------------------------------
# /api/active-sessions
# ---------------------------------------------------------------------------


class TestActiveSessions:
    def test_empty_when_no_registry(self, client):
        resp = client.get("/api/active-sessions")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_lists_live_session_and_publishes_snapshot(self, client, api_home, make_workspace):
        make_workspace("s1", cwd="/home/me/proj", summary="Fix bug")
        (api_home / "active-pids.json").write_text(
            json.dumps({"100": {"started": "t", "sessionId": "s1", "copilotPid": 7}}),
            encoding="utf-8",
        )
        with patch("copilot_launcher.reconciler.ProcessProbe.is_launcher", return_value=True):
            resp = client.get("/api/active-sessions")
        assert resp.json() == [
            {"id": "s1", "cwd": "/home/me/proj", "display_label": "[proj] Fix bug", "pid": 100, "copilot_pid": 7}
        ]
        snapshot = json.loads((api_home / "active-sessions.json").read_text(encoding="utf-8"))
        assert snapshot[0]["id"] == "s1"

    def test_falls_back_to_snapshot_when_lock_busy(self, client, api_home):
        (api_home / "active-sessions.json").write_text(
            json.dumps([{"id": "cached", "cwd": "/c", "display_label": "[c]", "pid": 1, "copilot_pid": 0}]),
            encoding="utf-8",
        )
        coordinator = MagicMock()
        coordinator.refresh.return_value = None
        launcher_api.set_coordinator(coordinator)
        resp = client.get("/api/active-sessions")
        assert [s["id"] for s in resp.json()] == ["cached"]

    def test_uses_installed_coordinator(self, client):
        coordinator = MagicMock()
        coordinator.refresh.return_value = [ActiveSession(id="x", cwd="/x", display_label="[x]", pid=5)]
        launcher_api.set_coordinator(coordinator)
        assert client.get("/api/active-sessions").json()[0]["pid"] == 5


# ---------------------------------------------------------------------------
# /api/named-sessions
# ---------------------------------------------------------------------------


class TestNamedSessions:
    def test_lists_named_only(self, client, make_workspace):
        make_workspace("a", cwd="/p/alpha", summary="Alpha work", mtime=2_000_000)
        make_workspace("b", cwd="/p/beta", mtime=3_000_000)
        data = client.get("/api/named-sessions").json()
        assert len(data) == 1
        assert data[0]["id"] == "a"
        assert data[0]["display_label"] == "[alpha] Alpha work"
        assert data[0]["folder"] == "alpha"

    def test_limit_parameter(self, client, make_workspace):
        for i in range(3):
            make_workspace(f"s{i}", cwd="/p", summary="x", mtime=1_000_000 + i)
        data = client.get("/api/named-sessions?limit=1").json()
        assert [s["id"] for s in data] == ["s2"]


# ---------------------------------------------------------------------------
# /api/terminals and /api/focus
# ---------------------------------------------------------------------------


class TestTerminals:
    def test_lists_live_terminals(self, client, api_home):
        (api_home / "terminal-cache.json").write_text(
            json.dumps({"b": {"copilotPid": 20}, "a": {"copilotPid": 10}, "dead": {"copilotPid": 30}}),
            encoding="utf-8",
        )
        with _alive({10, 20}):
            data = client.get("/api/terminals").json()
        assert data == [{"session_id": "a", "pid": 10}, {"session_id": "b", "pid": 20}]

    def test_empty(self, client):
        assert client.get("/api/terminals").json() == []


class TestFocus:
    def test_unknown_session_404(self, client):
        resp = client.post("/api/focus/nope")
        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_focuses_cached_terminal(self, client, api_home):
        (api_home / "terminal-cache.json").write_text(
            json.dumps({"s1": {"copilotPid": 10}}), encoding="utf-8"
        )
        with (
            _alive({10}),
            patch(
                "copilot_launcher.launcher_api.focus_process_window",
                return_value=(True, "Focused: pwsh"),
            ) as focus,
        ):
            resp = client.post("/api/focus/s1")
        focus.assert_called_once_with(10)
        assert resp.json() == {"success": True, "message": "Focused: pwsh"}


# ---------------------------------------------------------------------------
# /api/server-info and OpenAPI
# ---------------------------------------------------------------------------


class TestServerInfo:
    def test_reports_pid_port_and_version(self, client):
        data = client.get("/api/server-info", headers={"host": "localhost:5999"}).json()
        assert data["port"] == "5999"
        assert data["pid"] > 0
        assert data["version"] == launcher_api.__version__
        assert data["is_updater"] is False

    def test_reports_updater_role(self, client):
        coordinator = MagicMock()
        coordinator.is_leader = True
        launcher_api.set_coordinator(coordinator)
        assert client.get("/api/server-info").json()["is_updater"] is True


def test_openapi_lists_all_routes(client):
    paths = client.get("/openapi.json").json()["paths"]
    assert set(paths) == {
        "/api/active-sessions",
        "/api/named-sessions",
        "/api/terminals",
        "/api/focus/{session_id}",
        "/api/server-info",
    }
