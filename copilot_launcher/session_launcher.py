"""
Copilot Launcher - CLI entry point.
Provides start, active, named, terminals, open-ide, and serve subcommands.
"""

import argparse
import logging
import os
import sys

from .__version__ import __version__
from .constants import DEFAULT_PORT, LOCALHOST, LOG_FILE, MAX_NAMED_SESSIONS, SESSION_STATE_DIR
from .coordinator import UpdateCoordinator, read_snapshot
from .launcher import LauncherSession, open_in_ide
from .reconciler import LivenessReconciler
from .registry import SessionRegistry
from .settings import LauncherSettings
from .terminal_cache import TerminalHandleCache
from .workspace import list_named_sessions, parse_workspace, workspace_path

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(message)s"


def configure_logging(verbose: bool = False, log_file: str = LOG_FILE) -> None:
    """Log everything to the launcher log file; only warnings to stderr unless verbose."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    stderr = logging.StreamHandler(sys.stderr)
    stderr.setLevel(logging.DEBUG if verbose else logging.WARNING)
    stderr.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root.addHandler(stderr)

    try:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        logger.warning("Cannot write log file %s: %s", log_file, e)
        return
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)


def _default_coordinator() -> UpdateCoordinator:
    return UpdateCoordinator(LivenessReconciler(SessionRegistry()), SESSION_STATE_DIR)


def _resume_work_dir(session_id: str) -> str | None:
    """Working directory recorded for ``session_id``, if it still exists."""
    descriptor = parse_workspace(workspace_path(SESSION_STATE_DIR, session_id))
    if descriptor and os.path.isdir(descriptor.cwd):
        return descriptor.cwd
    return None


def cmd_start(args):
    """Launch Copilot in a new terminal and track it until the terminal closes."""
    settings = LauncherSettings.load()
    work_dir = args.work_dir or (args.resume and _resume_work_dir(args.resume)) or None
    work_dir = settings.resolve_work_dir(work_dir)

    session = LauncherSession(work_dir, args.resume, settings=settings)
    if not session.run():
        if session.refocused:
            print(f"Session {args.resume} is already open; focused its terminal.")
        return 0

    descriptor = session.describe()
    label = descriptor.display_label if descriptor else session.session_id or "(new session)"
    print(f"Copilot running in {work_dir}: {label}")
    try:
        session.wait()
    except KeyboardInterrupt:
        session.teardown()
    return 0


def cmd_active(_args):
    """Reconcile the registry and print the live sessions."""
    sessions = _default_coordinator().refresh()
    if sessions is None:
        sessions = read_snapshot()
    if not sessions:
        print("No active sessions.")
        return 0
    for s in sessions:
        print(f"{s.display_label}  (launcher PID {s.pid}, session {s.id})")
    return 0


def cmd_named(args):
    """Print sessions that can be resumed by name."""
    sessions = list_named_sessions(SESSION_STATE_DIR, args.limit)
    if not sessions:
        print("No named sessions found.")
        return 0
    for i, s in enumerate(sessions, 1):
        print(f"{i:>3}. {s.display_label}  ({s.id})")
    return 0


def cmd_terminals(_args):
    """Print sessions whose terminal window is still open."""
    cache = TerminalHandleCache()
    live = sorted(cache.list_live_session_ids())
    if not live:
        print("No open terminals.")
        return 0
    for session_id in live:
        print(f"{session_id}  (PID {cache.get_pid(session_id)})")
    return 0


def cmd_open_ide(args):
    """Open the repository of a session in one of the configured IDEs."""
    settings = LauncherSettings.load()
    if not settings.ides:
        print("No IDEs configured. Add entries to \"ides\" in launcher-settings.json.")
        return 1
    if not 0 <= args.ide < len(settings.ides):
        print("IDE index out of range. Configured IDEs:")
        for i, ide in enumerate(settings.ides):
            print(f"  {i}: {ide}")
        return 1
    success, message = open_in_ide(args.session_id, settings.ides[args.ide], SESSION_STATE_DIR)
    print(message)
    return 0 if success else 1


def cmd_serve(args):
    """Run the local API; keeps the published snapshot fresh if no launcher does."""
    import uvicorn

    from . import launcher_api

    coordinator = _default_coordinator()
    if coordinator.try_become_leader():
        coordinator.start_background_loop()
    launcher_api.set_coordinator(coordinator)
    print(f"Copilot Launcher API v{__version__} on http://{LOCALHOST}:{args.port}")
    try:
        uvicorn.run(launcher_api.app, host=LOCALHOST, port=args.port, log_level="warning")
    finally:
        launcher_api.set_coordinator(None)
        coordinator.shutdown()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="copilot-launcher",
        description="Copilot Launcher - start Copilot CLI sessions and track which are running",
        epilog=(
            "Examples:\n"
            "  copilot-launcher start                   New session in the default directory\n"
            "  copilot-launcher start ~/src/app         New session in ~/src/app\n"
            "  copilot-launcher start --resume <id>     Resume (or refocus) a session\n"
            "  copilot-launcher active                  List running sessions\n"
            "  copilot-launcher named                   List resumable sessions\n"
            "  copilot-launcher serve --port 5112       Local JSON API\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    start_p = sub.add_parser("start", help="Launch Copilot in a new terminal")
    start_p.add_argument("work_dir", nargs="?", help="Working directory for the session")
    start_p.add_argument("--resume", metavar="ID", help="Session id to resume")

    sub.add_parser("active", help="List running sessions")

    named_p = sub.add_parser("named", help="List sessions that have a summary")
    named_p.add_argument(
        "--limit",
        type=int,
        default=MAX_NAMED_SESSIONS,
        help=f"Maximum entries (default: {MAX_NAMED_SESSIONS})",
    )

    sub.add_parser("terminals", help="List sessions with an open terminal")

    ide_p = sub.add_parser("open-ide", help="Open a session's repository in an IDE")
    ide_p.add_argument("session_id")
    ide_p.add_argument("--ide", type=int, default=0, help="Index into the configured IDEs")

    serve_p = sub.add_parser("serve", help="Run the local JSON API")
    serve_p.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port to listen on (default: {DEFAULT_PORT})",
    )
    return parser


def main(argv=None):
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    configure_logging(args.verbose)
    return {
        "start": cmd_start,
        "active": cmd_active,
        "named": cmd_named,
        "terminals": cmd_terminals,
        "open-ide": cmd_open_ide,
        "serve": cmd_serve,
    }[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
