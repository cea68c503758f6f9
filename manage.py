#!/usr/bin/env python3
"""CLI entry point for flow time tracking.

Usage:
    python manage.py <command> [options]

All output is JSON — easy to pipe into other tools and scripts.
Errors are printed as {"error": ..., "code": ...} with exit status 1.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

# Add parent dir to path so `from flow import ...` works
sys.path.insert(0, str(Path(__file__).parent))

from flow import config, export
from flow.errors import FlowError
from flow.lifecycle import SessionLifecycle, StartSessionCommand
from flow.models import InvalidEntryPolicy, SessionsFilters, TimeRange
from flow.store import open_store
from flow.validation import validate_port, validate_positive_int


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(description="Flow time tracker")
    sub = parser.add_subparsers(dest="command")

    # --- Lifecycle commands ---
    p = sub.add_parser("start", help="Start a new session")
    p.add_argument("--project", required=True, help="Project name")
    p.add_argument("--tags", nargs="*", default=[], help="Session tags")

    sub.add_parser("stop", help="Stop the running session")
    sub.add_parser("abort", help="Discard the running session")
    sub.add_parser("status", help="Show the running session")

    # --- Session queries ---
    p = sub.add_parser("list-sessions", help="List sessions, oldest first")
    _add_filter_args(p)
    p.add_argument("--limit", type=int, help="Only the most recent N sessions")

    p = sub.add_parser("get-session", help="Get session details")
    p.add_argument("session_id")

    p = sub.add_parser("delete-session", help="Delete a session")
    p.add_argument("session_id")

    sub.add_parser("projects", help="List every project name")

    p = sub.add_parser("tags", help="List tags used by a project")
    p.add_argument("project")

    # --- Reports ---
    p = sub.add_parser("report", help="Time spent per project and tag")
    _add_filter_args(p)
    p.add_argument("--format", choices=["json", "markdown"], default="json")

    # --- Settings ---
    p = sub.add_parser("settings", help="Show or change settings")
    p.add_argument("--invalid-entry-policy", choices=[policy.value for policy in InvalidEntryPolicy])
    p.add_argument("--web-port", type=int)

    # --- Web server ---
    p = sub.add_parser("serve", help="Start the read-only web API")
    p.add_argument("--port", type=int)
    p.add_argument("--host", default="127.0.0.1")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        result = _dispatch(args)
    except FlowError as e:
        result = {"error": e.message, "code": e.code}
    except ValueError as e:
        result = {"error": str(e), "code": "VALIDATION_ERROR"}

    if isinstance(result, str):
        print(result)
        return
    print(json.dumps(result, indent=2, ensure_ascii=False))
    if isinstance(result, dict) and "error" in result:
        sys.exit(1)


def _add_filter_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--project", help="Filter by project")
    p.add_argument("--since", help="Sessions started after this ISO date/time")
    p.add_argument("--until", help="Sessions started before this ISO date/time")


def _parse_when(value: str | None, field: str) -> datetime | None:
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Invalid {field} timestamp: '{value}'") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _filters_from_args(args: argparse.Namespace) -> SessionsFilters:
    return SessionsFilters(
        project=args.project,
        time_range=TimeRange(
            since=_parse_when(args.since, "since"),
            until=_parse_when(args.until, "until"),
        ),
    )


def _dispatch(args: argparse.Namespace) -> dict | list | str:
    cmd = args.command

    if cmd == "settings":
        return _settings(args)

    store = open_store()
    lifecycle = SessionLifecycle(store)

    if cmd == "start":
        session = lifecycle.start(StartSessionCommand(project=args.project, tags=args.tags))
        return session.to_dict()

    if cmd == "stop":
        session = lifecycle.stop()
        return export.export_session_json(session)

    if cmd == "abort":
        session = lifecycle.abort()
        return {"aborted": session.id, "project": session.project}

    if cmd == "status":
        session = lifecycle.status()
        if session is None:
            return {"active": False}
        return export.export_session_json(session)

    if cmd == "list-sessions":
        sessions = store.find_all(_filters_from_args(args))
        if args.limit is not None:
            validate_positive_int(args.limit, "limit")
            sessions = sessions[-args.limit:]
        return [s.to_dict() for s in sessions]

    if cmd == "get-session":
        session = store.find_by_id(args.session_id)
        return session.to_dict() if session else {"error": "Session not found", "code": "NOT_FOUND"}

    if cmd == "delete-session":
        store.delete(args.session_id)
        return {"deleted": args.session_id}

    if cmd == "projects":
        return store.find_all_projects()

    if cmd == "tags":
        return store.find_all_project_tags(args.project)

    if cmd == "report":
        sessions = store.find_all(_filters_from_args(args))
        if args.format == "markdown":
            return export.export_report_markdown(sessions)
        return export.build_report(sessions)

    if cmd == "serve":
        port = args.port or config.load_settings().web_port
        _serve(args.host, validate_port(port))
        return {}  # never reached — uvicorn runs until interrupted

    return {"error": f"Unknown command: {cmd}"}


def _settings(args: argparse.Namespace) -> dict:
    settings = config.load_settings()
    changed = False
    if args.invalid_entry_policy is not None:
        settings.invalid_entry_policy = InvalidEntryPolicy(args.invalid_entry_policy)
        changed = True
    if args.web_port is not None:
        settings.web_port = validate_port(args.web_port)
        changed = True
    if changed:
        config.save_settings(settings)
    return {
        "invalid_entry_policy": settings.invalid_entry_policy,
        "web_port": settings.web_port,
        "sessions_dir": str(config.SESSIONS_DIR),
    }


def _serve(host: str, port: int) -> None:
    """Start the web API via uvicorn."""
    import uvicorn

    web_dir = Path(__file__).parent / "web"
    sys.path.insert(0, str(web_dir))

    print(f"Flow API: http://{host}:{port}")
    uvicorn.run(
        "app:app",
        host=host,
        port=port,
        log_level="warning",
        app_dir=str(web_dir),
    )


if __name__ == "__main__":
    main()
