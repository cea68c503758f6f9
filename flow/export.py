"""Export sessions and time reports as JSON or Markdown.

Formatting-only module — no file I/O, no external dependencies.
All functions accept model objects and return dicts or strings.
"""

from __future__ import annotations

from datetime import UTC, datetime

from .models import Session


def session_duration_seconds(session: Session, now: datetime | None = None) -> int:
    """Seconds worked. A running session counts up to ``now``."""
    end = session.end_time
    if end is None:
        end = now or datetime.now(UTC)
    return max(int((end - session.start_time).total_seconds()), 0)


def _format_duration(seconds: int) -> str:
    """Format a number of seconds as '2h 15m' (or '45s' under a minute)."""
    if seconds < 60:
        return f"{seconds}s"
    total_minutes = seconds // 60
    hours, minutes = divmod(total_minutes, 60)
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


def _format_time_short(value: datetime | None) -> str:
    """Format a timestamp as '2026-02-28 10:00'."""
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M")


# ---------------------------------------------------------------------------
# Session export
# ---------------------------------------------------------------------------


def export_session_json(session: Session, now: datetime | None = None) -> dict:
    data = session.to_dict()
    seconds = session_duration_seconds(session, now)
    data["durationSeconds"] = seconds
    data["duration"] = _format_duration(seconds)
    data["active"] = session.is_active
    return data


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


def build_report(sessions: list[Session], now: datetime | None = None) -> dict:
    """Total time per project and, within each project, per tag.

    Projects and tags appear in first-seen order. A session with several
    tags counts fully towards each of them; untagged time is only in the
    project total.
    """
    projects: dict[str, dict] = {}
    total = 0
    for session in sessions:
        seconds = session_duration_seconds(session, now)
        total += seconds
        entry = projects.setdefault(
            session.project, {"seconds": 0, "sessions": 0, "tags": {}}
        )
        entry["seconds"] += seconds
        entry["sessions"] += 1
        for tag in dict.fromkeys(session.tags):
            entry["tags"][tag] = entry["tags"].get(tag, 0) + seconds

    return {
        "total_seconds": total,
        "session_count": len(sessions),
        "projects": [
            {
                "project": name,
                "seconds": entry["seconds"],
                "duration": _format_duration(entry["seconds"]),
                "sessions": entry["sessions"],
                "tags": [
                    {"tag": tag, "seconds": secs, "duration": _format_duration(secs)}
                    for tag, secs in entry["tags"].items()
                ],
            }
            for name, entry in projects.items()
        ],
    }


def export_report_markdown(sessions: list[Session], now: datetime | None = None) -> str:
    report = build_report(sessions, now)
    lines: list[str] = []

    lines.append("# Time report")
    lines.append("")
    lines.append(
        f"**Sessions:** {report['session_count']} — "
        f"**Total:** {_format_duration(report['total_seconds'])}"
    )
    lines.append("")

    for project in report["projects"]:
        lines.append(f"## {project['project']} ({project['duration']})")
        lines.append("")
        for tag in project["tags"]:
            lines.append(f"- #{tag['tag']}: {tag['duration']}")
        if project["tags"]:
            lines.append("")

    if sessions:
        lines.append("## Sessions")
        lines.append("")
        lines.append("| Started | Ended | Project | Tags | Duration |")
        lines.append("|---------|-------|---------|------|----------|")
        for session in sessions:
            ended = _format_time_short(session.end_time) or "*running*"
            tags = ", ".join(session.tags)
            duration = _format_duration(session_duration_seconds(session, now))
            lines.append(
                f"| {_format_time_short(session.start_time)} | {ended} "
                f"| {session.project} | {tags} | {duration} |"
            )
        lines.append("")

    return "\n".join(lines)
