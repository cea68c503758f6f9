"""Web API — read-only access to tracked sessions.

Routes:
  GET /api/sessions?project=&since=&until=   -> sessions, oldest first
  GET /api/sessions/last                     -> most recently started session
  GET /api/session/{session_id}              -> single session detail
  GET /api/projects                          -> distinct project names
  GET /api/projects/{project}/tags           -> distinct tags for a project
  GET /api/report?format=&project=&since=&until=
                                             -> time report as JSON or Markdown

All API errors return consistent JSON: {"error": "message", "code": "ERROR_CODE"}
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

# Ensure the flow package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from flow import config, export
from flow.errors import ErrorCode, FlowError
from flow.models import SessionsFilters, TimeRange
from flow.store import open_store

logger = logging.getLogger(__name__)

app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

_STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.SESSION_ALREADY_STARTED: 409,
    ErrorCode.NO_ACTIVE_SESSION: 409,
    ErrorCode.INVALID_FILENAME: 500,
    ErrorCode.READ_ERROR: 500,
    ErrorCode.WRITE_ERROR: 500,
    ErrorCode.STORAGE_UNAVAILABLE: 503,
}


# ---------------------------------------------------------------------------
# Error response helper
# ---------------------------------------------------------------------------


def _error_response(message: str, code: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message, "code": code}, status_code=status_code)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(FlowError)
async def flow_error_handler(request: Request, exc: FlowError):
    status_code = _STATUS_BY_CODE.get(exc.code, 500)
    if status_code >= 500:
        logger.error("Store error on %s: %s", request.url.path, exc)
    return _error_response(exc.message, exc.code, status_code)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning("ValueError on %s: %s", request.url.path, exc)
    return _error_response("Invalid request", "VALIDATION_ERROR", 400)


@app.exception_handler(Exception)
async def generic_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=True)
    return _error_response("Internal server error", "INTERNAL_ERROR", 500)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_when(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _filters(project: str | None, since: str | None, until: str | None) -> SessionsFilters:
    return SessionsFilters(
        project=project or None,
        time_range=TimeRange(since=_parse_when(since), until=_parse_when(until)),
    )


def _store():
    # Read-only API: never create config.json on a GET.
    return open_store(config.read_settings())


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/api/sessions")
def api_sessions(
    project: str | None = Query(None),
    since: str | None = Query(None),
    until: str | None = Query(None),
):
    sessions = _store().find_all(_filters(project, since, until))
    return JSONResponse([export.export_session_json(s) for s in sessions])


@app.get("/api/sessions/last")
def api_last_session():
    session = _store().find_last()
    if not session:
        return _error_response("No sessions recorded", "NOT_FOUND", 404)
    return JSONResponse(export.export_session_json(session))


@app.get("/api/session/{session_id}")
def api_session_detail(session_id: str):
    session = _store().find_by_id(session_id)
    if not session:
        return _error_response("Session not found", "NOT_FOUND", 404)
    return JSONResponse(export.export_session_json(session))


@app.get("/api/projects")
def api_projects():
    return JSONResponse(_store().find_all_projects())


@app.get("/api/projects/{project}/tags")
def api_project_tags(project: str):
    return JSONResponse(_store().find_all_project_tags(project))


@app.get("/api/report")
def api_report(
    format: str = Query("json", pattern="^(json|markdown)$"),
    project: str | None = Query(None),
    since: str | None = Query(None),
    until: str | None = Query(None),
):
    sessions = _store().find_all(_filters(project, since, until))

    if format == "markdown":
        return PlainTextResponse(
            export.export_report_markdown(sessions),
            media_type="text/markdown; charset=utf-8",
            headers={"Content-Disposition": 'attachment; filename="flow-report.md"'},
        )

    return JSONResponse(export.build_report(sessions))
