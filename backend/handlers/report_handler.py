"""Handlers for loading report data and generating report PDFs."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

from report_service import ReportService, SessionAccessError, UnknownReportError
from report_session import ReportOutcome
from request_parser import RequestParser

REPORTS_PREFIX = "/api/reports/"

_SESSION_ID = re.compile(r"[A-Za-z0-9_\-]{8,100}")
_TRUTHY = {"1", "true", "yes", "on"}

# error_kind -> HTTP status
_ERROR_STATUS = {
    "busy": 409,
    "not_ready": 409,
    "data": 502,
    "render": 500,
}


class _ReportRequest:
    def __init__(self, event: Dict[str, Any]) -> None:
        parser = RequestParser(event)
        data = parser.json()

        kind = parser.path_params.get("kind")
        if not kind:
            kind = parser.path_suffix(REPORTS_PREFIX).split("/", 1)[0]
        self.kind = str(kind or "").strip().lower()

        provided_sid = str(
            data.get("session_id")
            or parser.query_params.get("session_id")
            or parser.headers.get("x-session-id")
            or ""
        ).strip()
        self.session_id: Optional[str] = provided_sid if _SESSION_ID.fullmatch(provided_sid) else None

        scope = data.get("scope")
        if scope is None:
            scope = parser.query_params.get("scope")
        self.scope = str(scope).strip() if scope is not None else None

        auto_load = data.get("auto_load", parser.query_params.get("auto_load", False))
        self.auto_load = auto_load if isinstance(auto_load, bool) else str(auto_load).lower() in _TRUTHY
        self.access_token = parser.bearer_token()


class _BaseReportHandler:
    def __init__(self, logger, service: ReportService) -> None:
        self._logger = logger
        self._service = service

    @staticmethod
    def _json_response(payload: Dict[str, Any], status: int = 200) -> Dict[str, Any]:
        return {
            "statusCode": status,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps(payload),
        }

    def _error(self, message: str, status: int, **extra: Any) -> Dict[str, Any]:
        return self._json_response({"error": message, **extra}, status)

    def _failed(self, session_id: str, outcome: ReportOutcome) -> Dict[str, Any]:
        return self._error(
            outcome.message,
            _ERROR_STATUS.get(outcome.error_kind or "", 500),
            session_id=session_id,
            state=outcome.state.value,
        )


class ReportLoadHandler(_BaseReportHandler):
    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        request = _ReportRequest(event)
        try:
            session, outcome = self._service.load(
                request.kind,
                session_id=request.session_id,
                scope=request.scope,
                access_token=request.access_token,
            )
        except UnknownReportError:
            return self._error(f"Unknown report: {request.kind}", 404)
        except SessionAccessError:
            return self._error("This report session belongs to another user", 403)
        except Exception as exc:  # pragma: no cover - defensive
            self._logger.error("Error in handle_report_load: %s", exc)
            return self._error("Failed to load report data", 500)

        if not outcome.ok:
            return self._failed(session.session_id, outcome)

        return self._json_response(
            {
                "session_id": session.session_id,
                "state": outcome.state.value,
                "record_count": outcome.record_count,
                "message": outcome.message,
            }
        )


class ReportGenerateHandler(_BaseReportHandler):
    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        request = _ReportRequest(event)
        try:
            session, outcome, stored = self._service.generate(
                request.kind,
                session_id=request.session_id,
                scope=request.scope,
                access_token=request.access_token,
                auto_load=request.auto_load,
            )
        except UnknownReportError:
            return self._error(f"Unknown report: {request.kind}", 404)
        except SessionAccessError:
            return self._error("This report session belongs to another user", 403)
        except Exception as exc:  # pragma: no cover - defensive
            self._logger.error("Error in handle_report_generate: %s", exc)
            return self._error("Failed to generate PDF. Please try again.", 500)

        if not outcome.ok or outcome.report is None or stored is None:
            return self._failed(session.session_id, outcome)

        return self._json_response(
            {
                "session_id": session.session_id,
                "state": outcome.state.value,
                "message": outcome.message,
                "filename": stored.filename,
                "key": stored.key,
                "download_url": stored.download_url,
                "page_count": outcome.report.page_count,
                "record_count": outcome.report.record_count,
            }
        )


def create_report_load_handler(logger, service: ReportService):
    handler = ReportLoadHandler(logger=logger, service=service)
    return handler.handle


def create_report_generate_handler(logger, service: ReportService):
    handler = ReportGenerateHandler(logger=logger, service=service)
    return handler.handle
