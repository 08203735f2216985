"""Facade the HTTP handlers talk to.

Keeps one :class:`ReportSession` per (report kind, session id) so each open
report panel has its own state, and stores finished PDFs.
"""
from __future__ import annotations

import hashlib
import threading
import uuid
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from backend_client import BackendConnection
from rasterizer import PlaywrightRasterizer
from report_data import ReportDataProvider
from report_definitions import get_report_definition
from report_session import RasterizerFactory, ReportOutcome, ReportSession, ReportState
from report_settings import ReportSettings
from report_storage import ReportStorage, StoredReport


MAX_SESSIONS = 200


class UnknownReportError(KeyError):
    pass


class SessionAccessError(PermissionError):
    """The session was opened with a different access token."""


def caller_fingerprint(access_token: Optional[str]) -> str:
    return hashlib.sha256((access_token or "").encode("utf-8")).hexdigest()


class ReportService:
    def __init__(
        self,
        logger,
        settings: ReportSettings,
        connection: BackendConnection,
        storage: ReportStorage,
        rasterizer_factory: Optional[RasterizerFactory] = None,
    ) -> None:
        self._logger = logger
        self.settings = settings
        self.connection = connection
        self.storage = storage
        self.rasterizer_factory = rasterizer_factory or self._playwright_rasterizer
        self._sessions: "OrderedDict[Tuple[str, str], ReportSession]" = OrderedDict()
        self._lock = threading.Lock()

    def _playwright_rasterizer(self) -> PlaywrightRasterizer:
        return PlaywrightRasterizer(
            viewport_width=self.settings.viewport_width,
            resource_timeout_ms=self.settings.resource_timeout_ms,
            capture_format=self.settings.capture_format,
            jpeg_quality=self.settings.jpeg_quality,
        )

    def _provider(self, access_token: Optional[str]) -> ReportDataProvider:
        return ReportDataProvider(self.connection, access_token, self.settings.placeholder)

    def session_for(
        self,
        kind: str,
        session_id: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> ReportSession:
        definition = get_report_definition(kind)
        if definition is None:
            raise UnknownReportError(kind)

        session_id = (session_id or "").strip() or str(uuid.uuid4())
        key = (definition.kind, session_id)
        owner = caller_fingerprint(access_token)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = ReportSession(
                    definition,
                    self._provider(access_token),
                    self.settings,
                    self.rasterizer_factory,
                    session_id=session_id,
                    owner=owner,
                    logger=self._logger,
                )
                self._sessions[key] = session
                self._evict()
            elif session.owner != owner:
                self._logger.warning("Session %s requested with a different access token", session_id)
                raise SessionAccessError(session_id)
            else:
                self._sessions.move_to_end(key)
        return session

    def _evict(self) -> None:
        for key in list(self._sessions):
            if len(self._sessions) <= MAX_SESSIONS:
                return
            if self._sessions[key].state not in (ReportState.LOADING, ReportState.RENDERING):
                del self._sessions[key]

    def load(
        self,
        kind: str,
        session_id: Optional[str] = None,
        scope: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> Tuple[ReportSession, ReportOutcome]:
        session = self.session_for(kind, session_id, access_token)
        return session, session.load(scope)

    def generate(
        self,
        kind: str,
        session_id: Optional[str] = None,
        scope: Optional[str] = None,
        access_token: Optional[str] = None,
        auto_load: bool = False,
    ) -> Tuple[ReportSession, ReportOutcome, Optional[StoredReport]]:
        session = self.session_for(kind, session_id, access_token)

        if auto_load and self._needs_load(session, scope):
            outcome = session.load(scope)
            if not outcome.ok:
                return session, outcome, None

        outcome = session.generate()
        if not outcome.ok or outcome.report is None:
            return session, outcome, None

        stored = self.storage.save(session.session_id, outcome.report.filename, outcome.report.content)
        return session, outcome, stored

    @staticmethod
    def _needs_load(session: ReportSession, scope: Optional[str]) -> bool:
        if session.state in (ReportState.LOADING, ReportState.RENDERING):
            return False
        loaded = session.loaded
        if session.state != ReportState.READY or loaded is None:
            return True
        if session.definition.uses_scope:
            return ((scope or "").strip() or None) != loaded.scope
        return False


def create_report_service(logger, settings: ReportSettings, storage: ReportStorage,
                          rasterizer_factory: Optional[Callable] = None) -> ReportService:
    connection = BackendConnection(settings.backend_url, settings.backend_key, timeout=settings.backend_timeout)
    return ReportService(logger, settings, connection, storage, rasterizer_factory)


__all__ = [
    "ReportService",
    "SessionAccessError",
    "UnknownReportError",
    "caller_fingerprint",
    "create_report_service",
]
