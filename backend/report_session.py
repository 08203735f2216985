"""Per-report-instance state machine.

``idle -> loading -> ready|failed`` and ``ready -> rendering -> done|failed``.
Rendering is only entered from ready; a load failure drops the data.
Each session owns its lock, data and output document, so two report panels
never share mutable state.  Every failure is caught here and turned into a
:class:`ReportOutcome` carrying one non-technical message; the details only
go to the log.
"""
from __future__ import annotations

import io
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, ContextManager, Optional

from pypdf import PdfReader

from batch_orchestrator import BatchOrchestrator, select_batch_policy
from paginator import Paginator
from rasterizer import Rasterizer
from report_data import ReportDataProvider
from report_definitions import LoadedReport, ReportDefinition
from report_errors import DataFetchError, RenderCaptureError, ReportGenerationError
from report_settings import ReportSettings


RasterizerFactory = Callable[[], ContextManager[Rasterizer]]

MSG_BUSY = "A report is already being generated"
MSG_LOADING = "Report data is still loading. Please wait a moment."
MSG_NOT_READY = "Report is not ready for printing. Load the data first."
MSG_SUCCESS = "PDF generated successfully"
MSG_RENDER_FAILED = "Failed to generate PDF. Try narrowing the report to fewer records."
MSG_FAILED = "Failed to generate PDF. Please try again."


class ReportState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    RENDERING = "rendering"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class GeneratedReport:
    filename: str
    content: bytes
    page_count: int
    record_count: int


@dataclass(frozen=True)
class ReportOutcome:
    ok: bool
    state: ReportState
    message: str
    record_count: int = 0
    report: Optional[GeneratedReport] = None
    # busy | not_ready | data | render; None on success.
    error_kind: Optional[str] = None


class ReportSession:
    def __init__(
        self,
        definition: ReportDefinition,
        provider: ReportDataProvider,
        settings: ReportSettings,
        rasterizer_factory: RasterizerFactory,
        *,
        session_id: Optional[str] = None,
        owner: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.definition = definition
        self.provider = provider
        self.settings = settings
        self.rasterizer_factory = rasterizer_factory
        self.session_id = session_id or str(uuid.uuid4())
        # Fingerprint of the access token the session was opened with.
        self.owner = owner
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._state = ReportState.IDLE
        self._loaded: Optional[LoadedReport] = None

    @property
    def state(self) -> ReportState:
        with self._lock:
            return self._state

    @property
    def loaded(self) -> Optional[LoadedReport]:
        with self._lock:
            return self._loaded

    def _reject(self, state: ReportState, message: str, kind: str) -> ReportOutcome:
        self._logger.warning("[%s] %s rejected in state %s", self.session_id, self.definition.kind, state.value)
        return ReportOutcome(False, state, message, error_kind=kind)

    def _finish(self, state: ReportState, loaded: Optional[LoadedReport] = None) -> None:
        with self._lock:
            self._state = state
            self._loaded = loaded

    # Public API ---------------------------------------------------------

    def load(self, scope: Optional[str] = None) -> ReportOutcome:
        with self._lock:
            if self._state in (ReportState.LOADING, ReportState.RENDERING):
                message = MSG_LOADING if self._state == ReportState.LOADING else MSG_BUSY
                return self._reject(self._state, message, "busy")
            self._state = ReportState.LOADING
            # Old data is dropped before the fetch so a failure never leaves
            # stale rows behind.
            self._loaded = None

        started = time.time()
        try:
            loaded = self.definition.load(self.provider, scope)
        except DataFetchError as exc:
            cause = exc.cause or exc
            self._logger.error(
                "[%s] %s load failed: %s (%s)",
                self.session_id,
                self.definition.kind,
                exc,
                cause,
            )
            self._finish(ReportState.FAILED)
            return ReportOutcome(False, ReportState.FAILED, self.definition.load_failure_message, error_kind="data")
        except Exception:
            self._logger.exception("[%s] Unexpected error loading %s", self.session_id, self.definition.kind)
            self._finish(ReportState.FAILED)
            return ReportOutcome(False, ReportState.FAILED, self.definition.load_failure_message, error_kind="data")

        self._finish(ReportState.READY, loaded)
        self._logger.info(
            "[%s] %s loaded %d record(s) in %.2fs",
            self.session_id,
            self.definition.kind,
            loaded.record_count,
            time.time() - started,
        )
        message = loaded.notice or f"Loaded {loaded.record_count} record(s)"
        return ReportOutcome(True, ReportState.READY, message, record_count=loaded.record_count)

    def generate(self) -> ReportOutcome:
        with self._lock:
            if self._state == ReportState.RENDERING:
                return self._reject(self._state, MSG_BUSY, "busy")
            if self._state == ReportState.LOADING:
                return self._reject(self._state, MSG_LOADING, "busy")
            # Each generation consumes one load; Done and Failed need a reload.
            if self._state != ReportState.READY or self._loaded is None:
                return self._reject(self._state, MSG_NOT_READY, "not_ready")
            self._state = ReportState.RENDERING
            loaded = self._loaded

        started = time.time()
        try:
            report = self._render(loaded)
        except ReportGenerationError as exc:
            self._logger.error(
                "[%s] %s generation failed at batch %d: %s: %s",
                self.session_id,
                self.definition.kind,
                exc.batch_index,
                type(exc.cause).__name__,
                exc.cause,
            )
            message = MSG_RENDER_FAILED if isinstance(exc.cause, RenderCaptureError) else MSG_FAILED
            return self._fail(message, "render")
        except RenderCaptureError as exc:
            self._logger.error("[%s] Renderer unavailable: %s", self.session_id, exc)
            return self._fail(MSG_FAILED, "render")
        except Exception:
            self._logger.exception("[%s] Unexpected error generating %s", self.session_id, self.definition.kind)
            return self._fail(MSG_FAILED, "render")

        with self._lock:
            self._state = ReportState.DONE
        self._logger.info(
            "[%s] %s generated %s: %d page(s) in %.2fs",
            self.session_id,
            self.definition.kind,
            report.filename,
            report.page_count,
            time.time() - started,
        )
        return ReportOutcome(True, ReportState.DONE, MSG_SUCCESS, record_count=report.record_count, report=report)

    # Internal helpers ---------------------------------------------------

    def _fail(self, message: str, kind: str) -> ReportOutcome:
        with self._lock:
            self._state = ReportState.FAILED
        return ReportOutcome(False, ReportState.FAILED, message, error_kind=kind)

    def _render(self, loaded: LoadedReport) -> GeneratedReport:
        tier = select_batch_policy(len(loaded.groups), self.settings.batch_tiers)
        paginator = Paginator(self.settings.page)

        with self.rasterizer_factory() as rasterizer:
            orchestrator = BatchOrchestrator(
                rasterizer,
                paginator,
                self.definition.render_group,
                viewport_width=self.settings.viewport_width,
            )
            doc = orchestrator.generate(loaded.groups, loaded.header, tier.batch_size, scale=tier.scale)

        content = paginator.finalize(doc)
        written = len(PdfReader(io.BytesIO(content)).pages)
        if written != doc.page_count:
            raise RuntimeError(f"PDF has {written} page(s), expected {doc.page_count}")

        return GeneratedReport(
            filename=self.definition.filename(loaded.scope),
            content=content,
            page_count=written,
            record_count=loaded.record_count,
        )


__all__ = [
    "GeneratedReport",
    "ReportOutcome",
    "ReportSession",
    "ReportState",
]
