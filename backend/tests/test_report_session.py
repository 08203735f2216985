"""Tests for the per-report load/generate state machine."""

from __future__ import annotations

import io
import sys
import threading
from pathlib import Path

import httpx
from pypdf import PdfReader

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from conftest import FakeConnection, FakeRasterizer, make_sales_row  # noqa: E402  pylint: disable=wrong-import-position
from report_data import ReportDataProvider  # noqa: E402  pylint: disable=wrong-import-position
from report_definitions import CustomerListReport, CustomerTransactionsReport  # noqa: E402  pylint: disable=wrong-import-position
from report_session import ReportSession, ReportState  # noqa: E402  pylint: disable=wrong-import-position
from report_settings import ReportSettings  # noqa: E402  pylint: disable=wrong-import-position


def _session(client, definition=None, rasterizer=None):
    rasterizer = rasterizer or FakeRasterizer()
    session = ReportSession(
        definition or CustomerTransactionsReport(),
        ReportDataProvider(client),
        ReportSettings(),
        lambda: rasterizer,
        session_id="session-1234",
    )
    return session, rasterizer


def test_load_then_generate(sales_rows) -> None:
    session, rasterizer = _session(FakeConnection({"sales": sales_rows}))
    assert session.state == ReportState.IDLE

    loaded = session.load("C0001")
    assert loaded.ok
    assert loaded.state == ReportState.READY
    assert loaded.record_count == 4

    outcome = session.generate()

    assert outcome.ok
    assert outcome.state == ReportState.DONE
    assert outcome.message == "PDF generated successfully"
    report = outcome.report
    assert report.filename.startswith("customer-transactions-C0001-")
    assert report.filename.endswith(".pdf")
    assert len(PdfReader(io.BytesIO(report.content)).pages) == report.page_count
    assert rasterizer.entered == rasterizer.exited == 1


def test_generate_before_load_is_rejected() -> None:
    session, rasterizer = _session(FakeConnection())

    outcome = session.generate()

    assert not outcome.ok
    assert outcome.error_kind == "not_ready"
    assert outcome.message == "Report is not ready for printing. Load the data first."
    assert session.state == ReportState.IDLE
    assert rasterizer.nodes == []


def test_load_failure_clears_previous_data(sales_rows) -> None:
    client = FakeConnection({"sales": sales_rows})
    session, _ = _session(client)
    assert session.load().ok

    client.error = httpx.ConnectError("connection reset")
    outcome = session.load()

    assert not outcome.ok
    assert outcome.state == ReportState.FAILED
    assert outcome.message == "Failed to load transaction data"
    assert session.loaded is None
    assert session.generate().error_kind == "not_ready"


def test_customer_list_load_failure_message() -> None:
    session, _ = _session(FakeConnection(fail=True), CustomerListReport())

    assert session.load().message == "Failed to load customer data"


def test_empty_scope_reports_a_notice_and_still_prints() -> None:
    session, _ = _session(FakeConnection({"sales": [make_sales_row("T0001", custno="C0001")]}))

    loaded = session.load("C9999")
    assert loaded.ok
    assert loaded.record_count == 0
    assert loaded.message == "No transactions found for customer ID: C9999"

    outcome = session.generate()
    assert outcome.ok
    assert outcome.report.page_count == 1


def test_customer_list_renders_in_a_single_capture(customer_rows) -> None:
    session, rasterizer = _session(FakeConnection({"customer": customer_rows}), CustomerListReport())

    assert session.load().record_count == 3
    outcome = session.generate()

    assert outcome.ok
    assert len(rasterizer.nodes) == 1
    assert len(rasterizer.nodes[0].root.select(".customer-table tbody tr")) == 3
    assert outcome.report.filename.startswith("customer-list-2")


def test_render_failure_is_reported_without_technical_detail(sales_rows) -> None:
    session, _ = _session(FakeConnection({"sales": sales_rows}), rasterizer=FakeRasterizer(fail_on=0))
    session.load()

    outcome = session.generate()

    assert not outcome.ok
    assert outcome.state == ReportState.FAILED
    assert outcome.error_kind == "render"
    assert outcome.message == "Failed to generate PDF. Try narrowing the report to fewer records."
    assert "crashed" not in outcome.message


def test_second_generate_while_rendering_is_rejected(sales_rows) -> None:
    gate = threading.Event()
    started = threading.Event()
    rasterizer = FakeRasterizer(gate=gate, started=started)
    session, _ = _session(FakeConnection({"sales": sales_rows}), rasterizer=rasterizer)
    session.load()

    results = []
    worker = threading.Thread(target=lambda: results.append(session.generate()))
    worker.start()
    assert started.wait(timeout=5)

    busy = session.generate()
    reload = session.load()
    gate.set()
    worker.join(timeout=10)

    assert busy.error_kind == "busy"
    assert busy.message == "A report is already being generated"
    assert reload.error_kind == "busy"
    (first,) = results
    assert first.ok
    assert len(PdfReader(io.BytesIO(first.report.content)).pages) == first.report.page_count
    # Seven records fit one default-tier batch.
    assert len(rasterizer.nodes) == 1


def test_sessions_are_independent(sales_rows) -> None:
    client = FakeConnection({"sales": sales_rows})
    first, _ = _session(client)
    second, _ = _session(client)

    first.load()

    assert first.state == ReportState.READY
    assert second.state == ReportState.IDLE
    assert second.generate().error_kind == "not_ready"


def test_generating_again_requires_a_reload(sales_rows) -> None:
    session, rasterizer = _session(FakeConnection({"sales": sales_rows}))
    session.load()

    assert session.generate().ok
    assert session.generate().error_kind == "not_ready"
    assert session.state == ReportState.DONE

    assert session.load().ok
    assert session.generate().ok
    assert rasterizer.entered == 2
