"""Tests for the report definitions registry."""

from __future__ import annotations

import sys
from datetime import date, datetime
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from conftest import FakeConnection  # noqa: E402  pylint: disable=wrong-import-position
from report_data import ReportDataProvider  # noqa: E402  pylint: disable=wrong-import-position
from report_definitions import (  # noqa: E402  pylint: disable=wrong-import-position
    CustomerListReport,
    CustomerTransactionsReport,
    ReportDefinition,
    get_report_definition,
)

NOW = datetime(2026, 10, 18, 19, 16, 0)


def test_base_definition_cannot_be_instantiated() -> None:
    with pytest.raises(TypeError):
        ReportDefinition()


def test_definitions_are_looked_up_by_kind() -> None:
    assert isinstance(get_report_definition(" Customer-List "), CustomerListReport)
    assert isinstance(get_report_definition("customer-transactions"), CustomerTransactionsReport)
    assert get_report_definition("invoices") is None
    assert get_report_definition(None) is None


def test_filenames() -> None:
    assert CustomerListReport().filename("C0001", now=NOW) == "customer-list-2026-10-18T19-16-00.pdf"
    assert (
        CustomerTransactionsReport().filename("C0001", now=NOW)
        == "customer-transactions-C0001-2026-10-18T19-16-00.pdf"
    )


def test_empty_customer_list_has_a_notice() -> None:
    provider = ReportDataProvider(FakeConnection({"customer": []}))

    loaded = CustomerListReport().load(provider, today=date(2026, 10, 18))

    assert loaded.record_count == 0
    assert loaded.groups == ()
    assert loaded.notice == "No customers to display."
    assert "Customer List Report" in loaded.header


@pytest.mark.parametrize(
    "scope, notice",
    [("C0404", "No transactions found for customer ID: C0404"), ("  ", "No transactions available")],
)
def test_empty_transactions_have_a_notice(scope, notice) -> None:
    provider = ReportDataProvider(FakeConnection({"sales": []}))

    loaded = CustomerTransactionsReport().load(provider, scope, today=date(2026, 10, 18))

    assert loaded.record_count == 0
    assert loaded.notice == notice
    assert loaded.scope == (scope.strip() or None)
