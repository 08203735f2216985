"""Tests for fetching and normalizing report datasets."""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from backend_client import BackendConnection  # noqa: E402  pylint: disable=wrong-import-position
from conftest import FakeConnection, make_sales_row  # noqa: E402  pylint: disable=wrong-import-position
from report_data import ReportDataProvider, format_report_date  # noqa: E402  pylint: disable=wrong-import-position
from report_errors import BackendQueryError, DataFetchError  # noqa: E402  pylint: disable=wrong-import-position


def test_customer_list_is_ordered_and_placeholders_fill_gaps(customer_rows) -> None:
    client = FakeConnection({"customer": customer_rows})

    customers = ReportDataProvider(client).fetch_customer_list()

    assert [c.custno for c in customers] == ["C0001", "C0002", "C0003"]
    assert customers[1].address == "N/A"
    assert customers[2].payterm == "N/A"
    query = client.queries[0]
    assert (query.table, query.columns, query.orders) == ("customer", "*", [("custno", False)])


def test_transactions_query_expands_relations_and_sorts_newest_first(sales_rows) -> None:
    client = FakeConnection({"sales": sales_rows})

    ReportDataProvider(client).fetch_transactions()

    query = client.queries[0]
    assert query.table == "sales"
    assert query.orders == [("salesdate", True), ("transno", False)]
    assert "customer:customer(custname)" in query.columns
    assert "salesdetails:salesdetail(quantity,prodcode,product:product(description,unit))" in query.columns
    assert " " not in query.columns
    assert query.filters == []


def test_transactions_can_be_scoped_to_one_customer(sales_rows) -> None:
    client = FakeConnection({"sales": sales_rows})

    groups = ReportDataProvider(client).fetch_transactions("  C0002 ")

    assert groups
    assert {g.custno for g in groups} == {"C0002"}
    assert client.queries[0].filters == [("custno", "C0002")]


def test_group_fields_are_flattened() -> None:
    client = FakeConnection({"sales": [make_sales_row("T0001", items=2)]})

    (group,) = ReportDataProvider(client).fetch_transactions()

    assert group.transno == "T0001"
    assert group.sales_date == date(2026, 10, 18)
    assert group.date_label == "October 18, 2026"
    assert group.customer_name == "Acme Trading"
    assert group.employee_name == "Dana Reyes"
    assert [(i.prodcode, i.description, i.quantity, i.unit) for i in group.line_items] == [
        ("P000", "Widget 0", 1, "pc"),
        ("P001", "Widget 1", 2, "pc"),
    ]


def test_missing_relations_become_placeholders() -> None:
    row = make_sales_row("T0009", salesdate=None, customer=None, employee=[], salesdetails=[])
    client = FakeConnection({"sales": [row]})

    (group,) = ReportDataProvider(client).fetch_transactions()

    assert group.date_label == "N/A"
    assert group.sales_date is None
    assert group.customer_name == "N/A"
    assert group.employee_name == "N/A"
    assert group.line_items == ()


def test_fetching_twice_returns_the_same_records(sales_rows) -> None:
    provider = ReportDataProvider(FakeConnection({"sales": sales_rows}))

    assert provider.fetch_transactions() == provider.fetch_transactions()


def test_backend_failure_raises_data_fetch_error_with_cause() -> None:
    provider = ReportDataProvider(FakeConnection(fail=True))

    with pytest.raises(DataFetchError) as excinfo:
        provider.fetch_transactions()
    assert isinstance(excinfo.value.cause, BackendQueryError)

    with pytest.raises(DataFetchError):
        provider.fetch_customer_list()


def test_provider_forwards_the_caller_token(customer_rows) -> None:
    client = FakeConnection({"customer": customer_rows})

    ReportDataProvider(client, access_token="user-jwt").fetch_customer_list()

    assert client.tokens == ["user-jwt"]


def test_unconfigured_backend_is_a_fetch_failure() -> None:
    provider = ReportDataProvider(BackendConnection("", ""))

    with pytest.raises(DataFetchError) as excinfo:
        provider.fetch_transactions()
    assert isinstance(excinfo.value.cause, BackendQueryError)

def test_malformed_quantity_fails_the_whole_fetch() -> None:
    row = make_sales_row("T0001")
    row["salesdetails"][0]["quantity"] = "lots"
    provider = ReportDataProvider(FakeConnection({"sales": [row]}))

    with pytest.raises(DataFetchError):
        provider.fetch_transactions()


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2026-01-05", "January 5, 2026"),
        ("2026-10-18T19:16:00Z", "October 18, 2026"),
        (None, "N/A"),
        ("", "N/A"),
    ],
)
def test_format_report_date(value, expected) -> None:
    assert format_report_date(value) == expected
