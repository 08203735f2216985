"""Declarative HTML fragments for the two reports.

These builders only describe content.  Print layout is forced later by the
layout normalizer, so the markup stays plain and framework free.
"""
from __future__ import annotations

import html
from datetime import date
from typing import Iterable, Optional, Sequence

from report_models import CustomerRecord, ReportRecordGroup


NO_ITEMS_TEXT = "No items in this transaction"
NO_CUSTOMERS_TEXT = "No customers to display."

CUSTOMER_COLUMNS = ("Customer ID", "Name", "Address", "Payment Terms")
LINE_ITEM_COLUMNS = ("Product Code", "Description", "Quantity", "Unit")


def _escape(s) -> str:
    return html.escape(str(s), quote=True)


def _generated_on(today: Optional[date]) -> str:
    today = today or date.today()
    return f"{today.month}/{today.day}/{today.year}"


def build_report_header(title: str, subtitle: str) -> str:
    return (
        '<div class="report-header" style="text-align:center;margin-bottom:24px;">'
        f'<h2 style="font-size:24px;font-weight:bold;margin:0 0 6px 0;">{_escape(title)}</h2>'
        f'<p style="color:#4b5563;margin:0;">{_escape(subtitle)}</p>'
        "</div>"
    )


def customer_list_header(today: Optional[date] = None) -> str:
    return build_report_header("Customer List Report", f"Generated on {_generated_on(today)}")


def transactions_header(customer_id: Optional[str] = None, today: Optional[date] = None) -> str:
    scope = f"For Customer ID: {customer_id}" if customer_id else "All Customers"
    return build_report_header(
        "Customer Transactions Report",
        f"{scope} - Generated on {_generated_on(today)}",
    )


def _header_row(columns: Iterable[str]) -> str:
    cells = "".join(f'<th style="background-color:#f2f2f2;font-weight:bold;">{_escape(c)}</th>' for c in columns)
    return f"<thead><tr>{cells}</tr></thead>"


def _row(values: Iterable) -> str:
    return "<tr>" + "".join(f"<td>{_escape(v)}</td>" for v in values) + "</tr>"


def _placeholder_row(text: str, colspan: int) -> str:
    return (
        '<tr class="placeholder-row">'
        f'<td colspan="{colspan}" style="text-align:center;">{_escape(text)}</td>'
        "</tr>"
    )


def render_customer_table(customers: Sequence[CustomerRecord]) -> str:
    if customers:
        body = "".join(_row((c.custno, c.custname, c.address, c.payterm)) for c in customers)
    else:
        body = _placeholder_row(NO_CUSTOMERS_TEXT, len(CUSTOMER_COLUMNS))
    return (
        '<table class="customer-table">'
        f"{_header_row(CUSTOMER_COLUMNS)}"
        f"<tbody>{body}</tbody>"
        "</table>"
    )


def render_transaction_group(group: ReportRecordGroup) -> str:
    if group.line_items:
        body = "".join(
            _row((item.prodcode, item.description, item.quantity, item.unit))
            for item in group.line_items
        )
    else:
        body = _placeholder_row(NO_ITEMS_TEXT, len(LINE_ITEM_COLUMNS))

    return (
        f'<div class="transaction-item" id="transaction-{_escape(group.transno)}" '
        'style="border:1px solid #dddddd;padding:15px;">'
        '<div class="transaction-summary" style="margin-bottom:12px;">'
        f"<p>Transaction #: {_escape(group.transno)}</p>"
        f"<p>Date: {_escape(group.date_label)}</p>"
        f"<p>Customer: {_escape(group.customer_name)} ({_escape(group.custno)})</p>"
        f"<p>Employee: {_escape(group.employee_name)}</p>"
        "</div>"
        '<h4 style="margin:0 0 8px 0;">Items:</h4>'
        '<table class="line-items">'
        f"{_header_row(LINE_ITEM_COLUMNS)}"
        f"<tbody>{body}</tbody>"
        "</table>"
        "</div>"
    )


__all__ = [
    "CUSTOMER_COLUMNS",
    "LINE_ITEM_COLUMNS",
    "NO_CUSTOMERS_TEXT",
    "NO_ITEMS_TEXT",
    "build_report_header",
    "customer_list_header",
    "render_customer_table",
    "render_transaction_group",
    "transactions_header",
]
