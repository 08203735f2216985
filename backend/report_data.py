"""Report datasets fetched from the hosted backend.

Rows are normalized into immutable records with display placeholders for
missing values, so nothing downstream has to care about ``None``.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from backend_client import BackendConnection, fetch_rows
from report_errors import BackendQueryError, DataFetchError
from report_models import CustomerRecord, LineItem, ReportRecordGroup


logger = logging.getLogger(__name__)

PLACEHOLDER = "N/A"

TRANSACTION_COLUMNS = "".join("""
    transno,
    salesdate,
    custno,
    customer:customer(custname),
    empno,
    employee:employee(firstname,lastname),
    salesdetails:salesdetail(quantity,prodcode,product:product(description,unit))
""".split())


def _text(value: Any, placeholder: str = PLACEHOLDER) -> str:
    if value is None:
        return placeholder
    text = str(value).strip()
    return text if text else placeholder


def parse_report_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    candidate = str(value).strip()
    try:
        return datetime.fromisoformat(candidate.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(candidate[:10])
    except ValueError:
        return None


def format_report_date(value: Any, placeholder: str = PLACEHOLDER) -> str:
    """Render a date as ``October 18, 2026``; unparseable input is echoed back."""
    if value is None or value == "":
        return placeholder
    parsed = parse_report_date(value)
    if parsed is None:
        return str(value)
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def _nested(row: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = row.get(key)
    # Expanded to-one relations sometimes come back as a single-element list.
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, dict) else {}


def _quantity(value: Any, transno: str) -> int:
    if value is None:
        return 0
    try:
        quantity = int(value)
    except (TypeError, ValueError) as exc:
        raise DataFetchError(f"Invalid quantity {value!r} in transaction {transno}", exc) from exc
    if quantity < 0:
        raise DataFetchError(f"Negative quantity {quantity} in transaction {transno}")
    return quantity


class ReportDataProvider:
    def __init__(
        self,
        connection: BackendConnection,
        access_token: Optional[str] = None,
        placeholder: str = PLACEHOLDER,
    ) -> None:
        self.connection = connection
        self.access_token = access_token
        self.placeholder = placeholder

    def fetch_customer_list(self) -> List[CustomerRecord]:
        try:
            query = self.connection.client(self.access_token).table("customer").select("*").order("custno")
            rows = fetch_rows(query, "customer")
        except BackendQueryError as exc:
            logger.error("Error fetching customer list: %s", exc)
            raise DataFetchError("Failed to fetch customer list", exc) from exc

        customers = []
        for row in rows:
            if not isinstance(row, dict) or not row.get("custno"):
                raise DataFetchError(f"Malformed customer row: {row!r}")
            customers.append(
                CustomerRecord(
                    custno=str(row["custno"]),
                    custname=_text(row.get("custname"), self.placeholder),
                    address=_text(row.get("address"), self.placeholder),
                    payterm=_text(row.get("payterm"), self.placeholder),
                )
            )
        logger.info("Fetched %d customer(s) for report", len(customers))
        return customers

    def fetch_transactions(self, customer_id: Optional[str] = None) -> List[ReportRecordGroup]:
        customer_id = (customer_id or "").strip() or None
        try:
            query = (
                self.connection.client(self.access_token)
                .table("sales")
                .select(TRANSACTION_COLUMNS)
                .order("salesdate", desc=True)
                .order("transno")
            )
            if customer_id:
                query = query.eq("custno", customer_id)
            rows = fetch_rows(query, "sales")
        except BackendQueryError as exc:
            logger.error("Error fetching customer transactions (scope=%s): %s", customer_id or "all", exc)
            raise DataFetchError("Failed to fetch customer transactions", exc) from exc

        groups = [self._group_from_row(row) for row in rows]
        logger.info("Fetched %d transaction(s) for scope %s", len(groups), customer_id or "all")
        return groups

    def _group_from_row(self, row: Any) -> ReportRecordGroup:
        if not isinstance(row, dict) or row.get("transno") in (None, ""):
            raise DataFetchError(f"Malformed sales row: {row!r}")
        transno = str(row["transno"])

        customer = _nested(row, "customer")
        employee = _nested(row, "employee")
        if employee:
            employee_name = " ".join(
                part for part in (str(employee.get("firstname") or "").strip(), str(employee.get("lastname") or "").strip()) if part
            ) or self.placeholder
        else:
            employee_name = self.placeholder

        details = row.get("salesdetails") or []
        if not isinstance(details, list):
            raise DataFetchError(f"Malformed line items in transaction {transno}")

        items = []
        for detail in details:
            if not isinstance(detail, dict):
                raise DataFetchError(f"Malformed line item in transaction {transno}: {detail!r}")
            product = _nested(detail, "product")
            items.append(
                LineItem(
                    quantity=_quantity(detail.get("quantity"), transno),
                    description=_text(product.get("description"), self.placeholder),
                    unit=_text(product.get("unit"), self.placeholder),
                    prodcode=_text(detail.get("prodcode"), self.placeholder),
                )
            )

        return ReportRecordGroup(
            transno=transno,
            sales_date=parse_report_date(row.get("salesdate")),
            date_label=format_report_date(row.get("salesdate"), self.placeholder),
            custno=_text(row.get("custno"), self.placeholder),
            customer_name=_text(customer.get("custname"), self.placeholder),
            employee_name=employee_name,
            line_items=tuple(items),
        )


__all__ = [
    "PLACEHOLDER",
    "ReportDataProvider",
    "format_report_date",
    "parse_report_date",
]
