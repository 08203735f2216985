"""The reports the service knows how to build."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Optional, Tuple

from filename_utils import build_report_filename
from report_data import ReportDataProvider
from report_markup import (
    customer_list_header,
    render_customer_table,
    render_transaction_group,
    transactions_header,
)
from report_models import ReportRecordGroup


@dataclass(frozen=True)
class LoadedReport:
    """Everything a generation needs, captured at load time."""

    header: str
    groups: Tuple[ReportRecordGroup, ...]
    record_count: int
    scope: Optional[str] = None
    notice: Optional[str] = None


class ReportDefinition(ABC):
    kind = ""
    title = ""
    filename_prefix = ""
    load_failure_message = "Failed to load report data"
    uses_scope = False

    @abstractmethod
    def load(self, provider: ReportDataProvider, scope: Optional[str] = None, today: Optional[date] = None) -> LoadedReport:
        """Fetch the report's data and build its header and record groups."""

    def render_group(self, group: ReportRecordGroup) -> str:
        return render_transaction_group(group)

    def filename(self, scope: Optional[str] = None, now: Optional[datetime] = None) -> str:
        return build_report_filename(self.filename_prefix, scope, include_scope=self.uses_scope, now=now)


class CustomerListReport(ReportDefinition):
    kind = "customer-list"
    title = "Customer List Report"
    filename_prefix = "customer-list"
    load_failure_message = "Failed to load customer data"

    def load(self, provider, scope=None, today=None):
        customers = provider.fetch_customer_list()
        # The customer table is part of the header: there are no record
        # groups, so the whole report is captured in one pass.
        header = customer_list_header(today) + render_customer_table(customers)
        notice = None if customers else "No customers to display."
        return LoadedReport(header=header, groups=(), record_count=len(customers), notice=notice)


class CustomerTransactionsReport(ReportDefinition):
    kind = "customer-transactions"
    title = "Customer Transactions Report"
    filename_prefix = "customer-transactions"
    load_failure_message = "Failed to load transaction data"
    uses_scope = True

    def load(self, provider, scope=None, today=None):
        scope = (scope or "").strip() or None
        groups = tuple(provider.fetch_transactions(scope))
        notice = None
        if not groups:
            notice = f"No transactions found for customer ID: {scope}" if scope else "No transactions available"
        return LoadedReport(
            header=transactions_header(scope, today),
            groups=groups,
            record_count=len(groups),
            scope=scope,
            notice=notice,
        )


REPORT_DEFINITIONS: Dict[str, ReportDefinition] = {
    definition.kind: definition
    for definition in (CustomerListReport(), CustomerTransactionsReport())
}


def get_report_definition(kind: str) -> Optional[ReportDefinition]:
    return REPORT_DEFINITIONS.get((kind or "").strip().lower())


__all__ = [
    "CustomerListReport",
    "CustomerTransactionsReport",
    "LoadedReport",
    "REPORT_DEFINITIONS",
    "ReportDefinition",
    "get_report_definition",
]
