"""Shared fixtures: an in-memory backend and a browser-free rasterizer."""

from __future__ import annotations

import io
import sys
import threading
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import pytest
from PIL import Image

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from postgrest.exceptions import APIError  # noqa: E402  pylint: disable=wrong-import-position

from backend_client import BackendConnection  # noqa: E402  pylint: disable=wrong-import-position
from report_errors import RenderCaptureError  # noqa: E402  pylint: disable=wrong-import-position
from report_models import RasterImage  # noqa: E402  pylint: disable=wrong-import-position


class FakeQuery:
    """Query builder shaped like the Supabase one; records every call."""

    def __init__(self, connection: "FakeConnection", table: str) -> None:
        self.connection = connection
        self.table = table
        self.columns: Optional[str] = None
        self.orders: List[Tuple[str, bool]] = []
        self.filters: List[Tuple[str, Any]] = []

    def select(self, columns: str = "*") -> "FakeQuery":
        self.columns = columns
        return self

    def order(self, column: str, *, desc: bool = False) -> "FakeQuery":
        self.orders.append((column, desc))
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append((column, value))
        return self

    def execute(self):
        self.connection.queries.append(self)
        if self.connection.error is not None:
            raise self.connection.error
        rows = list(self.connection.tables.get(self.table, []))
        for column, value in self.filters:
            rows = [row for row in rows if str(row.get(column)) == str(value)]
        return SimpleNamespace(data=rows, count=None)


class FakeClient:
    def __init__(self, connection: "FakeConnection") -> None:
        self.connection = connection

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.connection, name)


class FakeConnection(BackendConnection):
    """Answers queries from canned rows per table and records each query."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None, fail: bool = False) -> None:
        super().__init__("https://backend.example", "anon-key")
        self.tables = tables or {}
        self.error: Optional[Exception] = (
            APIError({"message": "permission denied for table", "code": "42501"}) if fail else None
        )
        self.queries: List[FakeQuery] = []
        self.tokens: List[Optional[str]] = []

    def client(self, access_token=None):
        self.tokens.append(access_token)
        return FakeClient(self)


class FakeRasterizer:
    """Draws a blank bitmap whose height grows with the records in the node.

    Every ``.transaction-item`` adds ``block_px`` CSS pixels on top of
    ``base_px``; the bitmap is multiplied by the capture scale like a real
    device scale factor would.
    """

    def __init__(self, *, width_px: int = 794, base_px: int = 200, block_px: int = 300,
                 fail_on: Optional[int] = None, gate: Optional[threading.Event] = None,
                 started: Optional[threading.Event] = None) -> None:
        self.width_px = width_px
        self.base_px = base_px
        self.block_px = block_px
        self.fail_on = fail_on
        self.gate = gate
        self.started = started
        self.nodes = []
        self.scales: List[float] = []
        self.entered = 0
        self.exited = 0

    def __enter__(self):
        self.entered += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        self.exited += 1

    def rasterize(self, node, scale):
        call = len(self.nodes)
        self.nodes.append(node)
        self.scales.append(scale)
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail_on is not None and call == self.fail_on:
            raise RenderCaptureError("renderer crashed")

        blocks = len(node.root.select(".transaction-item"))
        width = int(self.width_px * scale)
        height = int((self.base_px + self.block_px * blocks) * scale)
        buffer = io.BytesIO()
        Image.new("RGB", (width, height), "white").save(buffer, format="JPEG")
        return RasterImage(width=width, height=height, data=buffer.getvalue(), image_format="JPEG", scale=scale)


def make_sales_row(transno: str, custno: str = "C0001", items: int = 1, **overrides) -> Dict[str, Any]:
    row = {
        "transno": transno,
        "salesdate": "2026-10-18",
        "custno": custno,
        "customer": {"custname": "Acme Trading"},
        "empno": "E001",
        "employee": {"firstname": "Dana", "lastname": "Reyes"},
        "salesdetails": [
            {"quantity": n + 1, "prodcode": f"P{n:03d}", "product": {"description": f"Widget {n}", "unit": "pc"}}
            for n in range(items)
        ],
    }
    row.update(overrides)
    return row


@pytest.fixture
def fake_rasterizer():
    return FakeRasterizer()


@pytest.fixture
def sales_rows():
    return [make_sales_row(f"T{n:04d}", custno="C0001" if n % 2 else "C0002") for n in range(1, 8)]


@pytest.fixture
def customer_rows():
    return [
        {"custno": "C0001", "custname": "Acme Trading", "address": "12 Harbor Rd", "payterm": "30D"},
        {"custno": "C0002", "custname": "Bluefin Supply", "address": None, "payterm": "COD"},
        {"custno": "C0003", "custname": "Cedar & Co", "address": "9 Pine St", "payterm": ""},
    ]
