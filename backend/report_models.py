"""Data carried through one report generation."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag


@dataclass(frozen=True)
class CustomerRecord:
    custno: str
    custname: str
    address: str
    payterm: str


@dataclass(frozen=True)
class LineItem:
    quantity: int
    description: str
    unit: str
    prodcode: str = ""


@dataclass(frozen=True)
class ReportRecordGroup:
    """One sales transaction and its line items."""

    transno: str
    sales_date: Optional[date]
    date_label: str
    custno: str
    customer_name: str
    employee_name: str
    line_items: Tuple[LineItem, ...] = ()


@dataclass(frozen=True)
class RasterImage:
    width: int
    height: int
    data: bytes
    image_format: str = "JPEG"
    scale: float = 1.0

    @property
    def aspect(self) -> float:
        """Height per unit of width."""
        return self.height / self.width


@dataclass(frozen=True)
class ImagePlacement:
    """Where an image was drawn on a page; the bitmap itself lives in the PDF."""

    x: float
    y: float
    width: float
    height: float


@dataclass
class OutputPage:
    placements: List[ImagePlacement] = field(default_factory=list)


@dataclass
class OutputDocument:
    """Append-only sequence of pages, sized in millimetres."""

    page_width: float
    page_height: float
    page_name: str = "A4"
    pages: List[OutputPage] = field(default_factory=list)
    sections: List[int] = field(default_factory=list)
    finalized: bool = False
    # Live fpdf2 writer; images are drawn into it as they are appended.
    pdf: Any = field(default=None, repr=False, compare=False)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def new_page(self) -> OutputPage:
        page = OutputPage()
        self.pages.append(page)
        return page


class RenderNode:
    """Detached container holding a report header and record blocks.

    The container is a standalone HTML document whose ``div#report-root``
    element is what gets rasterized.  Nothing in here is attached to a live
    browser page; the rasterizer loads :meth:`to_html` into a fresh one.
    """

    ROOT_ID = "report-root"

    def __init__(self, soup: BeautifulSoup) -> None:
        self.soup = soup

    @classmethod
    def from_fragments(
        cls,
        header_html: str,
        blocks: Iterable[str] = (),
        *,
        width_px: int = 794,
    ) -> "RenderNode":
        soup = BeautifulSoup(
            "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head>"
            "<body style=\"margin:0;padding:0;background:#ffffff;\"></body></html>",
            "html.parser",
        )
        root = soup.new_tag("div", id=cls.ROOT_ID)
        root["style"] = (
            f"width:{width_px}px;padding:20px;box-sizing:border-box;"
            "background-color:#ffffff;color:#111111;"
            "font-family:Arial, Helvetica, sans-serif;font-size:14px;"
        )
        soup.body.append(root)

        node = cls(soup)
        node.append_fragment(header_html)
        for block in blocks:
            node.append_spacer()
            node.append_fragment(block)
        return node

    @property
    def root(self) -> Tag:
        root = self.soup.find(id=self.ROOT_ID)
        if root is None:
            raise ValueError("render node has no report root")
        return root

    def append_spacer(self, height_px: int = 20) -> Tag:
        spacer = self.soup.new_tag("div")
        spacer["class"] = ["report-spacer"]
        spacer["style"] = f"height:{height_px}px;"
        self.root.append(spacer)
        return spacer

    def append_fragment(self, fragment_html: str) -> List[Tag]:
        """Parse *fragment_html* and move its top-level elements into the root."""
        fragment = BeautifulSoup(fragment_html or "", "html.parser")
        appended = []
        for child in list(fragment.contents):
            if isinstance(child, Tag):
                appended.append(child)
            self.root.append(child.extract())
        return appended

    def iter_elements(self) -> Iterable[Tag]:
        yield self.root
        yield from self.root.find_all(True)

    def to_html(self) -> str:
        return str(self.soup)


__all__ = [
    "CustomerRecord",
    "ImagePlacement",
    "LineItem",
    "OutputDocument",
    "OutputPage",
    "RasterImage",
    "RenderNode",
    "ReportRecordGroup",
]
