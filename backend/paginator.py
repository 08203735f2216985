"""Place captured images onto fixed-size pages and serialize the result.

Images are always scaled to the full page width and drawn into the PDF as
soon as they are appended, so no bitmap outlives its batch.  A tall image is
not cut up; the same bitmap is drawn again on each following page shifted up
by one page height and the page edge does the cropping.
"""
from __future__ import annotations

import io
import logging
import math

from fpdf import FPDF

from report_models import ImagePlacement, OutputDocument, RasterImage
from report_settings import PageFormat


logger = logging.getLogger(__name__)

ONE_PER_PAGE = "onePerPage"
BAND_SLICED = "bandSliced"
MODES = (ONE_PER_PAGE, BAND_SLICED)

# Float slack when comparing heights in millimetres.
_EPSILON = 1e-6


class Paginator:
    def __init__(self, page: PageFormat) -> None:
        self.page = page

    def new_document(self) -> OutputDocument:
        doc = OutputDocument(
            page_width=self.page.width_mm,
            page_height=self.page.height_mm,
            page_name=self.page.name,
        )
        self._writer(doc)
        return doc

    @staticmethod
    def _writer(doc: OutputDocument) -> FPDF:
        if doc.pdf is None:
            pdf = FPDF(orientation="P", unit="mm", format=(doc.page_width, doc.page_height))
            pdf.set_auto_page_break(auto=False)
            pdf.set_margins(0, 0, 0)
            pdf.set_creator("customer-reports")
            doc.pdf = pdf
        return doc.pdf

    @staticmethod
    def scaled_height(doc: OutputDocument, image: RasterImage) -> float:
        return doc.page_width * image.height / image.width

    def mode_for(self, doc: OutputDocument, image: RasterImage) -> str:
        if self.scaled_height(doc, image) <= doc.page_height + _EPSILON:
            return ONE_PER_PAGE
        return BAND_SLICED

    @staticmethod
    def pages_needed(doc: OutputDocument, image: RasterImage) -> int:
        height = Paginator.scaled_height(doc, image)
        return max(1, math.ceil(height / doc.page_height - _EPSILON))

    def append_image(self, doc: OutputDocument, image: RasterImage, mode: str) -> None:
        if doc.finalized:
            raise ValueError("document already finalized")
        if mode not in MODES:
            raise ValueError(f"unknown pagination mode: {mode}")
        if image.width <= 0 or image.height <= 0:
            raise ValueError("cannot paginate an empty image")

        width = doc.page_width
        height = self.scaled_height(doc, image)

        if mode == ONE_PER_PAGE and height > doc.page_height + _EPSILON:
            logger.warning(
                "Image of %.1fmm does not fit a %.1fmm page; band slicing instead",
                height,
                doc.page_height,
            )
            mode = BAND_SLICED

        pdf = self._writer(doc)
        doc.sections.append(len(doc.pages))
        position = 0.0
        height_left = height
        while True:
            # fpdf2 keeps one encoded copy of the bitmap however often it is drawn.
            pdf.add_page()
            pdf.image(io.BytesIO(image.data), x=0.0, y=position, w=width, h=height)
            doc.new_page().placements.append(ImagePlacement(0.0, position, width, height))
            height_left -= doc.page_height
            if mode == ONE_PER_PAGE or height_left <= _EPSILON:
                break
            position -= doc.page_height

        if mode == BAND_SLICED:
            logger.debug("Band sliced %.1fmm image across %d page(s)", height, len(doc.pages) - doc.sections[-1])

    def finalize(self, doc: OutputDocument) -> bytes:
        """Serialize *doc* to PDF bytes.  A document can be finalized once."""
        if doc.finalized:
            raise ValueError("document already finalized")
        if not doc.pages or doc.pdf is None:
            raise ValueError("cannot finalize a document without pages")

        data = bytes(doc.pdf.output())
        doc.finalized = True
        doc.pdf = None
        logger.info("Finalized %s document: %d page(s), %d bytes", doc.page_name, doc.page_count, len(data))
        return data


__all__ = ["BAND_SLICED", "MODES", "ONE_PER_PAGE", "Paginator"]
