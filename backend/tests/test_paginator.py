"""Tests for placing captured images onto pages."""

from __future__ import annotations

import gc
import io
import sys
import weakref
from pathlib import Path

import pytest
from PIL import Image
from pypdf import PdfReader

PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_PATH = PROJECT_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from paginator import BAND_SLICED, ONE_PER_PAGE, Paginator  # noqa: E402  pylint: disable=wrong-import-position
from report_models import RasterImage  # noqa: E402  pylint: disable=wrong-import-position
from report_settings import PageFormat  # noqa: E402  pylint: disable=wrong-import-position

A4 = PageFormat("A4", 210.0, 297.0)


def _image(width: int, height: int) -> RasterImage:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="JPEG")
    return RasterImage(width=width, height=height, data=buffer.getvalue())


def test_tall_image_is_band_sliced_with_decreasing_offsets() -> None:
    paginator = Paginator(A4)
    doc = paginator.new_document()
    image = _image(100, 300)  # 630mm at full width

    assert paginator.mode_for(doc, image) == BAND_SLICED
    paginator.append_image(doc, image, BAND_SLICED)

    assert doc.page_count == 3
    offsets = [page.placements[0].y for page in doc.pages]
    assert offsets == pytest.approx([0.0, -297.0, -594.0])
    assert all(page.placements[0].height == pytest.approx(630.0) for page in doc.pages)
    assert all(page.placements[0].width == pytest.approx(210.0) for page in doc.pages)


def test_exact_multiple_of_page_height_has_no_trailing_page() -> None:
    paginator = Paginator(A4)
    doc = paginator.new_document()

    paginator.append_image(doc, _image(210, 594), BAND_SLICED)

    assert doc.page_count == 2
    assert Paginator.pages_needed(doc, _image(210, 594)) == 2


def test_short_image_takes_one_page() -> None:
    paginator = Paginator(A4)
    doc = paginator.new_document()
    image = _image(210, 100)

    assert paginator.mode_for(doc, image) == ONE_PER_PAGE
    paginator.append_image(doc, image, ONE_PER_PAGE)

    assert doc.page_count == 1
    assert doc.pages[0].placements[0].y == 0.0


def test_too_tall_image_in_one_per_page_mode_is_not_clipped() -> None:
    paginator = Paginator(A4)
    doc = paginator.new_document()

    paginator.append_image(doc, _image(100, 200), ONE_PER_PAGE)

    assert doc.page_count == 2


def test_each_image_starts_a_new_page() -> None:
    paginator = Paginator(A4)
    doc = paginator.new_document()

    paginator.append_image(doc, _image(210, 100), ONE_PER_PAGE)
    paginator.append_image(doc, _image(100, 300), BAND_SLICED)
    paginator.append_image(doc, _image(210, 50), ONE_PER_PAGE)

    assert doc.sections == [0, 1, 4]
    assert doc.page_count == 5


def test_finalize_writes_every_page_once() -> None:
    paginator = Paginator(A4)
    doc = paginator.new_document()
    paginator.append_image(doc, _image(100, 300), BAND_SLICED)
    paginator.append_image(doc, _image(210, 100), ONE_PER_PAGE)

    data = paginator.finalize(doc)

    reader = PdfReader(io.BytesIO(data))
    assert len(reader.pages) == 4
    width_pt = float(reader.pages[0].mediabox.width)
    assert width_pt == pytest.approx(210 / 25.4 * 72, rel=1e-3)
    assert doc.finalized

    with pytest.raises(ValueError):
        paginator.finalize(doc)
    with pytest.raises(ValueError):
        paginator.append_image(doc, _image(10, 10), ONE_PER_PAGE)


def test_unknown_mode_is_rejected() -> None:
    paginator = Paginator(A4)
    doc = paginator.new_document()
    with pytest.raises(ValueError):
        paginator.append_image(doc, _image(10, 10), "fitToPage")


def test_appended_image_is_written_immediately_and_released() -> None:
    paginator = Paginator(A4)
    doc = paginator.new_document()
    image = _image(100, 300)
    ref = weakref.ref(image)

    paginator.append_image(doc, image, BAND_SLICED)
    del image
    gc.collect()

    assert ref() is None
    assert doc.pdf.page_no() == doc.page_count == 3
    assert len(PdfReader(io.BytesIO(paginator.finalize(doc))).pages) == 3
    assert doc.pdf is None


def test_finalize_without_pages_is_rejected() -> None:
    paginator = Paginator(A4)

    with pytest.raises(ValueError):
        paginator.finalize(paginator.new_document())
