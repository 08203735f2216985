"""Exception types raised by the report pipeline.

Everything the pipeline raises derives from :class:`ReportError` so the
session layer can catch the whole family at the top of a generation and
turn it into a single user-facing message.
"""
from __future__ import annotations

from typing import Optional


class ReportError(Exception):
    """Base class for report pipeline failures."""


class BackendQueryError(ReportError):
    """The hosted backend rejected a query or returned an unusable payload."""

    def __init__(self, message: str, status: Optional[int] = None, table: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.table = table


class DataFetchError(ReportError):
    """A report dataset could not be fetched in full."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class RenderCaptureError(ReportError):
    """The rasterizer could not turn a render node into an image."""


class ReportGenerationError(ReportError):
    """A batch failed while the document was being assembled."""

    def __init__(self, batch_index: int, cause: BaseException) -> None:
        super().__init__(f"Batch {batch_index} failed: {cause}")
        self.batch_index = batch_index
        self.cause = cause


__all__ = [
    "BackendQueryError",
    "DataFetchError",
    "RenderCaptureError",
    "ReportError",
    "ReportGenerationError",
]
