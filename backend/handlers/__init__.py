"""Factories for Lambda request handlers."""

from .download_handler import create_download_handler
from .report_handler import create_report_generate_handler, create_report_load_handler

__all__ = [
    "create_download_handler",
    "create_report_generate_handler",
    "create_report_load_handler",
]
