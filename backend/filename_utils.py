"""Helpers for deriving safe, sortable report filenames."""
from __future__ import annotations

import os
import re
from datetime import datetime, timezone
from typing import Optional


TIMESTAMP_LENGTH = 19


def report_timestamp(now: Optional[datetime] = None) -> str:
    """Return e.g. ``2026-10-18T19-16-00`` for the given (or current) UTC time."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return re.sub(r"[:.]", "-", now.isoformat())[:TIMESTAMP_LENGTH]


def sanitize_filename(name: str, default: str = 'file') -> str:
    """Return a safe base filename without extension."""
    if not name:
        return default
    name = os.path.basename(name)
    name_without_ext = os.path.splitext(name)[0]
    safe_name = re.sub(r"[^\w\s\.\-\(\),]", '', name_without_ext)
    safe_name = re.sub(r"\s{2,}", ' ', safe_name).strip()
    safe_name = safe_name.rstrip('. ')
    return safe_name if safe_name else default


def scope_token(scope: Optional[str], default: str = 'all') -> str:
    """Reduce a free-text scope filter to a filename-safe token."""
    token = re.sub(r"[^A-Za-z0-9_-]+", '-', (scope or '').strip()).strip('-')
    return token or default


def build_report_filename(
    prefix: str,
    scope: Optional[str] = None,
    *,
    include_scope: bool = True,
    now: Optional[datetime] = None,
) -> str:
    parts = [sanitize_filename(prefix, default='report').replace(' ', '-')]
    if include_scope:
        parts.append(scope_token(scope))
    parts.append(report_timestamp(now))
    return "-".join(parts) + ".pdf"


__all__ = [
    'build_report_filename',
    'report_timestamp',
    'sanitize_filename',
    'scope_token',
]
