"""Connection to the hosted Supabase backend.

A fresh client is built per caller so the caller's access token is applied
to that client alone and row-level security stays in the backend.  Query
failures come back as :class:`BackendQueryError`; an empty table is an
empty list.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client
from supabase.client import ClientOptions

from report_errors import BackendQueryError


logger = logging.getLogger(__name__)


class BackendConnection:
    """Builds Supabase clients for one project URL and anon key."""

    def __init__(self, url: str, key: str, timeout: float = 15.0) -> None:
        self.url = (url or "").rstrip("/")
        self.key = key or ""
        self.timeout = timeout

    def client(self, access_token: Optional[str] = None) -> Client:
        if not self.url or not self.key:
            raise BackendQueryError("Backend URL or key is not configured")
        try:
            client = create_client(self.url, self.key, options=ClientOptions(postgrest_client_timeout=self.timeout))
        except Exception as exc:
            raise BackendQueryError(f"Unable to create backend client: {exc}") from exc
        if access_token:
            client.postgrest.auth(access_token)
        return client


def fetch_rows(query: Any, table: str) -> List[Dict[str, Any]]:
    """Execute a query builder and return its rows."""
    try:
        response = query.execute()
    except APIError as exc:
        logger.error("Backend query on '%s' failed (%s): %s", table, exc.code, exc.message)
        raise BackendQueryError(f"Backend rejected query on '{table}': {exc.message}", table=table) from exc
    except httpx.HTTPError as exc:
        logger.error("Backend query on '%s' could not be sent: %s", table, exc)
        raise BackendQueryError(f"Backend unreachable: {exc}", table=table) from exc

    rows = response.data
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise BackendQueryError(
            f"Expected a list of rows for '{table}', got {type(rows).__name__}",
            table=table,
        )
    return rows


__all__ = ["BackendConnection", "fetch_rows"]
