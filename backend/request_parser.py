import base64
import json
from typing import Any, Dict, Optional


class RequestParser:
    """Utility for working with API Gateway events."""

    def __init__(self, event: Dict[str, Any]):
        self.event = event or {}
        self.headers = self._lower_headers(self.event.get("headers", {}))
        self.path_params = dict(self.event.get("pathParameters") or {})
        self.query_params = dict(self.event.get("queryStringParameters") or {})
        self.body = self._get_body_bytes(self.event)

    @staticmethod
    def _lower_headers(headers: Dict[str, Any]) -> Dict[str, str]:
        return {str(k).lower(): v for k, v in (headers or {}).items()}

    @staticmethod
    def _get_body_bytes(event: Dict[str, Any]) -> bytes:
        body = event.get("body", b"")
        if event.get("isBase64Encoded"):
            if isinstance(body, str):
                return base64.b64decode(body)
            return base64.b64decode(body or b"")
        if isinstance(body, str):
            return body.encode("utf-8", errors="ignore")
        return body or b""

    def json(self) -> Dict[str, Any]:
        """Return parsed JSON body if present."""
        try:
            data = json.loads((self.body or b"").decode("utf-8", "ignore") or "{}")
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def bearer_token(self) -> Optional[str]:
        """Return the token from ``Authorization: Bearer <token>``, if any."""
        value = str(self.headers.get("authorization") or "").strip()
        scheme, _, token = value.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    def path_suffix(self, prefix: str) -> str:
        """Return what follows *prefix* in the request path."""
        path = self.event.get("path", "") or ""
        if not path.startswith(prefix):
            return ""
        return path[len(prefix):].strip("/")
