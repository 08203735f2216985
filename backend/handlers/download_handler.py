"""Handler for retrieving generated report PDFs."""

from __future__ import annotations

import base64
import hashlib
import json
import urllib.parse
from typing import Any, Dict, Optional

from report_storage import DOWNLOAD_ROUTE, ReportStorage, is_valid_key
from request_parser import RequestParser


class DownloadHandler:
    def __init__(self, logger, storage: ReportStorage) -> None:
        self._logger = logger
        self._storage = storage

    def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        try:
            parser = RequestParser(event)
            key = self._extract_key(parser)
            if not key or not is_valid_key(key):
                return self._bad_request("Missing or invalid report key")

            filename = key.split("/", 1)[1]
            self._logger.info("Attempting to download: %s", key)

            if self._storage.uses_s3 and not self._should_stream(parser):
                presigned_url = self._storage.presigned_url(key, filename)
                if presigned_url:
                    return {
                        "statusCode": 302,
                        "headers": {"Location": presigned_url, "Cache-Control": "no-store"},
                        "body": "",
                    }

            file_content = self._storage.load(key)
            if file_content is None:
                return self._not_found("File not found")

            sha256 = hashlib.sha256(file_content).hexdigest()
            return {
                "statusCode": 200,
                "headers": {
                    "Content-Type": "application/pdf",
                    "Content-Disposition": f'attachment; filename="{filename}"',
                    "Content-Transfer-Encoding": "binary",
                    "Cache-Control": "no-store",
                    "X-Content-SHA256": sha256,
                    "X-Original-Length": str(len(file_content)),
                },
                "body": base64.b64encode(file_content).decode("utf-8"),
                "isBase64Encoded": True,
            }
        except Exception as exc:  # pragma: no cover - defensive
            self._logger.error("Error in handle_download: %s", exc)
            return self._server_error("Download failed")

    # Internal helpers ---------------------------------------------------

    @staticmethod
    def _extract_key(parser: RequestParser) -> Optional[str]:
        session_id = parser.path_params.get("session_id")
        filename = parser.path_params.get("filename")
        if session_id and filename:
            key = f"{session_id}/{filename}"
        else:
            key = parser.path_params.get("key") or parser.path_suffix(DOWNLOAD_ROUTE)

        key = urllib.parse.unquote(key or "")
        if "?" in key:
            key = key.split("?", 1)[0]
        return key or None

    @staticmethod
    def _should_stream(parser: RequestParser) -> bool:
        flag = str(parser.query_params.get("stream", "")).lower()
        return flag in {"1", "true", "yes"}

    # Response helpers ---------------------------------------------------

    @staticmethod
    def _bad_request(message: str) -> Dict[str, Any]:
        return {
            "statusCode": 400,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"error": message}),
        }

    @staticmethod
    def _not_found(message: str) -> Dict[str, Any]:
        return {
            "statusCode": 404,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"error": message}),
        }

    @staticmethod
    def _server_error(message: str) -> Dict[str, Any]:
        return {
            "statusCode": 500,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"error": message}),
        }


def create_download_handler(logger, storage: ReportStorage):
    handler = DownloadHandler(logger=logger, storage=storage)
    return handler.handle
